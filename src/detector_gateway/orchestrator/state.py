"""
detector_gateway.orchestrator.state

Typed state schema used by the classification pipeline.

Responsibilities:
- Define the contract between nodes (inputs/outputs).
"""

from __future__ import annotations

from typing import Any, TypedDict

from detector_gateway.services.cache import CacheKey


class ClassificationState(TypedDict, total=False):
    # Inputs
    identity_id: str
    locator: str
    content: str
    mode: str
    freshness_token: str | None

    # Derived by validation
    word_count: int

    # Quota
    quota_count: int | None
    quota_degraded: bool

    # Cache
    cache_key: CacheKey

    # Provider attempts
    analysis_started: float
    verdict: dict[str, Any]
    provider: str
    provider_errors: list[str]

    # Result
    payload: dict[str, Any]
    source: str


# --- Module Notes -----------------------------------------------------------
# No key uses a reducer: nodes return partial updates and every key is last-write-wins.
# provider_errors is extended explicitly by the provider nodes.
