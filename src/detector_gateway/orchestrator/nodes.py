"""
detector_gateway.orchestrator.nodes

Pipeline nodes and routing functions.

Each node receives the current state plus its bound collaborators and returns a partial
state update. Terminal failures are raised as gateway errors and propagate out of the
graph unchanged.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Literal

from detector_gateway.clock import Clock, utcnow
from detector_gateway.errors import ClassificationUnavailableError, QuotaExceededError
from detector_gateway.observability.logging import get_logger
from detector_gateway.orchestrator.state import ClassificationState
from detector_gateway.outcome import SoftFailure
from detector_gateway.providers.base import ClassificationProvider
from detector_gateway.providers.factory import ProviderChain
from detector_gateway.services.cache import CacheManager, derive_key
from detector_gateway.services.maintenance import MaintenanceWorker, purge_stale_cache_entries
from detector_gateway.services.rate_limiter import RateLimiter
from detector_gateway.services.validation import validate_request
from detector_gateway.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineDeps:
    settings: Settings
    rate_limiter: RateLimiter
    cache: CacheManager
    providers: ProviderChain
    worker: MaintenanceWorker | None = None
    clock: Clock = utcnow


async def validate_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    req = validate_request(
        locator=state.get("locator", ""),
        content=state.get("content", ""),
        mode=state.get("mode", ""),
        settings=deps.settings,
    )
    return {"word_count": req.word_count, "provider_errors": []}


async def quota_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    identity_id = state["identity_id"]
    outcome = await deps.rate_limiter.check_and_increment(identity_id)
    if isinstance(outcome, SoftFailure):
        log.warning("rate_limit_degraded", identity_id=identity_id, reason=outcome.reason)

    decision = outcome.value
    if not decision.allowed:
        log.info("quota_exceeded", identity_id=identity_id, current_count=decision.current_count)
        raise QuotaExceededError(
            retry_after_seconds=decision.retry_after_seconds or 1,
            current_count=decision.current_count,
        )
    return {"quota_count": decision.current_count, "quota_degraded": outcome.degraded}


async def cache_lookup_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    key = derive_key(state["locator"], state["content"], state["mode"], state.get("freshness_token"))
    outcome = await deps.cache.lookup(key)
    if isinstance(outcome, SoftFailure):
        log.warning("cache_degraded", reason=outcome.reason)

    lookup = outcome.value
    if lookup.stale_evicted and deps.worker is not None:
        deps.worker.submit(
            "purge_stale_cache_entries",
            purge_stale_cache_entries(settings=deps.settings, clock=deps.clock),
        )
    if lookup.hit:
        log.info("cache_hit", mode=state["mode"])
        return {"cache_key": key, "payload": lookup.payload, "source": "cache"}
    return {"cache_key": key}


async def primary_provider_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    update: dict[str, Any] = {"analysis_started": time.perf_counter()}
    update.update(await _attempt(deps.providers.primary, state, deps=deps))
    return update


async def fallback_provider_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    return await _attempt(deps.providers.fallback, state, deps=deps)


async def _attempt(
    provider: ClassificationProvider, state: ClassificationState, *, deps: PipelineDeps
) -> dict[str, Any]:
    try:
        verdict = await asyncio.wait_for(
            provider.classify(content=state["content"], mode=state["mode"]),  # type: ignore[arg-type]
            timeout=deps.settings.provider_timeout_seconds,
        )
    except TimeoutError:
        return _failed(state, provider.name, "timeout")
    except Exception as e:
        return _failed(state, provider.name, f"{e.__class__.__name__}: {e}")
    return {"verdict": verdict.to_payload(), "provider": provider.name}


def _failed(state: ClassificationState, provider: str, error: str) -> dict[str, Any]:
    log.warning("provider_failed", provider=provider, error=error)
    return {"provider_errors": [*state.get("provider_errors", []), f"{provider}: {error}"]}


async def unavailable_node(state: ClassificationState) -> dict[str, Any]:
    log.error("classification_unavailable", provider_errors=state.get("provider_errors", []))
    raise ClassificationUnavailableError()


async def persist_node(state: ClassificationState, *, deps: PipelineDeps) -> dict[str, Any]:
    elapsed_ms = int((time.perf_counter() - state["analysis_started"]) * 1000)
    payload = {
        **state["verdict"],
        "metadata": {
            "provider": state["provider"],
            "wordCount": state["word_count"],
            "analysisTimeMs": elapsed_ms,
        },
    }
    outcome = await deps.cache.store(state["cache_key"], payload, locator=state["locator"])
    if isinstance(outcome, SoftFailure):
        log.warning("cache_store_degraded", reason=outcome.reason)
    return {"payload": payload, "source": "fresh"}


def route_after_cache(state: ClassificationState) -> Literal["finish", "primary_provider"]:
    return "finish" if state.get("source") == "cache" else "primary_provider"


def route_after_primary(state: ClassificationState) -> Literal["persist", "fallback_provider"]:
    return "persist" if state.get("verdict") is not None else "fallback_provider"


def route_after_fallback(state: ClassificationState) -> Literal["persist", "unavailable"]:
    return "persist" if state.get("verdict") is not None else "unavailable"
