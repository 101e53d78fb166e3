"""
detector_gateway.services.classification_service

Classification lifecycle service (transaction owner).

Responsibilities:
- Wire the rate limiter, cache, providers and maintenance worker into the pipeline.
- Run the LangGraph pipeline for one request and return the annotated result.
- Map unexpected failures to `InternalError`; gateway errors pass through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import Clock, utcnow
from detector_gateway.errors import GatewayError, InternalError
from detector_gateway.observability.logging import get_logger
from detector_gateway.orchestrator.graph import build_graph
from detector_gateway.orchestrator.nodes import PipelineDeps
from detector_gateway.orchestrator.state import ClassificationState
from detector_gateway.providers.factory import ProviderChain
from detector_gateway.services.cache import CacheManager
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.services.rate_limiter import RateLimiter
from detector_gateway.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ClassificationOutcome:
    payload: dict[str, Any]
    source: Literal["cache", "fresh"]

    def to_response(self) -> dict[str, Any]:
        return {**self.payload, "source": self.source}


class ClassificationService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        providers: ProviderChain,
        worker: MaintenanceWorker | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._deps = PipelineDeps(
            settings=settings,
            rate_limiter=RateLimiter(session=session, settings=settings, clock=clock),
            cache=CacheManager(session=session, settings=settings, clock=clock),
            providers=providers,
            worker=worker,
            clock=clock,
        )

    async def classify(
        self,
        *,
        identity_id: str,
        locator: str,
        content: str,
        mode: str,
        freshness_token: str | None = None,
    ) -> ClassificationOutcome:
        graph = build_graph(deps=self._deps)
        state: ClassificationState = {
            "identity_id": identity_id,
            "locator": locator,
            "content": content,
            "mode": mode,
            "freshness_token": freshness_token,
        }

        try:
            final_state = await graph.ainvoke(state)
        except GatewayError:
            raise
        except Exception as e:
            log.error("classification_pipeline_failed", error=str(e), exc_info=True)
            raise InternalError("Internal server error") from e

        source = final_state["source"]
        log.info(
            "classification_completed",
            identity_id=identity_id,
            mode=mode,
            source=source,
            provider=final_state.get("provider"),
            quota_count=final_state.get("quota_count"),
            quota_degraded=final_state.get("quota_degraded", False),
        )
        return ClassificationOutcome(payload=final_state["payload"], source=source)


# --- Module Notes -----------------------------------------------------------
# Every store write commits inside its own component (quota, cache), so a provider failure
# after the quota step still leaves the increment in place.
