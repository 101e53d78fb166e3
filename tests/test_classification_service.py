"""
tests.test_classification_service

End-to-end behaviour of the classification pipeline (without HTTP).

Responsibilities:
- Cache idempotence, provider fallback and exhaustion.
- Quota accounting across cache hits, failures and validation errors.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from conftest import VERDICT, FakeProvider, failing_provider, make_settings
from detector_gateway.errors import (
    ClassificationUnavailableError,
    QuotaExceededError,
    ValidationFailedError,
)
from detector_gateway.orchestrator.graph import build_graph
from detector_gateway.orchestrator.nodes import PipelineDeps
from detector_gateway.providers.factory import ProviderChain
from detector_gateway.services.cache import CacheManager
from detector_gateway.services.classification_service import ClassificationService
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.services.rate_limiter import RateLimiter

URL = "https://news.example.com/story"
TEXT = "This article explains the new policy in several carefully balanced paragraphs."


def _service(session, clock, primary, fallback, **overrides) -> ClassificationService:
    return ClassificationService(
        session=session,
        settings=make_settings(**overrides),
        providers=ProviderChain(primary=primary, fallback=fallback),
        clock=clock,
    )


async def _used(session, clock, identity_id: str = "id-alice") -> int:
    snap = await RateLimiter(session=session, settings=make_settings(), clock=clock).usage(identity_id)
    return snap.value.current_count


@pytest.mark.asyncio
async def test_fresh_then_cached(session, clock) -> None:
    primary, fallback = FakeProvider("openai"), FakeProvider("anthropic")
    svc = _service(session, clock, primary, fallback)

    first = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    second = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    assert first.source == "fresh"
    assert second.source == "cache"
    assert second.payload == first.payload
    assert primary.calls == 1
    assert fallback.calls == 0

    body = first.to_response()
    assert body["classification"] == VERDICT["classification"]
    assert body["metadata"]["provider"] == "openai"
    assert body["metadata"]["wordCount"] == 11
    assert body["metadata"]["analysisTimeMs"] >= 0
    assert body["source"] == "fresh"


@pytest.mark.asyncio
async def test_modes_are_cached_separately(session, clock) -> None:
    primary = FakeProvider("openai")
    svc = _service(session, clock, primary, FakeProvider("anthropic"))

    await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    deep = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="deep")

    assert deep.source == "fresh"
    assert primary.calls == 2


@pytest.mark.asyncio
async def test_fallback_used_when_primary_fails(session, clock) -> None:
    fallback = FakeProvider("anthropic")
    svc = _service(session, clock, failing_provider("openai"), fallback)

    out = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="deep")

    assert out.source == "fresh"
    assert out.payload["metadata"]["provider"] == "anthropic"
    assert fallback.calls == 1


@pytest.mark.asyncio
async def test_fallback_used_when_primary_times_out(session, clock) -> None:
    primary = FakeProvider("openai", delay=1.0)
    fallback = FakeProvider("anthropic")
    svc = _service(session, clock, primary, fallback, provider_timeout_seconds=0.05)

    out = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    assert out.payload["metadata"]["provider"] == "anthropic"


@pytest.mark.asyncio
async def test_both_providers_failing_is_unavailable_and_still_counted(session, clock) -> None:
    svc = _service(session, clock, failing_provider("openai"), failing_provider("anthropic"))

    with pytest.raises(ClassificationUnavailableError):
        await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    assert await _used(session, clock) == 1

    # Nothing was cached, so a retry reaches the providers again.
    ok = _service(session, clock, FakeProvider("openai"), FakeProvider("anthropic"))
    retry = await ok.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    assert retry.source == "fresh"


@pytest.mark.asyncio
async def test_validation_failure_consumes_no_quota(session, clock) -> None:
    primary = FakeProvider("openai")
    svc = _service(session, clock, primary, FakeProvider("anthropic"))

    with pytest.raises(ValidationFailedError):
        await svc.classify(identity_id="id-alice", locator="http://127.0.0.1/", content=TEXT, mode="quick")
    with pytest.raises(ValidationFailedError):
        await svc.classify(identity_id="id-alice", locator=URL, content="too short", mode="quick")

    assert await _used(session, clock) == 0
    assert primary.calls == 0


@pytest.mark.asyncio
async def test_cache_hits_consume_quota_until_exhausted(session, clock) -> None:
    primary = FakeProvider("openai")
    svc = _service(session, clock, primary, FakeProvider("anthropic"))

    for _ in range(50):
        await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    with pytest.raises(QuotaExceededError) as exc:
        await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    assert 0 < exc.value.retry_after_seconds <= 86400
    assert exc.value.to_dict()["retryAfter"] == exc.value.retry_after_seconds
    assert primary.calls == 1

    # Another identity is unaffected.
    out = await svc.classify(identity_id="id-bob", locator=URL, content=TEXT, mode="quick")
    assert out.source == "cache"


@pytest.mark.asyncio
async def test_fresh_calls_exhaust_daily_quota(session, clock) -> None:
    primary = FakeProvider("openai")
    svc = _service(session, clock, primary, FakeProvider("anthropic"))

    for i in range(50):
        out = await svc.classify(identity_id="id-alice", locator=URL, content=f"{TEXT} {i}", mode="quick")
        assert out.source == "fresh"

    assert primary.calls == 50
    assert await _used(session, clock) == 50

    with pytest.raises(QuotaExceededError) as exc:
        await svc.classify(identity_id="id-alice", locator=URL, content=f"{TEXT} 50", mode="quick")

    assert 0 < exc.value.retry_after_seconds <= 86400
    assert primary.calls == 50


@pytest.mark.asyncio
async def test_store_outage_still_classifies(broken_session, clock) -> None:
    primary = FakeProvider("openai")
    svc = _service(broken_session, clock, primary, FakeProvider("anthropic"))

    first = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    second = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")

    # Quota fails open and the cache degrades to misses, so every call is fresh.
    assert first.source == second.source == "fresh"
    assert primary.calls == 2


@pytest.mark.asyncio
async def test_pipeline_reports_quota_state(session, clock) -> None:
    settings = make_settings()
    deps = PipelineDeps(
        settings=settings,
        rate_limiter=RateLimiter(session=session, settings=settings, clock=clock),
        cache=CacheManager(session=session, settings=settings, clock=clock),
        providers=ProviderChain(FakeProvider("openai"), FakeProvider("anthropic")),
        clock=clock,
    )
    graph = build_graph(deps=deps)
    state = {"identity_id": "id-alice", "locator": URL, "content": TEXT, "mode": "quick"}

    first = await graph.ainvoke(state)
    second = await graph.ainvoke(state)

    assert (first["quota_count"], first["quota_degraded"]) == (1, False)
    assert (second["quota_count"], second["source"]) == (2, "cache")


@pytest.mark.asyncio
async def test_stale_purge_uses_the_pipeline_clock(session, sessionmaker, clock) -> None:
    worker = MaintenanceWorker(sessionmaker=sessionmaker)
    svc = ClassificationService(
        session=session,
        settings=make_settings(),
        providers=ProviderChain(FakeProvider("openai"), FakeProvider("anthropic")),
        worker=worker,
        clock=clock,
    )

    await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    clock.advance(hours=12)
    await svc.classify(identity_id="id-alice", locator=URL, content=f"{TEXT} again", mode="quick")
    clock.advance(hours=12, seconds=1)

    # The first entry is now stale; the lookup evicts it and queues a purge.
    out = await svc.classify(identity_id="id-alice", locator=URL, content=TEXT, mode="quick")
    assert out.source == "fresh"

    worker.start()
    try:
        await worker.join()
    finally:
        await worker.stop()

    # Judged by the injected clock, the second entry is only 12 hours old and survives.
    count = (await session.execute(text("SELECT COUNT(*) FROM cache_entries"))).scalar_one()
    assert count == 2
