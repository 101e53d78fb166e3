"""
tests.test_maintenance

Maintenance queue: ordered execution, failure isolation and the cleanup jobs.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from detector_gateway.auth.models import TokenSubject
from detector_gateway.auth.tokens import TokenService
from detector_gateway.services.cache import CacheManager, derive_key
from detector_gateway.services.maintenance import (
    MaintenanceWorker,
    cleanup_expired_revocations,
    purge_stale_cache_entries,
)


@pytest.mark.asyncio
async def test_jobs_run_in_order_and_failures_are_isolated(sessionmaker) -> None:
    worker = MaintenanceWorker(sessionmaker=sessionmaker)
    ran: list[str] = []

    def ok(name: str):
        async def _job(session) -> str:
            await session.execute(text("SELECT 1"))
            ran.append(name)
            return name

        return _job

    async def boom(session) -> None:
        raise RuntimeError("job exploded")

    worker.start()
    try:
        worker.submit("first", ok("first"))
        worker.submit("boom", boom)
        worker.submit("second", ok("second"))
        await worker.join()
        assert worker.running
    finally:
        await worker.stop()

    assert ran == ["first", "second"]
    assert not worker.running


@pytest.mark.asyncio
async def test_stop_drains_pending_jobs(sessionmaker) -> None:
    worker = MaintenanceWorker(sessionmaker=sessionmaker)
    ran: list[int] = []

    async def job(session) -> None:
        ran.append(1)

    worker.start()
    for _ in range(5):
        worker.submit("noop", job)
    await worker.stop()

    assert len(ran) == 5


@pytest.mark.asyncio
async def test_submit_never_blocks_when_full(sessionmaker) -> None:
    worker = MaintenanceWorker(sessionmaker=sessionmaker, max_pending=1)

    async def job(session) -> None:
        return None

    assert worker.submit("a", job) is True
    assert worker.submit("b", job) is False


@pytest.mark.asyncio
async def test_cleanup_expired_revocations_job(settings, clock, sessionmaker) -> None:
    async with sessionmaker() as session:
        tokens = TokenService(settings=settings, session=session, clock=clock)
        token = tokens.issue(TokenSubject(identity_id="id-alice", email="a@example.com", name="A"))
        await tokens.revoke(token, "id-alice")

    clock.advance(seconds=settings.token_lifetime_seconds + 1)
    job = cleanup_expired_revocations(settings=settings, clock=clock)
    async with sessionmaker() as session:
        assert await job(session) == 1

    async with sessionmaker() as session:
        count = (await session.execute(text("SELECT COUNT(*) FROM token_revocations"))).scalar_one()
        assert count == 0


@pytest.mark.asyncio
async def test_purge_stale_cache_entries_job(settings, clock, sessionmaker) -> None:
    async with sessionmaker() as session:
        cache = CacheManager(session=session, settings=settings, clock=clock)
        await cache.store(
            derive_key("https://example.com", "some words here", "quick"),
            {"classification": "human-written"},
            locator="https://example.com",
        )

    clock.advance(days=2)
    job = purge_stale_cache_entries(settings=settings, clock=clock)
    async with sessionmaker() as session:
        assert await job(session) == 1
