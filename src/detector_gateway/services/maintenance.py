"""
detector_gateway.services.maintenance

Background maintenance queue.

Responsibilities:
- Accept cleanup jobs from request handlers without blocking them.
- Run jobs one at a time on a single worker task, each in its own DB session.
- Log job failures and keep the worker alive.

Jobs are plain async callables taking an AsyncSession. Two are defined here:
- `cleanup_expired_revocations` (submitted after logout)
- `purge_stale_cache_entries` (submitted after a lookup evicted a stale entry)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from detector_gateway.auth.tokens import TokenService
from detector_gateway.clock import Clock, utcnow
from detector_gateway.observability.logging import get_logger
from detector_gateway.services.cache import CacheManager
from detector_gateway.settings import Settings

log = get_logger(__name__)

Job = Callable[[AsyncSession], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class _QueuedJob:
    name: str
    job: Job


class MaintenanceWorker:
    def __init__(self, *, sessionmaker: async_sessionmaker[AsyncSession], max_pending: int = 1000) -> None:
        self._sessionmaker = sessionmaker
        self._queue: asyncio.Queue[_QueuedJob | None] = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="maintenance-worker")
        log.info("maintenance_worker_started")

    async def stop(self) -> None:
        if self._task is None:
            return
        # Sentinel is queued behind pending jobs, so the queue drains before exit.
        await self._queue.put(None)
        await self._task
        self._task = None
        log.info("maintenance_worker_stopped")

    def submit(self, name: str, job: Job) -> bool:
        try:
            self._queue.put_nowait(_QueuedJob(name=name, job=job))
        except asyncio.QueueFull:
            log.warning("maintenance_job_dropped", job=name)
            return False
        return True

    async def join(self) -> None:
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await self._execute(item)
            finally:
                self._queue.task_done()

    async def _execute(self, item: _QueuedJob) -> None:
        try:
            async with self._sessionmaker() as session:
                result = await item.job(session)
        except Exception as e:
            log.error("maintenance_job_failed", job=item.name, error=str(e), exc_info=True)
            return
        log.info("maintenance_job_completed", job=item.name, result=result)


def cleanup_expired_revocations(*, settings: Settings, clock: Clock = utcnow) -> Job:
    async def _job(session: AsyncSession) -> int:
        return await TokenService(settings=settings, session=session, clock=clock).cleanup_expired()

    return _job


def purge_stale_cache_entries(*, settings: Settings, clock: Clock = utcnow) -> Job:
    async def _job(session: AsyncSession) -> int:
        return await CacheManager(session=session, settings=settings, clock=clock).purge_expired()

    return _job


# --- Module Notes -----------------------------------------------------------
# The queue is in-process: jobs submitted on one instance are not visible to others, and
# pending jobs are lost if the process dies. Both jobs are idempotent sweeps, so a lost
# job is picked up by the next one.
