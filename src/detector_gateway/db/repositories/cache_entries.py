"""
detector_gateway.db.repositories.cache_entries

Repository for `CacheEntry` entities.

Responsibilities:
- Look up entries by their full composite key.
- Delete single entries and bulk-delete entries older than a cutoff.
- Report entry counts and the most frequent domains.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import to_naive_utc
from detector_gateway.db.models import CacheEntry


class CacheEntryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, *, locator_hash: str, content_hash: str, freshness_token: str, mode: str
    ) -> CacheEntry | None:
        stmt = select(CacheEntry).where(
            CacheEntry.locator_hash == locator_hash,
            CacheEntry.content_hash == content_hash,
            CacheEntry.freshness_token == freshness_token,
            CacheEntry.mode == mode,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def add(
        self,
        *,
        locator_hash: str,
        content_hash: str,
        freshness_token: str,
        mode: str,
        locator: str,
        domain: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> CacheEntry:
        entry = CacheEntry(
            locator_hash=locator_hash,
            content_hash=content_hash,
            freshness_token=freshness_token,
            mode=mode,
            locator=locator,
            domain=domain,
            payload=payload,
            created_at=to_naive_utc(now),
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def delete(self, entry: CacheEntry) -> None:
        await self._session.delete(entry)
        await self._session.flush()

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self._session.execute(
            delete(CacheEntry).where(CacheEntry.created_at < to_naive_utc(cutoff))
        )
        return result.rowcount or 0

    async def count(self) -> int:
        return int((await self._session.execute(select(func.count(CacheEntry.id)))).scalar_one())

    async def top_domains(self, *, limit: int = 10) -> list[tuple[str, int]]:
        entries = func.count(CacheEntry.id).label("entries")
        stmt = (
            select(CacheEntry.domain, entries)
            .group_by(CacheEntry.domain)
            .order_by(desc(entries))
            .limit(limit)
        )
        return [(domain, int(n)) for domain, n in (await self._session.execute(stmt)).all()]
