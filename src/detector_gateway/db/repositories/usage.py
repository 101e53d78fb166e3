"""
detector_gateway.db.repositories.usage

Repository for `UsageCounter` entities.

Responsibilities:
- Read the counter for an (identity, day) window.
- Increment it with the most atomic primitive the backing dialect offers.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.db.models import UsageCounter

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


class UsageCounterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def current_count(self, *, identity_id: str, window_key: date) -> int:
        stmt = select(UsageCounter.count).where(
            UsageCounter.identity_id == identity_id,
            UsageCounter.window_key == window_key,
        )
        count = (await self._session.execute(stmt)).scalar_one_or_none()
        return int(count or 0)

    async def increment(self, *, identity_id: str, window_key: date) -> int:
        """
        Insert the row with count=1 or bump an existing one; returns the post-increment count.
        """

        dialect = self._session.get_bind().dialect.name
        dialect_insert = _UPSERT_DIALECTS.get(dialect)
        if dialect_insert is not None:
            stmt = (
                dialect_insert(UsageCounter)
                .values(identity_id=identity_id, window_key=window_key, count=1)
                .on_conflict_do_update(
                    index_elements=[UsageCounter.identity_id, UsageCounter.window_key],
                    set_={"count": UsageCounter.count + 1},
                )
                .returning(UsageCounter.count)
            )
            return int((await self._session.execute(stmt)).scalar_one())

        # Generic path: update first, insert when no row matched.
        updated = await self._session.execute(
            update(UsageCounter)
            .where(
                UsageCounter.identity_id == identity_id,
                UsageCounter.window_key == window_key,
            )
            .values(count=UsageCounter.count + 1)
        )
        if not updated.rowcount:
            await self._session.execute(
                insert(UsageCounter).values(identity_id=identity_id, window_key=window_key, count=1)
            )
        return await self.current_count(identity_id=identity_id, window_key=window_key)
