"""
detector_gateway.db.repositories.revocations

Repository for `TokenRevocation` entities.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import to_naive_utc
from detector_gateway.db.models import TokenRevocation


class RevocationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self, *, token_fingerprint: str, identity_id: str, expires_at: datetime
    ) -> TokenRevocation:
        rec = TokenRevocation(
            token_fingerprint=token_fingerprint,
            identity_id=identity_id,
            expires_at=to_naive_utc(expires_at),
        )
        self._session.add(rec)
        await self._session.flush()
        return rec

    async def find_active(self, token_fingerprint: str, *, now: datetime) -> TokenRevocation | None:
        # Expired records are ignored even if cleanup has not removed them yet.
        stmt = (
            select(TokenRevocation)
            .where(
                TokenRevocation.token_fingerprint == token_fingerprint,
                TokenRevocation.expires_at > to_naive_utc(now),
            )
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def delete_expired(self, *, now: datetime) -> int:
        stmt = delete(TokenRevocation).where(TokenRevocation.expires_at < to_naive_utc(now))
        result = await self._session.execute(stmt)
        return result.rowcount or 0
