"""
detector_gateway.db.repositories.identities

Repository for `Identity` entities.

Responsibilities:
- Resolve identities by federated subject.
- Create identities on first sign-in and bump the last-authentication time afterwards.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import to_naive_utc
from detector_gateway.db.models import Identity


class IdentityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_federated_subject(self, subject: str) -> Identity | None:
        stmt = select(Identity).where(Identity.federated_subject == subject)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(
        self,
        *,
        federated_subject: str,
        email: str,
        name: str,
        avatar_url: str | None,
        now: datetime,
    ) -> Identity:
        ts = to_naive_utc(now)
        identity = Identity(
            federated_subject=federated_subject,
            email=email,
            name=name,
            avatar_url=avatar_url,
            created_at=ts,
            last_authenticated_at=ts,
        )
        self._session.add(identity)
        await self._session.flush()
        return identity

    async def touch_last_authenticated(self, identity: Identity, *, now: datetime) -> None:
        ts = to_naive_utc(now)
        # Never move the timestamp backwards (clock skew between instances).
        if ts > identity.last_authenticated_at:
            identity.last_authenticated_at = ts
            await self._session.flush()
