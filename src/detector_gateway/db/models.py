"""
detector_gateway.db.models

Persistence schema for the gateway.

Responsibilities:
- Define ORM models for the state shared across requests:
  - Identity: users resolved from federated sign-in
  - TokenRevocation: fingerprints of session tokens revoked before expiry
  - UsageCounter: per-identity, per-day operation counts
  - CacheEntry: memoized classification results
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, String, Text, UniqueConstraint, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from detector_gateway.clock import to_naive_utc, utcnow
from detector_gateway.db.base import Base


def _utcnow() -> datetime:
    # Persist naive UTC timestamps; services convert via detector_gateway.clock.
    return to_naive_utc(utcnow())


class Identity(Base):
    __tablename__ = "identities"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    federated_subject: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    last_authenticated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)


class TokenRevocation(Base):
    __tablename__ = "token_revocations"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # sha256 hex of the raw token; the raw token is never stored.
    token_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    identity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Copied from the token's own expiry so the row can be garbage-collected.
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)


class UsageCounter(Base):
    __tablename__ = "usage_counters"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    identity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    window_key: Mapped[date] = mapped_column(Date, nullable=False)
    count: Mapped[int] = mapped_column(nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("identity_id", "window_key", name="uq_usage_identity_window"),
    )


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    locator_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # Empty string when the caller supplied no freshness token (NULLs never collide in UNIQUE).
    freshness_token: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    mode: Mapped[str] = mapped_column(String(10), nullable=False)

    locator: Mapped[str] = mapped_column(Text, nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)

    __table_args__ = (
        UniqueConstraint(
            "locator_hash", "content_hash", "freshness_token", "mode", name="uq_cache_key"
        ),
    )


# --- Module Notes -----------------------------------------------------------
# Identity and TokenRevocation rows are written by the token/auth services; UsageCounter
# and CacheEntry rows are written by the classification pipeline.
