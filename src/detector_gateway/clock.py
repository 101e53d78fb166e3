"""
detector_gateway.clock

Time helpers shared by services and repositories.

Services compute with tz-aware UTC datetimes obtained from an injectable `Clock`;
the persistence layer stores naive UTC (see `db.models`).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def from_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(UTC)
    return value.replace(tzinfo=UTC)


def resolve_timezone(name: str) -> tzinfo:
    # "UTC" needs no tz database.
    if name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)
