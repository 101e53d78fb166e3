"""
detector_gateway.services.rate_limiter

Per-identity daily quota.

Responsibilities:
- Count orchestrated operations per (identity, calendar day).
- Refuse further operations once the daily limit is reached, with a retry delay that
  points at the next local midnight.
- Fail open: store errors never block a request.

Per (identity, day) the counter moves Unseen -> Counting -> Exhausted; a new day key
starts again at Unseen. Reads and increments are separate statements, so concurrent
requests may overshoot the limit slightly; the increment itself is an atomic upsert where
the dialect supports it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import Clock, resolve_timezone, utcnow
from detector_gateway.db.repositories.usage import UsageCounterRepo
from detector_gateway.observability.logging import get_logger
from detector_gateway.outcome import Ok, Outcome, SoftFailure
from detector_gateway.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    current_count: int | None = None
    retry_after_seconds: int | None = None


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    current_count: int
    limit: int
    resets_at: datetime


_FAIL_OPEN = RateLimitDecision(allowed=True)

# A 25-hour DST day would otherwise push the delay past one day.
_MAX_RETRY_AFTER_SECONDS = 86400


class RateLimiter:
    def __init__(self, *, session: AsyncSession, settings: Settings, clock: Clock = utcnow) -> None:
        self._session = session
        self._limit = settings.daily_request_limit
        self._tz = resolve_timezone(settings.quota_timezone)
        self._clock = clock
        self._counters = UsageCounterRepo(session)

    async def check_and_increment(self, identity_id: str) -> Outcome[RateLimitDecision]:
        now = self._clock()
        window = self.window_key(now)
        try:
            count = await self._counters.current_count(identity_id=identity_id, window_key=window)
            if count >= self._limit:
                return Ok(
                    RateLimitDecision(
                        allowed=False,
                        current_count=count,
                        retry_after_seconds=self.seconds_until_reset(now),
                    )
                )
            new_count = await self._counters.increment(identity_id=identity_id, window_key=window)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("rate_limit_store_error", identity_id=identity_id, error=str(e))
            return SoftFailure(reason=f"usage counter unavailable: {e.__class__.__name__}", value=_FAIL_OPEN)

        return Ok(RateLimitDecision(allowed=True, current_count=new_count))

    async def usage(self, identity_id: str) -> Outcome[UsageSnapshot]:
        now = self._clock()
        resets_at = self._next_midnight(now)
        try:
            count = await self._counters.current_count(
                identity_id=identity_id, window_key=self.window_key(now)
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("usage_read_failed", identity_id=identity_id, error=str(e))
            return SoftFailure(
                reason="usage counter unavailable",
                value=UsageSnapshot(current_count=0, limit=self._limit, resets_at=resets_at),
            )
        return Ok(UsageSnapshot(current_count=count, limit=self._limit, resets_at=resets_at))

    def window_key(self, now: datetime) -> date:
        return now.astimezone(self._tz).date()

    def seconds_until_reset(self, now: datetime) -> int:
        seconds = math.ceil((self._next_midnight(now) - now).total_seconds())
        return min(_MAX_RETRY_AFTER_SECONDS, max(1, seconds))

    def _next_midnight(self, now: datetime) -> datetime:
        tomorrow = self.window_key(now) + timedelta(days=1)
        return datetime.combine(tomorrow, time.min, tzinfo=self._tz)


# --- Module Notes -----------------------------------------------------------
# The limiter is an abuse guard, not billing-grade metering: SoftFailure results carry an
# allow decision, and counters are never decremented.
