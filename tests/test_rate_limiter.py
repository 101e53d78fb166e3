"""
tests.test_rate_limiter

Daily quota behaviour: counting, exhaustion, day rollover and fail-open.
"""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfoNotFoundError

import pytest

from conftest import FakeClock, make_settings
from detector_gateway.outcome import Ok, SoftFailure
from detector_gateway.services.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_counts_up_to_limit_then_denies(settings, clock, session) -> None:
    limiter = RateLimiter(session=session, settings=settings, clock=clock)

    for expected in range(1, settings.daily_request_limit + 1):
        outcome = await limiter.check_and_increment("id-alice")
        assert isinstance(outcome, Ok)
        assert outcome.value.allowed is True
        assert outcome.value.current_count == expected

    denied = await limiter.check_and_increment("id-alice")
    assert isinstance(denied, Ok)
    assert denied.value.allowed is False
    assert denied.value.current_count == settings.daily_request_limit
    assert 0 < denied.value.retry_after_seconds <= 86400

    # Denied calls are not counted.
    usage = await limiter.usage("id-alice")
    assert usage.value.current_count == settings.daily_request_limit


@pytest.mark.asyncio
async def test_retry_after_points_at_next_midnight(session) -> None:
    clock = FakeClock(datetime(2026, 3, 10, 18, 30, 0, tzinfo=UTC))
    limiter = RateLimiter(session=session, settings=make_settings(daily_request_limit=1), clock=clock)

    await limiter.check_and_increment("id-alice")
    denied = await limiter.check_and_increment("id-alice")

    assert denied.value.retry_after_seconds == 5 * 3600 + 30 * 60


@pytest.mark.asyncio
async def test_retry_after_is_capped_on_a_long_dst_day(session) -> None:
    # 00:30 EDT on the fall-back day; the next local midnight is 24.5 hours away.
    clock = FakeClock(datetime(2026, 11, 1, 4, 30, 0, tzinfo=UTC))
    try:
        settings = make_settings(daily_request_limit=1, quota_timezone="America/New_York")
        limiter = RateLimiter(session=session, settings=settings, clock=clock)
    except ZoneInfoNotFoundError:
        pytest.skip("tz database not available")

    await limiter.check_and_increment("id-alice")
    denied = await limiter.check_and_increment("id-alice")

    assert denied.value.allowed is False
    assert denied.value.retry_after_seconds == 86400


@pytest.mark.asyncio
async def test_new_day_starts_a_fresh_window(session, clock: FakeClock) -> None:
    limiter = RateLimiter(session=session, settings=make_settings(daily_request_limit=2), clock=clock)

    await limiter.check_and_increment("id-alice")
    await limiter.check_and_increment("id-alice")
    assert (await limiter.check_and_increment("id-alice")).value.allowed is False

    clock.advance(hours=12)
    outcome = await limiter.check_and_increment("id-alice")
    assert outcome.value.allowed is True
    assert outcome.value.current_count == 1


@pytest.mark.asyncio
async def test_identities_are_counted_independently(session, clock) -> None:
    limiter = RateLimiter(session=session, settings=make_settings(daily_request_limit=1), clock=clock)

    assert (await limiter.check_and_increment("id-alice")).value.allowed is True
    assert (await limiter.check_and_increment("id-bob")).value.allowed is True
    assert (await limiter.check_and_increment("id-alice")).value.allowed is False


@pytest.mark.asyncio
async def test_store_outage_fails_open(settings, clock, broken_session) -> None:
    limiter = RateLimiter(session=broken_session, settings=settings, clock=clock)

    outcome = await limiter.check_and_increment("id-alice")

    assert isinstance(outcome, SoftFailure)
    assert outcome.value.allowed is True
    assert outcome.value.retry_after_seconds is None


@pytest.mark.asyncio
async def test_usage_snapshot(settings, clock, session) -> None:
    limiter = RateLimiter(session=session, settings=settings, clock=clock)
    await limiter.check_and_increment("id-alice")

    snap = (await limiter.usage("id-alice")).value

    assert snap.current_count == 1
    assert snap.limit == settings.daily_request_limit
    assert snap.resets_at == datetime(2026, 3, 11, 0, 0, 0, tzinfo=UTC)
