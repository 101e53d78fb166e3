"""
detector_gateway.outcome

Result type for best-effort subsystems (rate limiter, cache).

An `Ok` carries the real value. A `SoftFailure` carries the reason the subsystem
degraded plus the value its policy substitutes (fail-open decision, cache miss, no-op
store), so callers can act on `outcome.value` uniformly and still see the degradation:

    match await limiter.check_and_increment(identity_id):
        case SoftFailure(reason=reason):
            log.warning("rate_limit_degraded", reason=reason)
        case Ok(value=decision) if not decision.allowed:
            raise QuotaExceededError(...)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class SoftFailure(Generic[T]):
    reason: str
    value: T

    @property
    def degraded(self) -> bool:
        return True


Outcome = Ok[T] | SoftFailure[T]
