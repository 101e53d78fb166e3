"""
detector_gateway.api.routers.usage

Per-identity quota usage for the current day.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, settings_dep
from detector_gateway.auth.deps import get_claims
from detector_gateway.auth.models import TokenClaims
from detector_gateway.services.rate_limiter import RateLimiter
from detector_gateway.settings import Settings

router = APIRouter(prefix="/v1", tags=["usage"])


@router.get("/usage")
async def get_usage(
    claims: TokenClaims = Depends(get_claims),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    outcome = await RateLimiter(session=session, settings=settings).usage(claims.subject)
    snap = outcome.value
    return {
        "currentCount": snap.current_count,
        "limit": snap.limit,
        "remaining": max(0, snap.limit - snap.current_count),
        "resetsAt": snap.resets_at.isoformat(),
        "degraded": outcome.degraded,
    }
