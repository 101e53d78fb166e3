"""
detector_gateway.api.routers.admin

Operational statistics restricted to admin identities.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, settings_dep
from detector_gateway.auth.deps import require_admin
from detector_gateway.services.cache import CacheManager
from detector_gateway.settings import Settings

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/cache-stats")
async def cache_stats(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    outcome = await CacheManager(session=session, settings=settings).stats()
    stats = outcome.value
    return {
        "totalEntries": stats.total_entries,
        "topDomains": [{"domain": d, "count": c} for d, c in stats.top_domains],
        "degraded": outcome.degraded,
    }
