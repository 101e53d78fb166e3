"""
detector_gateway.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) covering the backing store and maintenance worker.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, worker_dep
from detector_gateway.observability.logging import get_logger
from detector_gateway.services.maintenance import MaintenanceWorker

log = get_logger(__name__)

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", response_model=None)
async def readyz(
    session: AsyncSession = Depends(db_session),
    worker: MaintenanceWorker = Depends(worker_dep),
) -> dict[str, Any] | JSONResponse:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log.warning("readiness_db_unreachable", error=str(e))
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": False})
    return {"status": "ready", "database": True, "maintenanceWorker": worker.running}


# --- Module Notes -----------------------------------------------------------
# A stopped maintenance worker does not fail readiness: cleanup is best-effort and the
# request path never depends on it.
