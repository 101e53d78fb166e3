"""
detector_gateway.api.routers.analyze

Content classification endpoints (quick and deep modes).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, providers_dep, settings_dep, worker_dep
from detector_gateway.auth.deps import get_claims
from detector_gateway.auth.models import TokenClaims
from detector_gateway.providers.factory import ProviderChain
from detector_gateway.services.classification_service import ClassificationService
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.settings import Settings

router = APIRouter(prefix="/v1/analyze", tags=["analyze"])


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Empty defaults let semantic validation report missing fields as ValidationFailed.
    url: str = ""
    text: str = ""
    last_modified: str | None = Field(default=None, alias="lastModified")


def _service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    providers: ProviderChain = Depends(providers_dep),
    worker: MaintenanceWorker = Depends(worker_dep),
) -> ClassificationService:
    return ClassificationService(session=session, settings=settings, providers=providers, worker=worker)


async def _classify(
    mode: str, body: AnalyzeRequest, claims: TokenClaims, svc: ClassificationService
) -> dict[str, Any]:
    outcome = await svc.classify(
        identity_id=claims.subject,
        locator=body.url,
        content=body.text,
        mode=mode,
        freshness_token=body.last_modified,
    )
    return outcome.to_response()


@router.post("/quick")
async def analyze_quick(
    body: AnalyzeRequest,
    claims: TokenClaims = Depends(get_claims),
    svc: ClassificationService = Depends(_service),
) -> dict[str, Any]:
    return await _classify("quick", body, claims, svc)


@router.post("/deep")
async def analyze_deep(
    body: AnalyzeRequest,
    claims: TokenClaims = Depends(get_claims),
    svc: ClassificationService = Depends(_service),
) -> dict[str, Any]:
    return await _classify("deep", body, claims, svc)
