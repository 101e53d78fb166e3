"""
detector_gateway.api.routers.auth

Sign-in, logout and token verification endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, identity_verifier_dep, settings_dep, worker_dep
from detector_gateway.identity.google import IdentityVerifier
from detector_gateway.services.auth_service import AuthService
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.settings import Settings

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class SignInRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(alias="idToken", min_length=1)


def _service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    verifier: IdentityVerifier = Depends(identity_verifier_dep),
    worker: MaintenanceWorker = Depends(worker_dep),
) -> AuthService:
    return AuthService(session=session, settings=settings, verifier=verifier, worker=worker)


@router.post("/google/sign-in")
async def google_sign_in(body: SignInRequest, svc: AuthService = Depends(_service)) -> dict[str, Any]:
    result = await svc.sign_in(body.id_token)
    # Only the fields the client needs; raw provider claims never leave the service.
    return {
        "token": result.token,
        "user": {
            "id": str(result.identity.id),
            "email": result.identity.email,
            "name": result.identity.name,
            "pictureUrl": result.identity.avatar_url,
        },
        "isNewUser": result.is_new_user,
    }


@router.post("/logout")
async def logout(
    authorization: str | None = Header(default=None),
    svc: AuthService = Depends(_service),
) -> dict[str, str]:
    await svc.logout(authorization)
    return {"message": "Successfully logged out"}


@router.post("/verify")
async def verify(
    authorization: str | None = Header(default=None),
    svc: AuthService = Depends(_service),
) -> dict[str, Any]:
    claims = await svc.verify(authorization)
    return {
        "valid": True,
        "user": {"userId": claims.subject, "email": claims.email, "name": claims.name},
    }
