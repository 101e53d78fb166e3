"""
detector_gateway.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert the raw Authorization header into verified `TokenClaims`.
- Restrict operational endpoints to configured admin identities.
"""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.api.deps import db_session, settings_dep
from detector_gateway.auth.models import TokenClaims
from detector_gateway.auth.tokens import TokenService
from detector_gateway.errors import ForbiddenError
from detector_gateway.settings import Settings


async def get_claims(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> TokenClaims:
    # Every failure surfaces as the same opaque AuthenticationFailedError.
    return await TokenService(settings=settings, session=session).authenticate(authorization)


def require_admin(
    claims: TokenClaims = Depends(get_claims),
    settings: Settings = Depends(settings_dep),
) -> TokenClaims:
    admins = {e.strip().lower() for e in settings.admin_emails}
    if not claims.email or claims.email.lower() not in admins:
        raise ForbiddenError("Admin privileges required")
    return claims


# --- Module Notes -----------------------------------------------------------
# Raw header parsing (not HTTPBearer) keeps "missing", "wrong scheme" and "bad token"
# indistinguishable to the caller.
