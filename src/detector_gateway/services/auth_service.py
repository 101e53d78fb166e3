"""
detector_gateway.services.auth_service

Sign-in, logout and token verification (transaction owner).

Responsibilities:
- Exchange a federated assertion for a gateway session token.
- Find or create the identity and keep its last-authentication time current.
- Revoke tokens on logout and schedule revocation cleanup.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.auth.models import TokenClaims, TokenSubject
from detector_gateway.auth.tokens import TokenService, extract_bearer
from detector_gateway.clock import Clock, utcnow
from detector_gateway.db.models import Identity
from detector_gateway.db.repositories.identities import IdentityRepo
from detector_gateway.errors import AuthenticationFailedError, MalformedRequestError, PersistenceError
from detector_gateway.identity.google import IdentityVerifier, InvalidAssertion
from detector_gateway.observability.logging import get_logger
from detector_gateway.services.maintenance import MaintenanceWorker, cleanup_expired_revocations
from detector_gateway.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SignInResult:
    token: str
    identity: Identity
    is_new_user: bool


class AuthService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        verifier: IdentityVerifier,
        worker: MaintenanceWorker | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._session = session
        self._settings = settings
        self._verifier = verifier
        self._worker = worker
        self._clock = clock
        self._identities = IdentityRepo(session)
        self._tokens = TokenService(settings=settings, session=session, clock=clock)

    async def sign_in(self, assertion: str) -> SignInResult:
        if not assertion or not assertion.strip():
            raise MalformedRequestError("Missing ID token")

        try:
            federated = await self._verifier.verify(assertion)
        except InvalidAssertion as e:
            log.info("sign_in_rejected", reason=str(e))
            raise AuthenticationFailedError("Authentication failed") from None

        if federated.audience != self._settings.google_client_id:
            log.info("sign_in_rejected", reason="audience mismatch")
            raise AuthenticationFailedError("Authentication failed")

        now = self._clock()
        try:
            identity = await self._identities.get_by_federated_subject(federated.subject)
            is_new_user = identity is None
            if identity is None:
                identity = await self._identities.create(
                    federated_subject=federated.subject,
                    email=federated.email,
                    name=federated.name,
                    avatar_url=federated.picture,
                    now=now,
                )
            else:
                await self._identities.touch_last_authenticated(identity, now=now)
            await self._session.commit()
        except IntegrityError:
            # The email already belongs to an identity with a different federated subject.
            await self._session.rollback()
            log.info("sign_in_rejected", reason="email already bound to another identity")
            raise AuthenticationFailedError("Authentication failed") from None
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.error("identity_upsert_failed", error=str(e))
            raise PersistenceError("Failed to record sign-in") from e

        token = self._tokens.issue(
            TokenSubject(identity_id=str(identity.id), email=identity.email, name=identity.name)
        )
        log.info("sign_in_succeeded", identity_id=str(identity.id), is_new_user=is_new_user)
        return SignInResult(token=token, identity=identity, is_new_user=is_new_user)

    async def logout(self, authorization: str | None) -> None:
        claims = await self._tokens.authenticate(authorization)
        await self._tokens.revoke(extract_bearer(authorization), claims.subject)
        if self._worker is not None:
            self._worker.submit(
                "cleanup_expired_revocations",
                cleanup_expired_revocations(settings=self._settings, clock=self._clock),
            )

    async def verify(self, authorization: str | None) -> TokenClaims:
        return await self._tokens.authenticate(authorization)
