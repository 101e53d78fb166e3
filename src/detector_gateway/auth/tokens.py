"""
detector_gateway.auth.tokens

Session-token issuing, verification and revocation.

Responsibilities:
- Issue long-lived HMAC-signed JWTs for authenticated identities.
- Verify signature, shape and expiry without touching the backing store.
- Revoke tokens (logout) by storing a one-way fingerprint, and check revocation on every
  authenticated request.

Notes:
- The token is `<signing input>.<signature>`, where the signing input is the usual
  `header.payload` pair. The signature is compared against the canonical encoding of the
  expected MAC so that any byte change in either part is rejected.
- Only `verify` distinguishes failure reasons; `authenticate` collapses them into a single
  `AuthenticationFailedError`.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import jwt
from jwt.algorithms import HMACAlgorithm, get_default_algorithms
from jwt.utils import base64url_encode
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.auth.models import TokenClaims, TokenSubject
from detector_gateway.clock import Clock, utcnow
from detector_gateway.db.repositories.revocations import RevocationRepo
from detector_gateway.errors import AuthenticationFailedError, PersistenceError
from detector_gateway.observability.logging import get_logger
from detector_gateway.settings import Settings

log = get_logger(__name__)

BEARER_PREFIX = "Bearer "


class TokenError(Exception):
    pass


class Malformed(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class Expired(TokenError):
    pass


class MissingCredential(TokenError):
    pass


class Revoked(TokenError):
    pass


@dataclass(frozen=True, slots=True)
class TokenConfig:
    alg: str
    issuer: str
    audience: str
    secret: str
    lifetime_seconds: int
    max_lifetime_seconds: int

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            alg=settings.token_alg,
            issuer=settings.token_issuer,
            audience=settings.token_audience,
            secret=settings.token_secret,
            lifetime_seconds=settings.token_lifetime_seconds,
            max_lifetime_seconds=settings.token_max_lifetime_seconds,
        )


def fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def extract_bearer(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingCredential("missing or malformed authorization header")
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise MissingCredential("empty bearer credential")
    return token


class TokenService:
    def __init__(
        self,
        *,
        settings: Settings,
        session: AsyncSession | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._cfg = TokenConfig.from_settings(settings)
        self._session = session
        self._clock = clock

        algorithm = get_default_algorithms().get(self._cfg.alg)
        if not isinstance(algorithm, HMACAlgorithm):
            raise ValueError(f"unsupported token algorithm: {self._cfg.alg}")
        self._algorithm = algorithm
        self._key = algorithm.prepare_key(self._cfg.secret)

    def issue(self, identity: TokenSubject) -> str:
        issued_at = int(self._clock().timestamp())
        payload: dict[str, Any] = {
            "iss": self._cfg.issuer,
            "aud": self._cfg.audience,
            "sub": identity.identity_id,
            "email": identity.email,
            "name": identity.name,
            "iat": issued_at,
            "exp": issued_at + self._cfg.lifetime_seconds,
        }
        return jwt.encode(payload, self._cfg.secret, algorithm=self._cfg.alg)

    def verify(self, token: str) -> TokenClaims:
        segments = token.split(".")
        if len(segments) != 3 or not all(segments):
            raise Malformed("token must have a signing input and a signature")

        signing_input, _, signature = token.rpartition(".")
        expected = base64url_encode(self._algorithm.sign(signing_input.encode("utf-8"), self._key))
        if not hmac.compare_digest(expected, signature.encode("utf-8")):
            raise InvalidSignature("signature mismatch")

        try:
            # Signature is already verified; jwt.decode checks structure and registered claims.
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._cfg.secret,
                algorithms=[self._cfg.alg],
                issuer=self._cfg.issuer,
                audience=self._cfg.audience,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["exp", "iat", "iss", "aud", "sub"],
                },
            )
        except jwt.InvalidSignatureError as e:
            raise InvalidSignature(str(e)) from e
        except jwt.InvalidTokenError as e:
            raise Malformed(str(e)) from e

        claims = self._claims_from_payload(payload)
        if self._clock().timestamp() > claims.expires_at:
            raise Expired("token expired")
        return claims

    async def is_revoked(self, token_fingerprint: str) -> bool:
        rec = await RevocationRepo(self._require_session()).find_active(
            token_fingerprint, now=self._clock()
        )
        return rec is not None

    async def authenticate(self, authorization: str | None) -> TokenClaims:
        try:
            token = extract_bearer(authorization)
            claims = self.verify(token)
            if await self.is_revoked(fingerprint(token)):
                raise Revoked("token revoked")
        except TokenError as e:
            # Reason stays server-side; callers only see AuthenticationFailed.
            log.info("authentication_rejected", reason=type(e).__name__)
            raise AuthenticationFailedError() from None
        except SQLAlchemyError as e:
            await self._require_session().rollback()
            log.warning("revocation_lookup_failed", error=str(e))
            raise AuthenticationFailedError() from None
        return claims

    async def revoke(self, token: str, identity_id: str) -> None:
        claims = self.verify(token)
        session = self._require_session()
        try:
            await RevocationRepo(session).add(
                token_fingerprint=fingerprint(token),
                identity_id=identity_id,
                expires_at=datetime.fromtimestamp(claims.expires_at, tz=UTC),
            )
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            log.error("token_revocation_failed", identity_id=identity_id, error=str(e))
            raise PersistenceError("Failed to revoke token") from e
        log.info("token_revoked", identity_id=identity_id)

    async def cleanup_expired(self) -> int:
        session = self._require_session()
        try:
            deleted = await RevocationRepo(session).delete_expired(now=self._clock())
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            log.warning("revocation_cleanup_failed", error=str(e))
            return 0
        log.info("revocation_cleanup", deleted=deleted)
        return deleted

    def _claims_from_payload(self, payload: dict[str, Any]) -> TokenClaims:
        sub = payload.get("sub")
        email = payload.get("email", "")
        name = payload.get("name", "")
        iat = payload.get("iat")
        exp = payload.get("exp")
        if not isinstance(sub, str) or not sub:
            raise Malformed("invalid subject")
        if not isinstance(email, str) or not isinstance(name, str):
            raise Malformed("invalid display claims")
        if not isinstance(iat, int) or not isinstance(exp, int):
            raise Malformed("invalid timestamps")
        if not iat < exp <= iat + self._cfg.max_lifetime_seconds:
            raise Malformed("token validity window out of bounds")
        return TokenClaims(subject=sub, email=email, name=name, issued_at=iat, expires_at=exp)

    def _require_session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("TokenService needs a DB session for revocation operations")
        return self._session


# --- Module Notes -----------------------------------------------------------
# verify() is pure apart from the clock, so it runs without a session; only revocation
# checks, revocation writes and cleanup touch the backing store.
