"""
detector_gateway.identity.google

Verifies Google ID tokens through the `tokeninfo` endpoint.

Responsibilities:
- Exchange a raw ID token for its verified claims over HTTP.
- Expose the claims as a provider-neutral `FederatedAssertion`.

The audience check against the configured client id is done by the sign-in service, so
that every verifier implementation is held to the same rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from detector_gateway.observability.logging import get_logger
from detector_gateway.settings import Settings

log = get_logger(__name__)


class InvalidAssertion(Exception):
    pass


@dataclass(frozen=True, slots=True)
class FederatedAssertion:
    subject: str
    email: str
    name: str
    picture: str | None
    audience: str


class IdentityVerifier(Protocol):
    async def verify(self, assertion: str) -> FederatedAssertion: ...


class GoogleTokenInfoVerifier:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._url = settings.google_tokeninfo_url
        self._http = http

    async def verify(self, assertion: str) -> FederatedAssertion:
        try:
            r = await self._http.get(self._url, params={"id_token": assertion})
        except httpx.HTTPError as e:
            log.warning("identity_provider_unreachable", error=e.__class__.__name__)
            raise InvalidAssertion("Identity provider unreachable") from e
        if r.status_code != 200:
            raise InvalidAssertion("Invalid Google ID token")
        try:
            data = r.json()
        except ValueError as e:
            raise InvalidAssertion("Identity provider returned a non-JSON body") from e
        return _assertion_from_tokeninfo(data)


def _assertion_from_tokeninfo(data: Any) -> FederatedAssertion:
    if not isinstance(data, dict):
        raise InvalidAssertion("Identity provider returned an unexpected body")
    subject = str(data.get("sub") or "").strip()
    if not subject:
        raise InvalidAssertion("ID token has no subject")
    email = str(data.get("email") or "").strip().lower()
    if not email:
        raise InvalidAssertion("ID token has no email")
    return FederatedAssertion(
        subject=subject,
        email=email,
        name=str(data.get("name") or ""),
        picture=data.get("picture") or None,
        audience=str(data.get("aud") or ""),
    )
