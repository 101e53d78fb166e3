"""
detector_gateway.auth.models

Auth domain models.

Responsibilities:
- Define the verified session-token claims injected into endpoints (`TokenClaims`).
- Define the minimal identity view the token issuer needs (`TokenSubject`).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TokenSubject:
    identity_id: str
    email: str
    name: str


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """
    Decoded, verified session-token payload.
    """

    subject: str
    email: str
    name: str
    issued_at: int
    expires_at: int


# --- Module Notes -----------------------------------------------------------
# Keep these models minimal; they cross the API, service and token layers.
