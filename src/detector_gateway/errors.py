"""
detector_gateway.errors

Externally visible error taxonomy.

Responsibilities:
- Give every failure a stable machine-readable kind and a human-readable message.
- Carry the HTTP status the boundary adapter renders for each kind.
- Carry the retry delay for quota errors so clients can back off deterministically.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    kind: str = "Internal"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class MalformedRequestError(GatewayError):
    kind = "Malformed"
    status_code = 400


class ValidationFailedError(GatewayError):
    kind = "ValidationFailed"
    status_code = 400


class AuthenticationFailedError(GatewayError):
    kind = "AuthenticationFailed"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(GatewayError):
    kind = "Forbidden"
    status_code = 403


class QuotaExceededError(GatewayError):
    kind = "QuotaExceeded"
    status_code = 429

    def __init__(self, *, retry_after_seconds: int, current_count: int | None = None) -> None:
        super().__init__(f"Daily limit exceeded. Retry after {retry_after_seconds} seconds")
        self.retry_after_seconds = retry_after_seconds
        self.current_count = current_count

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retryAfter": self.retry_after_seconds}


class ClassificationUnavailableError(GatewayError):
    kind = "ClassificationUnavailable"
    status_code = 503

    def __init__(
        self, message: str = "Content analysis failed. Please try again later."
    ) -> None:
        super().__init__(message)


class PersistenceError(GatewayError):
    kind = "PersistenceError"
    status_code = 500


class InternalError(GatewayError):
    kind = "Internal"
    status_code = 500


# --- Module Notes -----------------------------------------------------------
# Lower layers keep their own fine-grained exceptions (auth.tokens.TokenError,
# providers.base.ProviderError); services translate them into these kinds.
