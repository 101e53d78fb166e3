"""
detector_gateway.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (signing secret, provider API keys).
- Offer a cached settings instance for the composition root.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DAY_SECONDS = 24 * 60 * 60


class Settings(BaseSettings):
    """
    Immutable configuration struct:
    - Strict env-driven configuration
    - Defaults safe for local dev
    - Built once at the composition root and passed to every component constructor
    """

    model_config = SettingsConfigDict(env_prefix="DETECTOR_", case_sensitive=False, frozen=True)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "detector-gateway"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Session tokens
    token_alg: str = "HS256"
    token_issuer: str = "detector-gateway"
    token_audience: str = "detector-extension"
    token_secret: str = Field(default="dev-only-signing-secret-change-me-0000", repr=False)
    token_lifetime_seconds: int = 365 * _DAY_SECONDS
    token_max_lifetime_seconds: int = 366 * _DAY_SECONDS

    # Federated identity provider
    google_client_id: str = "dev-google-client-id"
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./detector.db"

    # Quota
    daily_request_limit: int = Field(default=50, ge=1)
    quota_timezone: str = "UTC"

    # Cache
    cache_ttl_seconds: int = Field(default=_DAY_SECONDS, ge=1)

    # Request validation bounds
    min_text_chars: int = 10
    max_text_chars: int = 10_000
    min_words: int = 3
    max_url_chars: int = 2048

    # Classification providers (primary first)
    openai_api_key: str = Field(default="", repr=False)
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4"
    anthropic_api_key: str = Field(default="", repr=False)
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_model: str = "claude-3-sonnet-20240229"
    anthropic_version: str = "2023-06-01"
    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    provider_max_tokens: int = 500

    # Identities allowed to read operational statistics
    admin_emails: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_token_lifetime(self) -> Settings:
        if self.token_lifetime_seconds <= 0:
            raise ValueError("token_lifetime_seconds must be positive")
        if self.token_lifetime_seconds > self.token_max_lifetime_seconds:
            raise ValueError("token_lifetime_seconds cannot exceed token_max_lifetime_seconds")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Only the composition root (api.app / api.deps / api.__main__) calls get_settings();
# services, repositories and providers receive the Settings instance explicitly.
