"""
tests.conftest

Shared fixtures for service and API tests.

Responsibilities:
- Provide test settings, a controllable clock, and in-memory SQLite sessions.
- Provide fake classification providers and a fake identity verifier.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from detector_gateway.db.init_db import init_db
from detector_gateway.db.session import create_sessionmaker
from detector_gateway.identity.google import FederatedAssertion, InvalidAssertion
from detector_gateway.providers.base import ProviderError, ProviderVerdict
from detector_gateway.settings import Settings

TEST_SECRET = "test-signing-secret-0123456789abcdef"
CLIENT_ID = "test-client-id.apps.googleusercontent.com"

VERDICT = {
    "classification": "ai-generated",
    "confidenceLevel": "high",
    "confidenceScore": 0.92,
    "keyIndicators": ["uniform sentence length", "generic transitions"],
    "reasoning": "Consistent cadence and hedging typical of model output.",
}


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "env": "test",
        "token_secret": TEST_SECRET,
        "google_client_id": CLIENT_ID,
        "database_url": "sqlite+aiosqlite://",
        "admin_emails": ["admin@example.com"],
        "provider_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 10, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeProvider:
    def __init__(
        self,
        name: str,
        *,
        verdict: dict[str, Any] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self._verdict = verdict if verdict is not None else VERDICT
        self._error = error
        self._delay = delay
        self.calls = 0

    async def classify(self, *, content: str, mode: str) -> ProviderVerdict:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return ProviderVerdict.model_validate(self._verdict)


def failing_provider(name: str) -> FakeProvider:
    return FakeProvider(name, error=ProviderError(f"{name} API error: 500"))


class FakeVerifier:
    """Maps raw assertions to federated identities; unknown assertions are rejected."""

    def __init__(self, assertions: dict[str, FederatedAssertion] | None = None) -> None:
        self.assertions = assertions or {}

    async def verify(self, assertion: str) -> FederatedAssertion:
        try:
            return self.assertions[assertion]
        except KeyError:
            raise InvalidAssertion("Invalid Google ID token") from None


def google_identity(subject: str, email: str, *, audience: str = CLIENT_ID) -> FederatedAssertion:
    return FederatedAssertion(
        subject=subject,
        email=email,
        name=email.split("@")[0].title(),
        picture=f"https://example.com/{subject}.png",
        audience=audience,
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def bare_engine() -> AsyncIterator[AsyncEngine]:
    # No tables: every statement fails, which exercises store-outage paths.
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(engine)


@pytest_asyncio.fixture
async def session(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with sessionmaker() as s:
        yield s


@pytest_asyncio.fixture
async def broken_session(bare_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with create_sessionmaker(bare_engine)() as s:
        yield s
