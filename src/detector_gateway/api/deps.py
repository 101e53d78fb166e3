"""
detector_gateway.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Encapsulate app.state access patterns (sessionmaker, providers, verifier, worker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from detector_gateway.identity.google import IdentityVerifier
from detector_gateway.providers.factory import ProviderChain
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The settings instance is injected once in `detector_gateway.api.app.create_app`.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created on app startup in `detector_gateway.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def providers_dep(request: Request) -> ProviderChain:
    return request.app.state.providers  # type: ignore[attr-defined]


def identity_verifier_dep(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier  # type: ignore[attr-defined]


def worker_dep(request: Request) -> MaintenanceWorker:
    return request.app.state.worker  # type: ignore[attr-defined]
