"""
detector_gateway.api.app

FastAPI app factory for the detector gateway.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Render every failure through one error envelope `{error, message[, retryAfter]}`.
- Initialize and dispose shared infrastructure (DB engine, HTTP client, maintenance worker).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from detector_gateway.api.routers.admin import router as admin_router
from detector_gateway.api.routers.analyze import router as analyze_router
from detector_gateway.api.routers.auth import router as auth_router
from detector_gateway.api.routers.health import router as health_router
from detector_gateway.api.routers.usage import router as usage_router
from detector_gateway.db.init_db import init_db
from detector_gateway.db.session import create_engine, create_sessionmaker
from detector_gateway.errors import GatewayError, InternalError, MalformedRequestError, QuotaExceededError
from detector_gateway.identity.google import GoogleTokenInfoVerifier, IdentityVerifier
from detector_gateway.observability.logging import configure_logging, get_logger
from detector_gateway.observability.middleware import RequestContextMiddleware
from detector_gateway.providers.factory import ProviderChain, build_providers
from detector_gateway.services.maintenance import MaintenanceWorker
from detector_gateway.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    providers: ProviderChain | None = None,
    identity_verifier: IdentityVerifier | None = None,
) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Detector Gateway",
        version="0.1.0",
        docs_url="/docs" if settings.env != "prod" else None,
        openapi_url="/openapi.json" if settings.env != "prod" else None,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(analyze_router)
    app.include_router(usage_router)
    app.include_router(admin_router)

    _register_error_handlers(app)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine)

        # One pooled client for the identity provider and both classification providers.
        app.state.http = httpx.AsyncClient(timeout=settings.provider_timeout_seconds)
        app.state.providers = providers or build_providers(settings=settings, http=app.state.http)
        app.state.identity_verifier = identity_verifier or GoogleTokenInfoVerifier(
            settings=settings, http=app.state.http
        )

        app.state.worker = MaintenanceWorker(sessionmaker=app.state.sessionmaker)
        app.state.worker.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        worker = getattr(app.state, "worker", None)
        if worker is not None:
            await worker.stop()
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        headers = None
        if isinstance(exc, QuotaExceededError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _malformed(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = MalformedRequestError("Request body is missing or not valid JSON")
        log.info("malformed_request", errors=len(exc.errors()))
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def _internal(request: Request, exc: Exception) -> JSONResponse:
        log.error("unhandled_exception", error=str(exc), exc_info=exc)
        err = InternalError("Internal server error")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())


# --- Module Notes -----------------------------------------------------------
# Tests pass fake providers and a fake identity verifier through create_app; production
# builds both from settings on startup.
