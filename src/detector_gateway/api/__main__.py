"""
detector_gateway.api.__main__

Entrypoint for running the gateway via `python -m detector_gateway.api`.

Responsibilities:
- Load settings and refuse to serve production traffic with development secrets.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from detector_gateway.api.app import create_app
from detector_gateway.settings import Settings, get_settings


def _check_production_secrets(settings: Settings) -> None:
    if settings.env != "prod":
        return
    if settings.token_secret == Settings.model_fields["token_secret"].default:
        raise SystemExit("DETECTOR_TOKEN_SECRET must be set in prod")
    if not settings.openai_api_key and not settings.anthropic_api_key:
        raise SystemExit("at least one classification provider API key must be set in prod")


def main() -> None:
    settings = get_settings()
    _check_production_secrets(settings)
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
