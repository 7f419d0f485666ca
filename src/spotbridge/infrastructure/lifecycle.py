"""Startup / shutdown helpers for the host extension.

Hey future me - the host (player extension) calls backend_session() once when the
component loads and keeps the backend for its whole lifetime. On unload the session
exit finalizes the backend: every in-flight request, limiter wait and 429 backoff is
cancelled before the HTTP client is closed. Nothing here is needed in tests, they
build WebApiBackend directly.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from spotbridge.application.services.webapi_backend import WebApiBackend
from spotbridge.config.settings import Settings, get_settings
from spotbridge.domain.ports import IAuthorizer
from spotbridge.infrastructure.observability.logging import configure_logging
from spotbridge.infrastructure.observability.tracing import configure_tracing

logger = logging.getLogger(__name__)


def configure_observability(settings: Settings) -> None:
    """Set up logging (and tracing if enabled) from the observability section."""
    observability = settings.observability
    configure_logging(
        log_level=observability.log_level,
        json_format=observability.json_format,
    )
    if observability.enable_tracing:
        configure_tracing()


@asynccontextmanager
async def backend_session(
    authorizer: IAuthorizer,
    settings: Settings | None = None,
) -> AsyncGenerator[WebApiBackend, None]:
    """Create a configured backend and finalize it on exit.

    Args:
        authorizer: Host-side OAuth token source
        settings: Explicit settings, defaults to get_settings()
    """
    settings = settings or get_settings()
    configure_observability(settings)

    backend = WebApiBackend.from_settings(settings, authorizer)
    logger.info(
        "Web API backend started (base_url=%s, image cache=%s)",
        settings.webapi.base_url,
        settings.storage.image_cache_path,
    )
    try:
        yield backend
    finally:
        await backend.finalize()
        logger.info("Web API backend stopped")
