"""Shared logger helpers.

USAGE:
    logger = get_module_logger(__name__)

    async with log_operation(logger, "get_tracks_from_album", album_id="xyz"):
        ...
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from spotbridge.domain.exceptions import Cancelled
from spotbridge.infrastructure.observability.logging import correlation_scope


def get_module_logger(name: str) -> logging.Logger:
    """Get logger for module (use __name__)."""
    return logging.getLogger(name)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# Yo, this times a backend operation and logs start/end with the same context fields.
# Start/complete go to DEBUG because the host calls the facade A LOT (every playlist view).
# Failures are logged at WARNING with the exception and re-raised untouched. A user abort
# is not a failure, it gets INFO. Everything inside shares one correlation ID (the caller's,
# if it already opened a scope).
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[str]:
    """Log operation start/end with automatic timing.

    Logs:
    - {operation}.started with context fields
    - {operation}.completed with context + duration_ms
    - {operation}.cancelled if the cancellation token fired
    - {operation}.failed with context + duration_ms + error details

    Yields:
        The correlation ID the operation runs under
    """
    with correlation_scope() as correlation_id:
        start = time.monotonic()
        logger.debug(f"{operation}.started", extra=context)
        try:
            yield correlation_id
        except Cancelled:
            logger.info(
                f"{operation}.cancelled",
                extra={**context, "duration_ms": _elapsed_ms(start)},
            )
            raise
        except Exception as e:
            logger.warning(
                f"{operation}.failed",
                extra={
                    **context,
                    "duration_ms": _elapsed_ms(start),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise
        logger.debug(
            f"{operation}.completed",
            extra={**context, "duration_ms": _elapsed_ms(start)},
        )
