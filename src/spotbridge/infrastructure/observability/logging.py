"""Log setup for the extension: JSON or compact console output, correlation ids."""

import contextvars
import logging
import sys
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, the correlation ID ties together every log line of ONE backend operation
# (e.g. "get tracks from playlist" = N page requests + cache writes). log_operation opens a
# scope when none is active; contextvars make it follow the asyncio task automatically.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Third-party loggers that flood INFO with per-request lines
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "PIL")

CONSOLE_FORMAT = "%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


def get_correlation_id() -> str:
    """Correlation ID of the current task, empty string outside any scope."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID in context.

    Args:
        correlation_id: Correlation ID to set. If None, a short random one is generated

    Returns:
        The correlation ID that was set
    """
    correlation_id = correlation_id or uuid.uuid4().hex[:12]
    correlation_id_var.set(correlation_id)
    return correlation_id


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Run a block under a correlation ID, restoring the previous one afterwards.

    A block nested in an active scope keeps the outer ID unless one is passed
    explicitly, so page fetches of a playlist walk share the walk's ID.
    """
    current = correlation_id_var.get()
    if correlation_id is None and current:
        yield current
        return

    reset_token = correlation_id_var.set(correlation_id or uuid.uuid4().hex[:12])
    try:
        yield correlation_id_var.get()
    finally:
        correlation_id_var.reset(reset_token)


class CorrelationIdFilter(logging.Filter):
    """Stamp the current correlation ID on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def _exception_chain(exc: BaseException) -> list[BaseException]:
    """Causes of `exc`, root cause first."""
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    chain.reverse()
    return chain


def _package_frames(exc: BaseException) -> Iterator[traceback.FrameSummary]:
    """Traceback frames that belong to spotbridge (no site-packages, no stdlib)."""
    for frame in traceback.extract_tb(exc.__traceback__):
        if "/site-packages/" not in frame.filename and "spotbridge" in frame.filename:
            yield frame


class CompactExceptionFormatter(logging.Formatter):
    """Console formatter printing exception chains root-cause first, our frames only.

    Example output:
    12:00:01 │ WARNING │ spotbridge...webapi_backend:221 │ get_tracks.failed
    ╰─► ConnectError: All connection attempts failed
        File "request_executor.py", line 171, in _send
          response = await token.run(client.get(target, ...))
    ╰─► ApiError: 503: Service Unavailable
    """

    def formatException(self, ei: Any) -> str:
        _, exc_value, _ = ei
        if exc_value is None:
            return ""

        lines: list[str] = []
        for exc in _exception_chain(exc_value):
            lines.append(f"╰─► {type(exc).__name__}: {exc}")
            for frame in _package_frames(exc):
                filename = Path(frame.filename).name
                lines.append(f'    File "{filename}", line {frame.lineno}, in {frame.name}')
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")
        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[misc]
    """One JSON object per line, with location and correlation ID."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["location"] = f"{record.module}.{record.funcName}:{record.lineno}"

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return CustomJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return CompactExceptionFormatter(fmt=CONSOLE_FORMAT, datefmt="%H:%M:%S")


# Listen future me, call this ONCE when the host loads the extension. It owns the root
# logger, so a second call replaces the handler instead of adding another one. Our own
# request/response dumps are controlled by webapi.log_requests / log_responses, the
# httpx loggers stay at WARNING regardless of log_level.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "spotbridge",
) -> None:
    """Configure root logging for the extension.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit one JSON object per line instead of console text
        app_name: Name reported in the "Logging configured" record
    """
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(_build_formatter(json_format))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )
