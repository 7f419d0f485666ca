"""Observability infrastructure for structured logging and tracing."""

from spotbridge.infrastructure.observability.logger_template import (
    get_module_logger,
    log_operation,
)
from spotbridge.infrastructure.observability.logging import (
    configure_logging,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from spotbridge.infrastructure.observability.tracing import (
    configure_tracing,
    get_tracer,
)

__all__ = [
    "configure_logging",
    "configure_tracing",
    "correlation_scope",
    "get_correlation_id",
    "get_module_logger",
    "get_tracer",
    "log_operation",
    "set_correlation_id",
]
