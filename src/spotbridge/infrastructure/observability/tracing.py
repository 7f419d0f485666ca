"""OpenTelemetry tracing configuration."""

import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from spotbridge import __version__

logger = logging.getLogger(__name__)


# Hey future me, tracing is OFF unless observability.enable_tracing is set. Without a
# configured provider the opentelemetry API hands out no-op tracers, so the spans in
# RequestExecutor cost nothing. We only ship the console exporter - the player has no
# collector to talk to, this is for debugging request waterfalls locally.
def configure_tracing(
    service_name: str = "spotbridge",
    enable_console_exporter: bool = True,
) -> TracerProvider:
    """Configure OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        enable_console_exporter: Print finished spans to stdout

    Returns:
        Configured tracer provider
    """
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if enable_console_exporter:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console trace exporter enabled")

    trace.set_tracer_provider(provider)
    logger.info("Tracing configured", extra={"service_name": service_name})
    return provider


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance (typically for __name__)."""
    return trace.get_tracer(name)
