"""Web API integration - request execution and wire schema."""

from spotbridge.infrastructure.integrations.request_executor import RequestExecutor

__all__ = ["RequestExecutor"]
