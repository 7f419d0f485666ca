"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all spotbridge exceptions."""

    # Hey future me, message is stored as an attribute so callers (and the host's error
    # popup) can read it without parsing str(exception). Never raise this directly - use
    # a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


# =============================================================================
# Catalog identity errors (caller errors, never retried)
# =============================================================================


class CatalogObjectError(DomainException, ValueError):
    """Malformed catalog object reference."""

    pass


class InvalidReferenceError(CatalogObjectError):
    """Raised when a reference is not a well-formed URI, URL or schema path."""

    def __init__(self, message: str, reference: str | None = None) -> None:
        super().__init__(message)
        self.reference = reference


class UnsupportedKindError(CatalogObjectError):
    """Raised when a reference names an object kind we don't handle (e.g. `show`)."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unsupported Spotify object: {kind}")
        self.kind = kind


# =============================================================================
# Cancellation
# =============================================================================


class Cancelled(DomainException):
    """Raised when a cooperative cancellation was observed.

    Hey future me - this is NOT asyncio.CancelledError! asyncio cancellation kills the
    task, this one is the host telling us "user pressed abort". It propagates straight
    up, nobody retries it.
    """

    def __init__(self, message: str = "Abort was signaled, canceling request...") -> None:
        super().__init__(message)


# =============================================================================
# Web API protocol errors
# =============================================================================


class ApiError(DomainException):
    """Non-success, non-throttling HTTP response from the Web API."""

    def __init__(self, status_code: int, reason: str, detail: str) -> None:
        super().__init__(f"{status_code}: {reason}\nAdditional data: {detail}")
        self.status_code = status_code
        self.reason = reason
        self.detail = detail


class MalformedThrottleResponseError(DomainException):
    """Raised when a 429 response carries no usable `Retry-After` header."""

    pass


class MalformedResponseError(DomainException):
    """Raised when a successful response does not match the expected shape."""

    pass


class InsufficientScopeError(DomainException):
    """Raised when the current credential lacks a permission the operation needs."""

    def __init__(self, message: str, scope: str | None = None) -> None:
        super().__init__(message)
        self.scope = scope


class CacheInvariantError(DomainException):
    """Raised when a freshly refreshed cache does not hold a requested id.

    This is a programming error in the backend, not something the user can fix.
    """

    def __init__(self, cache_name: str, entity_id: str) -> None:
        super().__init__(
            f"{cache_name} cache does not contain `{entity_id}` after refresh"
        )
        self.cache_name = cache_name
        self.entity_id = entity_id


__all__ = [
    "ApiError",
    "CacheInvariantError",
    "Cancelled",
    "CatalogObjectError",
    "DomainException",
    "InsufficientScopeError",
    "InvalidReferenceError",
    "MalformedResponseError",
    "MalformedThrottleResponseError",
    "UnsupportedKindError",
]
