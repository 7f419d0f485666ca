"""Core plumbing shared by every layer."""

from spotbridge.core.cancellation import CancellationToken, CancellationTokenSource

__all__ = ["CancellationToken", "CancellationTokenSource"]
