"""Cooperative cancellation for long-running backend operations.

Hey future me - the host (player UI) owns a CancellationTokenSource per user action
("add playlist", "refresh metadata") and passes the TOKEN into every backend call.
Every await point that can take a while (rate limiter queue, 429 backoff, token refresh,
HTTP request, image download) must go through token.sleep() / token.run() so that an
abort is honored immediately and not only between two requests.

Usage:
    source = CancellationTokenSource()
    tracks = await backend.get_tracks_from_album(album_id, source.token)
    # ... from another task: source.cancel()

We don't rely on asyncio task cancellation for this because the host can't reach our
tasks, it only has the token. asyncio.CancelledError still works as usual on top.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import TypeVar

from spotbridge.domain.exceptions import Cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Read-only view of a cancellation signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def none(cls) -> "CancellationToken":
        """Token that is never cancelled (fresh instance, event loops differ in tests)."""
        return cls()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise Cancelled if the token already fired."""
        if self._event.is_set():
            raise Cancelled()

    def _fire(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def _register(self, callback: Callable[[], None]) -> None:
        if self._event.is_set():
            callback()
        else:
            self._callbacks.append(callback)

    def _unregister(self, callback: Callable[[], None]) -> None:
        with contextlib.suppress(ValueError):
            self._callbacks.remove(callback)

    async def wait(self) -> None:
        """Wait until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for `delay` seconds, waking up early on cancellation.

        Raises:
            Cancelled: If the token fires before or during the sleep
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise Cancelled()

    # Hey future me - run() races the awaitable against the token. If the token wins we
    # cancel the inner task AND wait for it, so its finally-blocks (temp file cleanup,
    # connection release) finish before Cancelled reaches the caller.
    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token fires first.

        Raises:
            Cancelled: If the token fires before the awaitable completes
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task.cancelled():
            raise Cancelled()
        return task.result()


class CancellationTokenSource:
    """Owner side of a CancellationToken.

    Sources can be linked to other tokens: the linked source fires when any parent
    fires. Use it as a context manager so the parent callbacks get detached again.
    """

    def __init__(self, *parents: CancellationToken) -> None:
        self._token = CancellationToken()
        self._parents = parents
        for parent in parents:
            parent._register(self.cancel)

    @classmethod
    def linked(cls, *tokens: CancellationToken) -> "CancellationTokenSource":
        """Create a source that fires as soon as any of `tokens` fires."""
        return cls(*tokens)

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled

    def cancel(self) -> None:
        """Signal cancellation to every holder of the token."""
        if not self._token.is_cancelled:
            logger.debug("Cancellation requested")
        self._token._fire()

    def close(self) -> None:
        """Detach from parent tokens."""
        for parent in self._parents:
            parent._unregister(self.cancel)
        self._parents = ()

    def __enter__(self) -> "CancellationTokenSource":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["CancellationToken", "CancellationTokenSource"]
