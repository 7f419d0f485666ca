"""In-memory per-entity-kind object cache."""

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

logger = logging.getLogger(__name__)


class Identified(Protocol):
    """Anything with a catalog id."""

    @property
    def id(self) -> str: ...


class ObjectCache[T: Identified]:
    """Cache of catalog objects keyed by their id.

    Hey future me - get() is TAKE, not peek! A cached object is handed to exactly one caller
    and removed. The typical flow is "batch fetch fills the cache, then each requested id is
    taken out once" (see WebApiBackend.get_tracks). A second reader for the same id gets a
    miss and triggers a fetch - wasteful under a population race, but that's the contract,
    the tests pin it down.
    """

    # Listen up, ONE lock per cache instance - the track cache and the artist cache never
    # contend with each other. Every read-modify-write of _objects happens under the lock so
    # two tasks can't both pop the same entry or lose a put.
    def __init__(self, name: str) -> None:
        self.name = name
        self._objects: dict[str, T] = {}
        self._lock = asyncio.Lock()

    async def is_cached(self, object_id: str) -> bool:
        async with self._lock:
            return object_id in self._objects

    async def get(self, object_id: str) -> T | None:
        """Remove and return the cached object, None on miss."""
        async with self._lock:
            return self._objects.pop(object_id, None)

    async def put(self, value: T) -> None:
        """Insert or overwrite under value.id."""
        async with self._lock:
            self._objects[value.id] = value

    async def put_all(self, values: Iterable[T]) -> None:
        """Insert a batch of objects (one lock acquisition)."""
        async with self._lock:
            count = 0
            for value in values:
                self._objects[value.id] = value
                count += 1
        logger.debug("Cache[%s]: stored %d objects", self.name, count)

    async def clear(self) -> None:
        async with self._lock:
            self._objects.clear()

    # Not locked - diagnostics only
    def __len__(self) -> int:
        return len(self._objects)


class SingleObjectCache[T]:
    """Holds at most one object (the current user profile).

    Unlike ObjectCache this one is NOT consuming: the profile is an immutable, shared
    record (country for market-dependent requests), not something handed over to a caller.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._value: T | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> T | None:
        async with self._lock:
            return self._value

    async def put(self, value: T) -> None:
        async with self._lock:
            self._value = value

    async def clear(self) -> None:
        async with self._lock:
            self._value = None
