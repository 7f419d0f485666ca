"""On-disk cache for album covers and artist pictures.

Hey future me - layout per cache ("albums", "artists"):

    <image_cache_path>/<name>/<entity_id>.<ext>    the image (jpg/png/webp...)
    <image_cache_path>/<name>/<entity_id>.json     {"url": <source url>, "file": <image name>}

The sidecar is what makes the fast path safe: an album can change its cover (different
CDN url), and we must NOT keep serving the old bytes. Sidecar url == requested url and
file exists -> hit, anything else -> download and overwrite.

Every file write goes to a temp file in the same directory and is published with
os.replace(), so a failed/cancelled download never leaves a half-written image behind.
"""

import asyncio
import contextlib
import json
import logging
import os
import re
import tempfile
from collections import Counter
from io import BytesIO
from pathlib import Path

from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from spotbridge.core.cancellation import CancellationToken
from spotbridge.domain.exceptions import InvalidReferenceError, MalformedResponseError
from spotbridge.infrastructure.integrations.request_executor import RequestExecutor

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"[A-Za-z0-9_-]+")
_EXTENSIONS = {"jpeg": "jpg"}


def _detect_extension(data: bytes) -> str:
    """Verify bytes are an image and return a file extension for its format.

    Raises:
        MalformedResponseError: Not an image Pillow can identify
    """
    try:
        with PILImage.open(BytesIO(data)) as img:
            img.verify()
            image_format = (img.format or "").lower()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise MalformedResponseError(f"Downloaded data is not an image: {e}") from e
    if not image_format:
        raise MalformedResponseError("Downloaded data is not an image: unknown format")
    return _EXTENSIONS.get(image_format, image_format)


def _write_atomic(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class ImageCache:
    """Downloads images once and serves them from local storage afterwards."""

    def __init__(self, root: Path, name: str, executor: RequestExecutor) -> None:
        self.name = name
        self.directory = Path(root) / name
        self.executor = executor
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    def _meta_path(self, entity_id: str) -> Path:
        return self.directory / f"{entity_id}.json"

    def _lookup(self, entity_id: str, url: str) -> Path | None:
        """Return the cached file if it was downloaded from `url`."""
        try:
            meta = json.loads(self._meta_path(entity_id).read_text(encoding="utf-8"))
        except (FileNotFoundError, ValueError):
            return None
        if not isinstance(meta, dict) or meta.get("url") != url:
            return None
        path = self.directory / str(meta.get("file", ""))
        return path if path.is_file() else None

    def _publish(self, entity_id: str, url: str, data: bytes, extension: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / f"{entity_id}.{extension}"
        _write_atomic(target, data)

        # Cover changed format (jpg -> png): drop the old file
        for stale in self.directory.glob(f"{entity_id}.*"):
            if stale != target and stale.suffix not in (".json", ".part"):
                with contextlib.suppress(FileNotFoundError):
                    stale.unlink()

        meta = {"url": url, "file": target.name}
        _write_atomic(self._meta_path(entity_id), json.dumps(meta).encode("utf-8"))
        return target

    async def get_image(
        self, entity_id: str, url: str, token: CancellationToken
    ) -> Path:
        """Local path of the image for `entity_id`, downloading it from `url` if needed.

        Raises:
            InvalidReferenceError: entity_id is not a plain catalog id
            MalformedResponseError: The download is not an image
            ApiError: CDN returned non-200
            Cancelled: If cancellation fires
        """
        if not _SAFE_ID.fullmatch(entity_id):
            raise InvalidReferenceError(
                f"Invalid Spotify object id: {entity_id}", entity_id
            )

        # One download per entity at a time; concurrent callers wait and then hit the fast path.
        # The lock entry lives only while somebody holds or waits for it.
        lock = self._locks.setdefault(entity_id, asyncio.Lock())
        self._lock_users[entity_id] += 1
        try:
            await token.run(lock.acquire())
            try:
                return await self._fetch(entity_id, url, token)
            finally:
                lock.release()
        finally:
            self._lock_users[entity_id] -= 1
            if not self._lock_users[entity_id]:
                del self._lock_users[entity_id]
                del self._locks[entity_id]

    async def _fetch(self, entity_id: str, url: str, token: CancellationToken) -> Path:
        cached = await asyncio.to_thread(self._lookup, entity_id, url)
        if cached is not None:
            return cached

        logger.debug("ImageCache[%s]: downloading %s from %s", self.name, entity_id, url)
        data = await self.executor.download(url, token)
        extension = await asyncio.to_thread(_detect_extension, data)
        token.raise_if_cancelled()
        path = await asyncio.to_thread(self._publish, entity_id, url, data, extension)
        logger.debug("ImageCache[%s]: saved %s (%d bytes)", self.name, path.name, len(data))
        return path
