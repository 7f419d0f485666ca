"""Shared fixtures for spotbridge tests."""

from collections.abc import AsyncIterator
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from PIL import Image as PILImage

from spotbridge.config.settings import Settings, StorageSettings, WebApiSettings
from spotbridge.core.cancellation import CancellationToken
from spotbridge.domain.ports import IAuthorizer
from spotbridge.infrastructure.integrations.request_executor import RequestExecutor
from spotbridge.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

API = "https://api.spotify.com/v1/"


class FakeAuthorizer(IAuthorizer):
    """Authorizer that always has a token ready."""

    def __init__(self, access_token: str = "test-access-token") -> None:
        self.access_token = access_token
        self.calls = 0

    async def get_access_token(self, token: CancellationToken) -> str:
        token.raise_if_cancelled()
        self.calls += 1
        return self.access_token

    def is_authenticated(self) -> bool:
        return True


# =============================================================================
# WIRE PAYLOADS
# =============================================================================

# Hey future me - tests/ is not a package, so test modules reach these builders through
# the `wire` fixture instead of importing conftest.


def artist_payload(artist_id: str, name: str | None = None) -> dict[str, Any]:
    return {"id": artist_id, "name": name or f"Artist {artist_id}", "type": "artist"}


def album_payload(album_id: str = "alb1", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": album_id,
        "name": f"Album {album_id}",
        "album_type": "album",
        "release_date": "2020-05-01",
        "release_date_precision": "day",
        "artists": [artist_payload("albart1", "Album Artist")],
        "images": [{"url": f"https://i.scdn.co/image/{album_id}", "width": 640, "height": 640}],
        "total_tracks": 10,
    }
    payload.update(overrides)
    return payload


def simplified_track_payload(track_id: str, number: int = 1, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": track_id,
        "name": f"Track {track_id}",
        "duration_ms": 180000 + number,
        "disc_number": 1,
        "track_number": number,
        "artists": [artist_payload("art1", "Track Artist")],
        "is_local": False,
        "type": "track",
    }
    payload.update(overrides)
    return payload


def track_payload(
    track_id: str, album: dict[str, Any] | None = None, number: int = 1
) -> dict[str, Any]:
    payload = simplified_track_payload(track_id, number)
    payload["album"] = album or album_payload()
    return payload


def local_track_payload(name: str = "My Demo") -> dict[str, Any]:
    return {
        "id": None,
        "uri": f"spotify:local:Me:Demos:{name.replace(' ', '+')}:201",
        "name": name,
        "duration_ms": 201000,
        "is_local": True,
        "album": {"name": "Demos", "type": "album"},
        "artists": [{"name": "Me", "type": "artist"}],
        "type": "track",
    }


def paging_payload(items: list[Any], next_url: str | None = None) -> dict[str, Any]:
    return {"items": items, "next": next_url, "total": len(items)}


def image_bytes(image_format: str = "JPEG", color: str = "red") -> bytes:
    """Small real image generated with Pillow."""
    buffer = BytesIO()
    PILImage.new("RGB", (4, 4), color=color).save(buffer, format=image_format)
    return buffer.getvalue()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def wire() -> SimpleNamespace:
    """Builders for Web API JSON payloads."""
    return SimpleNamespace(
        artist=artist_payload,
        album=album_payload,
        simplified_track=simplified_track_payload,
        track=track_payload,
        local_track=local_track_payload,
        paging=paging_payload,
        image=image_bytes,
    )


@pytest.fixture
def token() -> CancellationToken:
    """Token that never fires."""
    return CancellationToken.none()


@pytest.fixture
def authorizer() -> FakeAuthorizer:
    return FakeAuthorizer()


@pytest.fixture
def webapi_settings() -> WebApiSettings:
    return WebApiSettings(base_url=API)


@pytest.fixture
def settings(tmp_path: Path, webapi_settings: WebApiSettings) -> Settings:
    """Settings with the image cache in a temp dir."""
    return Settings(
        webapi=webapi_settings,
        storage=StorageSettings(image_cache_path=tmp_path / "images"),
    )


@pytest.fixture
def unlimited_rate_limiter() -> RateLimiter:
    """Limiter that never makes anybody wait."""
    return RateLimiter(RateLimiterConfig(capacity=1000, window_seconds=1.0))


@pytest.fixture
async def executor(
    authorizer: FakeAuthorizer,
    webapi_settings: WebApiSettings,
    unlimited_rate_limiter: RateLimiter,
) -> AsyncIterator[RequestExecutor]:
    executor = RequestExecutor(authorizer, webapi_settings, rate_limiter=unlimited_rate_limiter)
    yield executor
    await executor.aclose()
