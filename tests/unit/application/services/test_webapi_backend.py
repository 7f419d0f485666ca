"""Tests for the WebApiBackend facade against a mocked Web API."""

import asyncio
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from pytest_httpx import HTTPXMock

from spotbridge.application.services.webapi_backend import (
    MAX_IDS_PER_REQUEST,
    WebApiBackend,
)
from spotbridge.config import Settings
from spotbridge.core.cancellation import CancellationToken
from spotbridge.domain.entities import AlbumSimplified, Track
from spotbridge.domain.exceptions import (
    ApiError,
    CacheInvariantError,
    Cancelled,
    InsufficientScopeError,
    MalformedResponseError,
)
from spotbridge.infrastructure.integrations.request_executor import RequestExecutor

API = "https://api.spotify.com/v1"


@pytest.fixture
def backend(executor: RequestExecutor, tmp_path: Path) -> WebApiBackend:
    return WebApiBackend(executor, tmp_path / "images")


def cached_track(track_id: str) -> Track:
    return Track(
        id=track_id,
        name=f"Cached {track_id}",
        duration_ms=1000,
        disc_number=1,
        track_number=1,
        album=AlbumSimplified(id="alb0", name="Cached Album"),
    )


def tracks_endpoint(wire: SimpleNamespace, missing: frozenset[str] = frozenset()) -> Any:
    """Callback answering /tracks?ids=... with one track per requested id."""

    def respond(request: httpx.Request) -> httpx.Response:
        ids = request.url.params["ids"].split(",")
        tracks = [None if i in missing else wire.track(i) for i in ids]
        return httpx.Response(200, json={"tracks": tracks})

    return respond


def requested_ids(request: httpx.Request) -> list[str]:
    return request.url.params["ids"].split(",")


class TestUser:
    """Test the profile lookup."""

    async def test_user_is_fetched_once(
        self, backend: WebApiBackend, httpx_mock: HTTPXMock, token: CancellationToken
    ) -> None:
        httpx_mock.add_response(url=f"{API}/me", json={"id": "me", "country": "DE"})

        first = await backend.get_user(token)
        second = await backend.get_user(token)

        assert first is second
        assert first.country == "DE"
        assert len(httpx_mock.get_requests()) == 1


class TestBatchTracks:
    """Test refresh_cache_for_tracks / get_tracks."""

    async def test_duplicates_and_cached_ids_are_not_requested(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        """[x, x, y] with x cached -> exactly one request, for [y]."""
        x = cached_track("x")
        await backend.track_cache.put(x)
        httpx_mock.add_callback(tracks_endpoint(wire))

        tracks = await backend.get_tracks(["x", "x", "y"], token)

        requests = httpx_mock.get_requests()
        assert len(requests) == 1
        assert requests[0].url.path == "/v1/tracks"
        assert requested_ids(requests[0]) == ["y"]
        assert tracks[0] is x
        assert tracks[1] is x
        assert tracks[2].id == "y"

    async def test_large_batches_are_chunked(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        ids = [f"t{n}" for n in range(120)]
        for _ in range(3):
            httpx_mock.add_callback(tracks_endpoint(wire))

        tracks = await backend.get_tracks(ids, token)

        sizes = [len(requested_ids(r)) for r in httpx_mock.get_requests()]
        assert sizes == [MAX_IDS_PER_REQUEST, MAX_IDS_PER_REQUEST, 20]
        assert [t.id for t in tracks] == ids

    async def test_batch_shares_albums(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_callback(tracks_endpoint(wire))

        t1, t2 = await backend.get_tracks(["t1", "t2"], token)

        assert t1.album is t2.album

    async def test_failed_sub_batch_keeps_earlier_ones(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        ids = [f"t{n}" for n in range(60)]
        httpx_mock.add_callback(tracks_endpoint(wire))
        httpx_mock.add_response(status_code=500, json={"error": {"status": 500}})

        with pytest.raises(ApiError):
            await backend.refresh_cache_for_tracks(ids, token)

        assert await backend.track_cache.is_cached("t0")
        assert await backend.track_cache.is_cached("t49")
        assert not await backend.track_cache.is_cached("t50")

    async def test_unknown_id_is_invariant_error(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        """The API answers null for unknown ids; the facade reports the broken contract."""
        httpx_mock.add_callback(tracks_endpoint(wire, missing=frozenset({"gone"})))

        with pytest.raises(CacheInvariantError, match="gone"):
            await backend.get_tracks(["t1", "gone"], token)

    async def test_missing_envelope_key(
        self, backend: WebApiBackend, httpx_mock: HTTPXMock, token: CancellationToken
    ) -> None:
        httpx_mock.add_response(json={"items": []})

        with pytest.raises(MalformedResponseError, match="tracks"):
            await backend.refresh_cache_for_tracks(["t1"], token)

    async def test_tracks_are_consumed_by_get_tracks(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_callback(tracks_endpoint(wire))

        await backend.get_tracks(["t1"], token)

        assert not await backend.track_cache.is_cached("t1")


class TestSingleTrack:
    """Test get_track with and without relinking."""

    async def test_cached_track_needs_no_request(
        self, backend: WebApiBackend, httpx_mock: HTTPXMock, token: CancellationToken
    ) -> None:
        track = cached_track("t1")
        await backend.track_cache.put(track)

        assert await backend.get_track("t1", token) is track
        assert httpx_mock.get_requests() == []

    async def test_uncached_track_is_fetched(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url=f"{API}/tracks/t1", json=wire.track("t1"))

        track = await backend.get_track("t1", token)

        assert track.id == "t1"
        assert track.album.id == "alb1"

    async def test_relink_uses_market_and_skips_cache(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        await backend.track_cache.put(cached_track("t1"))
        httpx_mock.add_response(url=f"{API}/me", json={"id": "me", "country": "SE"})
        httpx_mock.add_response(url=f"{API}/tracks/t1?market=SE", json=wire.track("t1"))

        track = await backend.get_track("t1", token, relink=True)

        assert track.name == "Track t1"
        # The cached (non-relinked) version is still there, the relinked one was not stored
        cached = await backend.track_cache.get("t1")
        assert cached is not None
        assert cached.name == "Cached t1"

    async def test_relink_without_country_has_no_market(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url=f"{API}/me", json={"id": "me"})
        httpx_mock.add_response(url=f"{API}/tracks/t1", json=wire.track("t1"))

        await backend.get_track("t1", token, relink=True)

        assert "market" not in httpx_mock.get_requests()[-1].url.params


class TestPlaylist:
    """Test get_tracks_from_playlist."""

    async def test_pages_are_walked_and_partitioned(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        next_page = f"{API}/playlists/p1/tracks?offset=100&limit=100"
        httpx_mock.add_response(
            url=f"{API}/playlists/p1/tracks?limit=100",
            json=wire.paging(
                [{"track": wire.track("t1")}, {"track": wire.local_track("Demo")}], next_page
            ),
        )
        httpx_mock.add_response(
            url=next_page,
            json=wire.paging([{"track": wire.track("t2")}, {"track": None}]),
        )

        tracks, local_tracks = await backend.get_tracks_from_playlist("p1", token)

        assert [t.id for t in tracks] == ["t1", "t2"]
        assert [t.name for t in local_tracks] == ["Demo"]
        assert await backend.track_cache.is_cached("t1")
        assert await backend.track_cache.is_cached("t2")


class TestAlbum:
    """Test get_tracks_from_album."""

    async def test_embedded_page_and_next_page(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        next_page = f"{API}/albums/alb1/tracks?offset=2&limit=2"
        album = wire.album(
            "alb1",
            tracks=wire.paging(
                [wire.simplified_track("t1", 1), wire.simplified_track("t2", 2)], next_page
            ),
        )
        httpx_mock.add_response(url=f"{API}/albums/alb1", json=album)
        httpx_mock.add_response(url=next_page, json=wire.paging([wire.simplified_track("t3", 3)]))

        tracks = await backend.get_tracks_from_album("alb1", token)

        assert [t.id for t in tracks] == ["t1", "t2", "t3"]
        assert tracks[0].album is tracks[1].album is tracks[2].album
        assert tracks[0].album.name == "Album alb1"
        assert len(httpx_mock.get_requests()) == 2
        assert await backend.track_cache.is_cached("t3")

    async def test_album_without_tracks(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url=f"{API}/albums/alb1", json=wire.album("alb1"))

        with pytest.raises(MalformedResponseError, match="missing `tracks`"):
            await backend.get_tracks_from_album("alb1", token)


class TestArtistTopTracks:
    """Test get_top_tracks_for_artist."""

    async def test_requires_country(
        self, backend: WebApiBackend, httpx_mock: HTTPXMock, token: CancellationToken
    ) -> None:
        httpx_mock.add_response(url=f"{API}/me", json={"id": "me"})

        with pytest.raises(InsufficientScopeError, match="Re-login") as exc_info:
            await backend.get_top_tracks_for_artist("art1", token)

        assert exc_info.value.scope == "user-read-private"
        assert len(httpx_mock.get_requests()) == 1

    async def test_profile_is_refetched_after_scope_error(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        """After re-login the new profile (now with a country) is picked up."""
        httpx_mock.add_response(url=f"{API}/me", json={"id": "u1"})
        httpx_mock.add_response(url=f"{API}/me", json={"id": "u1", "country": "DE"})
        httpx_mock.add_response(
            url=f"{API}/artists/ar1/top-tracks?market=DE",
            json={"tracks": [wire.track("t1")]},
        )

        with pytest.raises(InsufficientScopeError):
            await backend.get_top_tracks_for_artist("ar1", token)
        tracks = await backend.get_top_tracks_for_artist("ar1", token)

        assert [t.id for t in tracks] == ["t1"]
        me_requests = [r for r in httpx_mock.get_requests() if r.url.path == "/v1/me"]
        assert len(me_requests) == 2

    async def test_top_tracks_in_user_market(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url=f"{API}/me", json={"id": "me", "country": "DE"})
        httpx_mock.add_response(
            url=f"{API}/artists/art1/top-tracks?market=DE",
            json={"tracks": [wire.track("t1"), wire.track("t2", wire.album("alb2"))]},
        )

        tracks = await backend.get_top_tracks_for_artist("art1", token)

        assert [t.id for t in tracks] == ["t1", "t2"]
        assert await backend.track_cache.is_cached("t2")


class TestArtists:
    """Test artist lookups."""

    async def test_get_artist_fetches_then_caches(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url=f"{API}/artists/a1", json=wire.artist("a1", "Aurora"))

        artist = await backend.get_artist("a1", token)

        assert artist.name == "Aurora"
        assert await backend.artist_cache.is_cached("a1")

    async def test_get_artists_batches(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(
            json={"artists": [wire.artist("a1"), wire.artist("a2")]},
        )

        artists = await backend.get_artists(["a1", "a2", "a1"], token)

        assert [a.id for a in artists] == ["a1", "a2", "a1"]
        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.path == "/v1/artists"
        assert requested_ids(request) == ["a1", "a2"]


class TestImages:
    """Test image lookups through the on-disk caches."""

    async def test_album_and_artist_images(
        self,
        backend: WebApiBackend,
        httpx_mock: HTTPXMock,
        token: CancellationToken,
        wire: SimpleNamespace,
    ) -> None:
        httpx_mock.add_response(url="https://i.scdn.co/image/cover", content=wire.image("JPEG"))
        httpx_mock.add_response(url="https://i.scdn.co/image/face", content=wire.image("PNG"))

        cover = await backend.get_album_image("alb1", "https://i.scdn.co/image/cover", token)
        face = await backend.get_artist_image("art1", "https://i.scdn.co/image/face", token)

        assert cover.parent.name == "albums"
        assert cover.suffix == ".jpg"
        assert face.parent.name == "artists"
        assert face.suffix == ".png"


class TestLifecycle:
    """Test construction and shutdown."""

    async def test_from_settings(self, settings: Settings, authorizer: Any) -> None:
        backend = WebApiBackend.from_settings(settings, authorizer)

        assert backend.album_image_cache.directory == settings.storage.image_cache_path / "albums"
        assert backend.executor.rate_limiter.config.capacity == 2
        await backend.finalize()

    async def test_finalize_cancels_everything(
        self, settings: Settings, authorizer: Any, httpx_mock: HTTPXMock
    ) -> None:
        async with WebApiBackend.from_settings(settings, authorizer) as backend:
            pass

        assert backend.shutdown_token.is_cancelled
        with pytest.raises(Cancelled):
            await backend.get_user(CancellationToken.none())
        assert httpx_mock.get_requests() == []

    async def test_finalize_interrupts_backoff_in_progress(
        self, settings: Settings, authorizer: Any, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(status_code=429, headers={"Retry-After": "30"})
        backend = WebApiBackend.from_settings(settings, authorizer)
        pending = asyncio.create_task(backend.get_user(CancellationToken.none()))

        async with asyncio.timeout(5):
            while not httpx_mock.get_requests():
                await asyncio.sleep(0.01)
            await backend.finalize()
            with pytest.raises(Cancelled):
                await pending

        assert len(httpx_mock.get_requests()) == 1

    def test_extract_display_metadata(self) -> None:
        (tags,) = WebApiBackend.extract_display_metadata([cached_track("t1")])
        assert tags["TITLE"] == ["Cached t1"]
