"""WebApiBackend - the one object the host talks to for catalog metadata.

Hey future me - this is a thin orchestration layer. All the interesting rules live
one level down:

- RequestExecutor: rate limit, bearer token, 429 retry, error mapping
- ObjectCache: single-consumption in-memory caches (tracks, artists)
- PaginationWalker: "follow next until it's gone"
- ObjectGraphAssembler: wire objects -> frozen domain graphs with shared albums
- ImageCache: covers and artist pictures on disk

What stays HERE is the per-endpoint knowledge: which path, which envelope key, what
gets cached. Errors propagate unmodified - the facade never swallows or wraps.

SECTIONS:
- === LIFECYCLE ===
- === USER ===
- === TRACKS ===
- === ARTISTS ===
- === IMAGES ===
"""

from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any, Self

from spotbridge.application.cache import ImageCache, ObjectCache, SingleObjectCache
from spotbridge.application.services.display_metadata import TagMap
from spotbridge.application.services.display_metadata import (
    extract_display_metadata as _extract_display_metadata,
)
from spotbridge.application.services.object_graph import ObjectGraphAssembler
from spotbridge.application.services.pagination import PaginationWalker
from spotbridge.config.settings import Settings
from spotbridge.core.cancellation import CancellationToken, CancellationTokenSource
from spotbridge.domain.entities import Artist, LocalTrack, Track, User
from spotbridge.domain.exceptions import (
    CacheInvariantError,
    InsufficientScopeError,
    MalformedResponseError,
)
from spotbridge.domain.ports import IAuthorizer
from spotbridge.infrastructure.integrations.request_executor import RequestExecutor
from spotbridge.infrastructure.integrations.webapi_schema import (
    ArtistObject,
    ArtistsEnvelope,
    TrackObject,
    TracksEnvelope,
    UserObject,
    decode,
)
from spotbridge.infrastructure.observability.logger_template import (
    get_module_logger,
    log_operation,
)

logger = get_module_logger(__name__)

# Upper bound of ids per /tracks?ids= and /artists?ids= call (Web API limit)
MAX_IDS_PER_REQUEST = 50
# Max page size of /playlists/{id}/tracks
PLAYLIST_PAGE_LIMIT = 100

_MISSING_COUNTRY_MESSAGE = (
    "Adding artist top tracks requires `user-read-private` permission.\n"
    "Re-login to update your permission scope."
)


class WebApiBackend:
    """Cached, rate-limited access to tracks, albums, playlists, artists and images."""

    def __init__(
        self,
        executor: RequestExecutor,
        image_cache_root: Path,
        shutdown: CancellationTokenSource | None = None,
        assembler: ObjectGraphAssembler | None = None,
    ) -> None:
        self.executor = executor
        self._shutdown = shutdown or CancellationTokenSource()
        self.assembler = assembler or ObjectGraphAssembler()
        self.walker = PaginationWalker(executor.execute)

        self.track_cache: ObjectCache[Track] = ObjectCache("tracks")
        self.artist_cache: ObjectCache[Artist] = ObjectCache("artists")
        self.user_cache: SingleObjectCache[User] = SingleObjectCache("user")
        self.album_image_cache = ImageCache(image_cache_root, "albums", executor)
        self.artist_image_cache = ImageCache(image_cache_root, "artists", executor)

    # =========================================================================
    # === LIFECYCLE ===
    # =========================================================================

    @classmethod
    def from_settings(cls, settings: Settings, authorizer: IAuthorizer) -> Self:
        """Wire up executor, rate limiter and caches from configuration."""
        shutdown = CancellationTokenSource()
        executor = RequestExecutor(
            authorizer,
            settings.webapi,
            shutdown_token=shutdown.token,
        )
        return cls(executor, settings.storage.image_cache_path, shutdown=shutdown)

    @property
    def shutdown_token(self) -> CancellationToken:
        """Backend-wide token, fired by finalize()."""
        return self._shutdown.token

    # Listen up: finalize() FIRST cancels (so every waiting limiter slot, 429 backoff and
    # in-flight request bails out with Cancelled) and only THEN closes the client.
    async def finalize(self) -> None:
        """Abort all pending operations and release the HTTP client."""
        logger.info("webapi_backend.finalize")
        self._shutdown.cancel()
        await self.executor.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.finalize()

    # =========================================================================
    # === USER ===
    # =========================================================================

    async def get_user(self, token: CancellationToken) -> User:
        """Current user profile, fetched once per backend lifetime.

        Raises:
            ApiError: Non-200 response
            Cancelled: If cancellation fires
        """
        user = await self.user_cache.get()
        if user is not None:
            return user

        payload = await self.executor.execute("me", None, token)
        user = decode(UserObject, payload, "user").to_entity()
        await self.user_cache.put(user)
        return user

    # =========================================================================
    # === TRACKS ===
    # =========================================================================

    async def refresh_cache_for_tracks(
        self, track_ids: Sequence[str], token: CancellationToken
    ) -> None:
        """Make sure every id in `track_ids` is in the track cache.

        Duplicates and already cached ids are skipped, the rest is fetched in batches
        of MAX_IDS_PER_REQUEST. Each batch is cached as soon as it arrives, so a failing
        batch leaves the earlier ones usable.

        Raises:
            ApiError: Non-200 response for a batch
            MalformedResponseError: Response without `tracks`
            Cancelled: If cancellation fires
        """
        pending = await self.assembler.pending_ids(track_ids, self.track_cache)
        for chunk in self.assembler.chunked(pending, MAX_IDS_PER_REQUEST):
            payload = await self.executor.execute("tracks", {"ids": ",".join(chunk)}, token)
            envelope = decode(TracksEnvelope, payload, "track data")
            tracks = self.assembler.tracks_from_wire(
                wire for wire in envelope.tracks if wire is not None
            )
            await self.track_cache.put_all(tracks)

    # Hey future me - relinked tracks depend on the user's market, so they bypass the
    # cache in BOTH directions: no cache read, no cache write.
    async def get_track(
        self, track_id: str, token: CancellationToken, relink: bool = False
    ) -> Track:
        """Single track, from the cache when possible.

        Args:
            track_id: Catalog id of the track
            token: Cancellation token
            relink: Ask for the version playable in the user's market

        Raises:
            ApiError: Non-200 response
            Cancelled: If cancellation fires
        """
        if not relink:
            cached = await self.track_cache.get(track_id)
            if cached is not None:
                return cached

        params: dict[str, Any] | None = None
        if relink:
            user = await self.get_user(token)
            if user.country:
                params = {"market": user.country}

        payload = await self.executor.execute(f"tracks/{track_id}", params, token)
        track = self.assembler.tracks_from_wire([decode(TrackObject, payload, "track")])[0]
        if not relink:
            await self.track_cache.put(track)
        return track

    async def get_tracks(
        self, track_ids: Sequence[str], token: CancellationToken
    ) -> list[Track]:
        """Tracks for `track_ids`, in the same order (duplicates included).

        Raises:
            CacheInvariantError: An id was still missing after the refresh
            ApiError: Non-200 response
            Cancelled: If cancellation fires
        """
        async with log_operation(logger, "webapi_backend.get_tracks", count=len(track_ids)):
            await self.refresh_cache_for_tracks(track_ids, token)

            # Each id is taken out of the cache ONCE, repeats reuse the same object
            taken: dict[str, Track] = {}
            for track_id in dict.fromkeys(track_ids):
                track = await self.track_cache.get(track_id)
                if track is None:
                    raise CacheInvariantError(self.track_cache.name, track_id)
                taken[track_id] = track
            return [taken[track_id] for track_id in track_ids]

    async def get_tracks_from_playlist(
        self, playlist_id: str, token: CancellationToken
    ) -> tuple[list[Track], list[LocalTrack]]:
        """All entries of a playlist, split into catalog tracks and local files.

        Raises:
            ApiError: Non-200 response for any page
            MalformedResponseError: A page is not a paging object
            Cancelled: If cancellation fires
        """
        async with log_operation(
            logger, "webapi_backend.get_tracks_from_playlist", playlist_id=playlist_id
        ):
            items = await self.walker.walk(
                f"playlists/{playlist_id}/tracks",
                self.assembler.decode_playlist_items,
                token,
                params={"limit": PLAYLIST_PAGE_LIMIT},
            )
            tracks, local_tracks = self.assembler.partition_playlist_items(items)
            await self.track_cache.put_all(tracks)
            return tracks, local_tracks

    async def get_tracks_from_album(
        self, album_id: str, token: CancellationToken
    ) -> list[Track]:
        """All tracks of an album; they all share one AlbumSimplified instance.

        The first page of tracks is embedded in the album response, further pages
        are fetched through the walker.

        Raises:
            ApiError: Non-200 response
            MalformedResponseError: Album response without `tracks`
            Cancelled: If cancellation fires
        """
        async with log_operation(
            logger, "webapi_backend.get_tracks_from_album", album_id=album_id
        ):
            payload = await self.executor.execute(f"albums/{album_id}", None, token)
            album = self.assembler.decode_album(payload)
            first_page = payload.get("tracks")
            if not isinstance(first_page, dict):
                raise MalformedResponseError(
                    "Malformed track data response: missing `tracks`"
                )

            simplified = await self.walker.walk(
                first_page, self.assembler.decode_simplified_tracks, token
            )
            tracks = self.assembler.tracks_from_album(album, simplified)
            await self.track_cache.put_all(tracks)
            return tracks

    async def get_top_tracks_for_artist(
        self, artist_id: str, token: CancellationToken
    ) -> list[Track]:
        """Top tracks of an artist in the user's market.

        Raises:
            InsufficientScopeError: The profile has no country (missing
                `user-read-private` scope)
            ApiError: Non-200 response
            MalformedResponseError: Response without `tracks`
            Cancelled: If cancellation fires
        """
        user = await self.get_user(token)
        if not user.country:
            # Drop the stale profile, after re-login the next call must see the new scope
            await self.user_cache.clear()
            raise InsufficientScopeError(_MISSING_COUNTRY_MESSAGE, scope="user-read-private")

        payload = await self.executor.execute(
            f"artists/{artist_id}/top-tracks", {"market": user.country}, token
        )
        envelope = decode(TracksEnvelope, payload, "track data")
        tracks = self.assembler.tracks_from_wire(
            wire for wire in envelope.tracks if wire is not None
        )
        await self.track_cache.put_all(tracks)
        return tracks

    @staticmethod
    def extract_display_metadata(tracks: Sequence[Track]) -> list[TagMap]:
        """Player tag maps for `tracks` (see display_metadata)."""
        return _extract_display_metadata(tracks)

    # =========================================================================
    # === ARTISTS ===
    # =========================================================================

    async def refresh_cache_for_artists(
        self, artist_ids: Sequence[str], token: CancellationToken
    ) -> None:
        """Batch-fetch artists that are not cached yet (same rules as tracks).

        Raises:
            ApiError: Non-200 response for a batch
            MalformedResponseError: Response without `artists`
            Cancelled: If cancellation fires
        """
        pending = await self.assembler.pending_ids(artist_ids, self.artist_cache)
        for chunk in self.assembler.chunked(pending, MAX_IDS_PER_REQUEST):
            payload = await self.executor.execute("artists", {"ids": ",".join(chunk)}, token)
            envelope = decode(ArtistsEnvelope, payload, "artist data")
            await self.artist_cache.put_all(
                wire.to_entity() for wire in envelope.artists if wire is not None
            )

    async def get_artist(self, artist_id: str, token: CancellationToken) -> Artist:
        """Single artist, from the cache when possible.

        Raises:
            ApiError: Non-200 response
            Cancelled: If cancellation fires
        """
        cached = await self.artist_cache.get(artist_id)
        if cached is not None:
            return cached

        payload = await self.executor.execute(f"artists/{artist_id}", None, token)
        artist = decode(ArtistObject, payload, "artist").to_entity()
        await self.artist_cache.put(artist)
        return artist

    async def get_artists(
        self, artist_ids: Sequence[str], token: CancellationToken
    ) -> list[Artist]:
        """Artists for `artist_ids`, in the same order.

        Raises:
            CacheInvariantError: An id was still missing after the refresh
        """
        await self.refresh_cache_for_artists(artist_ids, token)

        taken: dict[str, Artist] = {}
        for artist_id in dict.fromkeys(artist_ids):
            artist = await self.artist_cache.get(artist_id)
            if artist is None:
                raise CacheInvariantError(self.artist_cache.name, artist_id)
            taken[artist_id] = artist
        return [taken[artist_id] for artist_id in artist_ids]

    # =========================================================================
    # === IMAGES ===
    # =========================================================================

    async def get_album_image(
        self, album_id: str, url: str, token: CancellationToken
    ) -> Path:
        """Local path of an album cover."""
        return await self.album_image_cache.get_image(album_id, url, token)

    async def get_artist_image(
        self, artist_id: str, url: str, token: CancellationToken
    ) -> Path:
        """Local path of an artist picture."""
        return await self.artist_image_cache.get_image(artist_id, url, token)
