"""Builds cross-referenced domain objects from Web API wire objects.

Hey future me - the whole point of this module is SHARING. The Web API repeats the same
album (with the same artists) inside every track object; we collapse those repeats so
that all tracks of one fetch point at ONE AlbumSimplified instance. Two rules:

1. Album (and album artists) are interned per batch by id -> identity-equal.
2. Track artists are NOT interned - each track owns its own artist tuple.

Everything produced here is frozen, so sharing is safe across tasks.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, assert_never

from spotbridge.application.cache.object_cache import Identified, ObjectCache
from spotbridge.domain.entities import (
    AlbumSimplified,
    ArtistSimplified,
    LocalTrack,
    PlaylistTrack,
    Track,
    TrackSimplified,
)
from spotbridge.infrastructure.integrations.webapi_schema import (
    AlbumSimplifiedObject,
    ArtistSimplifiedObject,
    LocalTrackObject,
    PlaylistTrackObject,
    TrackObject,
    TrackSimplifiedObject,
    decode,
)

logger = logging.getLogger(__name__)


class _AlbumRegistry:
    """Per-batch interning of albums and album artists."""

    def __init__(self) -> None:
        self._albums: dict[str, AlbumSimplified] = {}
        self._artists: dict[str, ArtistSimplified] = {}

    def artist(self, wire: ArtistSimplifiedObject) -> ArtistSimplified:
        artist = self._artists.get(wire.id)
        if artist is None:
            artist = self._artists[wire.id] = wire.to_entity()
        return artist

    def album(self, wire: AlbumSimplifiedObject) -> AlbumSimplified:
        album = self._albums.get(wire.id)
        if album is None:
            album = self._albums[wire.id] = AlbumSimplified(
                id=wire.id,
                name=wire.name,
                album_type=wire.album_type,
                release_date=wire.release_date,
                release_date_precision=wire.release_date_precision,
                artists=tuple(self.artist(a) for a in wire.artists),
                images=tuple(image.to_entity() for image in wire.images),
                total_tracks=wire.total_tracks,
            )
        return album


def _simplified_track(wire: TrackSimplifiedObject) -> TrackSimplified:
    return TrackSimplified(
        id=wire.id,
        name=wire.name,
        duration_ms=wire.duration_ms,
        disc_number=wire.disc_number,
        track_number=wire.track_number,
        artists=tuple(artist.to_entity() for artist in wire.artists),
        linked_from=wire.linked_from.to_entity() if wire.linked_from else None,
        restrictions=wire.restrictions.to_entity() if wire.restrictions else None,
        preview_url=wire.preview_url,
    )


class ObjectGraphAssembler:
    """Turns wire objects into Track / LocalTrack graphs."""

    def decode_album(self, payload: Any) -> AlbumSimplified:
        """Decode the album head of an /albums/{id} response."""
        wire = decode(AlbumSimplifiedObject, payload, "album")
        return _AlbumRegistry().album(wire)

    def decode_simplified_tracks(self, items: Iterable[Any]) -> list[TrackSimplified]:
        """Decode the items of an album's track page."""
        return [
            _simplified_track(decode(TrackSimplifiedObject, item, "album track"))
            for item in items
        ]

    def tracks_from_album(
        self, album: AlbumSimplified, tracks: Iterable[TrackSimplified]
    ) -> list[Track]:
        """Attach ONE shared album to every simplified track."""
        return [Track.from_simplified(track, album) for track in tracks]

    def tracks_from_wire(self, wire_tracks: Iterable[TrackObject]) -> list[Track]:
        """Assemble full track objects, sharing equal albums within the batch."""
        registry = _AlbumRegistry()
        return [
            Track.from_simplified(_simplified_track(wire), registry.album(wire.album))
            for wire in wire_tracks
        ]

    def decode_tracks(self, items: Iterable[Any]) -> list[Track]:
        """Decode and assemble raw full-track payloads (e.g. artist top tracks)."""
        return self.tracks_from_wire(decode(TrackObject, item, "track") for item in items)

    def decode_playlist_items(self, items: Iterable[Any]) -> list[PlaylistTrack]:
        """Decode one page of playlist entries into Track / LocalTrack, in order."""
        registry = _AlbumRegistry()
        result: list[PlaylistTrack] = []
        for item in items:
            entry = decode(PlaylistTrackObject, item, "playlist track")
            wire = entry.track
            if wire is None:
                logger.debug("Skipping playlist entry without track (removed from catalog)")
                continue
            if isinstance(wire, LocalTrackObject):
                result.append(wire.to_entity())
            else:
                result.append(
                    Track.from_simplified(_simplified_track(wire), registry.album(wire.album))
                )
        return result

    def partition_playlist_items(
        self, items: Iterable[PlaylistTrack]
    ) -> tuple[list[Track], list[LocalTrack]]:
        """Split playlist entries into remote and local tracks, keeping relative order."""
        tracks: list[Track] = []
        local_tracks: list[LocalTrack] = []
        for item in items:
            match item:
                case Track():
                    tracks.append(item)
                case LocalTrack():
                    local_tracks.append(item)
                case _:
                    assert_never(item)
        return tracks, local_tracks

    # Hey future me, this is the batch pre-filter for /tracks?ids= and /artists?ids=.
    # Order is first-seen so log lines and request ids are deterministic.
    @staticmethod
    async def pending_ids[T: Identified](
        ids: Iterable[str], cache: ObjectCache[T]
    ) -> list[str]:
        """Unique ids that are not cached yet."""
        pending: list[str] = []
        for object_id in dict.fromkeys(ids):
            if not await cache.is_cached(object_id):
                pending.append(object_id)
        return pending

    @staticmethod
    def chunked(ids: Sequence[str], size: int) -> Iterator[list[str]]:
        """Split ids into sub-batches of at most `size`."""
        if size < 1:
            raise ValueError("size must be at least 1")
        for start in range(0, len(ids), size):
            yield list(ids[start : start + size])
