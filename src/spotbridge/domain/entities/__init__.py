"""Domain entities for catalog metadata.

Hey future me - everything here is FROZEN. Sibling tracks of one album share a single
AlbumSimplified instance (see ObjectGraphAssembler) and the caches hand the same objects
to several tasks, so nobody is allowed to mutate them after assembly. If you need a
modified copy use dataclasses.replace().

Naming follows the Web API object model: "simplified" variants are what nested
endpoints return (album.tracks, track.artists), the full variants are what the
dedicated endpoints return.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Image:
    """Cover art / artist picture reference."""

    url: str
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True, slots=True)
class ArtistSimplified:
    """Artist as embedded in track and album objects."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Artist:
    """Full artist object from /artists."""

    id: str
    name: str
    genres: tuple[str, ...] = ()
    images: tuple[Image, ...] = ()
    popularity: int | None = None
    followers: int | None = None


@dataclass(frozen=True, slots=True)
class AlbumSimplified:
    """Album as embedded in track objects (and the head of an /albums response)."""

    id: str
    name: str
    album_type: str = "album"
    release_date: str = ""
    release_date_precision: str = "day"
    artists: tuple[ArtistSimplified, ...] = ()
    images: tuple[Image, ...] = ()
    total_tracks: int | None = None


@dataclass(frozen=True, slots=True)
class TrackLink:
    """Original track a relinked track was substituted for."""

    id: str


@dataclass(frozen=True, slots=True)
class Restriction:
    """Playback restriction (market, product or explicit content)."""

    reason: str


@dataclass(frozen=True, slots=True)
class TrackSimplified:
    """Track as listed inside an album's paging object (no album reference)."""

    id: str
    name: str
    duration_ms: int
    disc_number: int
    track_number: int
    artists: tuple[ArtistSimplified, ...] = ()
    linked_from: TrackLink | None = None
    restrictions: Restriction | None = None
    preview_url: str | None = None


@dataclass(frozen=True, slots=True)
class Track:
    """Fully cross-referenced track.

    `album` is shared with every sibling track that came from the same fetch, so
    `track_a.album is track_b.album` holds for tracks of one album batch.
    """

    id: str
    name: str
    duration_ms: int
    disc_number: int
    track_number: int
    album: AlbumSimplified
    artists: tuple[ArtistSimplified, ...] = ()
    linked_from: TrackLink | None = None
    restrictions: Restriction | None = None
    preview_url: str | None = None

    @classmethod
    def from_simplified(
        cls, track: TrackSimplified, album: AlbumSimplified
    ) -> "Track":
        """Attach a (shared) album to a simplified track."""
        return cls(
            id=track.id,
            name=track.name,
            duration_ms=track.duration_ms,
            disc_number=track.disc_number,
            track_number=track.track_number,
            album=album,
            artists=track.artists,
            linked_from=track.linked_from,
            restrictions=track.restrictions,
            preview_url=track.preview_url,
        )


@dataclass(frozen=True, slots=True)
class LocalTrack:
    """Playlist entry that points at a file on the playlist owner's disk.

    These have no catalog id and can't be streamed - the host can only show them.
    """

    uri: str
    name: str
    duration_ms: int = 0
    album_name: str = ""
    artist_names: tuple[str, ...] = ()


# Exactly one variant per playlist entry. Consumers must `match` on both and end with
# `assert_never` so the type checker flags a forgotten branch.
type PlaylistTrack = Track | LocalTrack


@dataclass(frozen=True, slots=True)
class User:
    """Current user profile (/me)."""

    id: str
    display_name: str | None = None
    country: str | None = None
    product: str | None = None
    images: tuple[Image, ...] = ()


@dataclass(slots=True)
class PagingObject[T]:
    """One page of a paginated endpoint.

    `next` is set iff more pages remain; an empty/None `next` ends the walk.
    """

    items: list[T] = field(default_factory=list)
    next: str | None = None
    total: int | None = None


__all__ = [
    "AlbumSimplified",
    "Artist",
    "ArtistSimplified",
    "Image",
    "LocalTrack",
    "PagingObject",
    "PlaylistTrack",
    "Restriction",
    "Track",
    "TrackLink",
    "TrackSimplified",
    "User",
]
