"""Pydantic models for Web API payloads.

Hey future me - these are WIRE shapes only. Nothing outside the integrations/assembler
layer should ever see them; the assembler turns them into the frozen domain entities.
extra="ignore" everywhere because the Web API keeps adding fields (available_markets,
external_ids, ...) and we don't want a new field to break decoding.
"""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationError,
)

from spotbridge.domain.entities import (
    Artist,
    ArtistSimplified,
    Image,
    LocalTrack,
    Restriction,
    TrackLink,
    User,
)
from spotbridge.domain.exceptions import MalformedResponseError


class WebApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ImageObject(WebApiModel):
    url: str
    width: int | None = None
    height: int | None = None

    def to_entity(self) -> Image:
        return Image(url=self.url, width=self.width, height=self.height)


class ArtistSimplifiedObject(WebApiModel):
    id: str
    name: str

    def to_entity(self) -> ArtistSimplified:
        return ArtistSimplified(id=self.id, name=self.name)


class FollowersObject(WebApiModel):
    total: int | None = None


class ArtistObject(ArtistSimplifiedObject):
    genres: list[str] = Field(default_factory=list)
    images: list[ImageObject] = Field(default_factory=list)
    popularity: int | None = None
    followers: FollowersObject | None = None

    def to_entity(self) -> Artist:  # type: ignore[override]
        return Artist(
            id=self.id,
            name=self.name,
            genres=tuple(self.genres),
            images=tuple(image.to_entity() for image in self.images),
            popularity=self.popularity,
            followers=self.followers.total if self.followers else None,
        )


class AlbumSimplifiedObject(WebApiModel):
    id: str
    name: str
    album_type: str = "album"
    release_date: str = ""
    release_date_precision: str = "day"
    artists: list[ArtistSimplifiedObject] = Field(default_factory=list)
    images: list[ImageObject] = Field(default_factory=list)
    total_tracks: int | None = None


class TrackLinkObject(WebApiModel):
    id: str

    def to_entity(self) -> TrackLink:
        return TrackLink(id=self.id)


class RestrictionObject(WebApiModel):
    reason: str

    def to_entity(self) -> Restriction:
        return Restriction(reason=self.reason)


class TrackSimplifiedObject(WebApiModel):
    id: str
    name: str
    duration_ms: int
    disc_number: int = 1
    track_number: int
    artists: list[ArtistSimplifiedObject] = Field(default_factory=list)
    linked_from: TrackLinkObject | None = None
    restrictions: RestrictionObject | None = None
    preview_url: str | None = None
    is_local: Literal[False] = False


class TrackObject(TrackSimplifiedObject):
    album: AlbumSimplifiedObject


class LocalAlbumObject(WebApiModel):
    name: str | None = None


class LocalArtistObject(WebApiModel):
    name: str | None = None


# Local files in playlists come back as track objects with id=None and is_local=True.
# Everything but the uri may be null.
class LocalTrackObject(WebApiModel):
    is_local: Literal[True]
    uri: str
    name: str | None = None
    duration_ms: int | None = None
    album: LocalAlbumObject | None = None
    artists: list[LocalArtistObject] = Field(default_factory=list)

    def to_entity(self) -> LocalTrack:
        return LocalTrack(
            uri=self.uri,
            name=self.name or "",
            duration_ms=self.duration_ms or 0,
            album_name=(self.album.name if self.album else None) or "",
            artist_names=tuple(a.name for a in self.artists if a.name),
        )


def _playlist_track_tag(value: Any) -> str:
    if isinstance(value, dict):
        return "local" if value.get("is_local") else "track"
    return "local" if getattr(value, "is_local", False) else "track"


class PlaylistTrackObject(WebApiModel):
    """One entry of /playlists/{id}/tracks."""

    # None for entries whose track was removed from the catalog
    track: (
        Annotated[
            Annotated[TrackObject, Tag("track")]
            | Annotated[LocalTrackObject, Tag("local")],
            Discriminator(_playlist_track_tag),
        ]
        | None
    ) = None


class PagingObjectModel(WebApiModel):
    items: list[Any] = Field(default_factory=list)
    next: str | None = None
    total: int | None = None


class UserObject(WebApiModel):
    id: str
    display_name: str | None = None
    country: str | None = None
    product: str | None = None
    images: list[ImageObject] = Field(default_factory=list)

    def to_entity(self) -> User:
        return User(
            id=self.id,
            display_name=self.display_name,
            country=self.country,
            product=self.product,
            images=tuple(image.to_entity() for image in self.images),
        )


# Batch endpoints return null for ids they don't know
class TracksEnvelope(WebApiModel):
    tracks: list[TrackObject | None]


class ArtistsEnvelope(WebApiModel):
    artists: list[ArtistObject | None]


def decode[M: BaseModel](model: type[M], payload: Any, what: str) -> M:
    """Validate a JSON payload against a wire model.

    Raises:
        MalformedResponseError: If the payload doesn't match the model
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Malformed {what} response: {e.error_count()} validation error(s)\n{e}"
        ) from e


__all__ = [
    "AlbumSimplifiedObject",
    "ArtistObject",
    "ArtistSimplifiedObject",
    "ArtistsEnvelope",
    "ImageObject",
    "LocalTrackObject",
    "PagingObjectModel",
    "PlaylistTrackObject",
    "TrackObject",
    "TrackSimplifiedObject",
    "TracksEnvelope",
    "UserObject",
    "decode",
]
