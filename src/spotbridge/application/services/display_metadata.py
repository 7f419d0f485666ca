"""Player-facing tag maps for catalog tracks.

Hey future me - the host stores tags as a MULTIMAP (one tag, several values), that's
why every value is a list. ARTIST and ALBUM ARTIST get one entry per artist in API
order, everything else has exactly one value.

SPTF_LENGTH is only a hint for the playlist view, playback overrides it with the
decoded length.
"""

from collections.abc import Iterable

from spotbridge.domain.entities import Track

type TagMap = dict[str, list[str]]


def track_display_metadata(track: Track) -> TagMap:
    """Tag map for a single track."""
    tags: TagMap = {
        "SPTF_LENGTH": [str(track.duration_ms)],
        "TITLE": [track.name],
        "TRACKNUMBER": [str(track.track_number)],
        "DISCNUMBER": [str(track.disc_number)],
    }
    artists = [artist.name for artist in track.artists]
    if artists:
        tags["ARTIST"] = artists

    tags["ALBUM"] = [track.album.name]
    tags["DATE"] = [track.album.release_date]

    album_artists = [artist.name for artist in track.album.artists]
    if album_artists:
        tags["ALBUM ARTIST"] = album_artists
    return tags


def extract_display_metadata(tracks: Iterable[Track]) -> list[TagMap]:
    """Tag maps for `tracks`, one per track and in the same order."""
    return [track_display_metadata(track) for track in tracks]
