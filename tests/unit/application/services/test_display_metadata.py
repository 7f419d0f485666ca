"""Tests for player tag maps."""

from spotbridge.application.services.display_metadata import extract_display_metadata
from spotbridge.domain.entities import AlbumSimplified, ArtistSimplified, Track


def make_track(**overrides) -> Track:
    album = AlbumSimplified(
        id="alb1",
        name="Ride the Lightning",
        release_date="1984-07-27",
        artists=(ArtistSimplified(id="a1", name="Metallica"),),
    )
    fields = {
        "id": "t1",
        "name": "Fade to Black",
        "duration_ms": 415000,
        "disc_number": 1,
        "track_number": 4,
        "album": album,
        "artists": (ArtistSimplified(id="a1", name="Metallica"),),
    }
    fields.update(overrides)
    return Track(**fields)


class TestExtractDisplayMetadata:
    """Test the tag projection."""

    def test_all_tags(self):
        (tags,) = extract_display_metadata([make_track()])

        assert tags == {
            "SPTF_LENGTH": ["415000"],
            "TITLE": ["Fade to Black"],
            "TRACKNUMBER": ["4"],
            "DISCNUMBER": ["1"],
            "ARTIST": ["Metallica"],
            "ALBUM": ["Ride the Lightning"],
            "DATE": ["1984-07-27"],
            "ALBUM ARTIST": ["Metallica"],
        }

    def test_multiple_artists_are_repeated_values(self):
        track = make_track(
            artists=(
                ArtistSimplified(id="a2", name="Simon"),
                ArtistSimplified(id="a3", name="Garfunkel"),
            )
        )

        (tags,) = extract_display_metadata([track])

        assert tags["ARTIST"] == ["Simon", "Garfunkel"]

    def test_one_map_per_track_in_order(self):
        tracks = [make_track(id="t1", name="One"), make_track(id="t2", name="Two")]

        result = extract_display_metadata(tracks)

        assert [tags["TITLE"] for tags in result] == [["One"], ["Two"]]

    def test_no_artists_means_no_artist_tag(self):
        (tags,) = extract_display_metadata([make_track(artists=())])
        assert "ARTIST" not in tags

    def test_empty_input(self):
        assert extract_display_metadata([]) == []
