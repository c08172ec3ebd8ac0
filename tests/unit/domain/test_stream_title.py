"""Tests for ICY metadata and StreamTitle parsing."""

import pytest

from radiosync.domain.entities import UNKNOWN_ARTIST
from radiosync.domain.value_objects.stream_title import (
    STREAM_TITLE_KEY,
    parse_icy_metadata,
    parse_stream_title,
)


class TestParseStreamTitle:
    """Test artist/title splitting."""

    @pytest.mark.parametrize(
        ("text", "artist", "title"),
        [
            ("Ray Parker Jr - Ghostbusters", "Ray Parker Jr", "Ghostbusters"),
            ("Ray Parker Jr – Ghostbusters", "Ray Parker Jr", "Ghostbusters"),
            ("Ray Parker Jr — Ghostbusters", "Ray Parker Jr", "Ghostbusters"),
            ("Ray Parker Jr: Ghostbusters", "Ray Parker Jr", "Ghostbusters"),
            ("Ghostbusters by Ray Parker Jr", "Ray Parker Jr", "Ghostbusters"),
        ],
    )
    def test_supported_separators(self, text: str, artist: str, title: str) -> None:
        """Every supported separator yields the same track."""
        track = parse_stream_title(text)
        assert track.artist == artist
        assert track.title == title
        assert track.original == text

    def test_first_separator_wins(self) -> None:
        """A hyphen beats a later "by", the rest stays in the title."""
        track = parse_stream_title("A - B by C")
        assert track.artist == "A"
        assert track.title == "B by C"

    def test_extra_hyphens_stay_in_title(self) -> None:
        """Only the first hyphen separates artist and title."""
        track = parse_stream_title("Artist - Song - Radio Edit")
        assert track.artist == "Artist"
        assert track.title == "Song - Radio Edit"

    def test_colon_before_hyphen_in_precedence(self) -> None:
        """Hyphen is tried before colon even when colon comes first in the text."""
        track = parse_stream_title("Live: Artist - Song")
        assert track.artist == "Live: Artist"
        assert track.title == "Song"

    def test_whitespace_is_trimmed(self) -> None:
        """Surrounding whitespace is removed from the parts and the original."""
        track = parse_stream_title("  Artist  -  Song  ")
        assert track.artist == "Artist"
        assert track.title == "Song"
        assert track.original == "Artist  -  Song"

    def test_fallback_without_separator(self) -> None:
        """No separator: Unknown Artist and the whole text as title."""
        track = parse_stream_title("Station Jingle")
        assert track.artist == UNKNOWN_ARTIST
        assert track.title == "Station Jingle"
        assert track.original == "Station Jingle"
        assert track.is_fallback

    def test_hyphen_without_spaces_is_not_a_separator(self) -> None:
        """"Jay-Z" must not be split."""
        track = parse_stream_title("Jay-Z")
        assert track.is_fallback

    def test_str_uses_artist_dash_title(self) -> None:
        """String form is used for logging and status output."""
        assert str(parse_stream_title("Ghostbusters by Ray Parker Jr")) == (
            "Ray Parker Jr - Ghostbusters"
        )


class TestParseIcyMetadata:
    """Test ICY metadata block parsing."""

    def test_parses_padded_block(self) -> None:
        """NUL padding is ignored."""
        block = b"StreamTitle='Ray Parker Jr - Ghostbusters';StreamUrl='';" + b"\x00" * 12
        fields = parse_icy_metadata(block)
        assert fields[STREAM_TITLE_KEY] == "Ray Parker Jr - Ghostbusters"
        assert fields["StreamUrl"] == ""

    def test_value_with_apostrophe(self) -> None:
        """Apostrophes inside the value don't end it early."""
        fields = parse_icy_metadata(
            "StreamTitle='Blue Oyster Cult - Don't Fear the Reaper';StreamUrl='x';"
        )
        assert fields[STREAM_TITLE_KEY] == "Blue Oyster Cult - Don't Fear the Reaper"
        assert fields["StreamUrl"] == "x"

    def test_missing_trailing_semicolon(self) -> None:
        """Lenient about a missing final semicolon."""
        fields = parse_icy_metadata(b"StreamTitle='Artist - Song'")
        assert fields == {STREAM_TITLE_KEY: "Artist - Song"}

    def test_empty_block(self) -> None:
        """A block of padding only has no fields."""
        assert parse_icy_metadata(b"\x00" * 16) == {}

    def test_invalid_utf8_is_replaced(self) -> None:
        """Undecodable bytes don't raise."""
        fields = parse_icy_metadata(b"StreamTitle='Caf\xe9 - Song';")
        assert fields[STREAM_TITLE_KEY].endswith(" - Song")
