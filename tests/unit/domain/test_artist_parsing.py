"""Tests for title cleaning and artist-credit parsing."""

import pytest

from trackresolver.domain.value_objects import (
    UNKNOWN_ARTIST,
    clean_title,
    is_unknown_artist,
    normalize_artist_name,
    normalize_for_search,
    parse_artists,
    primary_artist,
    split_artists,
)


class TestSplitArtists:
    """Test splitting composite artist credits."""

    def test_featuring_splits_primary_and_featured(self) -> None:
        """'feat.' separates the main artist from the featured one."""
        assert split_artists("Calvin Harris feat. Rihanna") == ["Calvin Harris", "Rihanna"]

    def test_bracketed_featuring(self) -> None:
        """'(feat. X)' works and the closing bracket is dropped."""
        assert split_artists("Drake (feat. Future)") == ["Drake", "Future"]

    def test_comma_separated(self) -> None:
        assert split_artists("Artist1, Artist2") == ["Artist1", "Artist2"]

    def test_collaboration_x(self) -> None:
        assert split_artists("Marshmello x Bastille") == ["Marshmello", "Bastille"]

    def test_ampersand_splits_two_artists(self) -> None:
        assert split_artists("Dua Lipa & Elton John") == ["Dua Lipa", "Elton John"]

    @pytest.mark.parametrize(
        "band",
        ["Simon & Garfunkel", "Kool & The Gang", "Dead & Company", "Mumford & Friends"],
    )
    def test_ampersand_band_names_stay_whole(self, band: str) -> None:
        """Known '&' bands and '& the' / '& friends' shapes are one artist."""
        assert split_artists(band) == [band]

    def test_mixed_separators_keep_order(self) -> None:
        """Primary artists come first, then featured ones."""
        parsed = parse_artists("Alice, Bob feat. Carol & Dave")

        assert parsed.primary_artists == ["Alice", "Bob"]
        assert parsed.featured_artists == ["Carol", "Dave"]
        assert parsed.all_artists == ["Alice", "Bob", "Carol", "Dave"]
        assert parsed.has_featured_artists

    def test_duplicates_removed(self) -> None:
        assert split_artists("Adele, Adele") == ["Adele"]

    def test_blank_credit_is_unknown_artist(self) -> None:
        parsed = parse_artists("   ")
        assert parsed.primary_artists == [UNKNOWN_ARTIST]
        assert parsed.featured_artists == []

    def test_primary_artist(self) -> None:
        assert primary_artist("Calvin Harris feat. Rihanna") == "Calvin Harris"
        assert primary_artist("Adele") == "Adele"


class TestCleanTitle:
    """Test stripping featuring credits and version noise from titles."""

    def test_removes_bracketed_featuring_and_remaster(self) -> None:
        assert clean_title("Song (feat. Someone) [Remastered]") == "Song"

    def test_removes_trailing_featuring(self) -> None:
        assert clean_title("Song feat. Someone Else") == "Song"

    def test_removes_remaster_year(self) -> None:
        assert clean_title("Yesterday (Remastered 2009)") == "Yesterday"

    @pytest.mark.parametrize(
        "noise", ["(Radio Edit)", "[Single Version]", "(Album Version)", "(Deluxe)"]
    )
    def test_removes_version_noise(self, noise: str) -> None:
        assert clean_title(f"Halo {noise}") == "Halo"

    def test_keeps_meaningful_brackets(self) -> None:
        """Live/remix markers are part of the recording's identity."""
        assert clean_title("Song (Live)") == "Song (Live)"

    def test_is_idempotent(self) -> None:
        title = "Song  (feat. X)   [Remastered]"
        assert clean_title(clean_title(title)) == clean_title(title)


class TestUnknownArtist:
    """Test placeholder artist detection."""

    @pytest.mark.parametrize(
        "raw", [None, "", "   ", "Unknown Artist", "unknown", "<unknown>", "Various Artists"]
    )
    def test_placeholders_are_unknown(self, raw: str | None) -> None:
        assert is_unknown_artist(raw)

    def test_real_artist_is_known(self) -> None:
        assert not is_unknown_artist("Adele")


class TestNormalization:
    """Test canonical forms used for comparisons."""

    def test_normalize_for_search_maps_dollar_sign(self) -> None:
        assert normalize_for_search("Ke$ha") == "kesha"

    def test_normalize_for_search_strips_punctuation(self) -> None:
        assert normalize_for_search("  AC/DC ") == "acdc"

    def test_normalize_for_search_collapses_whitespace(self) -> None:
        assert normalize_for_search("Guns  N'   Roses") == "guns n roses"

    def test_normalize_artist_name_strips_stray_brackets(self) -> None:
        assert normalize_artist_name("  (Artist]  ") == "Artist"
