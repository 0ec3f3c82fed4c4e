"""Tests for title similarity and artist matching."""

import pytest

from trackresolver.domain.value_objects import (
    any_artist_matches,
    is_same_artist,
    title_similarity,
    word_jaccard,
)


class TestTitleSimilarity:
    """Test title_similarity()."""

    @pytest.mark.parametrize("title", ["", "X", "Paracetamol", "Bohemian Rhapsody", "ÄÖÜ"])
    def test_identical_strings_score_one(self, title: str) -> None:
        assert title_similarity(title, title) == 1.0

    def test_case_and_surrounding_whitespace_ignored(self) -> None:
        assert title_similarity("Hello", " hello ") == 1.0

    @pytest.mark.parametrize(("a", "b"), [("abc", "xyz"), ("aaaa", "bb"), ("Hello", "QTZ")])
    def test_disjoint_characters_score_low(self, a: str, b: str) -> None:
        assert title_similarity(a, b) < 0.5

    def test_empty_side_scores_zero(self) -> None:
        assert title_similarity("", "abc") == 0.0

    def test_containment_is_length_ratio(self) -> None:
        """'Paracetamol' inside 'Paracetamol (Remix)' scores 11/19."""
        score = title_similarity("Paracetamol", "Paracetamol (Remix)")
        assert score == pytest.approx(11 / 19)

    def test_edit_distance_fallback(self) -> None:
        """kitten -> sitting is 3 edits over 7 characters."""
        assert title_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_symmetric(self) -> None:
        assert title_similarity("Halo", "Hello") == title_similarity("Hello", "Halo")


class TestWordJaccard:
    """Test word-level overlap."""

    def test_partial_overlap(self) -> None:
        assert word_jaccard("a b c", "b c d") == 0.5

    def test_empty_strings(self) -> None:
        assert word_jaccard("", "") == 0.0


class TestIsSameArtist:
    """Test is_same_artist()."""

    def test_containment(self) -> None:
        assert is_same_artist("The Beatles", "Beatles")

    def test_normalization(self) -> None:
        assert is_same_artist("Ke$ha", "KESHA")

    def test_featuring_credit_matches_primary(self) -> None:
        assert is_same_artist("Calvin Harris feat. Rihanna", "Calvin Harris")

    def test_word_overlap(self) -> None:
        """Half of the words in common is enough."""
        assert is_same_artist("Florence Machine", "Florence Welch Machine")

    def test_different_artists(self) -> None:
        """The Paracetamol case: same title, different artist."""
        assert not is_same_artist("Yashraj", "Dr. Bohna")

    def test_empty_after_normalization_never_matches(self) -> None:
        assert not is_same_artist("!!!", "!!!")
        assert not is_same_artist("", "Adele")

    def test_any_artist_matches(self) -> None:
        assert any_artist_matches(["Adele"], ["Someone", "adele"])
        assert not any_artist_matches(["Adele"], ["Beyoncé"])
        assert not any_artist_matches([], ["Adele"])
