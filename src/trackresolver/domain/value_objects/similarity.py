"""String similarity used to validate catalog candidates.

Hey future me - catalog confidence alone is NOT enough to accept a match. A search
for "Paracetamol" by Yashraj once came back with a 100-score hit for "Paracetamol"
by a completely different artist. Every candidate has to pass BOTH title_similarity
and is_same_artist before its catalog score even matters.
"""

from rapidfuzz.distance import Levenshtein

from trackresolver.domain.value_objects.artist_parsing import (
    normalize_for_search,
    primary_artist,
)

# Word-overlap ratio above which two artist strings count as the same act
ARTIST_WORD_OVERLAP_THRESHOLD = 0.5


def title_similarity(a: str, b: str) -> float:
    """Similarity of two titles in [0, 1].

    Lower-cases and trims both sides, then:
    - identical strings score 1.0
    - an empty side scores 0.0
    - if one contains the other, score len(shorter) / len(longer)
    - otherwise 1 - levenshtein(a, b) / max(len(a), len(b))

    Args:
        a: First title
        b: Second title

    Returns:
        Similarity score between 0.0 and 1.0
    """
    left = a.strip().lower()
    right = b.strip().lower()

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    shorter, longer = sorted((left, right), key=len)
    if shorter in longer:
        return len(shorter) / len(longer)

    # rapidfuzz runs the classic unit-cost insert/delete/substitute distance
    distance = Levenshtein.distance(left, right)
    return 1.0 - distance / max(len(left), len(right))


def word_jaccard(a: str, b: str) -> float:
    """Jaccard overlap of the whitespace-separated words of two strings."""
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_same_artist(a: str, b: str) -> bool:
    """Check whether two artist strings name the same act.

    Both sides are canonicalized with normalize_for_search() (case, punctuation,
    `$`→`s`, whitespace). Then any of these counts as a match:
    1. canonical forms are equal
    2. one canonical form contains the other ("Beatles" / "The Beatles")
    3. the parsed primary artists are equal ("A feat. B" / "A")
    4. word overlap (Jaccard) is at least 0.5

    A side that canonicalizes to the empty string never matches anything.
    """
    norm_a = normalize_for_search(a)
    norm_b = normalize_for_search(b)

    if not norm_a or not norm_b:
        return False

    if norm_a == norm_b:
        return True

    if norm_a in norm_b or norm_b in norm_a:
        return True

    primary_a = normalize_for_search(primary_artist(a))
    primary_b = normalize_for_search(primary_artist(b))
    if primary_a and primary_a == primary_b:
        return True

    return word_jaccard(norm_a, norm_b) >= ARTIST_WORD_OVERLAP_THRESHOLD


def any_artist_matches(candidate_artists: list[str], search_artists: list[str]) -> bool:
    """Check if at least one candidate artist matches at least one searched artist."""
    return any(
        is_same_artist(candidate, searched)
        for candidate in candidate_artists
        for searched in search_artists
    )
