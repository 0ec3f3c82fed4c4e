"""Title cleaning and artist-credit parsing.

Hey future me - this module turns the noisy strings a media session hands us into
something a catalog search can work with. Players and streaming apps all use
different conventions for multiple artists:

- "Artist1, Artist2"                   (comma)
- "Artist1 & Artist2"                  (ampersand - but NOT "Simon & Garfunkel"!)
- "Artist1 feat. Artist2" / "ft."      (featuring)
- "Artist1 x Artist2"                  (collaboration)
- "Artist1 / Artist2", "A + B", "A vs. B", "A and B", "A with B"

The primary artist is ALWAYS the first entry of split_artists(). Search strategies,
matching and dedup all rely on that ordering, so don't sort the list.

Examples:
    >>> split_artists("Calvin Harris feat. Rihanna")
    ['Calvin Harris', 'Rihanna']
    >>> split_artists("Simon & Garfunkel")
    ['Simon & Garfunkel']
    >>> clean_title("Song (feat. Someone) [Remastered]")
    'Song'
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"

# =============================================================================
# FEATURING SEPARATORS
# Everything before the first match is the main credit, everything after is featured.
# Order matters: the first pattern that matches wins.
# =============================================================================

FEATURING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\s+feat\.?\s+",
        r"\s+ft\.?\s+",
        r"\s+featuring\s+",
        r"\s+with\s+",
        r"\(feat\.?\s*",
        r"\(ft\.?\s*",
        r"\(featuring\s*",
        r"\(with\s*",
        r"\[feat\.?\s*",
        r"\[ft\.?\s*",
    )
)

# Ampersand is NOT in here - it goes through _split_by_ampersand() so band names survive
COLLABORATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\s*,\s*"),
    re.compile(r"\s*\|\s*"),
    re.compile(r"\s+and\s+", re.IGNORECASE),
    re.compile(r"\s+x\s+", re.IGNORECASE),
    re.compile(r"\s*/\s*"),
    re.compile(r"\s+vs\.?\s+", re.IGNORECASE),
    re.compile(r"\s*\+\s*"),
)

# Hey future me - bands with "&" in the name. Both sides go through normalize_for_search()
# before comparing. Extend when a new one shows up in the logs.
KNOWN_AMPERSAND_BANDS: frozenset[str] = frozenset(
    {
        "dead & company",
        "derek & the dominos",
        "belle & sebastian",
        "iron & wine",
        "simon & garfunkel",
        "hall & oates",
        "brooks & dunn",
        "big & rich",
        "the mamas & the papas",
        "peter paul & mary",
        "crosby stills nash & young",
        "emerson lake & palmer",
        "blood sweat & tears",
        "earth wind & fire",
        "kool & the gang",
        "rob base & dj ez rock",
        "eric b & rakim",
        "tom petty & the heartbreakers",
        "bob seger & the silver bullet band",
        "bruce springsteen & the e street band",
        "hootie & the blowfish",
    }
)

AMPERSAND_BAND_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\s*&\s*the\s+", re.IGNORECASE),
    re.compile(r"\s*&\s*company\b", re.IGNORECASE),
    re.compile(r"\s*&\s*friends\b", re.IGNORECASE),
    re.compile(r"\s*&\s*associates\b", re.IGNORECASE),
)

_AMPERSAND_SPLIT = re.compile(r"\s*&\s*")
_TRAILING_BRACKETS = re.compile(r"[)\]]+$")
_LEADING_BRACKETS = re.compile(r"^[(&\[]+")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

# Title noise, applied in this order
_TITLE_BRACKETED_FEATURING = re.compile(
    r"\s*[\[(]\s*(?:feat\.?|ft\.?|featuring|with)\s+[^)\]]+[)\]]", re.IGNORECASE
)
_TITLE_TRAILING_FEATURING = re.compile(r"\s+(?:feat\.?|ft\.?)\s+.*$", re.IGNORECASE)
_TITLE_VERSION_NOISE = re.compile(
    r"\s*[\[(]\s*(?:Remaster(?:ed)?(?:\s+\d{4})?|Deluxe|Radio Edit|Single Version|Album Version)\s*[)\]]",
    re.IGNORECASE,
)

_UNKNOWN_ARTIST_NAMES = frozenset(
    {"", "unknown artist", "unknown", "<unknown>", "various artists"}
)


@dataclass(frozen=True)
class ParsedArtists:
    """Result of parsing a composite artist credit."""

    primary_artists: list[str]
    featured_artists: list[str]
    all_artists: list[str]
    original: str

    @property
    def primary_artist(self) -> str:
        """The first main artist (falls back to the raw string)."""
        return self.primary_artists[0] if self.primary_artists else self.original

    @property
    def has_featured_artists(self) -> bool:
        return bool(self.featured_artists)


def clean_title(raw: str) -> str:
    """Strip featuring credits and version noise from a track title.

    Args:
        raw: Title as observed

    Returns:
        Cleaned title with collapsed whitespace
    """
    cleaned = _TITLE_BRACKETED_FEATURING.sub("", raw)
    cleaned = _TITLE_TRAILING_FEATURING.sub("", cleaned)
    cleaned = _TITLE_VERSION_NOISE.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def parse_artists(raw: str) -> ParsedArtists:
    """Parse a composite artist credit into primary and featured artists.

    Hey future me - featuring separators are checked FIRST on the whole string,
    then each side is split on collaboration separators. "A, B feat. C & D" gives
    primary [A, B] and featured [C, D].

    Args:
        raw: Raw artist string from the player

    Returns:
        ParsedArtists with order preserved and duplicates removed
    """
    if not raw or not raw.strip():
        return ParsedArtists(
            primary_artists=[UNKNOWN_ARTIST],
            featured_artists=[],
            all_artists=[UNKNOWN_ARTIST],
            original=raw,
        )

    cleaned = raw.strip()
    main_part = cleaned
    featured_part = ""

    for pattern in FEATURING_PATTERNS:
        match = pattern.search(cleaned)
        if match is not None:
            main_part = cleaned[: match.start()].strip()
            featured_part = _TRAILING_BRACKETS.sub("", cleaned[match.end() :]).strip()
            break

    primary = _split_credit(main_part) if main_part else [cleaned]
    featured = _split_credit(featured_part) if featured_part else []

    return ParsedArtists(
        primary_artists=primary,
        featured_artists=featured,
        all_artists=_distinct(primary + featured),
        original=raw,
    )


def split_artists(raw: str) -> list[str]:
    """Split a composite credit into an ordered list of artist names.

    The first element is always the primary artist.
    """
    return parse_artists(raw).all_artists


def primary_artist(raw: str) -> str:
    """Get the primary artist of a composite credit."""
    return parse_artists(raw).primary_artist


def is_unknown_artist(raw: str | None) -> bool:
    """Check if an artist string is blank or a placeholder.

    Hey future me - media sessions often send the title first and the artist in a
    later callback. Callers MUST skip enrichment when this is True and report it as
    a skip, not a failure.
    """
    if raw is None:
        return True
    return raw.strip().lower() in _UNKNOWN_ARTIST_NAMES


def normalize_artist_name(name: str) -> str:
    """Tidy up whitespace and stray brackets around an artist name."""
    normalized = _WHITESPACE.sub(" ", name.strip())
    normalized = _TRAILING_BRACKETS.sub("", normalized)
    normalized = _LEADING_BRACKETS.sub("", normalized)
    return normalized.strip()


def normalize_for_search(value: str) -> str:
    """Canonical form for comparisons: lowercase, `$`→`s`, alphanumerics only.

    Examples:
        >>> normalize_for_search("Ke$ha")
        'kesha'
        >>> normalize_for_search("  AC/DC ")
        'acdc'
    """
    normalized = value.lower().replace("$", "s")
    normalized = _NON_ALNUM.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def _split_credit(credit: str) -> list[str]:
    parts = [credit]
    for pattern in COLLABORATION_PATTERNS:
        parts = [piece.strip() for part in parts for piece in pattern.split(part)]

    parts = [piece for part in parts for piece in _split_by_ampersand(part)]

    result = _distinct(
        name
        for name in (normalize_artist_name(part) for part in parts)
        if name and name != UNKNOWN_ARTIST
    )
    if not result:
        return [credit.strip()]

    if len(result) > 1:
        logger.debug(f"Split artist credit '{credit}' -> {result}")
    return result


def _split_by_ampersand(value: str) -> list[str]:
    if "&" not in value:
        return [value]

    normalized = normalize_for_search(value)
    for band in KNOWN_AMPERSAND_BANDS:
        band_key = normalize_for_search(band)
        if band_key in normalized or (normalized and normalized in band_key):
            return [value]

    if any(pattern.search(value) for pattern in AMPERSAND_BAND_PATTERNS):
        return [value]

    return [piece.strip() for piece in _AMPERSAND_SPLIT.split(value)]


def _distinct(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
