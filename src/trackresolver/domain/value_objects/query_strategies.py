"""Lucene query strategies for the primary catalog search.

Hey future me - MusicBrainz search speaks Lucene. We try several queries from most to
least precise and the MatchSelector stops at the first one that returns anything. Order
matters, so never sort the output!
"""

import re

from trackresolver.config.settings import MatchingSettings

# Longer tokens first so "&&" gets escaped as a pair instead of two single "&"
_LUCENE_SPECIAL = re.compile(r'(&&|\|\||[+\-!(){}\[\]^"~*?:\\/])')


def escape_lucene(value: str) -> str:
    """Escape characters reserved by the Lucene query syntax.

    Examples:
        >>> escape_lucene("AC/DC")
        'AC\\\\/DC'
        >>> escape_lucene('Say "Hi"')
        'Say \\\\"Hi\\\\"'
    """
    return _LUCENE_SPECIAL.sub(r"\\\1", value)


def build_query_strategies(
    title: str,
    artists: list[str],
    settings: MatchingSettings | None = None,
) -> list[str]:
    """Build the ordered list of catalog queries for a track.

    Strategies, most precise first:
    1. exact title AND primary artist
    2. exact title AND each secondary artist (capped) that differs from the primary
    3. fuzzy title AND primary artist, only for titles longer than fuzzy_min_title_length
    4. title only, for titles longer than title_only_min_title_length

    Args:
        title: Cleaned track title (see clean_title())
        artists: Ordered artist list, primary first (see split_artists())
        settings: Matching settings (caps and length minimums)

    Returns:
        De-duplicated list of query strings
    """
    settings = settings or MatchingSettings()
    if not title or not artists:
        return []

    escaped_title = escape_lucene(title)
    primary = artists[0]
    escaped_primary = escape_lucene(primary)

    strategies = [f'recording:"{escaped_title}" AND artist:"{escaped_primary}"']

    secondary = [name for name in artists[1:] if name != primary]
    for name in secondary[: settings.max_secondary_artists]:
        strategies.append(f'recording:"{escaped_title}" AND artist:"{escape_lucene(name)}"')

    if len(title) > settings.fuzzy_min_title_length:
        strategies.append(f'recording:({escaped_title}~) AND artist:"{escaped_primary}"')

    if len(title) > settings.title_only_min_title_length:
        strategies.append(f'recording:"{escaped_title}"')

    # dict keeps first-seen order
    return list(dict.fromkeys(strategies))
