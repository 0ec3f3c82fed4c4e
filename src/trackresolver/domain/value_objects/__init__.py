"""Domain value objects: pure string, matching and derivation logic."""

from trackresolver.domain.value_objects.artist_parsing import (
    UNKNOWN_ARTIST,
    ParsedArtists,
    clean_title,
    is_unknown_artist,
    normalize_artist_name,
    normalize_for_search,
    parse_artists,
    primary_artist,
    split_artists,
)
from trackresolver.domain.value_objects.audio_features import AudioFeatures
from trackresolver.domain.value_objects.mood_analysis import (
    EnergyLevel,
    MoodAnalysis,
    MoodCategory,
    TagBasedMoodAnalyzer,
)
from trackresolver.domain.value_objects.query_strategies import (
    build_query_strategies,
    escape_lucene,
)
from trackresolver.domain.value_objects.similarity import (
    any_artist_matches,
    is_same_artist,
    title_similarity,
    word_jaccard,
)

__all__ = [
    "UNKNOWN_ARTIST",
    "AudioFeatures",
    "EnergyLevel",
    "MoodAnalysis",
    "MoodCategory",
    "ParsedArtists",
    "TagBasedMoodAnalyzer",
    "any_artist_matches",
    "build_query_strategies",
    "clean_title",
    "escape_lucene",
    "is_same_artist",
    "is_unknown_artist",
    "normalize_artist_name",
    "normalize_for_search",
    "parse_artists",
    "primary_artist",
    "split_artists",
    "title_similarity",
    "word_jaccard",
]
