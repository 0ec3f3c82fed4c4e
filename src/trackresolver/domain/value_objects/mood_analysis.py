"""Mood and energy estimation from community tags.

Hey future me - most tracks never get audio features (the secondary catalog doesn't know
them and there's no preview). MusicBrainz tags and genres are the fallback proxy: "sad",
"uplifting", "metal" etc. tell us a lot. Matching is substring in BOTH directions, so
"death metal" hits "metal" and "indie" hits "indie rock".
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from trackresolver.domain.entities import EnrichmentRecord


class MoodCategory(str, Enum):
    """Mood categories derived from tags."""

    HAPPY = "Happy"
    ENERGETIC = "Energetic"
    CALM = "Calm"
    MELANCHOLIC = "Melancholic"
    AGGRESSIVE = "Aggressive"
    ROMANTIC = "Romantic"
    UNKNOWN = "Unknown"


class EnergyLevel(str, Enum):
    """Energy level derived from genres/tags."""

    VERY_HIGH = "Very High"
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"
    VERY_LOW = "Very Low"
    UNKNOWN = "Unknown"

    @property
    def value_score(self) -> float:
        """Approximate 0-1 energy for charts."""
        return _ENERGY_SCORES[self]


_ENERGY_SCORES: dict[EnergyLevel, float] = {
    EnergyLevel.VERY_HIGH: 0.9,
    EnergyLevel.HIGH: 0.7,
    EnergyLevel.MODERATE: 0.5,
    EnergyLevel.LOW: 0.3,
    EnergyLevel.VERY_LOW: 0.1,
    EnergyLevel.UNKNOWN: 0.5,
}

# Dict order is the tie-break order when two moods score the same
MOOD_TAGS: dict[MoodCategory, frozenset[str]] = {
    MoodCategory.HAPPY: frozenset(
        {
            "happy", "uplifting", "upbeat", "cheerful", "joyful", "fun",
            "feel good", "party", "celebration", "summer", "sunny", "positive",
        }
    ),
    MoodCategory.MELANCHOLIC: frozenset(
        {
            "sad", "melancholic", "melancholy", "depressing", "dark", "gloomy",
            "somber", "mournful", "sorrowful", "heartbreak", "lonely", "grief",
        }
    ),
    MoodCategory.CALM: frozenset(
        {
            "calm", "peaceful", "relaxing", "ambient", "chill", "mellow",
            "soothing", "tranquil", "meditative", "downtempo", "lounge", "sleep",
        }
    ),
    MoodCategory.ENERGETIC: frozenset(
        {
            "energetic", "powerful", "intense", "driving", "fast", "uptempo",
            "dance", "edm", "electronic dance music", "house", "techno", "trance",
        }
    ),
    MoodCategory.AGGRESSIVE: frozenset(
        {
            "aggressive", "angry", "heavy", "hardcore", "metal", "thrash",
            "death metal", "black metal", "grindcore", "violent", "brutal",
        }
    ),
    MoodCategory.ROMANTIC: frozenset(
        {
            "romantic", "love", "sensual", "intimate", "passionate", "tender",
            "ballad", "slow jam", "r&b", "soul", "smooth",
        }
    ),
}

# Checked in this order, first hit wins. LOW before MODERATE on purpose: "indie folk"
# should land on LOW, not on MODERATE via "indie".
ENERGY_GENRES: tuple[tuple[EnergyLevel, frozenset[str]], ...] = (
    (
        EnergyLevel.VERY_HIGH,
        frozenset(
            {
                "metal", "punk", "hardcore", "thrash", "death metal", "black metal",
                "grindcore", "metalcore", "hard rock", "speed metal", "power metal",
                "drum and bass", "dnb", "dubstep", "hardstyle", "gabber", "industrial",
            }
        ),
    ),
    (
        EnergyLevel.HIGH,
        frozenset(
            {
                "rock", "alternative rock", "indie rock", "pop rock", "electronic",
                "edm", "house", "techno", "trance", "dance", "disco", "funk", "ska",
                "hip hop", "rap", "trap", "grime",
            }
        ),
    ),
    (
        EnergyLevel.LOW,
        frozenset(
            {
                "ambient", "chillout", "lounge", "downtempo", "trip-hop", "shoegaze",
                "dream pop", "slowcore", "acoustic", "folk", "singer-songwriter",
                "classical", "jazz", "blues", "easy listening", "new age",
            }
        ),
    ),
    (
        EnergyLevel.MODERATE,
        frozenset(
            {
                "pop", "indie", "alternative", "new wave", "synth-pop", "electropop",
                "r&b", "soul", "reggae", "latin", "world", "country",
            }
        ),
    ),
)


@dataclass(frozen=True)
class MoodAnalysis:
    """Mood estimate for one track."""

    mood: MoodCategory
    energy: EnergyLevel
    primary_genre: str | None = None
    mood_tags: list[str] = field(default_factory=list)
    confidence: float = 0.0


def _matches(tag: str, vocabulary: frozenset[str]) -> bool:
    return any(word in tag or tag in word for word in vocabulary)


class TagBasedMoodAnalyzer:
    """Derive mood/energy categories from MusicBrainz tags and genres."""

    def __init__(self, max_mood_tags: int = 3) -> None:
        self.max_mood_tags = max_mood_tags

    def analyze_mood(self, tags: list[str], genres: list[str]) -> MoodCategory:
        """Pick the mood whose vocabulary matches the most tags."""
        mood, _ = self._best_mood(_normalize(tags, genres))
        return mood

    def analyze_energy(self, tags: list[str], genres: list[str]) -> EnergyLevel:
        """Estimate energy from the first matching genre bucket."""
        all_tags = _normalize(tags, genres)
        for level, vocabulary in ENERGY_GENRES:
            if any(_matches(tag, vocabulary) for tag in all_tags):
                return level
        return EnergyLevel.UNKNOWN

    def analyze(self, tags: list[str], genres: list[str]) -> MoodAnalysis:
        """Full mood estimate for one track.

        confidence is the share of tags that voted for the winning mood (0.0 for UNKNOWN).
        """
        all_tags = _normalize(tags, genres)
        mood, votes = self._best_mood(all_tags)
        confidence = votes / len(all_tags) if all_tags and mood != MoodCategory.UNKNOWN else 0.0

        # One-directional here: the tag has to contain a mood word
        mood_tags = [
            tag
            for tag in tags
            if any(
                word in tag.lower()
                for vocabulary in MOOD_TAGS.values()
                for word in vocabulary
            )
        ][: self.max_mood_tags]

        return MoodAnalysis(
            mood=mood,
            energy=self.analyze_energy(tags, genres),
            primary_genre=genres[0] if genres else (tags[0] if tags else None),
            mood_tags=mood_tags,
            confidence=round(confidence, 3),
        )

    def mood_summary(self, records: Iterable[EnrichmentRecord]) -> dict[str, int]:
        """Count moods over many records (e.g. a listening period).

        Records without tags or genres are skipped, UNKNOWN moods are counted.
        """
        counter: Counter[str] = Counter()
        for record in records:
            if not record.tags and not record.genres:
                continue
            counter[self.analyze_mood(record.tags, record.genres).value] += 1
        return dict(counter.most_common())

    def _best_mood(self, all_tags: list[str]) -> tuple[MoodCategory, int]:
        best = MoodCategory.UNKNOWN
        best_votes = 0
        for mood, vocabulary in MOOD_TAGS.items():
            votes = sum(1 for tag in all_tags if _matches(tag, vocabulary))
            if votes > best_votes:
                best, best_votes = mood, votes
        return best, best_votes


def _normalize(tags: list[str], genres: list[str]) -> list[str]:
    return [value.lower().strip() for value in [*tags, *genres] if value.strip()]
