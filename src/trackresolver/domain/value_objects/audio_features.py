"""Audio features from the secondary catalog and what we derive from them.

Hey future me - the shape is Spotify's (deprecated) audio-features object. ReccoBeats
answers in the same shape, both for lookups by id and for content analysis of an
uploaded preview. Most values are confidences in 0.0-1.0, tempo is BPM and loudness
is dB (roughly -60 to 0).

The derivations below are rough heuristics for display and genre hints. Real genres
should come from catalog metadata, that's why hints get the low RECCOBEATS provenance.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any

KEY_NAMES = (
    "C",
    "C♯/D♭",
    "D",
    "D♯/E♭",
    "E",
    "F",
    "F♯/G♭",
    "G",
    "G♯/A♭",
    "A",
    "A♯/B♭",
    "B",
)


@dataclass(frozen=True)
class AudioFeatures:
    """Spotify-compatible audio feature set."""

    acousticness: float = 0.0
    danceability: float = 0.0
    energy: float = 0.0
    instrumentalness: float = 0.0
    liveness: float = 0.0
    speechiness: float = 0.0
    valence: float = 0.0
    tempo: float = 0.0
    loudness: float = 0.0
    key: int = -1  # pitch class, -1 = unknown
    mode: int = 0  # 1 = major, 0 = minor
    time_signature: int = 4
    duration_ms: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AudioFeatures":
        """Build from an API payload, ignoring unknown keys and nulls."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage on the enrichment record."""
        return asdict(self)

    def derive_mood(self) -> str:
        """Map (valence, energy) onto a mood label.

        Valence picks the row, energy picks the column:

            valence >= 0.7: Energetic / Happy / Peaceful
            valence >= 0.5: Upbeat / Neutral / Calm
            valence >= 0.3: Intense / Moody / Contemplative
            otherwise:      Aggressive / Dark / Melancholic

        with energy >= 0.7, >= 0.5 and below 0.5 respectively.
        """
        if self.valence >= 0.7:
            row = ("Energetic", "Happy", "Peaceful")
        elif self.valence >= 0.5:
            row = ("Upbeat", "Neutral", "Calm")
        elif self.valence >= 0.3:
            row = ("Intense", "Moody", "Contemplative")
        else:
            row = ("Aggressive", "Dark", "Melancholic")

        if self.energy >= 0.7:
            return row[0]
        if self.energy >= 0.5:
            return row[1]
        return row[2]

    def derive_energy_level(self) -> str:
        """Bucket energy into a human-readable level."""
        if self.energy >= 0.8:
            return "Very High"
        if self.energy >= 0.6:
            return "High"
        if self.energy >= 0.4:
            return "Medium"
        if self.energy >= 0.2:
            return "Low"
        return "Very Low"

    def derive_genre_hints(self) -> list[str]:
        """Guess broad genres from the feature values (order preserved, no duplicates)."""
        hints: list[str] = []

        # Lots of spoken words -> rap
        if self.speechiness > 0.33:
            hints.append("Hip-Hop")
            if self.speechiness > 0.66:
                hints.append("Spoken Word")

        if self.acousticness > 0.7:
            hints.append("Acoustic")
            if self.energy < 0.4:
                hints.append("Folk")

        if self.instrumentalness > 0.5:
            hints.append("Instrumental")
            if self.energy > 0.7:
                hints.append("Electronic")

        if self.danceability > 0.7 and self.energy > 0.7:
            hints.append("Dance")
            if self.tempo > 120:
                hints.append("EDM")

        if self.energy > 0.8 and self.acousticness < 0.3 and self.speechiness < 0.3:
            hints.append("Rock")
            if self.loudness > -5:
                hints.append("Metal")

        if self.energy < 0.3 and self.acousticness > 0.5:
            hints.append("Ballad")
            if self.instrumentalness > 0.5:
                hints.append("Ambient")

        return list(dict.fromkeys(hints))

    def key_name(self) -> str | None:
        """Musical key as text, e.g. "F♯/G♭ Minor". None if the key is unknown."""
        if not 0 <= self.key <= 11:
            return None
        mode_name = "Major" if self.mode == 1 else "Minor"
        return f"{KEY_NAMES[self.key]} {mode_name}"
