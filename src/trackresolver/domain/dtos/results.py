"""Tagged result variants returned across the service boundaries.

Hey future me - every outcome of the pipeline is one of these small frozen dataclasses,
never an exception and never a half-filled "result" object with a status string. Callers
dispatch with isinstance() or `match result:`. Each variant carries only the payload
that makes sense for it (a NotFound has a reason, an Error has retryable, a Success has
the record), so you can't accidentally read a record off a failure.
"""

from dataclasses import dataclass, field

from trackresolver.domain.dtos import CatalogCandidate
from trackresolver.domain.entities import AudioFeaturesSource, EnrichmentRecord
from trackresolver.domain.value_objects.audio_features import AudioFeatures

# =============================================================================
# enrich()
# =============================================================================


@dataclass(frozen=True)
class EnrichmentSuccess:
    record: EnrichmentRecord
    # True when the fields were cloned from another track with the same recording id
    deduplicated: bool = False


@dataclass(frozen=True)
class EnrichmentNotFound:
    reason: str


@dataclass(frozen=True)
class AlreadyEnriched:
    """Track was already resolved as NOT_FOUND, only an explicit request re-checks it."""


@dataclass(frozen=True)
class CacheHit:
    record: EnrichmentRecord


@dataclass(frozen=True)
class EnrichmentError:
    message: str
    retryable: bool = True


EnrichmentResult = (
    EnrichmentSuccess | EnrichmentNotFound | AlreadyEnriched | CacheHit | EnrichmentError
)

# =============================================================================
# supplement()
# =============================================================================


@dataclass(frozen=True)
class SupplementSuccess:
    fields_added: list[str] = field(default_factory=list)
    tags_added: int = 0
    genres_added: int = 0
    record_label: str | None = None


@dataclass(frozen=True)
class AlreadyHasData:
    """Nothing left to fill: every gap-filled field is set and genres are already trusted."""


@dataclass(frozen=True)
class SupplementSkipped:
    reason: str


@dataclass(frozen=True)
class SupplementNotFound:
    reason: str


@dataclass(frozen=True)
class SupplementError:
    message: str


SupplementResult = (
    SupplementSuccess
    | AlreadyHasData
    | SupplementSkipped
    | SupplementNotFound
    | SupplementError
)

# =============================================================================
# MatchSelector
# =============================================================================


@dataclass(frozen=True)
class MatchFound:
    candidate: CatalogCandidate
    title_similarity: float
    relaxed: bool = False


@dataclass(frozen=True)
class MatchNotFound:
    reason: str


@dataclass(frozen=True)
class MatchError:
    message: str
    retryable: bool = True


MatchResult = MatchFound | MatchNotFound | MatchError

# =============================================================================
# Secondary audio-feature catalog
# =============================================================================


@dataclass(frozen=True)
class FeaturesFound:
    features: AudioFeatures
    source: AudioFeaturesSource
    reccobeats_id: str | None = None
    spotify_id: str | None = None
    album_title: str | None = None
    album_art_url: str | None = None
    album_art_url_large: str | None = None
    release_date: str | None = None


@dataclass(frozen=True)
class FeaturesNotFound:
    reason: str


@dataclass(frozen=True)
class FeaturesError:
    message: str
    retryable: bool = False


FeaturesResult = FeaturesFound | FeaturesNotFound | FeaturesError


__all__ = [
    "AlreadyEnriched",
    "AlreadyHasData",
    "CacheHit",
    "EnrichmentError",
    "EnrichmentNotFound",
    "EnrichmentResult",
    "EnrichmentSuccess",
    "FeaturesError",
    "FeaturesFound",
    "FeaturesNotFound",
    "FeaturesResult",
    "MatchError",
    "MatchFound",
    "MatchNotFound",
    "MatchResult",
    "SupplementError",
    "SupplementNotFound",
    "SupplementResult",
    "SupplementSkipped",
    "SupplementSuccess",
]
