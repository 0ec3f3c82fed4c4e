"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime

from trackresolver.domain.dtos import (
    ArtistDetails,
    ArtworkUrls,
    CatalogCandidate,
    RecordingDetails,
    SecondaryCandidate,
)
from trackresolver.domain.entities import (
    EnrichmentRecord,
    EnrichmentStatus,
    ObservedTrack,
)
from trackresolver.domain.value_objects.audio_features import AudioFeatures


# Hey future me, the catalog client ports follow one rule: "not there" is None (or an empty
# list), everything else that goes wrong is an ExternalServiceError with `retryable` set.
# Services rely on that split to tell NOT_FOUND from FAILED. Fakes in tests must do the same!
class IPrimaryCatalogClient(ABC):
    """Port for the primary metadata catalog (MusicBrainz)."""

    @abstractmethod
    async def search_recordings(
        self, query: str, limit: int = 5
    ) -> list[CatalogCandidate]:
        """
        Run one Lucene recording query.

        Args:
            query: Query string (already escaped)
            limit: Maximum number of results

        Returns:
            Candidates in provider order (may be empty)
        """
        pass

    @abstractmethod
    async def lookup_recording(self, recording_id: str) -> RecordingDetails | None:
        """Fetch full recording details, None if the id is unknown."""
        pass

    @abstractmethod
    async def lookup_artist(self, artist_id: str) -> ArtistDetails | None:
        """Fetch artist details (tags/genres/country), None if the id is unknown."""
        pass


class IArtworkClient(ABC):
    """Port for the cover art catalog (Cover Art Archive)."""

    @abstractmethod
    async def get_release_artwork(self, release_id: str) -> ArtworkUrls | None:
        """Get cover URLs for a release, None if it has no usable artwork."""
        pass

    @abstractmethod
    async def get_release_group_artwork(
        self, release_group_id: str
    ) -> ArtworkUrls | None:
        """Get cover URLs for a release group, None if it has no usable artwork."""
        pass


class IAudioFeatureCatalogClient(ABC):
    """Port for the secondary audio-feature catalog (ReccoBeats)."""

    @abstractmethod
    async def get_audio_features(self, track_id: str) -> AudioFeatures | None:
        """Get features by catalog id (a Spotify id works too)."""
        pass

    @abstractmethod
    async def search_tracks(self, query: str) -> list[SecondaryCandidate]:
        """Free-text track search."""
        pass

    @abstractmethod
    async def analyze_audio(self, audio: bytes) -> AudioFeatures | None:
        """Submit a short audio clip for content-based analysis."""
        pass

    @abstractmethod
    async def download_preview(self, url: str, max_bytes: int) -> bytes:
        """
        Download a preview clip.

        Raises:
            ExternalServiceError: If the download fails, is empty or exceeds max_bytes
        """
        pass


# Hey future me, IEnrichmentRepository is THE persistence contract for enrichment records.
# At most ONE record per track_id - upsert() replaces by track_id, it never inserts a
# second row. The orchestrator is the only writer; the worker only reads the list_* queries.
class IEnrichmentRepository(ABC):
    """Repository interface for EnrichmentRecord entities."""

    @abstractmethod
    async def get_record(self, track_id: str) -> EnrichmentRecord | None:
        """Get the record for a track."""
        pass

    @abstractmethod
    async def find_by_external_id(
        self, recording_id: str, exclude_track_id: str | None = None
    ) -> EnrichmentRecord | None:
        """Find a record of any (other) track resolved to this recording id."""
        pass

    @abstractmethod
    async def upsert(self, record: EnrichmentRecord) -> EnrichmentRecord:
        """Insert or replace the record for record.track_id."""
        pass

    @abstractmethod
    async def mark_for_reenrichment(self, track_id: str) -> bool:
        """Reset a record to PENDING. Returns False if the track has no record."""
        pass

    @abstractmethod
    async def list_pending(
        self, limit: int, skipped_before: datetime | None = None
    ) -> list[EnrichmentRecord]:
        """PENDING records, then SKIPPED ones last attempted before skipped_before."""
        pass

    @abstractmethod
    async def list_retry_eligible(
        self, max_retry_count: int, retry_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        """FAILED records under the retry cap whose last attempt is old enough."""
        pass

    @abstractmethod
    async def list_stale(
        self, stale_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        """ENRICHED records whose cache timestamp is older than stale_before."""
        pass

    @abstractmethod
    async def count_by_status(self) -> dict[EnrichmentStatus, int]:
        """Number of records per status."""
        pass


class ITrackSource(ABC):
    """Port to the listening-tracking store that owns ObservedTrack data."""

    @abstractmethod
    async def get_tracks(self, track_ids: list[str]) -> list[ObservedTrack]:
        """Load observed tracks by id. Unknown ids are silently skipped."""
        pass


__all__ = [
    "IArtworkClient",
    "IAudioFeatureCatalogClient",
    "IEnrichmentRepository",
    "IPrimaryCatalogClient",
    "ITrackSource",
]
