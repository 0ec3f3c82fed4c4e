"""In-memory fakes of the domain ports.

Hey future me - the fakes follow the same contract as the real clients: "not there" is
None / [], everything else raises ExternalServiceError. Every fake records its calls so
tests can assert "zero provider calls" without mocking internals.
"""

import copy
from datetime import datetime
from typing import Any

from trackresolver.domain.dtos import (
    ArtistDetails,
    ArtworkUrls,
    CatalogCandidate,
    RecordingDetails,
    SecondaryCandidate,
)
from trackresolver.domain.entities import EnrichmentRecord, EnrichmentStatus
from trackresolver.domain.ports import (
    IArtworkClient,
    IAudioFeatureCatalogClient,
    IEnrichmentRepository,
    IPrimaryCatalogClient,
    ITrackSource,
)
from trackresolver.domain.value_objects import AudioFeatures


class InMemoryEnrichmentRepository(IEnrichmentRepository):
    """Dict-backed repository. Hands out copies, like a real session would."""

    def __init__(self) -> None:
        self.records: dict[str, EnrichmentRecord] = {}
        self.upserts: list[EnrichmentRecord] = []

    async def get_record(self, track_id: str) -> EnrichmentRecord | None:
        record = self.records.get(track_id)
        return copy.deepcopy(record) if record else None

    async def find_by_external_id(
        self, recording_id: str, exclude_track_id: str | None = None
    ) -> EnrichmentRecord | None:
        matches = [
            r
            for r in self.records.values()
            if r.musicbrainz_recording_id == recording_id
            and r.status == EnrichmentStatus.ENRICHED
            and r.track_id != exclude_track_id
        ]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda r: r.cache_timestamp))

    async def upsert(self, record: EnrichmentRecord) -> EnrichmentRecord:
        existing = self.records.get(record.track_id)
        if existing is not None:
            record.id = existing.id
        self.records[record.track_id] = copy.deepcopy(record)
        self.upserts.append(copy.deepcopy(record))
        return record

    async def mark_for_reenrichment(self, track_id: str) -> bool:
        record = self.records.get(track_id)
        if record is None:
            return False
        record.mark_for_reenrichment()
        return True

    async def list_pending(
        self, limit: int, skipped_before: datetime | None = None
    ) -> list[EnrichmentRecord]:
        pending = [
            r
            for r in self.records.values()
            if r.status == EnrichmentStatus.PENDING
            or (
                skipped_before is not None
                and r.status == EnrichmentStatus.SKIPPED
                and (r.last_attempt_at is None or r.last_attempt_at < skipped_before)
            )
        ]
        pending.sort(key=lambda r: (r.status != EnrichmentStatus.PENDING, r.created_at))
        return copy.deepcopy(pending[:limit])

    async def list_retry_eligible(
        self, max_retry_count: int, retry_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        eligible = [
            r
            for r in self.records.values()
            if r.status == EnrichmentStatus.FAILED
            and r.retry_count < max_retry_count
            and (r.last_attempt_at is None or r.last_attempt_at < retry_before)
        ]
        eligible.sort(key=lambda r: (r.retry_count, r.created_at))
        return copy.deepcopy(eligible[:limit])

    async def list_stale(
        self, stale_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        stale = [
            r
            for r in self.records.values()
            if r.status == EnrichmentStatus.ENRICHED and r.cache_timestamp < stale_before
        ]
        return copy.deepcopy(stale[:limit])

    async def count_by_status(self) -> dict[EnrichmentStatus, int]:
        counts: dict[EnrichmentStatus, int] = {}
        for record in self.records.values():
            counts[record.status] = counts.get(record.status, 0) + 1
        return counts


class FakePrimaryCatalog(IPrimaryCatalogClient):
    """MusicBrainz stand-in: every query returns the same candidate list."""

    def __init__(
        self,
        candidates: list[CatalogCandidate] | None = None,
        recordings: dict[str, RecordingDetails] | None = None,
        artists: dict[str, ArtistDetails] | None = None,
        search_error: Exception | None = None,
        lookup_error: Exception | None = None,
    ) -> None:
        self.candidates = list(candidates or [])
        self.recordings = dict(recordings or {})
        self.artists = dict(artists or {})
        self.search_error = search_error
        self.lookup_error = lookup_error
        self.queries: list[str] = []
        self.recording_lookups: list[str] = []
        self.artist_lookups: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.queries) + len(self.recording_lookups) + len(self.artist_lookups)

    async def search_recordings(
        self, query: str, limit: int = 5
    ) -> list[CatalogCandidate]:
        self.queries.append(query)
        if self.search_error is not None:
            raise self.search_error
        return list(self.candidates[:limit])

    async def lookup_recording(self, recording_id: str) -> RecordingDetails | None:
        self.recording_lookups.append(recording_id)
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.recordings.get(recording_id)

    async def lookup_artist(self, artist_id: str) -> ArtistDetails | None:
        self.artist_lookups.append(artist_id)
        return self.artists.get(artist_id)


class FakeArtworkCatalog(IArtworkClient):
    """Cover Art Archive stand-in keyed by release / release-group id."""

    def __init__(
        self,
        releases: dict[str, ArtworkUrls] | None = None,
        release_groups: dict[str, ArtworkUrls] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.releases = dict(releases or {})
        self.release_groups = dict(release_groups or {})
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def get_release_artwork(self, release_id: str) -> ArtworkUrls | None:
        self.calls.append(("release", release_id))
        if self.error is not None:
            raise self.error
        return self.releases.get(release_id)

    async def get_release_group_artwork(
        self, release_group_id: str
    ) -> ArtworkUrls | None:
        self.calls.append(("release-group", release_group_id))
        if self.error is not None:
            raise self.error
        return self.release_groups.get(release_group_id)


class FakeAudioFeatureCatalog(IAudioFeatureCatalogClient):
    """ReccoBeats stand-in."""

    def __init__(
        self,
        features_by_id: dict[str, AudioFeatures] | None = None,
        search_results: list[SecondaryCandidate] | None = None,
        analysis: AudioFeatures | None = None,
        preview: bytes = b"ID3 fake mp3",
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.features_by_id = dict(features_by_id or {})
        self.search_results = list(search_results or [])
        self.analysis = analysis
        self.preview = preview
        self.errors = dict(errors or {})
        self.calls: list[tuple[str, Any]] = []

    def _maybe_raise(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    async def get_audio_features(self, track_id: str) -> AudioFeatures | None:
        self.calls.append(("features", track_id))
        self._maybe_raise("features")
        return self.features_by_id.get(track_id)

    async def search_tracks(self, query: str) -> list[SecondaryCandidate]:
        self.calls.append(("search", query))
        self._maybe_raise("search")
        return list(self.search_results)

    async def analyze_audio(self, audio: bytes) -> AudioFeatures | None:
        self.calls.append(("analyze", len(audio)))
        self._maybe_raise("analyze")
        return self.analysis

    async def download_preview(self, url: str, max_bytes: int) -> bytes:
        self.calls.append(("download", url))
        self._maybe_raise("download")
        return self.preview


class FakeTrackSource(ITrackSource):
    """Observation store stand-in."""

    def __init__(self, tracks: list[Any] | None = None) -> None:
        self.tracks = {track.id: track for track in tracks or []}

    async def get_tracks(self, track_ids: list[str]) -> list[Any]:
        return [self.tracks[i] for i in track_ids if i in self.tracks]
