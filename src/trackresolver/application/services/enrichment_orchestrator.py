# Hey future me - this is THE entry point of the resolver! Everything else in application/services
# is a building block this class wires together:
#
#   enrich(track)
#     ├─ unknown artist?               -> EnrichmentNotFound, zero provider calls
#     ├─ fresh ENRICHED record?        -> CacheHit, zero provider calls
#     ├─ NOT_FOUND record, no force?   -> AlreadyEnriched (only request_reenrichment clears it)
#     ├─ 1. MusicBrainz search + MatchSelector
#     │     ├─ another track already resolved to this recording? -> copy it (DedupResolver)
#     │     └─ lookup + Cover Art + FieldMergeEngine.full_resolve -> ENRICHED
#     ├─ 2-4. ReccoBeats by id / search / preview (AudioFeatureEnrichmentService)
#     └─ nothing worked -> NOT_FOUND (catalogs lack it) or FAILED (something errored)
#
# The big rule: enrich() and supplement() NEVER raise. The worker calling us has to finish its
# batch no matter what MusicBrainz or SQLite did, so the outermost try converts anything
# unexpected into a non-retryable error result.
"""Enrichment orchestration across the primary, artwork and audio-feature catalogs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from trackresolver.application.services.audio_feature_enrichment_service import (
    AudioFeatureEnrichmentService,
)
from trackresolver.application.services.dedup_resolver import DedupResolver
from trackresolver.application.services.field_merge import (
    FieldMergeEngine,
    details_from_candidate,
)
from trackresolver.application.services.match_selector import MatchSelector
from trackresolver.config.settings import Settings
from trackresolver.domain.dtos import ArtworkUrls, RecordingDetails
from trackresolver.domain.dtos.results import (
    AlreadyEnriched,
    AlreadyHasData,
    CacheHit,
    EnrichmentError,
    EnrichmentNotFound,
    EnrichmentResult,
    EnrichmentSuccess,
    FeaturesError,
    FeaturesFound,
    MatchError,
    MatchFound,
    SupplementError,
    SupplementNotFound,
    SupplementResult,
    SupplementSkipped,
)
from trackresolver.domain.entities import (
    EnrichmentRecord,
    EnrichmentStatus,
    ObservedTrack,
)
from trackresolver.domain.exceptions import EntityNotFoundException, ExternalServiceError
from trackresolver.domain.ports import (
    IArtworkClient,
    IEnrichmentRepository,
    IPrimaryCatalogClient,
)
from trackresolver.domain.value_objects import is_unknown_artist

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST_REASON = "Artist metadata not yet available"


@dataclass(frozen=True)
class _StepFailure:
    """Why one step of the fallback chain didn't produce data."""

    step: str
    message: str
    errored: bool
    retryable: bool = False


class EnrichmentOrchestrator:
    """Resolve observed tracks into enrichment records."""

    def __init__(
        self,
        repository: IEnrichmentRepository,
        primary_client: IPrimaryCatalogClient,
        artwork_client: IArtworkClient,
        audio_feature_service: AudioFeatureEnrichmentService | None = None,
        settings: Settings | None = None,
        match_selector: MatchSelector | None = None,
        merge_engine: FieldMergeEngine | None = None,
        dedup_resolver: DedupResolver | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            repository: Enrichment record store (bound to the caller's session)
            primary_client: MusicBrainz client
            artwork_client: Cover Art Archive client
            audio_feature_service: ReccoBeats chain, None disables steps 2-4
            settings: Thresholds, TTL and limits (defaults to Settings())
            match_selector: Override for tests
            merge_engine: Override for tests
            dedup_resolver: Override for tests
        """
        self.settings = settings or Settings()
        self._repository = repository
        self._primary = primary_client
        self._artwork = artwork_client
        self._audio_features = audio_feature_service

        enrichment = self.settings.enrichment
        self.cache_ttl = timedelta(days=enrichment.cache_ttl_days)
        self._selector = match_selector or MatchSelector(
            self.settings.matching,
            search_limit=self.settings.musicbrainz.search_limit,
            strategy_delay=self.settings.musicbrainz.strategy_delay,
        )
        self._merge = merge_engine or FieldMergeEngine(
            max_tags=enrichment.max_tags, max_genres=enrichment.max_genres
        )
        self._dedup = dedup_resolver or DedupResolver(repository, self.cache_ttl)

    # =========================================================================
    # enrich()
    # =========================================================================

    async def enrich(
        self, track: ObservedTrack, force_refresh: bool = False
    ) -> EnrichmentResult:
        """
        Enrich one observed track.

        Args:
            track: Observed (title, artist) pair plus optional ids
            force_refresh: Ignore a fresh cache and a terminal NOT_FOUND

        Returns:
            EnrichmentSuccess, EnrichmentNotFound, AlreadyEnriched, CacheHit or
            EnrichmentError. Never raises.
        """
        try:
            return await self._enrich(track, force_refresh)
        except Exception as e:
            logger.exception(f"Unexpected error enriching track {track.id}")
            return EnrichmentError(str(e) or type(e).__name__, retryable=False)

    async def _enrich(
        self, track: ObservedTrack, force_refresh: bool
    ) -> EnrichmentResult:
        if is_unknown_artist(track.artist):
            logger.debug(f"Skipping track {track.id}: artist unknown")
            return EnrichmentNotFound(UNKNOWN_ARTIST_REASON)

        existing = await self._repository.get_record(track.id)
        if existing is not None and not force_refresh:
            if existing.is_cache_valid(self.cache_ttl):
                logger.debug(f"Cache hit for track {track.id}")
                return CacheHit(existing)
            if existing.status == EnrichmentStatus.NOT_FOUND:
                return AlreadyEnriched()

        record = existing or EnrichmentRecord(track_id=track.id)
        failures: list[_StepFailure] = []

        result = await self._enrich_from_primary(track, record, existing, failures)
        if result is not None:
            return result

        result = await self._enrich_from_audio_features(track, record, failures)
        if result is not None:
            return result

        return await self._finish_unresolved(record, failures)

    async def _enrich_from_primary(
        self,
        track: ObservedTrack,
        record: EnrichmentRecord,
        existing: EnrichmentRecord | None,
        failures: list[_StepFailure],
    ) -> EnrichmentSuccess | None:
        match = await self._selector.search(self._primary, track)
        if isinstance(match, MatchError):
            failures.append(
                _StepFailure("musicbrainz", match.message, True, match.retryable)
            )
            return None
        if not isinstance(match, MatchFound):
            failures.append(_StepFailure("musicbrainz", match.reason, False))
            return None

        candidate = match.candidate
        now = datetime.now(UTC)

        # Same recording already resolved for another track -> no lookup, no artwork calls
        clone = await self._dedup.resolve(track.id, candidate.id, current=existing, now=now)
        if clone is not None:
            saved = await self._repository.upsert(clone)
            logger.info(
                f"Enriched track {track.id} from existing record of recording {candidate.id}"
            )
            return EnrichmentSuccess(saved, deduplicated=True)

        try:
            details = await self._primary.lookup_recording(candidate.id)
        except ExternalServiceError as e:
            logger.warning(f"Recording lookup failed for {candidate.id}: {e.message}")
            failures.append(_StepFailure("musicbrainz", e.message, True, e.retryable))
            return None
        except Exception as e:
            logger.exception(f"Unexpected error looking up recording {candidate.id}")
            failures.append(_StepFailure("musicbrainz", str(e) or type(e).__name__, True))
            return None
        if details is None:
            # Search said it exists, lookup 404'd (merged recording). Use what search knew.
            details = details_from_candidate(candidate)

        artwork = await self._fetch_artwork(details)
        resolved = self._merge.full_resolve(record, details, artwork)
        resolved.mark_enriched(now)
        saved = await self._repository.upsert(resolved)

        logger.info(
            f"Enriched track {track.id}: '{details.title}' by {resolved.artist_name} "
            f"(recording {details.recording_id}{', relaxed match' if match.relaxed else ''})"
        )
        return EnrichmentSuccess(saved)

    async def _fetch_artwork(self, details: RecordingDetails) -> ArtworkUrls | None:
        """Release cover first, then the release group's. Artwork is never fatal."""
        release = details.primary_release
        if release is None:
            return None
        try:
            artwork = await self._artwork.get_release_artwork(release.release_id)
            if artwork is None and release.release_group_id:
                artwork = await self._artwork.get_release_group_artwork(
                    release.release_group_id
                )
        except ExternalServiceError as e:
            logger.warning(f"Cover art lookup failed for {release.release_id}: {e.message}")
            return None
        except Exception:
            logger.exception(f"Unexpected error fetching cover art for {release.release_id}")
            return None
        return artwork

    async def _enrich_from_audio_features(
        self,
        track: ObservedTrack,
        record: EnrichmentRecord,
        failures: list[_StepFailure],
    ) -> EnrichmentSuccess | None:
        if self._audio_features is None:
            return None

        known_id = track.known_external_id or record.spotify_id
        try:
            features = await self._audio_features.find_features(track, known_id=known_id)
        except Exception as e:
            logger.exception(f"Unexpected error in audio feature lookup for {track.id}")
            failures.append(_StepFailure("reccobeats", str(e) or type(e).__name__, True))
            return None
        if isinstance(features, FeaturesError):
            failures.append(
                _StepFailure("reccobeats", features.message, True, features.retryable)
            )
            return None
        if not isinstance(features, FeaturesFound):
            failures.append(_StepFailure("reccobeats", features.reason, False))
            return None

        now = datetime.now(UTC)
        changed = self._merge.merge_audio_features(record, features, now=now)
        record.mark_enriched(now)
        saved = await self._repository.upsert(record)
        logger.info(
            f"Enriched track {track.id} from {features.source.value} "
            f"({len(changed)} fields)"
        )
        return EnrichmentSuccess(saved)

    # Listen up, this decides NOT_FOUND vs FAILED once every step came back empty-handed:
    # - anything retryable errored -> FAILED (retry_count + 1), the worker tries again later
    # - otherwise some catalog said "no match" -> NOT_FOUND, terminal
    # - otherwise everything errored permanently -> FAILED with the retry budget used up, so
    #   the worker leaves it alone until someone asks for re-enrichment
    async def _finish_unresolved(
        self, record: EnrichmentRecord, failures: list[_StepFailure]
    ) -> EnrichmentResult:
        now = datetime.now(UTC)
        retryable = [f for f in failures if f.errored and f.retryable]
        not_found = [f for f in failures if not f.errored]

        if retryable:
            message = "; ".join(f"{f.step}: {f.message}" for f in retryable)
            record.mark_failed(message, now)
            await self._repository.upsert(record)
            logger.warning(
                f"Enrichment of track {record.track_id} failed "
                f"(attempt {record.retry_count}): {message}"
            )
            return EnrichmentError(message, retryable=True)

        if not_found:
            reason = not_found[0].message
            record.mark_not_found(reason, now)
            await self._repository.upsert(record)
            logger.info(f"Track {record.track_id} not found in any catalog: {reason}")
            return EnrichmentNotFound(reason)

        message = (
            "; ".join(f"{f.step}: {f.message}" for f in failures)
            or "No catalog could be queried"
        )
        record.mark_failed(message, now)
        record.retry_count = max(
            record.retry_count, self.settings.enrichment.max_retry_count
        )
        await self._repository.upsert(record)
        logger.error(f"Enrichment of track {record.track_id} failed permanently: {message}")
        return EnrichmentError(message, retryable=False)

    # =========================================================================
    # supplement()
    # =========================================================================

    # Hey future me - supplement is for records that already have SOMETHING (album art from
    # ReccoBeats, a Spotify id...) but lack what only MusicBrainz has: tags, real genres, the
    # label. It never changes the status and it never overwrites what's already there
    # (FieldMergeEngine.supplement enforces that).
    async def supplement(
        self, track: ObservedTrack, existing_record: EnrichmentRecord
    ) -> SupplementResult:
        """
        Fill gaps on an existing record from the primary catalog.

        Args:
            track: Observed track the record belongs to
            existing_record: Record to supplement (updated and stored)

        Returns:
            SupplementSuccess, AlreadyHasData, SupplementSkipped, SupplementNotFound or
            SupplementError. Never raises.
        """
        try:
            return await self._supplement(track, existing_record)
        except ExternalServiceError as e:
            logger.warning(f"Supplement failed for track {track.id}: {e.message}")
            return SupplementError(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error supplementing track {track.id}")
            return SupplementError(str(e) or type(e).__name__)

    async def _supplement(
        self, track: ObservedTrack, record: EnrichmentRecord
    ) -> SupplementResult:
        if is_unknown_artist(track.artist):
            return SupplementSkipped(UNKNOWN_ARTIST_REASON)

        gaps = self._merge.supplement_gaps(record)
        if not gaps:
            return AlreadyHasData()
        logger.debug(f"Supplementing track {track.id}, missing {gaps}")

        recording_id = record.musicbrainz_recording_id
        if recording_id is None:
            match = await self._selector.search(self._primary, track)
            if isinstance(match, MatchError):
                return SupplementError(match.message)
            if not isinstance(match, MatchFound):
                return SupplementNotFound(match.reason)
            recording_id = match.candidate.id

        details = await self._primary.lookup_recording(recording_id)
        if details is None:
            return SupplementNotFound(f"Recording {recording_id} not found")

        artist = None
        credit = details.primary_artist
        if not details.tags and not details.genres and credit and credit.artist_id:
            artist = await self._primary.lookup_artist(credit.artist_id)

        result = self._merge.supplement(record, details, artist)

        now = datetime.now(UTC)
        record.cache_timestamp = now
        record.updated_at = now
        await self._repository.upsert(record)

        logger.info(
            f"Supplemented track {track.id}: {result.tags_added} tags, "
            f"{result.genres_added} genres, fields {result.fields_added}"
        )
        return result

    # =========================================================================
    # Record lifecycle
    # =========================================================================

    async def create_pending(self, track_id: str) -> EnrichmentRecord:
        """Create a PENDING record for a newly observed track (no-op if one exists)."""
        existing = await self._repository.get_record(track_id)
        if existing is not None:
            return existing
        return await self._repository.upsert(EnrichmentRecord(track_id=track_id))

    async def request_reenrichment(self, track_id: str) -> None:
        """
        Reset a track's record to PENDING so the next pass queries the catalogs again.

        Raises:
            EntityNotFoundException: If the track has no record
        """
        if not await self._repository.mark_for_reenrichment(track_id):
            raise EntityNotFoundException("EnrichmentRecord", track_id)
        logger.info(f"Track {track_id} marked for re-enrichment")

    async def get_enrichment_stats(self) -> dict[EnrichmentStatus, int]:
        """Record count per status (zero for statuses without records)."""
        counts = await self._repository.count_by_status()
        return {status: counts.get(status, 0) for status in EnrichmentStatus}
