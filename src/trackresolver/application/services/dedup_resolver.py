"""Reuse enrichment results across tracks that resolve to the same recording."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from trackresolver.domain.entities import EnrichmentRecord
from trackresolver.domain.ports import IEnrichmentRepository

logger = logging.getLogger(__name__)


# Hey future me - players report the same song under slightly different strings all the time
# ("Song - Remastered", "Song (feat. X)", a different artist separator...). Those are separate
# observed tracks but ONE MusicBrainz recording. Once the match says "recording R", we check
# whether some other track already has a fresh record for R and copy it instead of spending
# another recording lookup + two Cover Art calls on the 1 req/sec budget.
class DedupResolver:
    """Copy a fresh record of another track with the same recording id."""

    def __init__(self, repository: IEnrichmentRepository, ttl: timedelta) -> None:
        self._repository = repository
        self._ttl = ttl

    async def resolve(
        self,
        track_id: str,
        external_id: str,
        current: EnrichmentRecord | None = None,
        now: datetime | None = None,
    ) -> EnrichmentRecord | None:
        """
        Look for a reusable record.

        Args:
            track_id: Track being enriched
            external_id: Recording id the match resolved to
            current: The track's own record, if any (its row id is kept)
            now: Clock override for tests

        Returns:
            A clone ready to upsert for track_id, or None if nothing fresh exists
        """
        now = now or datetime.now(UTC)
        donor = await self._repository.find_by_external_id(
            external_id, exclude_track_id=track_id
        )
        if donor is None or not donor.is_cache_valid(self._ttl, now):
            return None

        logger.debug(
            f"Deduplication: reusing metadata from track {donor.track_id} for {track_id}"
        )
        clone = donor.clone_for_track(
            track_id, record_id=current.id if current else None, now=now
        )
        # Bookkeeping belongs to this track, not the donor
        clone.retry_count = 0
        clone.last_error = None
        if current is not None:
            clone.created_at = current.created_at
            _keep_secondary_fields(clone, current)
        return clone


# Yo, the donor may never have been through the secondary catalog while this track has (a
# by-id hit from an earlier run, a preview analysis). Same rule as a fresh resolve: what the
# donor lacks, the track keeps.
def _keep_secondary_fields(clone: EnrichmentRecord, current: EnrichmentRecord) -> None:
    if clone.spotify_id is None:
        clone.spotify_id = current.spotify_id
    if clone.reccobeats_id is None:
        clone.reccobeats_id = current.reccobeats_id
    if clone.audio_features is None and current.audio_features is not None:
        clone.audio_features = dict(current.audio_features)
        clone.audio_features_source = current.audio_features_source
