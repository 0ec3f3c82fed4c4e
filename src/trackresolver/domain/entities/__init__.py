"""Domain entities."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from trackresolver.domain.exceptions import ValidationError


# Hey future me, EnrichmentStatus is the per-track state of the pipeline. PENDING rows are created the
# moment a track is first observed, the orchestrator moves them to ENRICHED / NOT_FOUND / FAILED.
# NOT_FOUND is terminal (only an explicit re-enrichment request clears it), FAILED is transient and
# gets picked up again by the worker until retry_count hits the cap. SKIPPED is written by the worker
# for tracks it couldn't even try (artist still unknown, track gone from the source). Those come
# back AFTER the pending ones once retry_after_minutes passed, so they never clog the queue.
class EnrichmentStatus(str, Enum):
    """Status of a track's enrichment record."""

    PENDING = "pending"
    ENRICHED = "enriched"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    SKIPPED = "skipped"


# Listen up, GenreSource is ORDERED by trust! Artist-level genres from a streaming service are a
# guess for the whole discography, audio-feature hints are derived from numbers, community tags
# from MusicBrainz are track-specific and voted. A merge may only replace stored genres when the
# incoming source has a STRICTLY higher priority (or nothing is stored yet). Don't compare the
# string values - use priority / should_be_replaced_by().
class GenreSource(str, Enum):
    """Provenance of a record's genre list."""

    NONE = "none"
    SPOTIFY_ARTIST = "spotify_artist"
    RECCOBEATS = "reccobeats"
    ITUNES = "itunes"
    LASTFM = "lastfm"
    MUSICBRAINZ = "musicbrainz"

    @property
    def priority(self) -> int:
        """Numeric trust level (higher wins)."""
        return _GENRE_SOURCE_PRIORITY[self]

    def should_be_replaced_by(self, other: "GenreSource") -> bool:
        """Check whether genres from `other` outrank genres from this source."""
        return other.priority > self.priority


_GENRE_SOURCE_PRIORITY: dict[GenreSource, int] = {
    GenreSource.NONE: 0,
    GenreSource.SPOTIFY_ARTIST: 1,
    GenreSource.RECCOBEATS: 2,
    GenreSource.ITUNES: 3,
    GenreSource.LASTFM: 4,
    GenreSource.MUSICBRAINZ: 5,
}


class AudioFeaturesSource(str, Enum):
    """Where a record's audio-feature blob came from."""

    NONE = "none"
    SPOTIFY = "spotify"
    RECCOBEATS = "reccobeats"
    RECCOBEATS_ANALYSIS = "reccobeats_analysis"


# Yo, ObservedTrack is what the listening tracker hands us. We NEVER mutate it - the resolver only
# reads title/artist and the optional ids. known_external_id is the id the secondary audio-feature
# catalog understands (a Spotify track id in practice), preview_url points at a ~30s audio clip.
@dataclass(frozen=True)
class ObservedTrack:
    """A (title, artist) observation to resolve against the catalogs."""

    id: str
    title: str
    artist: str
    known_external_id: str | None = None
    preview_url: str | None = None
    album: str | None = None
    duration_ms: int | None = None

    def __post_init__(self) -> None:
        """Validate track data."""
        if not self.id:
            raise ValidationError("Observed track needs a non-empty id")


# Hey future me, EnrichmentRecord is THE cached enrichment result, one per observed track. The
# orchestrator writes it, the worker only parks rows as SKIPPED. cache_timestamp drives freshness
# (is_cache_valid), retry_count + last_attempt_at drive the FAILED retry loop. tags/genres are lists
# (order matters: tags are sorted by vote count). audio_features is the raw feature dict
# in Spotify-compatible shape.
@dataclass
class EnrichmentRecord:
    """Enrichment result for a single observed track."""

    track_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: EnrichmentStatus = EnrichmentStatus.PENDING

    # Primary catalog ids
    musicbrainz_recording_id: str | None = None
    musicbrainz_artist_id: str | None = None
    musicbrainz_release_id: str | None = None
    musicbrainz_release_group_id: str | None = None

    # Album / release
    album_title: str | None = None
    release_date: str | None = None
    release_year: int | None = None
    release_type: str | None = None
    album_art_url: str | None = None
    album_art_url_small: str | None = None
    album_art_url_large: str | None = None

    # Artist
    artist_name: str | None = None
    artist_country: str | None = None
    artist_type: str | None = None

    # Track
    track_duration_ms: int | None = None
    isrc: str | None = None
    record_label: str | None = None
    tags: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    genre_source: GenreSource = GenreSource.NONE

    # Secondary catalog
    spotify_id: str | None = None
    reccobeats_id: str | None = None
    audio_features: dict[str, Any] | None = None
    audio_features_source: AudioFeaturesSource = AudioFeaturesSource.NONE

    # Bookkeeping
    last_error: str | None = None
    retry_count: int = 0
    last_attempt_at: datetime | None = None
    cache_timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_cache_valid(self, ttl: timedelta, now: datetime | None = None) -> bool:
        """Check if this record is fresh (ENRICHED and younger than the TTL)."""
        if self.status != EnrichmentStatus.ENRICHED:
            return False
        now = now or datetime.now(UTC)
        return now - _as_utc(self.cache_timestamp) < ttl

    def should_retry(self, max_retry_count: int) -> bool:
        """Check if a FAILED record is still eligible for another attempt."""
        return (
            self.status == EnrichmentStatus.FAILED
            and self.retry_count < max_retry_count
        )

    def has_audio_features(self) -> bool:
        """Check if audio features from any source are stored."""
        return self.audio_features is not None

    def mark_enriched(self, now: datetime | None = None) -> None:
        """Mark record as successfully enriched."""
        now = now or datetime.now(UTC)
        self.status = EnrichmentStatus.ENRICHED
        self.last_error = None
        self.retry_count = 0
        self.last_attempt_at = now
        self.cache_timestamp = now
        self.updated_at = now

    def mark_not_found(self, reason: str, now: datetime | None = None) -> None:
        """Mark record as absent from every catalog (terminal)."""
        now = now or datetime.now(UTC)
        self.status = EnrichmentStatus.NOT_FOUND
        self.last_error = reason
        self.last_attempt_at = now
        self.cache_timestamp = now
        self.updated_at = now

    def mark_failed(self, error: str, now: datetime | None = None) -> None:
        """Mark record as failed on a transient error and bump the retry count."""
        now = now or datetime.now(UTC)
        self.status = EnrichmentStatus.FAILED
        self.last_error = error
        self.retry_count += 1
        self.last_attempt_at = now
        self.updated_at = now

    def mark_skipped(self, reason: str, now: datetime | None = None) -> None:
        """Park a record whose track can't be enriched yet (no artist, gone upstream)."""
        now = now or datetime.now(UTC)
        self.status = EnrichmentStatus.SKIPPED
        self.last_error = reason
        self.last_attempt_at = now
        self.updated_at = now

    def mark_for_reenrichment(self) -> None:
        """Reset to PENDING so the next pass re-queries the catalogs."""
        self.status = EnrichmentStatus.PENDING
        self.retry_count = 0
        self.updated_at = datetime.now(UTC)

    def clone_for_track(
        self,
        track_id: str,
        record_id: str | None = None,
        now: datetime | None = None,
    ) -> "EnrichmentRecord":
        """Copy this record's resolved fields onto another track.

        Hey future me - used by dedup. The clone keeps the target track's own row id
        (if it had one) so the upsert replaces instead of inserting a second row.
        cache_timestamp stays the donor's: the data is exactly as old as the donor's,
        so the clone must go stale together with it.
        """
        now = now or datetime.now(UTC)
        return replace(
            self,
            id=record_id or str(uuid.uuid4()),
            track_id=track_id,
            tags=list(self.tags),
            genres=list(self.genres),
            audio_features=dict(self.audio_features)
            if self.audio_features is not None
            else None,
            last_attempt_at=now,
            created_at=now,
            updated_at=now,
        )


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands datetimes back naive, we always store UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


__all__ = [
    "AudioFeaturesSource",
    "EnrichmentRecord",
    "EnrichmentStatus",
    "GenreSource",
    "ObservedTrack",
]
