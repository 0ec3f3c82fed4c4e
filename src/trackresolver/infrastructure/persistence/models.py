"""SQLAlchemy ORM models for TrackResolver."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - that's "naive" datetime and causes bugs when the scheduler and the DB disagree
# on the local timezone.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! When we store UTC datetimes, they come
# back as "naive" (no tzinfo). This helper ensures we can safely compare with timezone-aware
# datetimes by attaching UTC if missing. ALWAYS use this when comparing datetimes from DB
# with datetime.now(UTC) to avoid "can't compare offset-naive and offset-aware" TypeError!
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models.

    All models inherit from this to use the same metadata registry.
    """

    pass


# Listen up, EnrichmentRecordModel is ONE row per observed track. track_id is UNIQUE - that's
# the "at most one live record per track" rule enforced by the database, not just by the
# repository. The track itself lives in the listening-tracking store, so there's no foreign
# key here. musicbrainz_recording_id is indexed (NOT unique!) because dedup looks records up
# by it and several tracks may legitimately share a recording.
# Hey future me - tags/genres/audio_features are JSON stored as Text (SQLite compatible)!
# The repository serializes/deserializes, the entity only ever sees lists/dicts.
class EnrichmentRecordModel(Base):
    """SQLAlchemy model for EnrichmentRecord entity."""

    __tablename__ = "enrichment_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    track_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 'pending', 'enriched', 'not_found', 'failed', 'skipped' (string, not enum - SQLite)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )

    musicbrainz_recording_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    musicbrainz_artist_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    musicbrainz_release_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    musicbrainz_release_group_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True
    )

    album_title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    release_date: Mapped[str | None] = mapped_column(String(20), nullable=True)
    release_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    release_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    album_art_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    album_art_url_small: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    album_art_url_large: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    artist_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    artist_country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    artist_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    track_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    isrc: Mapped[str | None] = mapped_column(String(12), nullable=True)
    record_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)
    genres: Mapped[str | None] = mapped_column(Text, nullable=True)
    genre_source: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none", server_default="none"
    )

    spotify_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reccobeats_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    audio_features: Mapped[str | None] = mapped_column(Text, nullable=True)
    audio_features_source: Mapped[str] = mapped_column(
        String(30), nullable=False, default="none", server_default="none"
    )

    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    cache_timestamp: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        # Worker queries: "FAILED ordered by retry_count" and "ENRICHED older than X"
        Index("ix_enrichment_records_status_retry", "status", "retry_count"),
        Index("ix_enrichment_records_status_cache", "status", "cache_timestamp"),
    )
