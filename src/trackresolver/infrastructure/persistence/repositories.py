"""Repository implementations for domain entities."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trackresolver.domain.entities import (
    AudioFeaturesSource,
    EnrichmentRecord,
    EnrichmentStatus,
    GenreSource,
)
from trackresolver.domain.ports import IEnrichmentRepository

from .models import EnrichmentRecordModel, ensure_utc_aware
from .retry import with_db_retry

logger = logging.getLogger(__name__)

# Columns copied 1:1 between entity and model (everything except enums, JSON and timestamps)
_PLAIN_FIELDS = (
    "musicbrainz_recording_id",
    "musicbrainz_artist_id",
    "musicbrainz_release_id",
    "musicbrainz_release_group_id",
    "album_title",
    "release_date",
    "release_year",
    "release_type",
    "album_art_url",
    "album_art_url_small",
    "album_art_url_large",
    "artist_name",
    "artist_country",
    "artist_type",
    "track_duration_ms",
    "isrc",
    "record_label",
    "spotify_id",
    "reccobeats_id",
    "last_error",
    "retry_count",
)


class EnrichmentRecordRepository(IEnrichmentRepository):
    """SQLAlchemy implementation of the enrichment record repository."""

    # Hey future me, this is the Repository pattern! Each repo gets its own AsyncSession injected
    # by whoever opened the session_scope(). The session is NOT committed here - the scope commits
    # when the unit of work (one track) is done. Repo only stages changes and flushes so that a
    # following query in the same session sees them.
    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_record(self, track_id: str) -> EnrichmentRecord | None:
        """Get the record for a track."""
        model = await self._get_model(track_id)
        return _to_entity(model) if model else None

    # Yo, dedup looks up OTHER tracks that resolved to the same recording. Only ENRICHED rows
    # count - a FAILED row may still carry a recording id from an earlier run but its fields
    # can't be trusted. Newest cache first so we clone the freshest copy.
    async def find_by_external_id(
        self, recording_id: str, exclude_track_id: str | None = None
    ) -> EnrichmentRecord | None:
        """Find an ENRICHED record of another track resolved to this recording id."""
        stmt = (
            select(EnrichmentRecordModel)
            .where(
                EnrichmentRecordModel.musicbrainz_recording_id == recording_id,
                EnrichmentRecordModel.status == EnrichmentStatus.ENRICHED.value,
            )
            .order_by(EnrichmentRecordModel.cache_timestamp.desc())
            .limit(1)
        )
        if exclude_track_id is not None:
            stmt = stmt.where(EnrichmentRecordModel.track_id != exclude_track_id)

        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    # Listen up, upsert is keyed by track_id, NOT by record id. If the track already has a row we
    # overwrite it in place and hand the row's id back on the entity. That's what keeps "one
    # record per track" true even when dedup clones a record that came with another id.
    @with_db_retry(max_attempts=3)
    async def upsert(self, record: EnrichmentRecord) -> EnrichmentRecord:
        """Insert or replace the record for record.track_id."""
        model = await self._get_model(record.track_id)
        if model is None:
            model = EnrichmentRecordModel(id=record.id, track_id=record.track_id)
            self.session.add(model)
        else:
            record.id = model.id

        _apply(model, record)
        await self.session.flush()
        return record

    @with_db_retry(max_attempts=3)
    async def mark_for_reenrichment(self, track_id: str) -> bool:
        """Reset a record to PENDING with a fresh retry budget."""
        stmt = (
            update(EnrichmentRecordModel)
            .where(EnrichmentRecordModel.track_id == track_id)
            .values(
                status=EnrichmentStatus.PENDING.value,
                retry_count=0,
                updated_at=datetime.now(UTC),
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    # Listen up, PENDING rows ALWAYS come before re-checked SKIPPED ones. A pile of tracks without
    # an artist used to sit at the front of this queue forever and nothing newer got enriched.
    async def list_pending(
        self, limit: int, skipped_before: datetime | None = None
    ) -> list[EnrichmentRecord]:
        """PENDING records oldest first, then SKIPPED ones last attempted before skipped_before."""
        is_pending = EnrichmentRecordModel.status == EnrichmentStatus.PENDING.value
        condition = is_pending
        if skipped_before is not None:
            condition = or_(
                is_pending,
                and_(
                    EnrichmentRecordModel.status == EnrichmentStatus.SKIPPED.value,
                    or_(
                        EnrichmentRecordModel.last_attempt_at.is_(None),
                        EnrichmentRecordModel.last_attempt_at < skipped_before,
                    ),
                ),
            )
        stmt = (
            select(EnrichmentRecordModel)
            .where(condition)
            .order_by(case((is_pending, 0), else_=1), EnrichmentRecordModel.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]

    # Hey future me - fewest retries first, so one stubborn track can't starve the others.
    async def list_retry_eligible(
        self, max_retry_count: int, retry_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        """FAILED records under the retry cap whose last attempt is older than retry_before."""
        stmt = (
            select(EnrichmentRecordModel)
            .where(
                EnrichmentRecordModel.status == EnrichmentStatus.FAILED.value,
                EnrichmentRecordModel.retry_count < max_retry_count,
                or_(
                    EnrichmentRecordModel.last_attempt_at.is_(None),
                    EnrichmentRecordModel.last_attempt_at < retry_before,
                ),
            )
            .order_by(
                EnrichmentRecordModel.retry_count, EnrichmentRecordModel.created_at
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]

    async def list_stale(
        self, stale_before: datetime, limit: int
    ) -> list[EnrichmentRecord]:
        """ENRICHED records whose cache expired, stalest first."""
        stmt = (
            select(EnrichmentRecordModel)
            .where(
                EnrichmentRecordModel.status == EnrichmentStatus.ENRICHED.value,
                EnrichmentRecordModel.cache_timestamp < stale_before,
            )
            .order_by(EnrichmentRecordModel.cache_timestamp)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]

    async def count_by_status(self) -> dict[EnrichmentStatus, int]:
        """Number of records per status (statuses without rows are omitted)."""
        stmt = select(
            EnrichmentRecordModel.status, func.count(EnrichmentRecordModel.id)
        ).group_by(EnrichmentRecordModel.status)
        result = await self.session.execute(stmt)
        return {EnrichmentStatus(status): count for status, count in result.all()}

    async def _get_model(self, track_id: str) -> EnrichmentRecordModel | None:
        stmt = select(EnrichmentRecordModel).where(
            EnrichmentRecordModel.track_id == track_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


def _dump_json(value: Any) -> str | None:
    return json.dumps(value) if value else None


def _apply(model: EnrichmentRecordModel, record: EnrichmentRecord) -> None:
    for name in _PLAIN_FIELDS:
        setattr(model, name, getattr(record, name))

    model.status = record.status.value
    model.tags = _dump_json(record.tags)
    model.genres = _dump_json(record.genres)
    model.genre_source = record.genre_source.value
    model.audio_features = (
        json.dumps(record.audio_features) if record.audio_features is not None else None
    )
    model.audio_features_source = record.audio_features_source.value
    model.last_attempt_at = record.last_attempt_at
    model.cache_timestamp = record.cache_timestamp
    model.created_at = record.created_at
    model.updated_at = record.updated_at


def _to_entity(model: EnrichmentRecordModel) -> EnrichmentRecord:
    values: dict[str, Any] = {name: getattr(model, name) for name in _PLAIN_FIELDS}
    return EnrichmentRecord(
        id=model.id,
        track_id=model.track_id,
        status=EnrichmentStatus(model.status),
        tags=json.loads(model.tags) if model.tags else [],
        genres=json.loads(model.genres) if model.genres else [],
        genre_source=GenreSource(model.genre_source),
        audio_features=json.loads(model.audio_features)
        if model.audio_features
        else None,
        audio_features_source=AudioFeaturesSource(model.audio_features_source),
        last_attempt_at=ensure_utc_aware(model.last_attempt_at)
        if model.last_attempt_at
        else None,
        cache_timestamp=ensure_utc_aware(model.cache_timestamp),
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
        **values,
    )


__all__ = ["EnrichmentRecordRepository"]
