"""Tests for enrichment record lifecycle and genre provenance."""

from datetime import UTC, datetime, timedelta

import pytest

from trackresolver.domain.entities import (
    EnrichmentRecord,
    EnrichmentStatus,
    GenreSource,
    ObservedTrack,
)
from trackresolver.domain.exceptions import ValidationError


class TestGenreSource:
    """Test provenance ordering."""

    def test_musicbrainz_outranks_everything(self) -> None:
        for source in GenreSource:
            if source != GenreSource.MUSICBRAINZ:
                assert source.should_be_replaced_by(GenreSource.MUSICBRAINZ)

    def test_lower_source_never_replaces_higher(self) -> None:
        assert not GenreSource.MUSICBRAINZ.should_be_replaced_by(GenreSource.RECCOBEATS)

    def test_same_source_does_not_replace(self) -> None:
        """Replacement needs STRICTLY higher priority."""
        assert not GenreSource.RECCOBEATS.should_be_replaced_by(GenreSource.RECCOBEATS)

    def test_priority_order(self) -> None:
        ordered = sorted(GenreSource, key=lambda s: s.priority)
        assert ordered[0] == GenreSource.NONE
        assert ordered[-1] == GenreSource.MUSICBRAINZ


class TestEnrichmentRecord:
    """Test record state transitions."""

    def test_cache_valid_only_when_enriched_and_fresh(self) -> None:
        now = datetime.now(UTC)
        record = EnrichmentRecord(track_id="t1")
        record.mark_enriched(now)

        assert record.is_cache_valid(timedelta(days=180), now + timedelta(days=1))
        assert not record.is_cache_valid(timedelta(days=180), now + timedelta(days=181))

    def test_pending_record_never_cache_valid(self) -> None:
        assert not EnrichmentRecord(track_id="t1").is_cache_valid(timedelta(days=180))

    def test_naive_timestamps_treated_as_utc(self) -> None:
        """SQLite returns naive datetimes."""
        record = EnrichmentRecord(
            track_id="t1",
            status=EnrichmentStatus.ENRICHED,
            cache_timestamp=datetime.now(UTC).replace(tzinfo=None),
        )
        assert record.is_cache_valid(timedelta(days=1))

    def test_mark_failed_counts_attempts(self) -> None:
        record = EnrichmentRecord(track_id="t1")
        record.mark_failed("timeout")
        record.mark_failed("timeout again")

        assert record.status == EnrichmentStatus.FAILED
        assert record.retry_count == 2
        assert record.last_error == "timeout again"
        assert record.should_retry(max_retry_count=3)
        assert not record.should_retry(max_retry_count=2)

    def test_mark_enriched_resets_retry_state(self) -> None:
        record = EnrichmentRecord(track_id="t1")
        record.mark_failed("timeout")
        record.mark_enriched()

        assert record.retry_count == 0
        assert record.last_error is None

    def test_mark_for_reenrichment(self) -> None:
        record = EnrichmentRecord(track_id="t1")
        record.mark_not_found("nope")
        record.mark_for_reenrichment()

        assert record.status == EnrichmentStatus.PENDING

    def test_clone_for_track_copies_lists(self) -> None:
        record = EnrichmentRecord(
            track_id="donor",
            status=EnrichmentStatus.ENRICHED,
            tags=["rock"],
            audio_features={"energy": 0.5},
        )

        clone = record.clone_for_track("other", record_id="row-2")
        clone.tags.append("pop")
        clone.audio_features["energy"] = 0.9

        assert clone.track_id == "other"
        assert clone.id == "row-2"
        assert clone.status == EnrichmentStatus.ENRICHED
        assert record.tags == ["rock"]
        assert record.audio_features == {"energy": 0.5}

    def test_has_audio_features(self) -> None:
        assert not EnrichmentRecord(track_id="t1").has_audio_features()
        assert EnrichmentRecord(track_id="t1", audio_features={}).has_audio_features()


class TestObservedTrack:
    """Test observed track validation."""

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ObservedTrack(id="", title="Song", artist="Artist")
