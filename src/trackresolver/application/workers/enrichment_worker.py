# Hey future me - this worker is the "background job" that actually drives enrichment!
# Each run_batch():
#   1. picks PENDING records (batch_size) and FAILED ones whose retry wait is over (retry_batch_size)
#   2. loads the observed tracks from the ITrackSource (the listening tracker owns them, not us)
#   3. enriches them ONE AT A TIME - MusicBrainz allows 1 req/sec, running tracks in parallel only
#      makes them queue up in the rate limiter
#   4. one session_scope per track: a crash mid-batch keeps everything already written
#   5. tracks it can't even try (no artist yet, gone from the source) are parked as SKIPPED and
#      only come back, behind the real PENDING ones, after retry_after_minutes
#
# cancel() is checked BETWEEN tracks. A track that's mid-flight finishes its provider calls, but
# if cancel came in meanwhile its session is rolled back and the record stays as it was.
"""Background worker that enriches pending and retry-eligible tracks in batches."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from trackresolver.config.settings import EnrichmentSettings
from trackresolver.domain.dtos.results import (
    AlreadyEnriched,
    CacheHit,
    EnrichmentError,
    EnrichmentNotFound,
    EnrichmentResult,
    EnrichmentSuccess,
)
from trackresolver.domain.entities import EnrichmentRecord, ObservedTrack
from trackresolver.domain.ports import IEnrichmentRepository, ITrackSource
from trackresolver.domain.value_objects import is_unknown_artist
from trackresolver.infrastructure.observability.logging import set_correlation_id
from trackresolver.infrastructure.persistence.repositories import (
    EnrichmentRecordRepository,
)

if TYPE_CHECKING:
    from trackresolver.application.services.enrichment_orchestrator import (
        EnrichmentOrchestrator,
    )
    from trackresolver.infrastructure.persistence.database import Database

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[IEnrichmentRepository], "EnrichmentOrchestrator"]


def _empty_stats() -> dict[str, Any]:
    return {
        "processed": 0,
        "enriched": 0,
        "not_found": 0,
        "failed": 0,
        "skipped": 0,
        "cache_hits": 0,
        "cancelled": False,
    }


class EnrichmentWorker:
    """Worker that enriches tracks in small, strictly sequential batches.

    Usage:
        worker = EnrichmentWorker(db, track_source, runtime.build_orchestrator, settings)
        stats = await worker.run_batch()   # one pass

        await worker.start()               # or: pass every interval_seconds
        ...
        await worker.stop()
    """

    def __init__(
        self,
        db: "Database",
        track_source: ITrackSource,
        orchestrator_factory: OrchestratorFactory,
        settings: EnrichmentSettings | None = None,
        interval_seconds: float = 300.0,
    ) -> None:
        """Initialize worker.

        Args:
            db: Database instance for creating sessions
            track_source: Loads ObservedTrack data for record track ids
            orchestrator_factory: Builds an orchestrator bound to a session's repository
            settings: Batch sizes, delays and retry limits
            interval_seconds: Pause between batches when running via start()
        """
        self.db = db
        self.track_source = track_source
        self._orchestrator_factory = orchestrator_factory
        self.settings = settings or EnrichmentSettings()
        self.interval_seconds = interval_seconds

        self._cancel_event = asyncio.Event()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._last_run: datetime | None = None
        self._totals = _empty_stats()
        self._totals["batches"] = 0
        self._last_error: str | None = None

    # =========================================================================
    # One batch
    # =========================================================================

    async def run_batch(self) -> dict[str, Any]:
        """Enrich one batch of pending tracks, then retry-eligible failed ones.

        Returns:
            Stats dict: processed, enriched, not_found, failed, skipped, cache_hits,
            cancelled
        """
        correlation_id = set_correlation_id()
        self._cancel_event.clear()
        stats = _empty_stats()

        track_ids = await self._select_track_ids()
        if not track_ids:
            logger.debug("No tracks waiting for enrichment")
            return stats

        logger.info(
            f"Enrichment batch {correlation_id} started with {len(track_ids)} tracks"
        )
        tracks = await self.track_source.get_tracks(track_ids)
        tracks_by_id = {track.id: track for track in tracks}

        for index, track_id in enumerate(track_ids):
            if self._cancel_event.is_set():
                stats["cancelled"] = True
                break

            if index > 0 and self.settings.inter_track_delay > 0:
                await self._sleep_unless_cancelled(self.settings.inter_track_delay)
                if self._cancel_event.is_set():
                    stats["cancelled"] = True
                    break

            track = tracks_by_id.get(track_id)
            if track is None:
                # Observation store no longer has it (deleted track), nothing to resolve
                logger.debug(f"Track {track_id} not found in track source, skipping")
                await self._park(track_id, "Track not found in track source")
                stats["skipped"] += 1
                continue

            if is_unknown_artist(track.artist):
                # Upstream may still fill the artist in, we look again after retry_after_minutes
                logger.debug(f"Track {track_id} has no artist yet, skipping")
                await self._park(track_id, "Artist metadata not yet available")
                stats["skipped"] += 1
                continue

            result = await self._enrich_one(track)
            if result is None:
                stats["cancelled"] = True
                break
            stats["processed"] += 1
            self._tally(stats, result)

        self._last_run = datetime.now(UTC)
        self._totals["batches"] += 1
        for key in ("processed", "enriched", "not_found", "failed", "skipped", "cache_hits"):
            self._totals[key] += stats[key]

        logger.info(
            f"Enrichment batch {correlation_id} complete: {stats['processed']} processed, "
            f"{stats['enriched']} enriched, {stats['not_found']} not found, "
            f"{stats['failed']} failed"
            + (" (cancelled)" if stats["cancelled"] else "")
        )
        return stats

    async def _select_track_ids(self) -> list[str]:
        now = datetime.now(UTC)
        retry_before = now - timedelta(minutes=self.settings.retry_after_minutes)

        async with self.db.session_scope() as session:
            repository = EnrichmentRecordRepository(session)
            pending = await repository.list_pending(
                self.settings.batch_size, skipped_before=retry_before
            )
            retry: list[EnrichmentRecord] = []
            if self.settings.retry_batch_size > 0:
                retry = await repository.list_retry_eligible(
                    max_retry_count=self.settings.max_retry_count,
                    retry_before=retry_before,
                    limit=self.settings.retry_batch_size,
                )

        if retry:
            logger.debug(f"{len(retry)} failed tracks are due for a retry")
        # dict keeps order and drops duplicates
        return list(dict.fromkeys(record.track_id for record in [*pending, *retry]))

    async def _park(self, track_id: str, reason: str) -> None:
        """Mark a record SKIPPED so it stops holding a slot at the front of the queue."""
        async with self.db.session_scope() as session:
            repository = EnrichmentRecordRepository(session)
            record = await repository.get_record(track_id)
            if record is None:
                return
            record.mark_skipped(reason)
            await repository.upsert(record)

    async def _enrich_one(self, track: ObservedTrack) -> EnrichmentResult | None:
        """Enrich one track in its own transaction. None means cancelled mid-track."""
        try:
            async with self.db.session_scope() as session:
                orchestrator = self._orchestrator_factory(
                    EnrichmentRecordRepository(session)
                )
                result = await orchestrator.enrich(track)
                if self._cancel_event.is_set():
                    logger.info(f"Batch cancelled while enriching {track.id}, discarding")
                    await session.rollback()
                    return None
                return result
        except Exception as e:
            # enrich() itself never raises - this is the commit failing
            logger.exception(f"Could not store enrichment of track {track.id}")
            return EnrichmentError(str(e) or type(e).__name__, retryable=True)

    @staticmethod
    def _tally(stats: dict[str, Any], result: EnrichmentResult) -> None:
        match result:
            case EnrichmentSuccess():
                stats["enriched"] += 1
            case CacheHit():
                stats["cache_hits"] += 1
            case EnrichmentNotFound():
                stats["not_found"] += 1
            case AlreadyEnriched():
                stats["skipped"] += 1
            case EnrichmentError():
                stats["failed"] += 1

    async def _sleep_unless_cancelled(self, seconds: float) -> None:
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)

    def cancel(self) -> None:
        """Stop the current batch before its next track."""
        logger.info("Enrichment batch cancellation requested")
        self._cancel_event.set()

    # =========================================================================
    # Periodic loop
    # =========================================================================

    async def start(self) -> None:
        """Start running a batch every interval_seconds (idempotent)."""
        if self._running:
            logger.warning("Enrichment worker is already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Enrichment worker started (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the current batch and the loop, then wait for it (idempotent)."""
        self._running = False
        self.cancel()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Enrichment worker stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_batch()
            except Exception as e:
                # Don't crash the worker - log and try again next round
                logger.exception(f"Error in enrichment worker loop: {e}")
                self._last_error = str(e)
            await asyncio.sleep(self.interval_seconds)

    def get_stats(self) -> dict[str, Any]:
        """Worker status and totals since start."""
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_error": self._last_error,
            "totals": {k: v for k, v in self._totals.items() if k != "cancelled"},
        }


def create_enrichment_worker(
    db: "Database",
    track_source: ITrackSource,
    orchestrator_factory: OrchestratorFactory,
    settings: EnrichmentSettings | None = None,
    interval_seconds: float = 300.0,
) -> EnrichmentWorker:
    """Factory function to create an EnrichmentWorker."""
    return EnrichmentWorker(
        db=db,
        track_source=track_source,
        orchestrator_factory=orchestrator_factory,
        settings=settings,
        interval_seconds=interval_seconds,
    )
