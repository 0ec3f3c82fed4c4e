"""Runtime lifecycle: build the shared clients and limiters once, close them on exit.

Hey future me - this is the composition root. Every process that enriches tracks does:

    async with enrichment_runtime(settings) as runtime:
        worker = runtime.create_worker(track_source)
        await worker.run_batch()

Rate limiters and httpx clients are built HERE, exactly once, and handed to everything
else. No module-level singletons anywhere: two limiters for MusicBrainz would mean twice
the request rate and a ban from their side.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from trackresolver.application.services import (
    AudioFeatureEnrichmentService,
    EnrichmentOrchestrator,
)
from trackresolver.application.workers import EnrichmentWorker
from trackresolver.config import Settings, get_settings
from trackresolver.domain.ports import IEnrichmentRepository, ITrackSource
from trackresolver.infrastructure.integrations import (
    CoverArtArchiveClient,
    MusicBrainzClient,
    ReccoBeatsClient,
)
from trackresolver.infrastructure.observability import configure_logging
from trackresolver.infrastructure.persistence import Database
from trackresolver.infrastructure.rate_limiter import ProviderRateLimiters
from trackresolver.infrastructure.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentRuntime:
    """Long-lived objects shared by every orchestrator and worker of the process."""

    settings: Settings
    database: Database
    rate_limiters: ProviderRateLimiters
    retry_policy: RetryPolicy
    musicbrainz: MusicBrainzClient
    coverartarchive: CoverArtArchiveClient
    reccobeats: ReccoBeatsClient | None = None

    def build_orchestrator(
        self, repository: IEnrichmentRepository
    ) -> EnrichmentOrchestrator:
        """Orchestrator bound to one session's repository (cheap, build per track)."""
        audio_features = None
        if self.reccobeats is not None:
            audio_features = AudioFeatureEnrichmentService(
                self.reccobeats, self.settings.reccobeats
            )
        return EnrichmentOrchestrator(
            repository=repository,
            primary_client=self.musicbrainz,
            artwork_client=self.coverartarchive,
            audio_feature_service=audio_features,
            settings=self.settings,
        )

    def create_worker(
        self, track_source: ITrackSource, interval_seconds: float = 300.0
    ) -> EnrichmentWorker:
        """Batch worker wired to this runtime."""
        return EnrichmentWorker(
            db=self.database,
            track_source=track_source,
            orchestrator_factory=self.build_orchestrator,
            settings=self.settings.enrichment,
            interval_seconds=interval_seconds,
        )

    async def close(self) -> None:
        """Close HTTP clients, then the database engine."""
        await self.musicbrainz.close()
        await self.coverartarchive.close()
        if self.reccobeats is not None:
            await self.reccobeats.close()
        await self.database.close()


@asynccontextmanager
async def enrichment_runtime(
    settings: Settings | None = None,
    configure_logs: bool = True,
) -> AsyncGenerator[EnrichmentRuntime, None]:
    """Set up logging, the database and the catalog clients for one process.

    Args:
        settings: Application settings (defaults to get_settings())
        configure_logs: Set False when the host application owns logging

    Yields:
        EnrichmentRuntime, closed again on exit
    """
    settings = settings or get_settings()

    if configure_logs:
        configure_logging(
            log_level=settings.log_level,
            json_format=settings.observability.log_json_format,
            app_name=settings.app_name,
        )

    logger.info(f"Starting {settings.app_name} enrichment runtime")

    database = Database(settings)
    await database.create_tables()

    rate_limiters = ProviderRateLimiters.from_settings(
        musicbrainz_interval=settings.musicbrainz.min_request_interval,
        coverartarchive_interval=settings.coverartarchive.min_request_interval,
        reccobeats_interval=settings.reccobeats.min_request_interval,
    )
    retry_policy = RetryPolicy(
        max_retries=settings.enrichment.provider_max_retries,
        retry_delay=settings.enrichment.provider_retry_delay,
    )

    reccobeats = None
    if settings.reccobeats.enabled:
        reccobeats = ReccoBeatsClient(
            settings.reccobeats, rate_limiters.reccobeats, retry_policy
        )
    else:
        logger.info("ReccoBeats disabled - audio-feature fallback steps are off")

    runtime = EnrichmentRuntime(
        settings=settings,
        database=database,
        rate_limiters=rate_limiters,
        retry_policy=retry_policy,
        musicbrainz=MusicBrainzClient(
            settings.musicbrainz, rate_limiters.musicbrainz, retry_policy
        ),
        coverartarchive=CoverArtArchiveClient(
            settings.coverartarchive, rate_limiters.coverartarchive, retry_policy
        ),
        reccobeats=reccobeats,
    )

    try:
        yield runtime
    finally:
        logger.info("Shutting down enrichment runtime")
        await runtime.close()
