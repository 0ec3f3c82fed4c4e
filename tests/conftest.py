"""Shared fixtures: settings without delays and the in-memory repository."""

from datetime import UTC, datetime

import pytest
from fakes import InMemoryEnrichmentRepository

from trackresolver.config.settings import (
    DatabaseSettings,
    EnrichmentSettings,
    MusicBrainzSettings,
    Settings,
)


@pytest.fixture
def settings() -> Settings:
    """Settings with every delay zeroed and an in-memory database."""
    return Settings(
        database=DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        musicbrainz=MusicBrainzSettings(strategy_delay=0.0, min_request_interval=0.0),
        enrichment=EnrichmentSettings(
            inter_track_delay=0.0, provider_retry_delay=0.0
        ),
    )


@pytest.fixture
def repository() -> InMemoryEnrichmentRepository:
    return InMemoryEnrichmentRepository()


@pytest.fixture
def now() -> datetime:
    return datetime.now(UTC)
