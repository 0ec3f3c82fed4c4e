"""Configuration module for TrackResolver."""

from .settings import (
    CoverArtArchiveSettings,
    DatabaseSettings,
    EnrichmentSettings,
    MatchingSettings,
    MusicBrainzSettings,
    ObservabilitySettings,
    ReccoBeatsSettings,
    Settings,
    get_settings,
)

__all__ = [
    "CoverArtArchiveSettings",
    "DatabaseSettings",
    "EnrichmentSettings",
    "MatchingSettings",
    "MusicBrainzSettings",
    "ObservabilitySettings",
    "ReccoBeatsSettings",
    "Settings",
    "get_settings",
]
