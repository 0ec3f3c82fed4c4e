"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Hey future me - every section is its own BaseSettings with an env prefix, so
# MUSICBRAINZ_CONTACT=me@example.com works as well as the nested form
# MUSICBRAINZ__CONTACT on the root Settings. Tests just build the section objects
# with overrides (zero delays, other thresholds) instead of monkeypatching constants.
class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./trackresolver.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True)
    # Pool options only apply to PostgreSQL, SQLite ignores them
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800, ge=-1)


class MusicBrainzSettings(BaseSettings):
    """MusicBrainz API settings (primary catalog)."""

    model_config = SettingsConfigDict(env_prefix="MUSICBRAINZ_", extra="ignore")

    app_name: str = Field(default="TrackResolver")
    app_version: str = Field(default="0.1.0")
    contact: str = Field(
        default="trackresolver@example.com",
        description="Contact address sent in the User-Agent (required by MusicBrainz)",
    )
    base_url: str = Field(default="https://musicbrainz.org/ws/2")
    # MusicBrainz allows 1 req/sec - we stay a little under it
    min_request_interval: float = Field(default=1.1, ge=0.0)
    search_limit: int = Field(default=5, ge=1, le=100)
    strategy_delay: float = Field(
        default=0.5, ge=0.0, description="Pause between query strategies"
    )


class CoverArtArchiveSettings(BaseSettings):
    """Cover Art Archive settings (artwork catalog)."""

    model_config = SettingsConfigDict(env_prefix="COVERARTARCHIVE_", extra="ignore")

    base_url: str = Field(default="https://coverartarchive.org")
    min_request_interval: float = Field(default=0.2, ge=0.0)


class ReccoBeatsSettings(BaseSettings):
    """ReccoBeats settings (secondary audio-feature catalog)."""

    model_config = SettingsConfigDict(env_prefix="RECCOBEATS_", extra="ignore")

    enabled: bool = Field(default=True)
    base_url: str = Field(default="https://api.reccobeats.com/")
    min_request_interval: float = Field(default=0.2, ge=0.0)
    min_match_score: float = Field(default=0.7, ge=0.0, le=1.0)
    max_preview_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Ceiling for preview downloads submitted to content analysis",
    )


class MatchingSettings(BaseSettings):
    """Candidate selection thresholds.

    The strict and relaxed thresholds were picked empirically. They're settings on
    purpose so they can be tuned without a release.
    """

    model_config = SettingsConfigDict(env_prefix="MATCHING_", extra="ignore")

    strict_min_score: int = Field(default=80, ge=0, le=100)
    strict_min_title_similarity: float = Field(default=0.85, ge=0.0, le=1.0)
    relaxed_min_score: int = Field(default=65, ge=0, le=100)
    relaxed_min_title_similarity: float = Field(default=0.70, ge=0.0, le=1.0)
    max_secondary_artists: int = Field(default=3, ge=0)
    # Fuzzy/title-only strategies need a title LONGER than these
    fuzzy_min_title_length: int = Field(default=3, ge=0)
    title_only_min_title_length: int = Field(default=5, ge=0)


class EnrichmentSettings(BaseSettings):
    """Enrichment pipeline behaviour (cache, retries, batching)."""

    model_config = SettingsConfigDict(env_prefix="ENRICHMENT_", extra="ignore")

    cache_ttl_days: int = Field(default=180, ge=0)
    max_retry_count: int = Field(default=5, ge=0)
    retry_after_minutes: int = Field(
        default=60, ge=0, description="Minimum wait before a FAILED track is retried"
    )
    batch_size: int = Field(default=10, ge=1)
    retry_batch_size: int = Field(default=5, ge=0)
    inter_track_delay: float = Field(default=1.5, ge=0.0)
    provider_max_retries: int = Field(default=1, ge=0)
    provider_retry_delay: float = Field(default=1.0, ge=0.0)
    max_tags: int = Field(default=10, ge=1)
    max_genres: int = Field(default=10, ge=1)


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_", extra="ignore")

    log_json_format: bool = Field(default=False)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field(default="trackresolver")
    log_level: str = Field(default="INFO")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    coverartarchive: CoverArtArchiveSettings = Field(
        default_factory=CoverArtArchiveSettings
    )
    reccobeats: ReccoBeatsSettings = Field(default_factory=ReccoBeatsSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    observability: ObservabilitySettings = Field(
        default_factory=ObservabilitySettings
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize and validate the log level name."""
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite database file path, or None for other backends."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
