"""Catalog integrations (HTTP clients)."""

from trackresolver.infrastructure.integrations.coverartarchive_client import (
    CoverArtArchiveClient,
    fix_http_url,
    is_valid_album_art_url,
)
from trackresolver.infrastructure.integrations.musicbrainz_client import (
    MusicBrainzClient,
)
from trackresolver.infrastructure.integrations.reccobeats_client import (
    ReccoBeatsClient,
)

__all__ = [
    "CoverArtArchiveClient",
    "MusicBrainzClient",
    "ReccoBeatsClient",
    "fix_http_url",
    "is_valid_album_art_url",
]
