"""
Data Transfer Objects between the catalog clients and the application services.

Hey future me - these are "dumb data carriers". The httpx clients turn raw provider JSON
into these so services never touch provider-specific dict keys. None of them is ever
persisted: CatalogCandidate lives exactly as long as one MatchSelector pass, the details
DTOs only until FieldMergeEngine has copied what it needs onto the EnrichmentRecord.

Flow: Provider JSON -> DTO (client) -> Service -> EnrichmentRecord (entity) -> Repository
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ArtistCredit:
    """One credited artist on a recording (MusicBrainz "artist-credit" entry)."""

    name: str
    artist_id: str | None = None
    join_phrase: str = ""
    # Only filled on lookups, search results usually carry neither
    country: str | None = None
    artist_type: str | None = None


@dataclass(frozen=True)
class Tag:
    """Community tag or genre with its vote count."""

    name: str
    count: int = 0


@dataclass(frozen=True)
class ReleaseInfo:
    """Release (album pressing) a recording appears on."""

    release_id: str
    title: str | None = None
    date: str | None = None
    release_group_id: str | None = None
    release_group_primary_type: str | None = None
    release_group_first_release_date: str | None = None
    label: str | None = None


# Hey future me - CatalogCandidate is what a search hands to MatchSelector. The score is
# the provider's OWN 0-100 confidence, it says nothing about whether it's the right artist.
@dataclass(frozen=True)
class CatalogCandidate:
    """One primary-catalog search result (ephemeral)."""

    id: str
    title: str
    score: int
    artist_credits: list[ArtistCredit] = field(default_factory=list)
    releases: list[ReleaseInfo] = field(default_factory=list)
    first_release_date: str | None = None

    @property
    def artist_names(self) -> list[str]:
        """Names of all credited artists, in credit order."""
        return [credit.name for credit in self.artist_credits if credit.name]

    @property
    def primary_release(self) -> ReleaseInfo | None:
        return self.releases[0] if self.releases else None


@dataclass(frozen=True)
class RecordingDetails:
    """Full recording lookup (tags, genres, releases, ISRCs)."""

    recording_id: str
    title: str
    artist_credits: list[ArtistCredit] = field(default_factory=list)
    length_ms: int | None = None
    isrcs: list[str] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    genres: list[Tag] = field(default_factory=list)
    releases: list[ReleaseInfo] = field(default_factory=list)
    first_release_date: str | None = None

    @property
    def primary_release(self) -> ReleaseInfo | None:
        return self.releases[0] if self.releases else None

    @property
    def primary_artist(self) -> ArtistCredit | None:
        return self.artist_credits[0] if self.artist_credits else None

    @property
    def credited_artist_name(self) -> str | None:
        """All credited names glued with their join phrases ("A feat. B")."""
        if not self.artist_credits:
            return None
        joined = "".join(
            f"{credit.name}{credit.join_phrase}" for credit in self.artist_credits
        ).strip()
        return joined or None


@dataclass(frozen=True)
class ArtistDetails:
    """Artist lookup - used when a recording has no tags of its own."""

    artist_id: str
    name: str
    country: str | None = None
    artist_type: str | None = None
    tags: list[Tag] = field(default_factory=list)
    genres: list[Tag] = field(default_factory=list)


@dataclass(frozen=True)
class ArtworkUrls:
    """Cover image URLs at three sizes (medium is the canonical one)."""

    small: str | None = None
    medium: str | None = None
    large: str | None = None


@dataclass(frozen=True)
class SecondaryArtist:
    """Artist reference in a secondary-catalog track."""

    id: str
    name: str
    spotify_id: str | None = None


@dataclass(frozen=True)
class SecondaryCandidate:
    """Track from the secondary (audio-feature) catalog search."""

    id: str
    name: str
    artists: list[SecondaryArtist] = field(default_factory=list)
    album_title: str | None = None
    album_release_date: str | None = None
    album_art_url: str | None = None
    album_art_url_large: str | None = None
    spotify_id: str | None = None


__all__ = [
    "ArtistCredit",
    "ArtistDetails",
    "ArtworkUrls",
    "CatalogCandidate",
    "RecordingDetails",
    "ReleaseInfo",
    "SecondaryArtist",
    "SecondaryCandidate",
    "Tag",
]
