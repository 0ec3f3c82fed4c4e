"""MusicBrainz HTTP client implementation with rate limiting."""

import logging
from typing import Any

import httpx

from trackresolver.config.settings import MusicBrainzSettings
from trackresolver.domain.dtos import (
    ArtistCredit,
    ArtistDetails,
    CatalogCandidate,
    RecordingDetails,
    ReleaseInfo,
    Tag,
)
from trackresolver.domain.exceptions import ConfigurationError, MalformedResponseError
from trackresolver.domain.ports import IPrimaryCatalogClient
from trackresolver.infrastructure.rate_limiter import RateLimiter
from trackresolver.infrastructure.retry_policy import RetryPolicy, classify_http_error

logger = logging.getLogger(__name__)

PROVIDER = "musicbrainz"

# Without "inc" a lookup returns little more than title + MBID. Always ask for what you need.
RECORDING_INCLUDES = "artists+releases+tags+genres+isrcs+url-rels+release-groups"
ARTIST_INCLUDES = "tags+genres+aliases+url-rels+release-groups"


class MusicBrainzClient(IPrimaryCatalogClient):
    """HTTP client for MusicBrainz API operations with rate limiting."""

    # Hey future me, MusicBrainz is STRICT about rate limiting - 1 req/sec, NO EXCEPTIONS! The
    # limiter is SHARED (ProviderRateLimiters.musicbrainz) so searches, lookups and supplement
    # passes all queue behind the same bucket. If you give this client its own limiter "just for
    # tests", remember prod must not - they'll IP-ban you for hours.
    def __init__(
        self,
        settings: MusicBrainzSettings,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            rate_limiter: Shared limiter for all MusicBrainz traffic
            retry_policy: Bounded retry for transient failures

        Raises:
            ConfigurationError: If no contact is configured
        """
        if not settings.contact.strip():
            raise ConfigurationError("MusicBrainz contact not configured")
        self.settings = settings
        self._rate_limiter = rate_limiter or RateLimiter.for_musicbrainz(
            settings.min_request_interval
        )
        self._retry = retry_policy or RetryPolicy()
        self._client: httpx.AsyncClient | None = None

    # Listen future me, MusicBrainz REQUIRES a User-Agent with app name, version AND contact.
    # Without it they answer 403. The format matters: "AppName/Version ( contact )" with those
    # exact spaces and parens.
    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            user_agent = (
                f"{self.settings.app_name}/{self.settings.app_version} "
                f"( {self.settings.contact} )"
            )

            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={
                    "User-Agent": user_agent,
                    "Accept": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue ONE request after waiting for a limiter token."""
        await self._rate_limiter.acquire()
        client = await self._get_client()
        return await client.request(method, url, **kwargs)

    # Yo future me, this is the single choke point for every MusicBrainz call. Retries happen
    # INSIDE (each retry takes a fresh limiter token). 404 means "no such MBID" and comes back
    # as None. Any other non-2xx turns into an ExternalServiceError with the retryable bit set
    # by classify_http_error(), so the orchestrator can tell FAILED from NOT_FOUND.
    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any] | None:
        response = await self._retry.call(
            lambda: self._send("GET", url, params=params),
            rate_limiter=self._rate_limiter,
            provider=PROVIDER,
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise classify_http_error(PROVIDER, e) from e

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"MusicBrainz returned invalid JSON for {url}", provider=PROVIDER
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"MusicBrainz returned unexpected payload for {url}", provider=PROVIDER
            )
        return data

    # Hey future me, MusicBrainz search uses Lucene query syntax - the QUERY is built (and
    # escaped!) by build_query_strategies(), we just ship it. Results come sorted by the
    # provider's relevance score, which knows nothing about whether it's the right artist.
    # MatchSelector does the real filtering.
    async def search_recordings(
        self, query: str, limit: int = 5
    ) -> list[CatalogCandidate]:
        """
        Run one Lucene recording query.

        Args:
            query: Lucene query string (already escaped)
            limit: Maximum number of results

        Returns:
            Candidates in provider order (may be empty)

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._get_json(
            "/recording",
            params={"query": query, "fmt": "json", "limit": limit},
        )
        if data is None:
            return []

        candidates: list[CatalogCandidate] = []
        for item in data.get("recordings") or []:
            if not item.get("id"):
                continue
            candidates.append(
                CatalogCandidate(
                    id=item["id"],
                    title=item.get("title") or "",
                    score=_as_int(item.get("score")),
                    artist_credits=_parse_artist_credits(item.get("artist-credit")),
                    releases=_parse_releases(item.get("releases")),
                    first_release_date=item.get("first-release-date"),
                )
            )
        logger.debug(f"MusicBrainz query {query!r} returned {len(candidates)} result(s)")
        return candidates

    async def lookup_recording(self, recording_id: str) -> RecordingDetails | None:
        """
        Lookup a recording by MusicBrainz ID with tags, genres, releases and ISRCs.

        Args:
            recording_id: MusicBrainz recording ID

        Returns:
            Recording details or None if not found

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._get_json(
            f"/recording/{recording_id}",
            params={"fmt": "json", "inc": RECORDING_INCLUDES},
        )
        if data is None:
            return None

        return RecordingDetails(
            recording_id=data.get("id") or recording_id,
            title=data.get("title") or "",
            artist_credits=_parse_artist_credits(data.get("artist-credit")),
            length_ms=_as_optional_int(data.get("length")),
            isrcs=[isrc for isrc in data.get("isrcs") or [] if isrc],
            tags=_parse_tags(data.get("tags")),
            genres=_parse_tags(data.get("genres")),
            releases=_parse_releases(data.get("releases")),
            first_release_date=data.get("first-release-date"),
        )

    # Hey, artist data quality varies wildly. Big artists have tons of tags, obscure ones just a
    # name and a country. We only need this when the recording itself has no tags/genres.
    async def lookup_artist(self, artist_id: str) -> ArtistDetails | None:
        """
        Lookup an artist by MusicBrainz ID.

        Args:
            artist_id: MusicBrainz artist ID

        Returns:
            Artist details or None if not found

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._get_json(
            f"/artist/{artist_id}",
            params={"fmt": "json", "inc": ARTIST_INCLUDES},
        )
        if data is None:
            return None

        return ArtistDetails(
            artist_id=data.get("id") or artist_id,
            name=data.get("name") or "",
            country=data.get("country"),
            artist_type=data.get("type"),
            tags=_parse_tags(data.get("tags")),
            genres=_parse_tags(data.get("genres")),
        )

    # Hey, use "async with MusicBrainzClient(...) as client:" for proper cleanup. Essential!
    async def __aenter__(self) -> "MusicBrainzClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_optional_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_artist_credits(raw: Any) -> list[ArtistCredit]:
    credits: list[ArtistCredit] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        artist = entry.get("artist") or {}
        # Credited name can differ from the artist's canonical name ("Beyonce" vs "Beyoncé")
        name = entry.get("name") or artist.get("name")
        if not name:
            continue
        credits.append(
            ArtistCredit(
                name=name,
                artist_id=artist.get("id"),
                join_phrase=entry.get("joinphrase") or "",
                country=artist.get("country"),
                artist_type=artist.get("type"),
            )
        )
    return credits


def _parse_releases(raw: Any) -> list[ReleaseInfo]:
    releases: list[ReleaseInfo] = []
    for entry in raw or []:
        if not isinstance(entry, dict) or not entry.get("id"):
            continue
        group = entry.get("release-group") or {}
        label_name = None
        for label_info in entry.get("label-info") or []:
            label = (label_info or {}).get("label") or {}
            if label.get("name"):
                label_name = label["name"]
                break
        releases.append(
            ReleaseInfo(
                release_id=entry["id"],
                title=entry.get("title"),
                date=entry.get("date") or None,
                release_group_id=group.get("id"),
                release_group_primary_type=group.get("primary-type"),
                release_group_first_release_date=group.get("first-release-date") or None,
                label=label_name,
            )
        )
    return releases


def _parse_tags(raw: Any) -> list[Tag]:
    return [
        Tag(name=entry["name"], count=_as_int(entry.get("count")))
        for entry in raw or []
        if isinstance(entry, dict) and entry.get("name")
    ]
