"""ReccoBeats HTTP client implementation.

Hey future me - ReccoBeats is the FREE stand-in for Spotify's deprecated audio-features
endpoint. No API key, same response shape as Spotify, and it accepts Spotify track ids
directly (that's why the orchestrator tries known_external_id first). When a track isn't
in their catalog they can still analyse a ~30s audio clip we upload.

Endpoints we use:
- GET  v1/track/search?q=...            -> {"tracks": [...]}
- GET  v1/track/{id}/audio-features      -> features object (ReccoBeats UUID or Spotify id)
- POST v1/analysis/audio-features        -> features object, multipart field "audioFile"
"""

import logging
from typing import Any

import httpx

from trackresolver.config.settings import ReccoBeatsSettings
from trackresolver.domain.dtos import SecondaryArtist, SecondaryCandidate
from trackresolver.domain.exceptions import ExternalServiceError, MalformedResponseError
from trackresolver.domain.ports import IAudioFeatureCatalogClient
from trackresolver.domain.value_objects.audio_features import AudioFeatures
from trackresolver.infrastructure.rate_limiter import RateLimiter
from trackresolver.infrastructure.retry_policy import RetryPolicy, classify_http_error

logger = logging.getLogger(__name__)

PROVIDER = "reccobeats"


class ReccoBeatsClient(IAudioFeatureCatalogClient):
    """HTTP client for ReccoBeats audio-feature operations."""

    def __init__(
        self,
        settings: ReccoBeatsSettings,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize ReccoBeats client.

        Args:
            settings: ReccoBeats configuration settings
            rate_limiter: Shared limiter for ReccoBeats traffic
            retry_policy: Bounded retry for transient failures
        """
        self.settings = settings
        self._rate_limiter = rate_limiter or RateLimiter.for_reccobeats(
            settings.min_request_interval
        )
        self._retry = retry_policy or RetryPolicy()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"Accept": "application/json"},
                timeout=30.0,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        await self._rate_limiter.acquire()
        client = await self._get_client()
        return await client.request(method, url, **kwargs)

    # Same contract as the MusicBrainz client: 404 -> None, other errors -> ExternalServiceError
    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._retry.call(
            lambda: self._send(method, url, **kwargs),
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
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"ReccoBeats returned invalid JSON for {url}", provider=PROVIDER
            ) from e

    async def get_audio_features(self, track_id: str) -> AudioFeatures | None:
        """
        Get audio features by ReccoBeats UUID or Spotify track id.

        Returns:
            AudioFeatures, or None if ReccoBeats doesn't know the track

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._request_json("GET", f"v1/track/{track_id}/audio-features")
        return _parse_features(data)

    # Hey future me - do NOT url-encode the query yourself, httpx does it for params.
    # Double-encoding gives you 404s that look like "track not found".
    async def search_tracks(self, query: str) -> list[SecondaryCandidate]:
        """
        Free-text track search.

        Args:
            query: "artist title" style search string

        Returns:
            Candidate tracks in provider order (may be empty)

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._request_json("GET", "v1/track/search", params={"q": query})
        if not isinstance(data, dict):
            return []

        candidates: list[SecondaryCandidate] = []
        for item in data.get("tracks") or []:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            album = item.get("album") or {}
            small, large = _album_images(album.get("images"))
            candidates.append(
                SecondaryCandidate(
                    id=item["id"],
                    name=item.get("name") or "",
                    artists=[
                        SecondaryArtist(
                            id=artist.get("id") or "",
                            name=artist.get("name") or "",
                            spotify_id=artist.get("spotify_id"),
                        )
                        for artist in item.get("artists") or []
                        if isinstance(artist, dict)
                    ],
                    album_title=album.get("name"),
                    album_release_date=album.get("release_date"),
                    album_art_url=small,
                    album_art_url_large=large,
                    spotify_id=item.get("spotify_id"),
                )
            )
        return candidates

    async def analyze_audio(self, audio: bytes) -> AudioFeatures | None:
        """
        Upload a preview clip for content-based analysis.

        Raises:
            ExternalServiceError: If the request fails
        """
        data = await self._request_json(
            "POST",
            "v1/analysis/audio-features",
            files={"audioFile": ("preview.mp3", audio, "audio/mpeg")},
        )
        return _parse_features(data)

    # Listen up, previews live on a CDN, NOT on ReccoBeats - so no limiter and no retry here.
    # We STREAM the body and bail out as soon as it passes max_bytes; a misconfigured preview
    # URL pointing at a full-length file must not end up in memory. Every failure here is
    # permanent for this pass (retryable=False), retrying won't shrink the file.
    async def download_preview(self, url: str, max_bytes: int) -> bytes:
        """
        Download a preview clip, capped at max_bytes.

        Raises:
            ExternalServiceError: If the download fails, is empty or exceeds max_bytes
        """
        client = await self._get_client()
        chunks: list[bytes] = []
        size = 0
        try:
            async with client.stream("GET", url, headers={"Accept": "*/*"}) as response:
                if not response.is_success:
                    raise ExternalServiceError(
                        f"Failed to download preview: {response.status_code}",
                        provider=PROVIDER,
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        raise ExternalServiceError(
                            f"Preview audio too large (> {max_bytes} bytes)",
                            provider=PROVIDER,
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                f"Failed to download preview: {type(e).__name__}", provider=PROVIDER
            ) from e

        if size == 0:
            raise ExternalServiceError("Empty preview audio", provider=PROVIDER)
        return b"".join(chunks)

    async def __aenter__(self) -> "ReccoBeatsClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def _parse_features(data: Any) -> AudioFeatures | None:
    if not data:
        return None
    if not isinstance(data, dict):
        raise MalformedResponseError(
            "ReccoBeats returned unexpected audio-features payload", provider=PROVIDER
        )
    try:
        return AudioFeatures.from_dict(data)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"ReccoBeats audio features unreadable: {e}", provider=PROVIDER
        ) from e


def _album_images(raw: Any) -> tuple[str | None, str | None]:
    """Pick (medium, large) album image URLs by width."""
    images = [img for img in raw or [] if isinstance(img, dict) and img.get("url")]
    if not images:
        return None, None
    by_width = sorted(images, key=lambda img: img.get("width") or 0)
    return by_width[len(by_width) // 2]["url"], by_width[-1]["url"]
