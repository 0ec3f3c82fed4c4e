"""CoverArtArchive HTTP client implementation.

Hey future me - CoverArtArchive (CAA) is THE official source for MusicBrainz album artwork!
It's a separate service from MusicBrainz but tightly integrated, and keyed by MusicBrainz ids.

Key concepts:
- Release = specific pressing/edition (e.g., "US CD release", "Japanese vinyl")
- Release Group = abstract album concept (e.g., "Abbey Road" regardless of edition)
- We try the release first and fall back to the release group (the orchestrator does that)

Response format:
- GET /release/{mbid} returns JSON with an images array
- Each image has front/back flags, thumbnails (small/medium/large and 250/500/1200 keys)
  and the original "image" URL
- GET /release/{mbid}/front-500 redirects to the image itself (we store those as fallback)

GOTCHA: Not all releases have artwork! 404 is "no artwork", never an error. Artwork is
best-effort decoration, so this client never raises - worst case the record has no cover.
"""

import logging
import re
from typing import Any

import httpx

from trackresolver.config.settings import CoverArtArchiveSettings
from trackresolver.domain.dtos import ArtworkUrls
from trackresolver.domain.exceptions import ExternalServiceError
from trackresolver.domain.ports import IArtworkClient
from trackresolver.infrastructure.rate_limiter import RateLimiter
from trackresolver.infrastructure.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

PROVIDER = "coverartarchive"

# Index endpoints answer with JSON, not an image
_CAA_INDEX_URL = re.compile(
    r"^https?://coverartarchive\.org/(release|release-group)/[a-f0-9-]+/?$"
)
_ARCHIVE_MIRROR = re.compile(r"^http://ia[^/]*\.us\.archive\.org")


def fix_http_url(url: str | None) -> str | None:
    """Upgrade plain-http archive.org / coverartarchive.org URLs to https.

    CAA still hands out http:// thumbnail links and some clients refuse mixed content.
    """
    if not url:
        return url
    if url.startswith("http://coverartarchive.org"):
        return "https://" + url[len("http://") :]
    if url.startswith("http://archive.org"):
        return "https://" + url[len("http://") :]
    if _ARCHIVE_MIRROR.match(url):
        return "https://" + url[len("http://") :]
    return url


def is_valid_album_art_url(url: str | None) -> bool:
    """Check that a URL points at an image, not at a CAA JSON index."""
    if not url or not url.strip():
        return False
    if url.lower().endswith(".json"):
        return False
    return not _CAA_INDEX_URL.match(url)


class CoverArtArchiveClient(IArtworkClient):
    """HTTP client for CoverArtArchive API.

    Usage:
        async with CoverArtArchiveClient(settings) as client:
            urls = await client.get_release_artwork(release_mbid)
            if urls is None:
                urls = await client.get_release_group_artwork(release_group_mbid)
    """

    def __init__(
        self,
        settings: CoverArtArchiveSettings,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize CoverArtArchive client."""
        self.settings = settings
        self._rate_limiter = rate_limiter or RateLimiter.for_coverartarchive(
            settings.min_request_interval
        )
        self._retry = retry_policy or RetryPolicy()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client.

        Follow redirects is important - CAA answers the index with a 307 to archive.org.
        """
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

    async def get_release_artwork(self, release_id: str) -> ArtworkUrls | None:
        """Get cover URLs for a release.

        Hey future me - if CAA answers with a non-404 error we still hand back the
        direct front-* URLs. Those redirect to the image whenever it exists, which is
        better than no cover at all.

        Args:
            release_id: MusicBrainz Release ID

        Returns:
            ArtworkUrls, or None if the release has no usable artwork.
        """
        return await self._fetch("release", release_id, direct_fallback=True)

    async def get_release_group_artwork(
        self, release_group_id: str
    ) -> ArtworkUrls | None:
        """Get cover URLs for a release group (the "best" release's artwork).

        Args:
            release_group_id: MusicBrainz Release Group ID

        Returns:
            ArtworkUrls, or None if not available.
        """
        return await self._fetch("release-group", release_group_id, direct_fallback=False)

    async def _fetch(
        self, entity: str, mbid: str, direct_fallback: bool
    ) -> ArtworkUrls | None:
        base = f"{self.settings.base_url.rstrip('/')}/{entity}/{mbid}"
        try:
            response = await self._retry.call(
                lambda: self._send("GET", f"/{entity}/{mbid}"),
                rate_limiter=self._rate_limiter,
                provider=PROVIDER,
            )
        except ExternalServiceError as e:
            logger.warning(f"CAA request failed for {entity} {mbid}: {e.message}")
            return None

        if response.status_code == 404:
            logger.debug(f"No artwork found for {entity} {mbid}")
            return None

        if not response.is_success:
            logger.warning(f"CAA API error {response.status_code} for {entity} {mbid}")
            if direct_fallback:
                return ArtworkUrls(
                    small=f"{base}/front-250",
                    medium=f"{base}/front-500",
                    large=f"{base}/front-1200",
                )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"CAA returned invalid JSON for {entity} {mbid}")
            return None

        images = [img for img in (data or {}).get("images") or [] if isinstance(img, dict)]
        if not images:
            return None
        image = next((img for img in images if img.get("front")), images[0])
        thumbnails = image.get("thumbnails") or {}

        urls = ArtworkUrls(
            small=fix_http_url(
                thumbnails.get("small") or thumbnails.get("250") or f"{base}/front-250"
            ),
            medium=fix_http_url(
                thumbnails.get("medium")
                or thumbnails.get("500")
                or image.get("image")
                or f"{base}/front-500"
            ),
            large=fix_http_url(
                thumbnails.get("large") or thumbnails.get("1200") or f"{base}/front-1200"
            ),
        )

        if not is_valid_album_art_url(urls.medium):
            logger.warning(f"Ignored invalid album art URL: {urls.medium}")
            return None
        return urls

    async def __aenter__(self) -> "CoverArtArchiveClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
