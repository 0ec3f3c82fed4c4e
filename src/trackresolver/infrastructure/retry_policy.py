"""Bounded retry for catalog HTTP calls.

Hey future me - this is the HTTP sibling of persistence/retry.py. Transient failures
(429, 5xx gateway errors, connection resets/timeouts) get ONE more try by default, after
a short pause. Everything else goes straight back to the caller. Enrichment is a
best-effort backfill: a track that still fails is marked FAILED and the worker picks it
up again on a later pass. Don't crank max_retries up to "make it work", you just
hold the shared MusicBrainz limiter hostage.

The catalog clients use it like this:

    response = await self._retry.call(
        lambda: self._send("GET", "/recording", params=params),
        rate_limiter=self._rate_limiter,
        provider="musicbrainz",
    )
    response.raise_for_status()   # 404 -> None, anything else -> classify_http_error()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from trackresolver.domain.exceptions import (
    ExternalServiceError,
    RateLimitExceededError,
)
from trackresolver.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable_status(status_code: int) -> bool:
    """Check if an HTTP status is worth another attempt."""
    return status_code in RETRYABLE_STATUS_CODES


def parse_retry_after(response: httpx.Response) -> float | None:
    """Read a numeric Retry-After header (seconds). HTTP-date values are ignored."""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def classify_http_error(provider: str, exc: httpx.HTTPStatusError) -> ExternalServiceError:
    """Turn a final HTTP error into the domain error with the right retryable bit.

    Args:
        provider: Catalog name for logs/messages
        exc: The error raised by response.raise_for_status()

    Returns:
        RateLimitExceededError for 429, otherwise ExternalServiceError
    """
    status = exc.response.status_code
    if status == 429:
        return RateLimitExceededError(f"{provider} rate limited (429)", provider=provider)
    return ExternalServiceError(
        f"{provider} API error: {status}",
        provider=provider,
        status_code=status,
        retryable=is_retryable_status(status),
    )


class RetryPolicy:
    """Retry transient catalog failures a bounded number of times."""

    def __init__(self, max_retries: int = 1, retry_delay: float = 1.0) -> None:
        """
        Initialize retry policy.

        Args:
            max_retries: Extra attempts after the first one
            retry_delay: Pause before a retry (429 uses the limiter's backoff instead)
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def call(
        self,
        operation: Callable[[], Awaitable[httpx.Response]],
        rate_limiter: RateLimiter | None = None,
        provider: str = "catalog",
    ) -> httpx.Response:
        """
        Run an HTTP operation, retrying transient failures.

        Args:
            operation: Zero-arg coroutine factory issuing ONE request
            rate_limiter: Limiter that gets the 429 backoff (honours Retry-After)
            provider: Catalog name for logs/errors

        Returns:
            The last response (may still carry a retryable status once retries run out)

        Raises:
            ExternalServiceError: If the transport keeps failing (retryable=True)
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await operation()
            except httpx.TransportError as e:
                if attempt >= attempts:
                    logger.warning(
                        f"{provider} transport error after {attempts} attempt(s): {e!r}"
                    )
                    raise ExternalServiceError(
                        f"{provider} request failed: {type(e).__name__}",
                        provider=provider,
                        retryable=True,
                    ) from e
                logger.warning(
                    f"{provider} transport error (attempt {attempt}/{attempts}), "
                    f"retrying in {self.retry_delay:.1f}s: {e!r}"
                )
                await asyncio.sleep(self.retry_delay)
                continue

            if not is_retryable_status(response.status_code) or attempt >= attempts:
                if response.is_success and rate_limiter is not None:
                    rate_limiter.reset_backoff()
                return response

            if response.status_code == 429 and rate_limiter is not None:
                await rate_limiter.handle_rate_limit_response(parse_retry_after(response))
            else:
                logger.warning(
                    f"{provider} returned {response.status_code} "
                    f"(attempt {attempt}/{attempts}), retrying in {self.retry_delay:.1f}s"
                )
                await asyncio.sleep(self.retry_delay)

        # Loop always returns or raises, but keep mypy happy
        raise ExternalServiceError(f"{provider} request failed", provider=provider)


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RetryPolicy",
    "classify_http_error",
    "is_retryable_status",
    "parse_retry_after",
]
