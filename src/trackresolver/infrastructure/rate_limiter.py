"""
Centralized Rate Limiter for catalog API calls.

Hey future me - this is THE rate limiter for every external catalog! Token bucket with
adaptive backoff on 429.

WHY CENTRAL?
- MusicBrainz bans clients that go over 1 req/sec, Cover Art Archive and ReccoBeats
  throttle too
- Several workers may enrich tracks at the same time, but they all share ONE limiter per
  provider. That's why the limiters live in ProviderRateLimiters, which the composition
  root builds once and hands to every client. No module-level singletons, tests get
  their own fresh set.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate per second
- Each request takes 1 token
- Empty bucket: wait until a token is back
- max_tokens=1 + refill_rate=1/interval == "at least `interval` seconds between calls"

ADAPTIVE BACKOFF on 429:
- First 429: initial_backoff_seconds
- Every further 429: times backoff_multiplier, capped at max_backoff_seconds
- Retry-After header wins when the provider sends one
- Successful request: backoff reset

USAGE:
    limiter = RateLimiter.for_musicbrainz(1.1)

    async with limiter:
        response = await client.get(url)

    # on 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me - max_backoff_seconds must be high enough to respect long Retry-After
    headers. Capping it too low means ignoring the header and walking straight into the
    next 429.
    """

    max_tokens: int = 1  # Bucket size
    refill_rate: float = 1.0  # Tokens per second
    max_backoff_seconds: float = 120.0
    initial_backoff_seconds: float = 1.0  # First 429 wait
    backoff_multiplier: float = 2.0  # Exponential backoff factor


def _refill_rate_for(min_interval: float) -> float:
    # A zero interval (tests) means "don't throttle"
    return 1.0 / min_interval if min_interval > 0 else float("inf")


@dataclass
class RateLimiter:
    """Token Bucket Rate Limiter with adaptive backoff.

    Attributes:
        config: Rate limiter configuration
        name: Provider name for log lines
        _tokens: Current available tokens
        _last_refill: Last time tokens were refilled
        _current_backoff: Current backoff delay (resets on success)
        _lock: Async lock, one waiter at a time
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    # Internal state (not in __init__ signature)
    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        """Initialize tokens to max capacity."""
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_musicbrainz(cls, min_interval: float = 1.1) -> "RateLimiter":
        """Create rate limiter for MusicBrainz API.

        Hey future me - MusicBrainz is STRICT: 1 req/sec, no bursts. We stay a bit under.
        Long backoff because MB bans aggressive clients.
        """
        return cls(
            config=RateLimiterConfig(
                max_tokens=1,
                refill_rate=_refill_rate_for(min_interval),
                max_backoff_seconds=120.0,
                initial_backoff_seconds=2.0,
            ),
            name="musicbrainz",
        )

    @classmethod
    def for_coverartarchive(cls, min_interval: float = 0.2) -> "RateLimiter":
        """Create rate limiter for the Cover Art Archive."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=1,
                refill_rate=_refill_rate_for(min_interval),
                max_backoff_seconds=60.0,
                initial_backoff_seconds=1.0,
            ),
            name="coverartarchive",
        )

    @classmethod
    def for_reccobeats(cls, min_interval: float = 0.2) -> "RateLimiter":
        """Create rate limiter for ReccoBeats.

        Hey future me - ReccoBeats has no published limit, 200ms between calls has never
        been throttled.
        """
        return cls(
            config=RateLimiterConfig(
                max_tokens=1,
                refill_rate=_refill_rate_for(min_interval),
                max_backoff_seconds=60.0,
                initial_backoff_seconds=1.0,
            ),
            name="reccobeats",
        )

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._last_refill = now

        if math.isinf(self.config.refill_rate):
            self._tokens = float(self.config.max_tokens)
            return

        new_tokens = elapsed * self.config.refill_rate
        self._tokens = min(self.config.max_tokens, self._tokens + new_tokens)

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary.

        Hey future me - the lock is held while sleeping on purpose. Waiters queue up in
        FIFO order behind it, so two workers can never both see "1 token left".
        """
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    f"RateLimiter[{self.name}]: No tokens available, "
                    f"waiting {wait_time:.2f}s"
                )
                await asyncio.sleep(wait_time)
                self._refill_tokens()

            self._tokens -= 1.0
            logger.debug(
                f"RateLimiter[{self.name}]: Token acquired, "
                f"{self._tokens:.1f} remaining"
            )

    async def handle_rate_limit_response(
        self, retry_after: float | None = None
    ) -> float:
        """Handle a 429 rate limit response with adaptive backoff.

        Args:
            retry_after: Retry-After header from API response (seconds)

        Returns:
            The actual wait time used
        """
        async with self._lock:
            if retry_after is not None:
                wait_time = float(retry_after)
            else:
                wait_time = self._current_backoff

            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                f"RateLimiter[{self.name}]: 429 Rate Limited! "
                f"Waiting {wait_time:.1f}s before retry "
                f"(backoff level: {self._current_backoff:.1f}s)"
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )

            # Clear tokens (force wait on the next acquire too)
            self._tokens = 0.0
            self._last_refill = time.monotonic()

        # Wait outside lock
        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        """Enter async context - acquire token."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        if exc_type is None:
            self.reset_backoff()

    @property
    def current_backoff(self) -> float:
        """Backoff the next 429 without Retry-After would wait (for debugging)."""
        return self._current_backoff

    @property
    def available_tokens(self) -> float:
        """Get current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens


@dataclass
class ProviderRateLimiters:
    """One shared limiter per catalog, built once per process.

    Hey future me - pass THE SAME instance to every client/worker. Two instances means two
    buckets means double the request rate against MusicBrainz.
    """

    musicbrainz: RateLimiter = field(default_factory=RateLimiter.for_musicbrainz)
    coverartarchive: RateLimiter = field(
        default_factory=RateLimiter.for_coverartarchive
    )
    reccobeats: RateLimiter = field(default_factory=RateLimiter.for_reccobeats)

    @classmethod
    def from_settings(
        cls,
        musicbrainz_interval: float,
        coverartarchive_interval: float,
        reccobeats_interval: float,
    ) -> "ProviderRateLimiters":
        """Build limiters from the configured minimum intervals."""
        return cls(
            musicbrainz=RateLimiter.for_musicbrainz(musicbrainz_interval),
            coverartarchive=RateLimiter.for_coverartarchive(coverartarchive_interval),
            reccobeats=RateLimiter.for_reccobeats(reccobeats_interval),
        )


__all__ = [
    "ProviderRateLimiters",
    "RateLimiter",
    "RateLimiterConfig",
]
