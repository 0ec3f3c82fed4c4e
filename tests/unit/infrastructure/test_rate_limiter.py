"""Tests for the token-bucket rate limiter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from trackresolver.infrastructure.rate_limiter import (
    ProviderRateLimiters,
    RateLimiter,
    RateLimiterConfig,
)


@pytest.fixture
def sleep(mocker: MagicMock) -> AsyncMock:
    return mocker.patch(
        "trackresolver.infrastructure.rate_limiter.asyncio.sleep", new_callable=AsyncMock
    )


class _Clock:
    """Monotonic clock that only moves when the limiter sleeps."""

    def __init__(self) -> None:
        self.now = 1000.0

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        # always moves forward, even for a rounding-sized wait
        self.now += max(seconds, 0.001)


@pytest.fixture
def clock(mocker: MagicMock) -> _Clock:
    clock = _Clock()
    mocker.patch("trackresolver.infrastructure.rate_limiter.time", clock)
    mocker.patch(
        "trackresolver.infrastructure.rate_limiter.asyncio.sleep",
        new_callable=AsyncMock,
        side_effect=clock.sleep,
    )
    return clock

class TestRateLimiter:
    """Test token acquisition and 429 backoff."""

    async def test_first_acquire_does_not_wait(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter.for_musicbrainz(1.1)

        await limiter.acquire()

        sleep.assert_not_awaited()

    async def test_second_acquire_waits_for_refill(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter(RateLimiterConfig(max_tokens=1, refill_rate=0.5))
        await limiter.acquire()

        async def refill(_: float) -> None:
            limiter._tokens = 1.0

        sleep.side_effect = refill
        await limiter.acquire()

        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(2.0, abs=0.01)

    async def test_zero_interval_never_throttles(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter.for_reccobeats(0.0)

        for _ in range(5):
            await limiter.acquire()

        sleep.assert_not_awaited()

    async def test_backoff_doubles_and_is_capped(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter(
            RateLimiterConfig(
                initial_backoff_seconds=1.0, backoff_multiplier=2.0, max_backoff_seconds=3.0
            )
        )

        waits = [await limiter.handle_rate_limit_response() for _ in range(4)]

        assert waits == [1.0, 2.0, 3.0, 3.0]

    async def test_retry_after_header_wins(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter.for_musicbrainz()

        wait = await limiter.handle_rate_limit_response(retry_after=7.0)

        assert wait == 7.0
        sleep.assert_awaited_with(7.0)

    async def test_successful_request_resets_backoff(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter.for_coverartarchive(0.0)
        await limiter.handle_rate_limit_response()
        assert limiter.current_backoff == 2.0

        async with limiter:
            pass

        assert limiter.current_backoff == 1.0


class TestProviderRateLimiters:
    """Test the per-provider set."""

    def test_from_settings(self) -> None:
        limiters = ProviderRateLimiters.from_settings(1.1, 0.2, 0.0)

        assert limiters.musicbrainz.name == "musicbrainz"
        assert limiters.musicbrainz.config.refill_rate == pytest.approx(1 / 1.1)
        assert limiters.coverartarchive.config.refill_rate == pytest.approx(5.0)
        assert limiters.reccobeats.config.refill_rate == float("inf")

    def test_each_set_has_its_own_buckets(self) -> None:
        assert ProviderRateLimiters().musicbrainz is not ProviderRateLimiters().musicbrainz

    async def test_concurrent_callers_are_spaced_by_the_interval(self, clock: _Clock) -> None:
        """Workers hitting MusicBrainz at once still go out min_interval apart."""
        limiter = ProviderRateLimiters.from_settings(1.1, 0.2, 0.2).musicbrainz
        limiter._last_refill = clock.now
        sent_at: list[float] = []

        async def request() -> None:
            await limiter.acquire()
            sent_at.append(clock.now)

        await asyncio.gather(request(), request(), request())

        gaps = [later - earlier for earlier, later in zip(sent_at, sent_at[1:])]
        assert len(gaps) == 2
        assert all(gap >= 1.1 - 1e-9 for gap in gaps)
