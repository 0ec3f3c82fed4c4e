"""Tests for the HTTP retry policy and error classification."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from trackresolver.domain.exceptions import ExternalServiceError, RateLimitExceededError
from trackresolver.infrastructure.rate_limiter import RateLimiter
from trackresolver.infrastructure.retry_policy import (
    RetryPolicy,
    classify_http_error,
    parse_retry_after,
)

REQUEST = httpx.Request("GET", "https://musicbrainz.org/ws/2/recording")


def _response(status: int, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, headers=headers, request=REQUEST)


@pytest.fixture
def sleep(mocker: MagicMock) -> AsyncMock:
    return mocker.patch(
        "trackresolver.infrastructure.retry_policy.asyncio.sleep", new_callable=AsyncMock
    )


class TestRetryPolicy:
    """Test bounded retries."""

    async def test_success_is_returned_immediately(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(return_value=_response(200))

        response = await RetryPolicy().call(operation)

        assert response.status_code == 200
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    async def test_5xx_is_retried_once(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=[_response(503), _response(200)])

        response = await RetryPolicy(max_retries=1, retry_delay=0.5).call(operation)

        assert response.status_code == 200
        assert operation.await_count == 2
        sleep.assert_awaited_once_with(0.5)

    async def test_last_response_returned_when_retries_run_out(
        self, sleep: AsyncMock
    ) -> None:
        operation = AsyncMock(return_value=_response(502))

        response = await RetryPolicy(max_retries=1).call(operation)

        assert response.status_code == 502
        assert operation.await_count == 2

    async def test_4xx_is_not_retried(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(return_value=_response(404))

        response = await RetryPolicy(max_retries=3).call(operation)

        assert response.status_code == 404
        operation.assert_awaited_once()

    async def test_429_uses_limiter_backoff(self, sleep: AsyncMock) -> None:
        limiter = RateLimiter.for_musicbrainz(0.0)
        limiter.handle_rate_limit_response = AsyncMock(return_value=3.0)  # type: ignore[method-assign]
        operation = AsyncMock(
            side_effect=[_response(429, {"Retry-After": "3"}), _response(200)]
        )

        response = await RetryPolicy().call(operation, rate_limiter=limiter)

        assert response.status_code == 200
        limiter.handle_rate_limit_response.assert_awaited_once_with(3.0)
        sleep.assert_not_awaited()

    async def test_transport_error_becomes_retryable_domain_error(
        self, sleep: AsyncMock
    ) -> None:
        operation = AsyncMock(side_effect=httpx.ConnectError("refused", request=REQUEST))

        with pytest.raises(ExternalServiceError) as exc_info:
            await RetryPolicy(max_retries=1).call(operation, provider="musicbrainz")

        assert exc_info.value.retryable
        assert exc_info.value.provider == "musicbrainz"
        assert operation.await_count == 2

    async def test_transport_error_then_success(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(
            side_effect=[httpx.ReadTimeout("slow", request=REQUEST), _response(200)]
        )

        response = await RetryPolicy().call(operation)

        assert response.status_code == 200


class TestClassification:
    """Test status code classification."""

    @pytest.mark.parametrize(
        ("status", "retryable"), [(500, True), (503, True), (400, False), (403, False)]
    )
    def test_classify_http_error(self, status: int, retryable: bool) -> None:
        response = _response(status)
        exc = httpx.HTTPStatusError("boom", request=REQUEST, response=response)

        error = classify_http_error("musicbrainz", exc)

        assert error.retryable is retryable
        assert error.status_code == status

    def test_429_is_rate_limit_error(self) -> None:
        response = _response(429)
        exc = httpx.HTTPStatusError("boom", request=REQUEST, response=response)

        assert isinstance(classify_http_error("musicbrainz", exc), RateLimitExceededError)

    @pytest.mark.parametrize(
        ("header", "expected"),
        [("5", 5.0), ("-1", 0.0), ("Wed, 21 Oct 2026 07:28:00 GMT", None), (None, None)],
    )
    def test_parse_retry_after(self, header: str | None, expected: float | None) -> None:
        headers = {"Retry-After": header} if header is not None else None
        assert parse_retry_after(_response(429, headers)) == expected
