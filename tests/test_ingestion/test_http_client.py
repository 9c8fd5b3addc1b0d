"""Tests for HTTPClient retry behaviour."""

import httpx
import pytest
import respx

from profile_monitor.ingestion.http_client import (
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RetryConfig,
)

URL = "https://api.example.com/profile"


def _fast(max_retries: int = 2) -> RetryConfig:
    return RetryConfig(max_retries=max_retries, base_delay=0, jitter_factor=0)


class TestRetryConfig:
    def test_backoff_is_exponential_and_capped(self):
        config = RetryConfig(base_delay=1.0, max_backoff_seconds=3.0, jitter_factor=0)

        assert config.calculate_backoff(0) == 1.0
        assert config.calculate_backoff(1) == 2.0
        assert config.calculate_backoff(5) == 3.0

    def test_retryable_statuses(self):
        config = RetryConfig()

        assert config.is_retryable_status(429)
        assert config.is_retryable_status(503)
        assert not config.is_retryable_status(404)


class TestHTTPClient:
    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        with pytest.raises(RuntimeError):
            await HTTPClient().get(URL)

    @respx.mock
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        route = respx.get(URL).mock(
            side_effect=[httpx.Response(503), httpx.Response(200, json={"status": True})]
        )

        async with HTTPClient(_fast()) as client:
            response = await client.get(URL, params={"username": "alpha"})

        assert response.status_code == 200
        assert route.call_count == 2
        assert route.calls.last.request.url.params["username"] == "alpha"

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self):
        respx.get(URL).mock(return_value=httpx.Response(429))

        async with HTTPClient(_fast(max_retries=1)) as client:
            with pytest.raises(RateLimitError):
                await client.get(URL)

    @respx.mock
    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        route = respx.get(URL).mock(return_value=httpx.Response(404, text="missing"))

        async with HTTPClient(_fast()) as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get(URL)

        assert exc_info.value.status_code == 404
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_timeouts_retried_then_raised(self):
        route = respx.get(URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        async with HTTPClient(_fast(max_retries=2)) as client:
            with pytest.raises(HTTPClientError):
                await client.get(URL)

        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_default_headers_sent(self):
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        async with HTTPClient(_fast(), headers={"User-Agent": "test-agent"}) as client:
            await client.get(URL)

        assert route.calls.last.request.headers["User-Agent"] == "test-agent"
