"""
Retrying HTTP GET for the upstream provider.

The provider is flaky in two ways: it sheds load with 429/5xx and it
occasionally stalls past the request timeout. Both are retried here with
exponential backoff. Spacing requests across identities is the shared
``RateLimiter``'s job, not this module's.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


@dataclass
class RetryConfig:
    """
    Backoff policy: ``min(max_backoff, base_delay * 2**attempt)`` plus up to
    ``jitter_factor`` of that as random jitter.
    """

    max_retries: int = 2
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """Seconds to sleep before retry number ``attempt`` (0-indexed)."""
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay * (1 + self.jitter_factor * random.random())

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in RETRYABLE_STATUSES


class HTTPClientError(Exception):
    """A request failed for good: non-retryable status or retries used up."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """The provider kept answering 429 until retries ran out."""


class HTTPClient:
    """
    httpx.AsyncClient wrapper whose ``get`` retries transient failures.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=15.0) as client:
            response = await client.get(url, params={"username": "alpha"})
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _backoff(self, attempt: int, url: str, reason: str) -> None:
        delay = self.retry_config.calculate_backoff(attempt)
        logger.warning(
            "%s from %s (attempt %d/%d), retrying in %.2fs",
            reason, url, attempt + 1, self.retry_config.max_retries + 1, delay,
        )
        await asyncio.sleep(delay)

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        GET ``url``, retrying 429/5xx answers and transport errors.

        Raises:
            RateLimitError: Still rate limited after the last attempt.
            HTTPClientError: Any other failure that survived the retries,
                or a 4xx that is not worth retrying.
        """
        if self._client is None:
            raise RuntimeError("HTTPClient must be used as an async context manager")

        attempts = self.retry_config.max_retries + 1
        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1

            try:
                response = await self._client.get(url, params=params, headers=headers)
            except _TRANSIENT_ERRORS as e:
                if last_attempt:
                    raise HTTPClientError(
                        f"GET {url} failed after {attempts} attempts: {e}"
                    ) from e
                await self._backoff(attempt, url, type(e).__name__)
                continue

            status_code = response.status_code
            if self.retry_config.is_retryable_status(status_code):
                if not last_attempt:
                    await self._backoff(attempt, url, f"HTTP {status_code}")
                    continue
                error_cls = RateLimitError if status_code == 429 else HTTPClientError
                raise error_cls(
                    f"GET {url} returned {status_code} after {attempts} attempts",
                    status_code=status_code,
                    response_body=response.text,
                )

            if status_code >= 400:
                raise HTTPClientError(
                    f"GET {url} returned {status_code}",
                    status_code=status_code,
                    response_body=response.text,
                )
            return response

        # Unreachable: the final attempt always returns or raises
        raise HTTPClientError(f"GET {url} made no attempt")
