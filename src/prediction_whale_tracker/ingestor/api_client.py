"""Async client for the public Polymarket and Kalshi endpoints.

Both poll targets are plain JSON-over-HTTP APIs. The client adds a shared
rate limiter and retry with exponential backoff on transient errors; it
returns the decoded JSON untouched and leaves shape checks to the normalizer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import httpx

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Constants
DEFAULT_POLYMARKET_DATA_API_URL = "https://data-api.polymarket.com"
DEFAULT_KALSHI_API_URL = "https://api.elections.kalshi.com/trade-api/v2"
DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_REQUESTS_PER_SECOND = 5.0

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class RateLimiter:
    """Minimum-interval rate limiter for API requests."""

    def __init__(self, max_requests_per_second: float = MAX_REQUESTS_PER_SECOND) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Maximum requests allowed per second.
        """
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class ApiClientError(Exception):
    """Base exception for API client errors."""


class ApiTransientError(ApiClientError):
    """Raised for retryable errors (429/5xx, network issues)."""


class RetryError(ApiClientError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


def with_retry(
    max_retries: int | None = None,
    base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    retry_on: tuple[type[Exception], ...] = (ApiTransientError,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator adding retry with exponential backoff to client coroutines.

    Args:
        max_retries: Maximum number of retry attempts. When None, the bound
            instance's ``max_retries`` attribute is used.
        base_delay: Base delay in seconds (doubles with each retry).
        retry_on: Tuple of exception types to retry on.

    Returns:
        Decorated coroutine function with retry logic.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            retries = max_retries
            if retries is None:
                retries = getattr(args[0], "max_retries", DEFAULT_MAX_RETRIES) if args else 0
            delay_base = getattr(args[0], "retry_base_delay", base_delay) if args else base_delay
            last_exception: Exception | None = None

            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt == retries:
                        break

                    delay = delay_base * (2**attempt)
                    logger.warning(
                        "Attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                        attempt + 1,
                        retries + 1,
                        str(e),
                        delay,
                    )
                    await asyncio.sleep(delay)

            raise RetryError(
                f"All {retries + 1} attempts failed for {func.__name__}",
                last_exception=last_exception,
            )

        return wrapper

    return decorator


class PredictionMarketClient:
    """HTTP client for the recent-trades poll targets.

    Example:
        ```python
        async with PredictionMarketClient() as client:
            trades = await client.fetch_polymarket_trades(limit=200)
            markets = await client.fetch_kalshi_markets(limit=200)
        ```
    """

    def __init__(
        self,
        *,
        polymarket_url: str = DEFAULT_POLYMARKET_DATA_API_URL,
        kalshi_url: str = DEFAULT_KALSHI_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        requests_per_second: float = MAX_REQUESTS_PER_SECOND,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            polymarket_url: Polymarket data API host.
            kalshi_url: Kalshi trade API base URL.
            timeout_seconds: Per-request timeout.
            max_retries: Retry attempts for transient failures.
            retry_base_delay: Base backoff delay in seconds.
            requests_per_second: Rate limit shared by both APIs.
            transport: Optional httpx transport (used by tests).
        """
        self._polymarket_url = polymarket_url.rstrip("/")
        self._kalshi_url = kalshi_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._rate_limiter = RateLimiter(requests_per_second)
        self._http = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

        logger.info(
            "Initialized PredictionMarketClient (polymarket=%s, kalshi=%s, rate_limit=%.1f req/s)",
            self._polymarket_url,
            self._kalshi_url,
            requests_per_second,
        )

    async def __aenter__(self) -> PredictionMarketClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    @with_retry()
    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        await self._rate_limiter.acquire()
        try:
            response = await self._http.get(url, params=params)
        except httpx.TransportError as e:
            raise ApiTransientError(f"GET {url} failed: {e}") from e

        if response.status_code in RETRY_STATUS_CODES:
            raise ApiTransientError(f"GET {url} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ApiClientError(f"GET {url} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ApiClientError(f"GET {url} returned invalid JSON: {e}") from e

    async def fetch_polymarket_trades(self, *, limit: int = 200) -> Any:
        """Fetch the most recent Polymarket trades (raw JSON)."""
        return await self._get_json(f"{self._polymarket_url}/trades", {"limit": limit})

    async def fetch_kalshi_markets(self, *, limit: int = 200, status: str = "open") -> Any:
        """Fetch Kalshi markets (raw JSON, ``{"markets": [...]}``)."""
        return await self._get_json(
            f"{self._kalshi_url}/markets",
            {"limit": limit, "status": status},
        )
