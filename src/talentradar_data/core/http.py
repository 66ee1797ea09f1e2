"""
HTTP client infrastructure for the API-Football integration.

Provides ApiFootballHttpClient with request spacing, exponential-backoff
retries and detection of the vendor's error bodies. Every outbound request
is recorded on an injected call counter (the population run's budget).

Usage:
    async with ApiFootballHttpClient.from_settings(settings, budget=budget) as http:
        payload = await http.get("/leagues", {"id": 39})
        if payload is None:
            ...  # transient failure after retries, treat as "no data"
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ExternalAPIError(Exception):
    """Base exception for external API errors."""

    def __init__(
        self,
        message: str,
        code: str = "EXTERNAL_API_ERROR",
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class DailyLimitExceededError(ExternalAPIError):
    """The vendor's daily request quota is used up. Never retried."""

    def __init__(self, message: str):
        super().__init__(message, code="DAILY_LIMIT_EXCEEDED", status_code=429)


# ---------------------------------------------------------------------------
# Error body classification
# ---------------------------------------------------------------------------

DAILY_LIMIT_PHRASES = (
    "request limit for the day",
    "daily limit",
    "reached the request limit",
)

RETRYABLE_ERROR_PHRASES = (
    "rate limit",
    "too many requests",
    "quota exceeded",
    "temporarily unavailable",
    "service unavailable",
    "timeout",
)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 502, 503, 504})


def extract_error_messages(errors: Any) -> list[str]:
    """
    Flatten the ``errors`` member of an API-Football envelope.

    The vendor sends either a list of strings or an object such as
    ``{"requests": "You have reached the request limit for the day"}``.
    An empty list/object means no error.
    """
    if not errors:
        return []
    if isinstance(errors, dict):
        return [f"{key}: {value}" for key, value in errors.items()]
    if isinstance(errors, (list, tuple)):
        return [str(item) for item in errors if item]
    return [str(errors)]


def is_daily_limit_error(messages: list[str]) -> bool:
    """Check if any error message reports the daily quota as exhausted."""
    lowered = [m.lower() for m in messages]
    return any(phrase in m for m in lowered for phrase in DAILY_LIMIT_PHRASES)


def is_retryable_error(messages: list[str]) -> bool:
    """Check if an error body describes a transient condition."""
    if is_daily_limit_error(messages):
        return False
    lowered = [m.lower() for m in messages]
    return any(phrase in m for m in lowered for phrase in RETRYABLE_ERROR_PHRASES)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

class RequestCounter(Protocol):
    """Anything that wants to be told about each request sent."""

    def record(self) -> None: ...


class RateLimiter:
    """
    Spaces requests apart, backing off exponentially on retries.

    Attempt 1 waits until ``interval`` has passed since the previous request;
    attempt N > 1 waits ``retry_base_delay * 2 ** (N - 2)``. Waits can be cut
    short with ``interrupt()``, after which callers proceed immediately.
    """

    def __init__(self, interval: float = 0.15, retry_base_delay: float = 3.0):
        self.interval = interval
        self.retry_base_delay = retry_base_delay
        self._last_request = 0.0
        self._lock = asyncio.Lock()
        self._interrupted = asyncio.Event()

    def required_delay(self, attempt: int) -> float:
        """Minimum spacing before the given attempt (1-based)."""
        if attempt <= 1:
            return self.interval
        return self.retry_base_delay * (2 ** (attempt - 2))

    async def acquire(self, attempt: int = 1) -> None:
        """Wait until we can make a request."""
        async with self._lock:
            required = self.required_delay(attempt)
            if attempt > 1:
                logger.info(
                    "Retry attempt %d: using exponential backoff delay of %.2fs",
                    attempt,
                    required,
                )
            elapsed = time.monotonic() - self._last_request
            if elapsed < required:
                await self.pause(required - elapsed)
            self._last_request = time.monotonic()

    async def pause(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless interrupted first."""
        if seconds <= 0 or self._interrupted.is_set():
            return
        try:
            await asyncio.wait_for(self._interrupted.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        logger.warning("Rate limiting interrupted (likely shutdown), continuing without delay")

    def interrupt(self) -> None:
        """Wake every pending wait; later waits return immediately."""
        self._interrupted.set()

    def reset(self) -> None:
        """Re-arm waits after an interrupt."""
        self._interrupted.clear()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ApiFootballHttpClient:
    """
    Async GET client for API-Football with rate limiting and retries.

    ``get()`` returns the decoded envelope, or ``None`` when the call failed
    after retries or was rejected with a non-retryable error. The only
    exception it raises on purpose is DailyLimitExceededError.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None,
        api_host: str,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        budget: RequestCounter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._default_headers = {
            "x-rapidapi-key": api_key or "",
            "x-rapidapi-host": api_host,
        }
        self._rate_limiter = rate_limiter or RateLimiter()
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._budget = budget
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not api_key:
            logger.warning("API_FOOTBALL_KEY not set - API calls will fail")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        budget: RequestCounter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ApiFootballHttpClient":
        return cls(
            base_url=settings.api_football_base_url,
            api_key=settings.api_football_key,
            api_host=settings.api_football_host,
            rate_limiter=RateLimiter(settings.request_interval, settings.retry_base_delay),
            timeout=settings.request_timeout,
            max_attempts=settings.max_retry_attempts,
            budget=budget,
            transport=transport,
        )

    # -- Lifecycle -----------------------------------------------------------

    async def __aenter__(self) -> "ApiFootballHttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the HTTP client, lazily creating it if needed."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._default_headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def attach_budget(self, budget: RequestCounter | None) -> None:
        """Route request accounting to ``budget`` from now on."""
        self._budget = budget

    def interrupt(self) -> None:
        self._rate_limiter.interrupt()

    def reset_interrupt(self) -> None:
        self._rate_limiter.reset()

    async def pause(self, seconds: float) -> None:
        """Interruptible sleep shared with the request spacing."""
        await self._rate_limiter.pause(seconds)

    # -- HTTP ----------------------------------------------------------------

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        GET an endpoint with retry logic and rate limiting.

        Raises:
            DailyLimitExceededError: If the API reports the daily quota as used up
        """
        for attempt in range(1, self._max_attempts + 1):
            await self._rate_limiter.acquire(attempt)
            if self._budget is not None:
                self._budget.record()

            try:
                response = await self.client.get(endpoint, params=params)
            except httpx.RequestError as e:
                logger.error(
                    "Request error during API call to %s (attempt %d): %s", endpoint, attempt, e
                )
                self._log_retry(attempt, "Request error")
                continue
            except Exception as e:
                logger.error(
                    "Unexpected error during API call to %s (attempt %d): %s", endpoint, attempt, e
                )
                self._log_retry(attempt, "Unexpected error")
                continue

            status = response.status_code
            if status >= 400:
                if status >= 500 or status in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "HTTP %d during API call to %s (attempt %d)", status, endpoint, attempt
                    )
                    self._log_retry(attempt, f"HTTP {status}")
                    continue
                logger.error("Non-retryable HTTP %d for endpoint %s", status, endpoint)
                return None

            try:
                payload = response.json()
            except ValueError as e:
                logger.error("Invalid JSON from %s (attempt %d): %s", endpoint, attempt, e)
                self._log_retry(attempt, "Invalid JSON")
                continue

            if not isinstance(payload, dict):
                logger.error("Unexpected payload type from %s: %s", endpoint, type(payload).__name__)
                return None

            messages = extract_error_messages(payload.get("errors"))
            if messages:
                logger.error("API returned errors for %s: %s", endpoint, messages)
                if is_daily_limit_error(messages):
                    raise DailyLimitExceededError(f"Daily API limit reached: {messages}")
                if is_retryable_error(messages):
                    self._log_retry(attempt, "Retryable API error")
                    continue
                return None

            if attempt > 1:
                logger.info("API call succeeded on attempt %d", attempt)
            return payload

        logger.error(
            "Max retry attempts (%d) reached for endpoint: %s", self._max_attempts, endpoint
        )
        return None

    def _log_retry(self, attempt: int, reason: str) -> None:
        if attempt < self._max_attempts:
            logger.warning(
                "%s detected, attempting retry %d of %d", reason, attempt + 1, self._max_attempts
            )
