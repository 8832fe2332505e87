"""
Shared HTTP client utilities: configured AsyncClient, transient retry helper
and the rate limiter shared by every generator call.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from src.core.config import settings
from src.core.error_handling import (
    GeneratorUnavailableError,
    TransientGeneratorError,
    request_id_var,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_async_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Create a configured AsyncClient with shared limits/timeouts."""
    return httpx.AsyncClient(
        timeout=timeout or settings.HTTP_CLIENT_TIMEOUT,
        limits=httpx.Limits(
            max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS,
            max_connections=settings.HTTP_MAX_CONNECTIONS,
        ),
    )


async def call_with_transient_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    timeout: Optional[float] = None,
    max_attempts: Optional[int] = None,
    backoff_base: Optional[float] = None,
    description: str = "generator call",
) -> T:
    """
    Run ``operation`` with a per-call timeout and bounded exponential backoff.

    - A call exceeding ``timeout`` is cancelled and counted as transient.
    - ``TransientGeneratorError`` is retried; every other exception propagates
      unchanged (configuration errors must fail immediately).
    - Raises ``GeneratorUnavailableError`` once the budget is spent.
    """
    attempts = max_attempts or settings.GENERATOR_TRANSIENT_ATTEMPTS
    call_timeout = timeout or settings.GENERATOR_TIMEOUT_SECONDS
    base = settings.GENERATOR_BACKOFF_SECONDS if backoff_base is None else backoff_base
    req_id = request_id_var.get()
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=call_timeout)
        except asyncio.TimeoutError as exc:
            last_error = TransientGeneratorError(f"{description} timed out after {call_timeout:.0f}s")
            last_error.__cause__ = exc
        except TransientGeneratorError as exc:
            last_error = exc

        if attempt == attempts:
            break

        delay = base * math.pow(2, attempt - 1)
        logger.warning(
            f"[{req_id}] Transient failure on {description} attempt {attempt}/{attempts}: "
            f"{last_error}; sleeping {delay:.2f}s"
        )
        await asyncio.sleep(delay)

    logger.error(f"[{req_id}] {description} failed after {attempts} transient attempts: {last_error}")
    raise GeneratorUnavailableError(
        f"{description} failed after {attempts} attempts: {last_error}"
    ) from last_error


@asynccontextmanager
async def get_managed_client(
    persistent_client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None
):
    """
    Context manager for HTTP client lifecycle.

    Reuses persistent client if provided, creates temporary otherwise.

    Example:
        async with get_managed_client(self._client, self.timeout) as client:
            response = await client.post(url, ...)
    """
    should_close = persistent_client is None
    client = persistent_client or get_async_client(timeout=timeout)
    try:
        yield client
    finally:
        if should_close:
            await client.aclose()


class RateLimiter:
    """Generic rate limiter shared by every caller of one upstream generator."""

    def __init__(self, min_interval: float):
        """
        Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between requests
        """
        self.min_interval = min_interval
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def wait_if_needed(self):
        """Wait if necessary to maintain rate limit."""
        async with self._lock:
            current_time = time.monotonic()
            time_since_last = current_time - self._last_request_time
            if self._last_request_time and time_since_last < self.min_interval:
                wait_time = self.min_interval - time_since_last
                logger.debug(f"Rate limiting: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self._last_request_time = time.monotonic()
