"""Platform adapter contract with shared HTTP retry and staleness cache."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from codenotify.config import Settings
from codenotify.contests.enums import Platform
from codenotify.contests.schemas import RawContest
from codenotify.errors import UpstreamMalformed, UpstreamUnavailable

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def epoch_seconds(value: Any) -> float | None:
    """Read an upstream epoch value; None when it is missing or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for all platform adapters."""
    return httpx.AsyncClient(
        headers={"User-Agent": settings.http_user_agent, "Accept": "application/json"},
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    )


class PlatformAdapter(ABC):
    """Fetches the contest list of one platform.

    Subclasses implement ``_fetch`` with one (or a small bounded number of)
    upstream calls made through ``_request``, which owns the retry budget:
    transport errors, 5xx and 429 are retried with capped exponential
    backoff; other 4xx fail immediately; undecodable bodies raise
    ``UpstreamMalformed`` without retrying.
    """

    platform: Platform

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.settings = settings
        self._sleep = sleep
        self._clock = clock
        self._cache: tuple[float, list[RawContest]] | None = None

    async def fetch_contests(self, force_sync: bool = False) -> list[RawContest]:
        """Return the platform's current contest list, served from cache while fresh."""
        ttl = self.settings.platform_cache_ttl_seconds
        if not force_sync and self._cache is not None and ttl > 0:
            fetched_at, cached = self._cache
            if self._clock() - fetched_at < ttl:
                logger.debug("Serving %s contests from cache (%d items)", self.platform.value, len(cached))
                return list(cached)

        contests = await self._fetch()
        self._cache = (self._clock(), contests)
        logger.info("Fetched %d contests from %s", len(contests), self.platform.value)
        return list(contests)

    def clear_cache(self) -> None:
        self._cache = None

    @abstractmethod
    async def _fetch(self) -> list[RawContest]:
        """Call the upstream endpoint and return platform-native contest payloads."""
        ...

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Issue a request with the configured retry budget and return decoded JSON."""
        attempts = max(1, self.settings.http_retry_attempts)
        delay = self.settings.http_retry_delay_seconds
        max_delay = self.settings.http_retry_max_delay_seconds
        last_error = ""
        status_code: int | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                status_code = None
            else:
                if response.is_success:
                    return self._decode(response)
                status_code = response.status_code
                last_error = f"HTTP {status_code}"
                if status_code < 500 and status_code != 429:
                    raise UpstreamUnavailable(self.platform.value, last_error, status_code)

            if attempt < attempts:
                wait = min(delay, max_delay)
                logger.warning(
                    "%s request failed (%s), attempt %d/%d, retrying in %.1fs",
                    self.platform.value, last_error, attempt, attempts, wait,
                )
                await self._sleep(wait)
                delay *= 2

        raise UpstreamUnavailable(
            self.platform.value,
            f"{last_error} after {attempts} attempts",
            status_code,
        )

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamMalformed(self.platform.value, f"invalid JSON body: {exc}") from exc

    def _expect_list(self, value: Any, what: str) -> list[RawContest]:
        if not isinstance(value, list):
            raise UpstreamMalformed(self.platform.value, f"expected a list of {what}, got {type(value).__name__}")
        return value
