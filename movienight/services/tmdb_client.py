"""Async TMDb HTTP client with caching, rate limiting and retries."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Mapping

import httpx

from movienight.core.config import Settings, get_settings
from movienight.services.cache import MISSING, ResponseCache, make_cache_key
from movienight.services.rate_limit import SlidingWindowRateLimiter
from movienight.services.retry import RetryPolicy, execute_with_retry


logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base exception for TMDb-related failures."""


class ConfigError(CatalogError):
    """Raised when the TMDb credential is not configured."""


class UpstreamError(CatalogError):
    """Raised when TMDb still answers non-2xx after the retry budget."""

    def __init__(self, status: int, status_text: str, body: str = "") -> None:
        self.status = status
        self.status_text = status_text
        self.body = body
        super().__init__(f"TMDB {status} {status_text} {body}".strip())


class TransportError(CatalogError):
    """Raised when every attempt failed before a response arrived."""


def serialize_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop unset values and render the rest the way TMDb expects them."""

    query: dict[str, str] = {}
    for key, value in sorted((params or {}).items()):
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            query[key] = ",".join(str(item) for item in value)
        else:
            query[key] = str(value)
    return query


class CatalogClient:
    """Single "GET JSON from endpoint" primitive over the TMDb v3 API.

    The cache and the limiter belong to the instance; build one client per
    process and share it between callers.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        cache: ResponseCache | None = None,
        limiter: SlidingWindowRateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.api_key = api_key if api_key is not None else settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip("/")
        self.timeout = timeout or settings.tmdb_timeout
        self.cache = cache or ResponseCache(settings.cache_capacity)
        self.limiter = limiter or SlidingWindowRateLimiter(
            settings.rate_limit_requests, settings.rate_limit_interval
        )
        self.retry_policy = retry_policy or RetryPolicy()
        self._http = http_client
        self._owns_http = http_client is None
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout, headers={"accept": "application/json"}
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def get(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        ttl: float | None = None,
    ) -> Any:
        """Fetch ``endpoint`` and return the decoded JSON body.

        With ``ttl`` (seconds) a fresh cached body is returned without touching
        the network, and a successful response is stored for that long.
        """

        if not self.api_key:
            raise ConfigError("TMDB_API_KEY is not configured")
        endpoint = endpoint.strip("/")
        cache_key = make_cache_key(endpoint, params)
        if ttl:
            cached = self.cache.get(cache_key, MISSING)
            if cached is not MISSING:
                logger.debug("TMDb cache hit: %s", cache_key)
                return cached

        await self.limiter.acquire()
        url = f"{self.base_url}/{endpoint}"
        query = serialize_params(params)
        query["api_key"] = self.api_key

        try:
            response = await execute_with_retry(
                lambda: self._client().get(url, params=query),
                self.retry_policy,
                sleep=self._sleep,
                rng=self._rng,
            )
        except httpx.TransportError as exc:
            raise TransportError(f"TMDB request to {endpoint} failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(response.status_code, response.reason_phrase, response.text)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(response.status_code, "Invalid JSON", response.text) from exc
        if ttl:
            self.cache.set(cache_key, data, ttl)
        return data
