"""Best-effort AI re-ranking of discovery candidates through an external scorer."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Sequence

import httpx

from movienight.core.config import Settings, get_settings
from movienight.services.models import DiscoveryCriteria, MovieRecord, RankedCandidate
from movienight.services.retry import Backoff, RetryPolicy, execute_with_retry


logger = logging.getLogger(__name__)

MAX_CANDIDATES = 40
DESCRIPTION_LIMIT = 280

CURATION_RETRY = RetryPolicy(
    max_attempts=2,
    status_backoff=Backoff(base=0.25, ceiling=0.5),
    network_backoff=Backoff(base=0.25, ceiling=0.5),
)


def truncate(text: str | None, limit: int = DESCRIPTION_LIMIT) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def candidate_payload(movie: MovieRecord) -> dict[str, Any]:
    return {
        "title": movie.title,
        "description": truncate(movie.description),
        "actors": list(movie.actors),
        "director": movie.director,
    }


def original_order(total: int, count: int) -> list[RankedCandidate]:
    return [RankedCandidate(index=i) for i in range(min(total, count))]


def parse_ranking(payload: Any, total: int, count: int) -> list[RankedCandidate]:
    """Sort valid ``{"idx", "score"}`` entries by score; unusable payloads keep input order."""

    entries = payload.get("ranked") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        return original_order(total, count)
    ranked: list[RankedCandidate] = []
    seen: set[int] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        idx, score = entry.get("idx"), entry.get("score")
        if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < total:
            continue
        if isinstance(score, bool) or not isinstance(score, (int, float)) or idx in seen:
            continue
        seen.add(idx)
        ranked.append(RankedCandidate(index=idx, score=float(score)))
    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked[:count] or original_order(total, count)


def reorder(candidates: Sequence[MovieRecord], ranked: Sequence[RankedCandidate]) -> list[MovieRecord]:
    return [candidates[r.index] for r in ranked if 0 <= r.index < len(candidates)]


class CurationHook:
    """Client for the rerank service.

    Without a credential or URL the hook keeps the original order; any failure
    along the way does the same and is only logged.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy = CURATION_RETRY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.url = url or settings.curation_url
        self.api_key = api_key or settings.curation_api_key
        self.timeout = timeout or settings.curation_timeout
        self.retry_policy = retry_policy
        self._http = http_client
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        headers = {"authorization": f"Bearer {self.api_key}"}
        if self._http is not None:
            return await self._http.post(self.url, json=body, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json=body, headers=headers)

    async def rerank(
        self,
        criteria: DiscoveryCriteria,
        candidates: Sequence[MovieRecord],
        count: int | None = None,
    ) -> list[RankedCandidate]:
        pool = list(candidates)[:MAX_CANDIDATES]
        count = len(pool) if count is None else count
        if not pool or not self.enabled:
            return original_order(len(pool), count)

        body = {
            "criteria": asdict(criteria),
            "candidates": [candidate_payload(movie) for movie in pool],
        }
        try:
            response = await execute_with_retry(
                lambda: self._post(body), self.retry_policy, sleep=self._sleep
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Curation unavailable, keeping original order: %s", exc)
            return original_order(len(pool), count)
        if not response.is_success:
            logger.warning("Curation returned %s, keeping original order", response.status_code)
            return original_order(len(pool), count)
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Curation returned non-JSON body, keeping original order")
            return original_order(len(pool), count)
        return parse_ranking(payload, len(pool), count)
