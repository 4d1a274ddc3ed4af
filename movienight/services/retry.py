"""Reusable retry policy for outbound HTTP calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx


logger = logging.getLogger(__name__)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code <= 599


@dataclass(frozen=True)
class Backoff:
    base: float
    ceiling: float

    def delay(self, attempt: int, jitter: float) -> float:
        return min(self.base * (2**attempt), self.ceiling) + jitter


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    Status-class failures (429/5xx) and network failures back off on separate
    curves; both add up to ``max_jitter`` seconds of random jitter.
    """

    max_attempts: int = 3
    status_backoff: Backoff = Backoff(base=1.0, ceiling=4.0)
    network_backoff: Backoff = Backoff(base=0.5, ceiling=3.0)
    max_jitter: float = 0.25
    retryable_status: Callable[[int], bool] = is_retryable_status


async def execute_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: random.Random | None = None,
) -> httpx.Response:
    """Run ``send`` until it yields a non-retryable response or attempts run out.

    Returns the last response, which may still carry a retryable status when the
    budget is exhausted. Re-raises the last ``httpx.TransportError`` if every
    attempt failed at the network level.
    """

    rng = rng or random.Random()
    last_exc: httpx.TransportError | None = None
    response: httpx.Response | None = None
    for attempt in range(policy.max_attempts):
        try:
            response = await send()
        except httpx.TransportError as exc:
            last_exc = exc
            response = None
            backoff = policy.network_backoff
            logger.warning("Attempt %d failed at network level: %s", attempt + 1, exc)
        else:
            last_exc = None
            if not policy.retryable_status(response.status_code):
                return response
            backoff = policy.status_backoff
            logger.warning(
                "Attempt %d returned retryable status %d", attempt + 1, response.status_code
            )
        if attempt + 1 < policy.max_attempts:
            await sleep(backoff.delay(attempt, rng.uniform(0, policy.max_jitter)))
    if response is not None:
        return response
    assert last_exc is not None
    raise last_exc
