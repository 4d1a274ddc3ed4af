"""Generation tokens so a newer request can supersede an older in-flight one."""

from __future__ import annotations

import itertools
from typing import Awaitable, Callable, TypeVar


T = TypeVar("T")


class SupersededRequest(Exception):
    """The result arrived after a newer request of the same kind started."""


class RequestGeneration:
    """Monotonic counter shared by all requests of one kind (e.g. "search").

    Upstream calls already in flight are not aborted; their late results are
    discarded instead.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.current = 0
        self.in_flight = 0

    def begin(self) -> int:
        self.current = next(self._counter)
        return self.current

    def is_current(self, token: int) -> bool:
        return token == self.current

    async def run_latest(self, work: Callable[[], Awaitable[T]]) -> T:
        token = self.begin()
        self.in_flight += 1
        try:
            result = await work()
        finally:
            self.in_flight -= 1
        if not self.is_current(token):
            raise SupersededRequest(f"request {token} superseded by {self.current}")
        return result


class GenerationRegistry:
    """One ``RequestGeneration`` per (client session, request kind).

    Entries only live while a request for their key is in flight.
    """

    def __init__(self) -> None:
        self._generations: dict[tuple[str, str], RequestGeneration] = {}

    def for_session(self, session_id: str, kind: str) -> RequestGeneration:
        key = (session_id, kind)
        if key not in self._generations:
            self._generations[key] = RequestGeneration()
        return self._generations[key]

    async def run_latest(
        self, session_id: str | None, kind: str, work: Callable[[], Awaitable[T]]
    ) -> T:
        if not session_id:
            return await work()
        key = (session_id, kind)
        generation = self.for_session(session_id, kind)
        try:
            return await generation.run_latest(work)
        finally:
            if not generation.in_flight and self._generations.get(key) is generation:
                del self._generations[key]

    def __len__(self) -> int:
        return len(self._generations)
