import asyncio
import os
import random
import re
import tempfile
from typing import Any

import httpx
import pytest

# Keep the module-level engine away from the working directory.
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'movienight-test.db')}"
)

from movienight.core.config import Settings, get_settings  # noqa: E402
from movienight.services.catalog import CatalogService  # noqa: E402
from movienight.services.curation import CurationHook  # noqa: E402
from movienight.services.tmdb_client import CatalogClient  # noqa: E402

BASE_URL = "https://tmdb.test/3"
_MOVIE_PATH = re.compile(r"^movie/(\d+)$")
_PROVIDERS_PATH = re.compile(r"^movie/(\d+)/watch/providers$")


@pytest.fixture(autouse=True)
def reset_env(monkeypatch):
    monkeypatch.setenv("LANGCHAIN_TRACING_V2", "false")
    monkeypatch.delenv("LANGCHAIN_API_KEY", raising=False)
    monkeypatch.delenv("LANGCHAIN_PROJECT", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.delenv("CURATION_URL", raising=False)
    monkeypatch.delenv("CURATION_API_KEY", raising=False)
    monkeypatch.setenv("TMDB_API_KEY", "test-key")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def details_payload(movie_id: int, title: str | None = None, **overrides: Any) -> dict[str, Any]:
    payload = {
        "id": movie_id,
        "title": title or f"Movie {movie_id}",
        "overview": f"Overview of movie {movie_id}",
        "poster_path": f"/poster{movie_id}.jpg",
        "backdrop_path": f"/backdrop{movie_id}.jpg",
        "genres": [{"id": 18, "name": "Drama"}],
        "runtime": 110,
        "release_date": "1999-10-15",
        "vote_average": 8.4,
        "vote_count": 25000,
        "tagline": "",
        "production_companies": [{"id": 1, "name": "Studio One"}],
        "credits": {
            "cast": [{"id": 100 + movie_id, "name": f"Actor {movie_id}", "character": "Lead"}],
            "crew": [{"id": 900, "name": "Jane Director", "job": "Director", "department": "Directing"}],
        },
        "videos": {"results": []},
        "releases": {"countries": [{"iso_3166_1": "US", "certification": "R"}]},
    }
    payload.update(overrides)
    return payload


class FakeTMDb:
    """In-memory TMDb answering through ``httpx.MockTransport``.

    Routes map an endpoint path to a payload, a ``(status, payload)`` tuple, a
    callable taking the query params, or a list of those consumed in order.
    Unrouted ``movie/{id}`` paths are answered from ``movies``.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.movies: dict[int, dict[str, Any]] = {}
        self.providers: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def add_movies(self, *ids: int) -> None:
        for movie_id in ids:
            self.movies[movie_id] = details_payload(movie_id)

    def paths(self, prefix: str = "") -> list[str]:
        return [path for path, _ in self.calls if path.startswith(prefix)]

    def params_for(self, path: str) -> list[dict[str, str]]:
        return [params for called, params in self.calls if called == path]

    def _resolve(self, route: Any, params: dict[str, str]) -> Any:
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            route = route(params)
        return route

    def _default(self, path: str) -> Any:
        providers = _PROVIDERS_PATH.match(path)
        if providers:
            movie_id = int(providers.group(1))
            return self.providers.get(movie_id, {"id": movie_id, "results": {}})
        movie = _MOVIE_PATH.match(path)
        if movie and int(movie.group(1)) in self.movies:
            return self.movies[int(movie.group(1))]
        return (404, {"status_message": "The resource you requested could not be found."})

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/3/")
        params = dict(request.url.params)
        self.calls.append((path, params))
        if path in self.routes:
            result = self._resolve(self.routes[path], params)
        else:
            result = self._default(path)
        if isinstance(result, httpx.Response):
            return result
        if isinstance(result, tuple):
            status, body = result
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=result)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Manual clock whose ``sleep`` jumps time forward instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        target = self.now + delay
        await asyncio.sleep(0)
        self.now = max(self.now, target)


def make_settings(**overrides: Any) -> Settings:
    values = {"TMDB_API_KEY": "test-key", "tmdb_base_url": BASE_URL, "hydration_concurrency": 4}
    values.update(overrides)
    return Settings(**values)


def make_client(fake: FakeTMDb, *, api_key: str = "test-key", **kwargs: Any) -> CatalogClient:
    settings = kwargs.pop("settings", None) or make_settings()
    return CatalogClient(
        api_key=api_key,
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=fake.transport()),
        sleep=kwargs.pop("sleep", SleepRecorder()),
        settings=settings,
        **kwargs,
    )


def make_service(fake: FakeTMDb, **kwargs: Any) -> CatalogService:
    settings = make_settings()
    client = make_client(fake, settings=settings, api_key=kwargs.pop("api_key", "test-key"))
    return CatalogService(
        client,
        settings=settings,
        curation=kwargs.pop("curation", CurationHook(settings=settings)),
        rng=kwargs.pop("rng", random.Random(7)),
        **kwargs,
    )


@pytest.fixture
def fake_tmdb() -> FakeTMDb:
    return FakeTMDb()

