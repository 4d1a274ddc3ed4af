"""Data-fetching surface consumed by the HTTP routes."""

from __future__ import annotations

import logging
import random
from typing import Any

from movienight.core.config import Settings, get_settings
from movienight.services.curation import CurationHook, reorder
from movienight.services.discovery import DiscoveryEngine
from movienight.services.generation import GenerationRegistry
from movienight.services.hydration import ImageUrls, MovieHydrator
from movienight.services.models import (
    DiscoveryCriteria,
    MovieRecord,
    RankedCandidate,
    SearchFilters,
    SearchPage,
)
from movienight.services.search import SearchOrchestrator
from movienight.services.tmdb_client import CatalogClient, CatalogError, ConfigError


logger = logging.getLogger(__name__)

LIST_TTL = 60
MIN_CURATION_POOL = 30


class CatalogService:
    """Wires the client, hydrator, discovery, search and curation together.

    Construct once per process (see ``build_catalog_service``) so every caller
    shares the same cache and rate limiter.
    """

    def __init__(
        self,
        client: CatalogClient,
        *,
        hydrator: MovieHydrator | None = None,
        discovery: DiscoveryEngine | None = None,
        searcher: SearchOrchestrator | None = None,
        curation: CurationHook | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        settings = settings or get_settings()
        images = ImageUrls.from_settings(settings)
        self.client = client
        self.language = settings.tmdb_language
        self.hydrator = hydrator or MovieHydrator(client, images=images, settings=settings)
        self.discovery = discovery or DiscoveryEngine(
            client,
            self.hydrator,
            language=settings.tmdb_language,
            region=settings.tmdb_region,
            rng=rng,
        )
        self.searcher = searcher or SearchOrchestrator(
            client, images=images, language=settings.tmdb_language, region=settings.tmdb_region
        )
        self.curation = curation or CurationHook(settings=settings)
        self.generations = GenerationRegistry()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _list(self, endpoint: str, count: int) -> list[MovieRecord]:
        data = await self.client.get(
            endpoint, {"language": self.language, "page": 1}, ttl=LIST_TTL
        )
        ids = [r["id"] for r in (data.get("results") or [])[:count] if r.get("id") is not None]
        return await self.hydrator.hydrate_many(ids)

    async def list_popular(self, count: int = 10) -> list[MovieRecord]:
        return await self._list("movie/popular", count)

    async def list_top_rated(self, count: int = 10) -> list[MovieRecord]:
        return await self._list("movie/top_rated", count)

    async def list_now_playing(self, count: int = 10) -> list[MovieRecord]:
        return await self._list("movie/now_playing", count)

    async def get_details(self, movie_id: int) -> MovieRecord | None:
        return await self.hydrator.hydrate(movie_id)

    async def list_genres(self) -> list[dict[str, Any]]:
        return await self.searcher.list_genres()

    async def discover(
        self, criteria: DiscoveryCriteria, count: int = 10, *, mainstream_only: bool = True
    ) -> list[MovieRecord]:
        return await self.discovery.discover(criteria, count, mainstream_only=mainstream_only)

    async def search(self, filters: SearchFilters, page: int = 1) -> SearchPage:
        return await self.searcher.search(filters, page)

    async def rerank(
        self,
        criteria: DiscoveryCriteria,
        candidates: list[MovieRecord],
        count: int | None = None,
    ) -> list[RankedCandidate]:
        return await self.curation.rerank(criteria, candidates, count)

    async def random_genre_spotlight(self, count: int = 10) -> tuple[str, list[MovieRecord]]:
        return await self.discovery.random_genre_spotlight(count)

    async def random_year_spotlight(self, count: int = 10) -> tuple[str, list[MovieRecord]]:
        return await self.discovery.random_year_spotlight(count)

    async def curated_discover(
        self,
        criteria: DiscoveryCriteria,
        count: int = 10,
        *,
        ai_curate: bool = True,
        mainstream_only: bool = True,
    ) -> list[MovieRecord]:
        """Discover a wider pool, optionally let the curation service pick the best ``count``."""

        pool_size = max(MIN_CURATION_POOL, count * 3)
        try:
            candidates = await self.discover(criteria, pool_size, mainstream_only=mainstream_only)
        except ConfigError:
            raise
        except CatalogError as exc:
            logger.error("Discovery failed for %s: %s", criteria, exc)
            raise CatalogError(f"Failed to fetch movies: {exc}") from exc
        if not ai_curate:
            return candidates[:count]
        ranked = await self.rerank(criteria, candidates, count)
        picked = reorder(candidates, ranked)
        # The hook ranks at most MAX_CANDIDATES; the rest keep discovery order.
        chosen = {r.index for r in ranked}
        picked.extend(movie for i, movie in enumerate(candidates) if i not in chosen)
        return picked[:count]


def build_catalog_service(settings: Settings | None = None) -> CatalogService:
    settings = settings or get_settings()
    return CatalogService(CatalogClient(settings=settings), settings=settings)
