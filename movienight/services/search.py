"""Dispatch search-form filters to text search or discover and normalize the results."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from movienight.services.hydration import ImageUrls, build_poster_url
from movienight.services.models import MovieSummary, SearchFilters, SearchPage
from movienight.services.tmdb_client import CatalogClient, TransportError, UpstreamError


logger = logging.getLogger(__name__)

PAGE_TTL = 30
GENRE_LIST_TTL = 24 * 60 * 60
RESULTS_PER_PAGE = 20


def to_summary(raw: dict[str, Any], images: ImageUrls = ImageUrls()) -> MovieSummary:
    title = raw.get("title") or ""
    rating = raw.get("vote_average")
    return MovieSummary(
        id=raw.get("id"),
        title=title,
        poster_url=build_poster_url(raw.get("poster_path"), title, images),
        description=raw.get("overview") or "",
        rating=float(rating) if isinstance(rating, (int, float)) else None,
        release_year=(raw.get("release_date") or "")[:4] or None,
    )


class SearchOrchestrator:
    def __init__(
        self,
        client: CatalogClient,
        *,
        images: ImageUrls | None = None,
        language: str = "en-US",
        region: str = "US",
    ) -> None:
        self.client = client
        self.images = images or ImageUrls()
        self.language = language
        self.region = region

    async def list_genres(self) -> list[dict[str, Any]]:
        data = await self.client.get(
            "genre/movie/list", {"language": self.language}, ttl=GENRE_LIST_TTL
        )
        return [{"id": g.get("id"), "name": g.get("name")} for g in data.get("genres") or []]

    async def genre_id(self, name: str | None) -> int | None:
        if not name:
            return None
        for genre in await self.list_genres():
            if genre["name"] == name:
                return genre["id"]
        return None

    async def _lookup_id(self, endpoint: str, name: str, params: dict[str, Any]) -> int | None:
        try:
            data = await self.client.get(
                endpoint, {"query": name.strip(), "page": 1, **params}, ttl=PAGE_TTL
            )
        except (UpstreamError, TransportError) as exc:
            logger.warning("Lookup %s for %r failed: %s", endpoint, name, exc)
            return None
        results = data.get("results") or []
        return results[0].get("id") if results else None

    async def person_id(self, name: str) -> int | None:
        return await self._lookup_id("search/person", name, {"language": self.language})

    async def company_id(self, name: str) -> int | None:
        return await self._lookup_id("search/company", name, {})

    async def _constraint_params(self, filters: SearchFilters) -> dict[str, Any]:
        params: dict[str, Any] = {}
        genre_id = await self.genre_id(filters.genre)
        if genre_id:
            params["with_genres"] = genre_id
        if filters.year:
            params["primary_release_year"] = filters.year
        if filters.min_rating:
            params["vote_average.gte"] = filters.min_rating
        if filters.max_runtime:
            params["with_runtime.lte"] = filters.max_runtime
        if filters.min_runtime:
            params["with_runtime.gte"] = filters.min_runtime
        if filters.rating:
            params["certification_country"] = self.region
            params["certification.lte"] = filters.rating
        return params

    async def _people_params(self, filters: SearchFilters) -> dict[str, Any]:
        params: dict[str, Any] = {}
        people = (
            ("with_cast", filters.actor),
            ("with_crew", filters.director),
            ("with_people", filters.writer),
        )
        for param, name in people:
            if not name:
                continue
            person_id = await self.person_id(name)
            if person_id:
                params[param] = person_id
        if filters.producer:
            producer_id = await self.person_id(filters.producer)
            if producer_id:
                # Discover has no producer filter; crew is the closest match.
                params.setdefault("with_crew", producer_id)
        if filters.production_house:
            company_id = await self.company_id(filters.production_house)
            if company_id:
                params["with_companies"] = company_id
        return params

    async def _discover(self, page: int, params: dict[str, Any]) -> dict[str, Any]:
        return await self.client.get(
            "discover/movie",
            {
                "language": self.language,
                "page": page,
                "include_adult": False,
                "sort_by": "popularity.desc",
                **params,
            },
            ttl=PAGE_TTL,
        )

    async def _text_search(self, filters: SearchFilters, page: int) -> tuple[dict[str, Any], list]:
        data = await self.client.get(
            "search/movie",
            {
                "query": (filters.query or "").strip(),
                "language": self.language,
                "page": page,
                "include_adult": False,
            },
            ttl=PAGE_TTL,
        )
        results = list(data.get("results") or [])
        # search/movie ignores these constraints, so filter the page locally.
        genre_id = await self.genre_id(filters.genre)
        if genre_id:
            results = [r for r in results if genre_id in (r.get("genre_ids") or [])]
        if filters.year:
            results = [
                r for r in results if (r.get("release_date") or "").startswith(str(filters.year))
            ]
        if filters.min_rating:
            results = [r for r in results if (r.get("vote_average") or 0) >= filters.min_rating]
        return data, results

    def _page(self, data: dict[str, Any], results: Iterable[dict[str, Any]]) -> SearchPage:
        movies = [
            to_summary(r, self.images) for r in list(results)[:RESULTS_PER_PAGE] if r.get("id")
        ]
        return SearchPage(
            movies=movies,
            total_results=int(data.get("total_results") or 0),
            total_pages=int(data.get("total_pages") or 0),
        )

    async def search(self, filters: SearchFilters, page: int = 1) -> SearchPage:
        """People/company discover, then free-text search, then plain discover."""

        if filters.has_people_or_company():
            params = await self._people_params(filters)
            params.update(await self._constraint_params(filters))
            data = await self._discover(page, params)
            return self._page(data, data.get("results") or [])

        if filters.query and filters.query.strip():
            data, results = await self._text_search(filters, page)
            return self._page(data, results)

        data = await self._discover(page, await self._constraint_params(filters))
        return self._page(data, data.get("results") or [])
