"""Randomized, mainstream-first movie discovery on top of TMDb's discover endpoint."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from movienight.services.hydration import MovieHydrator
from movienight.services.models import DiscoveryCriteria, MovieRecord
from movienight.services.tmdb_client import CatalogClient


logger = logging.getLogger(__name__)

GENRE_NAME_TO_ID: dict[str, int] = {
    "Action": 28,
    "Adventure": 12,
    "Animation": 16,
    "Comedy": 35,
    "Crime": 80,
    "Documentary": 99,
    "Drama": 18,
    "Family": 10751,
    "Fantasy": 14,
    "History": 36,
    "Horror": 27,
    "Music": 10402,
    "Mystery": 9648,
    "Romance": 10749,
    "Sci-Fi": 878,
    "Thriller": 53,
    "War": 10752,
    "Western": 37,
}

RUNTIME_BUCKETS: dict[str, dict[str, int]] = {
    "under 90 minutes": {"max": 90},
    "90-120 minutes": {"min": 90, "max": 120},
    "over 120 minutes": {"min": 120},
}

MAINSTREAM_THRESHOLDS: tuple[int, ...] = (5000, 2000, 1000, 0)
ATTEMPTS_PER_TIER = 5
MAX_DISCOVER_PAGES = 500
PERSON_LOOKUP_TTL = 30
EARLIEST_SPOTLIGHT_YEAR = 1970


def runtime_bounds(bucket: str | None) -> dict[str, int]:
    """Map a runtime bucket label to ``{"min": .., "max": ..}``; unknown labels map to ``{}``."""

    return dict(RUNTIME_BUCKETS.get((bucket or "").strip(), {}))


def sort_by_mainstream(results: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(
        results,
        key=lambda r: (r.get("vote_count") or 0, r.get("popularity") or 0),
        reverse=True,
    )


def pick_person(results: list[dict[str, Any]], department: str | None = None) -> int | None:
    """Most popular match, preferring people known for ``department``."""

    ranked = sorted(results, key=lambda p: p.get("popularity") or 0, reverse=True)
    if not ranked:
        return None
    if department:
        wanted = department.lower()
        for person in ranked:
            if wanted in (person.get("known_for_department") or "").lower():
                return person.get("id")
    return ranked[0].get("id")


@dataclass
class ResolvedCriteria:
    params: dict[str, Any]
    director_movie_ids: list[int]


class Unsatisfiable(Exception):
    """A director filter matched a person with no directing credits."""


class DiscoveryEngine:
    def __init__(
        self,
        client: CatalogClient,
        hydrator: MovieHydrator,
        *,
        language: str = "en-US",
        region: str = "US",
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.hydrator = hydrator
        self.language = language
        self.region = region
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def search_person_id(self, name: str, department: str | None = None) -> int | None:
        if not name or not name.strip():
            return None
        data = await self.client.get(
            "search/person",
            {"query": name.strip(), "language": self.language, "page": 1},
            ttl=PERSON_LOOKUP_TTL,
        )
        return pick_person(list(data.get("results") or []), department)

    async def search_company_id(self, name: str) -> int | None:
        if not name or not name.strip():
            return None
        data = await self.client.get(
            "search/company", {"query": name.strip(), "page": 1}, ttl=PERSON_LOOKUP_TTL
        )
        results = data.get("results") or []
        return results[0].get("id") if results else None

    async def movie_ids_for_job(self, person_id: int, job: str) -> list[int]:
        data = await self.client.get(
            f"person/{person_id}/movie_credits",
            {"language": self.language},
            ttl=PERSON_LOOKUP_TTL,
        )
        ids: list[int] = []
        for credit in data.get("crew") or []:
            movie_id = credit.get("id")
            if credit.get("job") == job and movie_id is not None and movie_id not in ids:
                ids.append(movie_id)
        return ids

    async def resolve(self, criteria: DiscoveryCriteria) -> ResolvedCriteria:
        """Turn names and labels into discover query parameters.

        Raises ``Unsatisfiable`` when the director resolves to someone with no
        directing credits.
        """

        director_movie_ids: list[int] = []
        if criteria.director:
            director_id = await self.search_person_id(criteria.director, "Directing")
            if director_id:
                director_movie_ids = await self.movie_ids_for_job(director_id, "Director")
                if not director_movie_ids:
                    raise Unsatisfiable(criteria.director)

        params: dict[str, Any] = {
            "sort_by": "popularity.desc",
            "include_adult": False,
            "language": self.language,
        }
        if criteria.actor:
            actor_id = await self.search_person_id(criteria.actor, "Acting")
            if actor_id:
                params["with_cast"] = actor_id
        crew: list[int] = []
        if criteria.writer:
            writer_id = await self.search_person_id(criteria.writer, "Writing")
            if writer_id:
                crew.append(writer_id)
        if criteria.producer:
            producer_id = await self.search_person_id(criteria.producer, "Production")
            if producer_id:
                crew.append(producer_id)
        if crew:
            params["with_crew"] = crew
        if criteria.production_house:
            company_id = await self.search_company_id(criteria.production_house)
            if company_id:
                params["with_companies"] = company_id
        if criteria.genre and criteria.genre in GENRE_NAME_TO_ID:
            params["with_genres"] = GENRE_NAME_TO_ID[criteria.genre]
        if criteria.release_year:
            params["primary_release_year"] = criteria.release_year
        bounds = runtime_bounds(criteria.runtime)
        if "min" in bounds:
            params["with_runtime.gte"] = bounds["min"]
        if "max" in bounds:
            params["with_runtime.lte"] = bounds["max"]
        if criteria.rating:
            # Upper bound on purpose: the chosen certification and anything milder.
            params["certification_country"] = self.region
            params["certification.lte"] = criteria.rating
        return ResolvedCriteria(params=params, director_movie_ids=director_movie_ids)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------
    def _random_page(self, total_pages: Any) -> int:
        try:
            total = int(total_pages or 1)
        except (TypeError, ValueError):
            total = 1
        total = max(1, min(total, MAX_DISCOVER_PAGES))
        return self.rng.randint(1, total)

    async def fetch_random_page(
        self, endpoint: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Read page 1 for the page count, then one uniformly random page."""

        first = await self.client.get(endpoint, {**params, "page": 1})
        results = (first or {}).get("results")
        if not isinstance(results, list) or not results:
            return []
        page = self._random_page(first.get("total_pages"))
        if page == 1:
            return results
        data = await self.client.get(endpoint, {**params, "page": page})
        return list((data or {}).get("results") or [])

    async def _hydrate_into(
        self, movie_ids: list[int], collected: list[MovieRecord], count: int
    ) -> None:
        for record in await self.hydrator.hydrate_many(movie_ids):
            if len(collected) >= count:
                break
            collected.append(record)

    async def discover(
        self,
        criteria: DiscoveryCriteria,
        count: int = 10,
        *,
        mainstream_only: bool = True,
    ) -> list[MovieRecord]:
        """Return up to ``count`` distinct movies matching ``criteria``.

        Random pages are sampled per vote-count tier, most mainstream first, and
        the shortfall is filled from the director's filmography or the popular
        feed. May return fewer than ``count`` when TMDb runs out.
        """

        if count <= 0:
            return []
        try:
            resolved = await self.resolve(criteria)
        except Unsatisfiable as exc:
            logger.info("Director %r has no directing credits, nothing to discover", str(exc))
            return []

        director_ids = set(resolved.director_movie_ids)
        collected: list[MovieRecord] = []
        seen: set[int] = set()
        thresholds: tuple[int | None, ...] = MAINSTREAM_THRESHOLDS if mainstream_only else (None,)

        for threshold in thresholds:
            params = dict(resolved.params)
            if threshold is not None:
                params["vote_count.gte"] = threshold
            attempts = 0
            while len(collected) < count and attempts < ATTEMPTS_PER_TIER:
                attempts += 1
                page = await self.fetch_random_page("discover/movie", params)
                if not page:
                    break
                needed = max(0, count - len(collected))
                candidates = [
                    r["id"]
                    for r in sort_by_mainstream(page)
                    if r.get("id") is not None
                    and r["id"] not in seen
                    and (not director_ids or r["id"] in director_ids)
                ]
                chosen = candidates[: max(needed * 2, needed)]
                seen.update(chosen)
                await self._hydrate_into(chosen, collected, count)
            if len(collected) >= count:
                break
            logger.debug("Tier %s left %d/%d movies", threshold, len(collected), count)

        if len(collected) < count:
            await self._fill_remaining(resolved, collected, seen, count)
        return collected[:count]

    async def _fill_remaining(
        self,
        resolved: ResolvedCriteria,
        collected: list[MovieRecord],
        seen: set[int],
        count: int,
    ) -> None:
        missing = count - len(collected)
        if resolved.director_movie_ids:
            unseen = [i for i in resolved.director_movie_ids if i not in seen]
            self.rng.shuffle(unseen)
            picks = unseen[: missing * 2]
        else:
            page = await self.fetch_random_page("movie/popular", {"language": self.language})
            picks = [r["id"] for r in page if r.get("id") is not None and r["id"] not in seen]
            picks = picks[: missing * 2]
        seen.update(picks)
        await self._hydrate_into(picks, collected, count)

    # ------------------------------------------------------------------
    # Spotlights
    # ------------------------------------------------------------------
    async def random_genre_spotlight(self, count: int = 10) -> tuple[str, list[MovieRecord]]:
        genre = self.rng.choice(list(GENRE_NAME_TO_ID))
        movies = await self.discover(DiscoveryCriteria(genre=genre), count, mainstream_only=True)
        return genre, movies

    async def random_year_spotlight(
        self, count: int = 10, *, today: date | None = None
    ) -> tuple[str, list[MovieRecord]]:
        current_year = (today or date.today()).year
        year = str(self.rng.randint(EARLIEST_SPOTLIGHT_YEAR, current_year))
        movies = await self.discover(
            DiscoveryCriteria(release_year=year), count, mainstream_only=True
        )
        return year, movies
