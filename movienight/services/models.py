"""Shared dataclasses for the service layer."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Literal


WatchProviderType = Literal["stream", "rent", "buy"]

NO_DIRECTOR = "N/A"


@dataclass(frozen=True, slots=True)
class CastMember:
    id: int | None
    name: str
    character: str | None = None
    profile_url: str | None = None
    tmdb_url: str | None = None


@dataclass(frozen=True, slots=True)
class WatchProvider:
    name: str
    type: WatchProviderType
    logo_url: str | None = None
    link: str | None = None


@dataclass(frozen=True, slots=True)
class MovieRecord:
    """Fully hydrated movie as returned to list and detail views.

    ``rating`` stays on TMDb's 0-10 scale; star conversion belongs to the UI.
    """

    title: str
    poster_url: str
    id: int | None = None
    backdrop_url: str | None = None
    description: str = ""
    actors: list[str] = field(default_factory=list)
    director: str = NO_DIRECTOR
    writers: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    runtime_minutes: int | None = None
    release_year: str | None = None
    certification: str | None = None
    production_companies: list[str] = field(default_factory=list)
    rating: float | None = None
    vote_count: int | None = None
    tagline: str | None = None
    trailer_url: str | None = None
    cast: list[CastMember] = field(default_factory=list)
    watch_providers: list[WatchProvider] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MovieSummary:
    """Lightweight shape used by search result lists."""

    id: int
    title: str
    poster_url: str
    description: str = ""
    rating: float | None = None
    release_year: str | None = None


@dataclass(frozen=True, slots=True)
class SearchPage:
    movies: list[MovieSummary]
    total_results: int = 0
    total_pages: int = 0


@dataclass(frozen=True, slots=True)
class DiscoveryCriteria:
    """Fuzzy multi-field query from the search form. Empty fields mean no constraint."""

    genre: str | None = None
    release_year: str | None = None
    runtime: str | None = None
    rating: str | None = None
    actor: str | None = None
    director: str | None = None
    writer: str | None = None
    producer: str | None = None
    production_house: str | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))


@dataclass(frozen=True, slots=True)
class SearchFilters:
    query: str | None = None
    genre: str | None = None
    year: int | None = None
    min_rating: float | None = None
    min_runtime: int | None = None
    max_runtime: int | None = None
    rating: str | None = None
    actor: str | None = None
    director: str | None = None
    writer: str | None = None
    producer: str | None = None
    production_house: str | None = None

    def has_people_or_company(self) -> bool:
        return any(
            (self.actor, self.director, self.writer, self.producer, self.production_house)
        )


@dataclass(frozen=True, slots=True)
class RankedCandidate:
    index: int
    score: float | None = None
