"""FastAPI entrypoint exposing the catalog service to the movie-night front end."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from movienight.core.observability import configure_logging, configure_tracing
from movienight.db import SnapshotRepository, UnknownSnapshotKey, get_session, init_models
from movienight.services.catalog import CatalogService, build_catalog_service
from movienight.services.generation import SupersededRequest
from movienight.services.models import (
    DiscoveryCriteria,
    MovieRecord,
    MovieSummary,
    SearchFilters,
)
from movienight.services.scoring import Ranking, score_candidates
from movienight.services.tmdb_client import CatalogError, ConfigError

T = TypeVar("T")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging, tables and the process-wide catalog service."""

    configure_logging()
    configure_tracing()
    init_models()
    app.state.catalog = build_catalog_service()
    try:
        yield
    finally:
        await app.state.catalog.aclose()


app = FastAPI(title="Movie Night Catalog", lifespan=lifespan)
snapshots = SnapshotRepository()


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


class CriteriaModel(BaseModel):
    genre: str | None = None
    release_year: str | None = Field(default=None, alias="releaseYear")
    runtime: str | None = None
    rating: str | None = None
    actor: str | None = None
    director: str | None = None
    writer: str | None = None
    producer: str | None = None
    production_house: str | None = Field(default=None, alias="productionHouse")

    model_config = {"populate_by_name": True}

    def to_criteria(self) -> DiscoveryCriteria:
        values = {
            key: (value.strip() or None) if isinstance(value, str) else value
            for key, value in self.model_dump().items()
        }
        return DiscoveryCriteria(**values)


class DiscoverRequest(BaseModel):
    criteria: CriteriaModel = Field(default_factory=CriteriaModel)
    count: int = Field(default=10, ge=1, le=60)
    mainstream_only: bool = Field(default=True, alias="mainstreamOnly")
    ai_curate: bool = Field(default=True, alias="aiCurate")

    model_config = {"populate_by_name": True}


class SearchResponse(BaseModel):
    movies: list[MovieSummary]
    total_results: int = Field(serialization_alias="totalResults")
    total_pages: int = Field(serialization_alias="totalPages")


class SpotlightResponse(BaseModel):
    label: str
    movies: list[MovieRecord]


class RerankCandidate(BaseModel):
    title: str
    description: str = ""
    actors: list[str] = Field(default_factory=list)
    director: str | None = None


class RerankRequest(BaseModel):
    criteria: dict[str, Any] = Field(default_factory=dict)
    candidates: list[RerankCandidate] = Field(default_factory=list)


async def _call(work: Callable[[], Awaitable[T]]) -> T:
    try:
        return await work()
    except ConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Movie catalog is not configured (TMDB_API_KEY missing).",
        ) from exc
    except SupersededRequest as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A newer request from this session superseded this one.",
        ) from exc
    except CatalogError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to load movies: {exc}",
        ) from exc


@app.get("/movies/popular", response_model=list[MovieRecord])
async def list_popular(
    count: int = Query(10, ge=1, le=20),
    catalog: CatalogService = Depends(get_catalog),
) -> list[MovieRecord]:
    return await _call(lambda: catalog.list_popular(count))


@app.get("/movies/top-rated", response_model=list[MovieRecord])
async def list_top_rated(
    count: int = Query(10, ge=1, le=20),
    catalog: CatalogService = Depends(get_catalog),
) -> list[MovieRecord]:
    return await _call(lambda: catalog.list_top_rated(count))


@app.get("/movies/now-playing", response_model=list[MovieRecord])
async def list_now_playing(
    count: int = Query(10, ge=1, le=20),
    catalog: CatalogService = Depends(get_catalog),
) -> list[MovieRecord]:
    return await _call(lambda: catalog.list_now_playing(count))


@app.get("/movies/{movie_id}", response_model=MovieRecord)
async def get_details(
    movie_id: int,
    catalog: CatalogService = Depends(get_catalog),
) -> MovieRecord:
    movie = await _call(lambda: catalog.get_details(movie_id))
    if movie is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Movie not found.",
        )
    return movie


@app.get("/genres")
async def list_genres(catalog: CatalogService = Depends(get_catalog)) -> list[dict[str, Any]]:
    return await _call(catalog.list_genres)


@app.get("/search", response_model=SearchResponse, response_model_by_alias=True)
async def search(
    q: str | None = None,
    genre: str | None = None,
    year: int | None = None,
    min_rating: float | None = Query(None, alias="minRating"),
    min_runtime: int | None = Query(None, alias="minRuntime"),
    max_runtime: int | None = Query(None, alias="maxRuntime"),
    rating: str | None = None,
    actor: str | None = None,
    director: str | None = None,
    writer: str | None = None,
    producer: str | None = None,
    production_house: str | None = Query(None, alias="productionHouse"),
    page: int = Query(1, ge=1, le=500),
    session_id: str | None = Header(None, alias="X-Client-Session"),
    catalog: CatalogService = Depends(get_catalog),
) -> SearchResponse:
    filters = SearchFilters(
        query=q,
        genre=genre,
        year=year,
        min_rating=min_rating,
        min_runtime=min_runtime,
        max_runtime=max_runtime,
        rating=rating,
        actor=actor,
        director=director,
        writer=writer,
        producer=producer,
        production_house=production_house,
    )
    result = await _call(
        lambda: catalog.generations.run_latest(
            session_id, "search", lambda: catalog.search(filters, page)
        )
    )
    return SearchResponse(
        movies=result.movies,
        total_results=result.total_results,
        total_pages=result.total_pages,
    )


@app.post("/discover", response_model=list[MovieRecord])
async def discover(
    payload: DiscoverRequest,
    session_id: str | None = Header(None, alias="X-Client-Session"),
    catalog: CatalogService = Depends(get_catalog),
) -> list[MovieRecord]:
    criteria = payload.criteria.to_criteria()
    return await _call(
        lambda: catalog.generations.run_latest(
            session_id,
            "discover",
            lambda: catalog.curated_discover(
                criteria,
                payload.count,
                ai_curate=payload.ai_curate,
                mainstream_only=payload.mainstream_only,
            ),
        )
    )


@app.get("/spotlight/genre", response_model=SpotlightResponse)
async def genre_spotlight(
    count: int = Query(10, ge=1, le=20),
    catalog: CatalogService = Depends(get_catalog),
) -> SpotlightResponse:
    genre, movies = await _call(lambda: catalog.random_genre_spotlight(count))
    return SpotlightResponse(label=f"{genre} Movies", movies=movies)


@app.get("/spotlight/year", response_model=SpotlightResponse)
async def year_spotlight(
    count: int = Query(10, ge=1, le=20),
    catalog: CatalogService = Depends(get_catalog),
) -> SpotlightResponse:
    year, movies = await _call(lambda: catalog.random_year_spotlight(count))
    return SpotlightResponse(label=f"{year} Movies", movies=movies)


@app.post("/rerank", response_model=Ranking)
async def rerank(payload: RerankRequest) -> Ranking:
    """Score candidates for the curation hook; neutral scores when no LLM is configured."""

    candidates = [candidate.model_dump() for candidate in payload.candidates]
    return await score_candidates(payload.criteria, candidates)


@app.get("/storage/{key}")
def read_snapshot(key: str, session: Session = Depends(get_session)) -> Any:
    try:
        return snapshots.get(session, key)
    except UnknownSnapshotKey as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"unknown storage key: {key}",
        ) from exc


@app.put("/storage/{key}")
def write_snapshot(
    key: str,
    payload: Any = Body(...),
    session: Session = Depends(get_session),
) -> Any:
    try:
        return snapshots.put(session, key, payload).payload
    except UnknownSnapshotKey as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"unknown storage key: {key}",
        ) from exc


@app.delete("/storage/{key}", status_code=status.HTTP_204_NO_CONTENT)
def clear_snapshot(key: str, session: Session = Depends(get_session)) -> None:
    try:
        snapshots.delete(session, key)
    except UnknownSnapshotKey as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"unknown storage key: {key}",
        ) from exc
