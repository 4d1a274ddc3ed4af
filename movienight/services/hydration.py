"""Turn raw TMDb movie payloads into ``MovieRecord`` values."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import quote

from movienight.core.config import Settings, get_settings
from movienight.services.models import (
    NO_DIRECTOR,
    CastMember,
    MovieRecord,
    WatchProvider,
    WatchProviderType,
)
from movienight.services.tmdb_client import CatalogClient, TransportError, UpstreamError


logger = logging.getLogger(__name__)

DETAILS_APPEND = "credits,images,videos,releases"
DETAILS_TTL = 10 * 60
PROVIDER_REGIONS = ("US", "CA")
PROVIDER_SOURCES: tuple[tuple[WatchProviderType, str], ...] = (
    ("stream", "flatrate"),
    ("rent", "rent"),
    ("buy", "buy"),
)
CAST_LIMIT = 10
ACTOR_LIMIT = 4
WRITER_LIMIT = 2


@dataclass(frozen=True)
class ImageUrls:
    poster_base: str = "https://image.tmdb.org/t/p/w500"
    backdrop_base: str = "https://image.tmdb.org/t/p/w780"
    profile_base: str = "https://image.tmdb.org/t/p/w185"
    logo_base: str = "https://image.tmdb.org/t/p/w92"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageUrls":
        return cls(
            poster_base=settings.tmdb_poster_base.rstrip("/"),
            backdrop_base=settings.tmdb_backdrop_base.rstrip("/"),
            profile_base=settings.tmdb_profile_base.rstrip("/"),
            logo_base=settings.tmdb_logo_base.rstrip("/"),
        )


def placeholder_poster(title: str) -> str:
    return f"https://picsum.photos/400/600?random={quote(title)}"


def build_poster_url(path: str | None, title: str, images: ImageUrls = ImageUrls()) -> str:
    if not path:
        return placeholder_poster(title)
    return f"{images.poster_base}{path}"


def build_image_url(base: str, path: str | None) -> str | None:
    return f"{base}{path}" if path else None


def extract_director(credits: Mapping[str, Any] | None) -> str:
    for member in (credits or {}).get("crew") or []:
        if member.get("job") == "Director" and member.get("name"):
            return member["name"]
    return NO_DIRECTOR


def extract_writers(credits: Mapping[str, Any] | None, *, limit: int = WRITER_LIMIT) -> list[str]:
    crew = (credits or {}).get("crew") or []
    writers = [member.get("name") for member in crew if member.get("department") == "Writing"]
    return [name for name in writers[:limit] if name]


def extract_cast(
    credits: Mapping[str, Any] | None,
    images: ImageUrls = ImageUrls(),
    *,
    limit: int = CAST_LIMIT,
) -> list[CastMember]:
    members = []
    for person in ((credits or {}).get("cast") or [])[:limit]:
        person_id = person.get("id")
        members.append(
            CastMember(
                id=person_id,
                name=person.get("name") or "",
                character=person.get("character") or None,
                profile_url=build_image_url(images.profile_base, person.get("profile_path")),
                tmdb_url=f"https://www.themoviedb.org/person/{person_id}" if person_id else None,
            )
        )
    return members


def extract_certification(releases: Mapping[str, Any] | None, *, country: str = "US") -> str | None:
    for entry in (releases or {}).get("countries") or []:
        if entry.get("iso_3166_1") == country:
            return entry.get("certification") or None
    return None


def extract_trailer(videos: Mapping[str, Any] | None) -> str | None:
    results = (videos or {}).get("results") or []
    trailers = [v for v in results if v.get("site") == "YouTube" and v.get("type") == "Trailer"]
    chosen = next((v for v in trailers if v.get("official")), None)
    if chosen is None and trailers:
        chosen = trailers[0]
    if not chosen or not chosen.get("key"):
        return None
    return f"https://www.youtube.com/watch?v={chosen['key']}"


def select_provider_region(results: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if not results:
        return None
    for code in PROVIDER_REGIONS:
        if results.get(code):
            return results[code]
    return next(iter(results.values()), None)


def extract_watch_providers(
    payload: Mapping[str, Any] | None,
    images: ImageUrls = ImageUrls(),
) -> list[WatchProvider]:
    """Flatten one region's flatrate/rent/buy lists, unique per (type, provider id)."""

    region = select_provider_region((payload or {}).get("results"))
    if not region:
        return []
    link = region.get("link")
    seen: set[tuple[str, Any]] = set()
    providers: list[WatchProvider] = []
    for provider_type, source_key in PROVIDER_SOURCES:
        source = region.get(source_key)
        if not isinstance(source, list):
            continue
        for provider in source:
            dedup_key = (provider_type, provider.get("provider_id"))
            if dedup_key in seen:
                continue
            seen.add(dedup_key)
            providers.append(
                WatchProvider(
                    name=provider.get("provider_name") or "",
                    type=provider_type,
                    logo_url=build_image_url(images.logo_base, provider.get("logo_path")),
                    link=link,
                )
            )
    return providers


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def build_movie_record(
    details: Mapping[str, Any],
    providers: Iterable[WatchProvider] = (),
    images: ImageUrls = ImageUrls(),
) -> MovieRecord:
    title = details.get("title") or ""
    credits = details.get("credits")
    cast = extract_cast(credits, images)
    vote_count = _number(details.get("vote_count"))
    return MovieRecord(
        id=details.get("id"),
        title=title,
        poster_url=build_poster_url(details.get("poster_path"), title, images),
        backdrop_url=build_image_url(images.backdrop_base, details.get("backdrop_path")),
        description=details.get("overview") or "",
        actors=[member.name for member in cast[:ACTOR_LIMIT]],
        director=extract_director(credits),
        writers=extract_writers(credits),
        genres=[g["name"] for g in details.get("genres") or [] if g.get("name")],
        runtime_minutes=details.get("runtime") or None,
        release_year=(details.get("release_date") or "")[:4] or None,
        certification=extract_certification(details.get("releases")),
        production_companies=[
            c["name"] for c in details.get("production_companies") or [] if c.get("name")
        ],
        rating=_number(details.get("vote_average")),
        vote_count=int(vote_count) if vote_count is not None else None,
        tagline=details.get("tagline") or None,
        trailer_url=extract_trailer(details.get("videos")),
        cast=cast,
        watch_providers=list(providers),
    )


class MovieHydrator:
    """Fetch details + watch providers for ids and build records concurrently."""

    def __init__(
        self,
        client: CatalogClient,
        *,
        images: ImageUrls | None = None,
        concurrency: int | None = None,
        language: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.images = images or ImageUrls.from_settings(settings)
        self.language = language or settings.tmdb_language
        self._semaphore = asyncio.Semaphore(concurrency or settings.hydration_concurrency)

    async def fetch_watch_providers(self, movie_id: int) -> list[WatchProvider]:
        try:
            payload = await self.client.get(
                f"movie/{movie_id}/watch/providers",
                {"language": self.language},
                ttl=DETAILS_TTL,
            )
        except (UpstreamError, TransportError) as exc:
            logger.warning("Watch providers unavailable for %s: %s", movie_id, exc)
            return []
        return extract_watch_providers(payload, self.images)

    async def hydrate(self, movie_id: int) -> MovieRecord | None:
        """Return the full record for ``movie_id`` or ``None`` if TMDb has nothing usable."""

        async with self._semaphore:
            try:
                details = await self.client.get(
                    f"movie/{movie_id}",
                    {"append_to_response": DETAILS_APPEND, "language": self.language},
                    ttl=DETAILS_TTL,
                )
            except (UpstreamError, TransportError) as exc:
                logger.warning("Skipping movie %s: %s", movie_id, exc)
                return None
            if not details or not details.get("title"):
                return None
            providers = await self.fetch_watch_providers(details.get("id") or movie_id)
        return build_movie_record(details, providers, self.images)

    async def hydrate_many(self, movie_ids: Iterable[int]) -> list[MovieRecord]:
        """Hydrate ids concurrently and drop the ones that came back empty.

        Output follows ``movie_ids``; only the simple list endpoints rely on that.
        """

        results = await asyncio.gather(*(self.hydrate(movie_id) for movie_id in movie_ids))
        return [record for record in results if record is not None]


