import asyncio

import pytest

from conftest import details_payload, make_client, make_service, make_settings
from movienight.services.hydration import (
    ImageUrls,
    MovieHydrator,
    build_movie_record,
    extract_cast,
    extract_certification,
    extract_director,
    extract_trailer,
    extract_watch_providers,
    extract_writers,
)
from movienight.services.models import NO_DIRECTOR, WatchProvider
from movienight.services.tmdb_client import ConfigError


@pytest.fixture
def rich_details():
    return details_payload(
        603,
        "The Matrix",
        tagline="Welcome to the Real World.",
        runtime=136,
        credits={
            "cast": [
                {"id": i, "name": f"Cast {i}", "character": f"Role {i}", "profile_path": f"/p{i}.jpg"}
                for i in range(1, 13)
            ],
            "crew": [
                {"id": 50, "name": "Lilly Wachowski", "job": "Screenplay", "department": "Writing"},
                {"id": 51, "name": "Lana Wachowski", "job": "Director", "department": "Directing"},
                {"id": 52, "name": "Lilly Wachowski", "job": "Director", "department": "Directing"},
                {"id": 53, "name": "Lana Wachowski", "job": "Writer", "department": "Writing"},
                {"id": 54, "name": "Third Writer", "job": "Story", "department": "Writing"},
            ],
        },
        videos={
            "results": [
                {"site": "Vimeo", "type": "Trailer", "key": "vimeo1", "official": True},
                {"site": "YouTube", "type": "Trailer", "key": "fan", "official": False},
                {"site": "YouTube", "type": "Teaser", "key": "teaser", "official": True},
                {"site": "YouTube", "type": "Trailer", "key": "official", "official": True},
            ]
        },
        releases={
            "countries": [
                {"iso_3166_1": "GB", "certification": "15"},
                {"iso_3166_1": "US", "certification": "R"},
            ]
        },
    )


def test_build_movie_record_applies_derivation_rules(rich_details):
    providers = [WatchProvider(name="Netflix", type="stream")]
    movie = build_movie_record(rich_details, providers)

    assert movie.id == 603
    assert movie.title == "The Matrix"
    assert movie.director == "Lana Wachowski"
    assert movie.writers == ["Lilly Wachowski", "Lana Wachowski"]
    assert len(movie.cast) == 10
    assert movie.actors == ["Cast 1", "Cast 2", "Cast 3", "Cast 4"]
    assert movie.cast[0].profile_url == "https://image.tmdb.org/t/p/w185/p1.jpg"
    assert movie.cast[0].tmdb_url == "https://www.themoviedb.org/person/1"
    assert movie.poster_url == "https://image.tmdb.org/t/p/w500/poster603.jpg"
    assert movie.backdrop_url == "https://image.tmdb.org/t/p/w780/backdrop603.jpg"
    assert movie.certification == "R"
    assert movie.trailer_url == "https://www.youtube.com/watch?v=official"
    assert movie.release_year == "1999"
    assert movie.runtime_minutes == 136
    assert movie.rating == 8.4
    assert movie.vote_count == 25000
    assert movie.tagline == "Welcome to the Real World."
    assert movie.genres == ["Drama"]
    assert movie.production_companies == ["Studio One"]
    assert movie.watch_providers == providers


def test_missing_fields_fall_back_to_placeholders():
    movie = build_movie_record(
        {
            "id": 1,
            "title": "No Poster",
            "poster_path": None,
            "runtime": 0,
            "release_date": "",
            "vote_average": None,
        }
    )
    assert movie.poster_url == "https://picsum.photos/400/600?random=No%20Poster"
    assert movie.backdrop_url is None
    assert movie.director == NO_DIRECTOR
    assert movie.writers == []
    assert movie.actors == []
    assert movie.runtime_minutes is None
    assert movie.release_year is None
    assert movie.rating is None
    assert movie.certification is None
    assert movie.trailer_url is None


def test_placeholder_is_deterministic_per_title():
    first = build_movie_record({"id": 1, "title": "Same"})
    second = build_movie_record({"id": 2, "title": "Same"})
    assert first.poster_url == second.poster_url


def test_director_and_writers_from_crew():
    credits = {"crew": [{"job": "Producer", "name": "P"}, {"job": "Director", "name": "D"}]}
    assert extract_director(credits) == "D"
    assert extract_director({"crew": []}) == NO_DIRECTOR
    assert extract_director(None) == NO_DIRECTOR
    assert extract_writers({"crew": [{"department": "Writing", "name": "W"}]}) == ["W"]


def test_cast_limited_to_ten():
    credits = {"cast": [{"id": i, "name": str(i)} for i in range(20)]}
    assert [m.name for m in extract_cast(credits)] == [str(i) for i in range(10)]


def test_empty_us_certification_is_absent():
    assert extract_certification({"countries": [{"iso_3166_1": "US", "certification": ""}]}) is None
    assert extract_certification({"countries": [{"iso_3166_1": "FR", "certification": "U"}]}) is None


def test_trailer_falls_back_to_unofficial_youtube():
    videos = {"results": [{"site": "YouTube", "type": "Trailer", "key": "abc", "official": False}]}
    assert extract_trailer(videos) == "https://www.youtube.com/watch?v=abc"
    assert extract_trailer({"results": [{"site": "YouTube", "type": "Clip", "key": "x"}]}) is None


def test_watch_providers_dedup_per_type_not_per_provider():
    payload = {
        "results": {
            "US": {
                "link": "https://www.themoviedb.org/movie/603/watch?locale=US",
                "flatrate": [
                    {"provider_id": 8, "provider_name": "Netflix", "logo_path": "/n.jpg"},
                    {"provider_id": 8, "provider_name": "Netflix", "logo_path": "/n.jpg"},
                ],
                "rent": [
                    {"provider_id": 8, "provider_name": "Netflix"},
                    {"provider_id": 2, "provider_name": "Apple TV"},
                ],
                "buy": [{"provider_id": 2, "provider_name": "Apple TV"}],
            }
        }
    }
    providers = extract_watch_providers(payload)
    assert [(p.type, p.name) for p in providers] == [
        ("stream", "Netflix"),
        ("rent", "Netflix"),
        ("rent", "Apple TV"),
        ("buy", "Apple TV"),
    ]
    assert providers[0].logo_url == "https://image.tmdb.org/t/p/w92/n.jpg"
    assert all(p.link == "https://www.themoviedb.org/movie/603/watch?locale=US" for p in providers)


def test_watch_provider_region_fallback():
    ca_only = {"results": {"CA": {"flatrate": [{"provider_id": 1, "provider_name": "Crave"}]}}}
    other = {"results": {"DE": {"buy": [{"provider_id": 3, "provider_name": "Sky"}]}}}
    assert [p.name for p in extract_watch_providers(ca_only)] == ["Crave"]
    assert [p.name for p in extract_watch_providers(other)] == ["Sky"]
    assert extract_watch_providers({"results": {}}) == []


def test_custom_image_bases():
    images = ImageUrls(poster_base="https://cdn.test/p")
    movie = build_movie_record({"id": 1, "title": "T", "poster_path": "/x.jpg"}, images=images)
    assert movie.poster_url == "https://cdn.test/p/x.jpg"


def test_hydrate_requests_details_with_appended_resources(fake_tmdb):
    fake_tmdb.add_movies(11)
    fake_tmdb.providers[11] = {
        "results": {"US": {"flatrate": [{"provider_id": 337, "provider_name": "Disney Plus"}]}}
    }

    async def scenario():
        client = make_client(fake_tmdb)
        return await MovieHydrator(client, settings=make_settings()).hydrate(11)

    movie = asyncio.run(scenario())
    assert movie is not None
    assert movie.title == "Movie 11"
    assert [p.name for p in movie.watch_providers] == ["Disney Plus"]
    (params,) = fake_tmdb.params_for("movie/11")
    assert params["append_to_response"] == "credits,images,videos,releases"


def test_hydrate_returns_none_on_failed_details(fake_tmdb):
    async def scenario():
        client = make_client(fake_tmdb)
        return await MovieHydrator(client, settings=make_settings()).hydrate(404)

    assert asyncio.run(scenario()) is None


def test_hydrate_tolerates_provider_failure(fake_tmdb):
    fake_tmdb.add_movies(5)
    fake_tmdb.routes["movie/5/watch/providers"] = (401, {"status_message": "nope"})

    async def scenario():
        client = make_client(fake_tmdb)
        return await MovieHydrator(client, settings=make_settings()).hydrate(5)

    movie = asyncio.run(scenario())
    assert movie is not None
    assert movie.watch_providers == []


def test_hydrate_many_drops_gaps_and_keeps_order(fake_tmdb):
    fake_tmdb.add_movies(3, 1, 2)

    async def scenario():
        client = make_client(fake_tmdb)
        hydrator = MovieHydrator(client, settings=make_settings(), concurrency=2)
        return await hydrator.hydrate_many([3, 999, 1, 2])

    movies = asyncio.run(scenario())
    assert [m.id for m in movies] == [3, 1, 2]


def test_list_popular_preserves_upstream_order(fake_tmdb):
    order = [42, 7, 19, 3, 88, 5]
    fake_tmdb.routes["movie/popular"] = {"results": [{"id": i} for i in order], "total_pages": 1}
    fake_tmdb.add_movies(*order)

    async def scenario():
        return await make_service(fake_tmdb).list_popular(5)

    movies = asyncio.run(scenario())
    assert [m.id for m in movies] == order[:5]


def test_list_popular_without_api_key_raises_config_error(fake_tmdb):
    async def scenario():
        return await make_service(fake_tmdb, api_key="").list_popular(1)

    with pytest.raises(ConfigError):
        asyncio.run(scenario())


def test_get_details_without_api_key_raises_config_error(fake_tmdb):
    async def scenario():
        return await make_service(fake_tmdb, api_key="").get_details(1)

    with pytest.raises(ConfigError):
        asyncio.run(scenario())