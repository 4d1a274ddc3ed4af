"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3")
    tmdb_language: str = Field(default="en-US")
    tmdb_region: str = Field(default="US")
    tmdb_poster_base: str = Field(default="https://image.tmdb.org/t/p/w500")
    tmdb_backdrop_base: str = Field(default="https://image.tmdb.org/t/p/w780")
    tmdb_profile_base: str = Field(default="https://image.tmdb.org/t/p/w185")
    tmdb_logo_base: str = Field(default="https://image.tmdb.org/t/p/w92")
    tmdb_timeout: float = Field(default=10.0)

    cache_capacity: int = Field(default=200)
    rate_limit_requests: int = Field(default=20)
    rate_limit_interval: float = Field(default=1.0)
    hydration_concurrency: int = Field(default=8)

    curation_url: str | None = Field(default=None, alias="CURATION_URL")
    curation_api_key: str | None = Field(default=None, alias="CURATION_API_KEY")
    curation_timeout: float = Field(default=8.0)

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    langchain_tracing_v2: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")
    langchain_api_key: str | None = Field(default=None, alias="LANGCHAIN_API_KEY")
    langchain_project: str | None = Field(default=None, alias="LANGCHAIN_PROJECT")

    database_url: str = Field(default="sqlite:///./movienight.db", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
