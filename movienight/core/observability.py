"""Logging and LangSmith tracing setup applied once at startup."""

from __future__ import annotations

import logging
import os

from movienight.core.config import get_settings


def configure_logging() -> None:
    """Install a root handler at the configured ``LOG_LEVEL``."""

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def configure_tracing() -> None:
    """Export LangSmith env vars for the rerank scorer if provided in settings."""

    settings = get_settings()
    if settings.langchain_tracing_v2:
        os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
    if settings.langchain_api_key:
        os.environ.setdefault("LANGCHAIN_API_KEY", settings.langchain_api_key)
    if settings.langchain_project:
        os.environ.setdefault("LANGCHAIN_PROJECT", settings.langchain_project)
