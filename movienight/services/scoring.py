"""Server side of the rerank hook: score candidates against the search criteria."""

from __future__ import annotations

import json
import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from movienight.core.config import get_settings


logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5

_SYSTEM_PROMPT = (
    "You rank movie candidates for a movie-night picker. "
    "Given the user's search criteria and a numbered list of candidates, "
    "score every candidate from 0 (poor fit) to 1 (perfect fit). "
    "Use the candidate's list position as idx."
)


class CandidateScore(BaseModel):
    idx: int = Field(..., description="Zero-based position of the candidate")
    score: float = Field(..., ge=0.0, le=1.0)


class Ranking(BaseModel):
    ranked: list[CandidateScore]


def uniform_ranking(candidates: list[dict[str, Any]]) -> Ranking:
    return Ranking(
        ranked=[CandidateScore(idx=i, score=NEUTRAL_SCORE) for i in range(len(candidates))]
    )


def build_scorer() -> Any:
    settings = get_settings()
    llm = ChatOpenAI(
        temperature=0.0,
        model=settings.openai_model,
        api_key=settings.openai_api_key,
    )
    return llm.with_structured_output(Ranking)


async def score_candidates(criteria: dict[str, Any], candidates: list[dict[str, Any]]) -> Ranking:
    """Score candidates with the LLM when OpenAI is configured, otherwise neutrally."""

    settings = get_settings()
    if not candidates or not settings.openai_api_key:
        return uniform_ranking(candidates)

    numbered = [{"idx": i, **candidate} for i, candidate in enumerate(candidates)]
    messages = [
        SystemMessage(content=_SYSTEM_PROMPT),
        HumanMessage(
            content=json.dumps(
                {"criteria": criteria, "candidates": numbered}, ensure_ascii=False
            )
        ),
    ]
    try:
        result = await build_scorer().ainvoke(messages)
    except Exception as exc:
        logger.warning("LLM scoring failed, returning neutral scores: %s", exc)
        return uniform_ranking(candidates)
    if not isinstance(result, Ranking) or not result.ranked:
        logger.info("LLM scoring returned nothing usable, returning neutral scores")
        return uniform_ranking(candidates)
    return result
