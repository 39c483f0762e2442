"""
Ateria - AI Result Ranker

Fineli's text search matches the query anywhere in a food name, so
"maito" also returns "Dippikastikejauhe, sisältää maitoa". This agent asks
the language model to rate each hit and keeps only the ones the user
plausibly meant. It satisfies the engine's ResultRanker contract by being
callable as `await ranker(results, query)`.
"""

import logging
from typing import Optional, Sequence

from opik import track
from pydantic import BaseModel, Field

from ateria.config import get_settings
from ateria.core.base_agent import BaseAgent
from ateria.core.capabilities import AIProvider
from ateria.core.search import rank_search_results
from ateria.core.state import FineliFood

logger = logging.getLogger(__name__)

# Keep prompts small
CANDIDATE_LIMIT = 15
DEFAULT_MIN_RELEVANCE = 3
DEFAULT_MAX_RESULTS = 5


class RankRequest(BaseModel):
    query: str
    results: list[FineliFood]


class RankOutcome(BaseModel):
    foods: list[FineliFood] = Field(default_factory=list)


class AIResultRanker(BaseAgent[RankRequest, RankOutcome]):
    """
    Relevance filter backed by an AIProvider.

    Returns hits rated at least `min_relevance`, best first and capped at
    `max_results`. When nothing qualifies the single top hit is kept. If
    the provider fails or times out the heuristic ranking is used instead.
    """

    def __init__(
        self,
        provider: AIProvider,
        min_relevance: int = DEFAULT_MIN_RELEVANCE,
        max_results: int = DEFAULT_MAX_RESULTS,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        super().__init__(timeout_seconds=timeout_seconds or settings.ai_rank_timeout_seconds)
        self.provider = provider
        self.min_relevance = min_relevance
        self.max_results = max_results

    @property
    def name(self) -> str:
        return "AIResultRanker"

    @track(name="ai_ranker.process")
    async def process(self, input: RankRequest) -> RankOutcome:
        results = input.results
        if len(results) <= 1:
            return RankOutcome(foods=list(results))

        candidates = results[:CANDIDATE_LIMIT]
        ranked = await self.provider.rank_results(input.query, candidates)
        if not ranked:
            return RankOutcome(foods=list(results[: self.max_results]))

        relevant = [
            r for r in ranked
            if r.relevance >= self.min_relevance and 0 <= r.index < len(candidates)
        ]
        # sorted() is stable, so equal ratings keep the provider's order
        relevant = sorted(relevant, key=lambda r: r.relevance, reverse=True)

        if not relevant:
            self._logger.debug(f"No relevant hits for '{input.query}', keeping the top one")
            return RankOutcome(foods=list(results[:1]))

        seen: set[int] = set()
        foods: list[FineliFood] = []
        for r in relevant:
            if r.index in seen:
                continue
            seen.add(r.index)
            foods.append(candidates[r.index])
        return RankOutcome(foods=foods[: self.max_results])

    async def __call__(self, results: Sequence[FineliFood], query: str) -> list[FineliFood]:
        if len(results) <= 1:
            return list(results)

        result = await self.execute(RankRequest(query=query, results=list(results)))
        if result.success:
            return result.output.foods

        return rank_search_results(results, query, self.max_results)
