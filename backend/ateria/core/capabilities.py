"""
Ateria - Pluggable Capabilities

Narrow contracts for the collaborators the conversation engine calls out
to. The engine only ever depends on these shapes; the Fineli client and
the Gemini-backed agents are two implementations among many.
"""

from typing import Awaitable, Callable, Optional, Protocol, Sequence, runtime_checkable

from ateria.core.state import (
    AIConversationContext,
    AIParseResult,
    AIResponseResult,
    FineliFood,
    RankedResult,
)


@runtime_checkable
class FoodSearchProvider(Protocol):
    """Food-composition search. Returns raw hits in provider order."""

    async def search_foods(self, query: str, lang: str = "fi") -> list[FineliFood]:
        ...


# (candidates, query) -> ordered subset; same contract as rank_search_results
ResultRanker = Callable[[Sequence[FineliFood], str], Awaitable[list[FineliFood]]]

# Supplies ids for newly created items; injectable for deterministic tests
ItemIdFactory = Callable[[], str]


class AIProvider(Protocol):
    """
    Language-model backend used by the optional AI layer.

    Every method may raise or time out; callers fall back to the
    deterministic path.
    """

    async def parse_message(self, message: str, context: AIConversationContext) -> AIParseResult:
        ...

    async def rank_results(
        self,
        query: str,
        candidates: Sequence[FineliFood],
    ) -> list[RankedResult]:
        ...

    async def generate_response(
        self,
        template_message: str,
        context: AIConversationContext,
    ) -> Optional[AIResponseResult]:
        ...
