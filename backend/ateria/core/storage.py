"""
Ateria - In-Memory Conversation Store

Keeps one serialized ConversationState per meal between turns. States are
stored as the JSON wire dict, never as live objects, so every load goes
through the same validation a real persistence layer would.
Can be replaced with a database (PostgreSQL, Redis) for production.
"""

import logging
from typing import Literal, Optional

from ateria.core.state import ConversationState, new_id

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    In-memory store of conversation states keyed by meal id.

    For the terminal chat and tests - replace with a database for production.
    """

    def __init__(self):
        self._states: dict[str, dict] = {}

    def new_state(
        self,
        session_id: Optional[str] = None,
        meal_id: Optional[str] = None,
        language: Literal["fi", "en"] = "fi",
    ) -> ConversationState:
        """Create, save and return an empty conversation for a meal."""
        state = ConversationState(
            session_id=session_id or new_id(),
            meal_id=meal_id or new_id(),
            language=language,
        )
        self.save(state)
        logger.info(f"Started conversation for meal {state.meal_id}")
        return state

    def save(self, state: ConversationState) -> ConversationState:
        """Save or replace the state of a meal."""
        self._states[state.meal_id] = state.to_wire()
        logger.debug(f"Saved state for meal {state.meal_id} ({len(state.items)} items)")
        return state

    def load(self, meal_id: str) -> Optional[ConversationState]:
        """Restore the state of a meal, or None if unknown."""
        data = self._states.get(meal_id)
        if data is None:
            return None
        return ConversationState.model_validate(data)

    def load_wire(self, meal_id: str) -> Optional[dict]:
        """Raw wire dict for a meal, as a client would receive it."""
        return self._states.get(meal_id)

    def delete(self, meal_id: str) -> bool:
        if meal_id in self._states:
            del self._states[meal_id]
            logger.info(f"Deleted conversation for meal {meal_id}")
            return True
        return False

    def exists(self, meal_id: str) -> bool:
        return meal_id in self._states

    def clear_all(self):
        """Clear all data (for testing)."""
        self._states.clear()
        logger.warning("All conversation states cleared")
