"""
Ateria - AI Responder

Rephrases the engine's template confirmation into more natural language.
Never used while a structured question is pending: the question's exact
options must reach the user unchanged.
"""

import logging
from typing import Optional

from opik import track
from pydantic import BaseModel

from ateria.config import get_settings
from ateria.core.base_agent import AgentError, BaseAgent
from ateria.core.capabilities import AIProvider
from ateria.core.state import AIConversationContext, AIResponseResult

logger = logging.getLogger(__name__)


class RespondRequest(BaseModel):
    template_message: str
    context: AIConversationContext


class AIResponder(BaseAgent[RespondRequest, AIResponseResult]):
    """Response generator backed by an AIProvider."""

    def __init__(self, provider: AIProvider, timeout_seconds: Optional[float] = None):
        settings = get_settings()
        super().__init__(timeout_seconds=timeout_seconds or settings.ai_response_timeout_seconds)
        self.provider = provider

    @property
    def name(self) -> str:
        return "AIResponder"

    @track(name="ai_responder.process")
    async def process(self, input: RespondRequest) -> AIResponseResult:
        result = await self.provider.generate_response(input.template_message, input.context)
        if result is None or not result.message.strip():
            raise AgentError(self.name, "Provider returned no message")
        return result
