"""
Ateria - AI Intent Classifier

AI-first classification for free text. Finnish inflects food nouns
heavily ("maidolla", "kaurapuuroa"), which regex splitting cannot
normalize, so everything except trivially structured replies goes to the
NLU provider:

1. Structured reply (number, weight, yes/no, command)? -> regex
2. Everything else -> NLU provider
3. Provider fails or is unsure -> regex
"""

import logging
from typing import Literal, Optional

from opik import track
from pydantic import BaseModel

from ateria.config import get_settings
from ateria.core.base_agent import BaseAgent
from ateria.core.capabilities import AIProvider
from ateria.core.parser import (
    COMPANION_NO,
    COMPANION_YES,
    classify_command,
    classify_intent,
    parse_answer,
    parse_meal_text,
)
from ateria.core.state import (
    AIConversationContext,
    AIParseResult,
    ClarificationAnswer,
    ClassifiedIntent,
    IntentType,
    ParsedMealItem,
    PendingQuestion,
)

logger = logging.getLogger(__name__)

# Bounds for model portion estimates
MIN_PORTION_GRAMS = 1
MAX_PORTION_GRAMS = 2000


def is_structured_input(message: str, pending_question: Optional[PendingQuestion]) -> bool:
    """True when the regex classifier handles the message perfectly."""
    trimmed = message.strip()
    if not trimmed:
        return True

    # Free text in reply to a disambiguation is a clarification, which still needs NLU
    if pending_question:
        answer = parse_answer(trimmed, pending_question.type)
        if answer is not None and not isinstance(answer, ClarificationAnswer):
            return True

    key = trimmed.lower().rstrip(".!")
    if COMPANION_YES.match(key) or COMPANION_NO.match(key):
        return True

    return classify_command(trimmed) is not None


def is_reasonable_portion(grams: Optional[float]) -> bool:
    return grams is not None and MIN_PORTION_GRAMS <= grams <= MAX_PORTION_GRAMS


def ai_result_to_intent(result: AIParseResult, original_message: str) -> ClassifiedIntent:
    """
    Convert the provider's parse into the engine's ClassifiedIntent.

    Search hints replace item text. A plausible gram estimate replaces a
    non-gram amount so the engine can resolve without asking.
    """
    if result.intent == IntentType.ADD_ITEMS:
        if not result.items:
            return ClassifiedIntent(type=IntentType.ADD_ITEMS, data=parse_meal_text(original_message))

        items = []
        for item in result.items:
            text = item.search_hint or item.text
            if item.unit != "g" and is_reasonable_portion(item.portion_estimate_grams):
                items.append(ParsedMealItem(text=text, amount=item.portion_estimate_grams, unit="g"))
            else:
                items.append(ParsedMealItem(text=text, amount=item.amount, unit=item.unit))
        return ClassifiedIntent(type=IntentType.ADD_ITEMS, data=items)

    if result.intent == IntentType.ANSWER:
        return ClassifiedIntent(type=IntentType.ANSWER, data=result.answer)
    if result.intent == IntentType.CORRECTION:
        return ClassifiedIntent(type=IntentType.CORRECTION, data=result.correction)
    if result.intent == IntentType.REMOVAL:
        return ClassifiedIntent(type=IntentType.REMOVAL, data=result.removal)
    if result.intent == IntentType.DONE:
        return ClassifiedIntent(type=IntentType.DONE)
    return ClassifiedIntent(type=IntentType.UNCLEAR)


class ClassifyRequest(BaseModel):
    """Input for the AI classifier."""
    message: str
    context: AIConversationContext


class ClassifyOutcome(BaseModel):
    """Classified intent and which path produced it."""
    intent: ClassifiedIntent
    source: Literal["ai", "regex"]


class AIIntentClassifier(BaseAgent[ClassifyRequest, ClassifyOutcome]):
    """
    NLU-backed intent classifier with regex fallback.

    Usage:
        classifier = AIIntentClassifier(provider=GeminiProvider())
        result = await classifier.execute(ClassifyRequest(message=msg, context=ctx))
        intent = result.output.intent if result.success else classify_intent(msg, pq)
    """

    def __init__(
        self,
        provider: AIProvider,
        confidence_threshold: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        super().__init__(timeout_seconds=timeout_seconds or settings.ai_parse_timeout_seconds)
        self.provider = provider
        self.confidence_threshold = (
            confidence_threshold if confidence_threshold is not None
            else settings.ai_confidence_threshold
        )

    @property
    def name(self) -> str:
        return "AIIntentClassifier"

    @track(name="ai_parser.process")
    async def process(self, input: ClassifyRequest) -> ClassifyOutcome:
        pending = input.context.pending_question

        if is_structured_input(input.message, pending):
            return ClassifyOutcome(intent=classify_intent(input.message, pending), source="regex")

        try:
            result = await self.provider.parse_message(input.message, input.context)
        except Exception as e:
            self._logger.error(f"NLU provider failed, falling back to regex: {e}")
            return ClassifyOutcome(intent=classify_intent(input.message, pending), source="regex")

        if result.confidence >= self.confidence_threshold:
            return ClassifyOutcome(intent=ai_result_to_intent(result, input.message), source="ai")

        self._logger.warning(
            f"Low confidence ({result.confidence:.2f}), falling back to regex"
        )
        return ClassifyOutcome(intent=classify_intent(input.message, pending), source="regex")
