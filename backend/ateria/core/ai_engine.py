"""
Ateria - AI-Enhanced Turn

Wraps the deterministic TurnOrchestrator with the optional AI layer:

1. **PARSE**: AI-first intent classification, regex on failure or timeout
2. **RESOLVE**: the usual turn, with the AI result ranker filtering hits
3. **RESPOND**: optional natural-language rephrasing of confirmations

Without a provider this is exactly `TurnOrchestrator.process_message`.
"""

import logging
from datetime import datetime
from typing import Optional

from opik import track

from ateria.agents.ai_parser import AIIntentClassifier, ClassifyRequest
from ateria.agents.ai_ranker import AIResultRanker
from ateria.agents.ai_responder import AIResponder, RespondRequest
from ateria.config import get_settings
from ateria.core.capabilities import AIProvider
from ateria.core.orchestrator import TurnOrchestrator
from ateria.core.parser import classify_intent
from ateria.core.state import (
    AIConversationContext,
    AIEngineStepResult,
    ConversationState,
    EngineStepResult,
    ItemState,
    MealType,
    QuestionType,
    TimeOfDay,
)

logger = logging.getLogger(__name__)


def time_of_day(hour: int) -> TimeOfDay:
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    if hour >= 21 or hour < 5:
        return TimeOfDay.NIGHT
    return TimeOfDay.MORNING


def build_context(
    state: ConversationState,
    meal_type: MealType = MealType.OTHER,
    now: Optional[datetime] = None,
) -> AIConversationContext:
    """Snapshot of the conversation handed to the NLU provider and responder."""
    now = now or datetime.now()

    resolved_names = [
        item.selected_food.name_fi for item in state.items
        if item.state == ItemState.RESOLVED and item.selected_food
    ]

    candidates = None
    question = state.pending_question
    if question and question.type == QuestionType.DISAMBIGUATION:
        active = state.item_by_id(state.active_item_id)
        if active:
            candidates = active.fineli_candidates

    return AIConversationContext(
        conversation_state=state,
        meal_type=meal_type,
        time_of_day=time_of_day(now.hour),
        resolved_item_names=resolved_names,
        pending_question=question,
        fineli_candidates=candidates,
        locale=state.language,
    )


def _with_ai_fields(result: EngineStepResult, **fields) -> AIEngineStepResult:
    return AIEngineStepResult(
        assistant_message=result.assistant_message,
        updated_state=result.updated_state,
        resolved_items=result.resolved_items,
        question_metadata=result.question_metadata,
        **fields,
    )


@track(name="ai_engine.process_message")
async def process_message_with_ai(
    message: str,
    state: ConversationState,
    orchestrator: TurnOrchestrator,
    provider: Optional[AIProvider] = None,
    meal_type: MealType = MealType.OTHER,
    use_responses: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> AIEngineStepResult:
    """
    Process a message with optional AI enhancement.

    Args:
        message: Raw user message
        state: Current conversation state (not modified)
        orchestrator: Deterministic engine to run the turn on
        provider: Language-model backend; None runs the plain engine
        meal_type: Meal being logged, for the prompts
        use_responses: Rephrase confirmations (defaults to AI_USE_RESPONSES)
        now: Clock override for the time-of-day context

    Returns:
        AIEngineStepResult; every AI failure degrades to the template path
    """
    if provider is None:
        result = await orchestrator.process_message(message, state)
        return _with_ai_fields(result, ai_parsed=False, ai_response=False)

    settings = get_settings()
    if use_responses is None:
        use_responses = settings.ai_use_responses

    # === PARSE ===
    context = build_context(state, meal_type, now)
    classifier = AIIntentClassifier(provider)
    parsed = await classifier.execute(ClassifyRequest(message=message, context=context))

    if parsed.success:
        intent = parsed.output.intent
        ai_parsed = parsed.output.source == "ai"
    else:
        logger.warning(f"AI parse unavailable ({parsed.error}), using regex classifier")
        intent = classify_intent(message, state.pending_question)
        ai_parsed = False

    # === RESOLVE ===
    ranker = AIResultRanker(provider)
    result = await orchestrator.process_intent(intent, state, result_ranker=ranker)

    # === RESPOND ===
    # Structured questions carry exact option text, so they are never rephrased
    ai_message = None
    suggestions = []
    ai_response = False

    if use_responses and result.question_metadata is None and result.assistant_message:
        responder = AIResponder(provider)
        response = await responder.execute(RespondRequest(
            template_message=result.assistant_message,
            context=build_context(result.updated_state, meal_type, now),
        ))
        if response.success:
            ai_message = response.output.message
            suggestions = response.output.suggestions
            ai_response = True

    return _with_ai_fields(
        result,
        ai_message=ai_message,
        suggestions=suggestions,
        ai_parsed=ai_parsed,
        ai_response=ai_response,
    )
