"""
Ateria - Turn Orchestrator

The central coordinator of the food-logging dialog. One call handles one
user turn:

1. **CLASSIFY**: turn the raw message into a typed intent
   - Regex classifier by default, or a pre-classified intent from the AI layer

2. **DISPATCH**: run the intent against the conversation state
   - Searches the food provider, ranks and resolves items
   - Applies answers, corrections and removals

3. **ADVANCE**: reconcile the queue and decide what to say next
   - Promotes the next unresolved item and asks its question
   - Offers a forgotten companion once the meal is complete

The input state is never mutated; every turn works on a deep copy and
returns the new state for the caller to persist.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from opik import track

from ateria.config import get_settings
from ateria.core.capabilities import FoodSearchProvider, ItemIdFactory, ResultRanker
from ateria.core.companions import check_companions
from ateria.core.parser import classify_intent
from ateria.core.portions import convert_portion, density_category, find_size_unit
from ateria.core.questions import (
    format_added_notice,
    format_confirmation,
    format_grams,
    generate_companion_question,
    generate_completion_message,
    generate_question,
    text,
)
from ateria.core.resolver import (
    apply_disambiguation,
    apply_portion,
    create_initial_item,
    increment_retry,
    resolve_item_state,
    revert_to_parsed,
    to_resolved_item,
)
from ateria.core.search import rank_search_results
from ateria.core.state import (
    LAST_ITEM,
    ClarificationAnswer,
    ClassifiedIntent,
    CompanionAnswer,
    ConversationState,
    ConversionMethod,
    CorrectionData,
    CountAnswer,
    EngineStepResult,
    FineliFood,
    FractionAnswer,
    IntentType,
    ItemState,
    ParsedAnswer,
    ParsedItem,
    ParsedMealItem,
    PendingQuestion,
    PortionConversionResult,
    PortionSizeAnswer,
    QuestionMetadata,
    QuestionType,
    RejectAnswer,
    RemovalData,
    SelectionAnswer,
    UpdatePortionData,
    VolumeAnswer,
    WeightAnswer,
    new_id,
)

logger = logging.getLogger(__name__)

# Reference piece units for fractional answers ("puolikas"), in preference order
FRACTION_REFERENCE_UNITS = ("KPL_M", "KPL_L", "KPL_S", "PORTM")


@dataclass
class _Turn:
    """Scratch space for a single turn."""
    state: ConversationState
    language: str
    ranker: Optional[ResultRanker] = None
    messages: list[str] = field(default_factory=list)
    resolved_ids: list[str] = field(default_factory=list)
    keep_question: bool = False

    def say(self, message: str) -> None:
        if message:
            self.messages.append(message)

    def note_resolved(self, item: ParsedItem) -> None:
        if item.state == ItemState.RESOLVED and item.id not in self.resolved_ids:
            self.resolved_ids.append(item.id)


def resolve_portion_grams(
    answer: ParsedAnswer,
    food: Optional[FineliFood],
) -> Optional[PortionConversionResult]:
    """
    Turn a portion answer into grams for the selected food.

    Returns None when the answer cannot be applied to this food (unknown
    size, no reference unit for a fraction, non-positive amount).
    """
    if food is None:
        return None

    units = food.units

    if isinstance(answer, WeightAnswer):
        return convert_portion(answer.grams, "g", units)

    if isinstance(answer, PortionSizeAnswer):
        unit = find_size_unit(answer.key, units)
        if unit is None:
            return None
        return PortionConversionResult(
            grams=unit.mass_grams,
            unit_code=unit.code,
            unit_label=unit.label_fi or unit.code.lower(),
            method=ConversionMethod.FINELI_UNIT,
        )

    if isinstance(answer, VolumeAnswer):
        return convert_portion(answer.value, answer.unit, units, density_category(food.name_fi))

    if isinstance(answer, FractionAnswer):
        if answer.value <= 0:
            return None
        for code in FRACTION_REFERENCE_UNITS:
            unit = food.find_unit(code)
            if unit:
                return PortionConversionResult(
                    grams=unit.mass_grams * answer.value,
                    unit_code=unit.code,
                    unit_label=unit.label_fi or unit.code.lower(),
                    method=ConversionMethod.FINELI_UNIT,
                )
        return None

    if isinstance(answer, CountAnswer):
        return convert_portion(answer.value, answer.unit, units)

    return None


class TurnOrchestrator:
    """
    Runs one dialog turn against a ConversationState.

    The food search provider is required; the result ranker is optional
    and may be passed per turn. Item ids come from `item_id_factory` so
    tests can make whole conversations reproducible.

    Usage:
        orchestrator = TurnOrchestrator(search_provider=FineliClient())
        result = await orchestrator.process_message("kaurapuuro", state)
        state = result.updated_state
    """

    def __init__(
        self,
        search_provider: FoodSearchProvider,
        item_id_factory: Optional[ItemIdFactory] = None,
        max_no_match_retries: Optional[int] = None,
        result_limit: Optional[int] = None,
    ):
        self.settings = get_settings()
        self.search_provider = search_provider
        self._new_item_id = item_id_factory or new_id
        self.max_no_match_retries = (
            max_no_match_retries if max_no_match_retries is not None
            else self.settings.max_no_match_retries
        )
        self.result_limit = result_limit or self.settings.search_result_limit
        self._logger = logging.getLogger("ateria.orchestrator")

    # === Entry points ===

    @track(name="orchestrator.process_message")
    async def process_message(
        self,
        message: str,
        state: ConversationState,
        result_ranker: Optional[ResultRanker] = None,
    ) -> EngineStepResult:
        """Classify a message with the regex classifier and run it."""
        intent = classify_intent(message, state.pending_question)
        self._logger.debug(f"Classified '{message}' as {intent.type.value}")
        return await self.process_intent(intent, state, result_ranker)

    @track(name="orchestrator.process_intent")
    async def process_intent(
        self,
        intent: ClassifiedIntent,
        state: ConversationState,
        result_ranker: Optional[ResultRanker] = None,
    ) -> EngineStepResult:
        """
        Run a pre-classified intent through the dialog state machine.

        Args:
            intent: Output of either classifier path
            state: Current conversation state (not modified)
            result_ranker: Optional replacement for heuristic ranking

        Returns:
            EngineStepResult with the new state, the message to show and
            the items that reached RESOLVED during this turn
        """
        turn = _Turn(
            state=state.model_copy(deep=True),
            language=state.language,
            ranker=result_ranker,
        )
        self._logger.info(
            f"Meal {state.meal_id}: {intent.type.value} "
            f"({len(state.items)} items, {len(state.unresolved_queue)} queued)"
        )

        if intent.type == IntentType.ADD_ITEMS:
            await self._handle_add_items(turn, intent.data or [])
        elif intent.type == IntentType.ANSWER:
            await self._handle_answer(turn, intent.data)
        elif intent.type == IntentType.CORRECTION:
            await self._handle_correction(turn, intent.data)
        elif intent.type == IntentType.REMOVAL:
            self._handle_removal(turn, intent.data)
        elif intent.type == IntentType.DONE:
            self._handle_done(turn)
        else:
            self._handle_unclear(turn)

        self._advance(turn)
        return self._build_result(turn)

    # === Search ===

    async def _search(self, query: str, language: str) -> list[FineliFood]:
        """Search the provider; a failed search counts as no hits."""
        try:
            return list(await self.search_provider.search_foods(query, language))
        except Exception as e:
            self._logger.warning(f"Food search failed for '{query}': {e}")
            return []

    async def _rank(
        self,
        item: ParsedItem,
        results: Sequence[FineliFood],
        ranker: Optional[ResultRanker],
    ) -> list[FineliFood]:
        # Auto-resolve takes the top hit anyway, so the external ranker is skipped
        if ranker is not None and not item.has_known_grams and len(results) > 1:
            try:
                return list(await ranker(results, item.raw_text))[: self.result_limit]
            except Exception as e:
                self._logger.warning(f"Result ranker failed for '{item.raw_text}': {e}")
        return rank_search_results(results, item.raw_text, self.result_limit)

    async def _search_and_resolve(self, turn: _Turn, item: ParsedItem) -> ParsedItem:
        results = await self._search(item.raw_text, turn.language)
        top_results = await self._rank(item, results, turn.ranker)
        resolved = resolve_item_state(item, results, top_results)
        self._logger.debug(
            f"'{item.raw_text}': {len(results)} hits, {len(top_results)} ranked -> {resolved.state.value}"
        )
        return resolved

    # === State helpers ===

    @staticmethod
    def _replace_item(turn: _Turn, item: ParsedItem) -> None:
        turn.state.items = [item if i.id == item.id else i for i in turn.state.items]

    @staticmethod
    def _remove_item(turn: _Turn, item_id: str) -> None:
        state = turn.state
        state.items = [i for i in state.items if i.id != item_id]
        state.unresolved_queue = [i for i in state.unresolved_queue if i != item_id]
        if state.active_item_id == item_id:
            state.active_item_id = state.unresolved_queue[0] if state.unresolved_queue else None
        if state.pending_question and state.pending_question.item_id == item_id:
            state.pending_question = None

    @staticmethod
    def _enqueue(turn: _Turn, item: ParsedItem) -> None:
        if item.state != ItemState.RESOLVED and item.id not in turn.state.unresolved_queue:
            turn.state.unresolved_queue.append(item.id)

    def _confirm(self, turn: _Turn, item: ParsedItem) -> None:
        """Record a RESOLVED item and acknowledge it."""
        if item.state != ItemState.RESOLVED or item.selected_food is None:
            return
        turn.note_resolved(item)
        turn.say(format_confirmation(
            item.selected_food,
            item.portion_grams,
            item.portion_unit_label,
            turn.language,
        ))

    def _keep_question(self, turn: _Turn, question: PendingQuestion, message: str) -> None:
        turn.state.pending_question = question
        turn.keep_question = True
        turn.say(message)

    # === Intent handlers ===

    async def _handle_add_items(self, turn: _Turn, parsed_items: list[ParsedMealItem]) -> None:
        lang = turn.language
        parsed_items = [p for p in parsed_items if p.text.strip()]
        if not parsed_items:
            turn.say(text(lang, "not_understood_food"))
            return

        had_active = turn.state.item_by_id(turn.state.active_item_id) is not None

        initial = [create_initial_item(p, self._new_item_id()) for p in parsed_items]
        new_items = await asyncio.gather(*(self._search_and_resolve(turn, item) for item in initial))

        for item in new_items:
            turn.state.items.append(item)
            self._enqueue(turn, item)
            turn.note_resolved(item)

        if turn.state.active_item_id is None and turn.state.unresolved_queue:
            turn.state.active_item_id = turn.state.unresolved_queue[0]

        resolved = [i for i in new_items if i.state == ItemState.RESOLVED]
        pending = [i for i in new_items if i.state != ItemState.RESOLVED]
        details = [
            f"{i.selected_food.display_name(lang)} {format_grams(i.portion_grams)}" for i in resolved
        ]

        if resolved and not pending:
            if len(resolved) == 1:
                only = resolved[0]
                turn.say(text(
                    lang, "resolved_one",
                    name=only.selected_food.display_name(lang),
                    grams=format_grams(only.portion_grams),
                ))
            else:
                turn.say(text(lang, "resolved_many", details=", ".join(details)))
            turn.say(text(lang, "correction_hint"))
        elif resolved:
            turn.say(text(lang, "resolved_some", details=", ".join(details)))
            turn.say(text(lang, "correction_hint"))
        elif len(new_items) == 1:
            turn.say(text(lang, "searching_one", text=new_items[0].raw_text))
        else:
            turn.say(text(lang, "searching_many", count=len(new_items)))

        if had_active and pending:
            turn.say(format_added_notice([i.raw_text for i in pending], lang))

    async def _handle_answer(self, turn: _Turn, answer: Optional[ParsedAnswer]) -> None:
        state = turn.state
        lang = turn.language
        question = state.pending_question
        active = state.item_by_id(state.active_item_id)

        if question is None:
            turn.say(text(lang, "not_understood_food"))
            return

        if question.type == QuestionType.COMPANION:
            if active is not None:
                # A companion question only stands when nothing else is queued
                turn.say(text(lang, "not_understood_food"))
                return
            await self._answer_companion(turn, question, answer)
            return

        if active is None or active.id != question.item_id:
            turn.say(text(lang, "not_understood_food"))
            return

        if answer is None:
            self._keep_question(turn, question, text(lang, "not_understood_answer"))
            return

        if question.type in (QuestionType.DISAMBIGUATION, QuestionType.NO_MATCH_RETRY):
            await self._answer_candidates(turn, question, active, answer)
        elif question.type == QuestionType.PORTION:
            self._answer_portion(turn, active, answer)

    async def _answer_candidates(
        self,
        turn: _Turn,
        question: PendingQuestion,
        item: ParsedItem,
        answer: ParsedAnswer,
    ) -> None:
        lang = turn.language

        if isinstance(answer, RejectAnswer):
            self._remove_item(turn, item.id)
            turn.say(text(lang, "skipping", raw_text=item.raw_text))
            return

        if isinstance(answer, ClarificationAnswer):
            await self._clarify(turn, item, answer.text)
            return

        if isinstance(answer, SelectionAnswer) and item.state == ItemState.DISAMBIGUATING:
            candidates = item.fineli_candidates or []
            if not 0 <= answer.index < len(candidates):
                self._keep_question(
                    turn, question, text(lang, "invalid_choice", count=len(candidates))
                )
                return
            updated = apply_disambiguation(item, candidates[answer.index])
            self._replace_item(turn, updated)
            self._confirm(turn, updated)
            return

        self._reask(turn, item)

    async def _clarify(self, turn: _Turn, item: ParsedItem, new_text: str) -> None:
        """Re-search an item under the user's alternate name."""
        was_no_match = item.state == ItemState.NO_MATCH
        resolved = await self._search_and_resolve(turn, revert_to_parsed(item, new_text))

        if resolved.state == ItemState.NO_MATCH:
            if was_no_match:
                resolved = increment_retry(resolved)
                if resolved.retry_count >= self.max_no_match_retries:
                    self._logger.info(f"Giving up on '{new_text}' after {resolved.retry_count} retries")
                    self._remove_item(turn, item.id)
                    turn.say(text(turn.language, "not_found_skip", raw_text=new_text))
                    return
            else:
                resolved = resolved.model_copy(update={"retry_count": 0})

        self._replace_item(turn, resolved)
        self._confirm(turn, resolved)

    def _answer_portion(self, turn: _Turn, item: ParsedItem, answer: ParsedAnswer) -> None:
        lang = turn.language
        conversion = resolve_portion_grams(answer, item.selected_food)

        if conversion is None or conversion.grams <= 0:
            retried = increment_retry(item)
            self._replace_item(turn, retried)
            generated = generate_question(retried, language=lang)
            if generated is None:
                turn.say(text(lang, "not_understood_amount"))
                return
            message, question = generated
            self._keep_question(turn, question, f"{text(lang, 'not_understood_amount')} {message}")
            return

        amount = getattr(answer, "value", None)
        if isinstance(answer, PortionSizeAnswer):
            amount = 1
        updated = apply_portion(
            item,
            conversion.grams,
            conversion.unit_code,
            conversion.unit_label,
            amount,
        )
        self._replace_item(turn, updated)
        self._confirm(turn, updated)

    async def _answer_companion(
        self,
        turn: _Turn,
        question: PendingQuestion,
        answer: Optional[ParsedAnswer],
    ) -> None:
        state = turn.state
        lang = turn.language

        if not isinstance(answer, CompanionAnswer):
            generated = generate_companion_question(
                str(question.template_params.get("primaryFood", "")),
                str(question.template_params.get("companion", "")),
                lang,
            )
            self._keep_question(
                turn, generated[1], f"{text(lang, 'not_understood')} {generated[0]}"
            )
            return

        companion = str(question.template_params.get("companion", ""))
        if companion and companion not in state.companion_checks:
            state.companion_checks.append(companion)
        state.pending_question = None

        if not answer.value or not companion:
            return

        item = create_initial_item(ParsedMealItem(text=companion), self._new_item_id())
        resolved = await self._search_and_resolve(turn, item)
        state.items.append(resolved)
        self._enqueue(turn, resolved)
        self._confirm(turn, resolved)

    async def _handle_correction(
        self,
        turn: _Turn,
        data: Optional[object],
    ) -> None:
        state = turn.state
        lang = turn.language
        active = state.item_by_id(state.active_item_id)

        if isinstance(data, UpdatePortionData):
            target = active if active and active.state in (ItemState.PORTIONING, ItemState.RESOLVED) else None
            if target is None:
                target = next(
                    (i for i in reversed(state.items) if i.state == ItemState.RESOLVED),
                    None,
                )
            if target is None or target.selected_food is None or data.grams <= 0:
                turn.say(text(lang, "not_understood"))
                return
            updated = apply_portion(target, data.grams, "G", "g", data.grams)
            self._replace_item(turn, updated)
            self._confirm(turn, updated)
            return

        if isinstance(data, CorrectionData) and data.new_text.strip():
            new_text = data.new_text.strip()
            needle = new_text.lower()
            target = next((i for i in state.items if i.raw_text.lower() == needle), None)
            if target is None:
                target = next(
                    (
                        i for i in state.items
                        if needle in i.raw_text.lower() or i.raw_text.lower() in needle
                    ),
                    None,
                )
            if target is None:
                # "no, I meant X" right after adding refers to the latest item
                target = active or (state.items[-1] if state.items else None)
            if target is None:
                turn.say(text(lang, "not_understood_food"))
                return

            reverted = revert_to_parsed(target, new_text).model_copy(update={"retry_count": 0})
            resolved = await self._search_and_resolve(turn, reverted)
            self._replace_item(turn, resolved)
            self._enqueue(turn, resolved)
            self._confirm(turn, resolved)
            return

        turn.say(text(lang, "not_understood"))

    def _handle_removal(self, turn: _Turn, data: Optional[object]) -> None:
        state = turn.state
        lang = turn.language

        if not isinstance(data, RemovalData) or not data.target_text.strip():
            turn.say(text(lang, "nothing_to_remove"))
            return

        target: Optional[ParsedItem] = None
        if data.target_text == LAST_ITEM:
            target = next(
                (i for i in reversed(state.items) if i.state == ItemState.RESOLVED),
                None,
            )
            if target is None and state.items:
                target = state.items[-1]
        else:
            needle = data.target_text.strip().lower()
            target = next(
                (
                    i for i in state.items
                    if needle in i.raw_text.lower() or i.raw_text.lower() in needle
                ),
                None,
            )

        if target is None:
            turn.say(text(lang, "nothing_to_remove"))
            return

        name = target.selected_food.display_name(lang) if target.selected_food else target.raw_text
        self._remove_item(turn, target.id)
        turn.say(text(lang, "removed", name=name))

    def _handle_done(self, turn: _Turn) -> None:
        state = turn.state
        question = state.pending_question

        # "done" while a companion is asked declines it
        if question and question.type == QuestionType.COMPANION:
            companion = str(question.template_params.get("companion", ""))
            if companion and companion not in state.companion_checks:
                state.companion_checks.append(companion)

        state.is_complete = True
        state.pending_question = None

        unresolved = []
        for item_id in state.unresolved_queue:
            item = state.item_by_id(item_id)
            if item is not None and item.state != ItemState.RESOLVED:
                unresolved.append(item_id)
        if unresolved:
            turn.say(text(turn.language, "unresolved_left", count=len(unresolved)))
        else:
            turn.say(generate_completion_message(turn.language))

    def _handle_unclear(self, turn: _Turn) -> None:
        state = turn.state
        lang = turn.language
        question = state.pending_question

        if question is None:
            turn.say(text(lang, "not_understood_list"))
            return

        if question.type == QuestionType.COMPANION:
            message, regenerated = generate_companion_question(
                str(question.template_params.get("primaryFood", "")),
                str(question.template_params.get("companion", "")),
                lang,
            )
            self._keep_question(turn, regenerated, f"{text(lang, 'not_understood')} {message}")
            return

        item = state.item_by_id(question.item_id)
        if item is None:
            turn.say(text(lang, "not_understood_list"))
            return
        self._reask(turn, item)

    def _reask(self, turn: _Turn, item: ParsedItem) -> None:
        """Count a failed answer and ask the item's question again."""
        lang = turn.language
        retried = increment_retry(item)

        if retried.state == ItemState.NO_MATCH and retried.retry_count >= self.max_no_match_retries:
            self._remove_item(turn, item.id)
            turn.say(text(lang, "skipping", raw_text=item.raw_text))
            return

        self._replace_item(turn, retried)
        generated = generate_question(retried, language=lang)
        if generated is None:
            turn.say(text(lang, "not_understood"))
            return
        message, question = generated
        self._keep_question(turn, question, f"{text(lang, 'not_understood')} {message}")

    # === Advance ===

    def _question_is_current(self, state: ConversationState) -> bool:
        question = state.pending_question
        if question is None:
            return False
        if question.type == QuestionType.COMPANION:
            return state.active_item_id is None
        return bool(question.item_id) and question.item_id == state.active_item_id

    def _advance(self, turn: _Turn) -> None:
        """Reconcile queue, active item and pending question, then ask what comes next."""
        state = turn.state
        lang = turn.language

        queue: list[str] = []
        for item_id in state.unresolved_queue:
            item = state.item_by_id(item_id)
            if item is not None and item.state != ItemState.RESOLVED and item_id not in queue:
                queue.append(item_id)
        state.unresolved_queue = queue
        state.active_item_id = queue[0] if queue else None

        if not (turn.keep_question and self._question_is_current(state)):
            state.pending_question = None

        if state.pending_question is None and state.active_item_id:
            active = state.item_by_id(state.active_item_id)
            generated = generate_question(active, language=lang)
            if generated:
                message, question = generated
                state.pending_question = question
                turn.say(message)

        if state.pending_question is not None or state.unresolved_queue:
            return

        if not state.is_complete:
            if not turn.messages:
                turn.say(generate_completion_message(lang))
            return

        resolved_names = [
            i.selected_food.name_fi for i in state.items
            if i.state == ItemState.RESOLVED and i.selected_food
        ]
        suggestion = check_companions(resolved_names, state.companion_checks)
        if suggestion:
            message, question = generate_companion_question(
                suggestion.primary_food, suggestion.companion, lang
            )
            state.pending_question = question
            turn.say(message)
        elif not turn.messages:
            turn.say(generate_completion_message(lang))

    def _build_result(self, turn: _Turn) -> EngineStepResult:
        state = turn.state

        resolved_items = []
        for item_id in turn.resolved_ids:
            item = state.item_by_id(item_id)
            record = to_resolved_item(item) if item else None
            if record:
                resolved_items.append(record)

        metadata = None
        if state.pending_question is not None:
            metadata = QuestionMetadata(
                type=state.pending_question.type,
                options=state.pending_question.options,
            )

        return EngineStepResult(
            assistant_message=" ".join(turn.messages).strip(),
            updated_state=state,
            resolved_items=resolved_items,
            question_metadata=metadata,
        )
