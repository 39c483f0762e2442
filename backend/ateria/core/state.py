"""
Ateria - Conversation State Pydantic Schema

This module defines the type-safe data structures shared by the
conversation engine, the food search provider and the optional AI layer.

Every model serializes to the camelCase wire shape with
``model_dump(by_alias=True, mode="json")`` and is restored with
``model_validate``, so the whole conversation survives a JSON round trip
between turns.
"""

import secrets
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Generate a new URL-safe identifier."""
    return secrets.token_urlsafe(16)


class WireModel(BaseModel):
    """Base model using camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Plain JSON-compatible dict in the camelCase wire shape."""
        return self.model_dump(by_alias=True, mode="json")


# === Enumerations ===

class MealType(str, Enum):
    """Categorization of meal timing."""
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    OTHER = "other"


MEAL_TYPE_LABELS: dict[MealType, str] = {
    MealType.BREAKFAST: "Aamiainen",
    MealType.LUNCH: "Lounas",
    MealType.DINNER: "Päivällinen",
    MealType.SNACK: "Välipala",
    MealType.OTHER: "Muu",
}


class FoodType(str, Enum):
    """Fineli entry kind: plain food or prepared dish."""
    FOOD = "FOOD"
    DISH = "DISH"


class ItemState(str, Enum):
    """Resolution state of a single food mention."""
    PARSED = "PARSED"
    DISAMBIGUATING = "DISAMBIGUATING"
    PORTIONING = "PORTIONING"
    RESOLVED = "RESOLVED"
    NO_MATCH = "NO_MATCH"


class QuestionType(str, Enum):
    """Kinds of question the engine can leave pending."""
    DISAMBIGUATION = "disambiguation"
    PORTION = "portion"
    NO_MATCH_RETRY = "no_match_retry"
    COMPANION = "companion"


class IntentType(str, Enum):
    """Classified purpose of a user message."""
    ADD_ITEMS = "add_items"
    ANSWER = "answer"
    CORRECTION = "correction"
    REMOVAL = "removal"
    DONE = "done"
    UNCLEAR = "unclear"


class ConversionMethod(str, Enum):
    """How a portion was turned into grams."""
    DIRECT_GRAMS = "direct_grams"
    FINELI_UNIT = "fineli_unit"
    VOLUME_DENSITY = "volume_density"


# === Fineli Records ===

class FineliUnit(WireModel):
    """A serving unit a Fineli food supports (e.g. KPL_M, DL, PORTM)."""
    code: str = Field(..., description="Fineli unit code")
    label_fi: str = Field(default="", description="Finnish label")
    label_en: str = Field(default="", description="English label")
    mass_grams: float = Field(..., ge=0, description="Weight of one unit in grams")


class FineliComponent(WireModel):
    """A nutrient component definition."""
    id: int
    code: str
    name_fi: str
    name_en: str = ""
    unit: str = Field(..., description="'g', 'mg', 'µg' or 'kJ'")


class FineliFood(WireModel):
    """Normalized Fineli food record."""
    id: int
    name_fi: str = Field(..., min_length=1)
    name_en: Optional[str] = None
    name_sv: Optional[str] = None
    type: FoodType = FoodType.FOOD
    preparation_methods: list[str] = Field(default_factory=list)
    units: list[FineliUnit] = Field(default_factory=list)
    nutrients: dict[str, float] = Field(
        default_factory=dict,
        description="Nutrients per 100g keyed by component code (ENERC, FAT, ...)",
    )
    energy_kj: float = 0.0
    energy_kcal: float = 0.0
    fat: float = 0.0
    protein: float = 0.0
    carbohydrate: float = 0.0

    def find_unit(self, code: str) -> Optional[FineliUnit]:
        """Return the unit with the given code, if this food exposes it."""
        for unit in self.units:
            if unit.code == code:
                return unit
        return None

    def display_name(self, language: str = "fi") -> str:
        if language == "en" and self.name_en:
            return self.name_en
        return self.name_fi


# === Conversation Models ===

class InferredAmount(WireModel):
    """Amount extracted from the user's text before searching."""
    value: float
    unit: str = "g"


class ParsedItem(WireModel):
    """
    One food mention and its resolution progress.

    Only the resolver's transition functions produce new versions of an
    item; every transition returns a copy.
    """
    id: str = Field(default_factory=new_id)
    raw_text: str
    inferred_amount: Optional[InferredAmount] = None
    state: ItemState = ItemState.PARSED
    fineli_candidates: Optional[list[FineliFood]] = None
    selected_food: Optional[FineliFood] = None
    portion_grams: Optional[float] = None
    portion_unit_code: Optional[str] = None
    portion_unit_label: Optional[str] = None
    portion_amount: Optional[float] = None
    retry_count: int = Field(
        default=0,
        ge=0,
        description="Failed answers or re-searches for the current question",
    )

    @property
    def has_known_grams(self) -> bool:
        return (
            self.inferred_amount is not None
            and self.inferred_amount.unit == "g"
            and self.inferred_amount.value > 0
        )


class QuestionOption(WireModel):
    """Quick-reply option attached to a question."""
    key: str
    label: str
    sublabel: Optional[str] = None
    value: Any = None


class PendingQuestion(WireModel):
    """The single outstanding question. Always regenerable from item state."""
    id: str
    item_id: str = Field(default="", description="Empty for companion questions")
    type: QuestionType
    template_key: str
    template_params: dict[str, Union[str, int, float]] = Field(default_factory=dict)
    options: Optional[list[QuestionOption]] = None
    retry_count: int = 0


class ConversationState(WireModel):
    """Complete per-meal dialog state, persisted by the caller between turns."""
    session_id: str
    meal_id: str
    items: list[ParsedItem] = Field(default_factory=list)
    unresolved_queue: list[str] = Field(default_factory=list)
    active_item_id: Optional[str] = None
    pending_question: Optional[PendingQuestion] = None
    companion_checks: list[str] = Field(default_factory=list)
    is_complete: bool = False
    language: Literal["fi", "en"] = "fi"

    def item_by_id(self, item_id: Optional[str]) -> Optional[ParsedItem]:
        if not item_id:
            return None
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class ResolvedItem(WireModel):
    """Output-only record for an item that reached RESOLVED this turn."""
    parsed_item_id: str
    fineli_food_id: int
    fineli_name_fi: str
    fineli_name_en: Optional[str] = None
    portion_grams: float
    portion_unit_code: Optional[str] = None
    portion_unit_label: Optional[str] = None
    portion_amount: float
    nutrients_per_100g: dict[str, float] = Field(default_factory=dict)
    computed_nutrients: dict[str, float] = Field(default_factory=dict)


class PortionConversionResult(WireModel):
    """Result of converting an amount + unit into grams."""
    grams: float
    unit_code: str
    unit_label: str
    method: ConversionMethod


# === Intent Models ===

class ParsedMealItem(WireModel):
    """A food mention split out of a message."""
    text: str
    amount: Optional[float] = None
    unit: Optional[str] = None


class SelectionAnswer(WireModel):
    type: Literal["selection"] = "selection"
    index: int = Field(..., description="0-based candidate index")


class ClarificationAnswer(WireModel):
    type: Literal["clarification"] = "clarification"
    text: str


class RejectAnswer(WireModel):
    type: Literal["reject"] = "reject"


class WeightAnswer(WireModel):
    type: Literal["weight"] = "weight"
    grams: float


class PortionSizeAnswer(WireModel):
    type: Literal["portion_size"] = "portion_size"
    key: str = Field(..., description="Fineli unit code, e.g. KPL_M")


class VolumeAnswer(WireModel):
    type: Literal["volume"] = "volume"
    value: float
    unit: str


class FractionAnswer(WireModel):
    type: Literal["fraction"] = "fraction"
    value: float


class CountAnswer(WireModel):
    type: Literal["count"] = "count"
    value: float
    unit: str = "kpl"


class CompanionAnswer(WireModel):
    type: Literal["companion"] = "companion"
    value: bool


class CorrectionData(WireModel):
    type: Literal["correction"] = "correction"
    new_text: str


class UpdatePortionData(WireModel):
    type: Literal["update_portion"] = "update_portion"
    grams: float


LAST_ITEM = "__LAST__"


class RemovalData(WireModel):
    type: Literal["removal"] = "removal"
    target_text: str = Field(..., description=f"Food text or {LAST_ITEM}")


ParsedAnswer = Annotated[
    Union[
        SelectionAnswer,
        ClarificationAnswer,
        RejectAnswer,
        WeightAnswer,
        PortionSizeAnswer,
        VolumeAnswer,
        FractionAnswer,
        CountAnswer,
        CompanionAnswer,
    ],
    Field(discriminator="type"),
]

IntentPayload = Annotated[
    Union[
        SelectionAnswer,
        ClarificationAnswer,
        RejectAnswer,
        WeightAnswer,
        PortionSizeAnswer,
        VolumeAnswer,
        FractionAnswer,
        CountAnswer,
        CompanionAnswer,
        CorrectionData,
        UpdatePortionData,
        RemovalData,
    ],
    Field(discriminator="type"),
]


class ClassifiedIntent(WireModel):
    """Tagged intent produced by either classifier path."""
    type: IntentType
    data: Union[list[ParsedMealItem], IntentPayload, None] = None


# === Engine Output ===

class QuestionMetadata(WireModel):
    """Compact descriptor for rendering quick-reply controls."""
    type: QuestionType
    options: Optional[list[QuestionOption]] = None


class EngineStepResult(WireModel):
    """Everything a turn hands back to the caller."""
    assistant_message: str
    updated_state: ConversationState
    resolved_items: list[ResolvedItem] = Field(default_factory=list)
    question_metadata: Optional[QuestionMetadata] = None


# === AI Capability Models ===

class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class AIConversationContext(WireModel):
    """Context handed to the NLU provider and the response generator."""
    conversation_state: ConversationState
    meal_type: MealType = MealType.OTHER
    time_of_day: TimeOfDay = TimeOfDay.MORNING
    resolved_item_names: list[str] = Field(default_factory=list)
    pending_question: Optional[PendingQuestion] = None
    fineli_candidates: Optional[list[FineliFood]] = None
    locale: Literal["fi", "en"] = "fi"


class AIExtractedItem(WireModel):
    """A food the NLU provider extracted from the message."""
    text: str
    amount: Optional[float] = None
    unit: Optional[str] = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    search_hint: Optional[str] = Field(
        default=None,
        description="Better Fineli search term (e.g. 'kevytmaito' -> 'maito, kevyt')",
    )
    portion_estimate_grams: Optional[float] = None


class AIParseResult(WireModel):
    """Structured output of the NLU provider."""
    intent: IntentType
    items: Optional[list[AIExtractedItem]] = None
    answer: Optional[ParsedAnswer] = None
    correction: Optional[Union[CorrectionData, UpdatePortionData]] = None
    removal: Optional[RemovalData] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class RankedResult(WireModel):
    """One relevance judgement from the AI ranker."""
    index: int = Field(..., description="0-based index into the candidates")
    relevance: int = Field(..., ge=1, le=5)


class AISuggestion(WireModel):
    type: Literal["companion", "portion_sanity"]
    message: str
    companion_food: Optional[str] = None
    suggested_grams: Optional[float] = None


class AIResponseResult(WireModel):
    """Natural-language rephrasing from the response generator."""
    message: str
    suggestions: list[AISuggestion] = Field(default_factory=list)


class AIEngineStepResult(EngineStepResult):
    """Engine output enriched with what the AI layer did."""
    ai_message: Optional[str] = None
    suggestions: list[AISuggestion] = Field(default_factory=list)
    ai_parsed: bool = False
    ai_response: bool = False
