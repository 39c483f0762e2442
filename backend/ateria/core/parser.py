"""
Ateria - Regex Intent Classifier

The always-available classifier. It recognizes structured answers to the
pending question (numbers, weights, sizes, yes/no), a handful of command
phrases (corrections, removals, completion) and otherwise splits the
message into food mentions with an optional leading or trailing amount.

Food nouns are not normalized here (no Finnish inflection stripping);
that is left to the optional NLU classifier.
"""

import re
from typing import Optional

from ateria.core.state import (
    LAST_ITEM,
    ClarificationAnswer,
    ClassifiedIntent,
    CompanionAnswer,
    CorrectionData,
    CountAnswer,
    FractionAnswer,
    IntentType,
    ParsedAnswer,
    ParsedMealItem,
    PendingQuestion,
    PortionSizeAnswer,
    QuestionType,
    RejectAnswer,
    RemovalData,
    SelectionAnswer,
    UpdatePortionData,
    VolumeAnswer,
    WeightAnswer,
)

ORDINALS: dict[str, int] = {
    "eka": 1, "ensimmäinen": 1, "first": 1,
    "toka": 2, "toinen": 2, "second": 2,
    "kolmas": 3, "third": 3,
    "neljäs": 4, "fourth": 4,
    "viides": 5, "fifth": 5,
}

PORTION_SIZES: dict[str, str] = {
    # Human-readable words
    "pieni": "KPL_S", "small": "KPL_S",
    "keskikokoinen": "KPL_M", "medium": "KPL_M", "normaali": "KPL_M",
    "iso": "KPL_L", "large": "KPL_L", "suuri": "KPL_L",
    "pieni annos": "PORTS", "small portion": "PORTS",
    "normaali annos": "PORTM", "annos": "PORTM", "normal portion": "PORTM",
    "iso annos": "PORTL", "large portion": "PORTL",
    # Fineli unit codes (sent by quick-reply buttons)
    "kpl_s": "KPL_S", "kpl_m": "KPL_M", "kpl_l": "KPL_L",
    "ports": "PORTS", "portm": "PORTM", "portl": "PORTL",
}

FRACTION_WORDS: dict[str, float] = {
    "puolikas": 0.5, "puoli": 0.5, "half": 0.5,
    "neljännes": 0.25, "quarter": 0.25,
    "kolmasosa": 0.333, "third of": 0.333,
}

REJECT_PATTERNS = [
    re.compile(r"^(?:ei\s+)?mikään\s+näistä$", re.IGNORECASE),
    re.compile(r"^none(?:\s+of\s+these)?$", re.IGNORECASE),
    re.compile(r"^ei\s+yksikään$", re.IGNORECASE),
    re.compile(r"^ohita(?:\s+tämä)?$", re.IGNORECASE),
    re.compile(r"^skip$", re.IGNORECASE),
    re.compile(r"^jätä\s+pois$", re.IGNORECASE),
]

NUMBER = r"(\d+(?:[.,]\d+)?)"

WEIGHT_PATTERN = re.compile(rf"^{NUMBER}\s*(?:g|grammaa?|grams?)$", re.IGNORECASE)
KILO_PATTERN = re.compile(rf"^{NUMBER}\s*(?:kg|kiloa?)$", re.IGNORECASE)
BARE_NUMBER_PATTERN = re.compile(rf"^{NUMBER}$")
VOLUME_PATTERN = re.compile(rf"^{NUMBER}\s*(dl|ml|l)$", re.IGNORECASE)
COUNT_PATTERN = re.compile(rf"^{NUMBER}\s*(kpl|kappaletta?|pcs|pieces?)$", re.IGNORECASE)
HOUSEHOLD_UNITS = (
    "rkl", "ruokalusikka", "ruokalusikallinen", "ruokalusikallista", "tbsp",
    "tl", "teelusikka", "teelusikallinen", "teelusikallista", "tsp",
    "kuppi", "kuppia", "kupillinen", "kupillista", "cup", "cups",
    "lasi", "lasia", "lasillinen", "lasillista", "glass", "glasses",
    "viipale", "viipaletta", "slice", "slices",
)
HOUSEHOLD_PATTERN = re.compile(
    rf"^{NUMBER}\s*(" + "|".join(sorted(HOUSEHOLD_UNITS, key=len, reverse=True)) + r")$",
    re.IGNORECASE,
)
SELECTION_PATTERN = re.compile(r"^(\d+)$")

COMPANION_YES = re.compile(r"^(?:kyllä|joo|jep|juu|yes|yeah|yep|ok|okei)$", re.IGNORECASE)
COMPANION_NO = re.compile(r"^(?:ei|no|nope|en)$", re.IGNORECASE)

# Command phrases
UPDATE_PORTION_PATTERN = re.compile(rf"^(?:vaihda|change\s+to|muuta)\s+{NUMBER}\s*g$", re.IGNORECASE)
CORRECTION_PATTERN = re.compile(
    r"^(?:ei[,.]?\s*(?:tarkoitin|tarkoitan)|no[,.]?\s*i\s+meant|actually|vaihda)\s+(.+)$",
    re.IGNORECASE,
)
UNDO_PATTERN = re.compile(r"^(?:väärin|väärä|wrong|undo|peru|peruuta)$", re.IGNORECASE)
REMOVE_LAST_PATTERN = re.compile(
    r"^(?:poista|remove|delete)\s+(?:viimeisin|viimeinen|edellinen|se|tuo|that|last|the\s+last\s+one)$",
    re.IGNORECASE,
)
REMOVAL_PATTERN = re.compile(r"^(?:poista|remove|delete)\s+(.+)$", re.IGNORECASE)
DONE_PATTERN = re.compile(
    r"^(?:valmis|siinä kaikki|done|that's all|ei muuta|no more|siinäpä se|seis)$",
    re.IGNORECASE,
)

# Minimal splitter
ITEM_SPLITTERS = re.compile(
    r"\s*,\s*|\s+ja\s+|\s+sekä\s+|\s+and\s+|\s+with\s+|\s*\+\s*",
    re.IGNORECASE,
)
AMOUNT_PREFIX_PATTERN = re.compile(
    rf"^{NUMBER}\s*(g|kg|dl|ml|l|kpl|rkl|tl|annos|viipale(?:tta)?)\s+(.+)$",
    re.IGNORECASE,
)
AMOUNT_SUFFIX_PATTERN = re.compile(rf"^(.+?)\s+{NUMBER}\s*(g|kg|dl|ml|l)$", re.IGNORECASE)


def _to_number(raw: str) -> float:
    return float(raw.replace(",", "."))


def _strip_punctuation(text: str) -> str:
    return re.sub(r"[.,!?]", "", text).strip()


# === Structured answers ===

def parse_disambiguation_answer(text: str) -> Optional[ParsedAnswer]:
    trimmed = text.strip().lower()
    if not trimmed:
        return None

    if any(pattern.match(trimmed) for pattern in REJECT_PATTERNS):
        return RejectAnswer()

    key = _strip_punctuation(trimmed)
    if key in ORDINALS:
        return SelectionAnswer(index=ORDINALS[key] - 1)

    number = SELECTION_PATTERN.match(key)
    if number:
        # 0 stays out of range so it is reported as an invalid choice
        return SelectionAnswer(index=int(number.group(1)) - 1)

    return ClarificationAnswer(text=text.strip())


def parse_portion_answer(text: str) -> Optional[ParsedAnswer]:
    trimmed = text.strip().lower()
    if not trimmed:
        return None

    match = WEIGHT_PATTERN.match(trimmed) or BARE_NUMBER_PATTERN.match(trimmed)
    if match:
        return WeightAnswer(grams=_to_number(match.group(1)))

    match = KILO_PATTERN.match(trimmed)
    if match:
        return WeightAnswer(grams=_to_number(match.group(1)) * 1000)

    key = _strip_punctuation(trimmed)
    if key in PORTION_SIZES:
        return PortionSizeAnswer(key=PORTION_SIZES[key])

    match = VOLUME_PATTERN.match(trimmed)
    if match:
        return VolumeAnswer(value=_to_number(match.group(1)), unit=match.group(2).lower())

    if key in FRACTION_WORDS:
        return FractionAnswer(value=FRACTION_WORDS[key])

    match = COUNT_PATTERN.match(trimmed)
    if match:
        return CountAnswer(value=_to_number(match.group(1)), unit="kpl")

    match = HOUSEHOLD_PATTERN.match(trimmed)
    if match:
        return CountAnswer(value=_to_number(match.group(1)), unit=match.group(2).lower())

    return None


def parse_companion_answer(text: str) -> Optional[ParsedAnswer]:
    key = _strip_punctuation(text.lower())
    if COMPANION_YES.match(key):
        return CompanionAnswer(value=True)
    if COMPANION_NO.match(key):
        return CompanionAnswer(value=False)
    return None


def parse_answer(text: str, expected_type: QuestionType) -> Optional[ParsedAnswer]:
    """
    Parse a reply as a structured answer to a pending question.

    Args:
        text: The user's message
        expected_type: Type of the pending question

    Returns:
        A typed answer, or None if the reply does not fit the question
    """
    if not text.strip():
        return None

    if expected_type in (QuestionType.DISAMBIGUATION, QuestionType.NO_MATCH_RETRY):
        return parse_disambiguation_answer(text)
    if expected_type == QuestionType.PORTION:
        return parse_portion_answer(text)
    if expected_type == QuestionType.COMPANION:
        return parse_companion_answer(text)
    return None


# === Food splitting ===

def parse_amount_from_segment(segment: str) -> ParsedMealItem:
    """Pull a leading ("120g kanaa") or trailing ("kanaa 120 g") amount off a segment."""
    trimmed = segment.strip()

    match = AMOUNT_PREFIX_PATTERN.match(trimmed)
    if match:
        return ParsedMealItem(
            text=match.group(3).strip(),
            amount=_to_number(match.group(1)),
            unit=match.group(2).lower(),
        )

    match = AMOUNT_SUFFIX_PATTERN.match(trimmed)
    if match:
        return ParsedMealItem(
            text=match.group(1).strip(),
            amount=_to_number(match.group(2)),
            unit=match.group(3).lower(),
        )

    return ParsedMealItem(text=trimmed)


def parse_meal_text(text: str) -> list[ParsedMealItem]:
    """Split a message into food mentions on commas, conjunctions and '+'."""
    raw = text.strip()
    if not raw:
        return []

    segments = [s for s in ITEM_SPLITTERS.split(raw) if s and s.strip()]
    items = [parse_amount_from_segment(segment) for segment in segments]
    return [item for item in items if item.text]


# === Intent classification ===

def classify_command(message: str) -> Optional[ClassifiedIntent]:
    """Portion update, correction, removal and completion phrases."""
    trimmed = message.strip()

    match = UPDATE_PORTION_PATTERN.match(trimmed)
    if match:
        return ClassifiedIntent(
            type=IntentType.CORRECTION,
            data=UpdatePortionData(grams=_to_number(match.group(1))),
        )

    match = CORRECTION_PATTERN.match(trimmed)
    if match:
        return ClassifiedIntent(
            type=IntentType.CORRECTION,
            data=CorrectionData(new_text=match.group(1).strip()),
        )

    if UNDO_PATTERN.match(trimmed) or REMOVE_LAST_PATTERN.match(trimmed):
        return ClassifiedIntent(type=IntentType.REMOVAL, data=RemovalData(target_text=LAST_ITEM))

    match = REMOVAL_PATTERN.match(trimmed)
    if match:
        return ClassifiedIntent(
            type=IntentType.REMOVAL,
            data=RemovalData(target_text=match.group(1).strip()),
        )

    if DONE_PATTERN.match(trimmed.rstrip(".!")):
        return ClassifiedIntent(type=IntentType.DONE)

    return None


def classify_intent(message: str, pending_question: Optional[PendingQuestion]) -> ClassifiedIntent:
    """
    Classify a message against the current pending question.

    Priority: structured answer to the pending question, portion update,
    correction, removal, completion, food list. Empty input is an empty
    answer when a question is pending and unclear otherwise.
    """
    trimmed = message.strip()
    if not trimmed:
        if pending_question:
            return ClassifiedIntent(type=IntentType.ANSWER, data=None)
        return ClassifiedIntent(type=IntentType.UNCLEAR, data=None)

    if pending_question:
        answer = parse_answer(trimmed, pending_question.type)
        if answer is not None:
            return ClassifiedIntent(type=IntentType.ANSWER, data=answer)

    command = classify_command(trimmed)
    if command is not None:
        return command

    items = parse_meal_text(trimmed)
    if items:
        return ClassifiedIntent(type=IntentType.ADD_ITEMS, data=items)

    if pending_question:
        return ClassifiedIntent(type=IntentType.ANSWER, data=None)
    return ClassifiedIntent(type=IntentType.UNCLEAR, data=None)
