"""
Ateria - Question Generator

Pure mapping from item state to the user-facing prompt and the
PendingQuestion that caches it. Also formats the inline acknowledgements
(confirmations, "added to queue" notices) that are not questions.

All text exists in Finnish and English and is chosen by the
conversation's language.
"""

from typing import Optional, Sequence

from ateria.core.state import (
    FineliFood,
    ItemState,
    ParsedItem,
    PendingQuestion,
    QuestionOption,
    QuestionType,
)

TEXTS: dict[str, dict[str, str]] = {
    "fi": {
        "disambiguation": 'Löysin useita vaihtoehtoja hakusanalle "{raw_text}":\n{lines}\n\nKumman tarkoitat? Vastaa numerolla 1–{count}.',
        "portion_header": "Kuinka paljon: {food}?",
        "portion_small": "pieni annos", "portion_medium": "normaali annos", "portion_large": "iso annos",
        "piece_small": "pieni", "piece_medium": "keskikokoinen", "piece_large": "iso",
        "portion_grams_option": "tai grammoina (esim. 120g)",
        "portion_volume": "Kuinka paljon: {food}?\nVastaa tilavuutena (esim. 2 dl) tai grammoina.",
        "portion_grams_only": "Kuinka monta grammaa: {food}?",
        "label_dl": "Desilitroina", "label_g": "Grammoina",
        "no_match": 'En löytänyt "{raw_text}" Fineli-tietokannasta. Kokeile toista nimeä tai ohita.',
        "no_match_retry": 'En löytänyt "{raw_text}" myöskään. Kokeile toista nimeä tai ohita.',
        "label_skip": "Ohita",
        "companion": "Käytitkö {companion} {primary} kanssa?",
        "label_yes": "Kyllä", "label_no": "Ei",
        "completion": "Kaikki tallennettu! Söitkö muuta tällä aterialla?",
        "added_one": "Lisäsin {items} listalle.",
        "added_many": "Lisäsin {items} listalle. Palaan niihin seuraavaksi.",
        "resolved_one": "✓ {name} ({grams}).",
        "resolved_many": "✓ Lisäsin: {details}.",
        "resolved_some": "✓ {details}.",
        "correction_hint": "Väärin? Kerro niin korjaan.",
        "searching_one": "Haen tietoja: {text}.",
        "searching_many": "Haen tietoja {count} ruuasta.",
        "not_understood_food": "En ymmärtänyt. Mitä söit?",
        "not_understood_list": "En ymmärtänyt. Mitä söit? Kerro ruuat luettelona.",
        "not_understood_answer": "En ymmärtänyt vastaustasi. Voisitko yrittää uudelleen?",
        "not_understood": "En ymmärtänyt.",
        "not_understood_amount": "En ymmärtänyt määrää.",
        "invalid_choice": "Virheellinen valinta. Valitse numerolla 1–{count}.",
        "skipping": 'Ohitetaan "{raw_text}".',
        "not_found_skip": 'En löytänyt "{raw_text}" Finelistä. Ohitetaan.',
        "removed": 'Poistin "{name}" listalta.',
        "nothing_to_remove": "Ei poistettavia ruokia.",
        "unresolved_left": "Sinulla on vielä {count} kohdetta ratkaisematta. Haluatko jatkaa vai ohittaa?",
        "totals": "{energy_kcal} kcal · proteiini {protein} g · rasva {fat} g · hiilihydraatit {carbs} g · kuitu {fiber} g",
    },
    "en": {
        "disambiguation": 'I found several options for "{raw_text}":\n{lines}\n\nWhich one do you mean? Reply with a number 1–{count}.',
        "portion_header": "How much: {food}?",
        "portion_small": "small portion", "portion_medium": "normal portion", "portion_large": "large portion",
        "piece_small": "small", "piece_medium": "medium", "piece_large": "large",
        "portion_grams_option": "or in grams (e.g. 120g)",
        "portion_volume": "How much: {food}?\nReply as a volume (e.g. 2 dl) or in grams.",
        "portion_grams_only": "How many grams: {food}?",
        "label_dl": "In deciliters", "label_g": "In grams",
        "no_match": 'I could not find "{raw_text}" in the Fineli database. Try another name or skip.',
        "no_match_retry": 'I could not find "{raw_text}" either. Try another name or skip.',
        "label_skip": "Skip",
        "companion": "Did you have {companion} with {primary}?",
        "label_yes": "Yes", "label_no": "No",
        "completion": "All saved! Did you have anything else with this meal?",
        "added_one": "Added {items} to the list.",
        "added_many": "Added {items} to the list. I will get back to them next.",
        "resolved_one": "✓ {name} ({grams}).",
        "resolved_many": "✓ Added: {details}.",
        "resolved_some": "✓ {details}.",
        "correction_hint": "Wrong? Tell me and I will fix it.",
        "searching_one": "Looking up: {text}.",
        "searching_many": "Looking up {count} foods.",
        "not_understood_food": "I did not understand. What did you eat?",
        "not_understood_list": "I did not understand. What did you eat? List the foods.",
        "not_understood_answer": "I did not understand your answer. Could you try again?",
        "not_understood": "I did not understand.",
        "not_understood_amount": "I did not understand the amount.",
        "invalid_choice": "Invalid choice. Pick a number 1–{count}.",
        "skipping": 'Skipping "{raw_text}".',
        "not_found_skip": 'Could not find "{raw_text}" in Fineli. Skipping.',
        "removed": 'Removed "{name}" from the list.',
        "nothing_to_remove": "Nothing to remove.",
        "unresolved_left": "You still have {count} unresolved items. Do you want to continue or skip them?",
        "totals": "{energy_kcal} kcal · protein {protein} g · fat {fat} g · carbohydrates {carbs} g · fiber {fiber} g",
    },
}


def text(language: str, key: str, **params) -> str:
    """Look up a message template and fill it in."""
    templates = TEXTS.get(language, TEXTS["fi"])
    return templates[key].format(**params)


def format_grams(grams: float) -> str:
    """200.0 -> "200g", 12.5 -> "12.5g"."""
    rounded = round(grams, 1)
    if float(rounded).is_integer():
        return f"{int(rounded)}g"
    return f"{rounded}g"


def question_id(item_id: str, question_type: QuestionType, retry_count: int) -> str:
    """Questions are derived state, so their id is derived too."""
    return f"q:{question_type.value}:{item_id}:{retry_count}"


# === Disambiguation ===

def generate_disambiguation_question(
    item: ParsedItem,
    candidates: Sequence[FineliFood],
    language: str = "fi",
    retry_count: int = 0,
) -> tuple[str, PendingQuestion]:
    count = len(candidates)
    lines = "\n".join(
        f"  {i + 1}) {food.display_name(language)}" for i, food in enumerate(candidates)
    )
    message = text(language, "disambiguation", raw_text=item.raw_text, lines=lines, count=count)

    options = [
        QuestionOption(key=str(i + 1), label=food.display_name(language), value=food.id)
        for i, food in enumerate(candidates)
    ]

    question = PendingQuestion(
        id=question_id(item.id, QuestionType.DISAMBIGUATION, retry_count),
        item_id=item.id,
        type=QuestionType.DISAMBIGUATION,
        template_key="disambiguation",
        template_params={"rawText": item.raw_text, "count": count},
        options=options,
        retry_count=retry_count,
    )
    return message, question


# === Portion ===

def _size_options(
    food: FineliFood,
    codes: tuple[str, str, str],
    label_keys: tuple[str, str, str],
    language: str,
) -> tuple[list[str], list[QuestionOption]]:
    lines: list[str] = []
    options: list[QuestionOption] = []
    for code, label_key in zip(codes, label_keys):
        unit = food.find_unit(code)
        if unit is None:
            continue
        label = text(language, label_key)
        grams = format_grams(unit.mass_grams)
        lines.append(f"• {label} ({grams})")
        options.append(QuestionOption(
            key=code,
            label=f"{label.capitalize()} ({grams})",
            sublabel=grams,
            value=unit.mass_grams,
        ))
    return lines, options


def generate_portion_question(
    item: ParsedItem,
    food: FineliFood,
    language: str = "fi",
    retry_count: int = 0,
) -> tuple[str, PendingQuestion]:
    """
    Ask how much was eaten.

    Offers Fineli portion sizes (PORTS/PORTM/PORTL) when the food has them,
    else per-piece sizes (KPL_S/KPL_M/KPL_L), else volume-or-grams when a
    DL unit exists, else grams only.
    """
    name = food.display_name(language)

    lines, options = _size_options(
        food, ("PORTS", "PORTM", "PORTL"),
        ("portion_small", "portion_medium", "portion_large"), language,
    )
    if not options:
        lines, options = _size_options(
            food, ("KPL_S", "KPL_M", "KPL_L"),
            ("piece_small", "piece_medium", "piece_large"), language,
        )

    if options:
        lines.append(f"• {text(language, 'portion_grams_option')}")
        message = text(language, "portion_header", food=name) + "\n" + "\n".join(lines)
    elif food.find_unit("DL"):
        message = text(language, "portion_volume", food=name)
        options = [
            QuestionOption(key="dl", label=text(language, "label_dl"), value="dl"),
            QuestionOption(key="g", label=text(language, "label_g"), value="g"),
        ]
    else:
        message = text(language, "portion_grams_only", food=name)
        options = [QuestionOption(key="g", label=text(language, "label_g"), value="g")]

    question = PendingQuestion(
        id=question_id(item.id, QuestionType.PORTION, retry_count),
        item_id=item.id,
        type=QuestionType.PORTION,
        template_key="portion",
        template_params={"foodName": name},
        options=options,
        retry_count=retry_count,
    )
    return message, question


# === No match ===

def generate_no_match_question(
    item: ParsedItem,
    retry_count: int = 0,
    language: str = "fi",
) -> tuple[str, PendingQuestion]:
    key = "no_match_retry" if retry_count > 0 else "no_match"
    message = text(language, key, raw_text=item.raw_text)

    question = PendingQuestion(
        id=question_id(item.id, QuestionType.NO_MATCH_RETRY, retry_count),
        item_id=item.id,
        type=QuestionType.NO_MATCH_RETRY,
        template_key="no_match_retry",
        template_params={"rawText": item.raw_text},
        options=[QuestionOption(key="ohita", label=text(language, "label_skip"), value="skip")],
        retry_count=retry_count,
    )
    return message, question


# === Companion ===

def generate_companion_question(
    primary_food: str,
    companion: str,
    language: str = "fi",
) -> tuple[str, PendingQuestion]:
    message = text(language, "companion", companion=companion, primary=primary_food)

    question = PendingQuestion(
        id=f"q:companion:{companion}",
        item_id="",
        type=QuestionType.COMPANION,
        template_key="companion",
        template_params={"primaryFood": primary_food, "companion": companion},
        options=[
            QuestionOption(key="yes", label=text(language, "label_yes"), value=True),
            QuestionOption(key="no", label=text(language, "label_no"), value=False),
        ],
        retry_count=0,
    )
    return message, question


# === Inline acknowledgements ===

def generate_completion_message(language: str = "fi") -> str:
    return text(language, "completion")


def format_confirmation(
    food: FineliFood,
    portion_grams: float,
    portion_label: Optional[str] = None,
    language: str = "fi",
) -> str:
    name = food.display_name(language)
    grams = format_grams(portion_grams)
    if portion_label and portion_label != "g":
        return f"✓ {name}, {portion_label} ({grams})"
    return f"✓ {name}, {grams}"


def format_added_notice(item_texts: Sequence[str], language: str = "fi") -> str:
    if len(item_texts) == 1:
        return text(language, "added_one", items=item_texts[0])
    return text(language, "added_many", items=", ".join(item_texts))


# === Router ===

def generate_question(
    item: ParsedItem,
    retry_count: Optional[int] = None,
    language: str = "fi",
) -> Optional[tuple[str, PendingQuestion]]:
    """Generate the question an item's state calls for, if any."""
    retries = item.retry_count if retry_count is None else retry_count

    if item.state == ItemState.DISAMBIGUATING:
        if item.fineli_candidates and len(item.fineli_candidates) >= 2:
            return generate_disambiguation_question(item, item.fineli_candidates, language, retries)
        return None
    if item.state == ItemState.PORTIONING:
        if item.selected_food:
            return generate_portion_question(item, item.selected_food, language, retries)
        return None
    if item.state == ItemState.NO_MATCH:
        return generate_no_match_question(item, retries, language)
    return None
