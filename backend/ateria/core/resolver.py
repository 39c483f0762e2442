"""
Ateria - Item Resolver

Pure state transitions for a single food mention:

    PARSED -> NO_MATCH | DISAMBIGUATING | PORTIONING | RESOLVED
    DISAMBIGUATING -> PORTIONING | RESOLVED   (selection)
    PORTIONING -> RESOLVED                     (portion answer)
    any -> PARSED                              (correction / re-search)

Every function returns a new ParsedItem and leaves its input untouched.
"""

from typing import Optional, Sequence

from ateria.core.nutrients import compute_nutrients
from ateria.core.state import (
    FineliFood,
    InferredAmount,
    ItemState,
    ParsedItem,
    ParsedMealItem,
    ResolvedItem,
    new_id,
)


def create_initial_item(parsed: ParsedMealItem, item_id: Optional[str] = None) -> ParsedItem:
    """Create a PARSED item from a split-out food mention."""
    inferred = None
    if parsed.amount is not None:
        inferred = InferredAmount(value=parsed.amount, unit=parsed.unit or "g")

    return ParsedItem(
        id=item_id or new_id(),
        raw_text=parsed.text,
        inferred_amount=inferred,
        state=ItemState.PARSED,
    )


def resolve_item_state(
    item: ParsedItem,
    search_results: Sequence[FineliFood],
    top_results: Sequence[FineliFood],
) -> ParsedItem:
    """
    Decide the item's state from its ranked search results.

    - 0 results -> NO_MATCH
    - grams already known -> RESOLVED with the top-ranked candidate
    - 1 candidate -> PORTIONING
    - 2+ candidates -> DISAMBIGUATING

    Args:
        item: Item to resolve (normally PARSED)
        search_results: Raw provider hits; the decision is made on top_results
        top_results: Ranked candidates

    Returns:
        The updated item
    """
    if not top_results:
        return item.model_copy(update={
            "state": ItemState.NO_MATCH,
            "fineli_candidates": None,
            "selected_food": None,
            "portion_grams": None,
            "portion_unit_code": None,
            "portion_unit_label": None,
            "portion_amount": None,
        })

    candidates = list(top_results)

    if item.has_known_grams:
        grams = item.inferred_amount.value
        return item.model_copy(update={
            "state": ItemState.RESOLVED,
            "fineli_candidates": candidates,
            "selected_food": candidates[0],
            "portion_grams": grams,
            "portion_unit_code": "G",
            "portion_unit_label": "g",
            "portion_amount": grams,
            "retry_count": 0,
        })

    if len(candidates) == 1:
        return item.model_copy(update={
            "state": ItemState.PORTIONING,
            "fineli_candidates": candidates,
            "selected_food": candidates[0],
            "retry_count": 0,
        })

    return item.model_copy(update={
        "state": ItemState.DISAMBIGUATING,
        "fineli_candidates": candidates,
        "selected_food": None,
        "retry_count": 0,
    })


def apply_disambiguation(item: ParsedItem, selected_food: FineliFood) -> ParsedItem:
    """Apply the user's candidate choice: PORTIONING, or RESOLVED if grams are known."""
    if item.has_known_grams:
        grams = item.inferred_amount.value
        return item.model_copy(update={
            "state": ItemState.RESOLVED,
            "selected_food": selected_food,
            "portion_grams": grams,
            "portion_unit_code": "G",
            "portion_unit_label": "g",
            "portion_amount": grams,
            "retry_count": 0,
        })

    return item.model_copy(update={
        "state": ItemState.PORTIONING,
        "selected_food": selected_food,
        "fineli_candidates": [selected_food],
        "retry_count": 0,
    })


def apply_portion(
    item: ParsedItem,
    grams: float,
    unit_code: str = "G",
    unit_label: str = "g",
    amount: Optional[float] = None,
) -> ParsedItem:
    """Finalize the quantity: state becomes RESOLVED."""
    return item.model_copy(update={
        "state": ItemState.RESOLVED,
        "portion_grams": grams,
        "portion_unit_code": unit_code,
        "portion_unit_label": unit_label,
        "portion_amount": amount if amount is not None else grams,
        "retry_count": 0,
    })


def increment_retry(item: ParsedItem) -> ParsedItem:
    return item.model_copy(update={"retry_count": item.retry_count + 1})


def revert_to_parsed(item: ParsedItem, raw_text: Optional[str] = None) -> ParsedItem:
    """
    Send an item back to PARSED for a new search.

    Clears candidates, selection and portion; keeps the retry count so a
    failing no-match retry can be counted.
    """
    return item.model_copy(update={
        "raw_text": raw_text if raw_text is not None else item.raw_text,
        "state": ItemState.PARSED,
        "fineli_candidates": None,
        "selected_food": None,
        "portion_grams": None,
        "portion_unit_code": None,
        "portion_unit_label": None,
        "portion_amount": None,
    })


def to_resolved_item(item: ParsedItem) -> Optional[ResolvedItem]:
    """Build the caller-facing record for a RESOLVED item."""
    if item.state != ItemState.RESOLVED or item.selected_food is None or item.portion_grams is None:
        return None

    food = item.selected_food
    if item.portion_amount is not None:
        portion_amount = item.portion_amount
    else:
        portion_amount = item.portion_grams if item.portion_unit_code == "G" else 1

    return ResolvedItem(
        parsed_item_id=item.id,
        fineli_food_id=food.id,
        fineli_name_fi=food.name_fi,
        fineli_name_en=food.name_en,
        portion_grams=item.portion_grams,
        portion_unit_code=item.portion_unit_code,
        portion_unit_label=item.portion_unit_label,
        portion_amount=portion_amount,
        nutrients_per_100g=dict(food.nutrients),
        computed_nutrients=compute_nutrients(food.nutrients, item.portion_grams),
    )
