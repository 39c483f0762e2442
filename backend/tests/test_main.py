"""
Tests for the terminal chat helpers.
"""

from conftest import counter_ids

from ateria.config import Settings
from ateria.core.ai_engine import process_message_with_ai
from ateria.core.orchestrator import TurnOrchestrator
from ateria.core.state import AISuggestion, ResolvedItem
from ateria.main import create_ai_provider, format_totals, format_turn


def _resolved(item_id: str, nutrients: dict) -> ResolvedItem:
    return ResolvedItem(
        parsed_item_id=item_id,
        fineli_food_id=1,
        fineli_name_fi="Ruoka",
        portion_grams=100,
        portion_amount=100,
        computed_nutrients=nutrients,
    )


async def test_format_turn_lists_options(search_provider, make_state):
    orchestrator = TurnOrchestrator(search_provider=search_provider, item_id_factory=counter_ids())
    result = await process_message_with_ai("kaurapuuro", make_state(), orchestrator)

    lines = format_turn(result).splitlines()

    assert lines[-2] == "  1. Kaurapuuro, vedellä"
    assert lines[-1] == "  2. Kaurapuuro, maidolla"


async def test_format_turn_prefers_ai_message(search_provider, make_state):
    orchestrator = TurnOrchestrator(search_provider=search_provider, item_id_factory=counter_ids())
    result = await process_message_with_ai("120g kanaa", make_state(), orchestrator)
    result = result.model_copy(update={
        "ai_message": "Kirjattu!",
        "suggestions": [AISuggestion(type="companion", message="Lisäätkö riisiä?", companion_food="riisi")],
    })

    assert format_turn(result) == "Kirjattu!\n  💡 Lisäätkö riisiä?"


def test_format_totals():
    text = format_totals([
        _resolved("a", {"ENERC": 1000.0, "PROT": 10.0}),
        _resolved("b", {"ENERC": 500.0, "FAT": 2.5}),
    ])
    assert text == "359 kcal · proteiini 10.0 g · rasva 2.5 g · hiilihydraatit 0.0 g · kuitu 0.0 g"


def test_format_totals_in_english():
    text = format_totals([_resolved("a", {"ENERC": 1500.0, "PROT": 10.0, "FAT": 2.5})], "en")
    assert text == "359 kcal · protein 10.0 g · fat 2.5 g · carbohydrates 0.0 g · fiber 0.0 g"


def test_no_ai_provider_by_default():
    assert create_ai_provider(Settings(AI_PROVIDER="none")) is None
