"""
Tests for item resolution state transitions.
"""

import pytest

from ateria.core.resolver import (
    apply_disambiguation,
    apply_portion,
    create_initial_item,
    increment_retry,
    resolve_item_state,
    revert_to_parsed,
    to_resolved_item,
)
from ateria.core.state import ItemState, ParsedMealItem


@pytest.fixture
def foods(make_food):
    return [make_food(1, "Kaurapuuro, vedellä"), make_food(2, "Kaurapuuro, maidolla")]


class TestCreateInitialItem:

    def test_without_amount(self):
        item = create_initial_item(ParsedMealItem(text="kaurapuuro"), "item-1")
        assert item.id == "item-1"
        assert item.state == ItemState.PARSED
        assert item.inferred_amount is None
        assert not item.has_known_grams

    def test_amount_defaults_to_grams(self):
        item = create_initial_item(ParsedMealItem(text="kanaa", amount=120))
        assert item.inferred_amount.unit == "g"
        assert item.has_known_grams

    def test_non_gram_amount_is_not_known_grams(self):
        item = create_initial_item(ParsedMealItem(text="maitoa", amount=2, unit="dl"))
        assert not item.has_known_grams

    def test_generates_id(self):
        a = create_initial_item(ParsedMealItem(text="x"))
        b = create_initial_item(ParsedMealItem(text="x"))
        assert a.id and a.id != b.id


class TestResolveItemState:

    def test_zero_results_is_no_match(self):
        item = create_initial_item(ParsedMealItem(text="xyz"), "i")
        assert resolve_item_state(item, [], []).state == ItemState.NO_MATCH

    def test_single_hit_with_grams_resolves(self, foods):
        item = create_initial_item(ParsedMealItem(text="kanaa", amount=120, unit="g"), "i")
        resolved = resolve_item_state(item, foods[:1], foods[:1])
        assert resolved.state == ItemState.RESOLVED
        assert resolved.portion_grams == 120
        assert resolved.selected_food.id == 1

    def test_many_hits_with_grams_take_top(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro", amount=200, unit="g"), "i")
        resolved = resolve_item_state(item, foods, foods)
        assert resolved.state == ItemState.RESOLVED
        assert resolved.selected_food.id == 1

    def test_single_hit_without_grams_asks_portion(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro"), "i")
        resolved = resolve_item_state(item, foods[:1], foods[:1])
        assert resolved.state == ItemState.PORTIONING
        assert resolved.selected_food.id == 1

    def test_many_hits_without_grams_disambiguate(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro"), "i")
        resolved = resolve_item_state(item, foods, foods)
        assert resolved.state == ItemState.DISAMBIGUATING
        assert [f.id for f in resolved.fineli_candidates] == [1, 2]
        assert resolved.selected_food is None

    def test_input_not_mutated(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro"), "i")
        resolve_item_state(item, foods, foods)
        assert item.state == ItemState.PARSED
        assert item.fineli_candidates is None


class TestTransitions:

    def test_disambiguation_moves_to_portioning(self, foods):
        item = resolve_item_state(create_initial_item(ParsedMealItem(text="puuro"), "i"), foods, foods)
        chosen = apply_disambiguation(item, foods[1])
        assert chosen.state == ItemState.PORTIONING
        assert chosen.selected_food.id == 2
        assert [f.id for f in chosen.fineli_candidates] == [2]

    def test_disambiguation_with_known_grams_resolves(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro", amount=150), "i")
        chosen = apply_disambiguation(item, foods[0])
        assert chosen.state == ItemState.RESOLVED
        assert chosen.portion_grams == 150

    def test_apply_portion(self, foods):
        item = apply_disambiguation(create_initial_item(ParsedMealItem(text="puuro"), "i"), foods[0])
        resolved = apply_portion(item, 250, "PORTM", "annos", 1)
        assert resolved.state == ItemState.RESOLVED
        assert resolved.portion_grams == 250
        assert resolved.portion_unit_code == "PORTM"
        assert resolved.portion_amount == 1

    def test_apply_portion_resets_retries(self, foods):
        item = increment_retry(apply_disambiguation(create_initial_item(ParsedMealItem(text="p"), "i"), foods[0]))
        assert item.retry_count == 1
        assert apply_portion(item, 100).retry_count == 0

    def test_revert_to_parsed_clears_resolution(self, foods):
        item = apply_portion(
            apply_disambiguation(create_initial_item(ParsedMealItem(text="puuro"), "i"), foods[0]), 200
        )
        reverted = revert_to_parsed(increment_retry(item), "mannapuuro")
        assert reverted.state == ItemState.PARSED
        assert reverted.raw_text == "mannapuuro"
        assert reverted.selected_food is None
        assert reverted.portion_grams is None
        assert reverted.retry_count == 1


class TestToResolvedItem:

    def test_builds_record_with_scaled_nutrients(self, make_food):
        food = make_food(5, "Banaani", nutrients={"ENERC": 400.0, "PROT": 1.0}, name_en="Banana")
        item = apply_disambiguation(create_initial_item(ParsedMealItem(text="banaani"), "i"), food)
        record = to_resolved_item(apply_portion(item, 150))
        assert record.parsed_item_id == "i"
        assert record.fineli_food_id == 5
        assert record.fineli_name_en == "Banana"
        assert record.computed_nutrients == {"ENERC": 600.0, "PROT": 1.5}
        assert record.nutrients_per_100g == {"ENERC": 400.0, "PROT": 1.0}

    def test_unresolved_item_has_no_record(self, foods):
        item = create_initial_item(ParsedMealItem(text="puuro"), "i")
        assert to_resolved_item(item) is None
