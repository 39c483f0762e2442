"""
Tests for question generation and inline acknowledgements.
"""

from ateria.core.questions import (
    format_added_notice,
    format_confirmation,
    format_grams,
    generate_companion_question,
    generate_completion_message,
    generate_question,
    question_id,
)
from ateria.core.state import ItemState, ParsedItem, QuestionType


def _item(state, **fields) -> ParsedItem:
    return ParsedItem(id="item-1", raw_text="kaurapuuro", state=state, **fields)


class TestDisambiguationQuestion:

    def test_numbered_options(self, porridge_foods):
        message, question = generate_question(
            _item(ItemState.DISAMBIGUATING, fineli_candidates=porridge_foods)
        )
        assert "1) Kaurapuuro, vedellä" in message
        assert "2) Kaurapuuro, maidolla" in message
        assert "1–2" in message
        assert question.type == QuestionType.DISAMBIGUATION
        assert question.item_id == "item-1"
        assert [o.key for o in question.options] == ["1", "2"]
        assert [o.value for o in question.options] == [1, 2]

    def test_english_labels(self, porridge_foods):
        message, question = generate_question(
            _item(ItemState.DISAMBIGUATING, fineli_candidates=porridge_foods), language="en"
        )
        assert message.startswith('I found several options for "kaurapuuro"')
        # English name when Fineli has one, Finnish otherwise
        assert question.options[0].label == "Oat porridge, water"
        assert question.options[1].label == "Kaurapuuro, maidolla"

    def test_single_candidate_is_not_a_disambiguation(self, porridge_foods):
        item = _item(ItemState.DISAMBIGUATING, fineli_candidates=porridge_foods[:1])
        assert generate_question(item) is None


class TestPortionQuestion:

    def test_portion_sizes_offered(self, porridge_foods):
        food = porridge_foods[0]
        message, question = generate_question(_item(ItemState.PORTIONING, selected_food=food))
        assert message.startswith("Kuinka paljon: Kaurapuuro, vedellä?")
        assert "pieni annos (150g)" in message
        assert "tai grammoina" in message
        assert [o.key for o in question.options] == ["PORTS", "PORTM", "PORTL"]
        assert question.options[1].sublabel == "250g"
        assert question.options[1].value == 250

    def test_piece_sizes_when_no_portions(self, make_food, make_unit):
        food = make_food(3, "Omena", units=[make_unit("KPL_S", 100), make_unit("KPL_M", 150)])
        _, question = generate_question(_item(ItemState.PORTIONING, selected_food=food))
        assert [o.key for o in question.options] == ["KPL_S", "KPL_M"]

    def test_volume_when_only_dl(self, make_food, make_unit):
        food = make_food(4, "Maito, kevyt", units=[make_unit("DL", 103)])
        message, question = generate_question(_item(ItemState.PORTIONING, selected_food=food))
        assert "2 dl" in message
        assert [o.key for o in question.options] == ["dl", "g"]

    def test_grams_only(self, make_food):
        food = make_food(5, "Mauste")
        message, question = generate_question(_item(ItemState.PORTIONING, selected_food=food))
        assert message == "Kuinka monta grammaa: Mauste?"
        assert [o.key for o in question.options] == ["g"]


class TestNoMatchQuestion:

    def test_first_attempt(self):
        message, question = generate_question(_item(ItemState.NO_MATCH))
        assert message.startswith('En löytänyt "kaurapuuro" Fineli-tietokannasta')
        assert question.type == QuestionType.NO_MATCH_RETRY
        assert question.options[0].value == "skip"

    def test_retry_wording_uses_item_retry_count(self):
        message, question = generate_question(_item(ItemState.NO_MATCH, retry_count=1))
        assert "myöskään" in message
        assert question.retry_count == 1


class TestQuestionIds:

    def test_deterministic(self):
        assert question_id("item-1", QuestionType.PORTION, 2) == "q:portion:item-1:2"

    def test_same_state_same_question(self, porridge_foods):
        item = _item(ItemState.DISAMBIGUATING, fineli_candidates=porridge_foods)
        assert generate_question(item)[1] == generate_question(item)[1]

    def test_resolved_item_has_no_question(self, porridge_foods):
        assert generate_question(_item(ItemState.RESOLVED, selected_food=porridge_foods[0])) is None


class TestCompanionQuestion:

    def test_yes_no(self):
        message, question = generate_companion_question("Kaurapuuro, vedellä", "maito")
        assert message == "Käytitkö maito Kaurapuuro, vedellä kanssa?"
        assert question.id == "q:companion:maito"
        assert question.item_id == ""
        assert [o.value for o in question.options] == [True, False]


class TestFormatting:

    def test_format_grams(self):
        assert format_grams(200.0) == "200g"
        assert format_grams(12.54) == "12.5g"

    def test_confirmation_with_unit_label(self, porridge_foods):
        assert format_confirmation(porridge_foods[0], 250, "annos") == "✓ Kaurapuuro, vedellä, annos (250g)"

    def test_confirmation_in_grams(self, porridge_foods):
        assert format_confirmation(porridge_foods[0], 200, "g") == "✓ Kaurapuuro, vedellä, 200g"

    def test_added_notice(self):
        assert format_added_notice(["leipä"]) == "Lisäsin leipä listalle."
        assert format_added_notice(["leipä", "voi"], "en").startswith("Added leipä, voi to the list.")

    def test_completion_message(self):
        assert generate_completion_message() == "Kaikki tallennettu! Söitkö muuta tällä aterialla?"
