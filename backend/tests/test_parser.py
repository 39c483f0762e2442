"""
Tests for the regex intent classifier.
"""

import pytest

from ateria.core.parser import (
    classify_intent,
    parse_amount_from_segment,
    parse_answer,
    parse_meal_text,
)
from ateria.core.state import (
    LAST_ITEM,
    ClarificationAnswer,
    CompanionAnswer,
    CorrectionData,
    CountAnswer,
    FractionAnswer,
    IntentType,
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


def _question(question_type: QuestionType) -> PendingQuestion:
    return PendingQuestion(
        id=f"q:{question_type.value}:item-1:0",
        item_id="item-1",
        type=question_type,
        template_key=question_type.value,
    )


class TestDisambiguationAnswers:

    @pytest.mark.parametrize("text,index", [("1", 0), ("3", 2), ("toinen", 1), ("Eka.", 0), ("first", 0)])
    def test_selection(self, text, index):
        assert parse_answer(text, QuestionType.DISAMBIGUATION) == SelectionAnswer(index=index)

    def test_zero_is_out_of_range(self):
        assert parse_answer("0", QuestionType.DISAMBIGUATION) == SelectionAnswer(index=-1)

    @pytest.mark.parametrize("text", ["ei mikään näistä", "none", "ohita", "skip", "Jätä pois"])
    def test_reject(self, text):
        assert isinstance(parse_answer(text, QuestionType.DISAMBIGUATION), RejectAnswer)

    def test_anything_else_is_clarification(self):
        answer = parse_answer(" Kaurapuuro maidolla ", QuestionType.DISAMBIGUATION)
        assert answer == ClarificationAnswer(text="Kaurapuuro maidolla")

    def test_no_match_retry_uses_same_rules(self):
        assert isinstance(parse_answer("ohita", QuestionType.NO_MATCH_RETRY), RejectAnswer)
        assert parse_answer("ruisleipä", QuestionType.NO_MATCH_RETRY) == ClarificationAnswer(text="ruisleipä")


class TestPortionAnswers:

    @pytest.mark.parametrize("text,grams", [
        ("200g", 200), ("200 g", 200), ("150 grammaa", 150), ("12,5g", 12.5), ("180", 180), ("0,5 kg", 500),
    ])
    def test_weight(self, text, grams):
        assert parse_answer(text, QuestionType.PORTION) == WeightAnswer(grams=grams)

    @pytest.mark.parametrize("text,key", [
        ("pieni", "KPL_S"), ("normaali", "KPL_M"), ("iso", "KPL_L"),
        ("pieni annos", "PORTS"), ("annos", "PORTM"), ("PORTL", "PORTL"),
    ])
    def test_sizes(self, text, key):
        assert parse_answer(text, QuestionType.PORTION) == PortionSizeAnswer(key=key)

    def test_volume(self):
        assert parse_answer("2 dl", QuestionType.PORTION) == VolumeAnswer(value=2, unit="dl")
        assert parse_answer("1,5L", QuestionType.PORTION) == VolumeAnswer(value=1.5, unit="l")

    def test_fraction(self):
        assert parse_answer("puolikas", QuestionType.PORTION) == FractionAnswer(value=0.5)

    def test_count(self):
        assert parse_answer("2 kpl", QuestionType.PORTION) == CountAnswer(value=2, unit="kpl")

    @pytest.mark.parametrize("text,value,unit", [
        ("2 rkl", 2, "rkl"), ("1 viipale", 1, "viipale"), ("2 lasia", 2, "lasia"), ("1 Kuppi", 1, "kuppi"),
    ])
    def test_household_units(self, text, value, unit):
        assert parse_answer(text, QuestionType.PORTION) == CountAnswer(value=value, unit=unit)

    def test_unparseable(self):
        assert parse_answer("aika paljon", QuestionType.PORTION) is None


class TestCompanionAnswers:

    @pytest.mark.parametrize("text,value", [("kyllä", True), ("Joo!", True), ("yes", True), ("ei", False), ("no", False)])
    def test_yes_no(self, text, value):
        assert parse_answer(text, QuestionType.COMPANION) == CompanionAnswer(value=value)

    def test_other(self):
        assert parse_answer("ehkä", QuestionType.COMPANION) is None


class TestMealText:

    def test_split_on_conjunctions(self):
        items = parse_meal_text("kaurapuuro ja maito, mustikat + hunaja")
        assert [i.text for i in items] == ["kaurapuuro", "maito", "mustikat", "hunaja"]

    def test_leading_amount(self):
        item = parse_amount_from_segment("120g kanaa")
        assert (item.text, item.amount, item.unit) == ("kanaa", 120, "g")

    def test_trailing_amount(self):
        item = parse_amount_from_segment("maitoa 2 dl")
        assert (item.text, item.amount, item.unit) == ("maitoa", 2, "dl")

    def test_household_unit(self):
        item = parse_amount_from_segment("2 rkl voita")
        assert (item.text, item.amount, item.unit) == ("voita", 2, "rkl")

    def test_no_amount(self):
        item = parse_amount_from_segment("ruisleipä")
        assert item.amount is None and item.unit is None

    def test_empty(self):
        assert parse_meal_text("   ") == []


class TestClassifyIntent:
    """Priority order: answer, portion update, correction, removal, done, food list."""

    def test_answer_beats_everything_when_pending(self):
        intent = classify_intent("200g", _question(QuestionType.PORTION))
        assert intent.type == IntentType.ANSWER
        assert intent.data == WeightAnswer(grams=200)

    def test_number_without_question_is_food_text(self):
        intent = classify_intent("2", None)
        assert intent.type == IntentType.ADD_ITEMS

    def test_portion_update(self):
        intent = classify_intent("vaihda 150g", None)
        assert intent.type == IntentType.CORRECTION
        assert intent.data == UpdatePortionData(grams=150)

    @pytest.mark.parametrize("text", ["ei, tarkoitin ruisleipää", "No, I meant ruisleipää", "actually ruisleipää"])
    def test_correction(self, text):
        intent = classify_intent(text, None)
        assert intent.type == IntentType.CORRECTION
        assert intent.data == CorrectionData(new_text="ruisleipää")

    def test_removal(self):
        intent = classify_intent("poista kanaa", None)
        assert intent.type == IntentType.REMOVAL
        assert intent.data == RemovalData(target_text="kanaa")

    @pytest.mark.parametrize("text", ["väärin", "peru", "undo", "poista viimeisin", "remove last"])
    def test_remove_last(self, text):
        intent = classify_intent(text, None)
        assert intent.type == IntentType.REMOVAL
        assert intent.data.target_text == LAST_ITEM

    @pytest.mark.parametrize("text", ["valmis", "Valmis!", "siinä kaikki", "done", "that's all"])
    def test_done(self, text):
        assert classify_intent(text, None).type == IntentType.DONE

    def test_done_with_portion_question_pending(self):
        """Commands still apply when the reply is not a portion answer."""
        assert classify_intent("valmis", _question(QuestionType.PORTION)).type == IntentType.DONE

    def test_food_list(self):
        intent = classify_intent("120g kanaa ja riisiä", None)
        assert intent.type == IntentType.ADD_ITEMS
        assert [i.text for i in intent.data] == ["kanaa", "riisiä"]
        assert intent.data[0].amount == 120

    def test_empty_with_pending_question(self):
        intent = classify_intent("  ", _question(QuestionType.PORTION))
        assert intent.type == IntentType.ANSWER
        assert intent.data is None

    def test_empty_without_question(self):
        assert classify_intent("", None).type == IntentType.UNCLEAR

    def test_punctuation_only_is_unclear(self):
        assert classify_intent(",", None).type == IntentType.UNCLEAR
