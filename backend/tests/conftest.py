"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
"""

import os

# Must be set before ateria (and opik) are imported
os.environ.setdefault("OPIK_TRACK_DISABLE", "true")
os.environ["AI_PROVIDER"] = "none"

import itertools
from typing import Optional

import pytest

from ateria.core.state import ConversationState, FineliFood, FineliUnit, FoodType


def build_unit(code: str, mass_grams: float, label_fi: str = "", label_en: str = "") -> FineliUnit:
    return FineliUnit(code=code, mass_grams=mass_grams, label_fi=label_fi, label_en=label_en)


def build_food(
    food_id: int,
    name_fi: str,
    units: Optional[list[FineliUnit]] = None,
    nutrients: Optional[dict[str, float]] = None,
    food_type: FoodType = FoodType.FOOD,
    name_en: Optional[str] = None,
) -> FineliFood:
    return FineliFood(
        id=food_id,
        name_fi=name_fi,
        name_en=name_en,
        type=food_type,
        units=units or [],
        nutrients=nutrients if nutrients is not None else {"ENERC": 400.0, "PROT": 3.0},
    )


class FakeSearchProvider:
    """
    In-memory food search.

    Usage in tests:
        provider = FakeSearchProvider({"kaurapuuro": [food_a, food_b]})
        provider.fail_on.add("kana")
    """

    def __init__(self, results: Optional[dict[str, list[FineliFood]]] = None):
        self.results = {k.lower(): v for k, v in (results or {}).items()}
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    async def search_foods(self, query: str, lang: str = "fi") -> list[FineliFood]:
        self.calls.append((query, lang))
        key = query.strip().lower()
        if key in self.fail_on:
            raise ConnectionError(f"search backend unavailable for {query}")
        return list(self.results.get(key, []))


def counter_ids(prefix: str = "item"):
    """Deterministic item id factory: item-1, item-2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def make_unit():
    return build_unit


@pytest.fixture
def make_food():
    return build_food


@pytest.fixture
def make_state():
    """Factory for an empty conversation state."""
    def _make(**overrides) -> ConversationState:
        data = {"session_id": "session-1", "meal_id": "meal-1"}
        data.update(overrides)
        return ConversationState(**data)
    return _make


@pytest.fixture
def porridge_foods():
    """Two porridge candidates plus portion units."""
    return [
        build_food(
            1, "Kaurapuuro, vedellä",
            units=[build_unit("PORTS", 150, "pieni annos"), build_unit("PORTM", 250, "annos"),
                   build_unit("PORTL", 350, "iso annos"), build_unit("DL", 95, "dl")],
            nutrients={"ENERC": 250.0, "PROT": 2.0, "CHOAVL": 9.0, "FAT": 1.0},
            name_en="Oat porridge, water",
        ),
        build_food(
            2, "Kaurapuuro, maidolla",
            units=[build_unit("PORTM", 250, "annos")],
            nutrients={"ENERC": 350.0, "PROT": 4.0},
        ),
    ]


@pytest.fixture
def chicken_food():
    return build_food(
        10, "Kana, paistettu",
        units=[build_unit("KPL_M", 120, "keskikokoinen")],
        nutrients={"ENERC": 800.0, "PROT": 25.0, "FAT": 8.0},
    )


@pytest.fixture
def search_provider(porridge_foods, chicken_food):
    return FakeSearchProvider({
        "kaurapuuro": porridge_foods,
        "kanaa": [chicken_food],
        "kana": [chicken_food],
        "maito": [build_food(20, "Maito, kevyt", units=[build_unit("DL", 103, "dl")])],
    })
