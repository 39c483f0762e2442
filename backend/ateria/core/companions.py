"""
Ateria - Companion Food Suggestions

Foods that are usually eaten together. Once a meal is marked complete the
engine asks about one forgotten accompaniment at a time (milk with
porridge, butter with bread) before finalizing.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

FOOD_COMPANIONS: dict[str, list[str]] = {
    "puuro": ["maito", "marja", "hunaja"],
    "kaurapuuro": ["maito", "marja", "hunaja"],
    "kahvi": ["maito", "sokeri"],
    "tee": ["hunaja", "sokeri"],
    "leipä": ["voi", "juusto", "leikkele"],
    "salaatti": ["kastike", "öljy"],
    "pasta": ["kastike"],
    "riisi": ["kastike", "liha"],
}


class CompanionSuggestion(BaseModel):
    primary_food: str
    companion: str


def base_food_key(name: str) -> str:
    """Base food name for lookup: "Kaurapuuro, kylmä" -> "kaurapuuro"."""
    return name.split(",")[0].strip().lower()


def _matches_key(name: str, key: str) -> bool:
    base = base_food_key(name)
    return bool(base) and (base == key or base.startswith(key) or key.startswith(base))


def check_companions(
    resolved_names: list[str],
    already_checked: Iterable[str],
) -> Optional[CompanionSuggestion]:
    """
    Find the first companion worth asking about.

    Args:
        resolved_names: Display names of the foods already in the meal
        already_checked: Companions that were already asked about

    Returns:
        The primary food and its companion, or None if nothing is left to ask
    """
    resolved_keys = {base_food_key(name) for name in resolved_names}
    checked = {name.lower() for name in already_checked}

    for name in resolved_names:
        for key, companions in FOOD_COMPANIONS.items():
            if not _matches_key(name, key):
                continue
            for companion in companions:
                if companion in resolved_keys or companion in checked:
                    continue
                return CompanionSuggestion(primary_food=name, companion=companion)

    return None
