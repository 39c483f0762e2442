"""
Ateria - Nutrient Scaling

Per-100g Fineli nutrient maps scaled to portions, plus the summation
helpers used for meal and day totals.
"""

import math
from typing import Mapping, Sequence

# All 55 nutrient component codes in Fineli data[] array order
COMPONENT_ORDER: list[str] = [
    "ENERC", "FAT", "CHOAVL", "PROT", "ALC", "OA", "SUGOH", "SUGAR",
    "FRUS", "GALS", "GLUS", "LACS", "MALS", "SUCS", "STARCH", "FIBC",
    "FIBINS", "PSACNCS", "FAFRE", "FAPU", "FAMCIS", "FASAT", "FATRN",
    "FAPUN3", "FAPUN6", "F18D2CN6", "F18D3N3", "F20D5N3", "F22D6N3",
    "CHOLE", "STERT", "CA", "FE", "ID", "K", "MG", "NA", "NACL",
    "P", "SE", "ZN", "TRP", "FOL", "NIAEQ", "NIA", "VITPYRID",
    "RIBF", "THIA", "VITA", "CAROTENS", "VITB12", "VITC", "VITD",
    "VITE", "VITK",
]

KJ_PER_KCAL = 4.184


def compute_nutrients(nutrients_per_100g: Mapping[str, float], portion_grams: float) -> dict[str, float]:
    """
    Scale per-100g nutrient values to a portion.

    Codes missing from the source map stay missing; they are never
    defaulted to zero.

    Args:
        nutrients_per_100g: Component code -> value per 100 g
        portion_grams: Weight of the portion in grams

    Returns:
        Component code -> value for the portion, rounded to 4 decimals
    """
    return {
        code: round(value * portion_grams / 100, 4)
        for code, value in nutrients_per_100g.items()
    }


def sum_nutrients(*maps: Mapping[str, float]) -> dict[str, float]:
    """Add nutrient maps together, skipping missing and non-finite values."""
    result: dict[str, float] = {}
    for nutrient_map in maps:
        for code, value in nutrient_map.items():
            if value is None or not math.isfinite(value):
                continue
            result[code] = result.get(code, 0.0) + value
    return result


def map_data_to_components(data: Sequence[float]) -> dict[str, float]:
    """Map a Fineli detail data[] array onto component codes."""
    result: dict[str, float] = {}
    for code, value in zip(COMPONENT_ORDER, data):
        if isinstance(value, (int, float)):
            result[code] = float(value)
    return result


def kj_to_kcal(kj: float) -> int:
    return round(kj / KJ_PER_KCAL)


def nutrient_summary(nutrients: Mapping[str, float]) -> dict[str, float]:
    """Key nutrients in display units: kcal plus grams at one decimal."""
    return {
        "energy_kcal": kj_to_kcal(nutrients.get("ENERC", 0.0)),
        "protein": round(nutrients.get("PROT", 0.0), 1),
        "fat": round(nutrients.get("FAT", 0.0), 1),
        "carbs": round(nutrients.get("CHOAVL", 0.0), 1),
        "fiber": round(nutrients.get("FIBC", 0.0), 1),
    }
