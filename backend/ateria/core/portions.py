"""
Ateria - Portion Conversion

Turns a user-supplied amount + unit into grams for one specific food,
using only that food's own Fineli unit list and a small density table
for volumes the food does not describe itself.
"""

import math
from typing import Optional, Sequence

from ateria.core.state import ConversionMethod, FineliUnit, PortionConversionResult

# Every accepted input token maps to exactly one internal unit code.
UNIT_ALIASES: dict[str, str] = {
    # Direct grams
    "g": "G", "gramma": "G", "grammaa": "G", "gram": "G", "grams": "G",
    "kg": "KG", "kilo": "KG", "kiloa": "KG", "kilogramma": "KG",
    # Volume
    "dl": "DL", "desi": "DL", "desiä": "DL", "desilitra": "DL", "desilitraa": "DL",
    "ml": "ML", "millilitra": "ML", "millilitraa": "ML",
    "l": "L", "litra": "L", "litraa": "L", "liter": "L", "litre": "L",
    # Pieces
    "kpl": "KPL_M", "kappale": "KPL_M", "kappaletta": "KPL_M",
    "piece": "KPL_M", "pieces": "KPL_M", "pcs": "KPL_M",
    # Sizes
    "pieni": "KPL_S", "small": "KPL_S",
    "keskikokoinen": "KPL_M", "medium": "KPL_M",
    "iso": "KPL_L", "large": "KPL_L", "suuri": "KPL_L",
    # Portions
    "annos": "PORTM", "annosta": "PORTM", "portion": "PORTM",
    "pieni annos": "PORTS", "small portion": "PORTS",
    "iso annos": "PORTL", "large portion": "PORTL",
    # Household
    "rkl": "RKL", "ruokalusikka": "RKL", "ruokalusikallinen": "RKL",
    "ruokalusikallista": "RKL", "tbsp": "RKL",
    "tl": "TL", "teelusikka": "TL", "teelusikallinen": "TL",
    "teelusikallista": "TL", "tsp": "TL",
    "kuppi": "CUP", "kuppia": "CUP", "kupillinen": "CUP", "kupillista": "CUP",
    "cup": "CUP", "cups": "CUP",
    "lasi": "GLASS", "lasia": "GLASS", "lasillinen": "GLASS", "lasillista": "GLASS",
    "glass": "GLASS", "glasses": "GLASS",
    "viipale": "SLICE", "viipaletta": "SLICE", "slice": "SLICE", "slices": "SLICE",
}

VOLUME_CODES = {"ML", "DL", "L"}

# Milliliters per volume unit
VOLUME_ML: dict[str, float] = {"ML": 1.0, "DL": 100.0, "L": 1000.0}

# Fraction of the Fineli DL mass per volume unit
DL_FACTORS: dict[str, float] = {"ML": 0.01, "DL": 1.0, "L": 10.0}

# g per ml
DENSITY_TABLE: dict[str, float] = {
    "default_liquid": 1.0,
    "milk": 1.03,
    "cream": 1.01,
    "oil": 0.92,
    "honey": 1.42,
    "flour": 0.53,
    "sugar": 0.85,
    "oats": 0.40,
    "rice_raw": 0.85,
}

# Name fragments that place a food in a density category
DENSITY_KEYWORDS: list[tuple[str, str]] = [
    ("kerma", "cream"),
    ("maito", "milk"),
    ("piimä", "milk"),
    ("öljy", "oil"),
    ("hunaja", "honey"),
    ("jauho", "flour"),
    ("sokeri", "sugar"),
    ("kaurahiutale", "oats"),
    ("riisi, kuiva", "rice_raw"),
]

STANDARD_UNIT_LABELS: dict[str, str] = {
    "G": "g",
    "KG": "kg",
    "DL": "dl",
    "ML": "ml",
    "L": "l",
}

# Fineli uses both per-piece and per-portion size codes for the same idea
SIZE_EQUIVALENTS: dict[str, list[str]] = {
    "PORTS": ["PORTS", "KPL_S"], "KPL_S": ["KPL_S", "PORTS"],
    "PORTM": ["PORTM", "KPL_M"], "KPL_M": ["KPL_M", "PORTM"],
    "PORTL": ["PORTL", "KPL_L"], "KPL_L": ["KPL_L", "PORTL"],
}


def resolve_unit_code(unit_input: str) -> Optional[str]:
    """Map a user unit token to its internal unit code."""
    return UNIT_ALIASES.get(" ".join(unit_input.lower().split()))


def find_unit(code: str, units: Sequence[FineliUnit]) -> Optional[FineliUnit]:
    for unit in units:
        if unit.code == code:
            return unit
    return None


def find_size_unit(code: str, units: Sequence[FineliUnit]) -> Optional[FineliUnit]:
    """Find a size unit, accepting the piece/portion twin of the code."""
    for candidate in SIZE_EQUIVALENTS.get(code, [code]):
        unit = find_unit(candidate, units)
        if unit:
            return unit
    return None


def density_category(food_name: Optional[str]) -> Optional[str]:
    """Guess the density category of a food from its Finnish name."""
    if not food_name:
        return None
    lowered = food_name.lower()
    for fragment, category in DENSITY_KEYWORDS:
        if fragment in lowered:
            return category
    return None


def convert_portion(
    amount: float,
    unit_input: Optional[str],
    units: Sequence[FineliUnit],
    category: Optional[str] = None,
) -> Optional[PortionConversionResult]:
    """
    Convert a user-provided portion to grams.

    Args:
        amount: Numeric value (e.g. 2)
        unit_input: What the user said ("dl", "medium", "kpl"); None or "" means grams
        units: Units Fineli lists for this food
        category: Density category for volumes the food has no DL unit for

    Returns:
        PortionConversionResult, or None when the unit cannot be resolved for this food
    """
    if not math.isfinite(amount) or amount <= 0:
        return None

    if unit_input is None or not unit_input.strip():
        return PortionConversionResult(
            grams=amount,
            unit_code="G",
            unit_label="g",
            method=ConversionMethod.DIRECT_GRAMS,
        )

    code = resolve_unit_code(unit_input)
    if code is None:
        return None

    if code == "G":
        return PortionConversionResult(
            grams=amount,
            unit_code="G",
            unit_label="g",
            method=ConversionMethod.DIRECT_GRAMS,
        )

    if code == "KG":
        return PortionConversionResult(
            grams=amount * 1000,
            unit_code="KG",
            unit_label="kg",
            method=ConversionMethod.DIRECT_GRAMS,
        )

    if code in VOLUME_CODES:
        dl_unit = find_unit("DL", units)
        if dl_unit:
            return PortionConversionResult(
                grams=dl_unit.mass_grams * DL_FACTORS[code] * amount,
                unit_code=code,
                unit_label=dl_unit.label_fi if code == "DL" and dl_unit.label_fi else STANDARD_UNIT_LABELS[code],
                method=ConversionMethod.FINELI_UNIT,
            )

        density = DENSITY_TABLE.get(category or "default_liquid", DENSITY_TABLE["default_liquid"])
        return PortionConversionResult(
            grams=amount * VOLUME_ML[code] * density,
            unit_code=code,
            unit_label=STANDARD_UNIT_LABELS[code],
            method=ConversionMethod.VOLUME_DENSITY,
        )

    fineli_unit = find_unit(code, units)
    if fineli_unit:
        return PortionConversionResult(
            grams=fineli_unit.mass_grams * amount,
            unit_code=code,
            unit_label=fineli_unit.label_fi or code.lower(),
            method=ConversionMethod.FINELI_UNIT,
        )

    return None
