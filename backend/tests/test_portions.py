"""
Tests for portion-to-grams conversion.
"""

import math

import pytest

from ateria.core.portions import (
    convert_portion,
    density_category,
    find_size_unit,
    resolve_unit_code,
)
from ateria.core.state import ConversionMethod


class TestResolveUnitCode:
    """User unit tokens map to internal codes."""

    @pytest.mark.parametrize("token,code", [
        ("g", "G"),
        ("grammaa", "G"),
        ("DL", "DL"),
        ("desi", "DL"),
        ("kpl", "KPL_M"),
        ("pieni annos", "PORTS"),
        ("  iso   annos ", "PORTL"),
        ("rkl", "RKL"),
        ("viipaletta", "SLICE"),
        ("lasia", "GLASS"),
        ("ruokalusikallista", "RKL"),
    ])
    def test_known_tokens(self, token, code):
        assert resolve_unit_code(token) == code

    def test_unknown_token(self):
        assert resolve_unit_code("kourallinen") is None


class TestConvertPortion:
    """convert_portion uses only the food's own units and the density table."""

    def test_deciliters_with_fineli_dl_unit(self, make_unit):
        """2 dl against a 103 g DL unit is 206 g from the Fineli unit."""
        result = convert_portion(2, "dl", [make_unit("DL", 103, "dl")])
        assert result.grams == pytest.approx(206)
        assert result.method == ConversionMethod.FINELI_UNIT
        assert result.unit_code == "DL"

    def test_deciliters_without_dl_unit_uses_default_density(self):
        result = convert_portion(2, "dl", [])
        assert result.grams == pytest.approx(200)
        assert result.method == ConversionMethod.VOLUME_DENSITY
        assert result.unit_label == "dl"

    def test_milliliters_scale_the_dl_unit(self, make_unit):
        result = convert_portion(250, "ml", [make_unit("DL", 103)])
        assert result.grams == pytest.approx(257.5)
        assert result.unit_code == "ML"

    def test_density_category_applies_without_dl_unit(self):
        result = convert_portion(1, "dl", [], category="oil")
        assert result.grams == pytest.approx(92)

    def test_unknown_category_falls_back_to_water(self):
        result = convert_portion(1, "l", [], category="lava")
        assert result.grams == pytest.approx(1000)

    def test_missing_unit_means_grams(self):
        result = convert_portion(150, None, [])
        assert result.grams == 150
        assert result.method == ConversionMethod.DIRECT_GRAMS

    def test_kilograms(self):
        result = convert_portion(0.5, "kg", [])
        assert result.grams == pytest.approx(500)
        assert result.unit_code == "KG"

    def test_piece_unit_from_food(self, make_unit):
        result = convert_portion(2, "kpl", [make_unit("KPL_M", 60, "keskikokoinen")])
        assert result.grams == 120
        assert result.unit_label == "keskikokoinen"

    def test_piece_unit_missing_on_food(self):
        assert convert_portion(2, "kpl", []) is None

    def test_unknown_unit(self):
        assert convert_portion(2, "kourallinen", []) is None

    @pytest.mark.parametrize("amount", [0, -1, math.nan, math.inf])
    def test_rejects_non_positive_or_non_finite(self, amount):
        assert convert_portion(amount, "g", []) is None


class TestSizeUnits:

    def test_piece_code_accepts_portion_twin(self, make_unit):
        units = [make_unit("PORTM", 250)]
        assert find_size_unit("KPL_M", units).code == "PORTM"

    def test_exact_code_preferred(self, make_unit):
        units = [make_unit("PORTS", 150), make_unit("KPL_S", 40)]
        assert find_size_unit("KPL_S", units).mass_grams == 40

    def test_no_size_unit(self, make_unit):
        assert find_size_unit("KPL_L", [make_unit("DL", 100)]) is None


class TestDensityCategory:

    @pytest.mark.parametrize("name,category", [
        ("Maito, kevyt", "milk"),
        ("Kermaviili", "cream"),
        ("Rypsiöljy", "oil"),
        ("Kaurahiutale", "oats"),
        ("Omena", None),
        (None, None),
    ])
    def test_categories(self, name, category):
        assert density_category(name) == category
