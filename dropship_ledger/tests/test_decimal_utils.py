"""Tests for Decimal conversion helpers used by all money arithmetic."""

from decimal import Decimal

import pytest

from dropship_ledger.decimal_utils import (
    ZERO,
    quantize_currency,
    safe_divide,
    sum_decimals,
    to_decimal,
    to_finite_decimal,
    to_float,
)
from dropship_ledger.exceptions import ValidationError


class TestToDecimal:
    """Conversion of public inputs to Decimal."""

    def test_float_goes_through_string(self):
        """0.1 must not carry binary floating point noise."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        assert to_decimal(1000) == Decimal("1000")
        assert to_decimal("12.34") == Decimal("12.34")

    def test_none_is_zero(self):
        assert to_decimal(None) == ZERO

    def test_decimal_passthrough(self):
        value = Decimal("3.14")
        assert to_decimal(value) is value

    def test_bool_rejected(self):
        """Booleans are ints in Python but never money."""
        with pytest.raises(TypeError):
            to_decimal(True)


class TestArithmeticHelpers:
    """Division, summation, and rounding helpers."""

    def test_safe_divide(self):
        assert safe_divide(300, 100) == Decimal("3")

    def test_safe_divide_by_zero_returns_default(self):
        assert safe_divide(100, 0) == ZERO
        assert safe_divide(100, 0, default=5) == Decimal("5")

    def test_sum_decimals_exact(self):
        assert sum_decimals(0.1, 0.2, 0.3) == Decimal("0.6")

    def test_sum_decimals_empty(self):
        assert sum_decimals() == ZERO

    def test_quantize_currency_half_up(self):
        assert quantize_currency(Decimal("1234.565")) == Decimal("1234.57")
        assert quantize_currency(2.5) == Decimal("2.50")

    def test_to_float(self):
        assert to_float(Decimal("12.5")) == 12.5
        assert to_float(None) is None


class TestFiniteDecimal:
    """Guard used wherever an amount enters the ledger or an entity."""

    def test_finite_values_pass_through(self):
        assert to_finite_decimal(12.5, "Spend") == Decimal("12.5")
        assert to_finite_decimal(None, "Spend") == ZERO

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "-Infinity", Decimal("NaN")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValidationError, match="Spend must be a finite number"):
            to_finite_decimal(value, "Spend")
