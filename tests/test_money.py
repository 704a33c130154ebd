"""
Test suite for monetary helpers

Tests strict and lenient Decimal coercion, rounding and tolerance
comparison. Amounts must never pass through float arithmetic.
"""

import pytest
from decimal import Decimal

from cash_position.money import (
    ZERO, CENT, quantize, decimal_from_string, to_decimal, sum_amounts, amounts_match
)


class TestDecimalFromString:
    """Test strict string parsing"""

    def test_plain_decimal(self):
        assert decimal_from_string("1234.56") == Decimal("1234.56")

    def test_brazilian_format(self):
        """Test dot thousands separator with comma decimals"""
        assert decimal_from_string("1.234,56") == Decimal("1234.56")
        assert decimal_from_string("R$ 1.234,56") == Decimal("1234.56")

    def test_us_format(self):
        assert decimal_from_string("1,234.56") == Decimal("1234.56")

    def test_single_comma(self):
        """Test comma as decimal vs thousands separator"""
        assert decimal_from_string("-10,5") == Decimal("-10.5")
        assert decimal_from_string("1,234") == Decimal("1234")

    def test_dot_grouped_thousands(self):
        """Test Brazilian thousands grouping without cents"""
        assert decimal_from_string("1.234.567") == Decimal("1234567")
        assert decimal_from_string("R$ 12.000.000") == Decimal("12000000")
        assert decimal_from_string("-1.000.000") == Decimal("-1000000")

    def test_single_dot_is_decimal(self):
        assert decimal_from_string("1.234") == Decimal("1.234")
        assert decimal_from_string("0.125") == Decimal("0.125")

    def test_malformed_dot_grouping(self):
        with pytest.raises(ValueError):
            decimal_from_string("1.23.4")

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            decimal_from_string("")
        with pytest.raises(ValueError):
            decimal_from_string("abc")


class TestToDecimal:
    """Test lenient coercion used by the normalizer"""

    def test_missing_values_are_zero(self):
        assert to_decimal(None) == ZERO
        assert to_decimal("") == ZERO
        assert to_decimal("not a number") == ZERO
        assert to_decimal(True) == ZERO
        assert to_decimal(object()) == ZERO

    def test_grouped_amount_is_not_lost(self):
        assert to_decimal("1.234.567") == Decimal("1234567.00")
        assert to_decimal("1.234.567,89") == Decimal("1234567.89")

    def test_non_finite_values_are_zero(self):
        assert to_decimal(float("nan")) == ZERO
        assert to_decimal(float("inf")) == ZERO

    def test_float_goes_through_repr(self):
        assert to_decimal(0.1) == Decimal("0.10")
        assert to_decimal(0.1 + 0.2) == Decimal("0.30")

    def test_rounding_half_up(self):
        assert to_decimal("12.345") == Decimal("12.35")
        assert to_decimal(Decimal("1.005")) == Decimal("1.01")
        assert to_decimal(7) == Decimal("7.00")

    def test_quantize_precision(self):
        assert quantize(Decimal("1.23456"), 4) == Decimal("1.2346")


class TestAmountHelpers:
    """Test summing and tolerance comparison"""

    def test_sum_amounts(self):
        assert sum_amounts([]) == ZERO
        assert sum_amounts([Decimal("1.10"), Decimal("2.20")]) == Decimal("3.30")

    def test_amounts_match_is_strict(self):
        """Test that a full cent of difference is a mismatch"""
        assert amounts_match(Decimal("1.00"), Decimal("1.009"))
        assert not amounts_match(Decimal("1.00"), Decimal("1.01"))
        assert amounts_match(Decimal("5.00"), Decimal("5.50"), tolerance=Decimal("1.00"))
        assert CENT == Decimal("0.01")
