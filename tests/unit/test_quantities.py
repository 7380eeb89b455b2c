"""
Unit tests for decimal parsing, input clamping and rounding.
"""
from decimal import Decimal

import pytest

from receiving.errors import InvalidQuantityFormat
from receiving.quantities import (
    clamp_quantity_input,
    normalise_name,
    parse_quantity,
    round2,
    to_decimal,
)


@pytest.mark.unit
class TestToDecimal:
    """Tests for to_decimal function."""

    def test_numeric_strings(self):
        assert to_decimal("40") == Decimal("40")
        assert to_decimal(" 12.5 ") == Decimal("12.5")

    def test_float_goes_through_str(self):
        """0.1 must not pick up binary float noise."""
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "12abc", True, "NaN", "Infinity"])
    def test_non_numeric_is_none(self, value):
        assert to_decimal(value) is None

    def test_large_numbers_accepted(self):
        assert to_decimal("1e30") == Decimal("1e30")
        assert to_decimal(10 ** 50) == Decimal(10 ** 50)

    @pytest.mark.parametrize("value", ["1e100", "-1e100", 10 ** 200, 1e300])
    def test_out_of_range_is_none(self, value):
        assert to_decimal(value) is None


@pytest.mark.unit
class TestParseQuantity:
    """Tests for parse_quantity function."""

    def test_valid_quantity(self):
        assert parse_quantity("40") == Decimal("40")

    def test_truncated_to_two_places(self):
        assert parse_quantity("12.349") == Decimal("12.34")

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidQuantityFormat) as exc_info:
            parse_quantity("abc", "lines[0].quantity_received")
        assert exc_info.value.reason == "must be a number"
        assert exc_info.value.field == "lines[0].quantity_received"

    @pytest.mark.parametrize("value", ["0", "-5", "0.001"])
    def test_not_positive_rejected(self, value):
        """0.001 truncates to 0.00 and is rejected."""
        with pytest.raises(InvalidQuantityFormat) as exc_info:
            parse_quantity(value)
        assert exc_info.value.reason == "must be greater than 0"

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_quantity("")


@pytest.mark.unit
class TestClampQuantityInput:
    """Tests for clamp_quantity_input function."""

    def test_above_cap_becomes_cap(self):
        assert clamp_quantity_input("45", Decimal("40")) == Decimal("40")

    def test_below_cap_unchanged(self):
        assert clamp_quantity_input("25", Decimal("40")) == Decimal("25")

    def test_decimal_places_clamped(self):
        assert clamp_quantity_input("10.567", Decimal("40")) == Decimal("10.56")

    def test_no_cap(self):
        assert clamp_quantity_input("1000", None) == Decimal("1000")

    def test_non_numeric_raises(self):
        with pytest.raises(InvalidQuantityFormat):
            clamp_quantity_input("lots", Decimal("40"))

    @pytest.mark.parametrize("raw", ["123456789012345678901234567890", "1e30", "1e99"])
    def test_huge_value_becomes_cap(self, raw):
        assert clamp_quantity_input(raw, Decimal("40")) == Decimal("40")

    def test_huge_value_without_cap_keeps_every_digit(self):
        value = clamp_quantity_input("123456789012345678901234567890.129", None)
        assert value == Decimal("123456789012345678901234567890.12")

    def test_parse_huge_quantity(self):
        assert parse_quantity("1e30") == Decimal("1e30")


@pytest.mark.unit
class TestRounding:
    """Tests for round2 and normalise_name."""

    def test_half_up(self):
        assert round2(Decimal("33.335")) == Decimal("33.34")
        assert round2(Decimal("0.005")) == Decimal("0.01")
        assert round2(Decimal("2.004")) == Decimal("2.00")

    def test_half_up_on_wide_values(self):
        assert round2(Decimal("123456789012345678901234567890.125")) == Decimal("123456789012345678901234567890.13")

    def test_normalise_name(self):
        assert normalise_name("  Bolt ") == "bolt"
        assert normalise_name("HEX Nut") == "hex nut"
        assert normalise_name(None) == ""
