"""Tests for milliunit conversion and amount formatting."""

from decimal import Decimal

from questrade_ynab.reconciliation.money import (
    format_amount,
    format_change,
    from_milliunits,
    quantize_major,
    to_milliunits,
)


class TestConversion:
    def test_to_milliunits(self) -> None:
        assert to_milliunits(Decimal("1000.00")) == 1_000_000
        assert to_milliunits(Decimal("45.99")) == 45_990
        assert to_milliunits(Decimal("-12.345")) == -12_345

    def test_half_even_rounding(self) -> None:
        assert to_milliunits(Decimal("0.0005")) == 0
        assert to_milliunits(Decimal("0.0015")) == 2
        assert to_milliunits(Decimal("0.0025")) == 2
        assert to_milliunits(Decimal("-0.0015")) == -2

    def test_from_milliunits_is_exact(self) -> None:
        assert from_milliunits(950_000) == Decimal("950")
        assert from_milliunits(-45_990) == Decimal("-45.99")
        assert from_milliunits(1) == Decimal("0.001")

    def test_three_decimal_amounts_survive_round_trip(self) -> None:
        for text in ("0.001", "123.456", "-9999.999"):
            amount = Decimal(text)
            assert from_milliunits(to_milliunits(amount)) == amount

    def test_quantize_major(self) -> None:
        assert quantize_major(Decimal("100.0005")) == Decimal("100.000")
        assert quantize_major(Decimal("100.0015")) == Decimal("100.002")


class TestFormatting:
    def test_format_amount(self) -> None:
        assert format_amount(Decimal("1234.5")) == "$1,234.50"
        assert format_amount(Decimal("-5")) == "-$5.00"
        assert format_amount(Decimal("0")) == "$0.00"
        assert format_amount(None) == "N/A"

    def test_format_change(self) -> None:
        assert format_change(Decimal("50")) == "+$50.00"
        assert format_change(Decimal("-12.3")) == "-$12.30"
        assert format_change(Decimal("0")) == "$0.00"
