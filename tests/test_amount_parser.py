"""Tests for AmountParser component."""

from decimal import Decimal

import pytest
from receipt_scanner.parsers.amount_parser import AmountParser, normalize_amount
from receipt_scanner.parsers.base import ReceiptContext


class TestNormalizeAmount:
    """Test suite for token normalization."""

    @pytest.mark.parametrize("token, expected", [
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("45,99", Decimal("45.99")),
        ("1,234", Decimal("1234.00")),
        ("12.50", Decimal("12.50")),
        ("$ 12.50", Decimal("12.50")),
        ("€7,00", Decimal("7.00")),
        ("1.234.56", Decimal("1234.56")),
    ])
    def test_formats(self, token, expected):
        """US, European and bare formats resolve to the same value."""
        assert normalize_amount(token) == expected

    def test_result_has_two_decimals(self):
        assert normalize_amount("45,99").as_tuple().exponent == -2
        assert normalize_amount("1,234").as_tuple().exponent == -2

    @pytest.mark.parametrize("token", ["100000.00", "250.000,00", "1.234.567", "0,00", "0.00", "abc", "", "$"])
    def test_out_of_range_or_garbage(self, token):
        """Zero, huge values and non-numbers are treated as OCR noise."""
        assert normalize_amount(token) is None


class TestAmountParser:
    """Test suite for AmountParser."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = AmountParser()

    def test_mixed_formats_deduplicated_and_sorted(self):
        """Same value printed twice in different formats appears once."""
        text = """
        Coffee 4,50
        Total 1.234,56
        Card 1,234.56
        """
        amounts = self.parser.extract_all(text)

        assert amounts == [Decimal("1234.56"), Decimal("4.50")]

    def test_currency_symbols(self):
        text = "Parking € 7.00\nSandwich 12,50 €\nTip $3.00"

        assert self.parser.extract_all(text) == [Decimal("12.50"), Decimal("7.00"), Decimal("3.00")]

    def test_dates_are_not_amounts(self):
        """A dotted date must not be read as money."""
        assert self.parser.extract_all("15.03.2025") == []
        assert self.parser.extract_all("Datum: 01.12.2024 14:05") == []

    def test_integers_without_decimals_ignored(self):
        """Item counts and phone numbers have no two-digit decimal part."""
        assert self.parser.extract_all("Qty 3\nTel 555 1234\nStore 0042") == []

    def test_noise_values_dropped(self):
        text = "Ref 123456.78\nTotal 0.00\nSum 9.99"

        assert self.parser.extract_all(text) == [Decimal("9.99")]

    def test_parse_wraps_result(self):
        context = ReceiptContext(full_text="Total 19.99\nCash 20.00")

        result = self.parser.parse(context)

        assert result is not None
        assert result.value == [Decimal("20.00"), Decimal("19.99")]
        assert result.metadata['count'] == 2

    def test_parse_without_amounts(self):
        assert self.parser.parse(ReceiptContext(full_text="THANK YOU")) is None

    def test_largest_on_line(self):
        assert self.parser.largest_on_line("2 x 3.50   7.00") == Decimal("7.00")
        assert self.parser.largest_on_line("no money here") is None

    def test_space_grouped_thousands(self):
        """French and Polish receipts group thousands with a space."""
        assert self.parser.extract_all("TOTAL 1 234,56 EUR") == [Decimal("1234.56")]
        assert self.parser.extract_all("Razem 12 345,67 zl") == [Decimal("12345.67")]
        assert self.parser.extract_all("Total 1\u00a0234,56") == [Decimal("1234.56")]

    def test_space_grouping_needs_three_digits(self):
        assert self.parser.extract_all("Qty 2 4,50") == [Decimal("4.50")]
