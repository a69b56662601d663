# Overview: Pytest coverage for line pricing math and rupee/percent conversion.

from decimal import Decimal

import pytest

from pharmacy_pos.errors import ValidationError
from pharmacy_pos.services.pricing import (
    compute_line,
    format_paise,
    summarize_lines,
    to_bps,
    to_paise,
)


class TestComputeLine:
    def test_tax_only_line(self):
        line = compute_line(10000, 2, tax_bps=500)
        assert line.gross == 20000
        assert line.discount == 0
        assert line.taxable == 20000
        assert line.tax == 1000
        assert line.net == 21000

    def test_discount_only_line(self):
        line = compute_line(5000, 1, discount_bps=1000)
        assert line.discount == 500
        assert line.taxable == 4500
        assert line.tax == 0
        assert line.net == 4500

    def test_tax_applies_after_discount(self):
        # Rs 99.99 x 3 with 12.5% off then 18% GST
        line = compute_line(9999, 3, discount_bps=1250, tax_bps=1800)
        assert line.gross == 29997
        assert line.discount == 3750       # 3749.625 -> 3750
        assert line.taxable == 26247
        assert line.tax == 4724            # 4724.46 -> 4724
        assert line.net == 30971

    def test_half_paisa_rounds_up(self):
        # 25 paise at 10% = 2.5 paise -> 3
        assert compute_line(25, 1, tax_bps=1000).tax == 3
        assert compute_line(25, 1, discount_bps=1000).discount == 3

    def test_zero_price_is_allowed(self):
        line = compute_line(0, 4, discount_bps=1000, tax_bps=1200)
        assert line.net == 0

    def test_full_discount(self):
        line = compute_line(1234, 2, discount_bps=10000, tax_bps=500)
        assert line.taxable == 0
        assert line.net == 0

    def test_identity_holds(self):
        line = compute_line(3333, 7, discount_bps=333, tax_bps=1234)
        assert line.taxable == line.gross - line.discount
        assert line.net == line.taxable + line.tax

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_rejects_non_positive_quantity(self, quantity):
        with pytest.raises(ValidationError):
            compute_line(1000, quantity)

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            compute_line(-1, 1)

    @pytest.mark.parametrize("kwargs", [
        {"discount_bps": -1},
        {"discount_bps": 10001},
        {"tax_bps": -5},
        {"tax_bps": 20000},
    ])
    def test_rejects_percent_out_of_range(self, kwargs):
        with pytest.raises(ValidationError):
            compute_line(1000, 1, **kwargs)

    @pytest.mark.parametrize("quantity", [1.5, True, "2"])
    def test_rejects_non_integer_quantity(self, quantity):
        with pytest.raises(ValidationError):
            compute_line(1000, quantity)


def test_summarize_lines_sums_components():
    lines = [
        compute_line(10000, 2, tax_bps=500),
        compute_line(5000, 1, discount_bps=1000),
    ]
    summary = summarize_lines(lines)
    assert summary.subtotal == 24500
    assert summary.tax == 1000
    assert summary.discount == 500
    assert summary.net == 25500


def test_summarize_empty():
    summary = summarize_lines([])
    assert (summary.subtotal, summary.tax, summary.discount, summary.net) == (0, 0, 0, 0)


class TestConversions:
    @pytest.mark.parametrize("value,expected", [
        ("12.50", 1250),
        ("12.5", 1250),
        (12.5, 1250),
        (0.1, 10),
        (100, 10000),
        (Decimal("0.01"), 1),
        ("0", 0),
    ])
    def test_to_paise(self, value, expected):
        assert to_paise(value) == expected

    @pytest.mark.parametrize("value", ["1.234", "abc", "", "NaN", "Infinity", True, None])
    def test_to_paise_rejects(self, value):
        with pytest.raises(ValidationError):
            to_paise(value)

    def test_to_bps(self):
        assert to_bps("5") == 500
        assert to_bps(12.5) == 1250
        assert to_bps("0.01") == 1

    def test_to_bps_rejects_three_decimals(self):
        with pytest.raises(ValidationError) as exc:
            to_bps("5.125", "taxPercent")
        assert exc.value.details["field"] == "taxPercent"

    def test_format_paise(self):
        assert format_paise(21000) == "210.00"
        assert format_paise(5) == "0.05"
        assert format_paise(-150) == "-1.50"
