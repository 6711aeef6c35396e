"""
Invoice totals tests.

All arithmetic is integer cents and basis points, rounded half-up.
"""

import pytest

from backoffice.services.totals_service import (
    TotalsError,
    compute_discount,
    compute_subtotal,
    compute_totals,
    format_money,
    format_rate,
    parse_money_to_cents,
    percent_to_bps,
)


class TestComputeTotals:

    def test_two_units_at_retail_no_discount_no_tax(self):
        totals = compute_totals([(2, 2500)])
        assert totals.subtotal_cents == 5000
        assert totals.discount_cents == 0
        assert totals.tax_cents == 0
        assert totals.total_cents == 5000

    def test_percentage_discount_then_tax(self):
        totals = compute_totals([(1, 10000)], discount=1000, discount_type="percentage", tax_rate_bps=2000)
        assert totals.subtotal_cents == 10000
        assert totals.discount_cents == 1000
        assert totals.tax_cents == 1800
        assert totals.total_cents == 10800

    def test_fixed_discount_clamped_to_subtotal(self):
        totals = compute_totals([(1, 3000)], discount=5000, discount_type="fixed", tax_rate_bps=2000)
        assert totals.discount_cents == 3000
        assert totals.tax_cents == 0
        assert totals.total_cents == 0

    def test_percentage_above_hundred_is_capped(self):
        assert compute_discount(4000, 15000, "percentage") == 4000

    def test_rounds_half_up(self):
        # 10% of 9.95 is 0.995 -> 1.00
        totals = compute_totals([(1, 995)], discount=1000, discount_type="percentage")
        assert totals.discount_cents == 100
        assert totals.total_cents == 895

    def test_empty_items(self):
        totals = compute_totals([], discount=500, discount_type="fixed", tax_rate_bps=2000)
        assert totals.to_dict() == {"subtotal_cents": 0, "discount_cents": 0, "tax_cents": 0, "total_cents": 0}

    def test_negative_tax_rate_rejected(self):
        with pytest.raises(TotalsError):
            compute_totals([(1, 100)], tax_rate_bps=-1)

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(TotalsError):
            compute_totals([(1, 100)], discount=10, discount_type="bogus")

    def test_total_never_decreases_with_quantity(self):
        totals = [
            compute_totals([(qty, 1999)], discount=1250, discount_type="percentage", tax_rate_bps=2000).total_cents
            for qty in range(1, 25)
        ]
        assert totals == sorted(totals)

    def test_discount_amount_never_decreases_with_discount(self):
        sweep = [
            compute_totals([(3, 1999)], discount=bps, discount_type="percentage", tax_rate_bps=2000)
            for bps in range(0, 10001, 25)
        ]
        discounts = [t.discount_cents for t in sweep]

        assert discounts == sorted(discounts)
        assert discounts[0] == 0
        assert discounts[-1] == 5997
        assert all(0 <= t.total_cents for t in sweep)

    def test_fixed_discount_amount_never_decreases_with_discount(self):
        discounts = [compute_discount(4000, cents, "fixed") for cents in range(0, 6001, 100)]
        assert discounts == sorted(discounts)
        assert discounts[-1] == 4000


def test_subtotal_accepts_dicts_and_objects():
    class Line:
        quantity = 3
        unit_price_cents = 100

    assert compute_subtotal([{"quantity": 2, "unit_price_cents": 50}, Line()]) == 400


@pytest.mark.parametrize("value,expected", [
    ("10", 1000),
    ("12.5", 1250),
    (20, 2000),
    ("0.125", 13),
])
def test_percent_to_bps(value, expected):
    assert percent_to_bps(value) == expected


def test_percent_to_bps_rejects_garbage():
    with pytest.raises(TotalsError):
        percent_to_bps("ten")


@pytest.mark.parametrize("value,expected", [
    ("25", 2500),
    ("25.5", 2550),
    ("£1,299.99", 129999),
    ("", 0),
    (None, 0),
])
def test_parse_money_to_cents(value, expected):
    assert parse_money_to_cents(value) == expected


def test_format_helpers():
    assert format_money(129999) == "£1,299.99"
    assert format_money(-50, "$") == "-$0.50"
    assert format_rate(1250) == "12.5%"
    assert format_rate(2000) == "20%"
