# Overview: Invoice totals arithmetic in integer cents.

"""
Invoice totals calculator.

All amounts are integer cents and all rates are integer basis points
(10000 bps = 100%). Division results are rounded half-up to the cent.

    subtotal  = sum(quantity * unit_price)
    discount  = subtotal * bps / 10000     (percentage)
              = value                      (fixed, cents)
              clamped to [0, subtotal]
    tax       = (subtotal - discount) * tax_rate_bps / 10000
    total     = subtotal - discount + tax

Totals are always recomputed from scratch; there is no incremental update.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from ..models import DiscountType

BPS_SCALE = 10_000


class TotalsError(ValueError):
    """Raised for inputs the calculator cannot accept."""


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def _apply_bps(amount_cents: int, bps: int) -> int:
    """amount * bps / 10000, rounded half-up to the cent (amount, bps >= 0)."""
    return (amount_cents * bps + BPS_SCALE // 2) // BPS_SCALE


def line_total(quantity: int, unit_price_cents: int) -> int:
    return quantity * unit_price_cents


def compute_subtotal(items: Iterable) -> int:
    """
    Sum of quantity * unit price.

    Items may be (quantity, unit_price_cents) tuples, dicts with those keys,
    or objects with those attributes (e.g. InvoiceLine).
    """
    subtotal = 0
    for item in items:
        if isinstance(item, tuple):
            quantity, unit_price = item
        elif isinstance(item, dict):
            quantity, unit_price = item["quantity"], item["unit_price_cents"]
        else:
            quantity, unit_price = item.quantity, item.unit_price_cents
        subtotal += line_total(quantity, unit_price)
    return subtotal


def compute_discount(subtotal_cents: int, discount: int, discount_type: str) -> int:
    try:
        kind = DiscountType(discount_type)
    except ValueError:
        raise TotalsError("discount_type must be 'percentage' or 'fixed'") from None

    if discount <= 0 or subtotal_cents <= 0:
        return 0

    if kind is DiscountType.PERCENTAGE:
        amount = _apply_bps(subtotal_cents, min(discount, BPS_SCALE))
    else:
        amount = discount

    return min(amount, subtotal_cents)


def compute_totals(items: Iterable, discount: int = 0, discount_type: str = "percentage", tax_rate_bps: int = 0) -> InvoiceTotals:
    if tax_rate_bps < 0:
        raise TotalsError("tax_rate_bps must be >= 0")

    subtotal = compute_subtotal(items)
    discount_amount = compute_discount(subtotal, discount, discount_type)
    taxable = subtotal - discount_amount
    tax = _apply_bps(taxable, tax_rate_bps) if taxable > 0 else 0

    return InvoiceTotals(
        subtotal_cents=subtotal,
        discount_cents=discount_amount,
        tax_cents=tax,
        total_cents=subtotal - discount_amount + tax,
    )


def percent_to_bps(value) -> int:
    """Human percentage ("12.5", 12.5, 20) -> basis points (1250, 1250, 2000)."""
    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise TotalsError(f"invalid percentage: {value!r}") from None
    if not pct.is_finite():
        raise TotalsError(f"invalid percentage: {value!r}")
    return int((pct * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_money_to_cents(value) -> int:
    """Decimal currency string ("25", "25.5", "£1,299.99") -> cents."""
    if value is None:
        return 0
    s = str(value).strip().replace(",", "").lstrip("£$€")
    if not s:
        return 0
    try:
        amount = Decimal(s)
    except InvalidOperation:
        raise TotalsError(f"invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise TotalsError(f"invalid amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_money(cents: int, symbol: str = "£") -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{symbol}{cents // 100:,}.{cents % 100:02d}"


def format_rate(bps: int) -> str:
    """1250 -> "12.5%", 2000 -> "20%"."""
    pct = Decimal(bps) / 100
    return f"{pct.normalize():f}%"
