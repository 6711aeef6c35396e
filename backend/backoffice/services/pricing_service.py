# Overview: Tier price resolution for products and variants.

"""
Pricing resolver.

A customer's tier selects one of three price columns. A variant may carry its
own override for any tier; a NULL override means "use the product price".

The tier is a closed enumeration: an unknown tier name is rejected instead of
silently falling back to retail.
"""
from __future__ import annotations

from ..models import Customer, CustomerTier, Product, Variant

TIER_PRICE_FIELDS = {
    CustomerTier.RETAIL: "retail_cents",
    CustomerTier.WHOLESALE: "wholesale_cents",
    CustomerTier.CLUB: "club_cents",
}


def price_field_for(tier) -> str:
    """Column name holding the price for `tier` (raises ValueError for unknown tiers)."""
    return TIER_PRICE_FIELDS[CustomerTier.parse(tier)]


def resolve_price(tier, product: Product, variant: Variant | None = None) -> int:
    """
    Unit price in cents for `tier`.

    Variant override wins when present and non-null, otherwise the product's
    column for that tier. A product with no price set resolves to 0.
    """
    field = price_field_for(tier)

    if variant is not None:
        override = getattr(variant, field)
        if override is not None:
            return override

    return getattr(product, field) or 0


def resolve_line_price(customer: Customer, product: Product, variant: Variant | None = None) -> int:
    """Unit price for an invoice line sold to `customer`."""
    return resolve_price(customer.tier, product, variant)


def effective_prices(product: Product, variant: Variant | None = None) -> dict:
    """All three tier prices after applying variant overrides."""
    return {tier.value: resolve_price(tier, product, variant) for tier in CustomerTier}
