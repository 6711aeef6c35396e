# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/backoffice/services/inventory_service.py
"""
Stock Invariants (authoritative)

Inventory model:
- On-hand stock lives on Variant.quantity. Product stock is the sum of its variants.
- Every product has at least one variant, so a product-level adjustment is an
  adjustment of its single (default) variant.

Stock delta:
- new_quantity = max(0, current_quantity + delta)
- Flooring at zero is silent: it is not an error. The StockMovement row
  records both the requested and the applied delta.

Persistence:
- The variant row is read with SELECT ... FOR UPDATE (where supported).
- Each adjustment appends a StockMovement in the same DB transaction.
- A failed write rolls back and is reported as an error list, never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import CustomerTier, Product, Variant, StockMovement
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY
from .concurrency import lock_for_update
from .pricing_service import resolve_price

logger = logging.getLogger(__name__)

STOCK_STATUS_IN = "in_stock"
STOCK_STATUS_LOW = "low_stock"
STOCK_STATUS_OUT = "out_of_stock"
STOCK_FILTERS = {"all", STOCK_STATUS_IN, STOCK_STATUS_LOW, STOCK_STATUS_OUT}


@dataclass
class StockAdjustmentResult:
    success: bool
    new_quantity: int | None = None
    previous_quantity: int | None = None
    variant_id: int | None = None
    movement_id: int | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "errors": list(self.errors)}
        return {
            "success": True,
            "new_quantity": self.new_quantity,
            "previous_quantity": self.previous_quantity,
            "variant_id": self.variant_id,
            "movement_id": self.movement_id,
        }


def clamp_quantity(current: int, delta: int) -> int:
    """Stock after applying `delta`; never below zero."""
    return max(0, current + delta)


def _locate_variant(product_id: int, variant_id: int | None) -> tuple[Variant | None, str | None]:
    """Return (variant, error). The variant row is locked for update."""
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        return None, "Product not found"

    if variant_id is not None:
        variant = lock_for_update(
            db.session.query(Variant).filter_by(id=variant_id, product_id=product_id)
        ).first()
        if variant is None:
            return None, "Variant not found for this product"
        return variant, None

    ids = [v.id for v in product.variants]
    if not ids:
        return None, "Product has no variants"
    if len(ids) > 1:
        return None, "variant_id is required for products with several variants"

    variant = lock_for_update(db.session.query(Variant).filter_by(id=ids[0])).first()
    return variant, None


def apply_stock_adjustment(
    product_id: int,
    variant_id: int | None,
    delta: int,
    reason: str | None = None,
    *,
    user_id: int | None = None,
    invoice_id: int | None = None,
    commit: bool = True,
) -> StockAdjustmentResult:
    """
    Apply a signed quantity change to a variant's on-hand stock.

    With commit=False the change is flushed but left for the caller's
    transaction (used when issuing invoices); database errors then propagate
    to the caller instead of being folded into the result.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        return StockAdjustmentResult(success=False, errors=["quantity delta must be an integer"])
    if abs(delta) > MAX_QUANTITY:
        return StockAdjustmentResult(success=False, errors=[f"quantity delta cannot exceed {MAX_QUANTITY:,}"])

    reason = (reason or "").strip() or ("Manual restock" if delta >= 0 else "Manual adjustment")

    try:
        variant, error = _locate_variant(product_id, variant_id)
        if error:
            return StockAdjustmentResult(success=False, errors=[error])

        before = variant.quantity
        after = clamp_quantity(before, delta)
        if after > MAX_QUANTITY:
            return StockAdjustmentResult(success=False, errors=[f"stock cannot exceed {MAX_QUANTITY:,}"])
        variant.quantity = after

        movement = StockMovement(
            product_id=variant.product_id,
            variant_id=variant.id,
            sku=variant.sku,
            requested_delta=delta,
            applied_delta=after - before,
            quantity_before=before,
            quantity_after=after,
            reason=reason[:255],
            invoice_id=invoice_id,
            user_id=user_id,
            occurred_at=utcnow(),
        )
        db.session.add(movement)

        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except SQLAlchemyError as exc:
        if not commit:
            raise
        db.session.rollback()
        logger.exception("Stock adjustment failed for product %s variant %s", product_id, variant_id)
        return StockAdjustmentResult(success=False, errors=[f"Failed to save stock adjustment: {exc.__class__.__name__}"])

    if after == 0 and before + delta < 0:
        logger.info("Stock for variant %s floored at zero (requested %s from %s)", variant.id, delta, before)

    return StockAdjustmentResult(
        success=True,
        new_quantity=after,
        previous_quantity=before,
        variant_id=variant.id,
        movement_id=movement.id,
    )


def stock_status(quantity: int, min_quantity: int) -> str:
    if quantity <= 0:
        return STOCK_STATUS_OUT
    if quantity <= min_quantity:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def _potential_profit(quantity: int, price_cents: int, cost_cents: int) -> int:
    return quantity * max(0, price_cents - cost_cents)


def get_stock_report(brand: str | None = None, stock_filter: str = "all", include_archived: bool = False) -> dict:
    """
    Per-variant stock rows plus aggregate figures.

    stock value = quantity * cost_after; potential profit per tier is
    quantity * max(0, tier price - cost_after), using variant overrides.
    """
    if stock_filter not in STOCK_FILTERS:
        raise ValueError(f"stock_filter must be one of: {', '.join(sorted(STOCK_FILTERS))}")

    query = db.session.query(Product)
    if brand:
        query = query.filter(Product.brand == brand)
    if not include_archived:
        query = query.filter(Product.archived.is_(False))
    products = query.order_by(Product.article.asc(), Product.id.asc()).all()

    rows = []
    counts = {STOCK_STATUS_IN: 0, STOCK_STATUS_LOW: 0, STOCK_STATUS_OUT: 0}
    total_value = 0
    total_units = 0
    potential = {tier.value: 0 for tier in CustomerTier}

    for product in products:
        for variant in product.variants:
            status = stock_status(variant.quantity, product.min_quantity)
            counts[status] += 1
            value = variant.quantity * product.cost_after_cents
            profits = {
                tier.value: _potential_profit(
                    variant.quantity,
                    resolve_price(tier, product, variant),
                    product.cost_after_cents,
                )
                for tier in CustomerTier
            }
            total_value += value
            total_units += variant.quantity
            for tier, amount in profits.items():
                potential[tier] += amount

            if stock_filter != "all" and status != stock_filter:
                continue
            rows.append({
                "product_id": product.id,
                "variant_id": variant.id,
                "brand": product.brand,
                "article": product.article,
                "title": product.title,
                "category": product.category,
                "sku": variant.sku,
                "attributes": dict(variant.attributes or {}),
                "quantity": variant.quantity,
                "min_quantity": product.min_quantity,
                "status": status,
                "cost_after_cents": product.cost_after_cents,
                "stock_value_cents": value,
                "potential_profit_cents": profits,
            })

    return {
        "items": rows,
        "count": len(rows),
        "summary": {
            "total_variants": sum(counts.values()),
            "total_units": total_units,
            "in_stock_count": counts[STOCK_STATUS_IN],
            "low_stock_count": counts[STOCK_STATUS_LOW],
            "out_of_stock_count": counts[STOCK_STATUS_OUT],
            "stock_value_cents": total_value,
            "potential_profit_cents": potential,
        },
    }


def list_movements(product_id: int | None = None, limit: int = 100, brand: str | None = None) -> list[dict]:
    query = db.session.query(StockMovement)
    if brand:
        query = query.join(Product, Product.id == StockMovement.product_id).filter(Product.brand == brand)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    limit = max(1, min(limit, 500))
    movements = query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc()).limit(limit).all()
    return [m.to_dict() for m in movements]
