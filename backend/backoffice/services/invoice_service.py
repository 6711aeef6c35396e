# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Service - draft/issue lifecycle

LINES:
- unit_price_cents is resolved from the customer's tier when a line is
  created and frozen from then on. Catalog price changes never touch an
  existing invoice.
- A line may reference a product (and variant) or be a free-text line with
  an explicit unit price (carriage, services, ...). Only product lines move
  stock.

LIFECYCLE:
- draft: lines, discount, tax, dates and notes are editable; no stock effect
- issuing (draft -> pending/paid) deducts every variant line's quantity
  through the stock delta applier, floored at zero, in the same transaction
  that changes the status
- pending/partial/paid follow from paid_cents vs total_cents
- overdue: issued, unpaid balance past due_date (see mark_overdue_invoices)
- cancelled: terminal; stock is not restored

All writes for one request happen in a single transaction; a failure rolls
back every row touched.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    Customer,
    CustomerTier,
    DiscountType,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Product,
    Variant,
)
from ..time_utils import utcnow, today, parse_iso_date
from ..validation import MAX_PRICE_CENTS, MAX_QUANTITY, MAX_RATE_BPS, ValidationError, validate_brand
from .concurrency import lock_for_update, run_with_retry
from .customers_service import refresh_customer_totals
from .inventory_service import apply_stock_adjustment
from .numbering_service import next_invoice_number
from .pricing_service import resolve_price
from .totals_service import compute_totals, line_total, percent_to_bps, TotalsError

logger = logging.getLogger(__name__)

ISSUED_STATUSES = {
    InvoiceStatus.PENDING.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.OVERDUE.value,
}

# Manual status changes. "partial" is only ever reached by recording a payment.
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT.value: {InvoiceStatus.PENDING.value, InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value},
    InvoiceStatus.PENDING.value: {InvoiceStatus.PAID.value, InvoiceStatus.OVERDUE.value, InvoiceStatus.CANCELLED.value},
    InvoiceStatus.PARTIAL.value: {InvoiceStatus.PAID.value, InvoiceStatus.OVERDUE.value, InvoiceStatus.CANCELLED.value},
    InvoiceStatus.OVERDUE.value: {InvoiceStatus.PENDING.value, InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value},
    InvoiceStatus.PAID.value: set(),
    InvoiceStatus.CANCELLED.value: set(),
}

DRAFT_EDITABLE_FIELDS = {"po_number", "issue_date", "due_date", "notes", "customer_name"}


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def _int_field(payload: dict, key: str, *, minimum: int = 0, maximum: int | None = None) -> int | None:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{key} must be <= {maximum}")
    return value


def _percent_field(payload: dict, key: str) -> int | None:
    if key not in payload or payload[key] in (None, ""):
        return None
    try:
        bps = percent_to_bps(payload[key])
    except TotalsError as e:
        raise ValidationError(str(e))
    if bps < 0 or bps > MAX_RATE_BPS:
        raise ValidationError(f"{key} must be between 0 and 100")
    return bps


def parse_discount(payload: dict, *, current_type: str = "percentage", current_value: int = 0) -> tuple[str, int]:
    """
    Discount from a payload.

    Accepted keys:
      discount_type      "percentage" | "fixed"
      discount_value     bps (percentage) or cents (fixed)
      discount_percent   human percentage, e.g. "12.5"
    """
    discount_type = payload.get("discount_type", current_type) or "percentage"
    if discount_type not in (DiscountType.PERCENTAGE.value, DiscountType.FIXED.value):
        raise ValidationError("discount_type must be 'percentage' or 'fixed'")

    value = current_value
    percent = _percent_field(payload, "discount_percent")
    if percent is not None:
        discount_type = DiscountType.PERCENTAGE.value
        value = percent
    elif "discount_value" in payload:
        maximum = MAX_RATE_BPS if discount_type == DiscountType.PERCENTAGE.value else MAX_PRICE_CENTS
        value = _int_field(payload, "discount_value", maximum=maximum) or 0
    elif "discount_type" in payload and discount_type != current_type:
        value = 0

    if discount_type == DiscountType.PERCENTAGE.value and value > MAX_RATE_BPS:
        raise ValidationError("percentage discount cannot exceed 100%")

    return discount_type, value


def parse_tax_rate(payload: dict, *, current: int = 0) -> int:
    """tax_rate_bps (integer) or tax_rate (human percentage)."""
    percent = _percent_field(payload, "tax_rate")
    if percent is not None:
        return percent
    bps = _int_field(payload, "tax_rate_bps", maximum=MAX_RATE_BPS)
    return current if bps is None else bps


def _parse_date(payload: dict, key: str) -> date | None:
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return parse_iso_date(str(raw))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date")


def _load_customer(customer_id) -> Customer:
    if isinstance(customer_id, bool) or not isinstance(customer_id, int):
        raise ValidationError("customer_id is required")
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise ValidationError("Customer not found")
    return customer


def _pick_variant(product: Product, variant_id) -> Variant | None:
    if variant_id is not None:
        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            raise ValidationError("variant_id must be an integer")
        variant = next((v for v in product.variants if v.id == variant_id), None)
        if variant is None:
            raise ValidationError(f"Variant {variant_id} not found for product {product.id}")
        return variant
    if len(product.variants) == 1:
        return product.variants[0]
    if product.variants:
        raise ValidationError(f"variant_id is required for product {product.article}")
    return None


def build_lines(items, *, brand: str, tier, existing: dict[int, InvoiceLine] | None = None) -> list[InvoiceLine]:
    """
    Turn item payloads into unsaved InvoiceLine rows with frozen prices.

    Item shapes:
      {"product_id", "variant_id"?, "quantity", "description"?}
      {"description", "unit_price_cents", "quantity"}            free-text line
      {"line_id", "quantity"}                                    keep an existing line's price
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    existing = existing or {}
    tier = CustomerTier.parse(tier)
    lines: list[InvoiceLine] = []

    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{position}] must be an object")

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"items[{position}].quantity must be a positive integer")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{position}].quantity cannot exceed {MAX_QUANTITY:,}")

        line_id = item.get("line_id")
        if line_id is not None:
            prior = existing.get(line_id)
            if prior is None:
                raise ValidationError(f"items[{position}].line_id {line_id} is not on this invoice")
            lines.append(InvoiceLine(
                position=position,
                product_id=prior.product_id,
                variant_id=prior.variant_id,
                description=prior.description,
                sku=prior.sku,
                quantity=quantity,
                unit_price_cents=prior.unit_price_cents,
                line_total_cents=line_total(quantity, prior.unit_price_cents),
            ))
            continue

        product_id = item.get("product_id")
        if product_id is None:
            description = (item.get("description") or "").strip()
            if not description:
                raise ValidationError(f"items[{position}] needs a product_id or a description")
            unit_price = _int_field(item, "unit_price_cents", maximum=MAX_PRICE_CENTS)
            if unit_price is None:
                raise ValidationError(f"items[{position}].unit_price_cents is required for free-text lines")
            lines.append(InvoiceLine(
                position=position,
                description=description[:255],
                sku=(item.get("sku") or None),
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total(quantity, unit_price),
            ))
            continue

        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(f"items[{position}].product_id must be an integer")
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None:
            raise ValidationError(f"Product {product_id} not found")
        if product.brand != brand:
            raise ValidationError(f"Product {product.article} does not belong to brand {brand}")

        variant = _pick_variant(product, item.get("variant_id"))
        unit_price = resolve_price(tier, product, variant)

        description = (item.get("description") or "").strip() or product.title
        if variant is not None and variant.attributes:
            label = variant.label()
            if label and not item.get("description"):
                description = f"{product.title} ({label})"

        lines.append(InvoiceLine(
            position=position,
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            description=description[:255],
            sku=variant.sku if variant is not None else product.article,
            quantity=quantity,
            unit_price_cents=unit_price,
            line_total_cents=line_total(quantity, unit_price),
        ))

    return lines


def _recompute(inv: Invoice) -> None:
    totals = compute_totals(inv.lines, inv.discount_value, inv.discount_type, inv.tax_rate_bps)
    inv.subtotal_cents = totals.subtotal_cents
    inv.discount_cents = totals.discount_cents
    inv.tax_cents = totals.tax_cents
    inv.total_cents = totals.total_cents


def _derived_payment_status(inv: Invoice) -> str:
    if inv.total_cents <= inv.paid_cents:
        return InvoiceStatus.PAID.value
    if inv.status == InvoiceStatus.OVERDUE.value:
        return InvoiceStatus.OVERDUE.value
    if inv.paid_cents > 0:
        return InvoiceStatus.PARTIAL.value
    return InvoiceStatus.PENDING.value


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_invoices(
    brand: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
) -> list[dict]:
    query = db.session.query(Invoice)
    if brand:
        query = query.filter(Invoice.brand == brand)
    if status:
        if status not in InvoiceStatus.values():
            raise ValidationError(f"status must be one of: {', '.join(InvoiceStatus.values())}")
        query = query.filter(Invoice.status == status)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Invoice.invoice_number.ilike(like), Invoice.customer_name.ilike(like), Invoice.po_number.ilike(like))
        )
    rows = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()
    return [inv.to_dict(include_lines=False) for inv in rows]


def get_invoice(invoice_id: int, brand: str | None = None) -> Invoice | None:
    inv = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if inv is None:
        return None
    if brand is not None and inv.brand != brand:
        return None
    return inv


def preview_invoice(payload: dict) -> dict:
    """
    Price and total an invoice payload without writing anything.

    Uses the same line building and totals arithmetic as create_invoice.
    """
    brand = validate_brand(payload.get("brand"))
    customer = _load_customer(payload.get("customer_id"))
    lines = build_lines(payload.get("items"), brand=brand, tier=customer.tier)
    discount_type, discount_value = parse_discount(payload)
    tax_rate_bps = parse_tax_rate(payload)

    totals = compute_totals(lines, discount_value, discount_type, tax_rate_bps)
    return {
        "brand": brand,
        "customer_id": customer.id,
        "tier": customer.tier,
        "lines": [
            {
                "position": line.position,
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "description": line.description,
                "sku": line.sku,
                "quantity": line.quantity,
                "unit_price_cents": line.unit_price_cents,
                "line_total_cents": line.line_total_cents,
            }
            for line in lines
        ],
        "discount_type": discount_type,
        "discount_value": discount_value,
        "tax_rate_bps": tax_rate_bps,
        **totals.to_dict(),
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_invoice(payload: dict, *, user_id: int | None = None) -> Invoice:
    """
    Create an invoice (draft by default, or issued immediately with
    status="pending").

    The customer must exist; a missing customer is a ValidationError and no
    row is written. Number allocation, insert and (when issuing) stock
    deduction share one transaction.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    brand = validate_brand(payload.get("brand"))
    status = payload.get("status") or InvoiceStatus.DRAFT.value
    if status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.PENDING.value):
        raise ValidationError("New invoices must be 'draft' or 'pending'")

    discount_type, discount_value = parse_discount(payload)
    tax_rate_bps = parse_tax_rate(payload)
    issue_date = _parse_date(payload, "issue_date") or today()
    due_date = _parse_date(payload, "due_date") or issue_date + timedelta(days=current_app.config["INVOICE_DUE_DAYS"])
    if due_date < issue_date:
        raise ValidationError("due_date cannot be before issue_date")

    def _op():
        customer = _load_customer(payload.get("customer_id"))
        lines = build_lines(payload.get("items"), brand=brand, tier=customer.tier)

        inv = Invoice(
            invoice_number=next_invoice_number(),
            brand=brand,
            customer_id=customer.id,
            customer_name=(payload.get("customer_name") or customer.name),
            po_number=(payload.get("po_number") or None),
            issue_date=issue_date,
            due_date=due_date,
            discount_type=discount_type,
            discount_value=discount_value,
            tax_rate_bps=tax_rate_bps,
            paid_cents=0,
            status=InvoiceStatus.DRAFT.value,
            notes=payload.get("notes"),
            created_by_user_id=user_id,
        )
        inv.lines.extend(lines)
        _recompute(inv)
        db.session.add(inv)
        db.session.flush()

        if status != InvoiceStatus.DRAFT.value:
            _issue_locked(inv, status, user_id=user_id)

        db.session.commit()
        return inv

    try:
        inv = run_with_retry(_op)
    except (ValidationError, InvoiceError):
        db.session.rollback()
        raise

    logger.info("Invoice %s created (%s, %s)", inv.invoice_number, inv.brand, inv.status)
    return inv


def update_draft(invoice_id: int, payload: dict, *, brand: str | None = None) -> Invoice | None:
    """
    Edit a draft invoice. Lines are replaced when `items` is present;
    totals are always recomputed from the stored lines.
    """
    inv = get_invoice(invoice_id, brand)
    if inv is None:
        return None
    if inv.status != InvoiceStatus.DRAFT.value:
        raise InvoiceError(f"Only draft invoices can be edited (status is {inv.status})")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    try:
        if "customer_id" in payload and payload["customer_id"] != inv.customer_id:
            customer = _load_customer(payload["customer_id"])
            inv.customer_id = customer.id
            inv.customer_name = customer.name
            if "items" not in payload:
                raise ValidationError("Changing the customer requires re-sending items so they are re-priced")

        if "items" in payload:
            customer = _load_customer(inv.customer_id)
            existing = {line.id: line for line in inv.lines}
            new_lines = build_lines(payload["items"], brand=inv.brand, tier=customer.tier, existing=existing)
            inv.lines.clear()
            db.session.flush()
            inv.lines.extend(new_lines)

        inv.discount_type, inv.discount_value = parse_discount(
            payload, current_type=inv.discount_type, current_value=inv.discount_value
        )
        inv.tax_rate_bps = parse_tax_rate(payload, current=inv.tax_rate_bps)

        for key in DRAFT_EDITABLE_FIELDS:
            if key not in payload:
                continue
            if key in ("issue_date", "due_date"):
                value = _parse_date(payload, key)
                if value is None:
                    raise ValidationError(f"{key} cannot be blank")
                setattr(inv, key, value)
            else:
                setattr(inv, key, payload[key] or None)

        if inv.due_date < inv.issue_date:
            raise ValidationError("due_date cannot be before issue_date")

        _recompute(inv)
        db.session.commit()
    except (ValidationError, InvoiceError):
        db.session.rollback()
        raise

    return inv


def _issue_locked(inv: Invoice, target: str, *, user_id: int | None) -> None:
    """
    Move a draft to an issued status and deduct stock for its lines.

    Runs inside the caller's transaction; stock errors abort the issue.
    """
    if not inv.lines:
        raise InvoiceError("Cannot issue an invoice with no lines")

    for line in inv.lines:
        if line.variant_id is None:
            continue
        result = apply_stock_adjustment(
            line.product_id,
            line.variant_id,
            -line.quantity,
            f"Invoice {inv.invoice_number}",
            user_id=user_id,
            invoice_id=inv.id,
            commit=False,
        )
        if not result.success:
            raise InvoiceError(
                f"Stock update failed for {line.sku or line.description}",
                details={"errors": result.errors, "line_id": line.id},
            )

    now = utcnow()
    inv.issued_at = now
    if target == InvoiceStatus.PAID.value:
        inv.paid_cents = inv.total_cents
        inv.paid_at = now
    inv.status = _derived_payment_status(inv)
    db.session.flush()
    refresh_customer_totals(inv.customer_id)


def change_status(invoice_id: int, target: str, *, user_id: int | None = None, brand: str | None = None) -> Invoice | None:
    """
    Manual status transition.

    draft -> pending|paid issues the invoice (stock deduction).
    -> paid records the outstanding balance as paid.
    -> cancelled is terminal and leaves stock untouched.
    """
    if target not in InvoiceStatus.values():
        raise ValidationError(f"status must be one of: {', '.join(InvoiceStatus.values())}")

    def _op():
        inv = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if inv is None or (brand is not None and inv.brand != brand):
            return None

        if target == inv.status:
            return inv

        allowed = ALLOWED_TRANSITIONS.get(inv.status, set())
        if target not in allowed:
            raise InvoiceError(f"Cannot change status from {inv.status} to {target}")

        if inv.status == InvoiceStatus.DRAFT.value and target != InvoiceStatus.CANCELLED.value:
            _issue_locked(inv, target, user_id=user_id)
        elif target == InvoiceStatus.PAID.value:
            inv.paid_cents = inv.total_cents
            inv.paid_at = utcnow()
            inv.status = InvoiceStatus.PAID.value
            refresh_customer_totals(inv.customer_id)
        elif target == InvoiceStatus.PENDING.value and inv.paid_cents > 0:
            inv.status = InvoiceStatus.PARTIAL.value
        else:
            inv.status = target
            db.session.flush()
            refresh_customer_totals(inv.customer_id)

        db.session.commit()
        return inv

    try:
        inv = run_with_retry(_op)
    except (ValidationError, InvoiceError):
        db.session.rollback()
        raise

    if inv is not None:
        logger.info("Invoice %s status -> %s", inv.invoice_number, inv.status)
    return inv


def record_payment(invoice_id: int, amount_cents, *, brand: str | None = None) -> Invoice | None:
    """Add a payment to an issued invoice; status follows the balance."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")

    def _op():
        inv = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if inv is None or (brand is not None and inv.brand != brand):
            return None
        if inv.status not in ISSUED_STATUSES or inv.status == InvoiceStatus.PAID.value:
            raise InvoiceError(f"Cannot record a payment on a {inv.status} invoice")
        if amount_cents > inv.balance_due_cents:
            raise ValidationError(f"Payment exceeds balance due ({inv.balance_due_cents})")

        inv.paid_cents += amount_cents
        inv.status = _derived_payment_status(inv)
        if inv.status == InvoiceStatus.PAID.value:
            inv.paid_at = utcnow()
        db.session.flush()
        refresh_customer_totals(inv.customer_id)
        db.session.commit()
        return inv

    try:
        return run_with_retry(_op)
    except (ValidationError, InvoiceError):
        db.session.rollback()
        raise


def delete_invoice(invoice_id: int, *, brand: str | None = None) -> bool:
    """Delete an invoice and its lines. Stock deducted at issue is not restored."""
    inv = get_invoice(invoice_id, brand)
    if inv is None:
        return False
    customer_id = inv.customer_id
    db.session.delete(inv)
    db.session.flush()
    refresh_customer_totals(customer_id)
    db.session.commit()
    return True


def mark_overdue_invoices(as_of: date | None = None) -> int:
    """Flag pending/partial invoices whose due_date has passed. Returns the count."""
    as_of = as_of or today()
    rows = (
        db.session.query(Invoice)
        .filter(
            Invoice.status.in_((InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value)),
            Invoice.due_date < as_of,
        )
        .all()
    )
    for inv in rows:
        inv.status = InvoiceStatus.OVERDUE.value
    db.session.commit()
    if rows:
        logger.info("Marked %d invoice(s) overdue as of %s", len(rows), as_of.isoformat())
    return len(rows)
