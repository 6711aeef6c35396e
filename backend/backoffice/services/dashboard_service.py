# Overview: Service-layer read models for the brand dashboard.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Invoice, InvoiceStatus, Product
from .inventory_service import get_stock_report

OPEN_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value)
REVENUE_STATUSES = (
    InvoiceStatus.PENDING.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.OVERDUE.value,
)


def get_dashboard(brand: str | None = None, recent_limit: int = 5) -> dict:
    """
    Brand statistics.

    revenue_cents: total of issued, non-cancelled invoices
    collected_cents: payments received on those invoices
    outstanding_cents: unpaid balance on pending/partial/overdue invoices
    """
    stock = get_stock_report(brand=brand)["summary"]

    product_query = db.session.query(Product).filter(Product.archived.is_(False))
    if brand:
        product_query = product_query.filter(Product.brand == brand)
    product_count = product_query.count()

    inv_query = db.session.query(Invoice)
    if brand:
        inv_query = inv_query.filter(Invoice.brand == brand)

    revenue, collected = (
        inv_query.with_entities(
            db.func.coalesce(db.func.sum(Invoice.total_cents), 0),
            db.func.coalesce(db.func.sum(Invoice.paid_cents), 0),
        )
        .filter(Invoice.status.in_(REVENUE_STATUSES))
        .one()
    )

    open_invoices = inv_query.filter(Invoice.status.in_(OPEN_STATUSES)).all()
    outstanding = sum(inv.balance_due_cents for inv in open_invoices)

    status_counts = {status: 0 for status in InvoiceStatus.values()}
    for status, count in (
        inv_query.with_entities(Invoice.status, db.func.count(Invoice.id)).group_by(Invoice.status).all()
    ):
        status_counts[status] = count

    recent = inv_query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(recent_limit).all()

    return {
        "brand": brand,
        "products": {
            "total_products": product_count,
            "total_variants": stock["total_variants"],
            "total_units": stock["total_units"],
            "low_stock_count": stock["low_stock_count"],
            "out_of_stock_count": stock["out_of_stock_count"],
            "stock_value_cents": stock["stock_value_cents"],
            "potential_profit_cents": stock["potential_profit_cents"],
        },
        "invoices": {
            "by_status": status_counts,
            "pending_count": len(open_invoices),
            "revenue_cents": int(revenue or 0),
            "collected_cents": int(collected or 0),
            "outstanding_cents": outstanding,
            "recent": [inv.to_dict(include_lines=False) for inv in recent],
        },
        "customers": {"total": db.session.query(Customer).count()},
    }
