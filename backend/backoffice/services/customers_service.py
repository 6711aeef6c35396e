# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Invoice, InvoiceStatus
from ..validation import ConflictError

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "company", "address", "tier", "notes"}

# Invoices that count toward a customer's order history
COUNTED_STATUSES = (
    InvoiceStatus.PENDING.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.OVERDUE.value,
)


def _ensure_email_free(email: str | None, exclude_id: int | None = None) -> None:
    if not email:
        return
    query = db.session.query(Customer).filter(db.func.lower(Customer.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("A customer with this email already exists.")


def list_customers(search: str | None = None, tier: str | None = None) -> list[dict]:
    query = db.session.query(Customer)
    if tier:
        query = query.filter(Customer.tier == tier)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.company.ilike(like))
        )
    return [c.to_dict() for c in query.order_by(Customer.name.asc(), Customer.id.asc()).all()]


def get_customer(customer_id: int, include_invoices: bool = False) -> dict | None:
    c = db.session.query(Customer).filter_by(id=customer_id).first()
    if not c:
        return None
    data = c.to_dict()
    if include_invoices:
        invoices = (
            db.session.query(Invoice)
            .filter(Invoice.customer_id == c.id)
            .order_by(Invoice.issue_date.desc(), Invoice.id.desc())
            .all()
        )
        data["invoices"] = [inv.to_dict(include_lines=False) for inv in invoices]
    return data


def create_customer(*, patch: dict) -> Customer:
    _ensure_email_free(patch.get("email"))

    c = Customer(total_orders=0, total_spent_cents=0)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(c, k, v)
    if not c.tier:
        c.tier = "retail"

    db.session.add(c)
    db.session.commit()
    return c


def update_customer(*, customer_id: int, patch: dict) -> dict | None:
    c = db.session.query(Customer).filter_by(id=customer_id).first()
    if not c:
        return None

    if "email" in patch:
        _ensure_email_free(patch["email"], exclude_id=c.id)

    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(c, k, v)

    db.session.commit()
    return c.to_dict()


def delete_customer(*, customer_id: int) -> bool:
    """
    Delete a customer. Existing invoices keep the captured customer_name and
    their customer_id is set to NULL by the foreign key.
    """
    c = db.session.query(Customer).filter_by(id=customer_id).first()
    if not c:
        return False
    db.session.delete(c)
    db.session.commit()
    return True


def refresh_customer_totals(customer_id: int | None) -> None:
    """
    Recompute total_orders / total_spent_cents from the customer's issued
    invoices. Runs inside the caller's transaction.
    """
    if customer_id is None:
        return
    c = db.session.query(Customer).filter_by(id=customer_id).first()
    if c is None:
        return

    count, spent = (
        db.session.query(db.func.count(Invoice.id), db.func.coalesce(db.func.sum(Invoice.paid_cents), 0))
        .filter(Invoice.customer_id == customer_id, Invoice.status.in_(COUNTED_STATUSES))
        .one()
    )
    c.total_orders = int(count or 0)
    c.total_spent_cents = int(spent or 0)
