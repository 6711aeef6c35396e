# Overview: Service-layer operations for backup and restore; encapsulates business logic and database work.

"""
Full JSON backup and safe restore.

Backup document:
    {
      "version": "1.0",
      "timestamp": "2026-01-01T12:00:00Z",
      "customers": [...],
      "products": [... each with "variants"],
      "invoices": [... each with "lines"],
      "categories": [...],
      "metadata": {"total_customers", "total_products", "total_invoices", "backup_type": "full"}
    }

Restore is an upsert keyed on natural keys and never deletes:
- customers:  email (case-insensitive), else name
- products:   (brand, article); variants by sku within the product
- invoices:   invoice_number; lines are replaced from the backup
- categories: name

Row ids inside the document are only used to relink invoices to the
restored customers, products and variants. Invoice restore does not move
stock; variant quantities come from the product section.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Category, Customer, Invoice, InvoiceLine, Product, Variant
from ..models import CustomerTier, InvoiceStatus, Brand
from ..time_utils import utcnow, to_utc_z, parse_iso_date, parse_iso_datetime
from .numbering_service import sync_invoice_sequence

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
SUPPORTED_VERSIONS = {"1.0"}

CUSTOMER_FIELDS = ("name", "email", "phone", "company", "address", "tier", "notes", "total_orders", "total_spent_cents")
PRODUCT_FIELDS = (
    "title", "description", "category", "taxable", "attributes", "media_main",
    "wholesale_cents", "retail_cents", "club_cents", "cost_before_cents", "cost_after_cents",
    "min_quantity", "archived",
)
VARIANT_FIELDS = ("attributes", "quantity", "position", "wholesale_cents", "retail_cents", "club_cents")
INVOICE_FIELDS = (
    "brand", "customer_name", "po_number", "subtotal_cents", "discount_type", "discount_value",
    "discount_cents", "tax_rate_bps", "tax_cents", "total_cents", "paid_cents", "status", "notes",
)
LINE_FIELDS = ("position", "description", "sku", "quantity", "unit_price_cents", "line_total_cents")


class BackupError(Exception):
    """Raised when a backup document cannot be restored."""
    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


def create_backup() -> dict:
    customers = db.session.query(Customer).order_by(Customer.id.asc()).all()
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    invoices = db.session.query(Invoice).order_by(Invoice.id.asc()).all()
    categories = db.session.query(Category).order_by(Category.sort_order.asc(), Category.id.asc()).all()

    data = {
        "version": BACKUP_VERSION,
        "timestamp": to_utc_z(utcnow()),
        "customers": [c.to_dict() for c in customers],
        "products": [p.to_dict(include_variants=True) for p in products],
        "invoices": [inv.to_dict(include_lines=True) for inv in invoices],
        "categories": [c.to_dict() for c in categories],
        "metadata": {
            "total_customers": len(customers),
            "total_products": len(products),
            "total_invoices": len(invoices),
            "backup_type": "full",
        },
    }
    logger.info(
        "Backup created: %d customers, %d products, %d invoices",
        len(customers), len(products), len(invoices),
    )
    return data


def validate_backup(data) -> list[str]:
    """Structural problems with a backup document (empty list when valid)."""
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Backup must be a JSON object"]

    if not data.get("timestamp"):
        errors.append("Missing timestamp")
    if not data.get("version"):
        errors.append("Missing version")
    elif str(data["version"]) not in SUPPORTED_VERSIONS:
        errors.append(f"Unsupported backup version: {data['version']}")

    for key in ("customers", "products", "invoices"):
        if not isinstance(data.get(key), list):
            errors.append(f"Invalid {key} data")
    if "categories" in data and not isinstance(data["categories"], list):
        errors.append("Invalid categories data")

    return errors


def _counts() -> dict:
    return {"processed": 0, "added": 0, "updated": 0}


def _as_int(value, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value in (None, ""):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        raise BackupError(f"Expected an integer, got {value!r}")


def _assign(obj, row: dict, fields) -> None:
    for key in fields:
        if key not in row:
            continue
        value = row[key]
        if key.endswith("_cents") or key in ("quantity", "position", "min_quantity", "total_orders",
                                             "discount_value", "tax_rate_bps"):
            if value is None and key in ("wholesale_cents", "retail_cents", "club_cents") and isinstance(obj, Variant):
                setattr(obj, key, None)
                continue
            value = _as_int(value)
        setattr(obj, key, value)


def _restore_categories(rows: list) -> dict:
    counts = _counts()
    for row in rows:
        if not isinstance(row, dict) or not row.get("name"):
            continue
        counts["processed"] += 1
        c = db.session.query(Category).filter(Category.name == row["name"]).first()
        if c is None:
            c = Category(name=row["name"])
            db.session.add(c)
            counts["added"] += 1
        else:
            counts["updated"] += 1
        if row.get("color"):
            c.color = row["color"]
        c.sort_order = _as_int(row.get("sort_order"), c.sort_order or 0)
    db.session.flush()
    return counts


def _restore_customers(rows: list) -> tuple[dict, dict[int, int]]:
    counts = _counts()
    id_map: dict[int, int] = {}
    for row in rows:
        if not isinstance(row, dict) or not row.get("name"):
            continue
        counts["processed"] += 1

        c = None
        email = (row.get("email") or "").strip()
        if email:
            c = db.session.query(Customer).filter(db.func.lower(Customer.email) == email.lower()).first()
        if c is None:
            c = db.session.query(Customer).filter(Customer.name == row["name"]).first()

        if c is None:
            c = Customer(name=row["name"], tier="retail", total_orders=0, total_spent_cents=0)
            db.session.add(c)
            counts["added"] += 1
        else:
            counts["updated"] += 1

        _assign(c, row, CUSTOMER_FIELDS)
        c.tier = CustomerTier.parse(c.tier, default=CustomerTier.RETAIL).value
        db.session.flush()
        if row.get("id") is not None:
            id_map[_as_int(row["id"])] = c.id
    return counts, id_map


def _restore_products(rows: list) -> tuple[dict, dict[int, int], dict[int, int]]:
    counts = _counts()
    product_map: dict[int, int] = {}
    variant_map: dict[int, int] = {}
    for row in rows:
        if not isinstance(row, dict) or not row.get("article") or not row.get("brand"):
            continue
        if row["brand"] not in Brand.values():
            raise BackupError(f"Unknown brand {row['brand']!r} for article {row['article']}")
        counts["processed"] += 1

        p = (
            db.session.query(Product)
            .filter(Product.brand == row["brand"], Product.article == row["article"])
            .first()
        )
        if p is None:
            p = Product(brand=row["brand"], article=row["article"], title=row.get("title") or row["article"], attributes=[])
            db.session.add(p)
            counts["added"] += 1
        else:
            counts["updated"] += 1

        _assign(p, row, PRODUCT_FIELDS)

        for i, vrow in enumerate(row.get("variants") or []):
            if not isinstance(vrow, dict):
                continue
            sku = vrow.get("sku") or p.article
            v = next((x for x in p.variants if x.sku == sku), None)
            if v is None:
                v = Variant(sku=sku, attributes={}, quantity=0, position=i)
                p.variants.append(v)
            _assign(v, vrow, VARIANT_FIELDS)
            v.quantity = max(0, v.quantity or 0)
            db.session.flush()
            if vrow.get("id") is not None:
                variant_map[_as_int(vrow["id"])] = v.id

        if not p.variants:
            p.variants.append(Variant(sku=p.article, attributes={"Size": "One Size", "Color": "Default"}, quantity=0, position=0))

        db.session.flush()
        if row.get("id") is not None:
            product_map[_as_int(row["id"])] = p.id
    return counts, product_map, variant_map


def _restore_invoices(rows: list, customer_map: dict, product_map: dict, variant_map: dict) -> dict:
    counts = _counts()
    for row in rows:
        if not isinstance(row, dict) or not row.get("invoice_number"):
            continue
        counts["processed"] += 1

        issue_date = parse_iso_date(row.get("issue_date")) if row.get("issue_date") else None
        due_date = parse_iso_date(row.get("due_date")) if row.get("due_date") else None
        if issue_date is None:
            raise BackupError(f"Invoice {row['invoice_number']} has no issue_date")

        inv = db.session.query(Invoice).filter(Invoice.invoice_number == row["invoice_number"]).first()
        if inv is None:
            inv = Invoice(invoice_number=row["invoice_number"])
            db.session.add(inv)
            counts["added"] += 1
        else:
            counts["updated"] += 1

        _assign(inv, row, INVOICE_FIELDS)
        if inv.status not in InvoiceStatus.values():
            raise BackupError(f"Invoice {inv.invoice_number} has unknown status {inv.status!r}")
        inv.issue_date = issue_date
        inv.due_date = due_date or issue_date
        inv.customer_id = customer_map.get(row.get("customer_id"))
        for key in ("issued_at", "paid_at"):
            if row.get(key):
                setattr(inv, key, parse_iso_datetime(row[key]))

        if "lines" in row:
            inv.lines.clear()
            db.session.flush()
            for i, lrow in enumerate(row.get("lines") or []):
                if not isinstance(lrow, dict):
                    continue
                line = InvoiceLine(position=i)
                _assign(line, lrow, LINE_FIELDS)
                if not line.description:
                    line.description = line.sku or "Item"
                line.product_id = product_map.get(lrow.get("product_id"))
                line.variant_id = variant_map.get(lrow.get("variant_id"))
                if line.line_total_cents is None:
                    line.line_total_cents = (line.quantity or 0) * (line.unit_price_cents or 0)
                inv.lines.append(line)
        db.session.flush()
    return counts


def restore_backup(data) -> dict:
    """
    Upsert every collection of a validated backup in one transaction.

    Returns {"customers": {...}, "products": {...}, "invoices": {...},
    "categories": {...}} with processed/added/updated counts.
    """
    errors = validate_backup(data)
    if errors:
        raise BackupError("Invalid backup file", details=errors)

    try:
        summary = {"categories": _restore_categories(data.get("categories") or [])}
        summary["customers"], customer_map = _restore_customers(data["customers"])
        summary["products"], product_map, variant_map = _restore_products(data["products"])
        summary["invoices"] = _restore_invoices(data["invoices"], customer_map, product_map, variant_map)
        sync_invoice_sequence()
        db.session.commit()
    except (BackupError, ValueError, OverflowError, SQLAlchemyError) as exc:
        db.session.rollback()
        logger.exception("Restore failed")
        if isinstance(exc, BackupError):
            raise
        raise BackupError(f"Restore failed: {exc}") from exc

    logger.info("Restore completed: %s", summary)
    return summary
