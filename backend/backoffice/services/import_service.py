# Overview: Service-layer operations for catalog imports; encapsulates business logic and database work.

"""
Product import from CSV (or an Excel sheet with the same header row).

Recognized headers (case-insensitive):
    title | name          article | sku        description     category
    brand                 wholesale            retail          club
    cost | costbefore     costafter            quantity | qty  taxable

Prices are decimal strings ("24.99") converted to cents. Each row becomes one
product with a single default variant holding the row's quantity.

Rows are independent: a bad row is reported as "Line N: ..." and skipped,
the rest are imported. Each good row is committed on its own.
"""
from __future__ import annotations

import csv
import io
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Brand
from ..validation import MAX_QUANTITY, ConflictError, ValidationError, enforce_rules_product
from .categories_service import normalize_category
from .products_service import create_product
from .totals_service import TotalsError, parse_money_to_cents

logger = logging.getLogger(__name__)

HEADER_ALIASES = {
    "title": "title",
    "name": "title",
    "article": "article",
    "sku": "article",
    "description": "description",
    "category": "category",
    "brand": "brand",
    "wholesale": "wholesale_cents",
    "retail": "retail_cents",
    "club": "club_cents",
    "cost": "cost_before_cents",
    "costbefore": "cost_before_cents",
    "costafter": "cost_after_cents",
    "quantity": "quantity",
    "qty": "quantity",
    "taxable": "taxable",
}

PRICE_KEYS = {"wholesale_cents", "retail_cents", "club_cents", "cost_before_cents", "cost_after_cents"}


class CatalogImportError(ValueError):
    """Raised when the uploaded file cannot be read at all."""


def read_csv_rows(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text))
    return [row for row in reader if any(cell.strip() for cell in row)]


def read_xlsx_rows(stream) -> list[list[str]]:
    from openpyxl import load_workbook

    wb = load_workbook(stream, read_only=True, data_only=True)
    sheet = wb.active
    rows = []
    for values in sheet.iter_rows(values_only=True):
        cells = ["" if v is None else str(v) for v in values]
        if any(c.strip() for c in cells):
            rows.append(cells)
    return rows


def _parse_row(headers: list[str], values: list[str], default_brand: str | None, only_brand: str | None = None) -> tuple[dict, int]:
    patch: dict = {}
    quantity = 0

    for header, raw in zip(headers, values):
        key = HEADER_ALIASES.get(header)
        if key is None:
            continue
        value = raw.strip()

        if key in PRICE_KEYS:
            try:
                patch[key] = parse_money_to_cents(value) if value else 0
            except TotalsError:
                raise ValidationError(f"invalid {header} price {value!r}")
        elif key == "quantity":
            try:
                quantity = max(0, int(float(value))) if value else 0
            except (ValueError, OverflowError):
                raise ValidationError("invalid quantity")
            if quantity > MAX_QUANTITY:
                raise ValidationError("invalid quantity")
        elif key == "taxable":
            patch["taxable"] = value.lower() in ("true", "1", "yes")
        elif key == "category":
            patch["category"] = normalize_category(value)
        elif key == "brand":
            patch["brand"] = value.lower() or None
        else:
            patch[key] = value or None

    if not patch.get("title"):
        raise ValidationError("Title/Name is required")
    if not patch.get("brand"):
        patch["brand"] = default_brand
    if patch["brand"] not in Brand.values():
        raise ValidationError(f"brand must be one of: {', '.join(Brand.values())}")
    if only_brand and patch["brand"] != only_brand:
        raise ValidationError(f"brand {patch['brand']} is outside your brand scope")
    if not patch.get("article"):
        patch["article"] = patch["title"][:64]

    enforce_rules_product(patch)
    return patch, quantity


def import_products(rows: list[list[str]], *, default_brand: str | None = None, only_brand: str | None = None) -> dict:
    """
    Import products from parsed rows (first row is the header).

    Returns {"imported": n, "errors": ["Line 3: ...", ...], "products": [...]}.
    """
    if len(rows) < 2:
        raise CatalogImportError("File must have a header row and at least one product")

    headers = [h.strip().lower() for h in rows[0]]
    if not any(HEADER_ALIASES.get(h) == "title" for h in headers):
        raise CatalogImportError("Header row must include a title or name column")

    imported = []
    errors: list[str] = []

    for index, values in enumerate(rows[1:], start=2):
        if len(values) != len(headers):
            errors.append(f"Line {index}: Column count mismatch")
            continue
        try:
            patch, quantity = _parse_row(headers, values, default_brand, only_brand)
            product = create_product(patch=patch, quantity=quantity, commit=False)
            db.session.commit()
            imported.append(product.to_dict())
        except (ValidationError, ConflictError, ValueError) as e:
            db.session.rollback()
            errors.append(f"Line {index}: {e}")
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Import failed on line %d", index)
            errors.append(f"Line {index}: database error")

    logger.info("Imported %d product(s), %d error(s)", len(imported), len(errors))
    return {
        "message": f"Successfully imported {len(imported)} products",
        "imported": len(imported),
        "errors": errors,
        "products": imported,
    }
