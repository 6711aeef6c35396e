# Overview: Service-layer operations for categories; encapsulates business logic and database work.

"""
Category names are free text on products. The categories table adds a display
color and a user-defined order. Incoming names (forms, CSV imports) are
normalized so that common spellings collapse onto one canonical name.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category
from ..validation import ConflictError, ValidationError

DEFAULT_CATEGORY = "Other"

PREDEFINED_CATEGORIES = (
    "Boxing Gloves",
    "Boxing Equipment",
    "MMA Gear",
    "Fitness Equipment",
    "Apparel",
    "Accessories",
    "Training Equipment",
    "Protective Gear",
    "Electronics",
    "Clothing",
    "Sports Equipment",
    "Health & Wellness",
    "Home & Garden",
    "Books & Media",
    "Tools & Hardware",
    "Beauty & Personal Care",
    "Automotive",
    "Office Supplies",
    "Toys & Games",
    "Food & Beverages",
    DEFAULT_CATEGORY,
)

# Checked in order: exact match first, then substring match
CATEGORY_ALIASES = {
    "boxing gloves": "Boxing Gloves",
    "boxing glove": "Boxing Gloves",
    "gloves": "Boxing Gloves",
    "boxing": "Boxing Equipment",
    "mma": "MMA Gear",
    "mixed martial arts": "MMA Gear",
    "fitness": "Fitness Equipment",
    "workout": "Fitness Equipment",
    "gym": "Fitness Equipment",
    "clothes": "Clothing",
    "clothing": "Clothing",
    "apparel": "Apparel",
    "shirt": "Clothing",
    "shirts": "Clothing",
    "t-shirt": "Clothing",
    "t-shirts": "Clothing",
    "pants": "Clothing",
    "shorts": "Clothing",
    "electronics": "Electronics",
    "electronic": "Electronics",
    "tech": "Electronics",
    "sports": "Sports Equipment",
    "sport": "Sports Equipment",
    "training": "Training Equipment",
    "protective": "Protective Gear",
    "protection": "Protective Gear",
    "safety": "Protective Gear",
    "accessories": "Accessories",
    "accessory": "Accessories",
}


def normalize_category(raw: str | None) -> str:
    """
    Map a free-text category onto its canonical name.

    Blank input becomes "Other"; unknown names are title-cased word by word.
    """
    if raw is None or not str(raw).strip():
        return DEFAULT_CATEGORY

    text = str(raw).strip()
    key = text.lower()

    if key in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[key]

    for alias, canonical in CATEGORY_ALIASES.items():
        if alias in key:
            return canonical

    for name in PREDEFINED_CATEGORIES:
        if name.lower() == key:
            return name

    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def list_categories() -> list[dict]:
    rows = db.session.query(Category).order_by(Category.sort_order.asc(), Category.name.asc()).all()
    return [c.to_dict() for c in rows]


def create_category(*, patch: dict) -> Category:
    name = normalize_category(patch.get("name"))
    if db.session.query(Category).filter(db.func.lower(Category.name) == name.lower()).first():
        raise ConflictError("Category already exists.")

    if "sort_order" in patch and patch["sort_order"] is not None:
        sort_order = patch["sort_order"]
    else:
        highest = db.session.query(db.func.max(Category.sort_order)).scalar()
        sort_order = (highest + 1) if highest is not None else 0

    c = Category(name=name, sort_order=sort_order)
    if patch.get("color"):
        c.color = patch["color"]

    db.session.add(c)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category already exists.")
    return c


def update_category(*, category_id: int, patch: dict) -> dict | None:
    c = db.session.query(Category).filter_by(id=category_id).first()
    if not c:
        return None

    if "name" in patch:
        name = normalize_category(patch["name"])
        clash = (
            db.session.query(Category)
            .filter(db.func.lower(Category.name) == name.lower(), Category.id != c.id)
            .first()
        )
        if clash:
            raise ConflictError("Category already exists.")
        c.name = name
    if "color" in patch and patch["color"]:
        c.color = patch["color"]
    if "sort_order" in patch and patch["sort_order"] is not None:
        c.sort_order = patch["sort_order"]

    db.session.commit()
    return c.to_dict()


def delete_category(*, category_id: int) -> bool:
    """Products keep their category text; only the display row is removed."""
    c = db.session.query(Category).filter_by(id=category_id).first()
    if not c:
        return False
    db.session.delete(c)
    db.session.commit()
    return True


def reorder_categories(entries) -> int:
    """
    Bulk sort-order update from [{"id": .., "sort_order": ..}, ...].

    All entries are validated before any row changes; unknown ids fail the
    whole request.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("categories must be a non-empty list")

    orders: dict[int, int] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError("Invalid category format")
        cid = entry.get("id")
        order = entry.get("sort_order")
        if isinstance(cid, bool) or not isinstance(cid, int):
            raise ValidationError("Invalid category format")
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValidationError("Invalid category format")
        orders[cid] = order

    rows = db.session.query(Category).filter(Category.id.in_(list(orders))).all()
    found = {c.id for c in rows}
    missing = sorted(set(orders) - found)
    if missing:
        raise ValidationError(f"Unknown category ids: {', '.join(str(m) for m in missing)}")

    for c in rows:
        c.sort_order = orders[c.id]

    db.session.commit()
    return len(rows)
