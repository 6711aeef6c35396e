# backend/backoffice/services/products_service.py
"""
Products Service

Products carry three tier prices and an ordered list of variants. A product
created without variants receives one default variant so that stock always
lives on a variant.

BRAND SCOPE: list/get/update/delete accept an optional `brand`; when given,
rows from other brands are treated as not found.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Variant
from ..validation import (
    ConflictError,
    ValidationError,
    ModelValidationPolicy,
    validate_payload,
    check_quantity,
    enforce_rules_variant,
)
from .categories_service import normalize_category

PRODUCT_MUTABLE_FIELDS = {
    "brand", "article", "title", "description", "category", "taxable", "attributes",
    "media_main", "wholesale_cents", "retail_cents", "club_cents",
    "cost_before_cents", "cost_after_cents", "min_quantity", "archived",
}

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "attributes", "quantity", "position", "wholesale_cents", "retail_cents", "club_cents"},
    required_on_create=set(),
)

DEFAULT_VARIANT_ATTRIBUTES = {"Size": "One Size", "Color": "Default"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_article_free(brand: str, article: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.brand == brand, Product.article == article)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Article already exists for this brand.")


def _get_scoped(product_id: int, brand: str | None) -> Product | None:
    p = db.session.query(Product).filter(Product.id == product_id).first()
    if p is None:
        return None
    if brand is not None and p.brand != brand:
        return None
    return p


def _build_variant(product: Product, raw: dict, position: int) -> Variant:
    patch = validate_payload(model=Variant, payload=raw, policy=VARIANT_POLICY, partial=True)
    enforce_rules_variant(patch)
    v = Variant(
        sku=patch.get("sku") or product.article,
        attributes=patch.get("attributes") or {},
        quantity=patch.get("quantity") or 0,
        position=patch.get("position", position),
        wholesale_cents=patch.get("wholesale_cents"),
        retail_cents=patch.get("retail_cents"),
        club_cents=patch.get("club_cents"),
    )
    return v


def list_products(
    brand: str | None = None,
    category: str | None = None,
    search: str | None = None,
    include_archived: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional filters and pagination.

    Args:
        brand: restrict to one brand catalog
        category: exact category name
        search: case-insensitive match on article, title or variant SKU
        include_archived: include archived products
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if brand:
        base_query = base_query.filter(Product.brand == brand)
    if category:
        base_query = base_query.filter(Product.category == category)
    if not include_archived:
        base_query = base_query.filter(Product.archived.is_(False))
    if search:
        like = f"%{search.strip()}%"
        sku_match = db.session.query(Variant.product_id).filter(Variant.sku.ilike(like))
        base_query = base_query.filter(
            or_(Product.article.ilike(like), Product.title.ilike(like), Product.id.in_(sku_match))
        )

    base_query = base_query.order_by(Product.article.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    # Pagination logic
    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)  # Ensure page >= 1

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int, brand: str | None = None) -> dict | None:
    p = _get_scoped(product_id, brand)
    return p.to_dict() if p else None


def create_product(*, patch: dict, variants: list[dict] | None = None, quantity: int | None = None, commit: bool = True) -> Product:
    """
    Create product using a validated patch dict.

    Args:
        patch: Product data (article, title, brand, ...)
        variants: raw variant payloads; when empty a default variant is created
        quantity: opening stock for the default variant
        commit: commit the session (False when called inside a larger import)

    Raises:
        ValidationError: for invalid variant payloads
        ConflictError: If article already exists in the brand
    """
    for required in ("brand", "article", "title"):
        if not patch.get(required):
            raise ValueError(f"{required} is required")

    _ensure_article_free(patch["brand"], patch["article"])

    p = Product(
        attributes=[],
        min_quantity=current_app.config.get("LOW_STOCK_THRESHOLD", 5),
    )
    apply_product_patch(p, patch)
    p.category = normalize_category(p.category)

    if variants:
        for i, raw in enumerate(variants):
            p.variants.append(_build_variant(p, raw, i))
    else:
        if quantity is not None:
            check_quantity("quantity", quantity)
        p.variants.append(Variant(
            sku=p.article,
            attributes=dict(DEFAULT_VARIANT_ATTRIBUTES),
            quantity=quantity or 0,
            position=0,
        ))

    db.session.add(p)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return p


def update_product(*, product_id: int, patch: dict, brand: str | None = None) -> dict | None:
    """
    Update a product.

    Returns:
        Updated product dict, or None if not found

    Raises:
        ConflictError: If the new article already exists in the brand
    """
    p = _get_scoped(product_id, brand)
    if not p:
        return None

    if brand is not None and "brand" in patch and patch["brand"] != brand:
        raise ValidationError("Cannot move a product to another brand")

    new_brand = patch.get("brand", p.brand)
    new_article = patch.get("article", p.article)
    if (new_brand, new_article) != (p.brand, p.article):
        _ensure_article_free(new_brand, new_article, exclude_id=p.id)

    apply_product_patch(p, patch)
    if "category" in patch:
        p.category = normalize_category(p.category)

    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int, brand: str | None = None) -> bool:
    """
    Delete a product and its variants.

    Invoice lines keep their captured description, SKU and price; their
    product/variant references become NULL.

    Returns:
        True if deleted, False if not found
    """
    p = _get_scoped(product_id, brand)
    if not p:
        return False

    db.session.delete(p)
    db.session.commit()
    return True


def add_variant(*, product_id: int, payload: dict, brand: str | None = None) -> dict | None:
    p = _get_scoped(product_id, brand)
    if not p:
        return None

    next_position = max((v.position for v in p.variants), default=-1) + 1
    v = _build_variant(p, payload, next_position)
    p.variants.append(v)
    db.session.commit()
    return v.to_dict()


def update_variant(*, product_id: int, variant_id: int, payload: dict, brand: str | None = None) -> dict | None:
    """
    Update variant fields other than stock.

    Quantity changes go through the stock delta applier so every change is
    recorded as a StockMovement.
    """
    p = _get_scoped(product_id, brand)
    if not p:
        return None
    v = next((v for v in p.variants if v.id == variant_id), None)
    if v is None:
        return None

    if "quantity" in payload:
        raise ValidationError("quantity cannot be set directly; use a stock adjustment")

    patch = validate_payload(model=Variant, payload=payload, policy=VARIANT_POLICY, partial=True)
    enforce_rules_variant(patch)
    if "sku" in patch and not patch["sku"]:
        raise ValidationError("sku cannot be blank")
    for k, val in patch.items():
        setattr(v, k, val)

    db.session.commit()
    return v.to_dict()


def delete_variant(*, product_id: int, variant_id: int, brand: str | None = None) -> bool:
    p = _get_scoped(product_id, brand)
    if not p:
        return False
    v = next((v for v in p.variants if v.id == variant_id), None)
    if v is None:
        return False
    if len(p.variants) == 1:
        raise ConflictError("A product must keep at least one variant.")

    p.variants.remove(v)
    db.session.commit()
    return True


def list_brand_categories(brand: str | None = None) -> list[str]:
    query = db.session.query(Product.category).distinct()
    if brand:
        query = query.filter(Product.brand == brand)
    return sorted(c for (c,) in query.all() if c)
