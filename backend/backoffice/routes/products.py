# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/backoffice/routes/products.py
"""
Product catalog routes.

BRAND SCOPE: brand-scoped users only see and edit their brand's products;
other brands' products answer 404.

SECURITY: All routes require authentication.
"""
import io

from flask import Blueprint, request, g, current_app, send_file
from ..services import products_service, import_service, pdf_service
from ..services.pricing_service import resolve_price, effective_prices
from ..models import Product, Variant, CustomerTier
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, resolve_brand, scope_brand, BrandScopeError
from ..extensions import db

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "brand", "article", "title", "description", "category", "taxable", "attributes", "media_main",
        "wholesale_cents", "retail_cents", "club_cents", "cost_before_cents", "cost_after_cents",
        "min_quantity", "archived",
    },
    required_on_create={"article", "title"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _bool_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional filters and pagination.

    Query params:
    - brand: greenhil | harican | byko
    - category: exact category name
    - search: article / title / variant SKU substring
    - include_archived: true to include archived products
    - page, per_page: pagination (omit page to return all items)
    """
    try:
        brand = resolve_brand(request.args.get("brand"))
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400

    return products_service.list_products(
        brand=brand,
        category=request.args.get("category") or None,
        search=request.args.get("search") or None,
        include_archived=_bool_arg("include_archived"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product.

    Besides product columns the payload may carry:
    - variants: list of {sku, attributes, quantity, *_cents overrides}
    - quantity: opening stock when no variants are given (default variant)
    """
    payload = dict(request.get_json(silent=True) or {})
    variants = payload.pop("variants", None)
    quantity = payload.pop("quantity", None)

    try:
        payload["brand"] = resolve_brand(payload.get("brand"), required=True)
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400

    if variants is not None and not isinstance(variants, list):
        return {"error": "variants must be a list"}, 400
    if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int)):
        return {"error": "quantity must be an integer"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch, variants=variants, quantity=quantity)
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    product = products_service.get_product(product_id, brand=scope_brand())
    if not product:
        return {"error": "Product not found"}, 404
    return product


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch, brand=scope_brand())
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    if not updated:
        return {"error": "Product not found"}, 404
    return updated


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Delete a product with its variants; invoice lines keep their captured text."""
    if not products_service.delete_product(product_id=product_id, brand=scope_brand()):
        return {"error": "Product not found"}, 404
    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/variants")
@require_auth
def add_variant_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        variant = products_service.add_variant(product_id=product_id, payload=payload, brand=scope_brand())
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    if variant is None:
        return {"error": "Product not found"}, 404
    return variant, 201


@products_bp.put("/<int:product_id>/variants/<int:variant_id>")
@require_auth
def update_variant_route(product_id: int, variant_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        variant = products_service.update_variant(
            product_id=product_id, variant_id=variant_id, payload=payload, brand=scope_brand()
        )
    except ValueError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    if variant is None:
        return {"error": "Variant not found"}, 404
    return variant


@products_bp.delete("/<int:product_id>/variants/<int:variant_id>")
@require_auth
def delete_variant_route(product_id: int, variant_id: int):
    try:
        deleted = products_service.delete_variant(product_id=product_id, variant_id=variant_id, brand=scope_brand())
    except ConflictError as e:
        return {"error": str(e)}, 409

    if not deleted:
        return {"error": "Variant not found"}, 404
    return {"ok": True}, 200


@products_bp.get("/<int:product_id>/price")
@require_auth
def resolve_price_route(product_id: int):
    """
    Resolved unit price for a tier.

    Query params: tier (required), variant_id (optional)
    """
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None or (scope_brand() and product.brand != scope_brand()):
        return {"error": "Product not found"}, 404

    try:
        tier = CustomerTier.parse(request.args.get("tier"))
    except ValueError as e:
        return {"error": str(e)}, 400

    variant = None
    variant_id = request.args.get("variant_id", type=int)
    if variant_id is not None:
        variant = db.session.query(Variant).filter_by(id=variant_id, product_id=product.id).first()
        if variant is None:
            return {"error": "Variant not found"}, 404

    return {
        "product_id": product.id,
        "variant_id": variant.id if variant else None,
        "tier": tier.value,
        "price_cents": resolve_price(tier, product, variant),
        "all_tiers": effective_prices(product, variant),
    }


@products_bp.get("/categories")
@require_auth
def product_categories_route():
    """Distinct category names in use (for filter dropdowns)."""
    try:
        brand = resolve_brand(request.args.get("brand"))
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": products_service.list_brand_categories(brand)}


@products_bp.post("/import")
@require_auth
def import_products_route():
    """
    Import products from an uploaded CSV or XLSX file (multipart field "file").

    Rows without a brand column use the form field / query arg "brand"
    (or the user's brand scope).
    """
    if "file" not in request.files:
        return {"error": "No file provided"}, 400

    file = request.files["file"]
    filename = (file.filename or "").lower()
    ext = filename.rsplit(".", 1)[-1] if "." in filename else ""

    try:
        default_brand = resolve_brand(request.form.get("brand") or request.args.get("brand"))
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        if ext == "csv":
            rows = import_service.read_csv_rows(file.stream.read().decode("utf-8-sig"))
        elif ext in {"xlsx", "xlsm"}:
            rows = import_service.read_xlsx_rows(io.BytesIO(file.stream.read()))
        else:
            return {"error": "Only CSV or XLSX files are allowed"}, 400
    except UnicodeDecodeError:
        return {"error": "File must be UTF-8 encoded"}, 400
    except Exception:
        current_app.logger.exception("Failed to parse import file")
        return {"error": "Failed to parse upload"}, 400

    try:
        result = import_service.import_products(
            rows, default_brand=default_brand, only_brand=g.current_user.brand or None
        )
    except import_service.CatalogImportError as e:
        return {"error": str(e)}, 400

    return result, 201 if result["imported"] else 200


@products_bp.get("/price-list.pdf")
@require_auth
def price_list_pdf_route():
    """Query params: tier (required), brand, category."""
    try:
        tier = CustomerTier.parse(request.args.get("tier"))
        brand = resolve_brand(request.args.get("brand"))
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValueError as e:
        return {"error": str(e)}, 400

    try:
        pdf = pdf_service.render_price_list_pdf(tier, brand=brand, category=request.args.get("category") or None)
    except Exception:
        current_app.logger.exception("Failed to render price list")
        return {"error": "Internal server error"}, 500

    name = f"price-list-{tier.value}{'-' + brand if brand else ''}.pdf"
    return send_file(io.BytesIO(pdf), mimetype="application/pdf", as_attachment=True, download_name=name)
