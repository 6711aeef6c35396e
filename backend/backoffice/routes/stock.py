# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..extensions import db
from ..models import Product
from ..services import inventory_service
from ..decorators import require_auth, resolve_brand, scope_brand, BrandScopeError

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_auth
def stock_report_route():
    """
    Query params:
    - brand
    - filter: all | in_stock | low_stock | out_of_stock
    - include_archived: true to include archived products
    """
    try:
        brand = resolve_brand(request.args.get("brand"))
        return inventory_service.get_stock_report(
            brand=brand,
            stock_filter=request.args.get("filter") or "all",
            include_archived=(request.args.get("include_archived") or "").lower() in ("1", "true", "yes"),
        )
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValueError as e:
        return {"error": str(e)}, 400


@stock_bp.post("/adjust")
@require_auth
def adjust_stock_route():
    """
    Apply a signed quantity change.

    Request body:
    {
        "product_id": 3,           // required
        "variant_id": 9,           // required when the product has several variants
        "delta": -2,               // required, signed integer
        "reason": "Damaged"        // optional
    }

    The result never drops below zero; a store failure answers 500 with the
    error list.
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    variant_id = data.get("variant_id")
    delta = data.get("delta")

    if isinstance(product_id, bool) or not isinstance(product_id, int):
        return {"error": "product_id must be an integer"}, 400
    if variant_id is not None and (isinstance(variant_id, bool) or not isinstance(variant_id, int)):
        return {"error": "variant_id must be an integer"}, 400
    if isinstance(delta, bool) or not isinstance(delta, int):
        return {"error": "delta must be an integer"}, 400

    brand = scope_brand()
    if brand:
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None or product.brand != brand:
            return {"error": "Product not found"}, 404

    result = inventory_service.apply_stock_adjustment(
        product_id,
        variant_id,
        delta,
        data.get("reason"),
        user_id=g.current_user.id,
    )
    if result.success:
        return result.to_dict(), 200

    message = result.errors[0] if result.errors else "Stock adjustment failed"
    if message.startswith("Failed to save"):
        return result.to_dict(), 500
    if "not found" in message:
        return result.to_dict(), 404
    return result.to_dict(), 400


@stock_bp.get("/movements")
@require_auth
def movements_route():
    """Query params: product_id (optional), limit (default 100, max 500)."""
    items = inventory_service.list_movements(
        product_id=request.args.get("product_id", type=int),
        limit=request.args.get("limit", default=100, type=int),
        brand=scope_brand(),
    )
    return {"items": items, "count": len(items)}
