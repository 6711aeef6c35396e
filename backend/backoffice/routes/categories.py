# Overview: Flask API routes for categories operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..services import categories_service
from ..models import Category
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth
from ..extensions import db

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "color", "sort_order"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    """Categories in display order (sort_order, then name)."""
    items = categories_service.list_categories()
    return {"items": items, "count": len(items)}


@categories_bp.post("")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        enforce_rules_category(patch)
        created = categories_service.create_category(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        enforce_rules_category(patch)
        updated = categories_service.update_category(category_id=category_id, patch=patch)
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    if not updated:
        return {"error": "Category not found"}, 404
    return updated


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    if not categories_service.delete_category(category_id=category_id):
        return {"error": "Category not found"}, 404
    return {"ok": True}, 200


@categories_bp.post("/reorder")
@require_auth
def reorder_categories_route():
    """
    Bulk sort-order update.

    Request body: {"categories": [{"id": 1, "sort_order": 0}, ...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        updated = categories_service.reorder_categories(data.get("categories"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reorder categories")
        return {"error": "Failed to reorder categories"}, 500

    return {"success": True, "updated": updated}
