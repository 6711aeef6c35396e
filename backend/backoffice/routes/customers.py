# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import customers_service
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    validate_tier,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth
from ..extensions import db

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "company", "address", "tier", "notes"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """
    Query params:
    - search: name / email / company substring
    - tier: retail | wholesale | club
    """
    tier = request.args.get("tier") or None
    if tier is not None:
        try:
            tier = validate_tier(tier)
        except ValidationError as e:
            return {"error": str(e)}, 400

    items = customers_service.list_customers(search=request.args.get("search") or None, tier=tier)
    return {"items": items, "count": len(items)}


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
        created = customers_service.create_customer(patch=patch)
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    customer = customers_service.get_customer(customer_id, include_invoices=True)
    if not customer:
        return {"error": "Customer not found"}, 404
    return customer


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        updated = customers_service.update_customer(customer_id=customer_id, patch=patch)
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    if not updated:
        return {"error": "Customer not found"}, 404
    return updated


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    """Invoices of a deleted customer keep their captured customer_name."""
    if not customers_service.delete_customer(customer_id=customer_id):
        return {"error": "Customer not found"}, 404
    return {"ok": True}, 200
