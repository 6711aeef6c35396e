# Overview: Flask API routes for the brand dashboard.

from flask import Blueprint, request

from ..services import dashboard_service
from ..validation import ValidationError
from ..decorators import require_auth, resolve_brand, BrandScopeError

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """Query params: brand (omit for all brands)."""
    try:
        brand = resolve_brand(request.args.get("brand"))
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400

    return dashboard_service.get_dashboard(brand=brand)
