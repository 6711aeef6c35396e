# Overview: Request decorators and brand scoping helpers for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models import Brand
from .services import session_service
from .validation import ValidationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid Bearer session token.

    Sets g.current_user to the authenticated (approved) User.

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User no longer approved
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require an authenticated admin. Must be stacked below @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403

        return f(*args, **kwargs)

    return decorated_function


class BrandScopeError(Exception):
    """Raised when a request names a brand outside the user's scope."""
    pass


def resolve_brand(requested: str | None, *, required: bool = False) -> str | None:
    """
    Effective brand for the current request.

    Brand-scoped users are pinned to their brand: an omitted brand becomes
    theirs and any other brand is refused. Unscoped users may name any
    brand or none.
    """
    user = g.current_user
    requested = (requested or "").strip().lower() or None

    if requested is not None and requested not in Brand.values():
        raise ValidationError(f"brand must be one of: {', '.join(Brand.values())}")

    if user.brand:
        if requested is not None and requested != user.brand:
            raise BrandScopeError("You do not have access to this brand")
        return user.brand

    if required and requested is None:
        raise ValidationError("brand is required")
    return requested


def scope_brand() -> str | None:
    """Brand filter for single-row lookups (None for unscoped users)."""
    return g.current_user.brand or None
