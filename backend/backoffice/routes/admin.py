# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/backoffice/routes/admin.py
"""
Admin routes.

Provides endpoints for:
- User approval (list, approve, reject, delete)
- Full JSON backup and safe restore

All endpoints require an authenticated admin.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import backup_service
from ..services.auth_service import AccountError, get_account_service
from ..services.backup_service import BackupError
from ..validation import ValidationError
from ..decorators import require_auth, require_admin

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_admin
def list_users():
    """
    List users, newest first.

    Query params:
    - status: pending | approved | rejected
    """
    try:
        users = get_account_service().list_users(request.args.get("status") or None)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


def _status_change(user_id: int, action: str):
    accounts = get_account_service()
    try:
        if action == "approve":
            user = accounts.approve(user_id, acting_user=g.current_user)
        else:
            user = accounts.reject(user_id, acting_user=g.current_user)
    except AccountError as e:
        return jsonify({"error": str(e)}), 409

    if user is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user.to_dict()}), 200


@admin_bp.post("/users/<int:user_id>/approve")
@require_auth
@require_admin
def approve_user(user_id: int):
    return _status_change(user_id, "approve")


@admin_bp.post("/users/<int:user_id>/reject")
@require_auth
@require_admin
def reject_user(user_id: int):
    """Reject an account; its open sessions are revoked."""
    return _status_change(user_id, "reject")


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_admin
def delete_user(user_id: int):
    try:
        deleted = get_account_service().delete(user_id, acting_user=g.current_user)
    except AccountError as e:
        return jsonify({"error": str(e)}), 409

    if not deleted:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"ok": True}), 200


# =============================================================================
# BACKUP / RESTORE
# =============================================================================

@admin_bp.post("/backup")
@require_auth
@require_admin
def create_backup():
    try:
        data = backup_service.create_backup()
    except Exception:
        current_app.logger.exception("Failed to create backup")
        return jsonify({"success": False, "error": "Backup failed"}), 500

    return jsonify({"success": True, "data": data, "message": "Backup created successfully"}), 200


@admin_bp.post("/restore")
@require_auth
@require_admin
def restore_backup():
    """
    Safe restore: upserts every record of the backup, deletes nothing.

    Request body: {"backup_data": {...}, "confirm_restore": true}
    """
    body = request.get_json(silent=True) or {}

    if body.get("confirm_restore") is not True:
        return jsonify({"success": False, "error": "Restore requires explicit confirmation"}), 400

    errors = backup_service.validate_backup(body.get("backup_data"))
    if errors:
        return jsonify({"success": False, "error": "Invalid backup file", "details": errors}), 400

    try:
        summary = backup_service.restore_backup(body["backup_data"])
    except BackupError as e:
        return jsonify({"success": False, "error": str(e), "details": e.details}), 400

    current_app.logger.info("Restore by user %s: %s", g.current_user.id, summary)
    return jsonify({"success": True, "summary": summary, "message": "Restore completed successfully"}), 200
