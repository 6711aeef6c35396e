# Overview: Flask API routes for invoices operations; parses input and returns JSON responses.

# backend/backoffice/routes/invoices.py
"""
Invoice routes.

Create payload:
{
    "brand": "harican",
    "customer_id": 7,
    "items": [{"product_id": 3, "variant_id": 9, "quantity": 2}, ...],
    "discount_type": "percentage",        // or "fixed"
    "discount_value": 1000,               // bps, or cents when fixed
    "discount_percent": "10",             // alternative to discount_value
    "tax_rate_bps": 2000,                 // or "tax_rate": "20"
    "po_number": "PO-1", "issue_date": "2026-01-31", "due_date": "...",
    "notes": "...",
    "status": "draft"                     // or "pending" to issue immediately
}
"""
import io

from flask import Blueprint, request, g, current_app, send_file

from ..services import invoice_service, pdf_service
from ..services.numbering_service import preview_next_invoice_number
from ..services.invoice_service import InvoiceError
from ..validation import ValidationError
from ..decorators import require_auth, resolve_brand, scope_brand, BrandScopeError
from ..extensions import db

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _invoice_error(e: InvoiceError):
    body = {"error": str(e)}
    if e.details:
        body["details"] = e.details
    return body, 409


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    Query params:
    - brand, status, customer_id
    - search: invoice number / customer name / PO number substring
    """
    try:
        brand = resolve_brand(request.args.get("brand"))
        items = invoice_service.list_invoices(
            brand=brand,
            status=request.args.get("status") or None,
            customer_id=request.args.get("customer_id", type=int),
            search=request.args.get("search") or None,
        )
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": items, "count": len(items)}


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    payload = dict(request.get_json(silent=True) or {})

    try:
        payload["brand"] = resolve_brand(payload.get("brand"), required=True)
        inv = invoice_service.create_invoice(payload, user_id=g.current_user.id)
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValueError as e:
        return {"error": str(e)}, 400
    except InvoiceError as e:
        return _invoice_error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create invoice")
        return {"error": "Internal server error"}, 500

    return inv.to_dict(), 201


@invoices_bp.post("/preview")
@require_auth
def preview_invoice_route():
    """Totals and frozen line prices for a payload, without saving."""
    payload = dict(request.get_json(silent=True) or {})
    try:
        payload["brand"] = resolve_brand(payload.get("brand"), required=True)
        return invoice_service.preview_invoice(payload)
    except BrandScopeError as e:
        return {"error": str(e)}, 403
    except ValueError as e:
        return {"error": str(e)}, 400


@invoices_bp.get("/next-number")
@require_auth
def next_number_route():
    return {"invoice_number": preview_next_invoice_number()}


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    inv = invoice_service.get_invoice(invoice_id, brand=scope_brand())
    if inv is None:
        return {"error": "Invoice not found"}, 404
    return inv.to_dict()


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    """Edit a draft invoice."""
    payload = request.get_json(silent=True) or {}
    try:
        inv = invoice_service.update_draft(invoice_id, payload, brand=scope_brand())
    except ValueError as e:
        return {"error": str(e)}, 400
    except InvoiceError as e:
        return _invoice_error(e)

    if inv is None:
        return {"error": "Invoice not found"}, 404
    return inv.to_dict()


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def delete_invoice_route(invoice_id: int):
    if not invoice_service.delete_invoice(invoice_id, brand=scope_brand()):
        return {"error": "Invoice not found"}, 404
    return {"ok": True}, 200


@invoices_bp.post("/<int:invoice_id>/status")
@require_auth
def change_status_route(invoice_id: int):
    """
    Request body: {"status": "pending" | "paid" | "overdue" | "cancelled"}

    Issuing a draft deducts stock for its lines.
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return {"error": "status is required"}, 400

    try:
        inv = invoice_service.change_status(invoice_id, status, user_id=g.current_user.id, brand=scope_brand())
    except ValueError as e:
        return {"error": str(e)}, 400
    except InvoiceError as e:
        return _invoice_error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change invoice status")
        return {"error": "Internal server error"}, 500

    if inv is None:
        return {"error": "Invoice not found"}, 404
    return inv.to_dict()


@invoices_bp.post("/<int:invoice_id>/payments")
@require_auth
def record_payment_route(invoice_id: int):
    """Request body: {"amount_cents": 2500}"""
    data = request.get_json(silent=True) or {}
    try:
        inv = invoice_service.record_payment(invoice_id, data.get("amount_cents"), brand=scope_brand())
    except ValueError as e:
        return {"error": str(e)}, 400
    except InvoiceError as e:
        return _invoice_error(e)

    if inv is None:
        return {"error": "Invoice not found"}, 404
    return inv.to_dict()


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf_route(invoice_id: int):
    inv = invoice_service.get_invoice(invoice_id, brand=scope_brand())
    if inv is None:
        return {"error": "Invoice not found"}, 404

    try:
        pdf = pdf_service.render_invoice_pdf(inv)
    except Exception:
        current_app.logger.exception("Failed to render invoice PDF")
        return {"error": "Internal server error"}, 500

    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{inv.invoice_number}.pdf",
    )
