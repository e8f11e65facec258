# Overview: Flask API routes for invoices; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, invoice_service
from ..services.invoice_service import invoice_to_dict
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


billing_bp = Blueprint("billing", __name__, url_prefix="/api/invoices")


@billing_bp.get("/")
@billing_bp.get("")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    """Query params: status (draft | sent | paid | overdue), client_id."""
    try:
        invoices = invoice_service.list_invoices(
            g.tenant_id,
            status=request.args.get("status"),
            client_id=request.args.get("client_id", type=int),
        )
        return jsonify({
            "invoices": [invoice_to_dict(i) for i in invoices],
            "count": len(invoices),
            "totals": invoice_service.invoice_totals(g.tenant_id),
        })
    except DOMAIN_ERRORS as e:
        return json_error(e)


@billing_bp.post("/")
@billing_bp.post("")
@require_auth
@require_permission("MANAGE_INVOICES")
def create_invoice_route():
    """
    Request body:
    {
        "client_id": 3,
        "amount_cents": 1200000,
        "due_date": "2025-09-30",   (optional)
        "description": "...",
        "status": "draft" | "sent"  (optional, default draft)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.create_invoice(
            g.tenant_id,
            client_id=data.get("client_id"),
            amount_cents=data.get("amount_cents"),
            due_date=data.get("due_date"),
            description=data.get("description"),
            status=data.get("status") or "draft",
            user_id=g.current_user.id,
        )
        audit_service.log_create("invoice", invoice.id, {
            "number": invoice.number,
            "amount_cents": invoice.amount_cents,
        })
        return jsonify({"invoice": invoice_to_dict(invoice)}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/mark-overdue")
@require_auth
@require_permission("MANAGE_INVOICES")
def mark_overdue_route():
    try:
        invoices = invoice_service.mark_overdue(g.tenant_id)
        if invoices:
            audit_service.log_action("MARK_OVERDUE", "invoice", None, {"numbers": [i.number for i in invoices]})
        return jsonify({"updated": [i.number for i in invoices], "count": len(invoices)})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@billing_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    try:
        return jsonify({"invoice": invoice_to_dict(invoice_service.get_invoice(g.tenant_id, invoice_id))})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@billing_bp.patch("/<int:invoice_id>")
@billing_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
def update_invoice_route(invoice_id: int):
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.update_invoice(g.tenant_id, invoice_id, data)
        audit_service.log_update("invoice", invoice.id, {"fields": sorted(data), "status": invoice.status})
        return jsonify({"invoice": invoice_to_dict(invoice)})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(g.tenant_id, invoice_id)
        audit_service.log_delete("invoice", invoice_id)
        return jsonify({"message": "Invoice deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)
