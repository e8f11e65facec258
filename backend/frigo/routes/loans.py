# Overview: Flask API routes for empty-crate loans and cautions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, loan_service
from ..services.settings_service import get_settings
from ..validation import coerce_int
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


loans_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


@loans_bp.get("/")
@loans_bp.get("")
@require_auth
@require_permission("VIEW_LOANS")
def list_loans_route():
    """Query params: status (open | returned), client_id."""
    loans = loan_service.list_loans(
        g.tenant_id,
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
    )
    return jsonify({"loans": [loan.to_dict() for loan in loans], "count": len(loans)})


@loans_bp.post("/")
@loans_bp.post("")
@require_auth
@require_permission("MANAGE_LOANS")
def create_loan_route():
    """
    Lend empty crates.

    Request body:
    {
        "client_id": 3,
        "crates": 50,
        "deposit_type": "cash" | "check",
        "deposit_reference": "CHQ-123456",  (required for check)
        "deposit_paid_cents": 250000,       (optional, defaults to the full deposit)
        "notes": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        loan = loan_service.create_loan(
            g.tenant_id,
            client_id=data.get("client_id"),
            crates=data.get("crates"),
            deposit_type=data.get("deposit_type") or "cash",
            deposit_reference=data.get("deposit_reference"),
            deposit_paid_cents=data.get("deposit_paid_cents"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
        audit_service.log_create("loan", loan.id, {"ticket_id": loan.ticket_id, "crates": loan.crates})
        return jsonify({"loan": loan.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create loan")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.get("/pool")
@require_auth
@require_permission("VIEW_LOANS")
def pool_status_route():
    return jsonify({"pool": loan_service.pool_status(g.tenant_id)})


@loans_bp.post("/caution-check")
@require_auth
@require_permission("VIEW_LOANS")
def caution_check_route():
    """
    Check a deposit amount against the per-crate rate.

    Request body: {"amount_cents": 50000, "max_crates": 100}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = loan_service.validate_caution_amount(
            coerce_int(data.get("amount_cents", 0), "amount_cents"),
            get_settings(g.tenant_id).caution_per_crate_cents,
            coerce_int(data.get("max_crates", 0), "max_crates"),
        )
        return jsonify(result)
    except DOMAIN_ERRORS as e:
        return json_error(e)


@loans_bp.get("/<int:loan_id>")
@require_auth
@require_permission("VIEW_LOANS")
def get_loan_route(loan_id: int):
    try:
        loan = loan_service.get_loan(g.tenant_id, loan_id)
        data = loan.to_dict()
        data["cautions"] = [c.to_dict() for c in loan.cautions]
        return jsonify({"loan": data})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@loans_bp.patch("/<int:loan_id>")
@loans_bp.put("/<int:loan_id>")
@require_auth
@require_permission("MANAGE_LOANS")
def update_loan_route(loan_id: int):
    try:
        data = request.get_json(silent=True) or {}
        loan = loan_service.update_loan(g.tenant_id, loan_id, data)
        audit_service.log_update("loan", loan.id, {"fields": sorted(data)})
        return jsonify({"loan": loan.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update loan")
        return jsonify({"error": "Internal server error"}), 500


@loans_bp.post("/<int:loan_id>/return")
@require_auth
@require_permission("MANAGE_LOANS")
def return_loan_route(loan_id: int):
    """Mark a loan returned; refused while deposit remains unpaid."""
    try:
        loan = loan_service.return_loan(g.tenant_id, loan_id)
        audit_service.log_action("RETURN", "loan", loan.id, {"ticket_id": loan.ticket_id})
        return jsonify({"loan": loan.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@loans_bp.delete("/<int:loan_id>")
@require_auth
@require_permission("MANAGE_LOANS")
def delete_loan_route(loan_id: int):
    try:
        loan_service.delete_loan(g.tenant_id, loan_id)
        audit_service.log_delete("loan", loan_id)
        return jsonify({"message": "Loan deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@loans_bp.get("/cautions")
@require_auth
@require_permission("VIEW_LOANS")
def list_cautions_route():
    """Query params: status (held | to_refund | refunded), client_id."""
    cautions = loan_service.list_cautions(
        g.tenant_id,
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
    )
    return jsonify({"cautions": [c.to_dict() for c in cautions], "count": len(cautions)})
