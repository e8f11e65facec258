# Overview: Flask API routes for the cash register; parses input and returns JSON responses.

"""
Cash Register API Routes

WHY: The cash desk records every receipt and payout, and closes the day
with a counted drawer.

DESIGN:
- amounts are integer cents in and out
- write endpoints return the validation warnings next to the movement
- closing a day twice returns 409

SECURITY:
- VIEW_CASH for overview, journal and metrics
- RECORD_CASH_MOVEMENT for movements and payments
- REFUND_CAUTION for caution refunds
- CLOSE_CASH_DAY for the closure
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, cash_service
from ..time_utils import parse_iso_date
from ..validation import coerce_int
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


def _day_arg(name: str = "date"):
    value = request.args.get(name)
    return parse_iso_date(value) if value else None


# =============================================================================
# OVERVIEW AND JOURNAL
# =============================================================================

@cash_bp.get("/overview")
@require_auth
@require_permission("VIEW_CASH")
def overview_route():
    """Balance of a business day (query param date, default today)."""
    try:
        return jsonify({"overview": cash_service.get_overview(g.tenant_id, _day_arg())})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.get("/movements")
@require_auth
@require_permission("VIEW_CASH")
def list_movements_route():
    """Query params: start, end (YYYY-MM-DD), type (in | out), client_id, limit."""
    try:
        movements = cash_service.list_movements(
            g.tenant_id,
            start=_day_arg("start"),
            end=_day_arg("end"),
            type=request.args.get("type"),
            client_id=request.args.get("client_id", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"movements": [m.to_dict() for m in movements], "count": len(movements)})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.post("/movements")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def record_movement_route():
    """
    Request body:
    {
        "type": "in" | "out",
        "amount_cents": 15000,
        "reason": "Vente de caisses",
        "payment_method": "cash" | "check" | "transfer" | "card",
        "reference": "...",     (optional, default ENT-/SORT-YYYY-NNN)
        "client_id": 3,         (optional)
        "notes": "...",
        "image_url": "..."      (optional receipt photo)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        movement, warnings = cash_service.record_movement(
            g.tenant_id,
            type=data.get("type"),
            amount_cents=data.get("amount_cents"),
            reason=data.get("reason"),
            payment_method=data.get("payment_method") or "cash",
            reference=data.get("reference"),
            client_id=data.get("client_id"),
            notes=data.get("notes"),
            image_url=data.get("image_url"),
            user=g.current_user,
        )
        audit_service.log_create("cash_movement", movement.id, {
            "reference": movement.reference,
            "type": movement.type,
            "amount_cents": movement.amount_cents,
        })
        return jsonify({"movement": movement.to_dict(), "warnings": warnings}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/movements/validate")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def validate_movement_route():
    """Dry-run validation of a movement against today's register."""
    try:
        data = request.get_json(silent=True) or {}
        today = cash_service.today_for(g.tenant_id)
        overview = cash_service.get_overview(g.tenant_id, today)
        movements = cash_service.list_movements(g.tenant_id, start=today, end=today)
        last = cash_service.list_movements(g.tenant_id, limit=1)
        result = cash_service.validate_cash_movement(
            type=data.get("type"),
            amount_cents=coerce_int(data.get("amount_cents", 0), "amount_cents"),
            reason=data.get("reason"),
            reference=data.get("reference"),
            payment_method=data.get("payment_method") or "cash",
            current_balance_cents=overview["balance_cents"],
            today_references={m.reference for m in movements},
            last_movement_at=last[0].created_at if last else None,
        )
        return jsonify(result.to_dict())
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.patch("/movements/<int:movement_id>")
@cash_bp.put("/movements/<int:movement_id>")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def update_movement_route(movement_id: int):
    try:
        data = request.get_json(silent=True) or {}
        movement = cash_service.update_movement(g.tenant_id, movement_id, data)
        audit_service.log_update("cash_movement", movement.id, {"fields": sorted(data)})
        return jsonify({"movement": movement.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.delete("/movements/<int:movement_id>")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def delete_movement_route(movement_id: int):
    try:
        movement = cash_service.get_movement(g.tenant_id, movement_id)
        reference = movement.reference
        cash_service.delete_movement(g.tenant_id, movement_id)
        audit_service.log_delete("cash_movement", movement_id, {"reference": reference})
        return jsonify({"message": "Movement deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.post("/cash-out")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def cash_out_route():
    """Payout with optional receipt photo (image_url)."""
    try:
        data = request.get_json(silent=True) or {}
        movement, warnings = cash_service.cash_out(
            g.tenant_id,
            amount_cents=data.get("amount_cents"),
            reason=data.get("reason"),
            payment_method=data.get("payment_method") or "cash",
            reference=data.get("reference"),
            image_url=data.get("image_url"),
            notes=data.get("notes"),
            user=g.current_user,
        )
        audit_service.log_create("cash_movement", movement.id, {
            "reference": movement.reference,
            "type": "out",
            "amount_cents": movement.amount_cents,
        })
        return jsonify({"movement": movement.to_dict(), "warnings": warnings}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to record cash-out")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@cash_bp.post("/payments")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def record_payment_route():
    """
    Client payment, optionally settling an invoice.

    Request body: {"client_id": 3, "amount_cents": 50000, "payment_method": "cash",
                   "invoice_id": 7, "reason": "...", "notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        movement, warnings = cash_service.record_payment(
            g.tenant_id,
            client_id=data.get("client_id"),
            amount_cents=data.get("amount_cents"),
            payment_method=data.get("payment_method") or "cash",
            invoice_id=data.get("invoice_id"),
            reason=data.get("reason"),
            notes=data.get("notes"),
            user=g.current_user,
        )
        audit_service.log_create("payment", movement.id, {
            "reference": movement.reference,
            "amount_cents": movement.amount_cents,
            "invoice_id": movement.invoice_id,
        })
        return jsonify({"movement": movement.to_dict(), "warnings": warnings}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/partial-payments")
@require_auth
@require_permission("RECORD_CASH_MOVEMENT")
def record_partial_payment_route():
    """
    Pay part of a reservation deposit.

    Request body: {"reservation_id": 12, "amount_cents": 40000, "payment_method": "cash"}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = cash_service.record_partial_payment(
            g.tenant_id,
            reservation_id=data.get("reservation_id"),
            amount_cents=data.get("amount_cents"),
            payment_method=data.get("payment_method") or "cash",
            notes=data.get("notes"),
            user=g.current_user,
        )
        movement = result["movement"]
        audit_service.log_create("partial_payment", movement.id, {
            "reference": movement.reference,
            "reservation_id": movement.reservation_id,
            "amount_cents": movement.amount_cents,
        })
        return jsonify({
            "movement": movement.to_dict(),
            "reservation": result["reservation"].to_dict(),
            "remaining_cents": result["remaining_cents"],
            "payment_status": result["payment_status"],
            "warnings": result["warnings"],
        }), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to record partial payment")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.post("/caution-refunds")
@require_auth
@require_permission("REFUND_CAUTION")
def refund_caution_route():
    """Request body: {"caution_id": 4, "amount_cents": 50000 (optional), "payment_method": "cash"}"""
    try:
        data = request.get_json(silent=True) or {}
        caution, movement, warnings = cash_service.refund_caution(
            g.tenant_id,
            caution_id=data.get("caution_id"),
            amount_cents=data.get("amount_cents"),
            payment_method=data.get("payment_method") or "cash",
            notes=data.get("notes"),
            user=g.current_user,
        )
        audit_service.log_action("REFUND", "caution", caution.id, {
            "reference": movement.reference,
            "amount_cents": movement.amount_cents,
        })
        return jsonify({"caution": caution.to_dict(), "movement": movement.to_dict(), "warnings": warnings}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to refund caution")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# METRICS AND CLOSURE
# =============================================================================

@cash_bp.get("/metrics")
@require_auth
@require_permission("VIEW_CASH")
def metrics_route():
    return jsonify({"metrics": cash_service.cash_flow_metrics(g.tenant_id)})


@cash_bp.get("/day-summary")
@require_auth
@require_permission("VIEW_CASH")
def day_summary_route():
    try:
        return jsonify({"summary": cash_service.day_summary(g.tenant_id, _day_arg())})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.post("/close-day")
@require_auth
@require_permission("CLOSE_CASH_DAY")
def close_day_route():
    """
    Close today's register.

    Request body: {"actual_cash_cents": 1250000, "notes": "..."}
    Returns 409 if the day is already closed.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("actual_cash_cents") is None:
            return jsonify({"error": "actual_cash_cents is required"}), 400

        closure, reconciliation = cash_service.close_day(
            g.tenant_id,
            actual_cash_cents=data.get("actual_cash_cents"),
            notes=data.get("notes"),
            user=g.current_user,
        )
        audit_service.log_action("CLOSE_DAY", "cash", closure.id, {
            "business_date": closure.business_date.isoformat(),
            "expected_cash_cents": closure.expected_cash_cents,
            "actual_cash_cents": closure.actual_cash_cents,
        })
        return jsonify({"closure": closure.to_dict(), "reconciliation": reconciliation.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to close cash day")
        return jsonify({"error": "Internal server error"}), 500


@cash_bp.get("/closures")
@require_auth
@require_permission("VIEW_CASH")
def list_closures_route():
    closures = cash_service.list_closures(g.tenant_id, limit=request.args.get("limit", 30, type=int))
    return jsonify({"closures": [c.to_dict() for c in closures], "count": len(closures)})


@cash_bp.get("/closures/<int:closure_id>")
@require_auth
@require_permission("VIEW_CASH")
def get_closure_route(closure_id: int):
    try:
        closure = cash_service.get_closure(g.tenant_id, closure_id)
        data = closure.to_dict()
        data["movements"] = [m.to_dict() for m in closure.movements]
        return jsonify({"closure": data})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@cash_bp.post("/reconciliation-check")
@require_auth
@require_permission("VIEW_CASH")
def reconciliation_check_route():
    """Request body: {"expected_cents": 100000, "actual_cents": 99500}"""
    try:
        data = request.get_json(silent=True) or {}
        result = cash_service.validate_reconciliation(
            coerce_int(data.get("expected_cents"), "expected_cents"),
            coerce_int(data.get("actual_cents"), "actual_cents"),
        )
        return jsonify(result.to_dict())
    except DOMAIN_ERRORS as e:
        return json_error(e)
