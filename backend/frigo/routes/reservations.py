# Overview: Flask API routes for reservations; parses input and returns JSON responses.

"""
Reservation API Routes

SECURITY:
- staff with VIEW_RESERVATIONS see every reservation of the tenant
- client-portal accounts (role client) see and create only their own;
  another client's reservation is reported as not found
- approve / refuse / close require APPROVE_RESERVATIONS
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, reservation_service, season_service
from ..services.reservation_service import reservation_to_dict
from ..services.settings_service import get_settings
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")


def _portal_client_id():
    """Client the caller is restricted to, or None for staff."""
    return g.session_context.client_id if g.session_context.role == "client" else None


def _load(reservation_id: int):
    reservation = reservation_service.get_reservation(g.tenant_id, reservation_id)
    if g.session_context.role == "client" and reservation.client_id != _portal_client_id():
        return None
    return reservation


def _tz() -> str:
    return get_settings(g.tenant_id).timezone


@reservations_bp.get("/")
@reservations_bp.get("")
@require_auth
@require_permission("VIEW_RESERVATIONS")
def list_reservations_route():
    """Query params: status, client_id (ignored for client accounts)."""
    try:
        client_id = request.args.get("client_id", type=int)
        if g.session_context.role == "client":
            client_id = _portal_client_id() or -1

        reservations = reservation_service.list_reservations(
            g.tenant_id,
            status=request.args.get("status"),
            client_id=client_id,
        )
        tz_name = _tz()
        result = [reservation_to_dict(r, tz_name) for r in reservations]
        return jsonify({"reservations": result, "count": len(result)})

    except DOMAIN_ERRORS as e:
        return json_error(e)


@reservations_bp.post("/")
@reservations_bp.post("")
@require_auth
@require_permission("CREATE_RESERVATION")
def create_reservation_route():
    """
    Request body:
    {
        "client_id": 3,              (forced to the caller's client for portal accounts)
        "reserved_crates": 120,
        "empty_crates_needed": 80,   (optional, defaults to reserved_crates)
        "notes": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        client_id = data.get("client_id")
        if g.session_context.role == "client":
            client_id = _portal_client_id()
        if client_id is None:
            return jsonify({"error": "client_id is required"}), 400

        reservation = reservation_service.create_reservation(
            g.tenant_id,
            client_id=client_id,
            reserved_crates=data.get("reserved_crates"),
            empty_crates_needed=data.get("empty_crates_needed"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
        audit_service.log_create("reservation", reservation.id, {
            "reference": reservation.reference,
            "reserved_crates": reservation.reserved_crates,
        })
        return jsonify({"reservation": reservation_to_dict(reservation, _tz())}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create reservation")
        return jsonify({"error": "Internal server error"}), 500


@reservations_bp.get("/upcoming-payments")
@require_auth
@require_permission("VIEW_RESERVATIONS")
def upcoming_payments_route():
    try:
        client_id = request.args.get("client_id", type=int)
        if g.session_context.role == "client":
            client_id = _portal_client_id() or -1
        return jsonify(reservation_service.upcoming_payments(g.tenant_id, client_id=client_id))
    except DOMAIN_ERRORS as e:
        return json_error(e)


@reservations_bp.get("/seasons")
@require_auth
def seasons_route():
    """Season table used to compute deposit due dates."""
    return jsonify({"seasons": season_service.season_table()})


@reservations_bp.get("/<int:reservation_id>")
@require_auth
@require_permission("VIEW_RESERVATIONS")
def get_reservation_route(reservation_id: int):
    try:
        reservation = _load(reservation_id)
        if reservation is None:
            return jsonify({"error": "Reservation not found"}), 404
        tz_name = _tz()
        return jsonify({
            "reservation": reservation_to_dict(reservation, tz_name),
            "payment": reservation_service.payment_summary(reservation, tz_name=tz_name),
        })
    except DOMAIN_ERRORS as e:
        return json_error(e)


@reservations_bp.patch("/<int:reservation_id>")
@reservations_bp.put("/<int:reservation_id>")
@require_auth
@require_permission("CREATE_RESERVATION")
def update_reservation_route(reservation_id: int):
    """Edit a REQUESTED reservation (crate counts, notes)."""
    try:
        if _load(reservation_id) is None:
            return jsonify({"error": "Reservation not found"}), 404
        data = request.get_json(silent=True) or {}
        reservation = reservation_service.update_reservation(g.tenant_id, reservation_id, data)
        audit_service.log_update("reservation", reservation.id, {"fields": sorted(data)})
        return jsonify({"reservation": reservation_to_dict(reservation, _tz())})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update reservation")
        return jsonify({"error": "Internal server error"}), 500


@reservations_bp.post("/<int:reservation_id>/approve")
@require_auth
@require_permission("APPROVE_RESERVATIONS")
def approve_reservation_route(reservation_id: int):
    try:
        reservation = reservation_service.approve_reservation(g.tenant_id, reservation_id)
        audit_service.log_action("APPROVE", "reservation", reservation.id, {"reference": reservation.reference})
        return jsonify({"reservation": reservation_to_dict(reservation, _tz())})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@reservations_bp.post("/<int:reservation_id>/refuse")
@require_auth
@require_permission("APPROVE_RESERVATIONS")
def refuse_reservation_route(reservation_id: int):
    """Request body: {"reason": "..."} (required)."""
    try:
        data = request.get_json(silent=True) or {}
        reservation = reservation_service.refuse_reservation(g.tenant_id, reservation_id, data.get("reason"))
        audit_service.log_action("REFUSE", "reservation", reservation.id, {
            "reference": reservation.reference,
            "reason": reservation.refusal_reason,
        })
        return jsonify({"reservation": reservation_to_dict(reservation, _tz())})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@reservations_bp.post("/<int:reservation_id>/close")
@require_auth
@require_permission("APPROVE_RESERVATIONS")
def close_reservation_route(reservation_id: int):
    try:
        reservation = reservation_service.close_reservation(g.tenant_id, reservation_id)
        audit_service.log_action("CLOSE", "reservation", reservation.id, {"reference": reservation.reference})
        return jsonify({"reservation": reservation_to_dict(reservation, _tz())})
    except DOMAIN_ERRORS as e:
        return json_error(e)
