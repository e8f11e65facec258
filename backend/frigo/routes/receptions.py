# Overview: Flask API routes for receptions and pallet plans; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, reception_service
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


receptions_bp = Blueprint("receptions", __name__, url_prefix="/api/receptions")


@receptions_bp.get("/")
@receptions_bp.get("")
@require_auth
@require_permission("VIEW_RECEPTIONS")
def list_receptions_route():
    """Query params: status, client_id, room_id."""
    receptions = reception_service.list_receptions(
        g.tenant_id,
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
        room_id=request.args.get("room_id", type=int),
    )
    return jsonify({"receptions": [r.to_dict() for r in receptions], "count": len(receptions)})


@receptions_bp.post("/")
@receptions_bp.post("")
@require_auth
@require_permission("MANAGE_RECEPTIONS")
def create_reception_route():
    """
    Request body:
    {
        "client_id": 3,
        "truck_id": 1, "driver_id": 2, "product_id": 4, "room_id": 1,   (optional)
        "total_crates": 240,
        "arrival_at": "2025-07-01T08:30:00Z",   (optional, default now)
        "notes": "..."
    }
    """
    try:
        reception = reception_service.create_reception(
            g.tenant_id, request.get_json(silent=True) or {}, user_id=g.current_user.id
        )
        audit_service.log_create("reception", reception.id, {
            "serial": reception.serial,
            "total_crates": reception.total_crates,
        })
        return jsonify({"reception": reception.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create reception")
        return jsonify({"error": "Internal server error"}), 500


@receptions_bp.get("/occupancy")
@require_auth
@require_permission("VIEW_RECEPTIONS")
def room_occupancy_route():
    rooms = reception_service.room_occupancy(g.tenant_id)
    return jsonify({"rooms": rooms, "count": len(rooms)})


@receptions_bp.get("/<int:reception_id>")
@require_auth
@require_permission("VIEW_RECEPTIONS")
def get_reception_route(reception_id: int):
    try:
        return jsonify({"reception": reception_service.get_reception(g.tenant_id, reception_id).to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@receptions_bp.patch("/<int:reception_id>")
@receptions_bp.put("/<int:reception_id>")
@require_auth
@require_permission("MANAGE_RECEPTIONS")
def update_reception_route(reception_id: int):
    try:
        data = request.get_json(silent=True) or {}
        reception = reception_service.update_reception(g.tenant_id, reception_id, data)
        audit_service.log_update("reception", reception.id, {"fields": sorted(data)})
        return jsonify({"reception": reception.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update reception")
        return jsonify({"error": "Internal server error"}), 500


@receptions_bp.post("/<int:reception_id>/status")
@require_auth
@require_permission("MANAGE_RECEPTIONS")
def set_status_route(reception_id: int):
    """Request body: {"status": "in_progress" | "completed"}"""
    try:
        data = request.get_json(silent=True) or {}
        reception = reception_service.set_reception_status(g.tenant_id, reception_id, data.get("status"))
        audit_service.log_action("STATUS", "reception", reception.id, {"status": reception.status})
        return jsonify({"reception": reception.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@receptions_bp.delete("/<int:reception_id>")
@require_auth
@require_permission("MANAGE_RECEPTIONS")
def delete_reception_route(reception_id: int):
    try:
        reception_service.delete_reception(g.tenant_id, reception_id)
        audit_service.log_delete("reception", reception_id)
        return jsonify({"message": "Reception deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@receptions_bp.post("/<int:reception_id>/pallets")
@receptions_bp.get("/<int:reception_id>/pallets")
@require_auth
@require_permission("VIEW_RECEPTIONS")
def pallet_plan_route(reception_id: int):
    """
    Pallet plan of a reception.

    GET uses the tenant's crates_per_pallet. POST accepts
    {"crates_per_pallet": 40, "overrides": {"3": 25}}.
    """
    try:
        data = (request.get_json(silent=True) or {}) if request.method == "POST" else {}
        plan = reception_service.reception_pallet_plan(
            g.tenant_id,
            reception_id,
            crates_per_pallet=data.get("crates_per_pallet"),
            overrides=data.get("overrides"),
        )
        return jsonify(plan)
    except DOMAIN_ERRORS as e:
        return json_error(e)
