# Overview: Flask API routes for warehouse reference data (rooms, trucks, drivers, products).

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, reception_service
from ..services.reception_service import REFERENCE_MODELS
from ..decorators import require_auth, require_permission
from .errors import DOMAIN_ERRORS, json_error


warehouse_bp = Blueprint("warehouse", __name__, url_prefix="/api/warehouse")


def _unknown_kind(kind: str):
    if kind not in REFERENCE_MODELS:
        return jsonify({"error": f"Unknown reference type: {kind}"}), 404
    return None


@warehouse_bp.get("/<kind>")
@require_auth
@require_permission("VIEW_RECEPTIONS")
def list_reference_route(kind: str):
    """GET /api/warehouse/rooms?active=true"""
    error = _unknown_kind(kind)
    if error:
        return error
    active_only = request.args.get("active", "false").lower() == "true"
    records = reception_service.list_reference(g.tenant_id, kind, active_only=active_only)
    return jsonify({kind: [r.to_dict() for r in records], "count": len(records)})


@warehouse_bp.post("/<kind>")
@require_auth
@require_permission("MANAGE_WAREHOUSE")
def create_reference_route(kind: str):
    error = _unknown_kind(kind)
    if error:
        return error
    try:
        record = reception_service.create_reference(g.tenant_id, kind, request.get_json(silent=True) or {})
        audit_service.log_create(kind, record.id)
        return jsonify({"item": record.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create %s", kind)
        return jsonify({"error": "Internal server error"}), 500


@warehouse_bp.patch("/<kind>/<int:record_id>")
@warehouse_bp.put("/<kind>/<int:record_id>")
@require_auth
@require_permission("MANAGE_WAREHOUSE")
def update_reference_route(kind: str, record_id: int):
    error = _unknown_kind(kind)
    if error:
        return error
    try:
        data = request.get_json(silent=True) or {}
        record = reception_service.update_reference(g.tenant_id, kind, record_id, data)
        audit_service.log_update(kind, record.id, {"fields": sorted(data)})
        return jsonify({"item": record.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update %s", kind)
        return jsonify({"error": "Internal server error"}), 500


@warehouse_bp.delete("/<kind>/<int:record_id>")
@require_auth
@require_permission("MANAGE_WAREHOUSE")
def delete_reference_route(kind: str, record_id: int):
    error = _unknown_kind(kind)
    if error:
        return error
    try:
        reception_service.delete_reference(g.tenant_id, kind, record_id)
        audit_service.log_delete(kind, record_id)
        return jsonify({"message": "Deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)
