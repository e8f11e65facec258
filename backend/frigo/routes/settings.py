from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import audit_service, settings_service
from .errors import DOMAIN_ERRORS, json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


@settings_bp.get("/settings")
@require_auth
def get_settings_route():
    # Every authenticated user needs currency, locale and timezone to render amounts and dates
    settings = settings_service.get_settings(g.tenant_id)
    return jsonify({"settings": settings.to_dict()})


@settings_bp.patch("/settings")
@settings_bp.put("/settings")
@require_auth
@require_permission("MANAGE_SETTINGS")
def update_settings_route():
    """
    Patch tenant settings.

    Numeric fields (cents / counts) must be >= 0, crates_per_pallet >= 1,
    locale fr | ar, timezone an IANA zone name.
    """
    try:
        data = request.get_json(silent=True) or {}
        settings = settings_service.update_settings(g.tenant_id, data, user_id=g.current_user.id)
        audit_service.log_update("settings", settings.id, data)
        return jsonify({"settings": settings.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
