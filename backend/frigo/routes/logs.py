# Overview: Flask API routes for the business audit log.

from flask import Blueprint, request, jsonify, g

from ..services import audit_service
from ..decorators import require_auth, require_permission


logs_bp = Blueprint("logs", __name__, url_prefix="/api/logs")


@logs_bp.get("/")
@logs_bp.get("")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_logs_route():
    """
    Audit entries of the tenant, newest first.

    Query params: resource, action, user_id, limit (default 100, max 1000).
    """
    logs = audit_service.list_logs(
        g.tenant_id,
        resource=request.args.get("resource"),
        action=request.args.get("action"),
        user_id=request.args.get("user_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"logs": [entry.to_dict() for entry in logs], "count": len(logs)})
