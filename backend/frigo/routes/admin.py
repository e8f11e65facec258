# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes for user and role management.

Provides endpoints for:
- User management (list, create, update, deactivate, delete)
- Role matrix (static role -> permission table)
- Security events of the tenant

All endpoints require authentication and appropriate permissions.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service, permission_service, user_service
from ..decorators import require_auth, require_permission
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from .errors import DOMAIN_ERRORS, json_error

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    List users of the tenant.

    Query params:
    - role: filter by role
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = user_service.list_users(g.tenant_id, role=request.args.get("role"))
    if not include_inactive:
        users = [u for u in users if u.is_active]

    result = [u.to_dict() for u in users]
    return jsonify({"users": result, "count": len(result)})


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("VIEW_USERS")
def get_user(user_id: int):
    try:
        user = user_service.get_user(g.tenant_id, user_id)
    except DOMAIN_ERRORS as e:
        return json_error(e)

    user_dict = user.to_dict()
    user_dict["permissions"] = sorted(permission_service.get_user_permissions(user.id))
    return jsonify({"user": user_dict})


@admin_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Create a user.

    Request body:
    - name: str (required)
    - password: str (required)
    - role: admin | manager | viewer | client (default viewer)
    - email / phone / username: at least one
    - client_id: int (required for role client)
    """
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.create_user(
            g.tenant_id,
            name=data.get("name"),
            password=data.get("password") or "",
            role=data.get("role") or "viewer",
            email=data.get("email"),
            phone=data.get("phone"),
            username=data.get("username"),
            client_id=data.get("client_id"),
            is_active=data.get("is_active", True),
        )
        audit_service.log_create("user", user.id, {"name": user.name, "role": user.role})
        return jsonify({"user": user.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>")
@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user(user_id: int):
    """Patch a user. An empty password leaves the current one unchanged."""
    try:
        data = request.get_json(silent=True) or {}
        if user_id == g.current_user.id and data.get("is_active") is False:
            return jsonify({"error": "You cannot deactivate your own account"}), 400

        user = user_service.update_user(g.tenant_id, user_id, data)
        changed = sorted(k for k in data if k != "password")
        if data.get("password"):
            changed.append("password")
        audit_service.log_update("user", user.id, {"fields": changed})
        return jsonify({"user": user.to_dict()})

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400
    try:
        user = user_service.set_user_active(g.tenant_id, user_id, False)
        audit_service.log_action("DEACTIVATE", "user", user.id)
        return jsonify({"user": user.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@admin_bp.post("/users/<int:user_id>/activate")
@require_auth
@require_permission("MANAGE_USERS")
def activate_user(user_id: int):
    try:
        user = user_service.set_user_active(g.tenant_id, user_id, True)
        audit_service.log_action("ACTIVATE", "user", user.id)
        return jsonify({"user": user.to_dict()})
    except DOMAIN_ERRORS as e:
        return json_error(e)


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user(user_id: int):
    try:
        user_service.delete_user(g.tenant_id, user_id, acting_user_id=g.current_user.id)
        audit_service.log_delete("user", user_id)
        return jsonify({"message": "User deleted"})
    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ROLES AND SECURITY EVENTS
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles():
    """Static role -> permission matrix."""
    roles = [
        {"name": role, "permissions": sorted(codes)}
        for role, codes in DEFAULT_ROLE_PERMISSIONS.items()
    ]
    return jsonify({"roles": roles, "count": len(roles)})


@admin_bp.get("/security-events")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_security_events():
    events = permission_service.get_security_events(
        g.tenant_id,
        event_type=request.args.get("event_type"),
        user_id=request.args.get("user_id", type=int),
        limit=min(request.args.get("limit", 100, type=int), 1000),
    )
    return jsonify({"events": [e.to_dict() for e in events], "count": len(events)})
