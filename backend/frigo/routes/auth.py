# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Login is scoped to a tenant (tenant code in the request body)
- Staff and client-portal accounts sign in through separate user types
- Failed logins are recorded as security events
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import audit_service
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.auth_service import USER_TYPES
from ..services.tenant_service import get_tenant_by_code
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration is disabled.

    Accounts are created by administrators via:
    - POST /api/admin/users (requires MANAGE_USERS permission)
    - CLI: flask users create
    """
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "tenant": "FRIGO1",
        "login": "email, phone or username",
        "password": "...",
        "user_type": "manager" | "client"   (optional, default manager)
    }

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        login = data.get("login") or data.get("email") or data.get("username")
        password = data.get("password")
        tenant_code = data.get("tenant")
        user_type = data.get("user_type") or "manager"

        if not all([login, password, tenant_code]):
            return jsonify({"error": "tenant, login and password required"}), 400
        if user_type not in USER_TYPES:
            return jsonify({"error": f"user_type must be one of: {', '.join(USER_TYPES)}"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        tenant = get_tenant_by_code(tenant_code)
        user = auth_service.authenticate(login, password, tenant.id, user_type) if tenant else None

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="POST",
                reason=f"Invalid credentials for {login!r} ({user_type})",
                ip_address=ip_address,
                user_agent=user_agent,
                tenant_id=tenant.id if tenant else None,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )
        audit_service.log_login(user, user_type=user_type)
        permissions = sorted(permission_service.get_user_permissions(user.id))

        return jsonify({
            "user": user.to_dict(),
            "permissions": permissions,
            "token": token,
            "session": session.to_dict(),
            "tenant_id": session.tenant_id,
            "message": "Login successful"
        }), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke the current session token.

    WHY: Explicit logout prevents token reuse.
    """
    try:
        user = g.current_user
        token = request.headers["Authorization"].split(" ", 1)[1]
        session_service.revoke_session(token, reason="User logout")
        audit_service.log_logout(user)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current principal with permissions and tenant context.

    WHY: The front-end hides navigation and buttons the user cannot use.
    """
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(context.user.id)),
        "tenant_id": context.tenant_id,
        "role": context.role,
        "client_id": context.client_id,
        "session": context.session.to_dict(),
    }), 200


@auth_bp.get("/permissions")
@require_auth
def permissions_route():
    """Catalogue of permission codes (for the role matrix screen)."""
    return jsonify({"permissions": permission_service.list_permissions()}), 200
