# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging with Multi-Tenant Support

WHY: Enforce role-based access control and create a security audit trail.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and inactive users have no permissions
- Log denials only: permission grants are not logged
- Roles are static: the role -> permission table lives in frigo.permissions
- Tenant isolation: security events carry tenant_id
"""

from ..extensions import db
from ..models import User, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, get_role_permissions
from frigo.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - TENANT_CONTEXT_MISSING
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns set of permission codes (e.g., {"VIEW_CASH", "CLOSE_CASH_DAY"}).
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return set()
    return get_role_permissions(user.role)


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Logs denied checks to security_events with tenant context.
    """
    if user_has_permission(user_id, permission_code):
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        tenant_id=tenant_id,
    )
    raise PermissionDeniedError(f"User lacks permission: {permission_code}")


def list_permissions() -> list[dict]:
    return [
        {"code": code, "name": name, "description": description, "category": category}
        for code, name, description, category in PERMISSION_DEFINITIONS
    ]


def get_security_events(
    tenant_id: int,
    *,
    event_type: str | None = None,
    user_id: int | None = None,
    limit: int = 100,
) -> list[SecurityEvent]:
    query = db.session.query(SecurityEvent).filter(SecurityEvent.tenant_id == tenant_id)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    if user_id:
        query = query.filter(SecurityEvent.user_id == user_id)
    return query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
