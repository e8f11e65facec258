# Overview: Business activity log (who did what to which record).

"""
Audit Log Service

WHY: Managers review who approved a reservation, who recorded a cash-out,
who closed the day. Entries are attributed to the authenticated principal
of the current request.

DESIGN:
- log_action never raises: a failed audit write must not undo or block
  the business operation that triggered it
- the entry is written inside a SAVEPOINT, so a failure rolls back only
  the audit row; the caller's pending work is untouched
- commit=False lets a caller include the entry in its own transaction
"""

import json

from flask import current_app, g, has_app_context, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog


def _current_principal():
    if has_app_context():
        return getattr(g, "current_user", None)
    return None


def log_action(
    action: str,
    resource: str,
    resource_id=None,
    details=None,
    *,
    tenant_id: int | None = None,
    user=None,
    commit: bool = True,
) -> AuditLog | None:
    """
    Record an audit entry. Returns the entry, or None if it could not be written.

    details may be a string or any JSON-serialisable value.
    """
    user = user if user is not None else _current_principal()
    if tenant_id is None:
        tenant_id = getattr(g, "tenant_id", None) if has_app_context() else None
        if tenant_id is None and user is not None:
            tenant_id = user.tenant_id

    if details is not None and not isinstance(details, str):
        details = json.dumps(details, default=str, ensure_ascii=False)

    in_request = has_request_context()
    entry = AuditLog(
        tenant_id=tenant_id,
        user_id=user.id if user is not None else None,
        user_name=user.name if user is not None else None,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
    )

    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except SQLAlchemyError:
        current_app.logger.warning("Failed to write audit log entry %s %s", action, resource, exc_info=True)
        return None

    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.warning("Failed to commit audit log entry %s %s", action, resource, exc_info=True)
            return None

    return entry


def log_create(resource: str, resource_id, details=None, **kwargs):
    return log_action("CREATE", resource, resource_id, details, **kwargs)


def log_update(resource: str, resource_id, details=None, **kwargs):
    return log_action("UPDATE", resource, resource_id, details, **kwargs)


def log_delete(resource: str, resource_id, details=None, **kwargs):
    return log_action("DELETE", resource, resource_id, details, **kwargs)


def log_login(user, *, user_type: str = "manager"):
    return log_action("LOGIN", "auth", user.id, {"user_type": user_type}, tenant_id=user.tenant_id, user=user)


def log_logout(user):
    return log_action("LOGOUT", "auth", user.id, tenant_id=user.tenant_id, user=user)


def list_logs(
    tenant_id: int,
    *,
    resource: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    query = db.session.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)
    if resource:
        query = query.filter(AuditLog.resource == resource)
    if action:
        query = query.filter(AuditLog.action == action.upper())
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    limit = max(1, min(int(limit), 1000))
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
