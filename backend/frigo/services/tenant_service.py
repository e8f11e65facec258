"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant, and cross-tenant access must be
explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id set
2. Record IDs from client input (client_id, room_id, ...) are validated
   against g.tenant_id before they are written anywhere
3. Rows of another tenant are reported as "not found", never as "forbidden"
4. Cross-tenant access attempts are logged as security events

USAGE:
    from frigo.services.tenant_service import require_in_tenant

    client = require_in_tenant(Client, client_id, g.tenant_id)
"""

from flask import g, has_request_context, request
from ..extensions import db
from ..models import Tenant, TenantSettings
from ..validation import coerce_int
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when a record is missing or belongs to another tenant."""
    pass


def require_in_tenant(model, record_id: int, tenant_id: int, label: str | None = None):
    """
    Load a tenant-owned row by id, or raise TenantAccessError.

    Args:
        model: SQLAlchemy model with a tenant_id column
        record_id: The id from client input
        tenant_id: The caller's tenant (typically g.tenant_id)
        label: Name used in the error message (defaults to the model name)
    """
    label = label or model.__name__
    if record_id is not None:
        record_id = coerce_int(record_id, f"{label} id")
    record = db.session.get(model, record_id) if record_id is not None else None

    if not record:
        raise TenantAccessError(f"{label} not found")

    if record.tenant_id != tenant_id:
        # CRITICAL: Cross-tenant access attempt
        _log_cross_tenant_attempt(
            f"{label} {record_id} belongs to tenant {record.tenant_id}, not {tenant_id}",
            tenant_id=tenant_id,
        )
        raise TenantAccessError(f"{label} not found")  # Don't reveal it exists in another tenant

    return record


def get_tenant_by_code(code: str) -> Tenant | None:
    if not code:
        return None
    return db.session.query(Tenant).filter(Tenant.code == code.strip().upper()).first()


def validate_tenant_active(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)

    if not tenant:
        raise TenantAccessError("Tenant not found")

    if not tenant.is_active:
        raise TenantAccessError("Tenant is not active")

    return tenant


def create_tenant(name: str, code: str, **settings) -> Tenant:
    """
    Create a tenant with its settings row.

    Extra keyword arguments are passed to TenantSettings (e.g. currency="MAD").
    """
    code = (code or "").strip().upper()
    if not name or not code:
        raise ValueError("name and code are required")
    if db.session.query(Tenant).filter_by(code=code).first():
        raise ValueError(f"Tenant code '{code}' already exists")

    tenant = Tenant(name=name, code=code, is_active=True)
    db.session.add(tenant)
    db.session.flush()

    db.session.add(TenantSettings(tenant_id=tenant.id, name=settings.pop("name", name), **settings))
    db.session.commit()
    return tenant


def _log_cross_tenant_attempt(reason: str, tenant_id: int | None = None) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    Committed in its own statement so the event survives the caller's
    rollback of the failed operation.
    """
    user = getattr(g, 'current_user', None)
    in_request = has_request_context()

    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        tenant_id=tenant_id,
    )
