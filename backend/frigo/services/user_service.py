# Overview: Staff and client-portal account administration.

"""
User Administration

MULTI-TENANT: every operation is scoped to the administrator's tenant.
Email, phone and username are unique per tenant; at least one of them is
required so the account can sign in.

Passwords are only ever stored as bcrypt hashes (auth_service.hash_password).
Deactivating, deleting or re-passwording a user revokes their sessions.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, Client, SessionToken, SecurityEvent, USER_ROLES
from ..validation import ValidationError, ConflictError
from .auth_service import hash_password
from .session_service import revoke_all_user_sessions
from .tenant_service import require_in_tenant, validate_tenant_active


LOGIN_FIELDS = ("email", "phone", "username")


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _check_unique_logins(tenant_id: int, fields: dict, exclude_user_id: int | None = None) -> None:
    for field in LOGIN_FIELDS:
        value = fields.get(field)
        if not value:
            continue
        column = getattr(User, field)
        query = db.session.query(User).filter(User.tenant_id == tenant_id)
        if field == "email":
            query = query.filter(db.func.lower(column) == value.lower())
        else:
            query = query.filter(column == value)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first():
            raise ConflictError(f"A user with this {field} already exists")


def _resolve_client(tenant_id: int, role: str, client_id) -> int | None:
    if role != "client":
        return None
    if client_id is None:
        raise ValidationError("client_id is required for client accounts")
    return require_in_tenant(Client, client_id, tenant_id, "Client").id


def list_users(tenant_id: int, role: str | None = None) -> list[User]:
    query = db.session.query(User).filter(User.tenant_id == tenant_id)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.name).all()


def get_user(tenant_id: int, user_id: int) -> User:
    return require_in_tenant(User, user_id, tenant_id, "User")


def create_user(
    tenant_id: int,
    *,
    name: str,
    password: str,
    role: str = "viewer",
    email: str | None = None,
    phone: str | None = None,
    username: str | None = None,
    client_id: int | None = None,
    is_active: bool = True,
) -> User:
    """
    Create a user in the tenant.

    Raises:
        ValidationError: missing name/login field or unknown role
        ConflictError: email/phone/username already used in the tenant
        PasswordValidationError: weak password
    """
    validate_tenant_active(tenant_id)

    name = _clean(name)
    if not name:
        raise ValidationError("name is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    fields = {"email": _clean(email), "phone": _clean(phone), "username": _clean(username)}
    if not any(fields.values()):
        raise ValidationError("At least one of email, phone or username is required")
    _check_unique_logins(tenant_id, fields)

    user = User(
        tenant_id=tenant_id,
        name=name,
        role=role,
        client_id=_resolve_client(tenant_id, role, client_id),
        password_hash=hash_password(password),
        is_active=bool(is_active),
        **fields,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(tenant_id: int, user_id: int, data: dict) -> User:
    """
    Patch a user. The password is changed only when a non-empty one is given.
    """
    user = get_user(tenant_id, user_id)
    allowed = {"name", "email", "phone", "username", "role", "client_id", "is_active", "password"}
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    logins = {f: _clean(data[f]) for f in LOGIN_FIELDS if f in data}
    _check_unique_logins(tenant_id, logins, exclude_user_id=user.id)
    for field, value in logins.items():
        setattr(user, field, value)
    if not any(getattr(user, f) for f in LOGIN_FIELDS):
        raise ValidationError("At least one of email, phone or username is required")

    if "name" in data:
        name = _clean(data["name"])
        if not name:
            raise ValidationError("name cannot be blank")
        user.name = name

    if "role" in data:
        if data["role"] not in USER_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
        user.role = data["role"]
    if "role" in data or "client_id" in data:
        user.client_id = _resolve_client(tenant_id, user.role, data.get("client_id", user.client_id))

    revoke_reason = None
    if data.get("password"):
        user.password_hash = hash_password(data["password"])
        revoke_reason = "Password changed"

    if "is_active" in data:
        user.is_active = bool(data["is_active"])
        if not user.is_active:
            revoke_reason = "User deactivated"

    if revoke_reason:
        revoke_all_user_sessions(user.id, reason=revoke_reason, commit=False)

    db.session.commit()
    return user


def set_user_active(tenant_id: int, user_id: int, is_active: bool) -> User:
    return update_user(tenant_id, user_id, {"is_active": is_active})


def delete_user(tenant_id: int, user_id: int, acting_user_id: int | None = None) -> None:
    user = get_user(tenant_id, user_id)
    if acting_user_id is not None and user.id == acting_user_id:
        raise ValidationError("You cannot delete your own account")
    db.session.query(SessionToken).filter_by(user_id=user.id).delete(synchronize_session=False)
    db.session.query(SecurityEvent).filter_by(user_id=user.id).update({"user_id": None}, synchronize_session=False)
    db.session.delete(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Still referenced as creator of business records (enforcing databases only)
        db.session.rollback()
        raise ConflictError("User has recorded activity; deactivate the account instead")
