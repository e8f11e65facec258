# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

WHY: Every cash movement and approval must be attributable. Uses bcrypt for
password hashing and validates password strength.

MULTI-TENANT: Users belong to exactly one tenant. Login is always scoped
to a tenant, looked up by the tenant code typed on the login screen.

LOGIN FIELD: staff and clients may sign in with their email, their phone
number or their username. Lookup order is email, then phone, then username.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char
- Login succeeds iff the hash verifies AND the account is active
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, STAFF_ROLES
from .tenant_service import validate_tenant_active, TenantAccessError
from frigo.time_utils import utcnow


USER_TYPES = ("manager", "client")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.

    Anything that is not a bcrypt hash (e.g. a plaintext value imported
    from a legacy store) never verifies.
    """
    if not password or not password_hash or not password_hash.startswith("$2"):
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def find_user_by_login(login_field: str, tenant_id: int) -> User | None:
    """Look up a user of the tenant by email, then phone, then username."""
    login_field = (login_field or "").strip()
    if not login_field:
        return None

    base = db.session.query(User).filter(User.tenant_id == tenant_id)

    user = base.filter(db.func.lower(User.email) == login_field.lower()).first()
    if user:
        return user
    user = base.filter(User.phone == login_field).first()
    if user:
        return user
    return base.filter(User.username == login_field).first()


def authenticate(
    login_field: str,
    password: str,
    tenant_id: int,
    user_type: str = "manager",
) -> User | None:
    """
    Authenticate a user by login field and password within a tenant.

    user_type "manager" accepts staff roles (admin/manager/viewer);
    user_type "client" accepts client-portal accounts only.

    Returns User if credentials are valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if user_type not in USER_TYPES:
        raise ValueError(f"user_type must be one of: {', '.join(USER_TYPES)}")

    try:
        validate_tenant_active(tenant_id)
    except TenantAccessError:
        return None

    user = find_user_by_login(login_field, tenant_id)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    if not user.is_active:
        return None

    if user_type == "client" and user.role != "client":
        return None
    if user_type == "manager" and user.role not in STAFF_ROLES:
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user

