# Overview: Pytest coverage for authentication, sessions and user management.

"""
Authentication Tests

Verifies:
- Password strength rules and bcrypt hashing
- Login by email, phone or username inside a tenant
- Staff and client-portal accounts sign in through their own user type
- Session tokens are hashed, carry tenant context and can be revoked
"""

from datetime import timedelta

import pytest

from frigo.models import SessionToken
from frigo.services import user_service
from frigo.services.auth_service import (
    PasswordValidationError,
    authenticate,
    hash_password,
    validate_password_strength,
    verify_password,
)
from frigo.services.session_service import (
    create_session,
    hash_token,
    revoke_session,
    validate_session,
)
from frigo.validation import ConflictError, ValidationError

from conftest import PASSWORD


class TestPasswords:

    @pytest.mark.parametrize("weak", ["short1!", "nouppercase1!", "NOLOWERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_are_rejected(self, weak):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(weak)

    def test_hash_roundtrip(self):
        hashed = hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("Password123?", hashed)
        assert not verify_password(PASSWORD, None)


class TestAuthenticate:

    def test_login_by_email_phone_or_username(self, db_session, tenant_a):
        user = user_service.create_user(
            tenant_a.id, name="Karim", email="karim@atlas.test", phone="0622222222",
            username="karim", password=PASSWORD, role="manager",
        )
        for login in ("karim@atlas.test", "0622222222", "karim"):
            assert authenticate(login, PASSWORD, tenant_a.id).id == user.id

    def test_wrong_password(self, db_session, tenant_a, admin_a):
        assert authenticate("admin@atlas.test", "Wrong123!", tenant_a.id) is None

    def test_login_is_scoped_to_tenant(self, db_session, tenant_a, tenant_b, admin_a):
        assert authenticate("admin@atlas.test", PASSWORD, tenant_b.id) is None

    def test_inactive_user_cannot_login(self, db_session, tenant_a, admin_a):
        user_service.set_user_active(tenant_a.id, admin_a.id, False)
        assert authenticate("admin@atlas.test", PASSWORD, tenant_a.id) is None

    def test_user_types(self, db_session, tenant_a, admin_a, portal_user_a):
        assert authenticate("admin@atlas.test", PASSWORD, tenant_a.id, "client") is None
        assert authenticate("0611111111", PASSWORD, tenant_a.id, "manager") is None
        assert authenticate("0611111111", PASSWORD, tenant_a.id, "client").id == portal_user_a.id

    def test_unknown_user_type(self, db_session, tenant_a):
        with pytest.raises(ValueError):
            authenticate("x", PASSWORD, tenant_a.id, "supplier")

    def test_last_login_is_recorded(self, db_session, tenant_a, admin_a):
        user = authenticate("admin@atlas.test", PASSWORD, tenant_a.id)
        assert user.last_login_at is not None


class TestUsers:

    def test_login_fields_are_unique_per_tenant(self, db_session, tenant_a, tenant_b, admin_a):
        with pytest.raises(ConflictError):
            user_service.create_user(tenant_a.id, name="Dup", email="admin@atlas.test", password=PASSWORD)
        # Same email in another tenant is fine
        user_service.create_user(tenant_b.id, name="Other", email="admin@atlas.test", password=PASSWORD)

    def test_a_login_field_is_required(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            user_service.create_user(tenant_a.id, name="Nobody", password=PASSWORD)

    def test_client_account_needs_client(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            user_service.create_user(tenant_a.id, name="Portal", username="portal", password=PASSWORD, role="client")

    def test_unknown_role(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            user_service.create_user(tenant_a.id, name="X", username="x", password=PASSWORD, role="cashier")


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, admin_a):
        session, token = create_session(user_id=admin_a.id)
        assert session.token_hash == hash_token(token)
        assert session.token_hash != token
        assert len(token) == 64

    def test_session_carries_tenant(self, db_session, tenant_a, admin_a):
        _, token = create_session(user_id=admin_a.id)
        context = validate_session(token)
        assert context.tenant_id == tenant_a.id
        assert context.user.id == admin_a.id
        assert context.role == "admin"
        assert context.client_id is None

    def test_portal_context_exposes_client(self, db_session, client_a, portal_user_a):
        _, token = create_session(user_id=portal_user_a.id)
        assert validate_session(token).client_id == client_a.id

    def test_revoked_session_is_invalid(self, db_session, admin_a):
        _, token = create_session(user_id=admin_a.id)
        assert revoke_session(token) is True
        assert validate_session(token) is None
        assert revoke_session(token) is False

    def test_idle_session_is_revoked(self, db_session, admin_a):
        session, token = create_session(user_id=admin_a.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_deactivation_revokes_sessions(self, db_session, tenant_a, admin_a):
        _, token = create_session(user_id=admin_a.id)
        user_service.set_user_active(tenant_a.id, admin_a.id, False)
        assert validate_session(token) is None

    def test_inactive_user_gets_no_session(self, db_session, tenant_a, admin_a):
        user_service.set_user_active(tenant_a.id, admin_a.id, False)
        with pytest.raises(ValueError):
            create_session(user_id=admin_a.id)
