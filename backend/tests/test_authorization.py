"""
Authorization tests for Frigo.

Verifies:
- Unauthenticated requests return 401
- Viewer role denied write operations (403)
- Client-portal accounts only see their own reservations
- Admin role can perform privileged operations
"""

import pytest

from frigo.models import SecurityEvent
from frigo.services import client_service, reservation_service

from conftest import PASSWORD


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_returns_token_and_permissions(self, client, admin_a, tenant_a):
        resp = client.post("/api/auth/login", json={
            "tenant": "ATLAS", "login": "admin@atlas.test", "password": PASSWORD,
        })
        assert resp.status_code == 200
        body = resp.json
        assert len(body["token"]) == 64
        assert body["tenant_id"] == tenant_a.id
        assert "CLOSE_CASH_DAY" in body["permissions"]

    def test_bad_credentials_are_logged(self, client, db_session, admin_a, tenant_a):
        resp = client.post("/api/auth/login", json={
            "tenant": "ATLAS", "login": "admin@atlas.test", "password": "Wrong123!",
        })
        assert resp.status_code == 401
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.tenant_id == tenant_a.id

    def test_unknown_tenant(self, client, admin_a):
        resp = client.post("/api/auth/login", json={
            "tenant": "NOPE", "login": "admin@atlas.test", "password": PASSWORD,
        })
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"login": "x"}).status_code == 400

    def test_registration_is_disabled(self, client, db_session):
        assert client.post("/api/auth/register", json={}).status_code == 403

    def test_logout_revokes_token(self, client, admin_headers):
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 200
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

    def test_me_reports_role(self, client, admin_headers):
        body = client.get("/api/auth/me", headers=admin_headers).json
        assert body["role"] == "admin"
        assert body["client_id"] is None


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("GET", "/api/clients"),
            ("GET", "/api/reservations"),
            ("GET", "/api/loans"),
            ("GET", "/api/receptions"),
            ("GET", "/api/warehouse/rooms"),
            ("GET", "/api/invoices"),
            ("GET", "/api/cash/overview"),
            ("POST", "/api/cash/close-day"),
            ("GET", "/api/settings"),
            ("GET", "/api/logs"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/cash/overview", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401


# =============================================================================
# VIEWER DENIED WRITE OPERATIONS (403)
# =============================================================================


class TestViewerDenied:

    def test_viewer_can_read_cash(self, client, viewer_headers):
        assert client.get("/api/cash/overview", headers=viewer_headers).status_code == 200

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/cash/movements"),
            ("POST", "/api/cash/close-day"),
            ("POST", "/api/clients"),
            ("POST", "/api/loans"),
            ("POST", "/api/invoices"),
            ("PATCH", "/api/settings"),
            ("GET", "/api/admin/users"),
            ("GET", "/api/logs"),
        ],
    )
    def test_viewer_cannot_write(self, client, viewer_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=viewer_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_denial_is_logged(self, client, db_session, viewer_headers, viewer_a):
        client.post("/api/cash/close-day", json={"actual_cash_cents": 0}, headers=viewer_headers)
        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == viewer_a.id
        assert event.action == "CLOSE_CASH_DAY"


# =============================================================================
# CLIENT PORTAL
# =============================================================================


class TestClientPortal:

    def test_portal_sees_only_own_reservations(self, client, portal_headers, tenant_a, client_a):
        other = client_service.create_client(tenant_a.id, {"name": "Ferme Idrissi"})
        reservation_service.create_reservation(tenant_a.id, client_id=client_a.id, reserved_crates=4)
        foreign = reservation_service.create_reservation(tenant_a.id, client_id=other.id, reserved_crates=9)

        body = client.get("/api/reservations", headers=portal_headers).json
        assert [r["reserved_crates"] for r in body["reservations"]] == [4]

        resp = client.get(f"/api/reservations/{foreign.id}", headers=portal_headers)
        assert resp.status_code == 404

    def test_portal_reservation_is_forced_to_own_client(self, client, portal_headers, client_a, client_b):
        resp = client.post(
            "/api/reservations",
            json={"client_id": client_b.id, "reserved_crates": 3},
            headers=portal_headers,
        )
        assert resp.status_code == 201
        assert resp.json["reservation"]["client_id"] == client_a.id

    def test_portal_cannot_approve(self, client, portal_headers, tenant_a, client_a):
        reservation = reservation_service.create_reservation(tenant_a.id, client_id=client_a.id, reserved_crates=4)
        resp = client.post(f"/api/reservations/{reservation.id}/approve", headers=portal_headers)
        assert resp.status_code == 403

    def test_portal_cannot_see_cash(self, client, portal_headers):
        assert client.get("/api/cash/overview", headers=portal_headers).status_code == 403


# =============================================================================
# ADMIN
# =============================================================================


class TestAdmin:

    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "name": "Nadia", "email": "nadia@atlas.test", "password": PASSWORD, "role": "manager",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "manager"

    def test_weak_password_is_400(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "name": "Nadia", "email": "nadia@atlas.test", "password": "weak",
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_duplicate_email_is_409(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "name": "Again", "email": "admin@atlas.test", "password": PASSWORD,
        }, headers=admin_headers)
        assert resp.status_code == 409

    def test_admin_cannot_deactivate_self(self, client, admin_headers, admin_a):
        resp = client.patch(f"/api/admin/users/{admin_a.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 400

    def test_role_matrix(self, client, admin_headers):
        roles = client.get("/api/admin/roles", headers=admin_headers).json["roles"]
        assert {r["name"] for r in roles} == {"admin", "manager", "viewer", "client"}
