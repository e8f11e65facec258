# Overview: End-to-end API flows through the Flask test client.

"""
API Flow Tests

Verifies the main desk workflows over HTTP:
- reservation request, approval and deposit instalments
- empty-crate loan with its caution
- cash movements and day closure
- invoices, settings and audit trail
"""

from sqlalchemy.orm import configure_mappers

from frigo import create_app
from frigo.models import User


class TestReservationFlow:

    def test_request_approve_and_pay(self, client, admin_headers, client_a):
        resp = client.post("/api/reservations", json={
            "client_id": client_a.id, "reserved_crates": 10,
        }, headers=admin_headers)
        assert resp.status_code == 201
        reservation = resp.json["reservation"]
        assert reservation["deposit_required_cents"] == 100000
        assert reservation["reference"].startswith("RES-")

        resp = client.post(f"/api/reservations/{reservation['id']}/approve", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["reservation"]["status"] == "APPROVED"

        resp = client.post("/api/cash/partial-payments", json={
            "reservation_id": reservation["id"], "amount_cents": 40000,
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["remaining_cents"] == 60000
        assert resp.json["payment_status"] == "partial"
        assert resp.json["movement"]["reference"].startswith("PARTIAL-")

        upcoming = client.get("/api/reservations/upcoming-payments", headers=admin_headers).json
        assert upcoming["count"] == 1
        assert upcoming["total_remaining_cents"] == 60000

    def test_overpayment_is_400(self, client, admin_headers, client_a):
        reservation = client.post("/api/reservations", json={
            "client_id": client_a.id, "reserved_crates": 1,
        }, headers=admin_headers).json["reservation"]

        resp = client.post("/api/cash/partial-payments", json={
            "reservation_id": reservation["id"], "amount_cents": 10001,
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_refusal_needs_reason(self, client, admin_headers, client_a):
        reservation = client.post("/api/reservations", json={
            "client_id": client_a.id, "reserved_crates": 1,
        }, headers=admin_headers).json["reservation"]

        resp = client.post(f"/api/reservations/{reservation['id']}/refuse", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_seasons_table(self, client, admin_headers):
        seasons = client.get("/api/reservations/seasons", headers=admin_headers).json["seasons"]
        assert len(seasons) == 4


class TestLoanFlow:

    def test_loan_return_and_caution(self, client, admin_headers, client_a):
        resp = client.post("/api/loans", json={"client_id": client_a.id, "crates": 2}, headers=admin_headers)
        assert resp.status_code == 201
        loan = resp.json["loan"]

        pool = client.get("/api/loans/pool", headers=admin_headers).json
        assert pool["pool"]["loaned"] == 2

        resp = client.post(f"/api/loans/{loan['id']}/return", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["loan"]["status"] == "returned"

    def test_unknown_loan_is_404(self, client, admin_headers):
        assert client.get("/api/loans/99999", headers=admin_headers).status_code == 404


class TestCashFlow:

    def test_movement_and_close_day(self, client, admin_headers):
        resp = client.post("/api/cash/movements", json={
            "type": "in", "amount_cents": 40000, "reason": "Vente de caisses",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["movement"]["reference"].startswith("ENT-")

        overview = client.get("/api/cash/overview", headers=admin_headers).json
        assert overview["overview"]["balance_cents"] == 40000

        resp = client.post("/api/cash/close-day", json={"actual_cash_cents": 39500}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["closure"]["expected_cash_cents"] == 40000
        assert resp.json["closure"]["difference_cents"] == -500

        resp = client.post("/api/cash/close-day", json={"actual_cash_cents": 40000}, headers=admin_headers)
        assert resp.status_code == 409

        resp = client.post("/api/cash/movements", json={
            "type": "in", "amount_cents": 100, "reason": "Après clôture",
        }, headers=admin_headers)
        assert resp.status_code == 409

    def test_close_day_requires_count(self, client, admin_headers):
        resp = client.post("/api/cash/close-day", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_cash_out_above_balance_is_refused(self, client, admin_headers):
        resp = client.post("/api/cash/movements", json={
            "type": "out", "amount_cents": 1000, "reason": "Achat carburant",
        }, headers=admin_headers)
        assert resp.status_code == 400


class TestInvoiceFlow:

    def test_create_and_list(self, client, admin_headers, client_a):
        resp = client.post("/api/invoices", json={
            "client_id": client_a.id, "amount_cents": 250000,
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["invoice"]["number"].startswith("FAC-")

        body = client.get("/api/invoices", headers=admin_headers).json
        assert len(body["invoices"]) == 1
        assert body["totals"]["draft"]["amount_cents"] == 250000


class TestSettingsAndLogs:

    def test_every_user_reads_settings(self, client, viewer_headers):
        settings = client.get("/api/settings", headers=viewer_headers).json["settings"]
        assert settings["caution_per_crate_cents"] == 10000

    def test_admin_patches_settings(self, client, admin_headers):
        resp = client.patch("/api/settings", json={"crates_per_pallet": 48}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["settings"]["crates_per_pallet"] == 48

        resp = client.patch("/api/settings", json={"locale": "en"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_writes_are_audited(self, client, admin_headers, client_a):
        client.post("/api/reservations", json={"client_id": client_a.id, "reserved_crates": 3}, headers=admin_headers)

        logs = client.get("/api/logs?resource=reservation", headers=admin_headers).json["logs"]
        assert [(entry["action"], entry["user_name"]) for entry in logs] == [("CREATE", "Admin A")]


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_version(self, client, db_session):
        assert client.get("/version").status_code == 200

    def test_app_factory_registers_every_blueprint(self):
        app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
        assert set(app.blueprints) == {
            "system", "auth", "admin", "clients", "reservations", "loans",
            "receptions", "warehouse", "billing", "cash", "settings", "logs",
        }

    def test_mappers_configure(self, db_session):
        configure_mappers()
        assert [c.name for c in User.client.property.local_columns] == ["client_id"]
