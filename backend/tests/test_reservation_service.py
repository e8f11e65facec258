# Overview: Pytest coverage for reservations, deposits and partial payments.

from datetime import datetime

import pytest

from frigo.models import CashMovement
from frigo.services import cash_service, reservation_service
from frigo.services.cash_service import CashError
from frigo.services.reservation_service import (
    ReservationError,
    payment_priority,
    payment_status,
    payment_summary,
    reservation_to_dict,
    upcoming_payments,
)
from frigo.services.settings_service import update_settings
from frigo.services.tenant_service import TenantAccessError
from frigo.validation import ValidationError


def _reserve(tenant, client, crates=10, **kwargs):
    return reservation_service.create_reservation(
        tenant.id, client_id=client.id, reserved_crates=crates, **kwargs
    )


class TestCreateReservation:

    def test_deposit_snapshot(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        assert reservation.status == "REQUESTED"
        assert reservation.reference.startswith("RES-")
        assert reservation.client_name == "Domaine Benali"
        assert reservation.deposit_required_cents == 100000
        assert reservation.empty_crates_needed == 10

    def test_empty_crates_cannot_exceed_reserved(self, db_session, tenant_a, client_a):
        with pytest.raises(ValidationError):
            _reserve(tenant_a, client_a, crates=10, empty_crates_needed=11)

    def test_crates_must_be_positive(self, db_session, tenant_a, client_a):
        with pytest.raises(ValidationError):
            _reserve(tenant_a, client_a, crates=0)

    def test_client_of_another_tenant_is_refused(self, db_session, tenant_a, client_b):
        with pytest.raises(TenantAccessError):
            reservation_service.create_reservation(tenant_a.id, client_id=client_b.id, reserved_crates=5)


class TestLifecycle:

    def test_approve_then_close(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        reservation = reservation_service.approve_reservation(tenant_a.id, reservation.id)
        assert reservation.status == "APPROVED"
        assert reservation.approved_at is not None

        reservation = reservation_service.close_reservation(tenant_a.id, reservation.id)
        assert reservation.status == "CLOSED"

    def test_refuse_keeps_reason(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        reservation = reservation_service.refuse_reservation(tenant_a.id, reservation.id, "Chambres pleines")
        assert reservation.status == "REFUSED"
        assert reservation.refusal_reason == "Chambres pleines"

    def test_refused_reservation_cannot_be_approved(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        reservation_service.refuse_reservation(tenant_a.id, reservation.id, "Chambres pleines")
        with pytest.raises(ReservationError):
            reservation_service.approve_reservation(tenant_a.id, reservation.id)

    def test_refusal_requires_reason(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        with pytest.raises(ValidationError):
            reservation_service.refuse_reservation(tenant_a.id, reservation.id, "  ")


class TestPartialPayments:

    def test_partial_then_full_payment(self, db_session, tenant_a, client_a, admin_a):
        reservation = _reserve(tenant_a, client_a)

        result = cash_service.record_partial_payment(
            tenant_a.id, reservation_id=reservation.id, amount_cents=40000, user=admin_a
        )
        assert result["remaining_cents"] == 60000
        assert result["payment_status"] == "partial"
        assert result["movement"].reference.startswith("PARTIAL-")
        assert result["reservation"].last_payment_cents == 40000

        result = cash_service.record_partial_payment(
            tenant_a.id, reservation_id=reservation.id, amount_cents=60000, user=admin_a
        )
        assert result["remaining_cents"] == 0
        assert result["payment_status"] == "paid"

        linked = db_session.query(CashMovement).filter_by(reservation_id=reservation.id).count()
        assert linked == 2

    def test_overpayment_is_refused(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        with pytest.raises(ValidationError):
            cash_service.record_partial_payment(tenant_a.id, reservation_id=reservation.id, amount_cents=100001)
        assert db_session.query(CashMovement).count() == 0

    def test_fully_paid_reservation_refuses_payment(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a, crates=1)
        cash_service.record_partial_payment(tenant_a.id, reservation_id=reservation.id, amount_cents=10000)
        with pytest.raises(CashError):
            cash_service.record_partial_payment(tenant_a.id, reservation_id=reservation.id, amount_cents=1)

    def test_closed_reservation_refuses_payment(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        reservation_service.refuse_reservation(tenant_a.id, reservation.id, "Chambres pleines")
        with pytest.raises(CashError):
            cash_service.record_partial_payment(tenant_a.id, reservation_id=reservation.id, amount_cents=1000)


class TestPaymentView:

    def test_priority_thresholds(self):
        assert payment_priority(100_001) == "high"
        assert payment_priority(100_000) == "medium"
        assert payment_priority(50_001) == "medium"
        assert payment_priority(50_000) == "low"

    def test_status_becomes_overdue_after_due_date(self, db_session, tenant_a, client_a):
        reservation = _reserve(tenant_a, client_a)
        reservation.created_at = datetime(2025, 6, 1, 9, 0)
        db_session.commit()

        assert payment_status(reservation, datetime(2025, 9, 30).date()) == "pending"
        assert payment_status(reservation, datetime(2025, 10, 2).date()) == "overdue"

        summary = payment_summary(reservation, now=datetime(2025, 9, 21, 12, 0))
        assert summary["due_date"] == "2025-10-01"
        assert summary["days_until_due"] == 10
        assert summary["priority"] == "medium"

    def test_due_date_follows_tenant_local_day(self, db_session, tenant_a, client_a):
        update_settings(tenant_a.id, {"timezone": "Africa/Casablanca"})
        reservation = _reserve(tenant_a, client_a)
        # 2025-06-01 00:30 in Casablanca: summer season
        reservation.created_at = datetime(2025, 5, 31, 23, 30)
        db_session.commit()

        assert reservation_to_dict(reservation, "Africa/Casablanca")["due_date"] == "2025-10-01"
        assert reservation_to_dict(reservation)["due_date"] == "2025-11-30"
        assert payment_status(reservation, datetime(2025, 10, 2).date(), "Africa/Casablanca") == "overdue"

        upcoming = upcoming_payments(tenant_a.id, now=datetime(2025, 9, 21, 12, 0))
        assert upcoming["payments"][0]["due_date"] == "2025-10-01"

    def test_upcoming_payments_lists_open_unpaid_reservations(self, db_session, tenant_a, client_a):
        owed = _reserve(tenant_a, client_a, crates=3)
        paid = _reserve(tenant_a, client_a, crates=1)
        refused = _reserve(tenant_a, client_a, crates=2)
        cash_service.record_partial_payment(tenant_a.id, reservation_id=paid.id, amount_cents=10000)
        reservation_service.refuse_reservation(tenant_a.id, refused.id, "Chambres pleines")

        result = upcoming_payments(tenant_a.id)
        assert [p["reservation_id"] for p in result["payments"]] == [owed.id]
        assert result["total_remaining_cents"] == 30000
        assert result["overdue_count"] == 0
