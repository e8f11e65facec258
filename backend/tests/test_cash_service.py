# Overview: Pytest coverage for the cash register service.

"""
Cash Register Tests

Covers:
- Movement validation (errors block, warnings pass through)
- Running balance from the opening balance
- Client payments linked to invoices
- Day closure: totals, reconciliation, single closure per day
- Closed days reject new, edited or deleted movements
"""

from datetime import datetime, timedelta

import pytest

from frigo.models import CashMovement, DayClosure
from frigo.services import cash_service, invoice_service
from frigo.services.cash_service import (
    CashError,
    DayAlreadyClosedError,
    validate_cash_movement,
    validate_reconciliation,
)
from frigo.services.invoice_service import InvoiceError
from frigo.services.settings_service import update_settings
from frigo.validation import ValidationError


def _valid_kwargs(**overrides):
    kwargs = dict(
        type="in",
        amount_cents=10000,
        reason="Vente de caisses",
        reference="ENT-2025-001",
        payment_method="cash",
        current_balance_cents=0,
    )
    kwargs.update(overrides)
    return kwargs


class TestValidateCashMovement:

    def test_valid_movement(self):
        result = validate_cash_movement(**_valid_kwargs())
        assert result.is_valid
        assert result.warnings == []

    def test_zero_amount_is_an_error(self):
        result = validate_cash_movement(**_valid_kwargs(amount_cents=0))
        assert "Amount must be greater than 0" in result.errors

    def test_cash_out_above_balance_is_an_error(self):
        result = validate_cash_movement(**_valid_kwargs(type="out", amount_cents=5000, current_balance_cents=4999))
        assert not result.is_valid
        assert any("Insufficient balance" in e for e in result.errors)

    def test_short_reference_and_reason(self):
        result = validate_cash_movement(**_valid_kwargs(reference="AB", reason="abc"))
        assert len(result.errors) == 2

    def test_reference_reused_today(self):
        result = validate_cash_movement(**_valid_kwargs(today_references={"ENT-2025-001"}))
        assert "This reference was already used today" in result.errors

    def test_unknown_payment_method(self):
        result = validate_cash_movement(**_valid_kwargs(payment_method="bitcoin"))
        assert "Invalid payment method" in result.errors

    def test_large_amounts_warn(self):
        result = validate_cash_movement(**_valid_kwargs(
            type="out", amount_cents=600_000, current_balance_cents=1_000_000
        ))
        assert result.is_valid
        assert any("Large cash-out" in w for w in result.warnings)

        result = validate_cash_movement(**_valid_kwargs(amount_cents=10_000_001))
        assert any("Large amount" in w for w in result.warnings)

    def test_rapid_movement_warns(self):
        now = datetime(2025, 6, 1, 10, 0, 0)
        result = validate_cash_movement(**_valid_kwargs(
            last_movement_at=now - timedelta(seconds=10), now=now
        ))
        assert result.is_valid
        assert any("Rapid" in w for w in result.warnings)

        result = validate_cash_movement(**_valid_kwargs(
            last_movement_at=now - timedelta(seconds=31), now=now
        ))
        assert result.warnings == []


class TestValidateReconciliation:

    def test_exact_match(self):
        result = validate_reconciliation(100000, 100000)
        assert result.is_valid and result.warnings == []

    def test_small_gap_warns(self):
        result = validate_reconciliation(100000, 99500)
        assert result.is_valid
        assert result.warnings

    def test_large_gap_is_an_error(self):
        result = validate_reconciliation(100000, 98000)
        assert not result.is_valid


class TestBalance:

    def test_balance_starts_from_opening_balance(self, db_session, tenant_a, admin_a):
        update_settings(tenant_a.id, {"initial_cash_balance_cents": 50000})

        cash_service.record_movement(
            tenant_a.id, type="in", amount_cents=20000, reason="Vente de caisses", user=admin_a
        )
        cash_service.cash_out(tenant_a.id, amount_cents=5000, reason="Achat carburant", user=admin_a)

        overview = cash_service.get_overview(tenant_a.id)
        assert overview["opening_balance_cents"] == 50000
        assert overview["total_in_cents"] == 20000
        assert overview["total_out_cents"] == 5000
        assert overview["balance_cents"] == 65000
        assert overview["movement_count"] == 2
        assert overview["day_closed"] is False

    def test_references_are_generated(self, db_session, tenant_a):
        movement, _ = cash_service.record_movement(
            tenant_a.id, type="in", amount_cents=1000, reason="Vente de caisses"
        )
        assert movement.reference.startswith("ENT-")
        assert movement.user_id is None

    def test_cash_out_above_balance_is_refused(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            cash_service.cash_out(tenant_a.id, amount_cents=1, reason="Achat carburant")
        assert db_session.query(CashMovement).count() == 0

    def test_second_movement_reports_rapid_warning(self, db_session, tenant_a):
        cash_service.record_movement(tenant_a.id, type="in", amount_cents=1000, reason="Vente de caisses")
        _, warnings = cash_service.record_movement(
            tenant_a.id, type="in", amount_cents=1000, reason="Vente de caisses"
        )
        assert any("Rapid" in w for w in warnings)


class TestPayments:

    def test_invoice_is_paid_once_payments_cover_it(self, db_session, tenant_a, client_a, admin_a):
        invoice = invoice_service.create_invoice(
            tenant_a.id, client_id=client_a.id, amount_cents=30000, status="sent", user_id=admin_a.id
        )

        movement, _ = cash_service.record_payment(
            tenant_a.id, client_id=client_a.id, amount_cents=10000, invoice_id=invoice.id, user=admin_a
        )
        assert movement.reference.startswith("PAY-")
        assert invoice_service.get_invoice(tenant_a.id, invoice.id).status == "sent"

        cash_service.record_payment(
            tenant_a.id, client_id=client_a.id, amount_cents=20000, invoice_id=invoice.id, user=admin_a
        )
        invoice = invoice_service.get_invoice(tenant_a.id, invoice.id)
        assert invoice.status == "paid"
        assert invoice.paid_at is not None
        assert invoice_service.invoice_to_dict(invoice)["remaining_cents"] == 0

    def test_paid_invoice_refuses_more_payments(self, db_session, tenant_a, client_a):
        invoice = invoice_service.create_invoice(
            tenant_a.id, client_id=client_a.id, amount_cents=1000, status="sent"
        )
        cash_service.record_payment(tenant_a.id, client_id=client_a.id, amount_cents=1000, invoice_id=invoice.id)
        with pytest.raises(InvoiceError):
            cash_service.record_payment(tenant_a.id, client_id=client_a.id, amount_cents=1000, invoice_id=invoice.id)

    def test_payment_requires_client(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            cash_service.record_payment(tenant_a.id, client_id=None, amount_cents=1000)

    def test_linked_payment_cannot_be_deleted(self, db_session, tenant_a, client_a):
        invoice = invoice_service.create_invoice(tenant_a.id, client_id=client_a.id, amount_cents=5000)
        movement, _ = cash_service.record_payment(
            tenant_a.id, client_id=client_a.id, amount_cents=1000, invoice_id=invoice.id
        )
        with pytest.raises(CashError):
            cash_service.delete_movement(tenant_a.id, movement.id)
        with pytest.raises(CashError):
            cash_service.update_movement(tenant_a.id, movement.id, {"amount_cents": 500})


class TestDayClosure:

    def test_close_day_totals_and_reconciliation(self, db_session, tenant_a, admin_a):
        cash_service.record_movement(tenant_a.id, type="in", amount_cents=150000, reason="Vente de caisses")
        cash_service.cash_out(tenant_a.id, amount_cents=50000, reason="Achat carburant")

        closure, reconciliation = cash_service.close_day(
            tenant_a.id, actual_cash_cents=99500, notes="Comptage soir", user=admin_a
        )

        assert closure.total_receipts_cents == 150000
        assert closure.total_payments_cents == 50000
        assert closure.expected_cash_cents == 100000
        assert closure.difference_cents == -500
        assert closure.movement_count == 2
        assert closure.closed_by_name == "Admin A"
        assert reconciliation.is_valid
        assert reconciliation.warnings

        movements = db_session.query(CashMovement).all()
        assert all(m.day_closed and m.closure_id == closure.id for m in movements)

    def test_day_can_only_be_closed_once(self, db_session, tenant_a):
        cash_service.close_day(tenant_a.id, actual_cash_cents=0)
        with pytest.raises(DayAlreadyClosedError):
            cash_service.close_day(tenant_a.id, actual_cash_cents=0)
        assert db_session.query(DayClosure).count() == 1

    def test_closed_day_rejects_movements(self, db_session, tenant_a):
        movement, _ = cash_service.record_movement(
            tenant_a.id, type="in", amount_cents=1000, reason="Vente de caisses"
        )
        cash_service.close_day(tenant_a.id, actual_cash_cents=1000)

        with pytest.raises(DayAlreadyClosedError):
            cash_service.record_movement(tenant_a.id, type="in", amount_cents=1000, reason="Vente de caisses")
        with pytest.raises(DayAlreadyClosedError):
            cash_service.update_movement(tenant_a.id, movement.id, {"notes": "late edit"})
        with pytest.raises(DayAlreadyClosedError):
            cash_service.delete_movement(tenant_a.id, movement.id)

    def test_negative_count_is_refused(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            cash_service.close_day(tenant_a.id, actual_cash_cents=-1)

    def test_closures_are_per_tenant(self, db_session, tenant_a, tenant_b):
        cash_service.close_day(tenant_a.id, actual_cash_cents=0)
        assert cash_service.is_day_closed(tenant_b.id, cash_service.today_for(tenant_b.id)) is False
        cash_service.close_day(tenant_b.id, actual_cash_cents=0)

    def test_day_summary_breaks_down_methods(self, db_session, tenant_a):
        cash_service.record_movement(
            tenant_a.id, type="in", amount_cents=2000, reason="Vente de caisses", payment_method="check",
            reference="CHQ-0001",
        )
        summary = cash_service.day_summary(tenant_a.id)
        assert summary["by_payment_method"]["check"]["in_cents"] == 2000
        assert summary["closure"] is None
        assert len(summary["movements"]) == 1
