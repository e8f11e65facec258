# Overview: Pytest coverage for empty-crate loans, the crate pool and cautions.

import pytest

from frigo.models import CautionRecord
from frigo.services import cash_service, loan_service
from frigo.services.cash_service import CashError
from frigo.services.loan_service import LoanError, validate_caution_amount
from frigo.validation import ValidationError


class TestCreateLoan:

    def test_full_deposit_by_default(self, db_session, tenant_a, client_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=20)
        assert loan.ticket_id.startswith("PRET-")
        assert loan.status == "open"
        assert loan.deposit_required_cents == 200000
        assert loan.deposit_paid_cents == 200000

        caution = db_session.query(CautionRecord).filter_by(loan_id=loan.id).one()
        assert caution.status == "held"
        assert caution.amount_cents == 200000

    def test_check_deposit_needs_reference(self, db_session, tenant_a, client_a):
        with pytest.raises(ValidationError):
            loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=5, deposit_type="check")

        loan = loan_service.create_loan(
            tenant_a.id, client_id=client_a.id, crates=5, deposit_type="check", deposit_reference="CHQ-778812"
        )
        assert loan.deposit_reference == "CHQ-778812"

    def test_partial_deposit_bounds(self, db_session, tenant_a, client_a):
        with pytest.raises(ValidationError):
            loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=1, deposit_paid_cents=10001)


class TestPool:

    def test_pool_tracks_open_loans(self, db_session, tenant_a, client_a):
        loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=460)
        pool = loan_service.pool_status(tenant_a.id)
        assert pool["loaned"] == 460
        assert pool["available"] == 40
        assert pool["alert"] is True

    def test_pool_cannot_be_overdrawn(self, db_session, tenant_a, client_a):
        loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=450)
        with pytest.raises(LoanError):
            loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=51)

    def test_update_checks_pool_without_counting_itself(self, db_session, tenant_a, client_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=400)
        loan = loan_service.update_loan(tenant_a.id, loan.id, {"crates": 500, "deposit_paid_cents": 0})
        assert loan.crates == 500
        with pytest.raises(LoanError):
            loan_service.update_loan(tenant_a.id, loan.id, {"crates": 501})


class TestReturn:

    def test_return_refused_while_deposit_remains(self, db_session, tenant_a, client_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=2, deposit_paid_cents=5000)
        with pytest.raises(LoanError):
            loan_service.return_loan(tenant_a.id, loan.id)

    def test_return_releases_caution_for_refund(self, db_session, tenant_a, client_a, admin_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=2)
        loan = loan_service.return_loan(tenant_a.id, loan.id)
        assert loan.status == "returned"
        assert loan.returned_at is not None

        caution = db_session.query(CautionRecord).filter_by(loan_id=loan.id).one()
        assert caution.status == "to_refund"

        # The drawer needs the cash before paying it back
        cash_service.record_movement(tenant_a.id, type="in", amount_cents=20000, reason="Caution encaissée")
        caution, movement, _ = cash_service.refund_caution(tenant_a.id, caution_id=caution.id, user=admin_a)
        assert caution.status == "refunded"
        assert caution.refund_cents == 20000
        assert movement.reference.startswith("REMB-")
        assert movement.caution_id == caution.id

    def test_held_caution_cannot_be_refunded(self, db_session, tenant_a, client_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=2)
        caution = db_session.query(CautionRecord).filter_by(loan_id=loan.id).one()
        with pytest.raises(CashError):
            cash_service.refund_caution(tenant_a.id, caution_id=caution.id)

    def test_returned_loan_is_frozen(self, db_session, tenant_a, client_a):
        loan = loan_service.create_loan(tenant_a.id, client_id=client_a.id, crates=2)
        loan_service.return_loan(tenant_a.id, loan.id)
        with pytest.raises(LoanError):
            loan_service.update_loan(tenant_a.id, loan.id, {"notes": "x"})
        with pytest.raises(LoanError):
            loan_service.delete_loan(tenant_a.id, loan.id)


class TestCautionCheck:

    def test_amount_covering_whole_crates(self):
        result = validate_caution_amount(30000, 10000, 10)
        assert result == {"valid": True, "errors": [], "warnings": [], "crates": 3}

    def test_amount_with_remainder_warns(self):
        result = validate_caution_amount(25000, 10000, 10)
        assert result["valid"] and result["crates"] == 2 and result["warnings"]

    def test_amount_above_maximum(self):
        assert not validate_caution_amount(110000, 10000, 10)["valid"]

    def test_rate_not_configured(self):
        assert not validate_caution_amount(1000, 0, 10)["valid"]
