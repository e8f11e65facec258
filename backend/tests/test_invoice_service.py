# Overview: Pytest coverage for invoices and their status transitions.

from datetime import date

import pytest

from frigo.services import invoice_service
from frigo.services.invoice_service import InvoiceError
from frigo.validation import ValidationError


def _invoice(tenant, client, **kwargs):
    kwargs.setdefault("amount_cents", 120000)
    return invoice_service.create_invoice(tenant.id, client_id=client.id, **kwargs)


def test_invoice_numbers_are_sequential(db_session, tenant_a, client_a):
    first = _invoice(tenant_a, client_a)
    second = _invoice(tenant_a, client_a)
    year = first.created_at.year
    assert first.number == f"FAC-{year}-0001"
    assert second.number == f"FAC-{year}-0002"
    assert first.client_name == "Domaine Benali"


def test_new_invoice_must_be_draft_or_sent(db_session, tenant_a, client_a):
    with pytest.raises(ValidationError):
        _invoice(tenant_a, client_a, status="paid")


def test_status_transitions(db_session, tenant_a, client_a):
    invoice = _invoice(tenant_a, client_a)
    invoice = invoice_service.update_invoice(tenant_a.id, invoice.id, {"status": "sent"})
    assert invoice.status == "sent"

    with pytest.raises(InvoiceError):
        invoice_service.update_invoice(tenant_a.id, invoice.id, {"status": "draft"})

    invoice = invoice_service.update_invoice(tenant_a.id, invoice.id, {"status": "paid"})
    assert invoice.paid_at is not None


def test_amount_locked_after_draft(db_session, tenant_a, client_a):
    invoice = _invoice(tenant_a, client_a, status="sent")
    with pytest.raises(InvoiceError):
        invoice_service.update_invoice(tenant_a.id, invoice.id, {"amount_cents": 1})
    with pytest.raises(InvoiceError):
        invoice_service.delete_invoice(tenant_a.id, invoice.id)


def test_draft_can_be_deleted(db_session, tenant_a, client_a):
    invoice = _invoice(tenant_a, client_a)
    invoice_service.delete_invoice(tenant_a.id, invoice.id)
    assert invoice_service.list_invoices(tenant_a.id) == []


def test_mark_overdue_only_moves_sent_invoices_past_due(db_session, tenant_a, client_a):
    late = _invoice(tenant_a, client_a, status="sent", due_date="2025-03-31")
    on_time = _invoice(tenant_a, client_a, status="sent", due_date="2025-04-30")
    draft = _invoice(tenant_a, client_a, due_date="2025-03-01")

    updated = invoice_service.mark_overdue(tenant_a.id, today=date(2025, 4, 1))

    assert [i.id for i in updated] == [late.id]
    assert invoice_service.get_invoice(tenant_a.id, on_time.id).status == "sent"
    assert invoice_service.get_invoice(tenant_a.id, draft.id).status == "draft"


def test_totals_by_status(db_session, tenant_a, client_a):
    _invoice(tenant_a, client_a, amount_cents=1000)
    _invoice(tenant_a, client_a, amount_cents=2000, status="sent")
    _invoice(tenant_a, client_a, amount_cents=3000, status="sent")

    totals = invoice_service.invoice_totals(tenant_a.id)
    assert totals["draft"] == {"count": 1, "amount_cents": 1000}
    assert totals["sent"] == {"count": 2, "amount_cents": 5000}
    assert totals["paid"] == {"count": 0, "amount_cents": 0}
