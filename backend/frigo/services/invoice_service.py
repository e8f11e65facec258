# Overview: Client invoices; numbering, status lifecycle and overdue sweep.

"""
Invoice Service

LIFECYCLE:
    draft -> sent -> paid
    sent  -> overdue -> paid      (mark_overdue sweep, or payment)

- the number FAC-YYYY-NNNN is allocated once and never reused, even when a
  draft is deleted
- amount and client are editable only on drafts
- paid is set by cash_service.record_payment once the linked receipts cover
  the amount, or manually by a manager
"""

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Invoice, Client, CashMovement, INVOICE_STATUSES
from ..validation import ValidationError, require_amount_cents
from frigo.time_utils import utcnow, parse_iso_date, business_date
from .sequence_service import next_document_number
from .settings_service import get_settings
from .tenant_service import require_in_tenant


class InvoiceError(Exception):
    """Raised for invoice lifecycle violations."""
    pass


ALLOWED_TRANSITIONS = {
    "draft": {"sent", "paid"},
    "sent": {"paid", "overdue"},
    "overdue": {"paid"},
    "paid": set(),
}


def _parse_due_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("due_date must be an ISO-8601 date")


def create_invoice(
    tenant_id: int,
    *,
    client_id: int,
    amount_cents,
    due_date=None,
    description: str | None = None,
    status: str = "draft",
    user_id: int | None = None,
) -> Invoice:
    client = require_in_tenant(Client, client_id, tenant_id, "Client")
    amount = require_amount_cents(amount_cents)
    if status not in ("draft", "sent"):
        raise ValidationError("New invoices start as draft or sent")

    invoice = Invoice(
        tenant_id=tenant_id,
        number=next_document_number(tenant_id=tenant_id, document_type="INVOICE"),
        client_id=client.id,
        client_name=client.name,
        amount_cents=amount,
        status=status,
        due_date=_parse_due_date(due_date),
        description=description,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(invoice)
    db.session.commit()
    return invoice


def get_invoice(tenant_id: int, invoice_id: int) -> Invoice:
    return require_in_tenant(Invoice, invoice_id, tenant_id, "Invoice")


def list_invoices(tenant_id: int, *, status: str | None = None, client_id: int | None = None) -> list[Invoice]:
    query = db.session.query(Invoice).filter(Invoice.tenant_id == tenant_id)
    if status:
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
        query = query.filter(Invoice.status == status)
    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def set_invoice_status(invoice: Invoice, status: str) -> None:
    """Apply a status transition in the caller's transaction."""
    if status not in INVOICE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
    if status == invoice.status:
        return
    if status not in ALLOWED_TRANSITIONS[invoice.status]:
        raise InvoiceError(f"Cannot move invoice {invoice.number} from {invoice.status} to {status}")
    invoice.status = status
    if status == "paid":
        invoice.paid_at = utcnow()


def update_invoice(tenant_id: int, invoice_id: int, data: dict) -> Invoice:
    invoice = get_invoice(tenant_id, invoice_id)

    unknown = set(data) - {"client_id", "amount_cents", "due_date", "description", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if ("client_id" in data or "amount_cents" in data) and invoice.status != "draft":
        raise InvoiceError("Client and amount can only change on draft invoices")

    if "client_id" in data:
        client = require_in_tenant(Client, data["client_id"], tenant_id, "Client")
        invoice.client_id = client.id
        invoice.client_name = client.name
    if "amount_cents" in data:
        invoice.amount_cents = require_amount_cents(data["amount_cents"])
    if "due_date" in data:
        invoice.due_date = _parse_due_date(data["due_date"])
    if "description" in data:
        invoice.description = data["description"]
    if "status" in data:
        set_invoice_status(invoice, data["status"])

    db.session.commit()
    return invoice


def delete_invoice(tenant_id: int, invoice_id: int) -> None:
    invoice = get_invoice(tenant_id, invoice_id)
    if invoice.status != "draft":
        raise InvoiceError("Only draft invoices can be deleted")
    db.session.delete(invoice)
    db.session.commit()


def paid_cents(invoice: Invoice) -> int:
    """Sum of receipts linked to the invoice."""
    total = db.session.query(db.func.coalesce(db.func.sum(CashMovement.amount_cents), 0)).filter(
        CashMovement.tenant_id == invoice.tenant_id,
        CashMovement.invoice_id == invoice.id,
        CashMovement.type == "in",
    ).scalar()
    return int(total or 0)


def invoice_to_dict(invoice: Invoice) -> dict:
    data = invoice.to_dict()
    paid = paid_cents(invoice)
    data["paid_cents"] = paid
    data["remaining_cents"] = max(0, invoice.amount_cents - paid)
    return data


def mark_overdue(tenant_id: int, today: date | None = None) -> list[Invoice]:
    """Move sent invoices whose due date has passed to overdue."""
    if today is None:
        today = business_date(utcnow(), get_settings(tenant_id).timezone)
    invoices = db.session.query(Invoice).filter(
        Invoice.tenant_id == tenant_id,
        Invoice.status == "sent",
        Invoice.due_date.isnot(None),
        Invoice.due_date < today,
    ).all()
    for invoice in invoices:
        invoice.status = "overdue"
    db.session.commit()
    return invoices


def invoice_totals(tenant_id: int) -> dict:
    rows = (
        db.session.query(Invoice.status, db.func.count(Invoice.id), db.func.coalesce(db.func.sum(Invoice.amount_cents), 0))
        .filter(Invoice.tenant_id == tenant_id)
        .group_by(Invoice.status)
        .all()
    )
    totals = {status: {"count": 0, "amount_cents": 0} for status in INVOICE_STATUSES}
    for status, count, amount in rows:
        totals[status] = {"count": int(count), "amount_cents": int(amount)}
    return totals
