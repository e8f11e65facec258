# Overview: Atomic document numbering (invoices, cash references, tickets).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from frigo.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


# document_type -> (prefix, pad)
DOCUMENT_FORMATS = {
    "INVOICE": ("FAC", 4),
    "RESERVATION": ("RES", 4),
    "LOAN": ("PRET", 4),
    "RECEPTION": ("REC", 4),
    "PAYMENT": ("PAY", 3),
    "PARTIAL_PAYMENT": ("PARTIAL", 3),
    "CASH_IN": ("ENT", 3),
    "CASH_OUT": ("SORT", 3),
    "CAUTION_REFUND": ("REMB", 3),
}


def format_document_number(prefix: str, year: int, number: int, pad: int = 4) -> str:
    """
    FAC, 2025, 7 -> "FAC-2025-0007".

    Numbers wider than pad are not truncated.
    """
    if number < 1:
        raise DocumentSequenceError("number must be >= 1")
    return f"{prefix}-{year}-{number:0{pad}d}"


def _current_value(tenant_id: int, document_type: str, year: int) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(tenant_id=tenant_id, document_type=document_type, year=year)
        .scalar()
    )


def allocate_number(*, tenant_id: int, document_type: str, year: int) -> int:
    """
    Atomically reserve the next counter value for (tenant, type, year).

    The counter row is bumped with one UPDATE ... SET next_number = next_number + 1,
    so two concurrent callers can never read the same value. The first number
    of a year inserts the row; a concurrent insert loses on the unique
    constraint and falls back to the UPDATE.

    Runs inside the caller's transaction (flush only); the caller commits.
    """
    if not tenant_id:
        raise DocumentSequenceError("tenant_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_value(tenant_id, document_type, year) - 1

    seq = DocumentSequence(tenant_id=tenant_id, document_type=document_type, year=year, next_number=2)
    try:
        with db.session.begin_nested():
            db.session.add(seq)
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {document_type} number")
        return _current_value(tenant_id, document_type, year) - 1


def next_document_number(
    *,
    tenant_id: int,
    document_type: str,
    prefix: str | None = None,
    pad: int | None = None,
    year: int | None = None,
) -> str:
    """
    Allocate and format the next number, e.g. next_document_number(tenant_id=1,
    document_type="INVOICE") -> "FAC-2025-0001".

    prefix/pad default to DOCUMENT_FORMATS for the type.
    """
    default_prefix, default_pad = DOCUMENT_FORMATS.get(document_type, (document_type, 4))
    prefix = prefix or default_prefix
    pad = pad or default_pad
    year = year or utcnow().year

    n = allocate_number(tenant_id=tenant_id, document_type=document_type, year=year)
    return format_document_number(prefix, year, n, pad)
