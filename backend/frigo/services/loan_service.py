# Overview: Service-layer operations for empty-crate loans; encapsulates business logic and database work.

"""
Empty-Crate Loan Service

WHY: Clients borrow empty crates to harvest into, against a per-crate
deposit. The site owns a finite pool of crates.

DESIGN:
- deposit required = crates x caution rate (tenant setting)
- a loan and its caution record are created in one transaction
- a loan is returned only once its deposit is fully paid; returning it
  marks the caution "to_refund" so the cash desk can pay it back
- pool availability = pool total - crates on open loans
  (pool total 0 means the pool is not tracked)
"""

from __future__ import annotations

from ..extensions import db
from ..models import EmptyCrateLoan, CautionRecord, Client, DEPOSIT_TYPES
from ..validation import ValidationError, require_positive_int, coerce_int
from frigo.time_utils import utcnow
from .concurrency import run_with_retry
from .sequence_service import next_document_number
from .settings_service import get_settings
from .tenant_service import require_in_tenant


class LoanError(Exception):
    """Raised for loan lifecycle and pool violations."""
    pass


def crates_on_loan(tenant_id: int, exclude_loan_id: int | None = None) -> int:
    query = db.session.query(db.func.coalesce(db.func.sum(EmptyCrateLoan.crates), 0)).filter(
        EmptyCrateLoan.tenant_id == tenant_id,
        EmptyCrateLoan.status == "open",
    )
    if exclude_loan_id is not None:
        query = query.filter(EmptyCrateLoan.id != exclude_loan_id)
    return int(query.scalar() or 0)


def pool_status(tenant_id: int) -> dict:
    settings = get_settings(tenant_id)
    total = settings.empty_crate_pool_total
    loaned = crates_on_loan(tenant_id)
    available = max(0, total - loaned) if total else None
    return {
        "pool_total": total,
        "loaned": loaned,
        "available": available,
        "alert_threshold": settings.empty_crate_alert_threshold,
        "alert": available is not None and available <= settings.empty_crate_alert_threshold,
    }


def _check_availability(tenant_id: int, crates: int, exclude_loan_id: int | None = None) -> None:
    total = get_settings(tenant_id).empty_crate_pool_total
    if not total:
        return
    available = total - crates_on_loan(tenant_id, exclude_loan_id)
    if crates > available:
        raise LoanError(f"Only {max(0, available)} empty crates available")


def validate_caution_amount(amount_cents: int, caution_per_crate_cents: int, max_crates: int) -> dict:
    """
    Check a deposit amount against the per-crate rate.

    Returns {"valid", "errors", "warnings", "crates"}, where crates is how
    many crates the amount covers.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if amount_cents <= 0:
        errors.append("Amount must be greater than 0")
    if caution_per_crate_cents <= 0:
        errors.append("Caution per crate is not configured")
    elif amount_cents > max_crates * caution_per_crate_cents:
        errors.append(f"Amount exceeds the deposit for {max_crates} crates")

    crates = 0
    if not errors:
        crates, remainder = divmod(amount_cents, caution_per_crate_cents)
        if crates == 0:
            warnings.append("Amount does not cover a single crate")
        elif remainder:
            warnings.append(f"Amount covers {crates} crates with {remainder} cents left over")

    return {"valid": not errors, "errors": errors, "warnings": warnings, "crates": crates}


def create_loan(
    tenant_id: int,
    *,
    client_id: int,
    crates,
    deposit_type: str = "cash",
    deposit_reference: str | None = None,
    deposit_paid_cents=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> EmptyCrateLoan:
    """
    Lend empty crates to a client and hold the deposit.

    deposit_paid_cents defaults to the full deposit (paid at the counter).
    A check deposit needs the check number in deposit_reference.
    """
    client = require_in_tenant(Client, client_id, tenant_id, "Client")
    crates = require_positive_int(crates, "crates")
    if deposit_type not in DEPOSIT_TYPES:
        raise ValidationError(f"deposit_type must be one of: {', '.join(DEPOSIT_TYPES)}")
    if deposit_type == "check" and not (deposit_reference or "").strip():
        raise ValidationError("deposit_reference (check number) is required for check deposits")

    settings = get_settings(tenant_id)
    required = crates * settings.caution_per_crate_cents
    if deposit_paid_cents is None:
        paid = required
    else:
        paid = coerce_int(deposit_paid_cents, "deposit_paid_cents")
        if paid < 0 or paid > required:
            raise ValidationError("deposit_paid_cents must be between 0 and the required deposit")

    def _op() -> EmptyCrateLoan:
        _check_availability(tenant_id, crates)
        loan = EmptyCrateLoan(
            tenant_id=tenant_id,
            ticket_id=next_document_number(tenant_id=tenant_id, document_type="LOAN"),
            client_id=client.id,
            client_name=client.name,
            crates=crates,
            deposit_required_cents=required,
            deposit_paid_cents=paid,
            deposit_type=deposit_type,
            deposit_reference=(deposit_reference or "").strip() or None,
            status="open",
            notes=notes,
            created_by_user_id=user_id,
            created_at=utcnow(),
        )
        db.session.add(loan)
        db.session.flush()

        db.session.add(CautionRecord(
            tenant_id=tenant_id,
            client_id=client.id,
            client_name=client.name,
            loan_id=loan.id,
            amount_cents=paid,
            status="held",
        ))
        db.session.commit()
        return loan

    return run_with_retry(_op)


def get_loan(tenant_id: int, loan_id: int) -> EmptyCrateLoan:
    return require_in_tenant(EmptyCrateLoan, loan_id, tenant_id, "Loan")


def list_loans(tenant_id: int, *, status: str | None = None, client_id: int | None = None) -> list[EmptyCrateLoan]:
    query = db.session.query(EmptyCrateLoan).filter(EmptyCrateLoan.tenant_id == tenant_id)
    if status:
        query = query.filter(EmptyCrateLoan.status == status)
    if client_id is not None:
        query = query.filter(EmptyCrateLoan.client_id == client_id)
    return query.order_by(EmptyCrateLoan.created_at.desc(), EmptyCrateLoan.id.desc()).all()


def _held_caution(loan: EmptyCrateLoan) -> CautionRecord | None:
    return db.session.query(CautionRecord).filter(
        CautionRecord.loan_id == loan.id,
        CautionRecord.status == "held",
    ).first()


def update_loan(tenant_id: int, loan_id: int, data: dict) -> EmptyCrateLoan:
    """
    Edit an open loan: crate count, deposit paid, deposit type/reference, notes.

    The held caution record follows the deposit paid.
    """
    loan = get_loan(tenant_id, loan_id)
    if loan.status != "open":
        raise LoanError("Returned loans cannot be edited")

    unknown = set(data) - {"crates", "deposit_paid_cents", "deposit_type", "deposit_reference", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "crates" in data:
        crates = require_positive_int(data["crates"], "crates")
        _check_availability(tenant_id, crates, exclude_loan_id=loan.id)
        loan.crates = crates
        loan.deposit_required_cents = crates * get_settings(tenant_id).caution_per_crate_cents

    if "deposit_paid_cents" in data:
        paid = coerce_int(data["deposit_paid_cents"], "deposit_paid_cents")
        if paid < 0:
            raise ValidationError("deposit_paid_cents must be >= 0")
        loan.deposit_paid_cents = paid
    if loan.deposit_paid_cents > loan.deposit_required_cents:
        raise ValidationError("deposit_paid_cents cannot exceed the required deposit")

    if "deposit_type" in data:
        if data["deposit_type"] not in DEPOSIT_TYPES:
            raise ValidationError(f"deposit_type must be one of: {', '.join(DEPOSIT_TYPES)}")
        loan.deposit_type = data["deposit_type"]
    if "deposit_reference" in data:
        loan.deposit_reference = (data["deposit_reference"] or "").strip() or None
    if loan.deposit_type == "check" and not loan.deposit_reference:
        raise ValidationError("deposit_reference (check number) is required for check deposits")
    if "notes" in data:
        loan.notes = data["notes"]

    caution = _held_caution(loan)
    if caution is not None:
        caution.amount_cents = loan.deposit_paid_cents

    db.session.commit()
    return loan


def return_loan(tenant_id: int, loan_id: int) -> EmptyCrateLoan:
    """
    Mark a loan returned.

    Raises LoanError while any deposit remains unpaid.
    """
    loan = get_loan(tenant_id, loan_id)
    if loan.status != "open":
        raise LoanError("Loan is already returned")

    remaining = loan.deposit_remaining_cents
    if remaining > 0:
        raise LoanError(f"Deposit not fully paid: {remaining} cents remaining")

    loan.status = "returned"
    loan.returned_at = utcnow()

    caution = _held_caution(loan)
    if caution is not None:
        caution.status = "to_refund"

    db.session.commit()
    return loan


def delete_loan(tenant_id: int, loan_id: int) -> None:
    """Delete an open loan entered by mistake, together with its held caution."""
    loan = get_loan(tenant_id, loan_id)
    if loan.status != "open":
        raise LoanError("Returned loans cannot be deleted")
    db.session.query(CautionRecord).filter(
        CautionRecord.loan_id == loan.id,
        CautionRecord.status == "held",
    ).delete(synchronize_session=False)
    db.session.delete(loan)
    db.session.commit()


def list_cautions(tenant_id: int, *, status: str | None = None, client_id: int | None = None) -> list[CautionRecord]:
    query = db.session.query(CautionRecord).filter(CautionRecord.tenant_id == tenant_id)
    if status:
        query = query.filter(CautionRecord.status == status)
    if client_id is not None:
        query = query.filter(CautionRecord.client_id == client_id)
    return query.order_by(CautionRecord.created_at.desc(), CautionRecord.id.desc()).all()
