# Overview: Cash register; movements, client payments, caution refunds and day closure.

"""
Cash Register Service

WHY: The cash desk is the one place money enters and leaves the site. Every
receipt and payout is a CashMovement, and each business day ends with a
closure that freezes the day's movements.

BALANCE:
    balance = opening balance (tenant setting) + sum(in) - sum(out)
    over the movements of the business day.

DESIGN:
- business_date is the tenant-local day (settings.timezone) at record time
- references come from the tenant's document sequence
  (ENT/SORT for manual movements, PAY, PARTIAL, REMB)
- validation returns errors and warnings; errors block the write
- a closure is one transaction: insert the snapshot, mark the day's rows
  with a single UPDATE, then total exactly the rows it marked
- the unique (tenant, business_date) constraint rejects a second closure
- a closed day accepts no new, edited or deleted movement
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    CashMovement,
    DayClosure,
    Client,
    Invoice,
    Reservation,
    CautionRecord,
    MOVEMENT_TYPES,
    PAYMENT_METHODS,
)
from ..validation import ValidationError, require_amount_cents, coerce_int
from frigo.time_utils import utcnow, business_date
from .concurrency import lock_for_update, run_with_retry
from .invoice_service import InvoiceError, paid_cents, set_invoice_status
from .reservation_service import OPEN_STATUSES, payment_status
from .sequence_service import next_document_number
from .settings_service import get_settings
from .tenant_service import require_in_tenant


class CashError(Exception):
    """Raised for cash register rule violations."""
    pass


class DayAlreadyClosedError(CashError):
    """The business day already has a closure."""
    pass


# Thresholds in cents
LARGE_AMOUNT_CENTS = 10_000_000      # 100 000 MAD
LARGE_CASH_OUT_CENTS = 500_000       # 5 000 MAD
RECONCILIATION_TOLERANCE_CENTS = 1_000  # 10 MAD
RAPID_MOVEMENT_SECONDS = 30

MIN_REFERENCE_LENGTH = 3
MIN_REASON_LENGTH = 5


# =============================================================================
# VALIDATION
# =============================================================================

@dataclass
class CashValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def validate_cash_movement(
    *,
    type: str,
    amount_cents: int,
    reason: str | None,
    reference: str | None,
    payment_method: str,
    current_balance_cents: int,
    today_references: set[str] | None = None,
    last_movement_at: datetime | None = None,
    now: datetime | None = None,
) -> CashValidationResult:
    """
    Check a movement against the register's current state.

    Pure function: the caller supplies the balance, today's references and
    the time of the last movement.
    """
    result = CashValidationResult()
    reference = (reference or "").strip()
    reason = (reason or "").strip()

    if type not in MOVEMENT_TYPES:
        result.errors.append(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")

    if not amount_cents or amount_cents <= 0:
        result.errors.append("Amount must be greater than 0")
    elif amount_cents > LARGE_AMOUNT_CENTS:
        result.warnings.append("Large amount detected (> 100 000). Please double-check.")

    if type == "out" and amount_cents and amount_cents > current_balance_cents:
        result.errors.append(f"Insufficient balance. Current balance: {current_balance_cents} cents")

    if len(reference) < MIN_REFERENCE_LENGTH:
        result.errors.append(f"Reference must be at least {MIN_REFERENCE_LENGTH} characters")
    elif today_references and reference in today_references:
        result.errors.append("This reference was already used today")

    if len(reason) < MIN_REASON_LENGTH:
        result.errors.append(f"Reason must be at least {MIN_REASON_LENGTH} characters")

    if payment_method not in PAYMENT_METHODS:
        result.errors.append("Invalid payment method")

    if type == "out" and amount_cents and amount_cents > LARGE_CASH_OUT_CENTS:
        result.warnings.append("Large cash-out. Make sure it is authorized.")

    if last_movement_at is not None:
        elapsed = ((now or utcnow()) - last_movement_at).total_seconds()
        if elapsed < RAPID_MOVEMENT_SECONDS:
            result.warnings.append("Rapid consecutive movement. Check the entry.")

    return result


def validate_reconciliation(
    expected_cents: int,
    actual_cents: int,
    tolerance_cents: int = RECONCILIATION_TOLERANCE_CENTS,
) -> CashValidationResult:
    """A counted drawer may differ from the expected cash by up to tolerance_cents."""
    result = CashValidationResult()
    difference = abs(expected_cents - actual_cents)
    if difference > tolerance_cents:
        result.errors.append(f"Reconciliation gap too large: {difference} cents")
    elif difference > 0:
        result.warnings.append(f"Small reconciliation gap: {difference} cents")
    return result


# =============================================================================
# DAY STATE
# =============================================================================

def today_for(tenant_id: int, now: datetime | None = None) -> date:
    return business_date(now or utcnow(), get_settings(tenant_id).timezone)


def get_closure_for_day(tenant_id: int, day: date) -> DayClosure | None:
    return db.session.query(DayClosure).filter_by(tenant_id=tenant_id, business_date=day).first()


def is_day_closed(tenant_id: int, day: date) -> bool:
    return get_closure_for_day(tenant_id, day) is not None


def _sum(tenant_id: int, movement_type: str, *criteria) -> int:
    total = db.session.query(db.func.coalesce(db.func.sum(CashMovement.amount_cents), 0)).filter(
        CashMovement.tenant_id == tenant_id,
        CashMovement.type == movement_type,
        *criteria,
    ).scalar()
    return int(total or 0)


def day_totals(tenant_id: int, day: date) -> dict:
    on_day = CashMovement.business_date == day
    count = db.session.query(db.func.count(CashMovement.id)).filter(
        CashMovement.tenant_id == tenant_id, on_day
    ).scalar()
    total_in = _sum(tenant_id, "in", on_day)
    total_out = _sum(tenant_id, "out", on_day)
    return {
        "total_in_cents": total_in,
        "total_out_cents": total_out,
        "net_cents": total_in - total_out,
        "movement_count": int(count or 0),
    }


def get_overview(tenant_id: int, day: date | None = None) -> dict:
    """Opening balance, the day's in/out/net, resulting balance and closure flag."""
    settings = get_settings(tenant_id)
    day = day or today_for(tenant_id)
    totals = day_totals(tenant_id, day)
    opening = settings.initial_cash_balance_cents
    return {
        "business_date": day.isoformat(),
        "currency": settings.currency,
        "opening_balance_cents": opening,
        **totals,
        "balance_cents": opening + totals["net_cents"],
        "day_closed": is_day_closed(tenant_id, day),
    }


def current_balance_cents(tenant_id: int, day: date | None = None) -> int:
    return get_overview(tenant_id, day)["balance_cents"]


# =============================================================================
# RECORDING
# =============================================================================

def _user_fields(user) -> dict:
    if user is None:
        return {"user_id": None, "user_name": None}
    return {"user_id": user.id, "user_name": user.name}


def _new_movement(
    tenant_id: int,
    *,
    type: str,
    amount_cents,
    reason: str | None,
    document_type: str,
    reference: str | None = None,
    payment_method: str = "cash",
    user=None,
    **links,
) -> tuple[CashMovement, list[str]]:
    """
    Validate and add a movement to the session (no commit).

    Raises DayAlreadyClosedError on a closed day, ValidationError when the
    movement does not pass validate_cash_movement.
    """
    amount = require_amount_cents(amount_cents)
    now = utcnow()
    day = today_for(tenant_id, now)
    if is_day_closed(tenant_id, day):
        raise DayAlreadyClosedError(f"Cash day {day.isoformat()} is closed")

    reference = (reference or "").strip() or next_document_number(
        tenant_id=tenant_id, document_type=document_type
    )

    today_refs = {
        ref for (ref,) in db.session.query(CashMovement.reference).filter(
            CashMovement.tenant_id == tenant_id,
            CashMovement.business_date == day,
        )
    }
    last_at = db.session.query(db.func.max(CashMovement.created_at)).filter(
        CashMovement.tenant_id == tenant_id
    ).scalar()

    check = validate_cash_movement(
        type=type,
        amount_cents=amount,
        reason=reason,
        reference=reference,
        payment_method=payment_method,
        current_balance_cents=current_balance_cents(tenant_id, day),
        today_references=today_refs,
        last_movement_at=last_at,
        now=now,
    )
    if not check.is_valid:
        db.session.rollback()
        raise ValidationError("; ".join(check.errors))

    movement = CashMovement(
        tenant_id=tenant_id,
        type=type,
        reason=reason.strip(),
        amount_cents=amount,
        payment_method=payment_method,
        reference=reference,
        business_date=day,
        created_at=now,
        day_closed=False,
        **_user_fields(user),
        **links,
    )
    db.session.add(movement)
    db.session.flush()
    return movement, check.warnings


def _client_link(tenant_id: int, client_id) -> dict:
    if client_id in (None, ""):
        return {}
    client = require_in_tenant(Client, client_id, tenant_id, "Client")
    return {"client_id": client.id, "client_name": client.name}


def record_movement(
    tenant_id: int,
    *,
    type: str,
    amount_cents,
    reason: str | None,
    payment_method: str = "cash",
    reference: str | None = None,
    client_id=None,
    notes: str | None = None,
    image_url: str | None = None,
    user=None,
) -> tuple[CashMovement, list[str]]:
    """Manual receipt or payout. Reference defaults to ENT-/SORT-YYYY-NNN."""
    if type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")
    movement, warnings = _new_movement(
        tenant_id,
        type=type,
        amount_cents=amount_cents,
        reason=reason,
        document_type="CASH_IN" if type == "in" else "CASH_OUT",
        reference=reference,
        payment_method=payment_method,
        user=user,
        notes=notes,
        image_url=(image_url or "").strip() or None,
        **_client_link(tenant_id, client_id),
    )
    db.session.commit()
    return movement, warnings


def cash_out(
    tenant_id: int,
    *,
    amount_cents,
    reason: str | None,
    payment_method: str = "cash",
    reference: str | None = None,
    image_url: str | None = None,
    notes: str | None = None,
    user=None,
) -> tuple[CashMovement, list[str]]:
    """Payout with an optional receipt photo."""
    return record_movement(
        tenant_id,
        type="out",
        amount_cents=amount_cents,
        reason=reason,
        payment_method=payment_method,
        reference=reference,
        image_url=image_url,
        notes=notes,
        user=user,
    )


def record_payment(
    tenant_id: int,
    *,
    client_id,
    amount_cents,
    payment_method: str = "cash",
    invoice_id=None,
    reason: str | None = None,
    notes: str | None = None,
    user=None,
) -> tuple[CashMovement, list[str]]:
    """
    Client payment (PAY-YYYY-NNN).

    When linked to an invoice, the invoice becomes paid once its linked
    receipts reach the invoice amount.
    """
    link = _client_link(tenant_id, client_id)
    if not link:
        raise ValidationError("client_id is required")

    invoice = None
    if invoice_id not in (None, ""):
        invoice = require_in_tenant(Invoice, invoice_id, tenant_id, "Invoice")
        if invoice.client_id is not None and invoice.client_id != link["client_id"]:
            raise ValidationError("Invoice belongs to another client")
        if invoice.status == "paid":
            raise InvoiceError(f"Invoice {invoice.number} is already paid")
        link["invoice_id"] = invoice.id

    if not reason:
        reason = f"Payment {invoice.number}" if invoice else f"Payment from {link['client_name']}"

    movement, warnings = _new_movement(
        tenant_id,
        type="in",
        amount_cents=amount_cents,
        reason=reason,
        document_type="PAYMENT",
        payment_method=payment_method,
        user=user,
        notes=notes,
        **link,
    )

    if invoice is not None and paid_cents(invoice) >= invoice.amount_cents:
        set_invoice_status(invoice, "paid")

    db.session.commit()
    return movement, warnings


def record_partial_payment(
    tenant_id: int,
    *,
    reservation_id,
    amount_cents,
    payment_method: str = "cash",
    notes: str | None = None,
    user=None,
) -> dict:
    """
    Pay part of a reservation deposit (PARTIAL-YYYY-NNN).

    The receipt and the reservation's deposit_paid / last payment fields are
    committed together. A concurrent payment on the same reservation trips
    its version counter and the whole operation is retried.
    """
    amount = require_amount_cents(amount_cents)

    def _op() -> dict:
        reservation = require_in_tenant(Reservation, reservation_id, tenant_id, "Reservation")
        reservation = (
            lock_for_update(db.session.query(Reservation).filter(Reservation.id == reservation.id))
            .populate_existing()
            .one()
        )
        if reservation.status not in OPEN_STATUSES:
            raise CashError(f"Reservation {reservation.reference} is {reservation.status}")
        remaining = reservation.deposit_remaining_cents
        if remaining <= 0:
            raise CashError(f"Reservation {reservation.reference} is already fully paid")
        if amount > remaining:
            raise ValidationError(f"Amount exceeds the remaining deposit ({remaining} cents)")

        movement, warnings = _new_movement(
            tenant_id,
            type="in",
            amount_cents=amount,
            reason=f"Partial payment {reservation.reference}",
            document_type="PARTIAL_PAYMENT",
            payment_method=payment_method,
            user=user,
            notes=notes,
            client_id=reservation.client_id,
            client_name=reservation.client_name,
            reservation_id=reservation.id,
        )

        reservation.deposit_paid_cents += amount
        reservation.last_payment_at = movement.created_at
        reservation.last_payment_cents = amount
        db.session.commit()

        return {
            "movement": movement,
            "reservation": reservation,
            "remaining_cents": reservation.deposit_remaining_cents,
            "payment_status": payment_status(
                reservation, movement.business_date, get_settings(tenant_id).timezone
            ),
            "warnings": warnings,
        }

    return run_with_retry(_op)


def refund_caution(
    tenant_id: int,
    *,
    caution_id,
    amount_cents=None,
    payment_method: str = "cash",
    notes: str | None = None,
    user=None,
) -> tuple[CautionRecord, CashMovement, list[str]]:
    """
    Pay back a caution whose loan was returned (REMB-YYYY-NNN).

    amount_cents defaults to the whole caution and may not exceed it.
    """
    caution = require_in_tenant(CautionRecord, caution_id, tenant_id, "Caution")
    if caution.status != "to_refund":
        raise CashError(f"Caution is {caution.status}, not to_refund")

    amount = caution.amount_cents if amount_cents in (None, "") else require_amount_cents(amount_cents)
    if amount > caution.amount_cents:
        raise ValidationError(f"Refund exceeds the caution amount ({caution.amount_cents} cents)")

    movement, warnings = _new_movement(
        tenant_id,
        type="out",
        amount_cents=amount,
        reason=f"Caution refund {caution.client_name}",
        document_type="CAUTION_REFUND",
        payment_method=payment_method,
        user=user,
        notes=notes,
        client_id=caution.client_id,
        client_name=caution.client_name,
        caution_id=caution.id,
    )

    caution.status = "refunded"
    caution.refund_cents = amount
    caution.refund_reference = movement.reference
    caution.refunded_at = movement.created_at
    db.session.commit()
    return caution, movement, warnings


# =============================================================================
# JOURNAL
# =============================================================================

def get_movement(tenant_id: int, movement_id: int) -> CashMovement:
    return require_in_tenant(CashMovement, movement_id, tenant_id, "Cash movement")


def list_movements(
    tenant_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
    type: str | None = None,
    client_id: int | None = None,
    limit: int | None = None,
) -> list[CashMovement]:
    query = db.session.query(CashMovement).filter(CashMovement.tenant_id == tenant_id)
    if start is not None:
        query = query.filter(CashMovement.business_date >= start)
    if end is not None:
        query = query.filter(CashMovement.business_date <= end)
    if type:
        if type not in MOVEMENT_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")
        query = query.filter(CashMovement.type == type)
    if client_id is not None:
        query = query.filter(CashMovement.client_id == client_id)
    query = query.order_by(CashMovement.created_at.desc(), CashMovement.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def _ensure_open(movement: CashMovement) -> None:
    if movement.day_closed:
        raise DayAlreadyClosedError(
            f"Movement {movement.reference} belongs to a closed day ({movement.business_date.isoformat()})"
        )


def update_movement(tenant_id: int, movement_id: int, data: dict) -> CashMovement:
    """Edit a movement of an open day. Linked payments keep their amount."""
    movement = get_movement(tenant_id, movement_id)
    _ensure_open(movement)

    unknown = set(data) - {"reason", "amount_cents", "payment_method", "notes", "image_url"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "amount_cents" in data:
        if movement.invoice_id or movement.reservation_id or movement.caution_id:
            raise CashError("The amount of a linked payment cannot be changed")
        movement.amount_cents = require_amount_cents(data["amount_cents"])
    if "reason" in data:
        reason = (data["reason"] or "").strip()
        if len(reason) < MIN_REASON_LENGTH:
            raise ValidationError(f"Reason must be at least {MIN_REASON_LENGTH} characters")
        movement.reason = reason
    if "payment_method" in data:
        if data["payment_method"] not in PAYMENT_METHODS:
            raise ValidationError("Invalid payment method")
        movement.payment_method = data["payment_method"]
    if "notes" in data:
        movement.notes = data["notes"]
    if "image_url" in data:
        movement.image_url = (data["image_url"] or "").strip() or None

    db.session.commit()
    return movement


def delete_movement(tenant_id: int, movement_id: int) -> None:
    movement = get_movement(tenant_id, movement_id)
    _ensure_open(movement)
    if movement.invoice_id or movement.reservation_id or movement.caution_id:
        raise CashError("Linked payments cannot be deleted")
    db.session.delete(movement)
    db.session.commit()


def cash_flow_metrics(tenant_id: int, today: date | None = None) -> dict:
    """All-time, today and last-7-days totals with the average movement size."""
    today = today or today_for(tenant_id)
    week_start = today - timedelta(days=7)

    total_in = _sum(tenant_id, "in")
    total_out = _sum(tenant_id, "out")
    today_in = _sum(tenant_id, "in", CashMovement.business_date == today)
    today_out = _sum(tenant_id, "out", CashMovement.business_date == today)
    weekly_in = _sum(tenant_id, "in", CashMovement.business_date >= week_start)
    weekly_out = _sum(tenant_id, "out", CashMovement.business_date >= week_start)

    count = db.session.query(db.func.count(CashMovement.id)).filter(CashMovement.tenant_id == tenant_id).scalar() or 0
    today_count = db.session.query(db.func.count(CashMovement.id)).filter(
        CashMovement.tenant_id == tenant_id, CashMovement.business_date == today
    ).scalar() or 0

    return {
        "total_in_cents": total_in,
        "total_out_cents": total_out,
        "net_flow_cents": total_in - total_out,
        "today_in_cents": today_in,
        "today_out_cents": today_out,
        "today_net_cents": today_in - today_out,
        "weekly_in_cents": weekly_in,
        "weekly_out_cents": weekly_out,
        "weekly_net_cents": weekly_in - weekly_out,
        "movement_count": int(count),
        "today_movement_count": int(today_count),
        "average_movement_cents": (total_in + total_out) // count if count else 0,
    }


def day_summary(tenant_id: int, day: date | None = None) -> dict:
    """Overview of a day plus its per-method breakdown and movements."""
    day = day or today_for(tenant_id)
    overview = get_overview(tenant_id, day)
    movements = list_movements(tenant_id, start=day, end=day)

    by_method: dict[str, dict] = {
        method: {"in_cents": 0, "out_cents": 0} for method in PAYMENT_METHODS
    }
    for m in movements:
        bucket = by_method.setdefault(m.payment_method, {"in_cents": 0, "out_cents": 0})
        bucket["in_cents" if m.type == "in" else "out_cents"] += m.amount_cents

    closure = get_closure_for_day(tenant_id, day)
    return {
        **overview,
        "by_payment_method": by_method,
        "movements": [m.to_dict() for m in movements],
        "closure": closure.to_dict() if closure else None,
    }


# =============================================================================
# CLOSURE
# =============================================================================

def close_day(
    tenant_id: int,
    *,
    actual_cash_cents,
    notes: str | None = None,
    user=None,
    day: date | None = None,
) -> tuple[DayClosure, CashValidationResult]:
    """
    Close a business day (default: today).

    Raises DayAlreadyClosedError when the day already has a closure, also
    when a concurrent closure wins the unique constraint.
    """
    actual = coerce_int(actual_cash_cents, "actual_cash_cents")
    if actual < 0:
        raise ValidationError("actual_cash_cents must be >= 0")
    day = day or today_for(tenant_id)
    if is_day_closed(tenant_id, day):
        raise DayAlreadyClosedError(f"Cash day {day.isoformat()} is already closed")

    opening = get_settings(tenant_id).initial_cash_balance_cents

    def _op() -> DayClosure:
        closure = DayClosure(
            tenant_id=tenant_id,
            business_date=day,
            opening_balance_cents=opening,
            expected_cash_cents=opening,
            actual_cash_cents=actual,
            difference_cents=actual - opening,
            notes=notes,
            status="closed",
            closed_by_user_id=user.id if user else None,
            closed_by_name=user.name if user else None,
            closed_at=utcnow(),
        )
        db.session.add(closure)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DayAlreadyClosedError(f"Cash day {day.isoformat()} is already closed")

        db.session.execute(
            update(CashMovement)
            .where(
                CashMovement.tenant_id == tenant_id,
                CashMovement.business_date == day,
                CashMovement.day_closed.is_(False),
            )
            .values(day_closed=True, closure_id=closure.id)
            .execution_options(synchronize_session=False)
        )

        marked = CashMovement.closure_id == closure.id
        receipts = _sum(tenant_id, "in", marked)
        payments = _sum(tenant_id, "out", marked)
        count = db.session.query(db.func.count(CashMovement.id)).filter(
            CashMovement.tenant_id == tenant_id, marked
        ).scalar()

        closure.total_receipts_cents = receipts
        closure.total_payments_cents = payments
        closure.expected_cash_cents = opening + receipts - payments
        closure.difference_cents = actual - closure.expected_cash_cents
        closure.movement_count = int(count or 0)
        db.session.commit()
        return closure

    closure = run_with_retry(_op)
    db.session.expire_all()

    current_app.logger.info(
        "Cash day %s closed for tenant %s: expected=%s actual=%s movements=%s",
        day.isoformat(), tenant_id, closure.expected_cash_cents, actual, closure.movement_count,
    )
    return closure, validate_reconciliation(closure.expected_cash_cents, actual)


def list_closures(tenant_id: int, limit: int | None = 30) -> list[DayClosure]:
    query = (
        db.session.query(DayClosure)
        .filter(DayClosure.tenant_id == tenant_id)
        .order_by(DayClosure.business_date.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_closure(tenant_id: int, closure_id: int) -> DayClosure:
    return require_in_tenant(DayClosure, closure_id, tenant_id, "Day closure")
