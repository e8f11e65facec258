# Overview: Service-layer operations for reservations; encapsulates business logic and database work.

"""
Reservation Service

WHY: Clients reserve crate space for the season and pay a deposit (caution)
per crate. Managers approve or refuse the request, and close it at the end
of the season.

LIFECYCLE:
    REQUESTED -> APPROVED -> CLOSED
    REQUESTED -> REFUSED          (refusal reason stored)

DEPOSIT:
- deposit_required = reserved crates x tenant caution rate, fixed at creation
- deposit_paid grows through cash_service.record_partial_payment
- the due date follows the season table (season_service.due_date_for)
"""

from __future__ import annotations

from datetime import date, datetime

from ..extensions import db
from ..models import Reservation, Client
from ..validation import ValidationError, require_positive_int, coerce_int
from frigo.time_utils import utcnow, business_date, to_iso_date, to_utc_z
from .season_service import due_date_for
from .sequence_service import next_document_number
from .settings_service import get_settings
from .tenant_service import require_in_tenant


class ReservationError(Exception):
    """Raised for reservation lifecycle violations."""
    pass


# Remaining deposit (cents) above which a payment is flagged
HIGH_PRIORITY_CENTS = 100_000   # 1000 MAD
MEDIUM_PRIORITY_CENTS = 50_000  # 500 MAD

ALLOWED_TRANSITIONS = {
    "REQUESTED": {"APPROVED", "REFUSED"},
    "APPROVED": {"CLOSED"},
    "CLOSED": set(),
    "REFUSED": set(),
}

OPEN_STATUSES = ("REQUESTED", "APPROVED")


def compute_deposit_cents(crates: int, caution_per_crate_cents: int) -> int:
    return crates * caution_per_crate_cents


def create_reservation(
    tenant_id: int,
    *,
    client_id: int,
    reserved_crates,
    empty_crates_needed=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Reservation:
    """
    Create a REQUESTED reservation with its deposit snapshot.

    empty_crates_needed defaults to reserved_crates and may not exceed it.
    """
    client = require_in_tenant(Client, client_id, tenant_id, "Client")
    crates = require_positive_int(reserved_crates, "reserved_crates")

    if empty_crates_needed is None:
        empties = crates
    else:
        empties = coerce_int(empty_crates_needed, "empty_crates_needed")
        if empties < 0:
            raise ValidationError("empty_crates_needed must be >= 0")
    if empties > crates:
        raise ValidationError("empty_crates_needed cannot exceed reserved_crates")

    settings = get_settings(tenant_id)
    reservation = Reservation(
        tenant_id=tenant_id,
        reference=next_document_number(tenant_id=tenant_id, document_type="RESERVATION"),
        client_id=client.id,
        client_name=client.name,
        reserved_crates=crates,
        empty_crates_needed=empties,
        deposit_required_cents=compute_deposit_cents(crates, settings.caution_per_crate_cents),
        deposit_paid_cents=0,
        status="REQUESTED",
        notes=notes,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(reservation)
    db.session.commit()
    return reservation


def get_reservation(tenant_id: int, reservation_id: int) -> Reservation:
    return require_in_tenant(Reservation, reservation_id, tenant_id, "Reservation")


def list_reservations(
    tenant_id: int,
    *,
    status: str | None = None,
    client_id: int | None = None,
) -> list[Reservation]:
    query = db.session.query(Reservation).filter(Reservation.tenant_id == tenant_id)
    if status:
        query = query.filter(Reservation.status == status.upper())
    if client_id is not None:
        query = query.filter(Reservation.client_id == client_id)
    return query.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()


def _transition(reservation: Reservation, new_status: str) -> None:
    allowed = ALLOWED_TRANSITIONS.get(reservation.status, set())
    if new_status not in allowed:
        raise ReservationError(
            f"Cannot move reservation {reservation.reference} from {reservation.status} to {new_status}"
        )
    reservation.status = new_status


def approve_reservation(tenant_id: int, reservation_id: int) -> Reservation:
    reservation = get_reservation(tenant_id, reservation_id)
    _transition(reservation, "APPROVED")
    reservation.approved_at = utcnow()
    db.session.commit()
    return reservation


def refuse_reservation(tenant_id: int, reservation_id: int, reason: str | None) -> Reservation:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A refusal reason is required")
    reservation = get_reservation(tenant_id, reservation_id)
    _transition(reservation, "REFUSED")
    reservation.refusal_reason = reason
    reservation.refused_at = utcnow()
    db.session.commit()
    return reservation


def close_reservation(tenant_id: int, reservation_id: int) -> Reservation:
    reservation = get_reservation(tenant_id, reservation_id)
    _transition(reservation, "CLOSED")
    reservation.closed_at = utcnow()
    db.session.commit()
    return reservation


def update_reservation(tenant_id: int, reservation_id: int, data: dict) -> Reservation:
    """
    Edit a REQUESTED reservation before any deposit was paid.

    Changing the crate count recomputes the deposit with the current rate.
    """
    reservation = get_reservation(tenant_id, reservation_id)
    if reservation.status != "REQUESTED":
        raise ReservationError("Only requested reservations can be edited")

    unknown = set(data) - {"reserved_crates", "empty_crates_needed", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    crates = reservation.reserved_crates
    if "reserved_crates" in data:
        if reservation.deposit_paid_cents:
            raise ReservationError("Crate count cannot change once a deposit was paid")
        crates = require_positive_int(data["reserved_crates"], "reserved_crates")

    empties = reservation.empty_crates_needed
    if "empty_crates_needed" in data:
        empties = coerce_int(data["empty_crates_needed"], "empty_crates_needed")
        if empties < 0:
            raise ValidationError("empty_crates_needed must be >= 0")
    if empties > crates:
        raise ValidationError("empty_crates_needed cannot exceed reserved_crates")

    if crates != reservation.reserved_crates:
        settings = get_settings(tenant_id)
        reservation.deposit_required_cents = compute_deposit_cents(crates, settings.caution_per_crate_cents)
    reservation.reserved_crates = crates
    reservation.empty_crates_needed = empties
    if "notes" in data:
        reservation.notes = data["notes"]

    db.session.commit()
    return reservation


# =============================================================================
# PAYMENT VIEW
# =============================================================================

def payment_priority(remaining_cents: int) -> str:
    if remaining_cents > HIGH_PRIORITY_CENTS:
        return "high"
    if remaining_cents > MEDIUM_PRIORITY_CENTS:
        return "medium"
    return "low"


def reservation_due_date(reservation: Reservation, tz_name: str = "UTC") -> date:
    """Season due date, counted from the tenant-local day the reservation was made."""
    return due_date_for(business_date(reservation.created_at, tz_name))


def payment_status(reservation: Reservation, today: date, tz_name: str = "UTC") -> str:
    """
    pending: nothing paid yet; partial: something paid; paid: nothing remains.
    overdue wins over pending/partial once the due date has passed.
    """
    remaining = reservation.deposit_remaining_cents
    if remaining <= 0:
        return "paid"
    if today > reservation_due_date(reservation, tz_name):
        return "overdue"
    if reservation.deposit_paid_cents > 0:
        return "partial"
    return "pending"


def payment_summary(reservation: Reservation, now: datetime | None = None, tz_name: str = "UTC") -> dict:
    today = business_date(now or utcnow(), tz_name)
    due = reservation_due_date(reservation, tz_name)
    remaining = reservation.deposit_remaining_cents
    return {
        "reservation_id": reservation.id,
        "reference": reservation.reference,
        "client_id": reservation.client_id,
        "client_name": reservation.client_name,
        "reserved_crates": reservation.reserved_crates,
        "deposit_required_cents": reservation.deposit_required_cents,
        "deposit_paid_cents": reservation.deposit_paid_cents,
        "remaining_cents": remaining,
        "due_date": to_iso_date(due),
        "days_until_due": (due - today).days,
        "status": payment_status(reservation, today, tz_name),
        "priority": payment_priority(remaining),
        "last_payment_at": to_utc_z(reservation.last_payment_at),
        "last_payment_cents": reservation.last_payment_cents,
    }


def reservation_to_dict(reservation: Reservation, tz_name: str = "UTC") -> dict:
    data = reservation.to_dict()
    data["due_date"] = to_iso_date(reservation_due_date(reservation, tz_name))
    data["payment_status"] = payment_status(reservation, business_date(utcnow(), tz_name), tz_name)
    return data


def upcoming_payments(tenant_id: int, now: datetime | None = None, client_id: int | None = None) -> dict:
    """
    Deposits still owed on open (REQUESTED/APPROVED) reservations.

    Sorted by due date; totals split between overdue and not yet due.
    """
    tz_name = get_settings(tenant_id).timezone
    query = db.session.query(Reservation).filter(
        Reservation.tenant_id == tenant_id,
        Reservation.status.in_(OPEN_STATUSES),
    )
    if client_id is not None:
        query = query.filter(Reservation.client_id == client_id)

    items = [
        payment_summary(r, now, tz_name)
        for r in query.all()
        if r.deposit_remaining_cents > 0
    ]
    items.sort(key=lambda p: (p["due_date"], p["reference"]))

    overdue = [p for p in items if p["status"] == "overdue"]
    return {
        "payments": items,
        "count": len(items),
        "total_remaining_cents": sum(p["remaining_cents"] for p in items),
        "overdue_count": len(overdue),
        "overdue_remaining_cents": sum(p["remaining_cents"] for p in overdue),
    }
