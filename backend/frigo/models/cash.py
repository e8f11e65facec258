from __future__ import annotations

from ..extensions import db
from frigo.time_utils import to_utc_z, to_iso_date, utcnow


MOVEMENT_TYPES = ("in", "out")
PAYMENT_METHODS = ("cash", "check", "transfer", "card")


class CashMovement(db.Model):
    """
    One entry of the cash journal.

    WHY: The cash register is an append-mostly ledger. The balance of a day is
    opening balance + sum(in) - sum(out) over that day's movements.

    DESIGN:
    - business_date is the tenant-local calendar day the movement belongs to;
      it is fixed at creation and drives overview, duplicate checks and closure
    - once day_closed is set (by a DayClosure) the row is frozen
    - optional links to client, invoice, reservation and caution record
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_tenant_day", "tenant_id", "business_date"),
        db.Index("ix_cash_movements_tenant_reference", "tenant_id", "reference"),
        db.CheckConstraint("amount_cents > 0", name="ck_cash_movements_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)  # in | out
    reason = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    reference = db.Column(db.String(64), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    reservation_id = db.Column(db.Integer, db.ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True, index=True)
    caution_id = db.Column(db.Integer, db.ForeignKey("caution_records.id", ondelete="SET NULL"), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    user_name = db.Column(db.String(255), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)  # receipt photo

    business_date = db.Column(db.Date, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    day_closed = db.Column(db.Boolean, nullable=False, default=False, index=True)
    closure_id = db.Column(db.Integer, db.ForeignKey("day_closures.id"), nullable=True, index=True)

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.type == "in" else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "reason": self.reason,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "invoice_id": self.invoice_id,
            "reservation_id": self.reservation_id,
            "caution_id": self.caution_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "notes": self.notes,
            "image_url": self.image_url,
            "business_date": to_iso_date(self.business_date),
            "created_at": to_utc_z(self.created_at),
            "day_closed": self.day_closed,
            "closure_id": self.closure_id,
        }


class DayClosure(db.Model):
    """
    End-of-day cash snapshot.

    IMMUTABLE: One row per tenant and business day, enforced by the unique
    constraint so two concurrent closures cannot both succeed.
    """
    __tablename__ = "day_closures"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "business_date", name="uq_day_closures_tenant_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    opening_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_receipts_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_payments_cents = db.Column(db.BigInteger, nullable=False, default=0)
    expected_cash_cents = db.Column(db.BigInteger, nullable=False)
    actual_cash_cents = db.Column(db.BigInteger, nullable=False)
    difference_cents = db.Column(db.BigInteger, nullable=False)
    movement_count = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="closed")

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_by_name = db.Column(db.String(255), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    movements = db.relationship("CashMovement", backref=db.backref("closure", lazy=True), lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "business_date": to_iso_date(self.business_date),
            "opening_balance_cents": self.opening_balance_cents,
            "total_receipts_cents": self.total_receipts_cents,
            "total_payments_cents": self.total_payments_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "actual_cash_cents": self.actual_cash_cents,
            "difference_cents": self.difference_cents,
            "movement_count": self.movement_count,
            "notes": self.notes,
            "status": self.status,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_by_name": self.closed_by_name,
            "closed_at": to_utc_z(self.closed_at),
        }
