from __future__ import annotations

from ..extensions import db
from frigo.time_utils import to_utc_z, utcnow


RESERVATION_STATUSES = ("REQUESTED", "APPROVED", "CLOSED", "REFUSED")
LOAN_STATUSES = ("open", "returned")
DEPOSIT_TYPES = ("cash", "check")
CAUTION_STATUSES = ("held", "to_refund", "refunded")


class Reservation(db.Model):
    """
    Crate-space reservation for a client.

    WHY: The deposit (caution) is computed once at creation from the tenant's
    per-crate rate and stored, so later rate changes don't rewrite what the
    client was quoted.

    DESIGN:
    - deposit_paid_cents only ever grows through partial payments
    - the payment due date is derived from created_at (season table),
      never stored
    - version_id guards concurrent partial payments on the same reservation
    """
    __tablename__ = "reservations"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "reference", name="uq_reservations_tenant_reference"),
        db.Index("ix_reservations_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    reference = db.Column(db.String(32), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)

    reserved_crates = db.Column(db.Integer, nullable=False)
    empty_crates_needed = db.Column(db.Integer, nullable=False, default=0)

    deposit_required_cents = db.Column(db.BigInteger, nullable=False, default=0)
    deposit_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="REQUESTED", index=True)
    refusal_reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    last_payment_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_payment_cents = db.Column(db.BigInteger, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refused_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def deposit_remaining_cents(self) -> int:
        return max(0, (self.deposit_required_cents or 0) - (self.deposit_paid_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "reference": self.reference,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "reserved_crates": self.reserved_crates,
            "empty_crates_needed": self.empty_crates_needed,
            "deposit_required_cents": self.deposit_required_cents,
            "deposit_paid_cents": self.deposit_paid_cents,
            "deposit_remaining_cents": self.deposit_remaining_cents,
            "status": self.status,
            "refusal_reason": self.refusal_reason,
            "notes": self.notes,
            "last_payment_at": to_utc_z(self.last_payment_at),
            "last_payment_cents": self.last_payment_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at),
            "closed_at": to_utc_z(self.closed_at),
            "refused_at": to_utc_z(self.refused_at),
            "version_id": self.version_id,
        }


class EmptyCrateLoan(db.Model):
    """
    Empty crates lent to a client against a deposit.

    A loan can only be returned once its deposit is fully paid; returning
    it moves the matching caution record to "to_refund".
    """
    __tablename__ = "empty_crate_loans"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "ticket_id", name="uq_loans_tenant_ticket"),
        db.Index("ix_loans_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    ticket_id = db.Column(db.String(32), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)

    crates = db.Column(db.Integer, nullable=False)

    deposit_required_cents = db.Column(db.BigInteger, nullable=False, default=0)
    deposit_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    deposit_type = db.Column(db.String(16), nullable=False, default="cash")
    deposit_reference = db.Column(db.String(64), nullable=True)  # check number

    status = db.Column(db.String(16), nullable=False, default="open", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def deposit_remaining_cents(self) -> int:
        return max(0, (self.deposit_required_cents or 0) - (self.deposit_paid_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "ticket_id": self.ticket_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "crates": self.crates,
            "deposit_required_cents": self.deposit_required_cents,
            "deposit_paid_cents": self.deposit_paid_cents,
            "deposit_remaining_cents": self.deposit_remaining_cents,
            "deposit_type": self.deposit_type,
            "deposit_reference": self.deposit_reference,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "returned_at": to_utc_z(self.returned_at),
            "version_id": self.version_id,
        }


class CautionRecord(db.Model):
    """
    Deposit held for a client: held -> to_refund -> refunded.

    The refund itself is a cash "out" movement referenced by refund_reference.
    """
    __tablename__ = "caution_records"
    __table_args__ = (
        db.Index("ix_caution_records_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)
    loan_id = db.Column(db.Integer, db.ForeignKey("empty_crate_loans.id"), nullable=True, index=True)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="held", index=True)

    refund_cents = db.Column(db.BigInteger, nullable=True)
    refund_reference = db.Column(db.String(32), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    loan = db.relationship("EmptyCrateLoan", backref=db.backref("cautions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "loan_id": self.loan_id,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "refund_cents": self.refund_cents,
            "refund_reference": self.refund_reference,
            "refunded_at": to_utc_z(self.refunded_at),
            "created_at": to_utc_z(self.created_at),
        }
