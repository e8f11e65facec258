from __future__ import annotations

from ..extensions import db
from frigo.time_utils import to_utc_z, to_iso_date, utcnow


INVOICE_STATUSES = ("draft", "sent", "paid", "overdue")


class Invoice(db.Model):
    """
    Client invoice.

    The number (FAC-YYYY-NNNN) comes from DocumentSequence and is never reused.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "number", name="uq_invoices_tenant_number"),
        db.Index("ix_invoices_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    due_date = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "number": self.number,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "due_date": to_iso_date(self.due_date),
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-tenant, per-year document counters.

    WHY: Prevent race conditions when generating invoice numbers and cash
    references. Incremented only through a single UPDATE statement.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "document_type", "year", name="uq_doc_sequences_tenant_type_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "document_type": self.document_type,
            "year": self.year,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
