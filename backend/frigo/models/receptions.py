from __future__ import annotations

from ..extensions import db
from frigo.time_utils import to_utc_z, utcnow


RECEPTION_STATUSES = ("pending", "in_progress", "completed")


class Reception(db.Model):
    """
    Goods received at the gate: one truck load of crates for one client.

    Names of the referenced client/truck/driver/product/room are snapshotted
    at write time; the foreign keys are validated against the tenant first.
    """
    __tablename__ = "receptions"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "serial", name="uq_receptions_tenant_serial"),
        db.Index("ix_receptions_tenant_arrival", "tenant_id", "arrival_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    serial = db.Column(db.String(32), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)
    truck_id = db.Column(db.Integer, db.ForeignKey("trucks.id", ondelete="SET NULL"), nullable=True)
    truck_number = db.Column(db.String(32), nullable=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    driver_name = db.Column(db.String(255), nullable=True)
    driver_phone = db.Column(db.String(32), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_label = db.Column(db.String(255), nullable=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True, index=True)
    room_name = db.Column(db.String(128), nullable=True)

    total_crates = db.Column(db.Integer, nullable=False)
    arrival_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "serial": self.serial,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "truck_id": self.truck_id,
            "truck_number": self.truck_number,
            "driver_id": self.driver_id,
            "driver_name": self.driver_name,
            "driver_phone": self.driver_phone,
            "product_id": self.product_id,
            "product_label": self.product_label,
            "room_id": self.room_id,
            "room_name": self.room_name,
            "total_crates": self.total_crates,
            "arrival_at": to_utc_z(self.arrival_at),
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
