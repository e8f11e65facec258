from __future__ import annotations

from ..extensions import db
from frigo.time_utils import to_utc_z


class Tenant(db.Model):
    """
    Multi-tenant root: every cold-storage site is a Tenant.

    WHY: Enables shared-database multi-tenancy with strict isolation.
    Users, clients, reservations and cash data belong to exactly one tenant.
    No data may cross tenant boundaries.

    DESIGN:
    - All tenant-owned tables carry tenant_id (FK)
    - All queries must be scoped by tenant_id
    - The short code is what users type on the login screen
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TenantSettings(db.Model):
    """
    Site, pricing and empty-crate pool settings of a tenant (one row per tenant).

    Money values are integer cents in the tenant currency.

    - initial_cash_balance_cents: opening balance of every cash day
    - caution_per_crate_cents: deposit charged per crate (reservations and loans)
    - season_crate_rate_cents: seasonal storage price per crate
    - empty_crate_pool_total: crates owned by the site that can be loaned
      (0 disables the availability check)
    - empty_crate_alert_threshold: alert when available crates drop to this level
    - crates_per_pallet: default pallet size for reception pallet plans
    """
    __tablename__ = "tenant_settings"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", name="uq_tenant_settings_tenant"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="MAD")
    locale = db.Column(db.String(8), nullable=False, default="fr")
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    initial_cash_balance_cents = db.Column(db.BigInteger, nullable=False, default=0)
    caution_per_crate_cents = db.Column(db.BigInteger, nullable=False, default=0)
    season_crate_rate_cents = db.Column(db.BigInteger, nullable=False, default=0)

    empty_crate_pool_total = db.Column(db.Integer, nullable=False, default=0)
    empty_crate_alert_threshold = db.Column(db.Integer, nullable=False, default=0)
    crates_per_pallet = db.Column(db.Integer, nullable=False, default=1)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    tenant = db.relationship("Tenant", backref=db.backref("settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "name": self.name,
            "currency": self.currency,
            "locale": self.locale,
            "timezone": self.timezone,
            "initial_cash_balance_cents": self.initial_cash_balance_cents,
            "caution_per_crate_cents": self.caution_per_crate_cents,
            "season_crate_rate_cents": self.season_crate_rate_cents,
            "empty_crate_pool_total": self.empty_crate_pool_total,
            "empty_crate_alert_threshold": self.empty_crate_alert_threshold,
            "crates_per_pallet": self.crates_per_pallet,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }
