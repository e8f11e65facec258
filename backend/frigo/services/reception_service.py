# Overview: Service-layer operations for receptions, pallet plans and warehouse reference data.

"""
Reception Service

WHY: Every truck load entering the site is recorded against a client, a
truck, a driver, a product and the cold room it goes to.

DESIGN:
- serial REC-YYYY-NNNN from the tenant's document sequence
- referenced rows are validated against the tenant, then their display
  names are snapshotted on the reception
- status moves forward only: pending -> in_progress -> completed
- pallet plans are computed, not stored
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import Reception, Client, Truck, Driver, Product, Room, RECEPTION_STATUSES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    require_positive_int,
    validate_payload,
)
from frigo.time_utils import utcnow, business_date, parse_iso_datetime
from .sequence_service import next_document_number
from .settings_service import get_settings
from .tenant_service import require_in_tenant


class ReceptionError(Exception):
    """Raised for reception lifecycle violations."""
    pass


STATUS_ORDER = {status: i for i, status in enumerate(RECEPTION_STATUSES)}
REFERENCE_FIELDS = ("client_id", "truck_id", "driver_id", "product_id", "room_id")


def _apply_references(reception: Reception, tenant_id: int, data: dict) -> None:
    """Validate referenced ids against the tenant and snapshot their names."""
    if "client_id" in data:
        client = require_in_tenant(Client, data["client_id"], tenant_id, "Client")
        reception.client_id = client.id
        reception.client_name = client.name

    if "truck_id" in data:
        truck = require_in_tenant(Truck, data["truck_id"], tenant_id, "Truck") if data["truck_id"] else None
        reception.truck_id = truck.id if truck else None
        reception.truck_number = truck.number if truck else None

    if "driver_id" in data:
        driver = require_in_tenant(Driver, data["driver_id"], tenant_id, "Driver") if data["driver_id"] else None
        reception.driver_id = driver.id if driver else None
        reception.driver_name = driver.name if driver else None
        reception.driver_phone = driver.phone if driver else None

    if "product_id" in data:
        product = require_in_tenant(Product, data["product_id"], tenant_id, "Product") if data["product_id"] else None
        reception.product_id = product.id if product else None
        reception.product_label = product.label if product else None

    if "room_id" in data:
        room = require_in_tenant(Room, data["room_id"], tenant_id, "Room") if data["room_id"] else None
        if room is not None and not room.is_active:
            raise ValidationError(f"Room {room.name} is not active")
        reception.room_id = room.id if room else None
        reception.room_name = room.name if room else None


def _parse_arrival(value):
    if value in (None, ""):
        return utcnow()
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else value
    except ValueError:
        raise ValidationError("arrival_at must be an ISO-8601 datetime")
    return parsed


def create_reception(tenant_id: int, data: dict, user_id: int | None = None) -> Reception:
    if not data.get("client_id"):
        raise ValidationError("client_id is required")
    unknown = set(data) - set(REFERENCE_FIELDS) - {"total_crates", "arrival_at", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    reception = Reception(
        tenant_id=tenant_id,
        total_crates=require_positive_int(data.get("total_crates"), "total_crates"),
        arrival_at=_parse_arrival(data.get("arrival_at")),
        status="pending",
        notes=data.get("notes"),
        created_by_user_id=user_id,
    )
    _apply_references(reception, tenant_id, {k: data[k] for k in REFERENCE_FIELDS if k in data})

    reception.serial = next_document_number(tenant_id=tenant_id, document_type="RECEPTION")
    db.session.add(reception)
    db.session.commit()
    return reception


def get_reception(tenant_id: int, reception_id: int) -> Reception:
    return require_in_tenant(Reception, reception_id, tenant_id, "Reception")


def list_receptions(
    tenant_id: int,
    *,
    status: str | None = None,
    client_id: int | None = None,
    room_id: int | None = None,
) -> list[Reception]:
    query = db.session.query(Reception).filter(Reception.tenant_id == tenant_id)
    if status:
        query = query.filter(Reception.status == status)
    if client_id is not None:
        query = query.filter(Reception.client_id == client_id)
    if room_id is not None:
        query = query.filter(Reception.room_id == room_id)
    return query.order_by(Reception.arrival_at.desc(), Reception.id.desc()).all()


def update_reception(tenant_id: int, reception_id: int, data: dict) -> Reception:
    reception = get_reception(tenant_id, reception_id)
    if reception.status == "completed":
        raise ReceptionError("Completed receptions cannot be edited")

    unknown = set(data) - set(REFERENCE_FIELDS) - {"total_crates", "arrival_at", "notes", "status"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    _apply_references(reception, tenant_id, {k: data[k] for k in REFERENCE_FIELDS if k in data})
    if "total_crates" in data:
        reception.total_crates = require_positive_int(data["total_crates"], "total_crates")
    if "arrival_at" in data:
        reception.arrival_at = _parse_arrival(data["arrival_at"])
    if "notes" in data:
        reception.notes = data["notes"]
    if "status" in data:
        _set_status(reception, data["status"])

    db.session.commit()
    return reception


def _set_status(reception: Reception, status: str) -> None:
    if status not in STATUS_ORDER:
        raise ValidationError(f"status must be one of: {', '.join(RECEPTION_STATUSES)}")
    if STATUS_ORDER[status] < STATUS_ORDER[reception.status]:
        raise ReceptionError(f"Cannot move reception from {reception.status} back to {status}")
    reception.status = status


def set_reception_status(tenant_id: int, reception_id: int, status: str) -> Reception:
    reception = get_reception(tenant_id, reception_id)
    _set_status(reception, status)
    db.session.commit()
    return reception


def delete_reception(tenant_id: int, reception_id: int) -> None:
    reception = get_reception(tenant_id, reception_id)
    if reception.status == "completed":
        raise ReceptionError("Completed receptions cannot be deleted")
    db.session.delete(reception)
    db.session.commit()


# =============================================================================
# PALLET PLAN
# =============================================================================

@dataclass
class Pallet:
    number: int
    crates: int
    is_full: bool
    is_custom: bool
    reference: str

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "crates": self.crates,
            "is_full": self.is_full,
            "is_custom": self.is_custom,
            "reference": self.reference,
        }


def client_code(client_name: str | None) -> str:
    """First three letters of the client name, upper-cased ("CLI" when empty)."""
    letters = re.sub(r"\s+", "", client_name or "")[:3].upper()
    return letters or "CLI"


def pallet_reference(on: date, client_name: str | None, number: int) -> str:
    return f"PAL-{on:%Y%m%d}-{client_code(client_name)}-{number:03d}"


def plan_pallets(
    total_crates: int,
    crates_per_pallet: int,
    overrides: dict[int, int] | None = None,
    *,
    on: date | None = None,
    client_name: str | None = None,
    tz_name: str = "UTC",
) -> dict:
    """
    Split total_crates into pallets of crates_per_pallet.

    The pallet count is ceil(total / per_pallet). overrides maps a 1-based
    pallet number to a custom crate count; a custom count (and a regular
    full pallet) never takes more than the crates still unassigned. The last
    pallet takes whatever remains.
    """
    if crates_per_pallet < 1:
        raise ValidationError("crates_per_pallet must be >= 1")
    if total_crates < 0:
        raise ValidationError("total_crates must be >= 0")
    overrides = overrides or {}
    for key, value in overrides.items():
        if value < 0:
            raise ValidationError(f"Pallet {key}: crate count must be >= 0")

    on = on or business_date(utcnow(), tz_name)
    full_pallets, remainder = divmod(total_crates, crates_per_pallet)
    total_pallets = full_pallets + (1 if remainder else 0)

    pallets: list[Pallet] = []
    left = total_crates
    for number in range(1, total_pallets + 1):
        custom = overrides.get(number)
        if custom is not None:
            crates = min(custom, left)
        elif number < total_pallets:
            crates = min(crates_per_pallet, left)
        else:
            crates = left
        pallets.append(Pallet(
            number=number,
            crates=crates,
            is_full=crates == crates_per_pallet,
            is_custom=custom is not None,
            reference=pallet_reference(on, client_name, number),
        ))
        left -= crates

    return {
        "total_crates": total_crates,
        "crates_per_pallet": crates_per_pallet,
        "full_pallets": full_pallets,
        "remaining_crates": remainder,
        "total_pallets": total_pallets,
        "crates_assigned": total_crates - left,
        "crates_unassigned": left,
        "pallets": [p.to_dict() for p in pallets],
    }


def reception_pallet_plan(
    tenant_id: int,
    reception_id: int,
    crates_per_pallet=None,
    overrides: dict | None = None,
) -> dict:
    reception = get_reception(tenant_id, reception_id)
    settings = get_settings(tenant_id)
    per_pallet = (
        coerce_int(crates_per_pallet, "crates_per_pallet")
        if crates_per_pallet is not None
        else settings.crates_per_pallet
    )
    if overrides is not None and not isinstance(overrides, dict):
        raise ValidationError("overrides must map pallet numbers to crate counts")
    parsed = {}
    for key, value in (overrides or {}).items():
        parsed[coerce_int(key, "pallet number")] = coerce_int(value, f"pallet {key}")

    plan = plan_pallets(
        reception.total_crates,
        per_pallet,
        parsed,
        on=business_date(reception.arrival_at, settings.timezone),
        client_name=reception.client_name,
    )
    plan["reception_id"] = reception.id
    plan["serial"] = reception.serial
    return plan


def room_occupancy(tenant_id: int) -> list[dict]:
    """Crates received per room against its capacity."""
    rows = dict(
        db.session.query(Reception.room_id, db.func.coalesce(db.func.sum(Reception.total_crates), 0))
        .filter(Reception.tenant_id == tenant_id, Reception.room_id.isnot(None))
        .group_by(Reception.room_id)
        .all()
    )
    rooms = db.session.query(Room).filter(Room.tenant_id == tenant_id).order_by(Room.name).all()

    result = []
    for room in rooms:
        stored = int(rows.get(room.id, 0))
        capacity = room.capacity_crates or 0
        result.append({
            "room_id": room.id,
            "room_name": room.name,
            "capacity_crates": capacity,
            "stored_crates": stored,
            "available_crates": max(0, capacity - stored),
            "occupancy_pct": round(stored * 100 / capacity, 1) if capacity else None,
            "is_active": room.is_active,
        })
    return result


# =============================================================================
# WAREHOUSE REFERENCE DATA (rooms, trucks, drivers, products)
# =============================================================================

REFERENCE_MODELS = {
    "rooms": (Room, ModelValidationPolicy(
        writable_fields={"name", "capacity_crates", "is_active"},
        required_on_create={"name"},
    )),
    "trucks": (Truck, ModelValidationPolicy(
        writable_fields={"number", "color", "is_active"},
        required_on_create={"number"},
    )),
    "drivers": (Driver, ModelValidationPolicy(
        writable_fields={"name", "phone", "license_number", "is_active"},
        required_on_create={"name"},
    )),
    "products": (Product, ModelValidationPolicy(
        writable_fields={"name", "variety", "is_active"},
        required_on_create={"name"},
    )),
}


def _reference_model(kind: str):
    try:
        return REFERENCE_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Unknown reference type: {kind}")


def list_reference(tenant_id: int, kind: str, active_only: bool = False) -> list:
    model, _ = _reference_model(kind)
    query = db.session.query(model).filter(model.tenant_id == tenant_id)
    if active_only:
        query = query.filter(model.is_active.is_(True))
    return query.order_by(model.id).all()


def create_reference(tenant_id: int, kind: str, payload: dict):
    model, policy = _reference_model(kind)
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
    if patch.get("capacity_crates") is not None and patch["capacity_crates"] < 0:
        raise ValidationError("capacity_crates must be >= 0")
    record = model(tenant_id=tenant_id, **patch)
    db.session.add(record)
    db.session.commit()
    return record


def update_reference(tenant_id: int, kind: str, record_id: int, payload: dict):
    model, policy = _reference_model(kind)
    record = require_in_tenant(model, record_id, tenant_id, model.__name__)
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
    if patch.get("capacity_crates") is not None and patch["capacity_crates"] < 0:
        raise ValidationError("capacity_crates must be >= 0")
    for key, value in patch.items():
        setattr(record, key, value)
    db.session.commit()
    return record


def delete_reference(tenant_id: int, kind: str, record_id: int) -> None:
    model, _ = _reference_model(kind)
    record = require_in_tenant(model, record_id, tenant_id, model.__name__)
    db.session.delete(record)
    db.session.commit()
