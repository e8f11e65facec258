# Overview: Client records and per-client statistics.

from __future__ import annotations

from ..extensions import db
from ..models import Client, Reservation, EmptyCrateLoan
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from .tenant_service import require_in_tenant


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "company", "address", "notes"},
    required_on_create={"name"},
)


def list_clients(tenant_id: int, search: str | None = None) -> list[Client]:
    query = db.session.query(Client).filter(Client.tenant_id == tenant_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Client.name.ilike(like),
            Client.email.ilike(like),
            Client.phone.ilike(like),
            Client.company.ilike(like),
        ))
    return query.order_by(Client.name).all()


def get_client(tenant_id: int, client_id: int) -> Client:
    return require_in_tenant(Client, client_id, tenant_id, "Client")


def create_client(tenant_id: int, payload: dict, user_id: int | None = None) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
    client = Client(tenant_id=tenant_id, created_by_user_id=user_id, updated_by_user_id=user_id, **patch)
    db.session.add(client)
    db.session.commit()
    return client


def update_client(tenant_id: int, client_id: int, payload: dict, user_id: int | None = None) -> Client:
    client = get_client(tenant_id, client_id)
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    for key, value in patch.items():
        setattr(client, key, value)
    client.updated_by_user_id = user_id
    db.session.commit()
    return client


def delete_client(tenant_id: int, client_id: int) -> None:
    """Delete a client. Name snapshots on dependent records stay as they are."""
    client = get_client(tenant_id, client_id)
    for model in (Reservation, EmptyCrateLoan):
        db.session.query(model).filter(
            model.tenant_id == tenant_id, model.client_id == client.id
        ).update({"client_id": None}, synchronize_session=False)
    db.session.delete(client)
    db.session.commit()


def client_stats(tenant_id: int, client_id: int) -> dict:
    """
    Crates a client holds through reservations.

    reserved_crates sums APPROVED and CLOSED reservations; requested ones are
    not counted until approved.
    """
    client = get_client(tenant_id, client_id)
    reservations = db.session.query(Reservation).filter(
        Reservation.tenant_id == tenant_id,
        Reservation.client_id == client.id,
    ).all()

    held = [r for r in reservations if r.status in ("APPROVED", "CLOSED")]
    open_loans = db.session.query(db.func.coalesce(db.func.sum(EmptyCrateLoan.crates), 0)).filter(
        EmptyCrateLoan.tenant_id == tenant_id,
        EmptyCrateLoan.client_id == client.id,
        EmptyCrateLoan.status == "open",
    ).scalar()

    return {
        "client_id": client.id,
        "client_name": client.name,
        "reserved_crates": sum(r.reserved_crates for r in held),
        "empty_crates_needed": sum(r.empty_crates_needed for r in held),
        "active_reservations": sum(1 for r in reservations if r.status in ("REQUESTED", "APPROVED")),
        "closed_reservations": sum(1 for r in reservations if r.status == "CLOSED"),
        "deposit_required_cents": sum(r.deposit_required_cents for r in held),
        "deposit_paid_cents": sum(r.deposit_paid_cents for r in held),
        "empty_crates_on_loan": int(open_loans or 0),
    }
