# Overview: Pytest coverage for the business audit log.

from frigo.models import AuditLog
from frigo.services import audit_service


def test_entry_is_attributed(db_session, tenant_a, admin_a):
    entry = audit_service.log_action(
        "APPROVE", "reservation", 12, {"reference": "RES-2025-0001"},
        tenant_id=tenant_a.id, user=admin_a,
    )
    assert entry.id is not None
    assert entry.user_name == "Admin A"
    assert entry.resource_id == "12"
    assert entry.details == '{"reference": "RES-2025-0001"}'


def test_tenant_defaults_to_user_tenant(db_session, tenant_a, admin_a):
    entry = audit_service.log_create("client", 1, user=admin_a)
    assert entry.tenant_id == tenant_a.id
    assert entry.action == "CREATE"


def test_failed_write_returns_none(db_session, tenant_a, admin_a, client_a):
    client_a.notes = "pending change"

    assert audit_service.log_action("UPDATE", None, tenant_id=tenant_a.id, commit=False) is None

    # The savepoint rollback leaves the caller's pending work in place
    db_session.commit()
    db_session.refresh(client_a)
    assert client_a.notes == "pending change"
    assert db_session.query(AuditLog).count() == 0


def test_list_logs_filters(db_session, tenant_a, tenant_b, admin_a, admin_b):
    audit_service.log_create("reservation", 1, user=admin_a)
    audit_service.log_update("reservation", 1, user=admin_a)
    audit_service.log_create("invoice", 2, user=admin_a)
    audit_service.log_create("reservation", 3, user=admin_b)

    assert len(audit_service.list_logs(tenant_a.id)) == 3
    assert [e.action for e in audit_service.list_logs(tenant_a.id, resource="reservation")] == ["UPDATE", "CREATE"]
    assert len(audit_service.list_logs(tenant_a.id, action="create")) == 2
    assert len(audit_service.list_logs(tenant_b.id)) == 1
    assert len(audit_service.list_logs(tenant_a.id, limit=1)) == 1
