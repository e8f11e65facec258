"""
Pytest fixtures for Frigo backend tests.

Provides test database setup, tenant isolation fixtures, and test client.
"""

import pytest
from frigo import create_app
from frigo.extensions import db
from frigo.models import Client, Room
from frigo.services.tenant_service import create_tenant
from frigo.services import user_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (first tenant): 100 MAD caution per crate, 500 crates in the pool."""
    return create_tenant(
        "Frigo Atlas",
        "ATLAS",
        caution_per_crate_cents=10000,
        initial_cash_balance_cents=0,
        empty_crate_pool_total=500,
        empty_crate_alert_threshold=50,
        crates_per_pallet=40,
    )


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (second tenant)."""
    return create_tenant("Frigo Souss", "SOUSS", caution_per_crate_cents=5000)


@pytest.fixture(scope='function')
def client_a(db_session, tenant_a):
    """Client record in tenant A."""
    record = Client(tenant_id=tenant_a.id, name="Domaine Benali", phone="0600000001")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def client_b(db_session, tenant_b):
    """Client record in tenant B."""
    record = Client(tenant_id=tenant_b.id, name="Coop Tiznit", phone="0600000002")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def room_a(db_session, tenant_a):
    room = Room(tenant_id=tenant_a.id, name="Chambre 1", capacity_crates=2000, is_active=True)
    db_session.add(room)
    db_session.commit()
    return room


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a):
    """Admin user in tenant A."""
    return user_service.create_user(
        tenant_a.id, name="Admin A", email="admin@atlas.test", password=PASSWORD, role="admin"
    )


@pytest.fixture(scope='function')
def viewer_a(db_session, tenant_a):
    """Read-only user in tenant A."""
    return user_service.create_user(
        tenant_a.id, name="Viewer A", email="viewer@atlas.test", password=PASSWORD, role="viewer"
    )


@pytest.fixture(scope='function')
def portal_user_a(db_session, tenant_a, client_a):
    """Client-portal account linked to client_a."""
    return user_service.create_user(
        tenant_a.id,
        name="Benali",
        phone="0611111111",
        password=PASSWORD,
        role="client",
        client_id=client_a.id,
    )


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b):
    """Admin user in tenant B."""
    return user_service.create_user(
        tenant_b.id, name="Admin B", email="admin@souss.test", password=PASSWORD, role="admin"
    )


def get_auth_token(client, tenant_code: str, login: str, password: str = PASSWORD, user_type: str = "manager") -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'tenant': tenant_code,
        'login': login,
        'password': password,
        'user_type': user_type,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return auth_headers(get_auth_token(client, "ATLAS", "admin@atlas.test"))


@pytest.fixture(scope='function')
def viewer_headers(client, viewer_a):
    return auth_headers(get_auth_token(client, "ATLAS", "viewer@atlas.test"))


@pytest.fixture(scope='function')
def portal_headers(client, portal_user_a):
    return auth_headers(get_auth_token(client, "ATLAS", "0611111111", user_type="client"))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, "SOUSS", "admin@souss.test"))
