"""
Pytest fixtures for ZoneCount backend tests.

Provides the Flask app on an in-memory SQLite database, two tenants with
an admin and a plain user each, and an in-memory repository for service
tests that do not need Flask at all.
"""

import pytest

from zonecount import create_app
from zonecount.extensions import db
from zonecount.records import CompanyRecord, UserRecord, ZoneRecord, ROLE_ADMIN, ROLE_USER
from zonecount.repositories import InMemoryRepository
from zonecount.services import auth_service, user_service
from zonecount.services.permission_service import Principal


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret',
        'CORS_ORIGINS': [],
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cost factor 4 keeps hashing out of the test runtime."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


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
def company_a(db_session):
    """Company A (first tenant)."""
    return user_service.create_company("Company A - Acme Logistics", "ACME")


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    return user_service.create_company("Company B - Beta Storage", "BETA")


@pytest.fixture(scope='function')
def admin_a(company_a):
    user, _ = user_service.register_user(company_a.id, "Alice Admin", "admin@acme.test", ROLE_ADMIN, password=PASSWORD)
    return user


@pytest.fixture(scope='function')
def user_a(company_a):
    user, _ = user_service.register_user(company_a.id, "Ulrich User", "user@acme.test", ROLE_USER, password=PASSWORD)
    return user


@pytest.fixture(scope='function')
def admin_b(company_b):
    user, _ = user_service.register_user(company_b.id, "Bob Admin", "admin@beta.test", ROLE_ADMIN, password=PASSWORD)
    return user


def get_auth_token(client, email: str, password: str = PASSWORD, company_id=None) -> str:
    """Helper to get auth token for a user."""
    body = {'email': email, 'password': password}
    if company_id is not None:
        body['company_id'] = company_id
    response = client.post('/api/auth/login', json=body)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_a_headers(client, admin_a):
    return auth_headers(get_auth_token(client, admin_a.email))


@pytest.fixture(scope='function')
def user_a_headers(client, user_a):
    return auth_headers(get_auth_token(client, user_a.email))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, admin_b.email))


# -- in-memory repository (no Flask) --

@pytest.fixture
def repo():
    return InMemoryRepository()


def _add_user(repo, company_id, name, email, role):
    return repo.add_user(UserRecord(
        id=None,
        company_id=company_id,
        name=name,
        email=email,
        role=role,
        password_hash="not-a-real-hash",
    ))


@pytest.fixture
def mem_company(repo):
    return repo.add_company(CompanyRecord(id=None, name="Acme Logistics", code="ACME"))


@pytest.fixture
def mem_other_company(repo):
    return repo.add_company(CompanyRecord(id=None, name="Beta Storage", code="BETA"))


@pytest.fixture
def mem_admin(repo, mem_company):
    return Principal.from_user(_add_user(repo, mem_company.id, "Alice Admin", "admin@acme.test", ROLE_ADMIN))


@pytest.fixture
def mem_user(repo, mem_company):
    return Principal.from_user(_add_user(repo, mem_company.id, "Ulrich User", "user@acme.test", ROLE_USER))


@pytest.fixture
def mem_other_admin(repo, mem_other_company):
    return Principal.from_user(_add_user(repo, mem_other_company.id, "Bob Admin", "admin@beta.test", ROLE_ADMIN))


@pytest.fixture
def mem_zones(repo, mem_company):
    """Zones C01-E01, C01-E02, C02-E01 of the first in-memory company."""
    return repo.add_zones([
        ZoneRecord(id=None, company_id=mem_company.id, name=name, description=f"Test zone {name}")
        for name in ("C01-E01", "C01-E02", "C02-E01")
    ])
