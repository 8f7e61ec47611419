"""
Pytest fixtures for stocktrack backend tests.

Provides test database setup, unit factories, actor headers and test client.
"""

import pytest
from stocktrack import create_app
from stocktrack.extensions import db
from stocktrack.services import inventory_service


ADMIN_ID = "admin-1"
FIELD_ID = "field-7"


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
def make_unit(db_session):
    """Factory: create a unit with unique identifiers."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        values = {
            "smartcard": f"SC{7000 + n}",
            "serial_number": f"SN{9000 + n}",
            "kind": "full_set",
        }
        values.update(overrides)
        return inventory_service.create_unit(**values)

    return _make


@pytest.fixture(scope='function')
def unit(make_unit):
    """A single in_store unit."""
    return make_unit()


def actor_headers(actor_id: str, role: str | None = None, name: str | None = None) -> dict:
    """Helper to create asserted-actor headers."""
    headers = {'X-Actor-Id': actor_id}
    if role:
        headers['X-Actor-Role'] = role
    if name:
        headers['X-Actor-Name'] = name
    return headers


@pytest.fixture(scope='function')
def admin_headers():
    """Privileged actor."""
    return actor_headers(ADMIN_ID, role="admin", name="Admin One")


@pytest.fixture(scope='function')
def field_headers():
    """Non-privileged field user."""
    return actor_headers(FIELD_ID, role="field", name="Field Seven")
