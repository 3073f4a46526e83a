"""
Shared pytest fixtures for the order pipeline test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - freelancer / other_freelancer / admin: persisted users
    - auth_headers: factory for Bearer headers
"""

import pytest
from flask_jwt_extended import create_access_token

from gigorders.extensions import db as _db
from gigorders.main import create_app
from gigorders.models.gig import Gig
from gigorders.models.user import User


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


def _make_user(email, full_name, role="freelancer"):
    user = User(email=email, full_name=full_name, role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def freelancer():
    return _make_user("ada@example.com", "Ada Freelancer")


@pytest.fixture()
def other_freelancer():
    return _make_user("bo@example.com", "Bo Freelancer")


@pytest.fixture()
def admin():
    return _make_user("ops@example.com", "Ops Admin", role="admin")


@pytest.fixture()
def gig(freelancer):
    g = Gig(freelancer_id=freelancer.id, title="Landing page design")
    _db.session.add(g)
    _db.session.commit()
    return g


@pytest.fixture()
def auth_headers():
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers
