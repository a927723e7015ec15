"""
Shared pytest fixtures for the FinishLine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - reviewer / submitter: Pre-created User rows
"""

import pytest

from finishline import create_app
from finishline.models import db as _db
from finishline.models.team import User


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
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def submitter():
    user = User(first_name="Anthony", last_name="Bernardi",
                email="bernardi@example.com", slack_id="U_SUBMITTER")
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def reviewer():
    user = User(first_name="Kevin", last_name="Chen",
                email="chen@example.com", slack_id="U_REVIEWER")
    _db.session.add(user)
    _db.session.commit()
    return user
