"""Test fixtures for ledger database tests."""

import pytest

from ledger_db.database import DatabaseFactory
from ledger_db.ledger import Ledger
from ledger_db.settings import DatabaseSettings
from ledger_db.models import User


@pytest.fixture
def db_settings():
    """In-memory SQLite settings for testing."""
    return DatabaseSettings(
        db_type="sqlite",
        db_name=":memory:",
        echo_sql=False,
    )


@pytest.fixture
def db(db_settings):
    """Create fresh database for each test."""
    database = DatabaseFactory(db_settings)
    database.create_tables()
    yield database
    database.drop_tables()


@pytest.fixture
def session(db):
    """Provide a session for each test.

    Note: Uses manual session management to handle tests that expect errors.
    Tests that raise IntegrityError should call session.rollback() after.
    """
    session = db.session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_user(session):
    """Create a sample user for testing."""
    user = User(username="testuser", email="test@example.com")
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def ledger(db):
    """Ledger over the in-memory database."""
    return Ledger(db)


@pytest.fixture
def user(ledger):
    """A user created through the ledger."""
    return ledger.create_user("alice", email="alice@example.com")
