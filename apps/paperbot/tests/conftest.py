"""Test fixtures for paperbot tests."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure this directory is on sys.path so ``import paperbot_helpers`` works
# regardless of the import mode pytest runs with.
_TESTS_DIR = str(Path(__file__).resolve().parent)
if _TESTS_DIR not in sys.path:
    sys.path.insert(0, _TESTS_DIR)

from ledger_db import DatabaseFactory, DatabaseSettings, Ledger
from price_feed import PriceService

from paperbot_helpers import make_reading


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite database; ticks use it from worker threads."""
    database = DatabaseFactory(DatabaseSettings(db_name=str(tmp_path / "paper.db")))
    database.create_tables()
    yield database
    database.drop_tables()
    database.dispose()


@pytest.fixture
def ledger(db):
    return Ledger(db)


@pytest.fixture
def user(ledger):
    return ledger.create_user("trader")


@pytest.fixture
def prices():
    """PriceService stand-in; set .get_current_price.return_value to move the market."""
    service = MagicMock(spec=PriceService)
    service.get_current_price.return_value = make_reading(70000)
    service.fetch_price.return_value = make_reading(70000)
    return service
