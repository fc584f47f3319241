"""Shared fixtures for integration tests."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure tests/integration is on sys.path so ``import integration_helpers``
# works regardless of how pytest is invoked (e.g. per-app test runs that
# don't inherit the root pyproject.toml pythonpath setting).
_INTEGRATION_DIR = str(Path(__file__).resolve().parent)
if _INTEGRATION_DIR not in sys.path:
    sys.path.insert(0, _INTEGRATION_DIR)

from ledger_db import DatabaseFactory, DatabaseSettings, Ledger
from price_feed import BybitPriceClient, PriceService

from paperbot.bot import TradingBot
from paperbot.runner import StrategyRunner
from paperbot.scheduler import Scheduler

from integration_helpers import make_ticker


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite so worker-thread ticks and the test share one database."""
    database = DatabaseFactory(DatabaseSettings(db_name=str(tmp_path / "integration.db")))
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def ledger(db):
    return Ledger(db)


@pytest.fixture
def exchange():
    """BybitPriceClient stand-in quoting 70000 until told otherwise."""
    client = MagicMock(spec=BybitPriceClient)
    client.get_ticker.return_value = make_ticker(70000)
    return client


@pytest.fixture
def price_service(exchange):
    service = PriceService(exchange)
    service.fetch_price()
    return service


@pytest.fixture
def scheduler(ledger, price_service):
    runner = StrategyRunner(ledger, price_service)
    return Scheduler(runner, ledger, tick_interval=0.01, notifier=MagicMock())


@pytest.fixture
def bot(ledger, scheduler, price_service):
    return TradingBot(ledger, scheduler, price_service)


@pytest.fixture
def alice(ledger):
    return ledger.create_user("alice")
