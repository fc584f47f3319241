"""
Paper trading ledger: users, portfolios, strategies and transactions.

Supports SQLite (development) and PostgreSQL (production).
"""

from ledger_db.settings import DatabaseSettings
from ledger_db.database import DatabaseFactory
from ledger_db.models import (
    Base,
    User,
    Portfolio,
    Strategy,
    Transaction,
    STARTING_USD_BALANCE,
)
from ledger_db.enums import TransactionStatus
from ledger_db.repositories import (
    BaseRepository,
    UserRepository,
    PortfolioRepository,
    StrategyRepository,
    TransactionRepository,
)
from ledger_db.ledger import (
    Ledger,
    LedgerError,
    NotFoundError,
    StaleStateError,
    UserSnapshot,
    PortfolioSnapshot,
    StrategySnapshot,
    TransactionSnapshot,
    TickCommit,
)

__all__ = [
    # Settings
    "DatabaseSettings",
    # Database
    "DatabaseFactory",
    # Models
    "Base",
    "User",
    "Portfolio",
    "Strategy",
    "Transaction",
    "STARTING_USD_BALANCE",
    "TransactionStatus",
    # Repositories
    "BaseRepository",
    "UserRepository",
    "PortfolioRepository",
    "StrategyRepository",
    "TransactionRepository",
    # Ledger
    "Ledger",
    "LedgerError",
    "NotFoundError",
    "StaleStateError",
    "UserSnapshot",
    "PortfolioSnapshot",
    "StrategySnapshot",
    "TransactionSnapshot",
    "TickCommit",
]
