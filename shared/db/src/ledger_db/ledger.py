"""Ledger facade over the paper trading database.

The Ledger is the only writer of portfolios, strategies and transactions.
Every public method runs in its own database transaction and returns frozen
snapshots, so callers never hold live ORM objects across threads.

commit_tick is the write path of the scheduler: the transactions of a tick,
the balance changes they imply and the strategy's new state are written
together or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from papergrid import (
    Balances,
    Fill,
    StrategyConfig,
    StrategyState,
    StrategyType,
    load_state,
)

from ledger_db.database import DatabaseFactory
from ledger_db.enums import TransactionStatus
from ledger_db.models import Portfolio, Strategy, Transaction, User, utc_now
from ledger_db.repositories import (
    PortfolioRepository,
    StrategyRepository,
    TransactionRepository,
    UserRepository,
)


logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class of ledger failures."""


class NotFoundError(LedgerError):
    """Raised when a referenced user or strategy does not exist."""


class StaleStateError(LedgerError):
    """Raised when a strategy's state was written since it was read."""


# Fields of a strategy that update_strategy may change
STRATEGY_FIELDS = frozenset({
    "name",
    "strategy_type",
    "is_active",
    "risk_tolerance",
    "trade_size",
    "grid_interval",
    "grid_profit_percent",
    "grid_lower_bound",
    "grid_upper_bound",
    "strategy_state",
})


@dataclass(frozen=True)
class UserSnapshot:
    user_id: str
    username: str
    email: Optional[str]


@dataclass(frozen=True)
class PortfolioSnapshot:
    user_id: str
    usd_balance: Decimal
    btc_balance: Decimal
    updated_at: datetime

    @property
    def balances(self) -> Balances:
        return Balances(usd=self.usd_balance, btc=self.btc_balance)


@dataclass(frozen=True)
class StrategySnapshot:
    """Strategy row as read at one point in time."""
    strategy_id: str
    user_id: str
    name: str
    strategy_type: StrategyType
    is_active: bool
    risk_tolerance: int
    trade_size: Decimal
    grid_interval: Decimal
    grid_profit_percent: Decimal
    grid_lower_bound: Optional[Decimal]
    grid_upper_bound: Optional[Decimal]
    strategy_state: Optional[dict[str, Any]]
    state_version: int
    created_at: datetime

    def to_config(self) -> StrategyConfig:
        """Build the engine configuration of this strategy."""
        return StrategyConfig(
            strategy_id=self.strategy_id,
            strategy_type=self.strategy_type,
            trade_size_percent=self.trade_size,
            risk_tolerance=self.risk_tolerance,
            grid_interval=self.grid_interval,
            grid_profit_percent=self.grid_profit_percent,
            grid_lower_bound=self.grid_lower_bound,
            grid_upper_bound=self.grid_upper_bound,
        )

    def load_state(self) -> StrategyState:
        """Decode strategy_state into the engine state of this strategy type."""
        return load_state(self.strategy_type, self.strategy_state)


@dataclass(frozen=True)
class TransactionSnapshot:
    transaction_id: str
    user_id: str
    strategy_id: Optional[str]
    side: str
    amount: Decimal
    price: Decimal
    total: Decimal
    status: str
    grid_level: Optional[int]
    order_id: Optional[str]
    timestamp: datetime


@dataclass(frozen=True)
class TickCommit:
    """Result of a committed tick."""
    state_version: int
    portfolio: PortfolioSnapshot
    transactions: list[TransactionSnapshot]


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _opt_dec(value: Any) -> Optional[Decimal]:
    return None if value is None else _dec(value)


def _user_snapshot(user: User) -> UserSnapshot:
    return UserSnapshot(user_id=user.user_id, username=user.username, email=user.email)


def _portfolio_snapshot(portfolio: Portfolio) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        user_id=portfolio.user_id,
        usd_balance=_dec(portfolio.usd_balance),
        btc_balance=_dec(portfolio.btc_balance),
        updated_at=portfolio.updated_at,
    )


def _strategy_snapshot(strategy: Strategy) -> StrategySnapshot:
    return StrategySnapshot(
        strategy_id=strategy.strategy_id,
        user_id=strategy.user_id,
        name=strategy.name,
        strategy_type=StrategyType.parse(strategy.strategy_type),
        is_active=bool(strategy.is_active),
        risk_tolerance=strategy.risk_tolerance,
        trade_size=_dec(strategy.trade_size),
        grid_interval=_dec(strategy.grid_interval),
        grid_profit_percent=_dec(strategy.grid_profit_percent),
        grid_lower_bound=_opt_dec(strategy.grid_lower_bound),
        grid_upper_bound=_opt_dec(strategy.grid_upper_bound),
        strategy_state=strategy.strategy_state,
        state_version=strategy.state_version,
        created_at=strategy.created_at,
    )


def _transaction_snapshot(tx: Transaction) -> TransactionSnapshot:
    return TransactionSnapshot(
        transaction_id=tx.transaction_id,
        user_id=tx.user_id,
        strategy_id=tx.strategy_id,
        side=tx.side,
        amount=_dec(tx.amount),
        price=_dec(tx.price),
        total=_dec(tx.total),
        status=tx.status,
        grid_level=tx.grid_level,
        order_id=tx.order_id,
        timestamp=tx.timestamp,
    )


class Ledger:
    """Transactional access to users, portfolios, strategies and transactions.

    Usage:
        ledger = Ledger(DatabaseFactory(settings))
        user = ledger.get_or_create_user("alice")
        strategy = ledger.create_strategy(user.user_id, "Dip buyer", strategy_type="grid-trading")
    """

    def __init__(self, db: DatabaseFactory):
        self._db = db

    # Users

    def create_user(self, username: str, email: Optional[str] = None) -> UserSnapshot:
        with self._db.get_session() as session:
            user = UserRepository(session).create(User(username=username, email=email))
            return _user_snapshot(user)

    def get_or_create_user(self, username: str, email: Optional[str] = None) -> UserSnapshot:
        with self._db.get_session() as session:
            repo = UserRepository(session)
            user = repo.get_by_username(username)
            if user is None:
                user = repo.create(User(username=username, email=email))
                logger.info("Created user %s", username)
            return _user_snapshot(user)

    # Portfolios

    def get_portfolio(self, user_id: str) -> Optional[PortfolioSnapshot]:
        with self._db.get_session() as session:
            portfolio = PortfolioRepository(session).get_by_user_id(user_id)
            return _portfolio_snapshot(portfolio) if portfolio else None

    def get_or_create_portfolio(self, user_id: str) -> PortfolioSnapshot:
        """Return the user's portfolio, opening it with the starting balance if missing.

        Raises:
            NotFoundError: If the user does not exist
        """
        with self._db.get_session() as session:
            return _portfolio_snapshot(self._portfolio_for(session, user_id, for_update=False))

    def update_portfolio(
        self,
        user_id: str,
        usd_balance: Optional[Decimal] = None,
        btc_balance: Optional[Decimal] = None,
    ) -> PortfolioSnapshot:
        """Overwrite balances of a portfolio.

        Raises:
            ValueError: If a balance is negative
            NotFoundError: If the user does not exist
        """
        for name, value in (("usd_balance", usd_balance), ("btc_balance", btc_balance)):
            if value is not None and value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

        with self._db.get_session() as session:
            portfolio = self._portfolio_for(session, user_id, for_update=True)
            if usd_balance is not None:
                portfolio.usd_balance = usd_balance
            if btc_balance is not None:
                portfolio.btc_balance = btc_balance
            session.flush()
            return _portfolio_snapshot(portfolio)

    # Strategies

    def create_strategy(
        self,
        user_id: str,
        name: str,
        strategy_type: str = StrategyType.DEFAULT,
        is_active: bool = False,
        **params: Any,
    ) -> StrategySnapshot:
        """Create a strategy.

        Args:
            user_id: Owner of the strategy
            name: Display name
            strategy_type: 'grid-trading', 'traditional-grid' or 'default'
            is_active: Whether the scheduler should run it
            **params: risk_tolerance, trade_size, grid_interval,
                grid_profit_percent, grid_lower_bound, grid_upper_bound

        Raises:
            ConfigError: If the parameters are out of range
            NotFoundError: If the user does not exist
        """
        unknown = set(params) - STRATEGY_FIELDS
        if unknown:
            raise TypeError(f"Unknown strategy fields: {sorted(unknown)}")

        with self._db.get_session() as session:
            if UserRepository(session).get_by_id(user_id) is None:
                raise NotFoundError(f"User {user_id} not found")
            strategy = Strategy(
                user_id=user_id,
                name=name,
                strategy_type=str(strategy_type),
                is_active=is_active,
                **params,
            )
            StrategyRepository(session).create(strategy)
            snapshot = _strategy_snapshot(strategy)
            # Raises ConfigError for out of range parameters
            snapshot.to_config()
            logger.info("Created strategy %s (%s) for user %s", snapshot.strategy_id, strategy_type, user_id)
            return snapshot

    def get_strategy(self, strategy_id: str) -> Optional[StrategySnapshot]:
        with self._db.get_session() as session:
            strategy = StrategyRepository(session).get_by_id(strategy_id)
            return _strategy_snapshot(strategy) if strategy else None

    def get_strategies(self, user_id: str) -> list[StrategySnapshot]:
        with self._db.get_session() as session:
            return [_strategy_snapshot(s) for s in StrategyRepository(session).get_by_user_id(user_id)]

    def list_active_strategies(self) -> list[StrategySnapshot]:
        with self._db.get_session() as session:
            return [_strategy_snapshot(s) for s in StrategyRepository(session).get_active()]

    def update_strategy(self, strategy_id: str, **fields: Any) -> StrategySnapshot:
        """Change configuration fields, is_active or strategy_state.

        Writing strategy_state bumps state_version.

        Raises:
            NotFoundError: If the strategy does not exist
            ConfigError: If the resulting configuration is out of range
        """
        unknown = set(fields) - STRATEGY_FIELDS
        if unknown:
            raise TypeError(f"Unknown strategy fields: {sorted(unknown)}")

        with self._db.get_session() as session:
            strategy = StrategyRepository(session).get_for_update(strategy_id)
            if strategy is None:
                raise NotFoundError(f"Strategy {strategy_id} not found")
            for key, value in fields.items():
                setattr(strategy, key, str(value) if key == "strategy_type" else value)
            if "strategy_state" in fields:
                strategy.state_version += 1
            session.flush()
            snapshot = _strategy_snapshot(strategy)
            snapshot.to_config()
            return snapshot

    def delete_strategy(self, strategy_id: str) -> bool:
        """Delete a strategy and its state. Its transactions are kept.

        Returns:
            False if the strategy did not exist
        """
        with self._db.get_session() as session:
            repo = StrategyRepository(session)
            strategy = repo.get_by_id(strategy_id)
            if strategy is None:
                return False
            repo.delete(strategy)
            logger.info("Deleted strategy %s", strategy_id)
            return True

    def reset_strategy_state(self, strategy_id: str) -> StrategySnapshot:
        """Discard the engine state so the next tick starts a fresh grid.

        Raises:
            NotFoundError: If the strategy does not exist
        """
        snapshot = self.update_strategy(strategy_id, strategy_state=None)
        logger.info("Reset state of strategy %s", strategy_id)
        return snapshot

    # Transactions

    def create_transaction(
        self,
        user_id: str,
        fill: Fill,
        strategy_id: Optional[str] = None,
    ) -> TransactionSnapshot:
        """Append a transaction without touching balances."""
        with self._db.get_session() as session:
            tx = self._insert_transaction(session, user_id, fill, strategy_id, utc_now())
            return _transaction_snapshot(tx)

    def get_transactions(self, user_id: str, limit: Optional[int] = 50) -> list[TransactionSnapshot]:
        """Transactions of a user, newest first."""
        with self._db.get_session() as session:
            txs = TransactionRepository(session).get_by_user_id(user_id, limit=limit)
            return [_transaction_snapshot(tx) for tx in txs]

    def record_trade(
        self,
        user_id: str,
        fill: Fill,
        strategy_id: Optional[str] = None,
    ) -> tuple[PortfolioSnapshot, TransactionSnapshot]:
        """Apply a fill to the user's portfolio and append its transaction atomically.

        Raises:
            InsufficientBalanceError: If the fill would overdraw the portfolio
        """
        with self._db.get_session() as session:
            portfolio = self._portfolio_for(session, user_id, for_update=True)
            self._apply_fills(portfolio, [fill])
            tx = self._insert_transaction(session, user_id, fill, strategy_id, utc_now())
            return _portfolio_snapshot(portfolio), _transaction_snapshot(tx)

    def commit_tick(
        self,
        strategy_id: str,
        expected_version: int,
        fills: Sequence[Fill],
        state: Optional[dict[str, Any]] = None,
    ) -> TickCommit:
        """Persist the outcome of one strategy tick in a single transaction.

        Fills are applied to the portfolio as it is now, not as the engine
        saw it, so manual trades made meanwhile are never overwritten.

        Args:
            strategy_id: The ticked strategy
            expected_version: state_version the tick was evaluated against
            fills: Executed fills, in execution order
            state: New strategy_state blob, or None to leave it unchanged

        Raises:
            NotFoundError: If the strategy was deleted meanwhile
            StaleStateError: If the state was written since it was read
            InsufficientBalanceError: If a fill would overdraw the portfolio
        """
        with self._db.get_session() as session:
            strategy = StrategyRepository(session).get_for_update(strategy_id)
            if strategy is None:
                raise NotFoundError(f"Strategy {strategy_id} not found")
            if strategy.state_version != expected_version:
                raise StaleStateError(
                    f"Strategy {strategy_id} state is at version {strategy.state_version}, "
                    f"expected {expected_version}"
                )

            portfolio = self._portfolio_for(session, strategy.user_id, for_update=True)
            self._apply_fills(portfolio, fills)

            now = utc_now()
            txs = [
                # Offsets keep fills of one tick in execution order
                self._insert_transaction(
                    session, strategy.user_id, fill, strategy_id, now + timedelta(microseconds=i)
                )
                for i, fill in enumerate(fills)
            ]

            if state is not None:
                strategy.strategy_state = state
            strategy.state_version += 1
            session.flush()

            logger.debug(
                "Committed tick of %s: %d fills, state version %d",
                strategy_id, len(fills), strategy.state_version,
            )
            return TickCommit(
                state_version=strategy.state_version,
                portfolio=_portfolio_snapshot(portfolio),
                transactions=[_transaction_snapshot(tx) for tx in txs],
            )

    # Internals

    def _portfolio_for(self, session: Session, user_id: str, for_update: bool) -> Portfolio:
        repo = PortfolioRepository(session)
        portfolio = repo.get_by_user_id(user_id, for_update=for_update)
        if portfolio is not None:
            return portfolio
        if UserRepository(session).get_by_id(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        logger.info("Opening paper portfolio for user %s", user_id)
        return repo.create(Portfolio(user_id=user_id))

    @staticmethod
    def _apply_fills(portfolio: Portfolio, fills: Sequence[Fill]) -> None:
        balances = Balances(usd=_dec(portfolio.usd_balance), btc=_dec(portfolio.btc_balance))
        for fill in fills:
            balances = balances.apply(fill)
        portfolio.usd_balance = balances.usd
        portfolio.btc_balance = balances.btc

    @staticmethod
    def _insert_transaction(
        session: Session,
        user_id: str,
        fill: Fill,
        strategy_id: Optional[str],
        timestamp: datetime,
    ) -> Transaction:
        return TransactionRepository(session).create(Transaction(
            user_id=user_id,
            strategy_id=strategy_id,
            side=str(fill.side),
            amount=fill.amount,
            price=fill.price,
            total=fill.total,
            status=TransactionStatus.COMPLETED,
            grid_level=fill.grid_level,
            order_id=fill.order_id,
            timestamp=timestamp,
        ))
