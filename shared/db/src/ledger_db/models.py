"""SQLAlchemy ORM models for the paper trading ledger.

Supports 4 tables:
- users: dashboard accounts
- portfolios: one simulated USD/BTC balance per user
- strategies: strategy configuration plus the engine's persisted state
- transactions: append-only record of executed paper trades
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional, List, Any
from uuid import uuid4

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    Index,
    JSON,
    Integer,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ledger_db.enums import TransactionStatus


STARTING_USD_BALANCE = Decimal("100000")


def generate_uuid() -> str:
    """Generate UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """Dashboard user owning one portfolio and any number of strategies."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    # Relationships
    portfolio: Mapped[Optional["Portfolio"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    strategies: Mapped[List["Strategy"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    transactions: Mapped[List["Transaction"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class Portfolio(Base):
    """Simulated USD and BTC balances of a user."""

    __tablename__ = "portfolios"

    portfolio_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    usd_balance: Mapped[Decimal] = mapped_column(
        Numeric(20, 8), nullable=False, default=STARTING_USD_BALANCE
    )
    btc_balance: Mapped[Decimal] = mapped_column(
        Numeric(20, 8), nullable=False, default=Decimal("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="portfolio")


class Strategy(Base):
    """Trading strategy configuration and its engine state.

    strategy_state is the engine's opaque JSON blob; state_version is bumped
    on every write of it so concurrent writers can detect lost updates.
    """

    __tablename__ = "strategies"

    strategy_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    strategy_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="default"
    )  # 'grid-trading', 'traditional-grid', 'default'
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_tolerance: Mapped[int] = mapped_column(Integer, default=50)
    trade_size: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), default=Decimal("25")
    )  # percent of available balance per trade
    grid_interval: Mapped[Decimal] = mapped_column(Numeric(20, 8), default=Decimal("2000"))
    grid_profit_percent: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("5.0"))
    grid_lower_bound: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8))
    grid_upper_bound: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8))
    strategy_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    state_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="strategies")
    transactions: Mapped[List["Transaction"]] = relationship(
        back_populates="strategy", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_strategies_user_id", "user_id"),
        Index("ix_strategies_is_active", "is_active"),
    )


class Transaction(Base):
    """Executed paper trade. Rows are never updated once written."""

    __tablename__ = "transactions"

    transaction_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    strategy_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("strategies.strategy_id", ondelete="SET NULL")
    )  # None for manual trades and deleted strategies
    side: Mapped[str] = mapped_column(String(4), nullable=False)  # 'buy' or 'sell'
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)  # BTC
    price: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)  # USD per BTC
    total: Mapped[Decimal] = mapped_column(Numeric(28, 8), nullable=False)  # USD
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.COMPLETED
    )
    grid_level: Mapped[Optional[int]] = mapped_column(Integer)
    order_id: Mapped[Optional[str]] = mapped_column(String(64))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="transactions")
    strategy: Mapped[Optional["Strategy"]] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_user_ts", "user_id", "timestamp"),
        Index("ix_transactions_strategy_id", "strategy_id"),
    )
