"""
Configuration models for paper trading strategies.

This module defines the strategy types and the immutable configuration
snapshot the engines evaluate against.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Optional


# Minimum USD balance required before any buy is considered
MIN_USD_BALANCE = Decimal('100')

# Minimum BTC balance required before any sell is considered
MIN_BTC_BALANCE = Decimal('0.0001')

# Two single-side buy prices closer than this are the same grid level
BUY_DEDUP_TOLERANCE = Decimal('1.0')

DEFAULT_GRID_INTERVAL = Decimal('2000')
DEFAULT_GRID_PROFIT_PERCENT = Decimal('5.0')


class ConfigError(ValueError):
    """Raised when a strategy configuration cannot drive its engine."""


class StrategyType(StrEnum):
    """Strategy variants understood by the engine."""
    SINGLE_SIDE_GRID = "grid-trading"
    BIDIRECTIONAL_GRID = "traditional-grid"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: str | None) -> "StrategyType":
        """Map a stored type string to a StrategyType.

        Unknown types fall back to DEFAULT, matching how the bot routes any
        strategy that is not one of the grid variants.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.DEFAULT


@dataclass(frozen=True)
class StrategyConfig:
    """
    Configuration for one strategy activation.

    Attributes:
        strategy_id: Strategy identifier
        strategy_type: Which engine evaluates this strategy
        trade_size_percent: Share of the available balance used per trade (0-100)
        risk_tolerance: Signal probability knob for the default strategy (0-100)
        grid_interval: Distance in USD between grid levels
        grid_profit_percent: Single-side grid take-profit above the buy price
        grid_lower_bound: Bidirectional grid lowest level
        grid_upper_bound: Bidirectional grid highest allowed level
    """
    strategy_id: str
    strategy_type: StrategyType = StrategyType.DEFAULT
    trade_size_percent: Decimal = Decimal('25')
    risk_tolerance: int = 50
    grid_interval: Decimal = DEFAULT_GRID_INTERVAL
    grid_profit_percent: Decimal = DEFAULT_GRID_PROFIT_PERCENT
    grid_lower_bound: Optional[Decimal] = None
    grid_upper_bound: Optional[Decimal] = None

    def __post_init__(self):
        """Validate parameters that every strategy type depends on."""
        if not (0 <= self.trade_size_percent <= 100):
            raise ConfigError(f"trade_size_percent must be between 0 and 100, got {self.trade_size_percent}")
        if not (0 <= self.risk_tolerance <= 100):
            raise ConfigError(f"risk_tolerance must be between 0 and 100, got {self.risk_tolerance}")

    @property
    def trade_fraction(self) -> Decimal:
        """trade_size_percent as a fraction of one."""
        return self.trade_size_percent / 100

    def check_interval(self) -> None:
        """Raise ConfigError unless grid_interval is positive."""
        if self.grid_interval is None or self.grid_interval <= 0:
            raise ConfigError(f"grid_interval must be positive, got {self.grid_interval}")

    def check_bounds(self) -> None:
        """Raise ConfigError unless 0 < grid_lower_bound < grid_upper_bound."""
        lower, upper = self.grid_lower_bound, self.grid_upper_bound
        if lower is None or upper is None:
            raise ConfigError("grid_lower_bound and grid_upper_bound are required")
        if lower <= 0 or upper <= 0 or lower >= upper:
            raise ConfigError(f"invalid grid bounds: lower={lower}, upper={upper}")
