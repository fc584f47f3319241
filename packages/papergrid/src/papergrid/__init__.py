"""
papergrid - Pure paper trading strategy logic with zero I/O dependencies.

This package contains the grid trading state machines (single-side and
bidirectional), the placeholder default strategy and the portfolio math,
designed to be driven by the scheduler service and exercised directly in tests.
"""

from papergrid.config import (
    StrategyConfig,
    StrategyType,
    ConfigError,
    MIN_USD_BALANCE,
    MIN_BTC_BALANCE,
    BUY_DEDUP_TOLERANCE,
)
from papergrid.events import PriceReading
from papergrid.fills import Fill, TradeSide, quantize_btc, quantize_usd
from papergrid.portfolio import Balances, InsufficientBalanceError
from papergrid.state import (
    GridOrder,
    GridLevel,
    ActiveOrder,
    SingleSideGridState,
    BidirectionalGridState,
    NoState,
    StrategyState,
    load_state,
    dump_state,
)
from papergrid.grid import build_grid_levels, locate_level, dip_level, target_buy_price
from papergrid.engine import (
    Evaluation,
    StrategyEngine,
    SingleSideGridEngine,
    BidirectionalGridEngine,
    DefaultStrategyEngine,
    engine_for,
    evaluate,
)
from papergrid.stats import PortfolioStats, compute_portfolio_stats, STARTING_BALANCE, FALLBACK_PRICE

__version__ = "0.1.0"

__all__ = [
    "StrategyConfig",
    "StrategyType",
    "ConfigError",
    "MIN_USD_BALANCE",
    "MIN_BTC_BALANCE",
    "BUY_DEDUP_TOLERANCE",
    "PriceReading",
    "Fill",
    "TradeSide",
    "quantize_btc",
    "quantize_usd",
    "Balances",
    "InsufficientBalanceError",
    "GridOrder",
    "GridLevel",
    "ActiveOrder",
    "SingleSideGridState",
    "BidirectionalGridState",
    "NoState",
    "StrategyState",
    "load_state",
    "dump_state",
    "build_grid_levels",
    "locate_level",
    "dip_level",
    "target_buy_price",
    "Evaluation",
    "StrategyEngine",
    "SingleSideGridEngine",
    "BidirectionalGridEngine",
    "DefaultStrategyEngine",
    "engine_for",
    "evaluate",
    "PortfolioStats",
    "compute_portfolio_stats",
    "STARTING_BALANCE",
    "FALLBACK_PRICE",
]
