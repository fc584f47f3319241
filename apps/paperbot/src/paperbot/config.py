"""Configuration models for paperbot.

Loads bot configuration from YAML file with Pydantic validation.
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from papergrid import StrategyType


class TelegramConfig(BaseModel):
    """Telegram notification configuration."""

    bot_token: str = Field(..., description="Telegram bot token")
    chat_id: str = Field(..., description="Telegram chat ID for alerts")


class NotificationConfig(BaseModel):
    """Notification configuration."""

    telegram: Optional[TelegramConfig] = None


class PriceFeedConfig(BaseModel):
    """BTC price source configuration."""

    symbol: str = Field(default="BTCUSDT", description="Bybit spot symbol")
    testnet: bool = Field(default=False, description="Use testnet endpoints")
    update_interval: float = Field(default=60.0, gt=0, description="Seconds between price refreshes")


class SeedStrategyConfig(BaseModel):
    """Strategy created for a user at startup if the user has none of that name."""

    username: str = Field(..., description="Owner, created if missing")
    name: str = Field(..., description="Strategy display name")
    strategy_type: StrategyType = Field(default=StrategyType.DEFAULT)
    is_active: bool = Field(default=True, description="Schedule immediately")

    risk_tolerance: int = Field(default=50, ge=0, le=100)
    trade_size: Decimal = Field(default=Decimal("25"), ge=0, le=100, description="Percent of balance per trade")
    grid_interval: Decimal = Field(default=Decimal("2000"), gt=0, description="USD between grid levels")
    grid_profit_percent: Decimal = Field(default=Decimal("5.0"), gt=0)
    grid_lower_bound: Optional[Decimal] = None
    grid_upper_bound: Optional[Decimal] = None

    @field_validator("trade_size", "grid_interval", "grid_profit_percent", "grid_lower_bound", "grid_upper_bound", mode="before")
    @classmethod
    def parse_decimal(cls, v):
        """Parse YAML floats through str to keep their written value."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @model_validator(mode="after")
    def validate_bounds(self):
        """Bidirectional grids need 0 < lower < upper."""
        if self.strategy_type == StrategyType.BIDIRECTIONAL_GRID:
            lower, upper = self.grid_lower_bound, self.grid_upper_bound
            if lower is None or upper is None:
                raise ValueError(f"Strategy '{self.name}' needs grid_lower_bound and grid_upper_bound")
            if not (0 < lower < upper):
                raise ValueError(f"Strategy '{self.name}' has invalid grid bounds {lower}..{upper}")
        return self

    def strategy_params(self) -> dict:
        """Keyword arguments for Ledger.create_strategy."""
        return self.model_dump(exclude={"username", "name", "strategy_type", "is_active"})


class PaperbotConfig(BaseModel):
    """Root configuration for paperbot."""

    # Database
    database_url: str = Field(
        default="sqlite:///paper_bot.db",
        description="Database connection URL",
    )

    # Timing
    tick_interval: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between strategy ticks",
    )

    price_feed: PriceFeedConfig = Field(default_factory=PriceFeedConfig)
    strategies: list[SeedStrategyConfig] = Field(default_factory=list)

    # Notifications
    notification: Optional[NotificationConfig] = None

    @model_validator(mode="after")
    def validate_unique_names(self):
        """Seed strategy names must be unique per user."""
        seen = set()
        for strategy in self.strategies:
            key = (strategy.username, strategy.name)
            if key in seen:
                raise ValueError(f"Duplicate strategy '{strategy.name}' for user '{strategy.username}'")
            seen.add(key)
        return self


def load_config(config_path: Optional[str] = None) -> PaperbotConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, checks:
            1. PAPERBOT_CONFIG_PATH environment variable
            2. conf/paperbot.yaml
            3. paperbot.yaml

    Returns:
        Validated PaperbotConfig

    Raises:
        FileNotFoundError: If no config file found
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = os.environ.get("PAPERBOT_CONFIG_PATH")

    if config_path is None:
        search_paths = [
            Path("conf/paperbot.yaml"),
            Path("paperbot.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Set PAPERBOT_CONFIG_PATH or create conf/paperbot.yaml"
        )

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return PaperbotConfig(**data)
