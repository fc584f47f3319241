"""Main entry point for paperbot.

Usage:
    paperbot
    paperbot --config path/to/config.yaml
    python -m paperbot.main --debug
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional

from ledger_db import DatabaseFactory, DatabaseSettings, Ledger
from price_feed import BybitPriceClient, PriceService

from paperbot.bot import TradingBot
from paperbot.config import PaperbotConfig, SeedStrategyConfig, load_config
from paperbot.notifier import Notifier
from paperbot.runner import StrategyRunner
from paperbot.scheduler import Scheduler


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record):
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict)


def setup_logging(json_file: Optional[str] = None, debug: bool = False) -> None:
    """Set up logging with console output and an optional JSON log file.

    Args:
        json_file: Path to JSON log file (optional).
        debug: Log paperbot packages at DEBUG.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file)
        except OSError as e:
            logging.warning(f"Failed to set up JSON logging: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JsonFormatter())
            root_logger.addHandler(file_handler)

    if debug:
        for name in ("paperbot", "papergrid", "price_feed", "ledger_db"):
            logging.getLogger(name).setLevel(logging.DEBUG)

    # Reduce noise from libraries
    logging.getLogger("pybit").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("TeleBot").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def seed_strategies(ledger: Ledger, seeds: list[SeedStrategyConfig]) -> int:
    """Create configured strategies that do not exist yet.

    Strategies are matched by owner and name; existing ones are left as they
    are, so edits in the database survive restarts.

    Returns:
        Number of strategies created
    """
    created = 0
    for seed in seeds:
        user = ledger.get_or_create_user(seed.username)
        ledger.get_or_create_portfolio(user.user_id)
        existing = {s.name for s in ledger.get_strategies(user.user_id)}
        if seed.name in existing:
            continue
        ledger.create_strategy(
            user.user_id,
            seed.name,
            strategy_type=seed.strategy_type,
            is_active=seed.is_active,
            **seed.strategy_params(),
        )
        created += 1
    return created


def build_database(config: PaperbotConfig) -> DatabaseFactory:
    """Create the database factory for config.database_url and ensure tables exist."""
    db = DatabaseFactory(DatabaseSettings(database_url=config.database_url))
    db.create_tables()
    logger.info(f"Database initialized: {db.settings.redacted_url()}")
    return db


async def main(config_path: Optional[str] = None) -> int:
    """Main async entry point.

    Args:
        config_path: Path to configuration file.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = load_config(config_path)
        logger.info(f"Loaded configuration with {len(config.strategies)} seed strategies")
    except FileNotFoundError as e:
        logger.error(f"Configuration file not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        db = build_database(config)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return 1
    ledger = Ledger(db)

    telegram_config = None
    if config.notification and config.notification.telegram:
        telegram_config = config.notification.telegram
    notifier = Notifier(telegram_config)

    price_service = PriceService(
        BybitPriceClient(testnet=config.price_feed.testnet),
        symbol=config.price_feed.symbol,
    )
    runner = StrategyRunner(ledger, price_service)
    scheduler = Scheduler(runner, ledger, tick_interval=config.tick_interval, notifier=notifier)
    bot = TradingBot(ledger, scheduler, price_service)

    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, initiating shutdown")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        created = await asyncio.to_thread(seed_strategies, ledger, config.strategies)
        if created:
            logger.info(f"Seeded {created} strategies from configuration")

        await price_service.start(interval=config.price_feed.update_interval)
        started = await bot.sync_all_active_strategies()
        logger.info(f"Paperbot started with {started} active strategies")

        await shutdown_event.wait()

    except Exception as e:
        notifier.alert_exception("startup", e)
        return 1

    finally:
        logger.info("Shutting down paperbot")
        await scheduler.stop_all()
        await price_service.stop()

    logger.info("Paperbot stopped")
    return 0


def cli() -> None:
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Paperbot - paper trading grid bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: conf/paperbot.yaml)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Path to JSON log file (optional)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(json_file=args.log_file, debug=args.debug)

    try:
        exit_code = asyncio.run(main(args.config))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
