"""Database initialization script.

Usage:
    paperbot-init-db
    python -m ledger_db.init_db --db-name paper_bot.db

Environment variables:
    PAPERBOT_DATABASE_URL: Full SQLAlchemy URL (overrides the components below)
    PAPERBOT_DB_TYPE: 'sqlite' (default) or 'postgresql'
    PAPERBOT_DB_NAME: Database name or file path
    PAPERBOT_DB_HOST, PAPERBOT_DB_PORT, PAPERBOT_DB_USER, PAPERBOT_DB_PASSWORD: PostgreSQL config
"""

import argparse
import sys
from typing import Optional

from sqlalchemy import inspect

from ledger_db.settings import DatabaseSettings
from ledger_db.database import DatabaseFactory


def initialize_database(settings: Optional[DatabaseSettings] = None) -> DatabaseFactory:
    """Initialize database and create all tables.

    Args:
        settings: Database configuration. Uses defaults/env vars if not provided.

    Returns:
        Configured DatabaseFactory instance.
    """
    settings = settings or DatabaseSettings()
    db = DatabaseFactory(settings)
    db.create_tables()
    return db


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for database initialization."""
    parser = argparse.ArgumentParser(
        description="Initialize the paper trading ledger database"
    )
    parser.add_argument(
        "--db-type",
        choices=["sqlite", "postgresql"],
        help="Database type (default: sqlite)",
    )
    parser.add_argument(
        "--db-name",
        help="Database name or file path",
    )
    parser.add_argument(
        "--echo-sql",
        action="store_true",
        help="Echo SQL statements (debug mode)",
    )
    args = parser.parse_args(argv)

    settings_kwargs = {}
    if args.db_type:
        settings_kwargs["db_type"] = args.db_type
    if args.db_name:
        settings_kwargs["db_name"] = args.db_name
    if args.echo_sql:
        settings_kwargs["echo_sql"] = True

    try:
        settings = DatabaseSettings(**settings_kwargs)
        print(f"Initializing database: {settings.redacted_url()}")
        db = initialize_database(settings)
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1

    print("Database initialized successfully.")
    print("Tables created:")
    for table in inspect(db.engine).get_table_names():
        print(f"  - {table}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
