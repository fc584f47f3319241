"""Ledger database settings, read from arguments or PAPERBOT_ environment variables."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class DatabaseSettings(BaseSettings):
    """Where the ledger lives.

    Either a complete database_url or its components. SQLite needs only
    db_name (a file path or ':memory:'); PostgreSQL needs host, port, user
    and password as well.

    Examples:
        DatabaseSettings(database_url="postgresql+psycopg2://bot:pw@db:5432/paper")
        DatabaseSettings(db_name="paper_bot.db")
        PAPERBOT_DB_TYPE=postgresql PAPERBOT_DB_HOST=db ... (environment)
    """

    database_url: Optional[str] = None

    db_type: str = "sqlite"  # 'sqlite' or 'postgresql'
    db_host: Optional[str] = None
    db_port: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: str = "paper_bot.db"

    # PostgreSQL connection pool
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    echo_sql: bool = False

    model_config = SettingsConfigDict(env_prefix="PAPERBOT_", env_file=".env", extra="ignore")

    def get_database_url(self) -> str:
        """SQLAlchemy URL of the ledger database.

        Raises:
            ValueError: If db_type is unknown or PostgreSQL components are missing.
        """
        if self.database_url:
            return self.database_url

        if self.db_type == "sqlite":
            return f"sqlite+pysqlite:///{self.db_name}"

        if self.db_type == "postgresql":
            missing = [
                name for name in ("db_host", "db_port", "db_user", "db_password")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"PostgreSQL requires {', '.join(missing)}")
            url = URL.create(
                "postgresql+psycopg2",
                username=self.db_user,
                password=self.db_password,
                host=self.db_host,
                port=int(self.db_port),
                database=self.db_name,
            )
            return url.render_as_string(hide_password=False)

        raise ValueError(f"Unsupported database type: {self.db_type}")

    def redacted_url(self) -> str:
        """get_database_url() with any password masked, for logs."""
        return make_url(self.get_database_url()).render_as_string(hide_password=True)
