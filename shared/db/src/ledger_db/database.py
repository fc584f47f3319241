"""Engine and session management for the ledger database.

SQLite serves tests and single-process deployments, PostgreSQL everything
else. Both are reached through DatabaseFactory.get_session, which wraps one
unit of work in a transaction.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_db.settings import DatabaseSettings
from ledger_db.models import Base


logger = logging.getLogger(__name__)


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # Leave transaction control to SQLAlchemy, see _begin_immediate
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn):
    # SQLite ignores FOR UPDATE; taking the write lock at BEGIN serializes
    # read-modify-write sessions across threads instead
    conn.exec_driver_sql("BEGIN IMMEDIATE")


class DatabaseFactory:
    """Lazily built engine plus transactional sessions.

    Usage:
        db = DatabaseFactory(DatabaseSettings(db_name="paper_bot.db"))
        db.create_tables()

        with db.get_session() as session:
            session.add(User(username="alice"))
            # Commits on success, rolls back on error
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self.settings = settings or DatabaseSettings()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            url = self.settings.get_database_url()
            logger.info("Connecting to database %s", self.settings.redacted_url())
            self._engine = self._sqlite_engine(url) if self.is_sqlite else self._pooled_engine(url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # Ledger snapshots are read after their session closed
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    @property
    def is_sqlite(self) -> bool:
        return self.settings.get_database_url().startswith("sqlite")

    def _sqlite_engine(self, url: str) -> Engine:
        kwargs = {
            "echo": self.settings.echo_sql,
            "connect_args": {"check_same_thread": False},
        }
        # An in-memory database exists only inside its one connection
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_immediate)
        return engine

    def _pooled_engine(self, url: str) -> Engine:
        return create_engine(
            url,
            echo=self.settings.echo_sql,
            poolclass=QueuePool,
            pool_size=self.settings.pool_size,
            max_overflow=self.settings.max_overflow,
            pool_timeout=self.settings.pool_timeout,
            pool_recycle=self.settings.pool_recycle,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        """Create missing tables."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all ledger tables. Test use only."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        """Close pooled connections. The engine is rebuilt on next use."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Yield a session whose work commits on exit or rolls back on error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
