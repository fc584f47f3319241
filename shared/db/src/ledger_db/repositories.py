"""Repository pattern for ledger database operations."""

from typing import Generic, TypeVar, Optional, List

from sqlalchemy.orm import Session

from ledger_db.models import Base, User, Portfolio, Strategy, Transaction


T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations.

    Usage:
        repo = BaseRepository(session, User)
        user = repo.create(User(username="alice"))
    """

    def __init__(self, session: Session, model_class: type[T]):
        """Initialize repository with session and model class.

        Args:
            session: SQLAlchemy session instance.
            model_class: The ORM model class to operate on.
        """
        self.session = session
        self.model_class = model_class

    def create(self, entity: T) -> T:
        """Create new entity.

        Args:
            entity: Entity instance to insert.

        Returns:
            The created entity with generated fields populated.
        """
        self.session.add(entity)
        self.session.flush()
        return entity

    def get_by_id(self, id: str) -> Optional[T]:
        """Get entity by primary key."""
        return self.session.get(self.model_class, id)

    def delete(self, entity: T) -> None:
        """Delete entity.

        Args:
            entity: Entity instance to delete.
        """
        self.session.delete(entity)
        self.session.flush()


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def get_by_username(self, username: str) -> Optional[User]:
        """Find user by username.

        Args:
            username: The username to search for.

        Returns:
            User instance or None.
        """
        return self.session.query(User).filter(User.username == username).first()


class PortfolioRepository(BaseRepository[Portfolio]):
    """Repository for Portfolio operations."""

    def __init__(self, session: Session):
        super().__init__(session, Portfolio)

    def get_by_user_id(self, user_id: str, for_update: bool = False) -> Optional[Portfolio]:
        """Get the portfolio of a user.

        Args:
            user_id: Owner of the portfolio.
            for_update: Lock the row until the transaction ends (no-op on SQLite).

        Returns:
            Portfolio instance or None.
        """
        query = self.session.query(Portfolio).filter(Portfolio.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()


class StrategyRepository(BaseRepository[Strategy]):
    """Repository for Strategy operations."""

    def __init__(self, session: Session):
        super().__init__(session, Strategy)

    def get_for_update(self, strategy_id: str) -> Optional[Strategy]:
        """Get a strategy and lock its row until the transaction ends.

        Args:
            strategy_id: The strategy's ID.

        Returns:
            Strategy instance or None.
        """
        return (
            self.session.query(Strategy)
            .filter(Strategy.strategy_id == strategy_id)
            .with_for_update()
            .first()
        )

    def get_by_user_id(self, user_id: str) -> List[Strategy]:
        """Get all strategies of a user, oldest first.

        Args:
            user_id: The user's ID.

        Returns:
            List of Strategy instances.
        """
        return (
            self.session.query(Strategy)
            .filter(Strategy.user_id == user_id)
            .order_by(Strategy.created_at)
            .all()
        )

    def get_active(self) -> List[Strategy]:
        """Get all active strategies across users.

        Returns:
            List of active Strategy instances.
        """
        return (
            self.session.query(Strategy)
            .filter(Strategy.is_active.is_(True))
            .order_by(Strategy.created_at)
            .all()
        )


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction operations. Transactions are append-only."""

    def __init__(self, session: Session):
        super().__init__(session, Transaction)

    def get_by_user_id(self, user_id: str, limit: Optional[int] = 50) -> List[Transaction]:
        """Get transactions of a user, newest first.

        Args:
            user_id: The user's ID.
            limit: Max transactions, None for all.

        Returns:
            List of Transaction instances.
        """
        query = (
            self.session.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.timestamp.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_by_strategy_id(self, strategy_id: str) -> List[Transaction]:
        """Get transactions executed by a strategy, oldest first.

        Args:
            strategy_id: The strategy's ID.

        Returns:
            List of Transaction instances.
        """
        return (
            self.session.query(Transaction)
            .filter(Transaction.strategy_id == strategy_id)
            .order_by(Transaction.timestamp)
            .all()
        )
