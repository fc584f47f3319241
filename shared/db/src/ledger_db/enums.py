from enum import StrEnum


class TransactionStatus(StrEnum):
    """Lifecycle of a paper transaction. Paper fills complete immediately."""
    COMPLETED = "completed"
