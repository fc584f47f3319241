"""Paper trading bot service: strategy scheduling over the ledger."""

__version__ = "0.1.0"
