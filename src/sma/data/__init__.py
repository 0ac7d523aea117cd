"""SMA persistence layer.

Provides the repository contract, SQLite database management, and the
typed SQLite store implementing the contract.
"""

from sma.data.database import SMADatabase
from sma.data.repository import SMARepository
from sma.data.store import SQLiteSMAStore

__all__ = [
    "SMADatabase",
    "SMARepository",
    "SQLiteSMAStore",
]
