"""Storage layer for persistent wallet data."""

from gelap.storage.database import (
    Base,
    DatabaseManager,
    KeyValueEntry,
    SQLKeyValueStore,
    get_db_manager,
    reset_db_manager,
)
from gelap.storage.memory import MemoryKeyValueStore
from gelap.storage.wallet_store import WalletStorage

__all__ = [
    "Base",
    "DatabaseManager",
    "KeyValueEntry",
    "SQLKeyValueStore",
    "get_db_manager",
    "reset_db_manager",
    "MemoryKeyValueStore",
    "WalletStorage",
]
