"""Game store implementations: SQLite-backed and in-memory."""

from shared.db.connection import Database
from shared.db.game_store import SqliteGameStore
from shared.db.memory_store import MemoryGameStore

__all__ = [
    "Database",
    "MemoryGameStore",
    "SqliteGameStore",
]
