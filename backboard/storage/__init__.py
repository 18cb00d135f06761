"""Storage backends."""

from .sqlite import ReviewTransaction, SQLiteStorage

__all__ = ["ReviewTransaction", "SQLiteStorage"]
