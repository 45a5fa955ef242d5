"""Local persistence: connection management, models and repositories."""

from promosync.database.connection import Base, DatabaseManager

__all__ = ["Base", "DatabaseManager"]
