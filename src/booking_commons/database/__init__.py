"""asyncpg connection management."""

from .connection import DatabaseManager, get_database, init_database, close_database

__all__ = ["DatabaseManager", "get_database", "init_database", "close_database"]
