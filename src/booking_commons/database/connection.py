"""
Database connection management using asyncpg for booking-commons applications.
"""
import os
from typing import Optional, Any, List
from contextlib import asynccontextmanager
import asyncpg
from asyncpg import Pool, Record
import logging

from ..config.settings import DatabaseSettings, get_database_settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the asyncpg connection pool used by the booking repositories."""
    
    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[DatabaseSettings] = None,
        **pool_config
    ):
        """Initialize DatabaseManager.
        
        Args:
            database_url: Database URL (defaults to DATABASE_URL env var, then settings)
            settings: Database settings (defaults to the cached environment settings)
            **pool_config: Additional pool configuration options
        """
        settings = settings or get_database_settings()
        self.pool: Optional[Pool] = None
        self.schema = settings.schema_name
        self.dsn = database_url or os.getenv("DATABASE_URL") or settings.dsn
        if "+asyncpg" in self.dsn:
            self.dsn = self.dsn.replace("+asyncpg", "")
        
        self.pool_config = {
            "min_size": settings.pool_min_size,
            "max_size": settings.pool_max_size,
            "max_inactive_connection_lifetime": 300,
            "command_timeout": settings.command_timeout_seconds,
            **pool_config
        }
    
    async def create_pool(self) -> Pool:
        """Create and return a connection pool."""
        if self.pool is None:
            logger.info(f"Creating database pool with size {self.pool_config['max_size']}")
            
            app_name = os.getenv("APP_NAME", "booking-commons")
            self.pool = await asyncpg.create_pool(
                self.dsn,
                server_settings={'application_name': app_name},
                **self.pool_config
            )
            logger.info("Database pool created successfully")
        return self.pool
    
    async def close_pool(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database pool closed")
    
    @asynccontextmanager
    async def acquire(self):
        """Acquire a connection from the pool."""
        if not self.pool:
            await self.create_pool()
        
        async with self.pool.acquire() as connection:
            yield connection
    
    @asynccontextmanager
    async def transaction(self):
        """Create a transaction context."""
        async with self.acquire() as connection:
            async with connection.transaction():
                yield connection
    
    async def execute(self, query: str, *args, timeout: float = None) -> str:
        """Execute a query without returning results."""
        async with self.acquire() as connection:
            return await connection.execute(query, *args, timeout=timeout)
    
    async def fetch(self, query: str, *args, timeout: float = None) -> List[Record]:
        """Fetch multiple rows."""
        async with self.acquire() as connection:
            return await connection.fetch(query, *args, timeout=timeout)
    
    async def fetchrow(self, query: str, *args, timeout: float = None) -> Optional[Record]:
        """Fetch a single row."""
        async with self.acquire() as connection:
            return await connection.fetchrow(query, *args, timeout=timeout)
    
    async def fetchval(self, query: str, *args, column: int = 0, timeout: float = None) -> Any:
        """Fetch a single value."""
        async with self.acquire() as connection:
            return await connection.fetchval(query, *args, column=column, timeout=timeout)
    
    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.acquire() as connection:
                result = await connection.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


# Global instance
_database_manager: Optional[DatabaseManager] = None


def get_database(database_url: Optional[str] = None) -> DatabaseManager:
    """Get the global database manager instance."""
    global _database_manager
    if _database_manager is None:
        _database_manager = DatabaseManager(database_url)
    return _database_manager


async def init_database(database_url: Optional[str] = None) -> DatabaseManager:
    """Initialize the global database pool."""
    logger.info("Initializing database connections...")
    db = get_database(database_url)
    await db.create_pool()
    logger.info("Database initialization complete")
    return db


async def close_database():
    """Close the global database pool."""
    global _database_manager
    if _database_manager:
        await _database_manager.close_pool()
        _database_manager = None
    logger.info("All database connections closed")
