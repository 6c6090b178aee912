"""AsyncPG-based business lookup used by ownership conditions."""

from typing import Any, Dict, Optional
import logging

import asyncpg

from ....core.exceptions import DatabaseError
from ....database import DatabaseManager


logger = logging.getLogger(__name__)


class AsyncPGBusinessRepository:
    """AsyncPG implementation of BusinessRepository protocol."""

    def __init__(self, database: DatabaseManager, schema: Optional[str] = None):
        """Initialize with database manager and target schema."""
        self.db = database
        self.schema = schema or database.schema

    def _build_business_from_row(self, row: asyncpg.Record) -> Dict[str, Any]:
        """Build raw business mapping from database row."""
        return {
            "id": row["id"],
            "owner_id": row["ownerId"],
            "name": row["name"],
            "is_active": row["isActive"],
        }

    async def find_by_id(self, business_id: str) -> Optional[Dict[str, Any]]:
        """Get business by ID, ignoring soft-deleted rows."""
        try:
            row = await self.db.fetchrow(f"""
                SELECT id, "ownerId", name, "isActive"
                FROM {self.schema}.businesses
                WHERE id = $1 AND "deletedAt" IS NULL
            """, business_id)
            return self._build_business_from_row(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get business by id {business_id}: {e}")
            raise DatabaseError(f"Failed to retrieve business: {e}")
