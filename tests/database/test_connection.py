"""Tests for the asyncpg database manager."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from booking_commons.config.settings import DatabaseSettings
from booking_commons.database import DatabaseManager


@pytest.fixture
def db_settings():
    return DatabaseSettings(_env_file=None, schema_name="booking", pool_min_size=1, pool_max_size=4)


@pytest.fixture
def connection():
    connection = MagicMock()
    connection.execute = AsyncMock(return_value="UPDATE 1")
    connection.fetch = AsyncMock(return_value=[{"id": "r1"}])
    connection.fetchrow = AsyncMock(return_value={"id": "r1"})
    connection.fetchval = AsyncMock(return_value=1)
    return connection


@pytest.fixture
def manager(db_settings, connection, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    manager = DatabaseManager(settings=db_settings)

    @asynccontextmanager
    async def acquire():
        yield connection

    manager.pool = MagicMock()
    manager.pool.acquire = acquire
    manager.pool.close = AsyncMock()
    return manager


class TestDatabaseManager:
    """Test DatabaseManager."""

    def test_settings_are_applied(self, manager):
        assert manager.schema == "booking"
        assert manager.dsn.startswith("postgresql://")
        assert manager.pool_config["min_size"] == 1
        assert manager.pool_config["max_size"] == 4

    def test_sqlalchemy_style_url_is_normalised(self, db_settings):
        manager = DatabaseManager("postgresql+asyncpg://u:p@db/booking", settings=db_settings)

        assert manager.dsn == "postgresql://u:p@db/booking"

    def test_environment_url(self, db_settings, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://env:env@db/booking")

        assert DatabaseManager(settings=db_settings).dsn == "postgresql://env:env@db/booking"

    def test_pool_overrides(self, db_settings):
        manager = DatabaseManager("postgresql://db/booking", settings=db_settings, max_size=50)

        assert manager.pool_config["max_size"] == 50

    @pytest.mark.asyncio
    async def test_query_helpers(self, manager, connection):
        assert await manager.execute("UPDATE x SET y = $1", 1) == "UPDATE 1"
        assert await manager.fetch("SELECT id FROM x") == [{"id": "r1"}]
        assert await manager.fetchrow("SELECT id FROM x WHERE id = $1", "r1") == {"id": "r1"}
        assert await manager.fetchval("SELECT 1") == 1

        connection.execute.assert_awaited_once_with("UPDATE x SET y = $1", 1, timeout=None)

    @pytest.mark.asyncio
    async def test_health_check(self, manager, connection):
        assert await manager.health_check() is True

        connection.fetchval.side_effect = ConnectionError("down")
        assert await manager.health_check() is False

    @pytest.mark.asyncio
    async def test_close_pool(self, manager):
        pool = manager.pool

        await manager.close_pool()

        pool.close.assert_awaited_once()
        assert manager.pool is None
