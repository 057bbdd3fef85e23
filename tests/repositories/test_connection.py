"""
Database Connection Tests
Tests for MongoDB client lifecycle and index creation, with Motor mocked out.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from pymongo.errors import ServerSelectionTimeoutError

from relay.config import Settings, settings
from relay.repositories.connection import DatabaseManager, db_manager


pytestmark = pytest.mark.asyncio


@pytest.fixture
def motor_client():
    """Patch the Motor client class; yields the instance connect() will build."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1.0})
    database = MagicMock()
    database.messages.create_index = AsyncMock(return_value="idx_status_received")
    client.__getitem__.return_value = database

    with patch("relay.repositories.connection.AsyncIOMotorClient", return_value=client) as client_cls:
        client.client_cls = client_cls
        yield client

    db_manager._client = None
    db_manager._database = None


class TestDatabaseManager:
    """Test suite for DatabaseManager singleton."""

    async def test_singleton_pattern(self):
        assert DatabaseManager() is DatabaseManager()
        assert DatabaseManager() is db_manager

    async def test_connect_uses_settings(self, motor_client):
        await db_manager.connect()

        args, kwargs = motor_client.client_cls.call_args
        assert args == (settings.mongodb_uri,)
        assert kwargs["maxPoolSize"] == settings.mongodb_max_pool_size
        assert kwargs["minPoolSize"] == settings.mongodb_min_pool_size
        assert kwargs["tz_aware"] is True
        motor_client.__getitem__.assert_called_with(settings.mongodb_database)
        assert db_manager.client is motor_client

    async def test_connect_is_idempotent(self, motor_client):
        await db_manager.connect()
        await db_manager.connect()

        assert motor_client.client_cls.call_count == 1

    async def test_connect_rebuilds_dead_client(self, motor_client):
        await db_manager.connect()
        motor_client.admin.command.side_effect = ServerSelectionTimeoutError("gone")

        await db_manager.connect()

        assert motor_client.client_cls.call_count == 2

    async def test_disconnect_cleans_up(self, motor_client):
        await db_manager.connect()
        await db_manager.disconnect()
        await db_manager.disconnect()  # Should not raise

        motor_client.close.assert_called_once()
        assert db_manager._client is None
        assert db_manager._database is None

    async def test_properties_raise_when_not_connected(self):
        await db_manager.disconnect()

        with pytest.raises(RuntimeError, match="Database not connected"):
            _ = db_manager.database
        with pytest.raises(RuntimeError, match="Database client not connected"):
            _ = db_manager.client

    async def test_connect_uses_injected_settings(self, motor_client):
        config = Settings(
            mongodb_uri="mongodb://relay-db:27017",
            mongodb_database="relay_staging",
            mongodb_max_pool_size=7,
        )

        await db_manager.connect(config)

        args, kwargs = motor_client.client_cls.call_args
        assert args == ("mongodb://relay-db:27017",)
        assert kwargs["maxPoolSize"] == 7
        motor_client.__getitem__.assert_called_with("relay_staging")
        assert db_manager.connected is True

    async def test_create_indexes(self, motor_client):
        await db_manager.connect()

        await db_manager.create_indexes()

        db_manager.database.messages.create_index.assert_awaited_once_with(
            [("status", 1), ("received_at", 1)],
            name="idx_status_received"
        )
