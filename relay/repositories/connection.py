"""
MongoDB Connection Management
Process-wide Motor client for the message store.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from typing import Optional
from ..config import Settings, settings as default_settings
from ..utils.observability import logger

# Index serving find_retryable: status IN (pending, failed), oldest first
RETRY_INDEX_NAME = "idx_status_received"
RETRY_INDEX_KEYS = [("status", 1), ("received_at", 1)]


class DatabaseManager:
    """
    Singleton owner of the Motor client backing MongoMessageStore.

    The relay opens the client once in the application lifespan and closes it
    on shutdown. Timestamps are read back timezone-aware so they compare with
    the UTC values the models produce.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self, config: Optional[Settings] = None) -> None:
        """
        Open the client using the store settings.

        Reuses the current client while it still answers a ping; a client
        bound to a closed event loop or a lost server is replaced.
        """
        config = config or default_settings

        if self._client is not None:
            if await self._answers_ping():
                logger.debug("Reusing healthy MongoDB connection")
                return
            logger.warning("MongoDB client unusable, rebuilding")
            self._client = None
            self._database = None

        logger.bind(
            database=config.mongodb_database,
            max_pool_size=config.mongodb_max_pool_size,
            environment=config.environment
        ).info(f"Connecting to MongoDB at {config.mongodb_uri}")

        self._client = AsyncIOMotorClient(
            config.mongodb_uri,
            maxPoolSize=config.mongodb_max_pool_size,
            minPoolSize=config.mongodb_min_pool_size,
            serverSelectionTimeoutMS=config.mongodb_server_selection_timeout_ms,
            tz_aware=True,
        )
        self._database = self._client[config.mongodb_database]

    async def _answers_ping(self) -> bool:
        try:
            await self._client.admin.command("ping")
        except (RuntimeError, PyMongoError) as e:
            logger.debug(f"MongoDB ping failed: {e!r}")
            return False
        return True

    async def disconnect(self) -> None:
        """Close the client. Safe to call when not connected."""
        if self._client is None:
            return

        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed")

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """Relay database. Raises RuntimeError before connect()."""
        if self._database is None:
            raise RuntimeError(
                "Database not connected. Call await db_manager.connect() first."
            )
        return self._database

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError(
                "Database client not connected. Call await db_manager.connect() first."
            )
        return self._client

    async def create_indexes(self) -> None:
        """Ensure the message store's indexes exist. Idempotent."""
        await self.database.messages.create_index(RETRY_INDEX_KEYS, name=RETRY_INDEX_NAME)
        logger.info(f"MongoDB index {RETRY_INDEX_NAME} ready")


db_manager = DatabaseManager()
