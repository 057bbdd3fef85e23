"""
Message Repository
MongoDB-backed message store for the delivery pipeline.
"""
import datetime as dt
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .base import BaseRepository
from .store import MessageStore
from ..errors import StoreUnavailable
from ..models.message import Message, MessageStatus, RETRYABLE_STATUSES
from ..utils.observability import logger


class MongoMessageStore(BaseRepository[Message], MessageStore):
    """
    Message store over the `messages` collection.

    Document layout: `_id` is the message id; the remaining fields mirror
    Message. The compound (status, received_at) index created by
    DatabaseManager.create_indexes serves find_retryable.

    Status writes are conditional on the message not being `sent`, so a
    delivery that loses a race with another delivery of the same message
    can never undo a success.
    """

    COLLECTION = "messages"

    def __init__(self, database: AsyncIOMotorDatabase):
        """Initialize the store with a database connection."""
        super().__init__(database, self.COLLECTION, Message)

    async def insert(self, message: Message) -> None:
        try:
            await self.create(message)
        except PyMongoError as e:
            logger.error(f"Failed to insert message {message.id}: {e}")
            raise StoreUnavailable(f"Failed to store message: {e}") from e

    async def mark_sent(self, message_id: str) -> None:
        try:
            matched = await self.update_fields(
                {"_id": message_id, "status": {"$ne": MessageStatus.SENT.value}},
                {"$set": {
                    "status": MessageStatus.SENT.value,
                    "sent_at": dt.datetime.now(dt.UTC),
                }}
            )
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to mark message {message_id} as sent: {e}") from e

        if not matched:
            logger.debug(f"Message {message_id} already sent or unknown, sent_at unchanged")
        else:
            logger.debug(f"Message {message_id} marked as sent")

    async def mark_failed(self, message_id: str, error: str, attempt_count: int) -> None:
        try:
            matched = await self.update_fields(
                {"_id": message_id, "status": {"$ne": MessageStatus.SENT.value}},
                {
                    "$set": {
                        "status": MessageStatus.FAILED.value,
                        "last_error": error,
                        "last_retry_at": dt.datetime.now(dt.UTC),
                    },
                    # Concurrent cycles may report a lower count; keep the highest
                    "$max": {"attempt_count": attempt_count},
                }
            )
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to mark message {message_id} as failed: {e}") from e

        if not matched:
            logger.debug(f"Message {message_id} already sent or unknown, failure not recorded")
        else:
            logger.debug(f"Message {message_id} marked as failed (cycle {attempt_count})")

    async def find_retryable(self, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        try:
            messages = await self.find_many(
                filter_dict={"status": {"$in": [s.value for s in RETRYABLE_STATUSES]}},
                limit=limit,
                sort=[("received_at", 1)]
            )
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to fetch messages for retry: {e}") from e

        logger.debug(f"Found {len(messages)} messages for retry")
        return messages

    async def get_by_id(self, message_id: str) -> Optional[Message]:
        try:
            return await self.find_by_id(message_id)
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to fetch message {message_id}: {e}") from e

    async def count_by_status(self, status: MessageStatus) -> int:
        try:
            return await self.count({"status": MessageStatus(status).value})
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to count messages: {e}") from e

    async def ping(self) -> None:
        try:
            await self.database.command("ping")
        except PyMongoError as e:
            raise StoreUnavailable(f"Health check failed: {e}") from e
