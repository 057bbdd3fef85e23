"""
Message Store Interface

Abstract interface for durable message storage consumed by the delivery
pipeline. Every operation is atomic for a single message; no cross-message
transactions are required.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.message import Message, MessageStatus


class MessageStore(ABC):
    """
    Abstract message store.

    Implementations must provide:
    - Insert: Durably record a new message
    - Mark sent / failed: Persist the outcome of a delivery cycle
    - Find retryable: Bounded set of pending/failed messages for the sweep
    - Lookups: By id and counts per status for observability

    All implementations raise StoreUnavailable when the backend cannot be
    reached or rejects the operation.
    """

    @abstractmethod
    async def insert(self, message: Message) -> None:
        """
        Durably record a new message.

        Args:
            message: Message in `pending` state
        """
        pass

    @abstractmethod
    async def mark_sent(self, message_id: str) -> None:
        """
        Mark a message as delivered and stamp sent_at.

        A message that is already `sent` keeps its original sent_at.

        Args:
            message_id: ID of delivered message
        """
        pass

    @abstractmethod
    async def mark_failed(self, message_id: str, error: str, attempt_count: int) -> None:
        """
        Record a failed delivery cycle.

        Sets status `failed`, last_error and last_retry_at. The stored
        attempt_count never decreases, and a `sent` message is left untouched.

        Args:
            message_id: ID of failed message
            error: Failure description
            attempt_count: New failed-cycle count
        """
        pass

    @abstractmethod
    async def find_retryable(self, limit: int) -> list[Message]:
        """
        Get messages still awaiting delivery.

        Args:
            limit: Maximum messages to return

        Returns:
            Messages with status `pending` or `failed`, oldest first
        """
        pass

    @abstractmethod
    async def get_by_id(self, message_id: str) -> Optional[Message]:
        """
        Get a message by id.

        Returns:
            The message or None if unknown
        """
        pass

    @abstractmethod
    async def count_by_status(self, status: MessageStatus) -> int:
        """
        Count messages in a given status.

        Returns:
            Number of matching messages
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            StoreUnavailable: If the backend does not respond
        """
        pass
