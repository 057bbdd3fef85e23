"""
In-Memory Message Store

Simple in-memory store implementation for testing and single-process
development runs. Uses asyncio primitives for safe concurrent access.
"""

import asyncio
from typing import Optional

from .store import MessageStore
from ..errors import StoreUnavailable
from ..models.message import Message, MessageStatus


class InMemoryMessageStore(MessageStore):
    """
    In-memory message store implementation.

    Stores copies of messages in a dictionary - data is lost on restart.
    Callers never receive the stored instance itself, so mutating a returned
    message cannot change stored state.

    Suitable for:
    - Testing
    - Local development without MongoDB

    Not suitable for:
    - Production deployments (no durability)
    - Multi-process deployments

    Attributes:
        available: When False every operation raises StoreUnavailable,
            which lets tests simulate a lost connection.
        writes: Number of successful write operations, for assertions.
    """

    def __init__(self):
        """Initialize in-memory store."""
        self._messages: dict[str, Message] = {}
        self._lock = asyncio.Lock()
        self.available = True
        self.writes = 0

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailable("In-memory store marked unavailable")

    async def insert(self, message: Message) -> None:
        async with self._lock:
            self._check_available()
            if message.id in self._messages:
                raise StoreUnavailable(f"Duplicate message id {message.id}")
            self._messages[message.id] = message.model_copy(deep=True)
            self.writes += 1

    async def mark_sent(self, message_id: str) -> None:
        async with self._lock:
            self._check_available()
            stored = self._messages.get(message_id)
            if stored is None or stored.is_sent:
                return
            stored.mark_sent()
            self.writes += 1

    async def mark_failed(self, message_id: str, error: str, attempt_count: int) -> None:
        async with self._lock:
            self._check_available()
            stored = self._messages.get(message_id)
            if stored is None or stored.is_sent:
                return
            stored.mark_failed(error, attempt_count=attempt_count)
            self.writes += 1

    async def find_retryable(self, limit: int) -> list[Message]:
        async with self._lock:
            self._check_available()
            retryable = sorted(
                (m for m in self._messages.values() if m.is_retryable),
                key=lambda m: m.received_at
            )
            return [m.model_copy(deep=True) for m in retryable[:max(limit, 0)]]

    async def get_by_id(self, message_id: str) -> Optional[Message]:
        async with self._lock:
            self._check_available()
            stored = self._messages.get(message_id)
            return stored.model_copy(deep=True) if stored else None

    async def count_by_status(self, status: MessageStatus) -> int:
        async with self._lock:
            self._check_available()
            return sum(1 for m in self._messages.values() if m.status == status)

    async def ping(self) -> None:
        self._check_available()
