"""
Pydantic models for relay API responses.
"""
import datetime as dt
from pydantic import BaseModel, Field
from typing import Optional

from relay.models.message import Message, MessageStatus


class ApiResponse(BaseModel):
    """
    Standard acknowledgement body.

    `id` and `status` are only present when a message was accepted.
    """
    success: bool
    message: str
    id: Optional[str] = Field(None, description="Identifier of the accepted message")
    status: Optional[str] = Field(None, description="Delivery state at acknowledgement time")


class MessageView(BaseModel):
    """Read-only projection of a stored message (payload omitted)."""
    id: str
    status: MessageStatus
    received_at: dt.datetime
    sent_at: Optional[dt.datetime] = None
    attempt_count: int
    last_error: Optional[str] = None
    last_retry_at: Optional[dt.datetime] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageView":
        return cls(
            id=message.id,
            status=message.status,
            received_at=message.received_at,
            sent_at=message.sent_at,
            attempt_count=message.attempt_count,
            last_error=message.last_error,
            last_retry_at=message.last_retry_at,
        )
