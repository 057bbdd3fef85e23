import datetime as dt
from enum import StrEnum
from typing import Optional
from pydantic import Field, field_serializer, field_validator
from relay.errors import InvalidTransition
from relay.models.base import MongoBaseModel


class MessageStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# Statuses the retry sweep is allowed to pick up
RETRYABLE_STATUSES = (MessageStatus.PENDING, MessageStatus.FAILED)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class Message(MongoBaseModel):
    """
    A relayed payload and its delivery state.

    Lifecycle:
        pending --(delivered)--> sent      (final)
        pending --(cycle failed)--> failed --(delivered)--> sent
        failed  --(cycle failed)--> failed (attempt_count + 1)

    `failed` is never terminal on its own: the retry sweep stops picking a
    message up once attempt_count reaches the hard ceiling, but the stored
    status stays `failed`.
    """
    payload: str = Field(..., frozen=True, description="Opaque body, never inspected.")
    status: MessageStatus = MessageStatus.PENDING
    received_at: dt.datetime = Field(default_factory=utc_now, frozen=True)
    sent_at: Optional[dt.datetime] = None
    attempt_count: int = Field(default=0, ge=0, description="Failed delivery cycles so far.")
    last_error: Optional[str] = None
    last_retry_at: Optional[dt.datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def decode_status(cls, value):
        # Unrecognized stored values stay retryable rather than disappear
        if isinstance(value, MessageStatus):
            return value
        try:
            return MessageStatus(str(value).lower())
        except ValueError:
            return MessageStatus.PENDING

    @field_serializer("status")
    def serialize_status(self, value: MessageStatus) -> str:
        return value.value

    @field_serializer("received_at", "sent_at", "last_retry_at", when_used="json")
    def serialize_dt(self, value: Optional[dt.datetime]):
        return value.isoformat() if value else None

    @property
    def is_sent(self) -> bool:
        return self.status == MessageStatus.SENT

    @property
    def is_retryable(self) -> bool:
        return self.status in RETRYABLE_STATUSES

    def mark_sent(self, at: Optional[dt.datetime] = None) -> None:
        """Record a successful delivery. sent_at is set exactly once."""
        if self.is_sent:
            raise InvalidTransition(f"Message {self.id} is already sent")
        self.status = MessageStatus.SENT
        self.sent_at = at or utc_now()

    def mark_failed(
        self,
        error: str,
        attempt_count: Optional[int] = None,
        at: Optional[dt.datetime] = None
    ) -> None:
        """
        Record a failed delivery cycle.

        Args:
            error: Failure description from the last attempt
            attempt_count: Persisted count to apply; defaults to current + 1.
                Never lowers the existing count.
            at: Timestamp of the failed cycle
        """
        if self.is_sent:
            raise InvalidTransition(f"Message {self.id} is already sent")
        new_count = self.attempt_count + 1 if attempt_count is None else attempt_count
        self.status = MessageStatus.FAILED
        self.attempt_count = max(self.attempt_count, new_count)
        self.last_error = error
        self.last_retry_at = at or utc_now()
