"""
Relay Error Taxonomy

Exceptions shared by the store, the delivery pipeline and the HTTP layer.
Transport outcomes (retryable / terminal) and exhausted cycles are reported
as return values, not raised; see relay.models.delivery.
"""
from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""
    pass


class StoreUnavailable(RelayError):
    """Raised when the message store is unreachable or rejects an operation."""
    pass


class InvalidTransition(RelayError):
    """Raised when a message is asked to leave a terminal state."""
    pass


class StatusPersistError(StoreUnavailable):
    """
    Raised when the terminal status write after a delivery cycle fails.

    The delivery itself completed (successfully or not) but the store still
    shows the previous status; a later sweep will re-evaluate the message.

    Attributes:
        message_id: Message whose status could not be written
        delivered: Whether the downstream accepted the payload
    """

    def __init__(self, message_id: str, delivered: bool, cause: Optional[Exception] = None):
        self.message_id = message_id
        self.delivered = delivered
        outcome = "sent" if delivered else "failed"
        super().__init__(
            f"Could not persist '{outcome}' status for message {message_id}: {cause}"
        )
