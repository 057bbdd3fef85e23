"""
Tests for the Message model and its delivery state machine.
"""
import pytest
import datetime as dt

from relay.errors import InvalidTransition
from relay.models.message import Message, MessageStatus


class TestMessageDefaults:
    """A fresh message is pending with no delivery history."""

    def test_new_message_is_pending(self):
        message = Message(payload='{"a": 1}')

        assert message.status == MessageStatus.PENDING
        assert message.attempt_count == 0
        assert message.sent_at is None
        assert message.last_error is None
        assert message.last_retry_at is None
        assert message.received_at.tzinfo is not None

    def test_ids_are_unique(self):
        first = Message(payload="{}")
        second = Message(payload="{}")

        assert first.id != second.id

    def test_payload_and_id_are_frozen(self):
        message = Message(payload="{}")

        with pytest.raises(ValueError):
            message.payload = "[]"
        with pytest.raises(ValueError):
            message.id = "other"

    def test_negative_attempt_count_rejected(self):
        with pytest.raises(ValueError):
            Message(payload="{}", attempt_count=-1)


class TestStatusDecoding:
    """Stored status strings map back onto MessageStatus."""

    @pytest.mark.parametrize("raw,expected", [
        ("pending", MessageStatus.PENDING),
        ("sent", MessageStatus.SENT),
        ("FAILED", MessageStatus.FAILED),
    ])
    def test_known_values(self, raw, expected):
        message = Message.model_validate({"_id": "m-1", "payload": "{}", "status": raw})
        assert message.status == expected

    def test_unknown_value_decodes_as_pending(self):
        """An unrecognized status stays eligible for retry."""
        message = Message.model_validate({"_id": "m-1", "payload": "{}", "status": "archived"})

        assert message.status == MessageStatus.PENDING
        assert message.is_retryable

    def test_document_dump_uses_plain_status_and_alias(self):
        message = Message(payload="{}")
        doc = message.model_dump(by_alias=True)

        assert doc["_id"] == message.id
        assert doc["status"] == "pending"
        assert type(doc["status"]) is str
        assert isinstance(doc["received_at"], dt.datetime)


class TestMarkSent:
    """pending/failed -> sent, exactly once."""

    def test_sets_status_and_sent_at(self):
        message = Message(payload="{}")
        at = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)

        message.mark_sent(at=at)

        assert message.status == MessageStatus.SENT
        assert message.sent_at == at
        assert message.is_sent
        assert not message.is_retryable

    def test_failed_message_can_be_sent(self):
        message = Message(payload="{}")
        message.mark_failed("Backend error: 503 - ")

        message.mark_sent()

        assert message.is_sent
        assert message.attempt_count == 1

    def test_sent_is_final(self):
        message = Message(payload="{}")
        message.mark_sent()
        first_sent_at = message.sent_at

        with pytest.raises(InvalidTransition):
            message.mark_sent()
        with pytest.raises(InvalidTransition):
            message.mark_failed("late failure")

        assert message.status == MessageStatus.SENT
        assert message.sent_at == first_sent_at


class TestMarkFailed:
    """Failed cycles bump attempt_count and keep the message retryable."""

    def test_defaults_to_increment(self):
        message = Message(payload="{}")

        message.mark_failed("Backend timeout")
        message.mark_failed("Backend timeout")

        assert message.status == MessageStatus.FAILED
        assert message.attempt_count == 2
        assert message.last_error == "Backend timeout"
        assert message.last_retry_at is not None
        assert message.sent_at is None
        assert message.is_retryable

    def test_explicit_count_applied(self):
        message = Message(payload="{}")

        message.mark_failed("Client error (not retried): 400 - ", attempt_count=3)

        assert message.attempt_count == 3

    def test_attempt_count_never_decreases(self):
        message = Message(payload="{}", attempt_count=5)

        message.mark_failed("stale writer", attempt_count=2)

        assert message.attempt_count == 5
        assert message.last_error == "stale writer"
