"""
Tests for structured delivery logging.
"""
import pytest
from loguru import logger

from relay.utils.observability import log_delivery_event


@pytest.fixture
def records():
    """Capture loguru records emitted during the test."""
    captured = []
    sink_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(sink_id)


class TestLogDeliveryEvent:

    def test_success_logged_at_info(self, records):
        log_delivery_event(message_id="m-1", delivered=True, attempts=2, duration_ms=12.3456, source="sweep")

        record = records[-1]
        assert record["level"].name == "INFO"
        assert record["extra"]["event_type"] == "delivery"
        assert record["extra"]["message_id"] == "m-1"
        assert record["extra"]["attempts"] == 2
        assert record["extra"]["duration_ms"] == 12.35
        assert record["extra"]["source"] == "sweep"
        assert "error" not in record["extra"]

    def test_failure_logged_at_warning_with_error(self, records):
        log_delivery_event(
            message_id="m-2",
            delivered=False,
            attempts=5,
            error="Backend error: 503 - ",
            reason="attempts_exhausted",
            attempt_count=3,
        )

        record = records[-1]
        assert record["level"].name == "WARNING"
        assert record["extra"]["error"] == "Backend error: 503 - "
        assert record["extra"]["reason"] == "attempts_exhausted"
        assert record["extra"]["attempt_count"] == 3
        assert "m-2" in record["message"]
