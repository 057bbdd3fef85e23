"""
Structured Logging & Observability
Production-grade logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Optional
from relay.config import get_settings


def configure_logging():
    """
    Configure loguru for production observability.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_delivery_event(
    message_id: str,
    delivered: bool,
    attempts: int,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None,
    **context
):
    """
    Structured logging for the end of a delivery cycle.

    Args:
        message_id: Message that was delivered (or not)
        delivered: Whether the downstream accepted the payload
        attempts: Transport attempts made in this cycle
        duration_ms: Wall time of the whole cycle
        error: Last failure detail if not delivered
        **context: Additional context (reason, attempt_count, source, ...)

    Example:
        >>> log_delivery_event(
        ...     message_id="3f1c...",
        ...     delivered=False,
        ...     attempts=5,
        ...     reason="attempts_exhausted",
        ...     error="Backend error: 503"
        ... )
    """
    log_data = {
        "event_type": "delivery",
        "message_id": message_id,
        "delivered": delivered,
        "attempts": attempts,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)
    if error:
        log_data["error"] = error

    log_data.update(context)

    if delivered:
        logger.bind(**log_data).info(f"Delivered message {message_id} after {attempts} attempt(s)")
    else:
        logger.bind(**log_data).warning(
            f"Delivery cycle failed for message {message_id} after {attempts} attempt(s): {error}"
        )
