"""
FastAPI Dependencies

Reusable dependencies for request validation and access to relay components.
"""

from fastapi import Request, HTTPException, status
from loguru import logger
from pydantic_core import from_json

from relay.config import settings
from relay.repositories.store import MessageStore
from relay.services.ingestion import IngestionService


def get_store(request: Request) -> MessageStore:
    """Message store created during application startup."""
    return request.app.state.store


def get_ingestion(request: Request) -> IngestionService:
    """Ingestion service created during application startup."""
    return request.app.state.ingestion


async def read_json_payload(request: Request) -> str:
    """
    Dependency returning the raw request body as validated JSON text.

    Only well-formedness is checked: the body must be UTF-8 and parse as
    JSON. The parsed value is discarded; the relay forwards the original
    text unchanged.

    Raises:
        HTTPException: 413 if the body exceeds MAX_PAYLOAD_BYTES,
            400 if it is not UTF-8 or not JSON
    """
    body = await request.body()

    if len(body) > settings.max_payload_bytes:
        logger.warning(f"🚫 Payload too large: {len(body)} bytes")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Payload exceeds {settings.max_payload_bytes} bytes"
        )

    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.warning(f"🚫 Invalid payload (not UTF-8): {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload: must be valid UTF-8"
        )

    try:
        from_json(payload)
    except ValueError:
        logger.warning("🚫 Invalid payload (not valid JSON)")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload: must be valid JSON"
        )

    return payload
