"""
Message Endpoints

Ingestion of new payloads plus read-only status queries over the store.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from loguru import logger

from relay.api.dependencies import get_ingestion, get_store, read_json_payload
from relay.api.models.responses import ApiResponse, MessageView
from relay.errors import StoreUnavailable
from relay.models.delivery import StatusCounts
from relay.models.message import MessageStatus
from relay.repositories.store import MessageStore
from relay.services.ingestion import IngestionService

router = APIRouter(prefix="/api", tags=["Messages"])


@router.post("/messages", status_code=status.HTTP_202_ACCEPTED, response_model=ApiResponse)
async def receive_message(
    payload: str = Depends(read_json_payload),
    ingestion: IngestionService = Depends(get_ingestion),
):
    """
    Accept a JSON payload for relay.

    Flow:
    1. Check the body is UTF-8 JSON (400 otherwise)
    2. Store the message as `pending` (500 if the store is unavailable)
    3. Start delivery in the background
    4. Return 202 with the message id without waiting for delivery
    """
    try:
        receipt = await ingestion.submit(payload)
    except StoreUnavailable as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ApiResponse(
                success=False,
                message=f"Failed to store message: {e}"
            ).model_dump(exclude_none=True)
        )

    return ApiResponse(
        success=True,
        message="Message received and queued for processing",
        id=receipt.id,
        status=receipt.status,
    )


@router.get("/messages/{message_id}", response_model=MessageView)
async def get_message(message_id: str, store: MessageStore = Depends(get_store)):
    """Current delivery state of a message."""
    try:
        message = await store.get_by_id(message_id)
    except StoreUnavailable as e:
        logger.error(f"Failed to load message {message_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    return MessageView.from_message(message)


@router.get("/stats", response_model=StatusCounts)
async def get_stats(store: MessageStore = Depends(get_store)):
    """Message totals per delivery status."""
    try:
        return StatusCounts(
            pending=await store.count_by_status(MessageStatus.PENDING),
            sent=await store.count_by_status(MessageStatus.SENT),
            failed=await store.count_by_status(MessageStatus.FAILED),
        )
    except StoreUnavailable as e:
        logger.error(f"Failed to count messages: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
