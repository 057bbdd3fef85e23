"""
Metrics Endpoints

Prometheus-compatible metrics and delivery statistics for observability.
"""
from fastapi import APIRouter, Request
from fastapi.responses import Response, JSONResponse
from loguru import logger

from relay.errors import StoreUnavailable
from relay.models.message import MessageStatus
from relay.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def prometheus_metrics(request: Request):
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format for scraping.
    Includes:
    - Received / sent / failed message counts
    - Retry attempts and backend response codes
    - Delivery latency and payload size histograms
    - Pending message gauge

    Content-Type: text/plain; version=0.0.4; charset=utf-8
    """
    store = getattr(request.app.state, "store", None)
    if store is not None:
        try:
            metrics.messages_pending.set(await store.count_by_status(MessageStatus.PENDING))
        except StoreUnavailable as e:
            # Serve the last known value rather than failing the scrape
            logger.warning(f"Could not refresh pending gauge: {e}")

    return Response(
        content=metrics.export(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@router.get("/metrics/delivery")
async def delivery_metrics(request: Request):
    """
    Get delivery pipeline statistics.

    Returns:
    - Message counts per status from the store
    - Deliveries currently running from ingestion
    - Whether the retry sweeper is running
    """
    try:
        store = request.app.state.store
        counts = {
            status.value: await store.count_by_status(status)
            for status in MessageStatus
        }
    except StoreUnavailable as e:
        logger.error(f"Failed to get delivery metrics: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "error",
                "error": str(e)
            }
        )

    ingestion = getattr(request.app.state, "ingestion", None)
    sweeper = getattr(request.app.state, "sweeper", None)

    return {
        "status": "ok",
        "messages": counts,
        "in_flight": ingestion.in_flight if ingestion is not None else 0,
        "retry_sweeper_running": bool(sweeper is not None and sweeper.running)
    }
