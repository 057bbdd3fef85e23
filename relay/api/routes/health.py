"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from relay import __version__
from relay.errors import StoreUnavailable

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    Used by load balancers and monitoring systems.
    """
    return {
        "status": "healthy",
        "service": "store-forward-relay",
        "version": __version__
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can accept messages.

    Verifies:
    - Message store is initialized and answers a ping
    - Retry sweeper state (reported, not required)

    Returns 200 if ready, 503 if not ready.
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": "Message store not initialized"
            }
        )

    try:
        await store.ping()
    except StoreUnavailable as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": str(e)
            }
        )

    sweeper = getattr(request.app.state, "sweeper", None)
    return {
        "status": "ready",
        "store": "connected",
        "retry_sweeper": "running" if sweeper is not None and sweeper.running else "stopped"
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Store-and-Forward Relay",
        "version": __version__,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "metrics": "/metrics",
            "ingest": "/api/messages (POST)",
            "message_status": "/api/messages/{id}",
            "stats": "/api/stats"
        }
    }
