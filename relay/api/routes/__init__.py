"""
API Routes

Modular route definitions for the relay API.
"""
from relay.api.routes.health import router as health_router
from relay.api.routes.messages import router as messages_router
from relay.api.routes.metrics import router as metrics_router

__all__ = [
    "health_router",
    "messages_router",
    "metrics_router",
]
