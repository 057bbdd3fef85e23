"""Services package."""
from relay.services.ingestion import IngestionService

__all__ = [
    "IngestionService",
]
