"""
Ingestion Service

Entry point used by the HTTP layer to accept a new payload: persist first,
then hand the message to the forwarder in the background.
"""

import asyncio
from typing import Optional

from relay.delivery.forwarder import Forwarder
from relay.errors import StatusPersistError, StoreUnavailable
from relay.models.delivery import DeliveryResult, SubmitReceipt
from relay.models.message import Message
from relay.repositories.store import MessageStore
from relay.utils.metrics import MetricsRegistry, metrics as default_metrics
from relay.utils.observability import logger


class IngestionService:
    """
    Accepts payloads and schedules their first delivery cycle.

    Nothing is delivered before the store has durably recorded the message:
    if insert fails the caller gets the error and no delivery is started.
    Once stored, the delivery runs as a background task and the caller is
    acknowledged immediately.
    """

    def __init__(
        self,
        store: MessageStore,
        forwarder: Forwarder,
        metrics_sink: Optional[MetricsRegistry] = None,
    ):
        self.store = store
        self.forwarder = forwarder
        self._metrics = metrics_sink or default_metrics
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of background deliveries not yet finished."""
        return len(self._tasks)

    async def submit(self, payload: str) -> SubmitReceipt:
        """
        Record a payload and queue it for delivery.

        Args:
            payload: Body already checked for well-formedness by the caller

        Returns:
            SubmitReceipt with the new message id and status "queued"

        Raises:
            StoreUnavailable: If the message could not be stored
        """
        message = Message(payload=payload)

        logger.info(f"📩 Received new message {message.id}")

        try:
            await self.store.insert(message)
        except StoreUnavailable as e:
            logger.error(f"❌ Failed to store message {message.id}: {e}")
            raise

        self._metrics.messages_received.inc()
        self._metrics.payload_size.observe(len(payload.encode("utf-8")), direction="inbound")

        task = asyncio.create_task(
            self._deliver(message),
            name=f"deliver-{message.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug(f"Message {message.id} stored and scheduled for delivery")
        return SubmitReceipt(id=message.id)

    async def _deliver(self, message: Message) -> Optional[DeliveryResult]:
        """Background delivery; outcomes are logged, never raised."""
        try:
            return await self.forwarder.deliver(message, source="ingestion")
        except StatusPersistError as e:
            logger.error(f"Delivery of message {message.id} left a stale status: {e}")
        except Exception as e:
            logger.exception(f"Error forwarding message {message.id}: {e}")
        return None

    async def drain(self, timeout: float = 30.0) -> None:
        """
        Wait for in-flight deliveries to finish.

        Deliveries are not interrupted mid-cycle; if the timeout passes the
        remaining tasks are cancelled and their messages stay pending for the
        next sweep.
        """
        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} deliveries to complete...")
        pending = set(self._tasks)
        try:
            await asyncio.wait_for(
                asyncio.gather(*pending, return_exceptions=True),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Timeout waiting for deliveries, cancelling remaining")
            for task in pending:
                task.cancel()
