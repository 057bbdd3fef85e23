"""
Retry Sweeper

Background loop that periodically re-drives undelivered messages through the
forwarder.
"""

import asyncio
from typing import Optional

from relay.config import Settings
from relay.delivery.forwarder import Forwarder
from relay.errors import StatusPersistError, StoreUnavailable
from relay.models.delivery import DeliveryResult, SweepReport
from relay.models.message import Message, MessageStatus
from relay.repositories.store import MessageStore
from relay.utils.metrics import MetricsRegistry, metrics as default_metrics
from relay.utils.observability import logger


class RetrySweeper:
    """
    Timer-driven retry of pending and failed messages.

    Each tick fetches up to batch_size retryable messages, drops those whose
    persisted attempt_count reached the hard ceiling, and runs one delivery
    cycle per remaining message concurrently.

    The ceiling counts failed *cycles*, and each cycle makes up to the
    forwarder's per-cycle attempt budget, so a message sees at most
    hard_attempt_ceiling x max_attempts transport attempts before it stops
    being swept.

    Attributes:
        store: Message store to poll
        forwarder: Forwarder running the delivery cycles
        interval: Seconds between sweeps
        batch_size: Maximum messages fetched per sweep
        hard_attempt_ceiling: Failed cycles after which a message is skipped
    """

    def __init__(
        self,
        store: MessageStore,
        forwarder: Forwarder,
        interval: float = 60.0,
        batch_size: int = 100,
        hard_attempt_ceiling: int = 10,
        metrics_sink: Optional[MetricsRegistry] = None,
    ):
        """
        Initialize the sweeper.

        Args:
            store: Message store to poll
            forwarder: Forwarder running the delivery cycles
            interval: Seconds between sweeps
            batch_size: Maximum messages fetched per sweep
            hard_attempt_ceiling: Failed cycles after which a message is skipped
            metrics_sink: Metrics registry, defaults to the process registry
        """
        self.store = store
        self.forwarder = forwarder
        self.interval = interval
        self.batch_size = batch_size
        self.hard_attempt_ceiling = hard_attempt_ceiling
        self._metrics = metrics_sink or default_metrics
        self._running = False
        self._stop_event = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: MessageStore,
        forwarder: Forwarder,
        **kwargs
    ) -> "RetrySweeper":
        return cls(
            store=store,
            forwarder=forwarder,
            interval=settings.retry_worker_interval_secs,
            batch_size=settings.retry_worker_batch_size,
            hard_attempt_ceiling=settings.retry_worker_hard_attempt_ceiling,
            **kwargs
        )

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Run sweeps until stop() is called.

        The first sweep starts immediately; failures of a sweep are logged
        and the loop carries on with the next tick.
        """
        if self._running:
            logger.warning("Retry sweeper already running")
            return

        self._running = True
        self._stop_event.clear()
        logger.info(
            f"🚀 Retry sweeper started (interval={self.interval}s, batch={self.batch_size}, "
            f"hard_attempt_ceiling={self.hard_attempt_ceiling})"
        )

        try:
            while self._running:
                logger.debug("Running retry sweep...")
                try:
                    await self.run_once()
                except StoreUnavailable as e:
                    logger.error(f"Retry sweep could not reach the store: {e}")
                except Exception as e:
                    logger.exception(f"Retry sweep failed: {e}")

                await self._wait_next_tick()
        finally:
            self._running = False
            logger.info("🛑 Retry sweeper stopped")

    async def stop(self) -> None:
        """
        Stop the loop after the current sweep.

        A sweep already dispatched runs to completion; only the wait for the
        next tick is interrupted.
        """
        if not self._running:
            return

        logger.info("Stopping retry sweeper...")
        self._running = False
        self._stop_event.set()

    async def _wait_next_tick(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    def select_eligible(self, messages: list[Message]) -> tuple[list[Message], list[Message]]:
        """
        Split fetched messages by the hard attempt ceiling.

        Returns:
            (eligible, skipped)
        """
        eligible: list[Message] = []
        skipped: list[Message] = []
        for message in messages:
            if message.attempt_count >= self.hard_attempt_ceiling:
                skipped.append(message)
            else:
                eligible.append(message)
        return eligible, skipped

    async def run_once(self) -> SweepReport:
        """
        Run a single sweep.

        Returns:
            SweepReport with per-outcome counts

        Raises:
            StoreUnavailable: If retryable messages could not be fetched
        """
        self._metrics.sweeps_total.inc()
        report = SweepReport()

        messages = await self.store.find_retryable(self.batch_size)
        report.fetched = len(messages)

        if not messages:
            logger.debug("No messages to retry")
            return report

        eligible, skipped = self.select_eligible(messages)
        report.skipped = len(skipped)

        for message in skipped:
            logger.bind(message_id=message.id, attempt_count=message.attempt_count).warning(
                f"Message {message.id} reached attempt limit ({message.attempt_count}), skipping"
            )
        if skipped:
            self._metrics.sweep_skipped.inc(len(skipped))

        if not eligible:
            logger.debug("No messages eligible for retry after filtering")
            await self._refresh_pending_gauge()
            return report

        logger.info(f"Retrying {len(eligible)} messages")
        report.dispatched = len(eligible)

        results = await self.forwarder.deliver_batch(eligible, source="sweep")
        for message, result in zip(eligible, results):
            self._tally(report, message, result)

        logger.bind(**report.model_dump()).info(
            f"Retry batch finished: {report.succeeded} succeeded, {report.failed} failed, "
            f"{report.persist_errors} status writes lost"
        )

        await self._refresh_pending_gauge()
        return report

    def _tally(
        self,
        report: SweepReport,
        message: Message,
        result: DeliveryResult | BaseException
    ) -> None:
        if isinstance(result, DeliveryResult):
            if result.delivered:
                report.succeeded += 1
            else:
                report.failed += 1
        elif isinstance(result, StatusPersistError):
            report.persist_errors += 1
        else:
            report.failed += 1
            logger.error(f"Delivery of message {message.id} raised: {result!r}")

    async def _refresh_pending_gauge(self) -> None:
        try:
            pending = await self.store.count_by_status(MessageStatus.PENDING)
        except StoreUnavailable as e:
            logger.warning(f"Could not refresh pending gauge: {e}")
            return
        self._metrics.messages_pending.set(pending)
