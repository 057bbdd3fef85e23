"""
Forwarder

Runs one delivery cycle for a message: a bounded series of transport attempts
with jittered exponential backoff, followed by a single terminal status write.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from relay.delivery.backoff import BackoffPolicy
from relay.delivery.transport import OutboundTransport
from relay.errors import StatusPersistError, StoreUnavailable
from relay.models.delivery import AttemptOutcome, DeliveryResult, FailureReason, TransportOutcome
from relay.models.message import Message
from relay.repositories.store import MessageStore
from relay.utils.metrics import MetricsRegistry, Timer, metrics as default_metrics
from relay.utils.observability import log_delivery_event, logger


class Forwarder:
    """
    Stateless delivery orchestrator.

    The forwarder keeps no per-message state between or during calls: every
    cycle works on the Message value it was given plus the shared
    collaborators, so concurrent cycles for the same message id are safe and
    resolve as last-writer-wins at the store (a `sent` row is never
    overwritten).

    Attributes:
        store: Message store receiving the terminal status
        transport: Outbound transport making individual attempts
        policy: Backoff schedule and per-cycle attempt budget
        max_concurrent: Upper bound on simultaneous cycles in deliver_batch
    """

    def __init__(
        self,
        store: MessageStore,
        transport: OutboundTransport,
        policy: Optional[BackoffPolicy] = None,
        metrics_sink: Optional[MetricsRegistry] = None,
        max_concurrent: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.transport = transport
        self.policy = policy or BackoffPolicy()
        self.max_concurrent = max_concurrent
        self._metrics = metrics_sink or default_metrics
        self._sleep = sleep

    async def deliver(self, message: Message, source: str = "ingestion") -> DeliveryResult:
        """
        Run one delivery cycle for a message.

        Args:
            message: Snapshot of the message to deliver
            source: Who triggered the cycle ("ingestion" or "sweep"), for logs

        Returns:
            DeliveryResult describing the cycle. Delivery failures are
            reported here, not raised.

        Raises:
            StatusPersistError: If the terminal status could not be written
        """
        errors: list[str] = []
        attempts = 0
        reason = FailureReason.ATTEMPTS_EXHAUSTED
        waits = self.policy.waits()

        logger.debug(f"Starting delivery of message {message.id} (cycle {message.attempt_count + 1})")
        self._metrics.payload_size.observe(len(message.payload.encode("utf-8")), direction="outbound")

        delivered = False
        with Timer(self._metrics.processing_latency, operation="deliver") as timer:
            while attempts < self.policy.max_attempts:
                if attempts:
                    await self._sleep(next(waits))
                    self._metrics.retry_attempts.inc()

                attempts += 1
                outcome = await self._attempt(message)

                if outcome.is_success:
                    delivered = True
                    break

                errors.append(outcome.detail or "unknown error")

                if outcome.kind == AttemptOutcome.NON_RETRYABLE:
                    reason = FailureReason.TRANSPORT_TERMINAL
                    break

        if delivered:
            return await self._finish_sent(message, attempts, errors, timer.elapsed, source)

        return await self._finish_failed(message, attempts, errors, reason, timer.elapsed, source)

    async def deliver_batch(
        self,
        messages: Sequence[Message],
        source: str = "sweep"
    ) -> list[DeliveryResult | BaseException]:
        """
        Run independent delivery cycles for several messages concurrently.

        Returns:
            One entry per input message, in input order: the DeliveryResult,
            or the exception that cycle raised (typically StatusPersistError)
        """
        if not messages:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent) if self.max_concurrent else None

        async def run(message: Message) -> DeliveryResult:
            if semaphore is None:
                return await self.deliver(message, source=source)
            async with semaphore:
                return await self.deliver(message, source=source)

        return await asyncio.gather(
            *(run(message) for message in messages),
            return_exceptions=True
        )

    async def _attempt(self, message: Message) -> TransportOutcome:
        """Single transport call; unexpected transport errors count as retryable."""
        try:
            return await self.transport.deliver(message.payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Transport raised while delivering {message.id}: {e!r}")
            return TransportOutcome.retryable(f"Transport error: {e!r}")

    async def _finish_sent(
        self,
        message: Message,
        attempts: int,
        errors: list[str],
        duration: float,
        source: str
    ) -> DeliveryResult:
        try:
            await self.store.mark_sent(message.id)
        except StoreUnavailable as e:
            self._metrics.status_persist_errors.inc()
            logger.error(f"Message {message.id} delivered but 'sent' status not stored: {e}")
            raise StatusPersistError(message.id, delivered=True, cause=e) from e

        self._metrics.messages_sent.inc()
        log_delivery_event(
            message_id=message.id,
            delivered=True,
            attempts=attempts,
            duration_ms=duration * 1000,
            source=source,
        )
        return DeliveryResult(
            message_id=message.id,
            delivered=True,
            attempts=attempts,
            errors=errors,
            duration_ms=duration * 1000,
        )

    async def _finish_failed(
        self,
        message: Message,
        attempts: int,
        errors: list[str],
        reason: FailureReason,
        duration: float,
        source: str
    ) -> DeliveryResult:
        last_error = errors[-1] if errors else "unknown error"
        new_attempt_count = message.attempt_count + 1

        try:
            await self.store.mark_failed(message.id, last_error, new_attempt_count)
        except StoreUnavailable as e:
            self._metrics.status_persist_errors.inc()
            logger.error(f"Message {message.id} failed and 'failed' status not stored: {e}")
            raise StatusPersistError(message.id, delivered=False, cause=e) from e

        self._metrics.messages_failed.inc(reason=reason.value)
        log_delivery_event(
            message_id=message.id,
            delivered=False,
            attempts=attempts,
            duration_ms=duration * 1000,
            error=last_error,
            reason=reason.value,
            attempt_count=new_attempt_count,
            source=source,
        )
        return DeliveryResult(
            message_id=message.id,
            delivered=False,
            attempts=attempts,
            reason=reason,
            error=last_error,
            errors=errors,
            duration_ms=duration * 1000,
        )
