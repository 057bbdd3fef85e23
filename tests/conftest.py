import random
import pytest
import datetime as dt
from typing import Awaitable, Callable, Optional

from relay.delivery.backoff import BackoffPolicy
from relay.delivery.forwarder import Forwarder
from relay.models.delivery import TransportOutcome
from relay.models.message import Message, MessageStatus
from relay.repositories.memory import InMemoryMessageStore
from relay.utils.metrics import metrics


class ScriptedTransport:
    """
    Transport returning pre-programmed outcomes in order.

    The last outcome repeats once the script runs out. `on_deliver` runs
    before each attempt, which lets tests inspect the store mid-cycle.
    """

    def __init__(
        self,
        *outcomes: TransportOutcome,
        on_deliver: Optional[Callable[[str], Awaitable[None]]] = None
    ):
        self.outcomes = list(outcomes) or [TransportOutcome.success(200)]
        self.on_deliver = on_deliver
        self.calls: list[str] = []

    async def deliver(self, payload: str) -> TransportOutcome:
        if self.on_deliver is not None:
            await self.on_deliver(payload)
        index = min(len(self.calls), len(self.outcomes) - 1)
        self.calls.append(payload)
        return self.outcomes[index]


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested waits and returns at once."""

    def __init__(self):
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Every test starts from zeroed metrics."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def store():
    """Returns an empty in-memory message store."""
    return InMemoryMessageStore()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def policy():
    """Backoff of 0.1s doubling up to 60s, five attempts, seeded jitter."""
    return BackoffPolicy(
        initial_delay=0.1,
        max_delay=60.0,
        multiplier=2.0,
        max_attempts=5,
        rng=random.Random(1234),
    )


@pytest.fixture
def transport_factory():
    """Build a ScriptedTransport from outcomes."""
    return ScriptedTransport


@pytest.fixture
def make_forwarder(store, policy, sleeper):
    """Build a Forwarder over the shared store with a non-blocking sleep."""
    def _make(transport, **kwargs) -> Forwarder:
        kwargs.setdefault("policy", policy)
        kwargs.setdefault("sleep", sleeper)
        return Forwarder(store=store, transport=transport, **kwargs)
    return _make


@pytest.fixture
def make_message():
    """Build a Message in a given state without touching any store."""
    def _make(
        payload: str = '{"event": "test"}',
        status: MessageStatus = MessageStatus.PENDING,
        attempt_count: int = 0,
        received_at: Optional[dt.datetime] = None,
    ) -> Message:
        return Message(
            payload=payload,
            status=status,
            attempt_count=attempt_count,
            received_at=received_at or dt.datetime.now(dt.UTC),
        )
    return _make
