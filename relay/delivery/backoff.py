"""
Exponential Backoff Policy

Delay schedule for the attempts inside one delivery cycle.
"""
import random
from dataclasses import dataclass, field
from typing import Iterator, Optional

from relay.config import Settings


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Bounded exponential backoff with full jitter.

    delay(n) = min(initial_delay * multiplier ** n, max_delay)

    The wait actually used is drawn uniformly from [0, delay(n)], which
    spreads retries of many simultaneously failing messages apart.

    Attributes:
        initial_delay: Base delay in seconds
        max_delay: Ceiling for any single delay in seconds
        multiplier: Growth factor between consecutive delays
        max_attempts: Transport attempts allowed per delivery cycle
    """
    initial_delay: float = 0.1
    max_delay: float = 60.0
    multiplier: float = 2.0
    max_attempts: int = 5
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays cannot be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings, rng: Optional[random.Random] = None) -> "BackoffPolicy":
        return cls(
            initial_delay=settings.initial_backoff_seconds,
            max_delay=settings.max_backoff_seconds,
            multiplier=settings.backend_backoff_multiplier,
            max_attempts=settings.backend_max_retries,
            rng=rng or random.Random(),
        )

    def delay(self, n: int) -> float:
        """Pre-jitter delay for step n (0-based), capped at max_delay."""
        if n < 0:
            raise ValueError("Backoff step cannot be negative")
        try:
            raw = self.initial_delay * (self.multiplier ** n)
        except OverflowError:
            return self.max_delay
        return min(raw, self.max_delay)

    def jittered(self, n: int) -> float:
        """Delay for step n with full jitter applied; never above delay(n)."""
        return self.rng.uniform(0, self.delay(n))

    def schedule(self) -> list[float]:
        """Pre-jitter delays for every step of one cycle."""
        return [self.delay(n) for n in range(self.max_attempts)]

    def waits(self) -> Iterator[float]:
        """
        Jittered waits between consecutive attempts.

        Yields max_attempts - 1 values: there is no wait before the first
        attempt nor after the last one.
        """
        for n in range(self.max_attempts - 1):
            yield self.jittered(n)
