"""
Tests for BackoffPolicy.
"""
import random
import pytest

from relay.config import Settings
from relay.delivery.backoff import BackoffPolicy


class TestDelaySchedule:
    """Pre-jitter delays grow geometrically and are capped."""

    def test_default_schedule(self):
        """0.1s doubling under a 2s cap: 0.1, 0.2, 0.4, 0.8, 1.6 for five attempts."""
        policy = BackoffPolicy(initial_delay=0.1, max_delay=2.0, multiplier=2.0, max_attempts=5)

        assert policy.schedule() == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6])
        assert policy.delay(5) == 2.0
        assert policy.delay(20) == 2.0

    def test_schedule_is_non_decreasing_and_capped(self):
        policy = BackoffPolicy(initial_delay=0.5, max_delay=3.0, multiplier=3.0, max_attempts=8)

        schedule = policy.schedule()

        assert schedule == sorted(schedule)
        assert max(schedule) == 3.0
        assert all(d <= 3.0 for d in schedule)

    def test_huge_step_returns_cap(self):
        policy = BackoffPolicy(initial_delay=1.0, max_delay=60.0, multiplier=10.0)

        assert policy.delay(10_000) == 60.0

    def test_negative_step_rejected(self):
        with pytest.raises(ValueError):
            BackoffPolicy().delay(-1)


class TestJitter:
    """Full jitter draws from [0, delay(n)]."""

    def test_jitter_within_bounds(self):
        policy = BackoffPolicy(initial_delay=0.1, max_delay=1.0, rng=random.Random(7))

        for n in range(10):
            for _ in range(50):
                assert 0.0 <= policy.jittered(n) <= policy.delay(n)

    def test_waits_between_attempts_only(self):
        """There is one wait fewer than there are attempts."""
        policy = BackoffPolicy(max_attempts=5, rng=random.Random(7))

        waits = list(policy.waits())

        assert len(waits) == 4
        for n, wait in enumerate(waits):
            assert 0.0 <= wait <= policy.delay(n)

    def test_single_attempt_never_waits(self):
        assert list(BackoffPolicy(max_attempts=1).waits()) == []

    def test_seeded_rng_is_reproducible(self):
        first = BackoffPolicy(rng=random.Random(99))
        second = BackoffPolicy(rng=random.Random(99))

        assert list(first.waits()) == list(second.waits())


class TestValidation:
    """Invalid policies are rejected at construction."""

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"initial_delay": -0.1},
        {"max_delay": -1.0},
        {"multiplier": 0.5},
    ])
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)

    def test_from_settings_converts_milliseconds(self):
        settings = Settings(
            backend_initial_backoff_ms=250,
            backend_max_backoff_ms=4000,
            backend_backoff_multiplier=3.0,
            backend_max_retries=7,
        )

        policy = BackoffPolicy.from_settings(settings)

        assert policy.initial_delay == 0.25
        assert policy.max_delay == 4.0
        assert policy.multiplier == 3.0
        assert policy.max_attempts == 7
