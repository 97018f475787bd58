"""
Unit Tests for the Circuit Breaker
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.concurrency import CircuitBreaker, CircuitState
from schema_inference.config import CircuitBreakerConfig
from schema_inference.utils import CircuitBreakerOpenError


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(threshold=3, reset_after=10.0, clock=clock)


def trip(breaker):
    for _ in range(breaker.threshold):
        breaker.record_failure()


class TestCircuitBreaker:
    """Tests for breaker state transitions"""

    def test_starts_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow()

    def test_opens_after_threshold(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.consecutive_failures == 3
        assert not breaker.allow()

    def test_success_resets_counter(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 1

    def test_check_raises_when_open(self, breaker):
        trip(breaker)
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            breaker.check()
        assert "circuit breaker open" in str(exc_info.value)
        assert exc_info.value.retryable is False

    def test_half_open_admits_single_trial(self, breaker, clock):
        trip(breaker)
        clock.advance(10.0)

        assert breaker.allow()
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.allow()
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            breaker.check()
        assert "half-open" in str(exc_info.value)

    def test_trial_success_closes(self, breaker, clock):
        trip(breaker)
        clock.advance(11.0)
        assert breaker.allow()

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
        assert breaker.allow()

    def test_trial_failure_reopens(self, breaker, clock):
        trip(breaker)
        clock.advance(10.0)
        assert breaker.allow()

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow()

        clock.advance(10.0)
        assert breaker.allow()

    def test_cancelled_trial_frees_slot(self, breaker, clock):
        trip(breaker)
        clock.advance(10.0)
        assert breaker.allow()

        breaker.record_cancelled()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow()

    def test_reset(self, breaker):
        trip(breaker)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow()

    def test_from_config(self):
        breaker = CircuitBreaker.from_config(CircuitBreakerConfig(threshold=2, reset_after_seconds=5))
        assert breaker.threshold == 2
        assert breaker.reset_after == 5.0

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            CircuitBreaker(threshold=0)
