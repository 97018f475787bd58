"""
Circuit breaker gating outbound model calls

closed -> open after ``threshold`` consecutive failures; open -> half-open once
``reset_after`` seconds have elapsed, admitting a single trial call; the trial's
outcome closes or reopens the circuit.
"""
from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from ..config import CircuitBreakerConfig
from ..utils import get_logger, CircuitBreakerOpenError, InferenceMetrics

logger = get_logger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states"""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """Thread-safe circuit breaker shared by every worker in a run"""

    def __init__(
        self,
        threshold: int = 5,
        reset_after: float = 30.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.reset_after = reset_after
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @classmethod
    def from_config(cls, config: CircuitBreakerConfig) -> "CircuitBreaker":
        return cls(threshold=config.threshold, reset_after=config.reset_after_seconds)

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def _admit(self) -> Tuple[bool, str]:
        """Admission decision; caller holds the lock"""
        if self._state == CircuitState.CLOSED:
            return True, ""

        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - self._opened_at
            if elapsed >= self.reset_after:
                self._transition(CircuitState.HALF_OPEN)
                self._trial_in_flight = True
                return True, ""
            remaining = self.reset_after - elapsed
            return False, (
                f"circuit breaker open: {self._consecutive_failures} consecutive failures, "
                f"retry in {remaining:.1f}s"
            )

        # Half-open admits exactly one trial at a time
        if self._trial_in_flight:
            return False, "circuit breaker half-open: trial call in progress"
        self._trial_in_flight = True
        return True, ""

    def allow(self) -> bool:
        """Ask permission for one outbound call"""
        with self._lock:
            allowed, _ = self._admit()
            return allowed

    def check(self) -> None:
        """Like allow(), but raises CircuitBreakerOpenError on rejection"""
        with self._lock:
            allowed, reason = self._admit()
            if allowed:
                return
            state = self._state.value
            failures = self._consecutive_failures
        raise CircuitBreakerOpenError(reason, state=state, consecutive_failures=failures)

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._trial_in_flight = False
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                self._opened_at = self._clock()
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED and self._consecutive_failures >= self.threshold:
                self._opened_at = self._clock()
                self._transition(CircuitState.OPEN)

    def record_cancelled(self) -> None:
        """Release a half-open trial slot without judging the endpoint"""
        with self._lock:
            self._trial_in_flight = False

    def reset(self) -> None:
        """Force the breaker back to closed"""
        with self._lock:
            self._consecutive_failures = 0
            self._trial_in_flight = False
            self._opened_at = 0.0
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        InferenceMetrics.record_circuit_state(new_state.value)
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit breaker {old_state.value} -> {new_state.value}",
            extra={"extra_fields": {
                "consecutive_failures": self._consecutive_failures,
                "threshold": self.threshold,
            }}
        )
