"""
Exponential backoff retry for a single outbound call
"""
from __future__ import annotations

import random
import threading
import time
from typing import Callable, Optional, TypeVar

from ..config import RetryConfig
from ..utils import (
    get_logger,
    InferenceMetrics,
    MaxRetriesExceededError,
    OperationCancelledError,
    is_retryable_error,
)

logger = get_logger(__name__)

T = TypeVar("T")


def apply_jitter(delay: float, jitter_factor: float) -> float:
    """Spread delay by +/- jitter_factor"""
    if jitter_factor <= 0 or delay <= 0:
        return delay
    return max(0.0, delay + delay * jitter_factor * (random.random() * 2 - 1))


def backoff_delays(config: RetryConfig):
    """Yield the un-jittered delay before each retry"""
    delay = config.initial_delay
    for _ in range(config.max_retries):
        yield min(delay, config.max_delay)
        delay = min(delay * config.multiplier, config.max_delay)


def retry_call(
    fn: Callable[[], T],
    config: Optional[RetryConfig] = None,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    cancel_event: Optional[threading.Event] = None,
    operation: str = "llm_call",
) -> T:
    """
    Call ``fn`` until it succeeds, a terminal error occurs, or retries run out

    Makes at most ``1 + max_retries`` attempts. Terminal errors are re-raised
    unchanged; exhausting the retries raises MaxRetriesExceededError wrapping
    the last error. A set ``cancel_event`` aborts the backoff wait immediately.
    """
    config = config or RetryConfig()
    delays = backoff_delays(config)
    attempt = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(operation=operation)

        try:
            return fn()
        except Exception as e:
            if not is_retryable(e):
                raise

            delay = next(delays, None)
            if delay is None:
                raise MaxRetriesExceededError(
                    message=f"{operation} failed after {attempt + 1} attempts: {e}",
                    max_retries=config.max_retries,
                    last_error=e,
                )

            attempt += 1
            wait = apply_jitter(delay, config.jitter_factor)
            InferenceMetrics.record_retry(attempt, type(e).__name__)
            logger.warning(
                f"{operation} failed, retrying in {wait:.2f}s",
                extra={"extra_fields": {
                    "attempt": attempt,
                    "max_retries": config.max_retries,
                    "error": str(e),
                }}
            )

            if cancel_event is not None:
                if cancel_event.wait(wait):
                    raise OperationCancelledError(
                        message=f"{operation} cancelled during backoff",
                        operation=operation,
                    )
            elif wait > 0:
                time.sleep(wait)
