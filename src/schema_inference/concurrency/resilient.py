"""
Composition of circuit breaker and retry around a model call
"""
from __future__ import annotations

import threading
from typing import Callable, Optional

from ..config import RetryConfig
from ..llm_client import BaseLLMClient, GenerateResponseResult
from ..utils import get_logger, OperationCancelledError, is_retryable_error
from .circuit_breaker import CircuitBreaker
from .retry import retry_call

logger = get_logger(__name__)


class ResilientLLMCaller:
    """
    Gate a model call through the shared breaker, then retry it with backoff

    The breaker is consulted once per call (not per attempt). The outcome of
    the whole retry loop is reported back to the breaker; cancellation is not
    counted against the endpoint.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        breaker: CircuitBreaker,
        retry_config: Optional[RetryConfig] = None,
        is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    ):
        self.client = client
        self.breaker = breaker
        self.retry_config = retry_config or RetryConfig()
        self.is_retryable = is_retryable

    @property
    def model_id(self) -> str:
        return self.client.model_id

    def generate(
        self,
        prompt: str,
        system_message: str,
        temperature: float,
        thinking: bool = False,
        cancel_event: Optional[threading.Event] = None,
        operation: str = "llm_call",
    ) -> GenerateResponseResult:
        self.breaker.check()

        try:
            result = retry_call(
                lambda: self.client.generate_response(prompt, system_message, temperature, thinking),
                config=self.retry_config,
                is_retryable=self.is_retryable,
                cancel_event=cancel_event,
                operation=operation,
            )
        except OperationCancelledError:
            self.breaker.record_cancelled()
            raise
        except Exception:
            self.breaker.record_failure()
            raise

        self.breaker.record_success()
        return result
