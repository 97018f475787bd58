"""
Concurrency Core

Worker pool, circuit breaker and retry shared by every model-calling phase.
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .retry import apply_jitter, backoff_delays, retry_call
from .worker_pool import (
    ProgressCallback,
    WorkItem,
    WorkResult,
    WorkerPool,
    index_results,
)
from .chunking import Chunk, chunk_id, chunk_items
from .resilient import ResilientLLMCaller

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "apply_jitter",
    "backoff_delays",
    "retry_call",
    "ProgressCallback",
    "WorkItem",
    "WorkResult",
    "WorkerPool",
    "index_results",
    "Chunk",
    "chunk_id",
    "chunk_items",
    "ResilientLLMCaller",
]
