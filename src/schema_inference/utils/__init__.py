"""
Utilities Package for Schema Inference
"""
from .logging import (
    setup_logging,
    get_logger,
    set_correlation_id,
    get_correlation_id,
    get_log_context,
    clear_context,
    log_context,
    log_operation,
)

from .errors import (
    ErrorSeverity,
    ErrorCategory,
    ErrorContext,
    SchemaInferenceError,
    SchemaError,
    LLMError,
    ResponseParseError,
    ValidationError,
    ConfigurationError,
    CircuitBreakerOpenError,
    OperationCancelledError,
    MaxRetriesExceededError,
    is_retryable_error,
)

from .metrics import (
    MetricsCollector,
    get_metrics_collector,
    counter,
    gauge,
    InferenceMetrics,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "get_log_context",
    "clear_context",
    "log_context",
    "log_operation",
    # Errors
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "SchemaInferenceError",
    "SchemaError",
    "LLMError",
    "ResponseParseError",
    "ValidationError",
    "ConfigurationError",
    "CircuitBreakerOpenError",
    "OperationCancelledError",
    "MaxRetriesExceededError",
    "is_retryable_error",
    # Metrics
    "MetricsCollector",
    "get_metrics_collector",
    "counter",
    "gauge",
    "InferenceMetrics",
]
