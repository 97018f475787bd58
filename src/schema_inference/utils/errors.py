"""
Error Handling Module for Schema Inference
Defines custom exceptions and error classification utilities
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    SCHEMA = "schema"
    LLM = "llm"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    TIMEOUT = "timeout"
    RESOURCE = "resource"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Additional context for errors"""
    correlation_id: Optional[str] = None
    datasource_id: Optional[str] = None
    phase: Optional[str] = None
    table_name: Optional[str] = None
    column_id: Optional[str] = None
    work_item_id: Optional[str] = None
    attempt: int = 0
    timestamp: datetime = field(default_factory=_utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "datasource_id": self.datasource_id,
            "phase": self.phase,
            "table_name": self.table_name,
            "column_id": self.column_id,
            "work_item_id": self.work_item_id,
            "attempt": self.attempt,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class SchemaInferenceError(Exception):
    """Base exception for the schema inference core"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        recoverable: bool = True,
        suggestions: Optional[List[str]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class SchemaError(SchemaInferenceError):
    """Schema metadata errors (missing tables, unresolvable columns)"""

    def __init__(
        self,
        message: str,
        table_name: Optional[str] = None,
        column_name: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        suggestions = ["Verify the schema metadata was discovered for this datasource"]
        if table_name:
            suggestions.append(f"Check if table '{table_name}' exists")
        if column_name:
            suggestions.append(f"Check if column '{column_name}' exists")

        super().__init__(
            message=message,
            category=ErrorCategory.SCHEMA,
            severity=ErrorSeverity.MEDIUM,
            context=context,
            recoverable=True,
            suggestions=suggestions,
            original_error=original_error
        )
        self.table_name = table_name
        self.column_name = column_name


class LLMError(SchemaInferenceError):
    """LLM-related errors

    ``retryable`` is consulted by the retry loop before any message pattern
    matching, so clients that know the failure mode should set it explicitly.
    """

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        retryable: bool = False,
        status_code: Optional[int] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.LLM,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=retryable,
            suggestions=[
                "Check AWS credentials and permissions",
                "Verify Bedrock model availability",
                "Review request payload format",
                "Check for rate limiting",
            ],
            original_error=original_error
        )
        self.model_id = model_id
        self.retryable = retryable
        self.status_code = status_code


class ResponseParseError(SchemaInferenceError):
    """Model response could not be parsed into the expected JSON shape"""

    def __init__(
        self,
        message: str,
        content: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            context=context,
            recoverable=False,
            suggestions=["Inspect the raw model response", "Lower the sampling temperature"],
            original_error=original_error
        )
        self.content = content
        self.retryable = False


class ValidationError(SchemaInferenceError):
    """Validation errors"""

    def __init__(
        self,
        message: str,
        validation_type: str = "general",
        failed_rules: Optional[List[str]] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        suggestions = ["Review validation rules", "Check input data format"]
        if failed_rules:
            suggestions.extend([f"Fix validation: {rule}" for rule in failed_rules])

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            context=context,
            recoverable=True,
            suggestions=suggestions,
            original_error=original_error
        )
        self.validation_type = validation_type
        self.failed_rules = failed_rules or []


class ConfigurationError(SchemaInferenceError):
    """Configuration errors"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        suggestions = ["Review configuration settings"]
        if config_key:
            suggestions.append(f"Check configuration for key: {config_key}")

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
            suggestions=suggestions,
            original_error=original_error
        )
        self.config_key = config_key


class CircuitBreakerOpenError(SchemaInferenceError):
    """Circuit breaker rejected an outbound call"""

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        consecutive_failures: int = 0,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.RESOURCE,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
            suggestions=[
                "Wait for the breaker cooldown to elapse",
                "Check the health of the model endpoint",
            ],
        )
        self.state = state
        self.consecutive_failures = consecutive_failures
        self.retryable = False


class OperationCancelledError(SchemaInferenceError):
    """Enclosing operation was cancelled"""

    def __init__(
        self,
        message: str = "operation cancelled",
        operation: Optional[str] = None,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.LOW,
            context=context,
            recoverable=False,
        )
        self.operation = operation
        self.retryable = False


class MaxRetriesExceededError(SchemaInferenceError):
    """Maximum retries exceeded"""

    def __init__(
        self,
        message: str,
        max_retries: int,
        last_error: Optional[Exception] = None,
        context: Optional[ErrorContext] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.INTERNAL,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
            suggestions=[
                f"Maximum retries ({max_retries}) exceeded",
                "Review underlying error cause",
                "Consider increasing retry limit",
            ],
            original_error=last_error
        )
        self.max_retries = max_retries
        self.retryable = False


_RETRYABLE_PATTERNS = [
    "throttling",
    "rate limit",
    "too many requests",
    "service unavailable",
    "service busy",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "broken pipe",
    "temporary failure",
    "429",
    "500",
    "502",
    "503",
    "504",
]


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether an error is transient and worth retrying

    Errors carrying an explicit ``retryable`` attribute are trusted as-is;
    anything else falls back to message pattern matching.
    """
    if error is None:
        return False

    explicit = getattr(error, "retryable", None)
    if isinstance(explicit, bool):
        return explicit

    error_str = str(error).lower()
    return any(pattern in error_str for pattern in _RETRYABLE_PATTERNS)
