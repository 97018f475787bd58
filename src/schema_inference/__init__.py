"""
Schema Inference
================

Semantic column classification and foreign-key candidate discovery for
relational schemas, using deterministic heuristics and AWS Bedrock Claude.

Features:
- Column profiling with sample-value pattern detection
- Deterministic routing of every column to a classification path
- Parallel, resilient model classification (worker pool, circuit breaker, retry)
- Enum value analysis, FK target resolution and cross-column checks
- Relationship candidate generation from type-compatible column pairs

Quick Start:
------------

    from schema_inference import (
        ColumnFeatureExtractionService,
        InMemorySchemaRepository,
        RelationshipCandidateCollector,
    )

    repository = InMemorySchemaRepository(tables, columns)

    # Classify columns (uses the Bedrock client from the environment config)
    service = ColumnFeatureExtractionService.from_config(repository)
    result = service.extract_features("my-datasource")
    print(result.to_yaml())

    # Collect FK relationship candidates
    collector = RelationshipCandidateCollector(repository)
    candidates = collector.collect_candidates("my-datasource")
"""

__version__ = "1.0.0"
__author__ = "Schema Inference Team"

# Configuration
from .config import (
    LLMProvider,
    LogLevel,
    LLMConfig,
    WorkerPoolConfig,
    CircuitBreakerConfig,
    RetryConfig,
    ExtractionConfig,
    SystemConfig,
    get_config,
    set_config,
    reset_config,
)

# LLM Client
from .llm_client import (
    BaseLLMClient,
    BedrockClaudeClient,
    GenerateResponseResult,
    LLMClientFactory,
    get_llm_client,
    parse_json_response,
)

# Concurrency
from .concurrency import (
    CircuitBreaker,
    CircuitState,
    ResilientLLMCaller,
    WorkItem,
    WorkResult,
    WorkerPool,
    retry_call,
)

# Schemas
from .schemas import (
    ClassificationPath,
    ColumnDataProfile,
    ColumnFeatures,
    FeatureExtractionProgress,
    SchemaTable,
    SchemaColumn,
    SchemaRepository,
    InMemorySchemaRepository,
    RelationshipCandidate,
)

# Feature extraction
from .features import (
    ColumnProfiler,
    ClassifierRegistry,
    route_to_classification_path,
    ColumnFeatureExtractionService,
    FeatureExtractionResult,
    ProgressTracker,
)

# Relationship candidates
from .relationships import (
    RelationshipCandidateCollector,
    are_types_compatible,
)

# Utilities
from .utils import (
    setup_logging,
    get_logger,
    SchemaInferenceError,
    ConfigurationError,
    LLMError,
    ResponseParseError,
    CircuitBreakerOpenError,
    OperationCancelledError,
    get_metrics_collector,
    InferenceMetrics,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "LLMProvider",
    "LogLevel",
    "LLMConfig",
    "WorkerPoolConfig",
    "CircuitBreakerConfig",
    "RetryConfig",
    "ExtractionConfig",
    "SystemConfig",
    "get_config",
    "set_config",
    "reset_config",
    # LLM Client
    "BaseLLMClient",
    "BedrockClaudeClient",
    "GenerateResponseResult",
    "LLMClientFactory",
    "get_llm_client",
    "parse_json_response",
    # Concurrency
    "CircuitBreaker",
    "CircuitState",
    "ResilientLLMCaller",
    "WorkItem",
    "WorkResult",
    "WorkerPool",
    "retry_call",
    # Schemas
    "ClassificationPath",
    "ColumnDataProfile",
    "ColumnFeatures",
    "FeatureExtractionProgress",
    "SchemaTable",
    "SchemaColumn",
    "SchemaRepository",
    "InMemorySchemaRepository",
    "RelationshipCandidate",
    # Feature extraction
    "ColumnProfiler",
    "ClassifierRegistry",
    "route_to_classification_path",
    "ColumnFeatureExtractionService",
    "FeatureExtractionResult",
    "ProgressTracker",
    # Relationships
    "RelationshipCandidateCollector",
    "are_types_compatible",
    # Utilities
    "setup_logging",
    "get_logger",
    "SchemaInferenceError",
    "ConfigurationError",
    "LLMError",
    "ResponseParseError",
    "CircuitBreakerOpenError",
    "OperationCancelledError",
    "get_metrics_collector",
    "InferenceMetrics",
]
