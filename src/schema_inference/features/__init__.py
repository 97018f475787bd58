"""
Column Feature Extraction

Profiling, routing and model-backed classification of schema columns.
"""
from .patterns import (
    SAMPLE_PATTERNS,
    PatternDetector,
    detect_patterns,
    validate_unix_timestamp,
)
from .router import (
    BOOLEAN_VOCABULARIES,
    has_only_boolean_values,
    is_low_cardinality,
    route_to_classification_path,
)
from .profiler import ColumnProfiler
from .classifiers import (
    CLASSIFIER_TYPES,
    ColumnClassifier,
    ClassifierRegistry,
    TimestampClassifier,
    BooleanClassifier,
    EnumClassifier,
    UUIDClassifier,
    ExternalIDClassifier,
    NumericClassifier,
    TextClassifier,
    JSONClassifier,
    UnknownClassifier,
)
from .enum_analyzer import EnumAnalysisResult, EnumAnalyzer, merge_enum_analysis
from .fk_resolution import (
    FKTargetOption,
    FKResolutionResult,
    FKResolver,
    candidate_targets,
    merge_fk_resolution,
)
from .cross_column import (
    MonetaryPairing,
    SoftDeleteValidation,
    CrossColumnResult,
    TableContext,
    CrossColumnAnalyzer,
    build_table_context,
    merge_cross_column,
)
from .progress import ExtractionProgressCallback, ProgressTracker
from .service import (
    Phase2Result,
    FeatureExtractionResult,
    ColumnFeatureExtractionService,
)

__all__ = [
    # Patterns
    "SAMPLE_PATTERNS",
    "PatternDetector",
    "detect_patterns",
    "validate_unix_timestamp",
    # Routing and profiling
    "BOOLEAN_VOCABULARIES",
    "has_only_boolean_values",
    "is_low_cardinality",
    "route_to_classification_path",
    "ColumnProfiler",
    # Classifiers
    "CLASSIFIER_TYPES",
    "ColumnClassifier",
    "ClassifierRegistry",
    "TimestampClassifier",
    "BooleanClassifier",
    "EnumClassifier",
    "UUIDClassifier",
    "ExternalIDClassifier",
    "NumericClassifier",
    "TextClassifier",
    "JSONClassifier",
    "UnknownClassifier",
    # Follow-up phases
    "EnumAnalysisResult",
    "EnumAnalyzer",
    "merge_enum_analysis",
    "FKTargetOption",
    "FKResolutionResult",
    "FKResolver",
    "candidate_targets",
    "merge_fk_resolution",
    "MonetaryPairing",
    "SoftDeleteValidation",
    "CrossColumnResult",
    "TableContext",
    "CrossColumnAnalyzer",
    "build_table_context",
    "merge_cross_column",
    # Service
    "ExtractionProgressCallback",
    "ProgressTracker",
    "Phase2Result",
    "FeatureExtractionResult",
    "ColumnFeatureExtractionService",
]
