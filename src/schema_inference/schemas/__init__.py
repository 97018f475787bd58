"""
Schemas Package for Schema Inference
"""
from .features import (
    ClassificationPath,
    PatternName,
    UNIX_TIMESTAMP_PATTERNS,
    EXTERNAL_ID_PATTERNS,
    Purpose,
    Role,
    TimestampPurpose,
    BooleanType,
    EnumCategory,
    IdentifierType,
    DetectedPattern,
    ColumnDataProfile,
    TimestampFeatures,
    BooleanFeatures,
    IdentifierFeatures,
    EnumValue,
    EnumFeatures,
    JSONFeatures,
    NumericFeatures,
    TextFeatures,
    MonetaryFeatures,
    ColumnFeatures,
    PhaseStatus,
    PhaseProgress,
    FeatureExtractionProgress,
)
from .models import COLUMN_FEATURES_KEY, SchemaTable, SchemaColumn
from .relationships import FKSourceColumn, FKTargetColumn, RelationshipCandidate
from .repository import SchemaRepository, InMemorySchemaRepository

__all__ = [
    "ClassificationPath",
    "PatternName",
    "UNIX_TIMESTAMP_PATTERNS",
    "EXTERNAL_ID_PATTERNS",
    "Purpose",
    "Role",
    "TimestampPurpose",
    "BooleanType",
    "EnumCategory",
    "IdentifierType",
    "DetectedPattern",
    "ColumnDataProfile",
    "TimestampFeatures",
    "BooleanFeatures",
    "IdentifierFeatures",
    "EnumValue",
    "EnumFeatures",
    "JSONFeatures",
    "NumericFeatures",
    "TextFeatures",
    "MonetaryFeatures",
    "ColumnFeatures",
    "PhaseStatus",
    "PhaseProgress",
    "FeatureExtractionProgress",
    "COLUMN_FEATURES_KEY",
    "SchemaTable",
    "SchemaColumn",
    "FKSourceColumn",
    "FKTargetColumn",
    "RelationshipCandidate",
    "SchemaRepository",
    "InMemorySchemaRepository",
]
