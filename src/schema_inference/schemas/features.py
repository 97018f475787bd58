"""
Column Feature Models

Profiles describe what the data in a column looks like; features describe
what the column means. Profiles are rebuilt each extraction run and never
persisted, features are stored in column metadata.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClassificationPath(str, Enum):
    """Coarse semantic bucket a column is routed to before detailed classification"""
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    ENUM = "enum"
    UUID = "uuid"
    EXTERNAL_ID = "external_id"
    NUMERIC = "numeric"
    TEXT = "text"
    JSON = "json"
    UNKNOWN = "unknown"


class PatternName(str, Enum):
    """Value patterns recognized by the pattern detector"""
    UUID = "uuid"
    STRIPE_ID = "stripe_id"
    AWS_SES = "aws_ses"
    TWILIO_SID = "twilio_sid"
    ISO4217 = "iso4217"
    UNIX_SECONDS = "unix_seconds"
    UNIX_MILLIS = "unix_millis"
    UNIX_MICROS = "unix_micros"
    UNIX_NANOS = "unix_nanos"
    EMAIL = "email"
    URL = "url"


UNIX_TIMESTAMP_PATTERNS = (
    PatternName.UNIX_SECONDS,
    PatternName.UNIX_MILLIS,
    PatternName.UNIX_MICROS,
    PatternName.UNIX_NANOS,
)

EXTERNAL_ID_PATTERNS = (
    PatternName.STRIPE_ID,
    PatternName.TWILIO_SID,
    PatternName.AWS_SES,
)


class Purpose(str, Enum):
    """Analytic use of a column"""
    IDENTIFIER = "identifier"
    TIMESTAMP = "timestamp"
    FLAG = "flag"
    MEASURE = "measure"
    DIMENSION = "dimension"
    ATTRIBUTE = "attribute"
    ENUM = "enum"
    TEXT = "text"
    JSON = "json"


class Role(str, Enum):
    """Structural use of a column"""
    PRIMARY_KEY = "primary_key"
    FOREIGN_KEY = "foreign_key"
    ATTRIBUTE = "attribute"
    MEASURE = "measure"


class TimestampPurpose(str, Enum):
    AUDIT_CREATED = "audit_created"
    AUDIT_UPDATED = "audit_updated"
    SOFT_DELETE = "soft_delete"
    EVENT_TIME = "event_time"
    SCHEDULED_TIME = "scheduled_time"
    EXPIRATION = "expiration"
    CURSOR = "cursor"


class BooleanType(str, Enum):
    FEATURE_FLAG = "feature_flag"
    STATUS_INDICATOR = "status_indicator"
    PERMISSION = "permission"
    PREFERENCE = "preference"
    STATE = "state"


class EnumCategory(str, Enum):
    """Position of an enum value within a state machine"""
    INITIAL = "initial"
    IN_PROGRESS = "in_progress"
    TERMINAL = "terminal"
    TERMINAL_SUCCESS = "terminal_success"
    TERMINAL_ERROR = "terminal_error"


class IdentifierType(str, Enum):
    INTERNAL_UUID = "internal_uuid"
    EXTERNAL_UUID = "external_uuid"
    PRIMARY_KEY = "primary_key"
    FOREIGN_KEY = "foreign_key"
    EXTERNAL_SERVICE_ID = "external_service_id"


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


# ============================================================================
# Profile
# ============================================================================

@dataclass(frozen=True)
class DetectedPattern:
    """A value pattern found in a column's samples"""
    name: str
    match_rate: float
    matched_values: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "name", _value(self.name))
        object.__setattr__(self, "matched_values", tuple(self.matched_values))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "match_rate": self.match_rate,
            "matched_values": list(self.matched_values),
        }


@dataclass(frozen=True)
class ColumnDataProfile:
    """Statistical fingerprint of one column, immutable once built"""
    column_id: str
    column_name: str
    table_name: str
    data_type: str
    table_id: str = ""
    is_nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    row_count: int = 0
    distinct_count: int = 0
    null_count: int = 0
    null_rate: float = 0.0
    cardinality: float = 0.0
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    sample_values: Tuple[str, ...] = ()
    detected_patterns: Tuple[DetectedPattern, ...] = ()
    classification_path: ClassificationPath = ClassificationPath.UNKNOWN

    def __post_init__(self):
        object.__setattr__(self, "sample_values", tuple(self.sample_values))
        object.__setattr__(self, "detected_patterns", tuple(self.detected_patterns))

    def get_pattern(self, name: str) -> Optional[DetectedPattern]:
        name = _value(name)
        for pattern in self.detected_patterns:
            if pattern.name == name:
                return pattern
        return None

    def matches_pattern(self, name: str, threshold: float = 0.95) -> bool:
        """True if ``name`` was detected with a match rate at or above threshold"""
        pattern = self.get_pattern(name)
        return pattern is not None and pattern.match_rate >= threshold

    def type_category(self) -> str:
        # relationships imports schemas, so resolve lazily
        from ..relationships.type_matcher import categorize_data_type
        return categorize_data_type(self.data_type)

    def is_integer_type(self) -> bool:
        return self.type_category() == "integer"

    def is_numeric_type(self) -> bool:
        """Integer or decimal/floating types"""
        return self.type_category() in ("integer", "numeric")

    def is_text_type(self) -> bool:
        return self.type_category() == "string"

    def with_path(self, path: ClassificationPath) -> "ColumnDataProfile":
        return replace(self, classification_path=path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column_id": self.column_id,
            "column_name": self.column_name,
            "table_name": self.table_name,
            "data_type": self.data_type,
            "is_nullable": self.is_nullable,
            "is_primary_key": self.is_primary_key,
            "is_unique": self.is_unique,
            "row_count": self.row_count,
            "distinct_count": self.distinct_count,
            "null_count": self.null_count,
            "null_rate": self.null_rate,
            "cardinality": self.cardinality,
            "min_length": self.min_length,
            "max_length": self.max_length,
            "sample_values": list(self.sample_values[:10]),
            "detected_patterns": [p.to_dict() for p in self.detected_patterns],
            "classification_path": self.classification_path.value,
        }


# ============================================================================
# Path-specific features
# ============================================================================

@dataclass
class TimestampFeatures:
    timestamp_purpose: str = ""
    is_soft_delete: bool = False
    is_audit_field: bool = False
    # seconds | milliseconds | microseconds | nanoseconds for integer-encoded timestamps
    timestamp_scale: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp_purpose": _value(self.timestamp_purpose),
            "timestamp_scale": self.timestamp_scale,
            "is_soft_delete": self.is_soft_delete,
            "is_audit_field": self.is_audit_field,
        }


@dataclass
class BooleanFeatures:
    true_meaning: str = ""
    false_meaning: str = ""
    boolean_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "true_meaning": self.true_meaning,
            "false_meaning": self.false_meaning,
            "boolean_type": _value(self.boolean_type),
        }


@dataclass
class IdentifierFeatures:
    identifier_type: str = ""
    external_service: str = ""
    entity_referenced: str = ""
    fk_target_table: str = ""
    fk_target_column: str = ""
    fk_confidence: float = 0.0
    needs_fk_resolution: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier_type": _value(self.identifier_type),
            "external_service": self.external_service,
            "entity_referenced": self.entity_referenced,
            "fk_target_table": self.fk_target_table,
            "fk_target_column": self.fk_target_column,
            "fk_confidence": self.fk_confidence,
            "needs_fk_resolution": self.needs_fk_resolution,
        }


@dataclass
class EnumValue:
    value: str
    label: str = ""
    category: str = ""
    count: Optional[int] = None
    percentage: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "value": self.value,
            "label": self.label,
            "category": _value(self.category),
        }
        if self.count is not None:
            data["count"] = self.count
        if self.percentage is not None:
            data["percentage"] = self.percentage
        return data


@dataclass
class EnumFeatures:
    is_state_machine: bool = False
    state_description: str = ""
    values: List[EnumValue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_state_machine": self.is_state_machine,
            "state_description": self.state_description,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass
class JSONFeatures:
    json_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"json_type": self.json_type}


@dataclass
class NumericFeatures:
    numeric_type: str = ""
    may_be_monetary: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"numeric_type": self.numeric_type, "may_be_monetary": self.may_be_monetary}


@dataclass
class TextFeatures:
    text_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"text_type": self.text_type}


@dataclass
class MonetaryFeatures:
    """Set by cross-column analysis once an amount column is confirmed"""
    is_monetary: bool = False
    currency_unit: str = ""
    paired_currency_column: str = ""
    amount_description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_monetary": self.is_monetary,
            "currency_unit": self.currency_unit,
            "paired_currency_column": self.paired_currency_column,
            "amount_description": self.amount_description,
        }


_PAYLOADS = {
    "timestamp_features": TimestampFeatures,
    "boolean_features": BooleanFeatures,
    "identifier_features": IdentifierFeatures,
    "json_features": JSONFeatures,
    "numeric_features": NumericFeatures,
    "text_features": TextFeatures,
    "monetary_features": MonetaryFeatures,
}


@dataclass
class ColumnFeatures:
    """Classification output for one column"""
    column_id: str
    classification_path: ClassificationPath
    purpose: str = ""
    semantic_type: str = ""
    role: str = ""
    description: str = ""
    confidence: float = 0.0

    timestamp_features: Optional[TimestampFeatures] = None
    boolean_features: Optional[BooleanFeatures] = None
    enum_features: Optional[EnumFeatures] = None
    identifier_features: Optional[IdentifierFeatures] = None
    json_features: Optional[JSONFeatures] = None
    numeric_features: Optional[NumericFeatures] = None
    text_features: Optional[TextFeatures] = None
    monetary_features: Optional[MonetaryFeatures] = None

    needs_enum_analysis: bool = False
    needs_fk_resolution: bool = False
    needs_cross_column_check: bool = False

    analyzed_at: datetime = field(default_factory=_utc_now)
    llm_model_used: str = ""

    def raise_confidence(self, confidence: float) -> None:
        """Merge a later confidence; never lowers the stored value"""
        self.confidence = max(self.confidence, confidence)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "column_id": self.column_id,
            "classification_path": self.classification_path.value,
            "purpose": _value(self.purpose),
            "semantic_type": self.semantic_type,
            "role": _value(self.role),
            "description": self.description,
            "confidence": self.confidence,
            "needs_enum_analysis": self.needs_enum_analysis,
            "needs_fk_resolution": self.needs_fk_resolution,
            "needs_cross_column_check": self.needs_cross_column_check,
            "analyzed_at": self.analyzed_at.isoformat(),
            "llm_model_used": self.llm_model_used,
        }
        for key in list(_PAYLOADS) + ["enum_features"]:
            payload = getattr(self, key)
            if payload is not None:
                data[key] = payload.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnFeatures":
        """Rebuild features stored by to_dict()"""
        analyzed_at = data.get("analyzed_at")
        features = cls(
            column_id=str(data.get("column_id", "")),
            classification_path=ClassificationPath(data.get("classification_path", "unknown")),
            purpose=data.get("purpose", ""),
            semantic_type=data.get("semantic_type", ""),
            role=data.get("role", ""),
            description=data.get("description", ""),
            confidence=float(data.get("confidence", 0.0)),
            needs_enum_analysis=bool(data.get("needs_enum_analysis", False)),
            needs_fk_resolution=bool(data.get("needs_fk_resolution", False)),
            needs_cross_column_check=bool(data.get("needs_cross_column_check", False)),
            analyzed_at=datetime.fromisoformat(analyzed_at) if analyzed_at else _utc_now(),
            llm_model_used=data.get("llm_model_used", ""),
        )
        for key, payload_cls in _PAYLOADS.items():
            if data.get(key) is not None:
                setattr(features, key, payload_cls(**data[key]))
        if data.get("enum_features") is not None:
            enum_data = dict(data["enum_features"])
            values = [EnumValue(**v) for v in enum_data.pop("values", [])]
            features.enum_features = EnumFeatures(values=values, **enum_data)
        return features


# ============================================================================
# Progress
# ============================================================================

class PhaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PhaseProgress:
    phase_id: str
    name: str
    status: PhaseStatus = PhaseStatus.PENDING
    total_items: int = 0
    completed_items: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_id": self.phase_id,
            "name": self.name,
            "status": self.status.value,
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "message": self.message,
        }


@dataclass
class FeatureExtractionProgress:
    """Multi-phase progress snapshot for UI/workflow surfacing"""
    current_phase: str = ""
    phase_description: str = ""
    total_items: int = 0
    completed_items: int = 0
    total_columns: int = 0
    enum_candidates: int = 0
    fk_candidates: int = 0
    cross_column_candidates: int = 0
    phases: List[PhaseProgress] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_phase": self.current_phase,
            "phase_description": self.phase_description,
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "total_columns": self.total_columns,
            "enum_candidates": self.enum_candidates,
            "fk_candidates": self.fk_candidates,
            "cross_column_candidates": self.cross_column_candidates,
            "phases": [p.to_dict() for p in self.phases],
        }
