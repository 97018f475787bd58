"""
Column Classifiers

One classifier per classification path. Each builds a focused prompt for a
single column, makes one model call and turns the JSON answer into a
ColumnFeatures record with the path-specific payload populated.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from ..concurrency import ResilientLLMCaller
from ..llm_client import parse_json_response
from ..schemas import (
    BooleanFeatures,
    ClassificationPath,
    ColumnDataProfile,
    ColumnFeatures,
    EnumFeatures,
    IdentifierFeatures,
    IdentifierType,
    JSONFeatures,
    MonetaryFeatures,
    NumericFeatures,
    PatternName,
    Purpose,
    Role,
    TextFeatures,
    TimestampFeatures,
    EXTERNAL_ID_PATTERNS,
    UNIX_TIMESTAMP_PATTERNS,
)
from ..utils import get_logger
from .patterns import TIMESTAMP_SCALES

logger = get_logger(__name__)

DEFAULT_CLASSIFICATION_TEMPERATURE = 0.2


# ============================================================================
# Response coercion
# ============================================================================

def response_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value).strip()


def response_bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def response_confidence(data: Dict[str, Any], key: str = "confidence") -> float:
    """Model-reported confidence clamped to [0, 1]; unparseable values become 0"""
    try:
        value = float(data.get(key, 0.0))
    except (TypeError, ValueError):
        return 0.0
    return min(1.0, max(0.0, value))


def profile_header(profile: ColumnDataProfile, title: str) -> List[str]:
    return [
        f"# {title}",
        "",
        f"**Table:** {profile.table_name}",
        f"**Column:** {profile.column_name}",
        f"**Data type:** {profile.data_type}",
    ]


def sample_lines(samples, limit: int, max_length: Optional[int] = None, quote: bool = True) -> List[str]:
    lines = []
    for value in list(samples)[:limit]:
        if max_length is not None and len(value) > max_length:
            value = value[:max_length] + "..."
        lines.append(f"- `{value}`" if quote else f"- {value}")
    return lines


def timestamp_scale(profile: ColumnDataProfile) -> str:
    for name in UNIX_TIMESTAMP_PATTERNS:
        if profile.get_pattern(name) is not None:
            return TIMESTAMP_SCALES[name.value]
    return ""


# ============================================================================
# Base classifier
# ============================================================================

class ColumnClassifier(ABC):
    """
    Classifies a single column for one classification path

    Subclasses supply the system prompt, the user prompt and the mapping from
    the parsed JSON answer to ColumnFeatures.
    """

    path: ClassificationPath = ClassificationPath.UNKNOWN
    requires_llm: bool = True
    SYSTEM_PROMPT: str = ""

    def classify(
        self,
        profile: ColumnDataProfile,
        caller: Optional[ResilientLLMCaller],
        temperature: float = DEFAULT_CLASSIFICATION_TEMPERATURE,
        cancel_event: Optional[threading.Event] = None,
    ) -> ColumnFeatures:
        result = caller.generate(
            prompt=self.build_prompt(profile),
            system_message=self.SYSTEM_PROMPT,
            temperature=temperature,
            thinking=False,
            cancel_event=cancel_event,
            operation=f"classify_{self.path.value}",
        )
        response = parse_json_response(result.content)
        features = self.build_features(profile, response)
        features.llm_model_used = result.model_id or caller.model_id
        return features

    def base_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        return ColumnFeatures(
            column_id=profile.column_id,
            classification_path=self.path,
            role=Role.ATTRIBUTE.value,
            description=response_str(response, "description"),
            confidence=response_confidence(response),
        )

    @abstractmethod
    def build_prompt(self, profile: ColumnDataProfile) -> str:
        pass

    @abstractmethod
    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        pass


class TimestampClassifier(ColumnClassifier):
    path = ClassificationPath.TIMESTAMP

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify timestamp columns based on their data characteristics.
Focus on the DATA patterns (null rate, precision) not column names. Column names are provided for context only.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Timestamp Column Classification")
        parts.append(f"**Null rate:** {profile.null_rate * 100:.1f}%")
        parts.append(f"**Row count:** {profile.row_count}")

        scale = timestamp_scale(profile)
        if scale:
            parts.append(f"**Timestamp scale:** {scale} (integer stored as Unix timestamp)")

        if profile.sample_values:
            parts.append("\n**Sample values:**")
            parts.extend(sample_lines(profile.sample_values, 5, quote=False))

        parts.append("""
## Task

Based on the DATA characteristics (especially null rate), determine the timestamp's purpose.

**Classification rules:**
- **90-100% NULL:** Likely soft delete or optional event timestamp
- **0-5% NULL:** Likely required audit field (created_at, updated_at) or event time
- **5-90% NULL:** Conditional timestamp (populated under certain conditions)

**Possible purposes:** audit_created, audit_updated, soft_delete, event_time, scheduled_time, expiration, cursor

## Response Format

```json
{
  "purpose": "audit_created",
  "confidence": 0.85,
  "is_soft_delete": false,
  "is_audit_field": true,
  "description": "Records when the record was created."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        purpose = response_str(response, "purpose")
        features.purpose = Purpose.TIMESTAMP.value
        features.semantic_type = purpose
        features.timestamp_features = TimestampFeatures(
            timestamp_purpose=purpose,
            is_soft_delete=response_bool(response, "is_soft_delete"),
            is_audit_field=response_bool(response, "is_audit_field"),
            timestamp_scale=timestamp_scale(profile),
        )
        # Soft delete markers are validated against the rest of the table
        features.needs_cross_column_check = features.timestamp_features.is_soft_delete
        return features


class BooleanClassifier(ColumnClassifier):
    path = ClassificationPath.BOOLEAN

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify boolean columns.
Focus on the value distribution and context to determine meaning.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Boolean Column Classification")
        if profile.sample_values:
            distinct = sorted(set(profile.sample_values))
            parts.append(f"**Distinct values:** {', '.join(distinct)}")

        parts.append("""
## Task

Determine what true and false values mean for this column.

**Boolean types:** feature_flag, status_indicator, permission, preference, state

## Response Format

```json
{
  "true_meaning": "Account is active and can log in",
  "false_meaning": "Account is deactivated",
  "boolean_type": "status_indicator",
  "confidence": 0.9,
  "description": "Indicates whether the account is currently active."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        boolean_type = response_str(response, "boolean_type")
        features.purpose = Purpose.FLAG.value
        features.semantic_type = boolean_type
        features.boolean_features = BooleanFeatures(
            true_meaning=response_str(response, "true_meaning"),
            false_meaning=response_str(response, "false_meaning"),
            boolean_type=boolean_type,
        )
        return features


class EnumClassifier(ColumnClassifier):
    path = ClassificationPath.ENUM

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify enum/categorical columns.
Determine if the values represent a state machine or simple categories.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Enum/Categorical Column Classification")
        parts.append(f"**Distinct values:** {profile.distinct_count}")
        if profile.sample_values:
            parts.append("\n**Values found:**")
            parts.extend(sample_lines(sorted(set(profile.sample_values)), 50))

        parts.append("""
## Task

Analyze these values to determine:
1. Are they a state machine (ordered progression) or simple categories?
2. What does each value mean?

**State machine indicators:**
- Values suggest progression (pending -> processing -> complete)
- Some values are terminal states (cannot transition further)
- Some values are error/exception states

## Response Format

```json
{
  "is_state_machine": true,
  "state_description": "Order processing workflow",
  "needs_detailed_analysis": true,
  "confidence": 0.85,
  "description": "Tracks the order fulfillment status."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        is_state_machine = response_bool(response, "is_state_machine")
        features.purpose = Purpose.ENUM.value
        features.semantic_type = "enum"
        features.enum_features = EnumFeatures(
            is_state_machine=is_state_machine,
            state_description=response_str(response, "state_description"),
        )
        features.needs_enum_analysis = (
            response_bool(response, "needs_detailed_analysis") or is_state_machine
        )
        return features


class UUIDClassifier(ColumnClassifier):
    path = ClassificationPath.UUID

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify UUID identifier columns.
Determine if it's a primary key, foreign key, or other identifier type.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "UUID Column Classification")
        parts.append(f"**Is Primary Key:** {profile.is_primary_key}")
        parts.append(f"**Is Unique:** {profile.is_unique}")
        parts.append(f"**Cardinality:** {profile.cardinality * 100:.2f}%")

        parts.append("""
## Task

Classify this UUID column.

**Identifier types:**
- `primary_key`: Uniquely identifies rows in this table
- `foreign_key`: References a row in another table
- `internal_uuid`: Internal identifier not used for joins
- `external_uuid`: Identifier issued by an external system

## Response Format

```json
{
  "identifier_type": "foreign_key",
  "entity_referenced": "user",
  "needs_fk_resolution": true,
  "confidence": 0.8,
  "description": "References the user who created this record."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        identifier_type = response_str(response, "identifier_type")

        if profile.is_primary_key or identifier_type == IdentifierType.PRIMARY_KEY.value:
            features.role = Role.PRIMARY_KEY.value
        elif identifier_type == IdentifierType.FOREIGN_KEY.value:
            features.role = Role.FOREIGN_KEY.value

        needs_fk = (
            response_bool(response, "needs_fk_resolution")
            and identifier_type == IdentifierType.FOREIGN_KEY.value
        )

        features.purpose = Purpose.IDENTIFIER.value
        features.semantic_type = identifier_type
        features.identifier_features = IdentifierFeatures(
            identifier_type=identifier_type,
            entity_referenced=response_str(response, "entity_referenced"),
            needs_fk_resolution=needs_fk,
        )
        features.needs_fk_resolution = needs_fk
        return features


class ExternalIDClassifier(ColumnClassifier):
    path = ClassificationPath.EXTERNAL_ID

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify external service ID columns.
Identify the external service and what entity type the ID references.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "External Service ID Classification")
        for name in EXTERNAL_ID_PATTERNS:
            pattern = profile.get_pattern(name)
            if pattern is None:
                continue
            parts.append(f"**Detected pattern:** {pattern.name} ({pattern.match_rate * 100:.0f}% match)")
            if pattern.matched_values:
                parts.append("**Sample values:**")
                parts.extend(sample_lines(pattern.matched_values, 5))

        parts.append("""
## Task

Identify the external service and entity type.

**Known services:**
- `stripe`: Payment processing (cus_, pi_, ch_, sub_, etc.)
- `twilio`: Communications (AC, SM, MM, etc.)
- `aws_ses`: Email delivery (message IDs)

## Response Format

```json
{
  "external_service": "stripe",
  "entity_referenced": "customer",
  "confidence": 0.95,
  "description": "Stripe customer ID for payment processing."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        features.purpose = Purpose.IDENTIFIER.value
        features.semantic_type = IdentifierType.EXTERNAL_SERVICE_ID.value
        features.identifier_features = IdentifierFeatures(
            identifier_type=IdentifierType.EXTERNAL_SERVICE_ID.value,
            external_service=response_str(response, "external_service"),
            entity_referenced=response_str(response, "entity_referenced"),
        )
        return features


class NumericClassifier(ColumnClassifier):
    path = ClassificationPath.NUMERIC

    MEASURE_TYPES = ("measure", "monetary", "percentage", "count")

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify numeric columns.
Determine if the column represents a measure (amount, count, quantity) or an identifier.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Numeric Column Classification")
        parts.append(f"**Is Primary Key:** {profile.is_primary_key}")
        parts.append(f"**Is Unique:** {profile.is_unique}")
        parts.append(f"**Cardinality:** {profile.cardinality * 100:.2f}%")
        if profile.sample_values:
            parts.append("\n**Sample values:**")
            parts.extend(sample_lines(profile.sample_values, 5, quote=False))

        parts.append("""
## Task

Classify this numeric column.

**Numeric types:** identifier, measure, monetary, percentage, count, attribute

## Response Format

```json
{
  "numeric_type": "monetary",
  "may_be_monetary": true,
  "confidence": 0.75,
  "description": "Transaction amount in cents."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        numeric_type = response_str(response, "numeric_type")
        may_be_monetary = response_bool(response, "may_be_monetary")

        features.purpose = Purpose.MEASURE.value
        if profile.is_primary_key or numeric_type == "identifier":
            features.role = Role.PRIMARY_KEY.value
            features.purpose = Purpose.IDENTIFIER.value
        if numeric_type in self.MEASURE_TYPES:
            features.role = Role.MEASURE.value

        features.semantic_type = numeric_type
        features.numeric_features = NumericFeatures(
            numeric_type=numeric_type,
            may_be_monetary=may_be_monetary,
        )
        if may_be_monetary:
            # Confirmed or rejected by cross-column analysis
            features.monetary_features = MonetaryFeatures(is_monetary=False)
            features.needs_cross_column_check = True
        return features


class TextClassifier(ColumnClassifier):
    path = ClassificationPath.TEXT

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify text columns.
Determine the type of text content based on length and patterns.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Text Column Classification")
        parts.append(f"**Cardinality:** {profile.cardinality * 100:.2f}%")
        if profile.min_length is not None and profile.max_length is not None:
            parts.append(f"**Length range:** {profile.min_length} - {profile.max_length} characters")

        if profile.sample_values:
            parts.append("\n**Sample values:**")
            parts.extend(sample_lines(profile.sample_values, 5, max_length=100))

        for name in (PatternName.EMAIL, PatternName.URL):
            pattern = profile.get_pattern(name)
            if pattern is not None:
                parts.append(f"**Detected pattern:** {pattern.name} ({pattern.match_rate * 100:.0f}% match)")

        parts.append("""
## Task

Classify this text column.

**Text types:** email, url, name, address, phone, code, description, identifier, free_text

## Response Format

```json
{
  "text_type": "email",
  "confidence": 0.95,
  "description": "User's primary email address."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        text_type = response_str(response, "text_type")
        features.purpose = Purpose.TEXT.value
        features.semantic_type = text_type
        features.text_features = TextFeatures(text_type=text_type)
        return features


class JSONClassifier(ColumnClassifier):
    path = ClassificationPath.JSON

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to classify JSON/JSONB columns.
Analyze the sample values to understand the JSON structure and purpose.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "JSON Column Classification")
        if profile.sample_values:
            parts.append("\n**Sample values:**")
            for value in profile.sample_values[:3]:
                if len(value) > 200:
                    value = value[:200] + "..."
                parts.append(f"```json\n{value}\n```")

        parts.append("""
## Task

Classify this JSON column.

**JSON types:** settings, metadata, event_payload, api_response, audit_log, document

## Response Format

```json
{
  "json_type": "settings",
  "confidence": 0.85,
  "description": "User preferences and application settings."
}
```""")
        return "\n".join(parts)

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        features = self.base_features(profile, response)
        json_type = response_str(response, "json_type")
        features.purpose = Purpose.JSON.value
        features.semantic_type = json_type
        features.json_features = JSONFeatures(json_type=json_type)
        return features


class UnknownClassifier(ColumnClassifier):
    """Fallback for unrecognized types; never calls the model"""

    path = ClassificationPath.UNKNOWN
    requires_llm = False

    def classify(
        self,
        profile: ColumnDataProfile,
        caller: Optional[ResilientLLMCaller] = None,
        temperature: float = DEFAULT_CLASSIFICATION_TEMPERATURE,
        cancel_event: Optional[threading.Event] = None,
    ) -> ColumnFeatures:
        return self.build_features(profile, {})

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        return ""

    def build_features(self, profile: ColumnDataProfile, response: Dict[str, Any]) -> ColumnFeatures:
        return ColumnFeatures(
            column_id=profile.column_id,
            classification_path=ClassificationPath.UNKNOWN,
            purpose=Purpose.TEXT.value,
            semantic_type="unknown",
            role=Role.ATTRIBUTE.value,
            description=f"Column with unrecognized data type: {profile.data_type}",
            confidence=0.5,
        )


CLASSIFIER_TYPES: Dict[ClassificationPath, Type[ColumnClassifier]] = {
    ClassificationPath.TIMESTAMP: TimestampClassifier,
    ClassificationPath.BOOLEAN: BooleanClassifier,
    ClassificationPath.ENUM: EnumClassifier,
    ClassificationPath.UUID: UUIDClassifier,
    ClassificationPath.EXTERNAL_ID: ExternalIDClassifier,
    ClassificationPath.NUMERIC: NumericClassifier,
    ClassificationPath.TEXT: TextClassifier,
    ClassificationPath.JSON: JSONClassifier,
    ClassificationPath.UNKNOWN: UnknownClassifier,
}


class ClassifierRegistry:
    """
    Lazily built classifier per path

    The same path always yields the same instance; construction happens at
    most once per path even under concurrent lookups.
    """

    def __init__(self, classifier_types: Optional[Dict[ClassificationPath, Type[ColumnClassifier]]] = None):
        self._types = classifier_types or CLASSIFIER_TYPES
        self._classifiers: Dict[ClassificationPath, ColumnClassifier] = {}
        self._lock = threading.Lock()

    def get(self, path: ClassificationPath) -> ColumnClassifier:
        classifier = self._classifiers.get(path)
        if classifier is not None:
            return classifier

        with self._lock:
            classifier = self._classifiers.get(path)
            if classifier is None:
                classifier_cls = self._types.get(path, UnknownClassifier)
                classifier = classifier_cls()
                self._classifiers[path] = classifier
                logger.debug(f"Created classifier for path {path.value}")
            return classifier
