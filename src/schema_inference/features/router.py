"""
Classification Router

Deterministically assigns each profile a ClassificationPath from its declared
TYPE and its DATA (detected patterns, cardinality). Column names are never
consulted. Rules are evaluated in order and the first match wins.
"""
from __future__ import annotations

from typing import Optional

from ..config import ExtractionConfig
from ..schemas import (
    ClassificationPath,
    ColumnDataProfile,
    EXTERNAL_ID_PATTERNS,
    PatternName,
    UNIX_TIMESTAMP_PATTERNS,
)
from ..relationships.type_matcher import normalize_data_type

BOOLEAN_VOCABULARIES = (
    frozenset({"0", "1"}),
    frozenset({"true", "false"}),
    frozenset({"yes", "no"}),
    frozenset({"y", "n"}),
    frozenset({"t", "f"}),
)


def has_only_boolean_values(profile: ColumnDataProfile) -> bool:
    """
    Exactly two distinct values, all drawn from a single boolean vocabulary

    When the distinct count is unknown (0) the samples decide.
    """
    if not profile.sample_values:
        return False

    normalized = {v.strip().lower() for v in profile.sample_values}
    distinct = profile.distinct_count if profile.distinct_count > 0 else len(normalized)
    if distinct != 2:
        return False

    return any(normalized <= vocabulary for vocabulary in BOOLEAN_VOCABULARIES)


def has_unix_timestamp_pattern(profile: ColumnDataProfile, threshold: float = 0.80) -> bool:
    return any(profile.matches_pattern(p, threshold) for p in UNIX_TIMESTAMP_PATTERNS)


def has_external_id_pattern(profile: ColumnDataProfile, threshold: float = 0.80) -> bool:
    return any(profile.matches_pattern(p, threshold) for p in EXTERNAL_ID_PATTERNS)


def is_low_cardinality(profile: ColumnDataProfile, config: ExtractionConfig) -> bool:
    """Enum heuristic: under 1% distinct and at most 50 distinct values"""
    return (
        0 < profile.cardinality < config.enum_cardinality_threshold
        and 0 < profile.distinct_count <= config.enum_max_distinct
    )


def route_to_classification_path(
    profile: ColumnDataProfile,
    config: Optional[ExtractionConfig] = None,
) -> ClassificationPath:
    config = config or ExtractionConfig()
    data_type = normalize_data_type(profile.data_type)

    if "date" in data_type or "time" in data_type:
        return ClassificationPath.TIMESTAMP
    if data_type in ("boolean", "bool", "bit"):
        return ClassificationPath.BOOLEAN
    if data_type == "uuid":
        return ClassificationPath.UUID
    if data_type in ("json", "jsonb"):
        return ClassificationPath.JSON

    is_numeric = profile.is_numeric_type()
    is_text = profile.is_text_type()

    # Integer or text columns holding epoch values
    if (is_numeric or is_text) and has_unix_timestamp_pattern(
        profile, config.unix_timestamp_match_threshold
    ):
        return ClassificationPath.TIMESTAMP

    if is_numeric:
        if profile.is_integer_type() and has_only_boolean_values(profile):
            return ClassificationPath.BOOLEAN
        if is_low_cardinality(profile, config):
            return ClassificationPath.ENUM
        return ClassificationPath.NUMERIC

    if is_text:
        if profile.matches_pattern(PatternName.UUID, config.uuid_match_threshold):
            return ClassificationPath.UUID
        if has_external_id_pattern(profile, config.external_id_match_threshold):
            return ClassificationPath.EXTERNAL_ID
        if is_low_cardinality(profile, config):
            return ClassificationPath.ENUM
        return ClassificationPath.TEXT

    return ClassificationPath.UNKNOWN
