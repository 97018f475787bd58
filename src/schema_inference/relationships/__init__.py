"""
Relationship Candidate Collection
"""
from .type_matcher import (
    TYPE_CATEGORIES,
    normalize_data_type,
    categorize_data_type,
    are_types_compatible,
)
from .collector import (
    CollectorProgressCallback,
    should_exclude_from_fk_sources,
    is_qualified_fk_source,
    identify_fk_sources,
    identify_fk_targets,
    generate_candidate_pairs,
    RelationshipCandidateCollector,
)

__all__ = [
    "TYPE_CATEGORIES",
    "normalize_data_type",
    "categorize_data_type",
    "are_types_compatible",
    "CollectorProgressCallback",
    "should_exclude_from_fk_sources",
    "is_qualified_fk_source",
    "identify_fk_sources",
    "identify_fk_targets",
    "generate_candidate_pairs",
    "RelationshipCandidateCollector",
]
