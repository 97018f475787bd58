"""
Relationship Candidate Collector

Identifies FK sources and FK targets from schema metadata plus stored column
features, then proposes type-compatible (source, target) pairs:
1. Sources: columns whose features mark them as identifiers, plus columns
   flagged joinable by earlier analysis
2. Targets: primary key and unique columns only
3. Pairs: cross product, minus self-references and incompatible types
"""
from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..schemas import (
    ClassificationPath,
    ColumnFeatures,
    FKSourceColumn,
    FKTargetColumn,
    Purpose,
    RelationshipCandidate,
    Role,
    SchemaColumn,
    SchemaRepository,
)
from ..utils import get_logger, log_context, InferenceMetrics
from .type_matcher import are_types_compatible

logger = get_logger(__name__)

# (completed, total, message)
CollectorProgressCallback = Callable[[int, int, str], None]

_EXCLUDED_PATHS = (
    ClassificationPath.TIMESTAMP,
    ClassificationPath.BOOLEAN,
    ClassificationPath.JSON,
)

_QUALIFYING_PATHS = (
    ClassificationPath.UUID,
    ClassificationPath.EXTERNAL_ID,
)


def should_exclude_from_fk_sources(column: SchemaColumn) -> bool:
    """
    Columns that can never be FK sources

    Primary keys are targets; timestamp, boolean and JSON columns never
    reference other rows.
    """
    if column.is_primary_key:
        return True

    data_type = (column.data_type or "").lower().strip()
    if "timestamp" in data_type or "datetime" in data_type or data_type in ("date", "time"):
        return True
    if data_type in ("boolean", "bool"):
        return True
    if data_type in ("json", "jsonb"):
        return True

    features = column.get_column_features()
    if features is not None and features.classification_path in _EXCLUDED_PATHS:
        return True

    return False


def is_qualified_fk_source(features: ColumnFeatures) -> bool:
    """Any one of: FK role, identifier purpose, UUID or external ID path"""
    if features.role == Role.FOREIGN_KEY.value:
        return True
    if features.purpose == Purpose.IDENTIFIER.value:
        return True
    return features.classification_path in _QUALIFYING_PATHS


def _table_names(repository: SchemaRepository, datasource_id: str) -> Dict[str, str]:
    return {t.id: t.table_name for t in repository.list_tables(datasource_id) if t.table_name}


def identify_fk_sources(repository: SchemaRepository, datasource_id: str) -> List[FKSourceColumn]:
    """FK source columns, feature-qualified first then the joinable fallback"""
    columns_by_table = repository.get_columns_with_features(datasource_id)
    all_columns = repository.list_columns(datasource_id)
    table_names = _table_names(repository, datasource_id)

    sources: List[FKSourceColumn] = []
    seen: Set[str] = set()

    for table_name, columns in columns_by_table.items():
        for column in columns:
            if should_exclude_from_fk_sources(column):
                continue
            features = column.get_column_features()
            if features is None or not is_qualified_fk_source(features):
                continue
            sources.append(FKSourceColumn(column=column, table_name=table_name, features=features))
            seen.add(column.id)

    for column in all_columns:
        if column.id in seen or should_exclude_from_fk_sources(column):
            continue
        if column.is_joinable is not True:
            continue
        table_name = table_names.get(column.table_id)
        if not table_name:
            logger.debug(f"Skipping joinable column {column.column_name}: unresolved table")
            continue
        sources.append(FKSourceColumn(
            column=column,
            table_name=table_name,
            features=column.get_column_features(),
        ))
        seen.add(column.id)

    logger.info(
        "Identified FK source candidates",
        extra={"extra_fields": {"count": len(sources), "datasource_id": datasource_id}}
    )
    return sources


def identify_fk_targets(repository: SchemaRepository, datasource_id: str) -> List[FKTargetColumn]:
    """Primary key and unique columns; cardinality alone never qualifies"""
    table_names = _table_names(repository, datasource_id)

    targets: List[FKTargetColumn] = []
    for column in repository.list_columns(datasource_id):
        if not column.is_primary_key and not column.is_unique:
            continue
        table_name = table_names.get(column.table_id)
        if not table_name:
            continue
        targets.append(FKTargetColumn(column=column, table_name=table_name, is_unique=True))

    logger.info(
        "Identified FK target candidates",
        extra={"extra_fields": {"count": len(targets), "datasource_id": datasource_id}}
    )
    return targets


def generate_candidate_pairs(
    sources: List[FKSourceColumn],
    targets: List[FKTargetColumn],
) -> List[RelationshipCandidate]:
    """Type-compatible source x target pairs, deduplicated on the relationship key"""
    candidates: List[RelationshipCandidate] = []
    seen: Set[Tuple[str, str, str, str]] = set()

    for source in sources:
        for target in targets:
            # Same column; same table with another column is a valid self-join
            if source.column.id == target.column.id:
                continue
            if not are_types_compatible(source.column.data_type, target.column.data_type):
                continue

            candidate = RelationshipCandidate(
                source_table=source.table_name,
                source_column=source.column.column_name,
                source_column_id=source.column.id,
                source_data_type=source.column.data_type,
                source_is_pk=source.column.is_primary_key,
                target_table=target.table_name,
                target_column=target.column.column_name,
                target_column_id=target.column.id,
                target_data_type=target.column.data_type,
                target_is_pk=target.column.is_primary_key,
            )
            if source.features is not None:
                candidate.source_purpose = source.features.purpose
                candidate.source_role = source.features.role
            target_features = target.column.get_column_features()
            if target_features is not None:
                candidate.target_purpose = target_features.purpose
                candidate.target_role = target_features.role

            if candidate.key in seen:
                continue
            seen.add(candidate.key)
            candidates.append(candidate)

    logger.debug(
        "Generated candidate pairs",
        extra={"extra_fields": {
            "source_count": len(sources),
            "target_count": len(targets),
            "candidate_count": len(candidates),
        }}
    )
    return candidates


class RelationshipCandidateCollector:
    """
    Collects relationship candidates for a datasource

    Usage:
        collector = RelationshipCandidateCollector(repository)
        candidates = collector.collect_candidates(datasource_id)
    """

    TOTAL_STEPS = 4

    def __init__(self, repository: SchemaRepository):
        self.repository = repository

    def collect_candidates(
        self,
        datasource_id: str,
        progress_callback: Optional[CollectorProgressCallback] = None,
    ) -> List[RelationshipCandidate]:
        def report(step: int, message: str) -> None:
            if progress_callback is not None:
                progress_callback(step, self.TOTAL_STEPS, message)

        with log_context(datasource_id=datasource_id, phase="relationship_candidates"):
            start = time.perf_counter()
            report(0, "Loading schema metadata")

            sources = identify_fk_sources(self.repository, datasource_id)
            report(1, f"Found {len(sources)} potential FK sources")

            targets = identify_fk_targets(self.repository, datasource_id)
            report(2, f"Found {len(targets)} FK targets (PKs/unique)")

            candidates = generate_candidate_pairs(sources, targets)
            report(3, f"Generated {len(candidates)} candidate pairs")

            InferenceMetrics.record_candidates(len(sources), len(targets), len(candidates))
            logger.info(
                f"Collected {len(candidates)} relationship candidates",
                extra={"extra_fields": {
                    "duration_ms": (time.perf_counter() - start) * 1000,
                }}
            )
            report(4, f"Collected {len(candidates)} relationship candidates")
            return candidates
