"""
Column Profiler

Builds a ColumnDataProfile per column from table row counts and per-column
statistics, then attaches detected patterns and the routed path.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..config import ExtractionConfig
from ..schemas import ColumnDataProfile, SchemaColumn, SchemaTable
from ..utils import get_logger
from .patterns import PatternDetector
from .router import route_to_classification_path

logger = get_logger(__name__)


def _rate(numerator: int, row_count: int) -> float:
    if row_count <= 0:
        return 0.0
    return min(1.0, max(0.0, numerator / row_count))


class ColumnProfiler:
    """Deterministic profile builder, no model calls"""

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        detector: Optional[PatternDetector] = None,
    ):
        self.config = config or ExtractionConfig()
        self.detector = detector or PatternDetector()

    def build_profile(self, column: SchemaColumn, table: SchemaTable) -> ColumnDataProfile:
        row_count = table.row_count or 0
        if column.row_count is not None and column.row_count > 0:
            row_count = column.row_count

        distinct_count = max(0, column.distinct_count or 0)
        null_count = max(0, column.null_count or 0)
        samples = [str(v) for v in (column.sample_values or [])[:self.config.sample_limit]]

        profile = ColumnDataProfile(
            column_id=column.id,
            column_name=column.column_name,
            table_name=table.table_name,
            table_id=table.id,
            data_type=column.data_type,
            is_nullable=column.is_nullable,
            is_primary_key=column.is_primary_key,
            is_unique=column.is_unique,
            row_count=row_count,
            distinct_count=distinct_count,
            null_count=null_count,
            null_rate=_rate(null_count, row_count),
            cardinality=_rate(distinct_count, row_count),
            min_length=column.min_length,
            max_length=column.max_length,
            sample_values=samples,
            detected_patterns=self.detector.detect(samples),
        )
        return profile.with_path(route_to_classification_path(profile, self.config))

    def build_profiles(
        self,
        tables: Sequence[SchemaTable],
        columns: Sequence[SchemaColumn],
    ) -> List[ColumnDataProfile]:
        """Profiles in column order; columns with an unknown table are skipped"""
        table_by_id: Dict[str, SchemaTable] = {t.id: t for t in tables}

        profiles: List[ColumnDataProfile] = []
        for column in columns:
            table = table_by_id.get(column.table_id)
            if table is None:
                logger.warning(
                    f"Skipping column {column.column_name}: table not found",
                    extra={"extra_fields": {"column_id": column.id, "table_id": column.table_id}}
                )
                continue
            profiles.append(self.build_profile(column, table))

        return profiles
