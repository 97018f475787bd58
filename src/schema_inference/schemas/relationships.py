"""
Relationship Candidate Models
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .features import ColumnFeatures
from .models import SchemaColumn


@dataclass
class FKSourceColumn:
    """A column that may reference another table"""
    column: SchemaColumn
    table_name: str
    features: Optional[ColumnFeatures] = None


@dataclass
class FKTargetColumn:
    """A column that may be referenced (primary key or unique)"""
    column: SchemaColumn
    table_name: str
    is_unique: bool = True


@dataclass
class RelationshipCandidate:
    """
    A potential join between a source and a target column

    The statistics fields are placeholders filled by downstream join validation.
    """
    source_table: str
    source_column: str
    source_column_id: str
    source_data_type: str
    target_table: str
    target_column: str
    target_column_id: str
    target_data_type: str
    source_is_pk: bool = False
    target_is_pk: bool = False
    source_role: str = ""
    source_purpose: str = ""
    target_role: str = ""
    target_purpose: str = ""

    join_count: int = 0
    orphan_count: int = 0
    reverse_orphans: int = 0
    source_matched: int = 0
    target_matched: int = 0

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.source_table, self.source_column, self.target_table, self.target_column)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_table": self.source_table,
            "source_column": self.source_column,
            "source_column_id": self.source_column_id,
            "source_data_type": self.source_data_type,
            "source_is_pk": self.source_is_pk,
            "source_role": self.source_role,
            "source_purpose": self.source_purpose,
            "target_table": self.target_table,
            "target_column": self.target_column,
            "target_column_id": self.target_column_id,
            "target_data_type": self.target_data_type,
            "target_is_pk": self.target_is_pk,
            "target_role": self.target_role,
            "target_purpose": self.target_purpose,
            "join_count": self.join_count,
            "orphan_count": self.orphan_count,
            "reverse_orphans": self.reverse_orphans,
            "source_matched": self.source_matched,
            "target_matched": self.target_matched,
        }
