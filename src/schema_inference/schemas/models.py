"""
Schema Metadata Models
Tables and columns as delivered by the schema source
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .features import ColumnFeatures


COLUMN_FEATURES_KEY = "column_features"


@dataclass
class SchemaTable:
    """A table in a datasource"""
    id: str
    datasource_id: str
    table_name: str
    row_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "datasource_id": self.datasource_id,
            "table_name": self.table_name,
            "row_count": self.row_count,
        }


@dataclass
class SchemaColumn:
    """A column with its sampled statistics"""
    id: str
    table_id: str
    column_name: str
    data_type: str
    is_nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False

    # Statistics
    row_count: Optional[int] = None
    distinct_count: int = 0
    null_count: int = 0
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    sample_values: List[str] = field(default_factory=list)

    # Joinability
    is_joinable: Optional[bool] = None
    joinability_reason: str = ""

    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_column_features(self) -> Optional[ColumnFeatures]:
        """Stored features, or None if the column was never classified"""
        data = self.metadata.get(COLUMN_FEATURES_KEY)
        if not data:
            return None
        if isinstance(data, ColumnFeatures):
            return data
        return ColumnFeatures.from_dict(data)

    def set_column_features(self, features: ColumnFeatures) -> None:
        self.metadata[COLUMN_FEATURES_KEY] = features.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "column_name": self.column_name,
            "data_type": self.data_type,
            "is_nullable": self.is_nullable,
            "is_primary_key": self.is_primary_key,
            "is_unique": self.is_unique,
            "row_count": self.row_count,
            "distinct_count": self.distinct_count,
            "null_count": self.null_count,
            "is_joinable": self.is_joinable,
            "metadata": self.metadata,
        }
