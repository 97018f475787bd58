"""
Schema Repository
Contract for reading schema metadata and storing column features
"""
from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..utils import get_logger, SchemaError
from .features import ColumnFeatures
from .models import SchemaColumn, SchemaTable

logger = get_logger(__name__)


class SchemaRepository(ABC):
    """Schema source consumed by the extraction service and the collector"""

    @abstractmethod
    def list_tables(self, datasource_id: str) -> List[SchemaTable]:
        pass

    @abstractmethod
    def list_columns(self, datasource_id: str) -> List[SchemaColumn]:
        pass

    @abstractmethod
    def get_columns_with_features(self, datasource_id: str) -> Dict[str, List[SchemaColumn]]:
        """Columns grouped by table name, with any stored features in metadata"""
        pass

    @abstractmethod
    def save_column_features(self, column_id: str, features: ColumnFeatures) -> None:
        pass


class InMemorySchemaRepository(SchemaRepository):
    """Dictionary-backed repository for tests and embedding"""

    def __init__(
        self,
        tables: Optional[List[SchemaTable]] = None,
        columns: Optional[List[SchemaColumn]] = None,
    ):
        self._lock = threading.Lock()
        self._tables: Dict[str, SchemaTable] = {}
        self._columns: Dict[str, SchemaColumn] = {}
        for table in tables or []:
            self.add_table(table)
        for column in columns or []:
            self.add_column(column)

    def add_table(self, table: SchemaTable) -> None:
        with self._lock:
            self._tables[table.id] = table

    def add_column(self, column: SchemaColumn) -> None:
        with self._lock:
            self._columns[column.id] = column

    def list_tables(self, datasource_id: str) -> List[SchemaTable]:
        with self._lock:
            return [t for t in self._tables.values() if t.datasource_id == datasource_id]

    def list_columns(self, datasource_id: str) -> List[SchemaColumn]:
        with self._lock:
            table_ids = {t.id for t in self._tables.values() if t.datasource_id == datasource_id}
            return [copy.deepcopy(c) for c in self._columns.values() if c.table_id in table_ids]

    def get_columns_with_features(self, datasource_id: str) -> Dict[str, List[SchemaColumn]]:
        with self._lock:
            names = {
                t.id: t.table_name
                for t in self._tables.values()
                if t.datasource_id == datasource_id
            }
            grouped: Dict[str, List[SchemaColumn]] = {}
            for column in self._columns.values():
                table_name = names.get(column.table_id)
                if table_name is None:
                    continue
                grouped.setdefault(table_name, []).append(copy.deepcopy(column))
            return grouped

    def save_column_features(self, column_id: str, features: ColumnFeatures) -> None:
        with self._lock:
            column = self._columns.get(column_id)
            if column is None:
                raise SchemaError(f"Unknown column: {column_id}")
            column.set_column_features(features)

        logger.debug(
            "Saved column features",
            extra={"extra_fields": {
                "column_id": column_id,
                "classification_path": features.classification_path.value,
            }}
        )
