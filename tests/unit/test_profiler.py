"""
Unit Tests for Column Profiling
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.config import ExtractionConfig
from schema_inference.features import ColumnProfiler
from schema_inference.schemas import ClassificationPath, PatternName, SchemaColumn, SchemaTable


@pytest.fixture
def table():
    return SchemaTable(id="t1", datasource_id="ds", table_name="orders", row_count=1000)


class TestColumnProfiler:
    """Tests for ColumnProfiler"""

    def test_rates(self, table):
        """Null rate and cardinality are relative to the row count"""
        column = SchemaColumn(
            id="c1", table_id="t1", column_name="status", data_type="varchar(20)",
            distinct_count=5, null_count=100, sample_values=["open", "closed"],
        )
        profile = ColumnProfiler().build_profile(column, table)

        assert profile.row_count == 1000
        assert profile.null_rate == pytest.approx(0.1)
        assert profile.cardinality == pytest.approx(0.005)
        assert profile.classification_path == ClassificationPath.ENUM
        assert profile.table_name == "orders"

    def test_column_row_count_overrides_table(self, table):
        column = SchemaColumn(
            id="c1", table_id="t1", column_name="amount", data_type="numeric",
            row_count=200, distinct_count=100,
        )
        profile = ColumnProfiler().build_profile(column, table)
        assert profile.row_count == 200
        assert profile.cardinality == pytest.approx(0.5)

    def test_zero_rows(self):
        """Empty tables produce zero rates instead of dividing by zero"""
        empty = SchemaTable(id="t2", datasource_id="ds", table_name="empty", row_count=0)
        column = SchemaColumn(id="c1", table_id="t2", column_name="x", data_type="text", distinct_count=3)
        profile = ColumnProfiler().build_profile(column, empty)
        assert profile.null_rate == 0.0
        assert profile.cardinality == 0.0

    def test_rates_are_clamped(self, table):
        """Stale statistics never push rates above 1"""
        column = SchemaColumn(
            id="c1", table_id="t1", column_name="x", data_type="text",
            distinct_count=5000, null_count=2000,
        )
        profile = ColumnProfiler().build_profile(column, table)
        assert profile.null_rate == 1.0
        assert profile.cardinality == 1.0

    def test_samples_are_stringified_and_limited(self, table):
        column = SchemaColumn(
            id="c1", table_id="t1", column_name="n", data_type="int",
            distinct_count=900, sample_values=list(range(10)),
        )
        profiler = ColumnProfiler(ExtractionConfig(sample_limit=3))
        profile = profiler.build_profile(column, table)
        assert profile.sample_values == ("0", "1", "2")

    def test_patterns_detected(self, table):
        column = SchemaColumn(
            id="c1", table_id="t1", column_name="currency", data_type="char(3)",
            distinct_count=900, sample_values=["USD", "EUR", "GBP"],
        )
        profile = ColumnProfiler().build_profile(column, table)
        assert profile.matches_pattern(PatternName.ISO4217, 0.8)

    def test_build_profiles_skips_unknown_tables(self, table):
        columns = [
            SchemaColumn(id="c1", table_id="t1", column_name="id", data_type="uuid", is_primary_key=True),
            SchemaColumn(id="c2", table_id="missing", column_name="x", data_type="text"),
        ]
        profiles = ColumnProfiler().build_profiles([table], columns)
        assert [p.column_id for p in profiles] == ["c1"]
        assert profiles[0].is_primary_key
        assert profiles[0].classification_path == ClassificationPath.UUID

    def test_profile_is_immutable(self, table):
        column = SchemaColumn(id="c1", table_id="t1", column_name="x", data_type="text")
        profile = ColumnProfiler().build_profile(column, table)
        with pytest.raises(Exception):
            profile.row_count = 5
