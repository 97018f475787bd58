"""
Unit Tests for Schema Models and the In-Memory Repository
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.schemas import (
    COLUMN_FEATURES_KEY,
    ClassificationPath,
    ColumnDataProfile,
    ColumnFeatures,
    DetectedPattern,
    EnumFeatures,
    EnumValue,
    IdentifierFeatures,
    InMemorySchemaRepository,
    Role,
    SchemaColumn,
    SchemaTable,
    TimestampFeatures,
)
from schema_inference.utils import SchemaError


def make_repository():
    tables = [
        SchemaTable(id="t1", datasource_id="ds", table_name="users"),
        SchemaTable(id="t2", datasource_id="ds", table_name="orders"),
        SchemaTable(id="t3", datasource_id="other", table_name="logs"),
    ]
    columns = [
        SchemaColumn(id="c1", table_id="t1", column_name="id", data_type="uuid", is_primary_key=True),
        SchemaColumn(id="c2", table_id="t2", column_name="user_id", data_type="uuid"),
        SchemaColumn(id="c3", table_id="t3", column_name="line", data_type="text"),
    ]
    return InMemorySchemaRepository(tables, columns)


class TestColumnFeatures:
    """Tests for ColumnFeatures serialization"""

    def test_round_trip_with_payloads(self):
        features = ColumnFeatures(
            column_id="c2",
            classification_path=ClassificationPath.UUID,
            role=Role.FOREIGN_KEY.value,
            confidence=0.8,
            identifier_features=IdentifierFeatures(
                identifier_type="foreign_key",
                fk_target_table="users",
                fk_target_column="id",
                fk_confidence=0.9,
            ),
            enum_features=EnumFeatures(values=[EnumValue(value="a", label="A", count=3)]),
        )

        restored = ColumnFeatures.from_dict(features.to_dict())

        assert restored.classification_path == ClassificationPath.UUID
        assert restored.role == "foreign_key"
        assert restored.identifier_features.fk_target_table == "users"
        assert restored.enum_features.values[0].count == 3
        assert restored.analyzed_at == features.analyzed_at
        assert restored.timestamp_features is None

    def test_raise_confidence_never_lowers(self):
        features = ColumnFeatures(column_id="c", classification_path=ClassificationPath.TEXT, confidence=0.7)
        features.raise_confidence(0.5)
        assert features.confidence == 0.7
        features.raise_confidence(0.9)
        assert features.confidence == 0.9


class TestColumnDataProfile:
    """Tests for the immutable profile"""

    def test_sequences_become_tuples(self):
        profile = ColumnDataProfile(
            column_id="c", column_name="x", table_name="t", data_type="text",
            sample_values=["a", "b"],
            detected_patterns=[DetectedPattern(name="uuid", match_rate=1.0)],
        )
        assert profile.sample_values == ("a", "b")
        assert isinstance(profile.detected_patterns, tuple)

    def test_frozen(self):
        profile = ColumnDataProfile(column_id="c", column_name="x", table_name="t", data_type="text")
        with pytest.raises(Exception):
            profile.column_name = "y"

    def test_with_path_copies(self):
        profile = ColumnDataProfile(column_id="c", column_name="x", table_name="t", data_type="text")
        routed = profile.with_path(ClassificationPath.TEXT)
        assert routed.classification_path == ClassificationPath.TEXT
        assert profile.classification_path == ClassificationPath.UNKNOWN

    def test_matches_pattern_threshold(self):
        profile = ColumnDataProfile(
            column_id="c", column_name="x", table_name="t", data_type="text",
            detected_patterns=[DetectedPattern(name="uuid", match_rate=0.9)],
        )
        assert not profile.matches_pattern("uuid")
        assert profile.matches_pattern("uuid", threshold=0.9)
        assert profile.get_pattern("email") is None

    def test_type_helpers(self):
        profile = ColumnDataProfile(column_id="c", column_name="x", table_name="t", data_type="BIGINT")
        assert profile.is_integer_type()
        assert profile.is_numeric_type()
        assert not profile.is_text_type()


class TestInMemorySchemaRepository:
    """Tests for InMemorySchemaRepository"""

    def test_scoped_to_datasource(self):
        repository = make_repository()
        assert {t.table_name for t in repository.list_tables("ds")} == {"users", "orders"}
        assert {c.id for c in repository.list_columns("ds")} == {"c1", "c2"}

    def test_grouped_by_table_name(self):
        grouped = make_repository().get_columns_with_features("ds")
        assert set(grouped) == {"users", "orders"}
        assert grouped["orders"][0].column_name == "user_id"

    def test_save_and_read_back(self):
        repository = make_repository()
        features = ColumnFeatures(
            column_id="c2",
            classification_path=ClassificationPath.TIMESTAMP,
            timestamp_features=TimestampFeatures(timestamp_purpose="event_time"),
        )
        repository.save_column_features("c2", features)

        stored = repository.get_columns_with_features("ds")["orders"][0]
        assert COLUMN_FEATURES_KEY in stored.metadata
        restored = stored.get_column_features()
        assert restored.timestamp_features.timestamp_purpose == "event_time"

    def test_save_unknown_column(self):
        with pytest.raises(SchemaError):
            make_repository().save_column_features(
                "missing", ColumnFeatures(column_id="missing", classification_path=ClassificationPath.TEXT)
            )

    def test_returned_columns_are_copies(self):
        repository = make_repository()
        column = repository.list_columns("ds")[0]
        column.metadata["touched"] = True
        assert all("touched" not in c.metadata for c in repository.list_columns("ds"))

    def test_unclassified_column_has_no_features(self):
        column = make_repository().list_columns("ds")[0]
        assert column.get_column_features() is None
