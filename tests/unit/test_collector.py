"""
Unit Tests for Relationship Candidate Collection
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.relationships import (
    RelationshipCandidateCollector,
    generate_candidate_pairs,
    identify_fk_sources,
    identify_fk_targets,
    should_exclude_from_fk_sources,
)
from schema_inference.schemas import (
    ClassificationPath,
    ColumnFeatures,
    FKSourceColumn,
    FKTargetColumn,
    InMemorySchemaRepository,
    Purpose,
    Role,
    SchemaColumn,
    SchemaTable,
)


def column_with_features(column, path, purpose="", role=""):
    column.set_column_features(ColumnFeatures(
        column_id=column.id, classification_path=path, purpose=purpose, role=role,
    ))
    return column


@pytest.fixture
def repository():
    users = SchemaTable(id="t-users", datasource_id="ds", table_name="users", row_count=100)
    orders = SchemaTable(id="t-orders", datasource_id="ds", table_name="orders", row_count=500)
    columns = [
        SchemaColumn(id="u-id", table_id="t-users", column_name="id", data_type="uuid", is_primary_key=True),
        SchemaColumn(id="u-email", table_id="t-users", column_name="email", data_type="text", is_unique=True),
        SchemaColumn(id="o-id", table_id="t-orders", column_name="id", data_type="uuid", is_primary_key=True),
        column_with_features(
            SchemaColumn(id="o-user", table_id="t-orders", column_name="user_id", data_type="uuid"),
            ClassificationPath.UUID, Purpose.IDENTIFIER.value, Role.FOREIGN_KEY.value,
        ),
        column_with_features(
            SchemaColumn(id="o-created", table_id="t-orders", column_name="created_at", data_type="timestamp"),
            ClassificationPath.TIMESTAMP, Purpose.TIMESTAMP.value, Role.ATTRIBUTE.value,
        ),
        column_with_features(
            SchemaColumn(id="o-note", table_id="t-orders", column_name="note", data_type="text"),
            ClassificationPath.TEXT, Purpose.TEXT.value, Role.ATTRIBUTE.value,
        ),
        SchemaColumn(
            id="o-ref", table_id="t-orders", column_name="ref", data_type="varchar(64)", is_joinable=True,
        ),
    ]
    return InMemorySchemaRepository([users, orders], columns)


class TestExclusion:
    """Tests for FK source exclusion rules"""

    def test_primary_key_excluded(self):
        assert should_exclude_from_fk_sources(
            SchemaColumn(id="c", table_id="t", column_name="id", data_type="int", is_primary_key=True)
        )

    @pytest.mark.parametrize("data_type", [
        "timestamp", "timestamp with time zone", "datetime", "date", "time", "boolean", "bool", "json", "jsonb",
    ])
    def test_excluded_types(self, data_type):
        assert should_exclude_from_fk_sources(
            SchemaColumn(id="c", table_id="t", column_name="x", data_type=data_type)
        )

    def test_excluded_by_stored_path(self):
        """A bigint classified as a timestamp is excluded"""
        column = column_with_features(
            SchemaColumn(id="c", table_id="t", column_name="x", data_type="bigint"),
            ClassificationPath.TIMESTAMP,
        )
        assert should_exclude_from_fk_sources(column)

    def test_plain_column_not_excluded(self):
        assert not should_exclude_from_fk_sources(
            SchemaColumn(id="c", table_id="t", column_name="x", data_type="bigint")
        )


class TestSourcesAndTargets:
    """Tests for FK source and target identification"""

    def test_sources(self, repository):
        """Feature-qualified identifiers plus the joinable fallback"""
        sources = identify_fk_sources(repository, "ds")
        assert sorted(s.column.id for s in sources) == ["o-ref", "o-user"]

    def test_joinable_fallback_needs_resolved_table(self, repository):
        repository.add_column(SchemaColumn(
            id="orphan", table_id="t-gone", column_name="x", data_type="text", is_joinable=True,
        ))
        assert "orphan" not in {s.column.id for s in identify_fk_sources(repository, "ds")}

    def test_targets(self, repository):
        """Only primary keys and unique columns are targets"""
        targets = identify_fk_targets(repository, "ds")
        assert sorted(t.column.id for t in targets) == ["o-id", "u-email", "u-id"]

    def test_fully_distinct_column_is_not_a_target(self):
        """10,000 distinct values in 10,000 rows without a PK or unique flag"""
        events = SchemaTable(id="t-events", datasource_id="ds", table_name="events", row_count=10000)
        columns = [
            SchemaColumn(id="e-id", table_id="t-events", column_name="id", data_type="bigint",
                         is_primary_key=True, distinct_count=10000),
            SchemaColumn(id="e-trace", table_id="t-events", column_name="trace_id", data_type="varchar(64)",
                         distinct_count=10000),
        ]
        targets = identify_fk_targets(InMemorySchemaRepository([events], columns), "ds")
        assert [t.column.id for t in targets] == ["e-id"]

    def test_other_datasource_is_empty(self, repository):
        assert identify_fk_sources(repository, "other") == []
        assert identify_fk_targets(repository, "other") == []


class TestCandidatePairs:
    """Tests for candidate generation"""

    def test_compatible_pairs_only(self, repository):
        candidates = generate_candidate_pairs(
            identify_fk_sources(repository, "ds"), identify_fk_targets(repository, "ds")
        )
        keys = {c.key for c in candidates}
        assert ("orders", "user_id", "users", "id") in keys
        assert ("orders", "user_id", "orders", "id") in keys
        assert ("orders", "ref", "users", "email") in keys
        assert ("orders", "user_id", "users", "email") not in keys

    def test_source_role_carried(self, repository):
        candidates = generate_candidate_pairs(
            identify_fk_sources(repository, "ds"), identify_fk_targets(repository, "ds")
        )
        candidate = next(c for c in candidates if c.key == ("orders", "user_id", "users", "id"))
        assert candidate.source_role == Role.FOREIGN_KEY.value
        assert candidate.target_is_pk
        assert candidate.join_count == 0

    def test_self_reference_skipped(self):
        column = SchemaColumn(id="c", table_id="t", column_name="id", data_type="uuid", is_primary_key=True)
        sources = [FKSourceColumn(column=column, table_name="t")]
        targets = [FKTargetColumn(column=column, table_name="t")]
        assert generate_candidate_pairs(sources, targets) == []

    def test_duplicates_removed(self):
        source = SchemaColumn(id="s", table_id="a", column_name="b_id", data_type="int")
        target = SchemaColumn(id="t", table_id="b", column_name="id", data_type="int", is_primary_key=True)
        sources = [FKSourceColumn(column=source, table_name="a")] * 2
        targets = [FKTargetColumn(column=target, table_name="b")]
        assert len(generate_candidate_pairs(sources, targets)) == 1


class TestCollector:
    """Tests for RelationshipCandidateCollector"""

    def test_progress_steps(self, repository):
        events = []
        collector = RelationshipCandidateCollector(repository)
        candidates = collector.collect_candidates("ds", lambda c, t, m: events.append((c, t, m)))

        assert [e[0] for e in events] == [0, 1, 2, 3, 4]
        assert all(e[1] == 4 for e in events)
        assert events[1][2] == "Found 2 potential FK sources"
        assert events[2][2] == "Found 3 FK targets (PKs/unique)"
        assert events[4][2] == f"Collected {len(candidates)} relationship candidates"

    def test_single_primary_key_yields_nothing(self):
        table = SchemaTable(id="t", datasource_id="ds", table_name="users")
        repository = InMemorySchemaRepository(
            [table],
            [SchemaColumn(id="c", table_id="t", column_name="id", data_type="uuid", is_primary_key=True)],
        )
        assert RelationshipCandidateCollector(repository).collect_candidates("ds") == []
