"""
Integration Tests for the Schema Inference Pipeline
Tests extraction followed by candidate collection with a scripted model client
"""
import json

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference import (
    ClassificationPath,
    ColumnFeatureExtractionService,
    InMemorySchemaRepository,
    RelationshipCandidateCollector,
    SchemaColumn,
    SchemaTable,
    WorkerPool,
)

USER_IDS = [
    "7c9e6679-7425-40de-944b-e07fc1f90ae7",
    "16fd2706-8baf-433b-82eb-8c7fada847da",
]

RESPONSES = {
    "# FK Target Resolution": {"target_table": "users", "target_column": "id", "confidence": 0.9},
    "**Column:** user_id": {
        "identifier_type": "foreign_key", "entity_referenced": "user",
        "needs_fk_resolution": True, "confidence": 0.8,
    },
    "**Column:** id": {"identifier_type": "primary_key", "confidence": 0.95},
    "**Column:** email": {"text_type": "email", "confidence": 0.9, "description": "Contact email"},
    "**Column:** created_at": {"purpose": "audit_created", "is_audit_field": True, "confidence": 0.9},
    "**Column:** is_active": {
        "true_meaning": "Account active", "false_meaning": "Account disabled",
        "boolean_type": "status_indicator",
    },
    "**Column:** settings": {"json_type": "settings", "confidence": 0.7},
}


def users_schema():
    tables = [SchemaTable(id="t-users", datasource_id="ds", table_name="users", row_count=1000)]
    columns = [
        SchemaColumn(id="u-id", table_id="t-users", column_name="id", data_type="uuid",
                     is_primary_key=True, is_unique=True, is_nullable=False,
                     distinct_count=1000, sample_values=USER_IDS),
        SchemaColumn(id="u-email", table_id="t-users", column_name="email", data_type="varchar(255)",
                     distinct_count=900, sample_values=["ada@example.com", "alan@example.org"]),
        SchemaColumn(id="u-created", table_id="t-users", column_name="created_at", data_type="timestamp",
                     distinct_count=1000, sample_values=["2024-01-01 09:00:00"]),
        SchemaColumn(id="u-active", table_id="t-users", column_name="is_active", data_type="boolean",
                     distinct_count=2, sample_values=["true", "false"]),
        SchemaColumn(id="u-settings", table_id="t-users", column_name="settings", data_type="jsonb",
                     distinct_count=400, sample_values=['{"theme": "dark"}']),
    ]
    return tables, columns


def scripted(make_llm_client):
    return make_llm_client({marker: json.dumps(answer) for marker, answer in RESPONSES.items()})


@pytest.fixture
def pool():
    pool = WorkerPool(max_concurrent=4)
    yield pool
    pool.shutdown()


class TestSingleTable:
    """A single users table"""

    def test_paths_and_no_candidates(self, make_llm_client, fast_config, pool):
        tables, columns = users_schema()
        repository = InMemorySchemaRepository(tables, columns)
        service = ColumnFeatureExtractionService(
            repository, scripted(make_llm_client), config=fast_config, pool=pool
        )

        result = service.extract_features("ds")

        paths = {p.column_name: p.classification_path for p in result.profiles}
        assert paths == {
            "id": ClassificationPath.UUID,
            "email": ClassificationPath.TEXT,
            "created_at": ClassificationPath.TIMESTAMP,
            "is_active": ClassificationPath.BOOLEAN,
            "settings": ClassificationPath.JSON,
        }
        assert result.failed_column_ids == []
        assert result.features["u-active"].boolean_features.true_meaning == "Account active"

        # The only identifier is the table's own primary key
        candidates = RelationshipCandidateCollector(repository).collect_candidates("ds")
        assert candidates == []


class TestTwoTables:
    """users plus orders referencing users"""

    def test_fk_resolved_and_candidate_collected(self, make_llm_client, fast_config, pool):
        tables, columns = users_schema()
        tables.append(SchemaTable(id="t-orders", datasource_id="ds", table_name="orders", row_count=5000))
        columns.extend([
            SchemaColumn(id="o-id", table_id="t-orders", column_name="id", data_type="uuid",
                         is_primary_key=True, is_unique=True, distinct_count=5000, sample_values=USER_IDS),
            SchemaColumn(id="o-user", table_id="t-orders", column_name="user_id", data_type="uuid",
                         distinct_count=900, sample_values=USER_IDS),
        ])
        repository = InMemorySchemaRepository(tables, columns)
        client = scripted(make_llm_client)
        service = ColumnFeatureExtractionService(repository, client, config=fast_config, pool=pool)
        steps = []

        result = service.extract_features("ds")
        candidates = RelationshipCandidateCollector(repository).collect_candidates(
            "ds", progress_callback=lambda step, total, message: steps.append((step, total))
        )

        identifier = result.features["o-user"].identifier_features
        assert (identifier.fk_target_table, identifier.fk_target_column) == ("users", "id")

        pairs = {(c.source_table, c.source_column, c.target_table, c.target_column) for c in candidates}
        assert ("orders", "user_id", "users", "id") in pairs
        assert all(c.source_column != "id" for c in candidates)
        assert steps[-1] == (4, 4)

        fk_prompt = next(c["prompt"] for c in client.calls if "# FK Target Resolution" in c["prompt"])
        assert "`users.id`" in fk_prompt
        assert "`orders.id`" not in fk_prompt
