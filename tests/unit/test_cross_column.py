"""
Unit Tests for Cross-Column Analysis
"""
import json
import time

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.concurrency import CircuitBreaker, ResilientLLMCaller, WorkerPool
from schema_inference.config import RetryConfig
from schema_inference.features import (
    CrossColumnAnalyzer,
    CrossColumnResult,
    MonetaryPairing,
    SoftDeleteValidation,
    build_table_context,
    merge_cross_column,
)
from schema_inference.schemas import (
    ClassificationPath,
    ColumnDataProfile,
    ColumnFeatures,
    DetectedPattern,
    MonetaryFeatures,
    NumericFeatures,
    Role,
    TimestampFeatures,
)
from schema_inference.utils import LLMError


def make_profile(column_id, column, data_type, table="orders", **kwargs):
    return ColumnDataProfile(
        column_id=column_id, column_name=column, table_name=table, data_type=data_type, **kwargs
    )


def monetary_features(column_id):
    return ColumnFeatures(
        column_id=column_id, classification_path=ClassificationPath.NUMERIC,
        role=Role.MEASURE.value, semantic_type="monetary", confidence=0.6,
        numeric_features=NumericFeatures(numeric_type="monetary", may_be_monetary=True),
        monetary_features=MonetaryFeatures(is_monetary=False),
        needs_cross_column_check=True,
    )


def soft_delete_features(column_id):
    return ColumnFeatures(
        column_id=column_id, classification_path=ClassificationPath.TIMESTAMP,
        semantic_type="soft_delete", confidence=0.7,
        timestamp_features=TimestampFeatures(timestamp_purpose="soft_delete", is_soft_delete=True),
        needs_cross_column_check=True,
    )


@pytest.fixture
def table():
    profiles = [
        make_profile("o-total", "total", "numeric(12,2)", sample_values=("10.00", "25.50")),
        make_profile("o-tax", "tax", "numeric(12,2)"),
        make_profile("o-currency", "currency", "char(3)", sample_values=("USD", "EUR"),
                     detected_patterns=(DetectedPattern(name="iso4217", match_rate=1.0),)),
        make_profile("o-deleted", "deleted_at", "timestamp", null_rate=0.97),
    ]
    features = {
        "o-total": monetary_features("o-total"),
        "o-tax": monetary_features("o-tax"),
        "o-deleted": soft_delete_features("o-deleted"),
    }
    return profiles, features


class TestTableContext:
    """Tests for building per-table context"""

    def test_columns_sorted_into_roles(self, table):
        profiles, features = table
        context = build_table_context("orders", profiles, features)

        assert [p.column_id for p in context.monetary] == ["o-total", "o-tax"]
        assert [p.column_id for p in context.soft_delete] == ["o-deleted"]
        assert [p.column_id for p in context.currency] == ["o-currency"]
        assert len(context.columns_to_analyze) == 3

    def test_checked_columns_excluded(self, table):
        profiles, features = table
        features["o-tax"].needs_cross_column_check = False
        context = build_table_context("orders", profiles, features)
        assert [p.column_id for p in context.monetary] == ["o-total"]


class TestCrossColumnAnalyzer:
    """Tests for prompt building, parsing and chunked analysis"""

    def test_prompt_lists_currency_columns(self, table):
        profiles, features = table
        context = build_table_context("orders", profiles, features)
        prompt = CrossColumnAnalyzer().build_prompt(context, context.columns_to_analyze)

        assert "**Table:** orders" in prompt
        assert "### total" in prompt
        assert "**currency**" in prompt
        assert "### deleted_at" in prompt
        assert "97.0%" in prompt

    def test_parse_skips_unknown_columns(self, table):
        profiles, features = table
        context = build_table_context("orders", profiles, features)
        content = json.dumps({
            "monetary_pairings": [
                {"amount_column": "total", "currency_column": "currency",
                 "currency_unit": "dollars", "confidence": 0.9},
                {"amount_column": "ghost", "currency_column": "currency"},
            ],
            "soft_delete_validations": [
                {"column_name": "deleted_at", "is_soft_delete": True, "confidence": 0.95},
            ],
        })
        result = CrossColumnAnalyzer().parse_response(context, context.columns_to_analyze, content, "m")

        assert [p.amount_column_id for p in result.monetary_pairings] == ["o-total"]
        assert result.soft_delete_validations[0].column_id == "o-deleted"

    def test_chunks_share_currency_columns(self, table, make_llm_client):
        """Every chunk prompt gets the currency columns; results come back per table"""
        profiles, features = table
        context = build_table_context("orders", profiles, features)
        client = make_llm_client({
            "### total": json.dumps({"monetary_pairings": [
                {"amount_column": "total", "currency_column": "currency", "currency_unit": "dollars"},
            ]}),
            "### tax": json.dumps({"monetary_pairings": [
                {"amount_column": "tax", "currency_column": "currency", "currency_unit": "cents"},
            ]}),
        }, default=json.dumps({"soft_delete_validations": [
            {"column_name": "deleted_at", "is_soft_delete": True},
        ]}))
        caller = ResilientLLMCaller(client, CircuitBreaker(), RetryConfig(max_retries=0))

        with WorkerPool(max_concurrent=3) as pool:
            outcome = CrossColumnAnalyzer().analyze_tables([context], pool, caller, chunk_size=1)

        assert len(client.calls) == 3
        assert all("**currency**" in call["prompt"] for call in client.calls)
        result = outcome.results["orders"]
        assert [p.amount_column_name for p in result.monetary_pairings] == ["total", "tax"]
        assert len(result.soft_delete_validations) == 1
        assert outcome.failed_chunks == []

    def test_failed_chunk_is_skipped(self, table, make_llm_client):
        profiles, features = table
        context = build_table_context("orders", profiles, features)
        client = make_llm_client({
            "### tax": LLMError("malformed request", retryable=False),
        }, default=json.dumps({}))
        caller = ResilientLLMCaller(client, CircuitBreaker(), RetryConfig(max_retries=0))

        with WorkerPool(max_concurrent=2) as pool:
            outcome = CrossColumnAnalyzer().analyze_tables([context], pool, caller, chunk_size=1)

        assert outcome.failed_chunks == ["orders-chunk-1"]
        assert "orders" in outcome.results

    def test_chunk_order_survives_completion_order(self, table, make_llm_client):
        """The first chunk finishing last is still merged first"""
        profiles, features = table
        context = build_table_context("orders", profiles, features)
        client = make_llm_client({
            "### total": json.dumps({"monetary_pairings": [
                {"amount_column": "total", "currency_column": "currency"},
            ]}),
            "### tax": json.dumps({"monetary_pairings": [
                {"amount_column": "tax", "currency_column": "currency"},
            ]}),
        })
        scripted = client.generate_response

        def slow_first_chunk(prompt, system_message, temperature, thinking=False):
            if "### total" in prompt:
                time.sleep(0.2)
            return scripted(prompt, system_message, temperature, thinking)

        client.generate_response = slow_first_chunk
        caller = ResilientLLMCaller(client, CircuitBreaker(), RetryConfig(max_retries=0))

        with WorkerPool(max_concurrent=3) as pool:
            outcome = CrossColumnAnalyzer().analyze_tables([context], pool, caller, chunk_size=1)

        result = outcome.results["orders"]
        assert [p.amount_column_name for p in result.monetary_pairings] == ["total", "tax"]


class TestMergeCrossColumn:
    """Tests for merging cross-column results"""

    def test_monetary_pairing(self, table):
        _, features = table
        merge_cross_column(features, CrossColumnResult(
            table_name="orders",
            monetary_pairings=[MonetaryPairing(
                amount_column_id="o-total", amount_column_name="total",
                currency_column_name="currency", currency_unit="cents",
                amount_description="Order total", confidence=0.9,
            )],
        ))

        merged = features["o-total"]
        assert merged.monetary_features.is_monetary
        assert merged.monetary_features.paired_currency_column == "currency"
        assert merged.monetary_features.currency_unit == "cents"
        assert merged.semantic_type == "monetary"
        assert merged.description == "Order total"
        assert merged.confidence == pytest.approx(0.9)
        assert not merged.needs_cross_column_check
        assert features["o-tax"].needs_cross_column_check

    def test_soft_delete_confirmed(self, table):
        _, features = table
        merge_cross_column(features, CrossColumnResult(
            table_name="orders",
            soft_delete_validations=[SoftDeleteValidation(
                column_id="o-deleted", column_name="deleted_at", is_soft_delete=True,
                description="Soft delete marker", confidence=0.5,
            )],
        ))

        merged = features["o-deleted"]
        assert merged.timestamp_features.is_soft_delete
        assert merged.description == "Soft delete marker"
        assert merged.confidence == pytest.approx(0.7)
        assert not merged.needs_cross_column_check

    def test_soft_delete_rejected(self, table):
        """A rejected soft delete falls back to an event timestamp"""
        _, features = table
        merge_cross_column(features, CrossColumnResult(
            table_name="orders",
            soft_delete_validations=[SoftDeleteValidation(
                column_id="o-deleted", column_name="deleted_at", is_soft_delete=False,
            )],
        ))

        merged = features["o-deleted"]
        assert not merged.timestamp_features.is_soft_delete
        assert merged.semantic_type == "event_time"
        assert merged.timestamp_features.timestamp_purpose == "event_time"
