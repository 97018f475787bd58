"""
Unit Tests for Error, Logging and Metrics Utilities
"""
import json
import logging
import threading

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_inference.utils import (
    CircuitBreakerOpenError,
    ConfigurationError,
    ErrorCategory,
    InferenceMetrics,
    LLMError,
    MaxRetriesExceededError,
    OperationCancelledError,
    SchemaError,
    get_correlation_id,
    get_log_context,
    get_logger,
    get_metrics_collector,
    is_retryable_error,
    log_context,
    log_operation,
    set_correlation_id,
    clear_context,
)
from schema_inference.utils.logging import StructuredFormatter


class TestErrors:
    """Tests for the error hierarchy"""

    def test_to_dict(self):
        error = SchemaError("no such table", table_name="orders")
        data = error.to_dict()
        assert data["error_type"] == "SchemaError"
        assert data["category"] == "schema"
        assert any("orders" in s for s in data["suggestions"])

    def test_str_includes_category(self):
        assert str(ConfigurationError("missing client")) == "[configuration] missing client"

    def test_llm_error_fields(self):
        error = LLMError("throttled", model_id="m", retryable=True, status_code=429)
        assert error.category == ErrorCategory.LLM
        assert error.retryable
        assert error.status_code == 429

    def test_wrapped_errors_are_terminal(self):
        assert not is_retryable_error(CircuitBreakerOpenError("open"))
        assert not is_retryable_error(OperationCancelledError())
        assert not is_retryable_error(MaxRetriesExceededError("gave up", max_retries=3))

    def test_pattern_fallback(self):
        assert is_retryable_error(RuntimeError("HTTP 503 Service Unavailable"))
        assert is_retryable_error(ConnectionError("connection reset by peer"))
        assert not is_retryable_error(ValueError("invalid column"))
        assert not is_retryable_error(None)

    def test_explicit_flag_wins_over_message(self):
        assert not is_retryable_error(LLMError("throttling but not really", retryable=False))


class TestLoggingContext:
    """Tests for thread-local log context"""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_nested_context_restores(self):
        with log_context(datasource_id="ds-1"):
            with log_context(phase="phase3"):
                assert get_log_context() == {"datasource_id": "ds-1", "phase": "phase3"}
            assert get_log_context() == {"datasource_id": "ds-1"}
        assert get_log_context() == {}

    def test_context_is_per_thread(self):
        seen = {}

        def worker():
            seen.update(get_log_context())

        with log_context(datasource_id="ds-1"):
            t = threading.Thread(target=worker)
            t.start()
            t.join()

        assert seen == {}

    def test_correlation_id(self):
        cid = set_correlation_id()
        assert get_correlation_id() == cid
        assert len(cid) == 36

    def test_structured_formatter(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        record.extra_fields = {"column_id": "c1"}
        with log_context(datasource_id="ds-9", phase="phase2"):
            entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello"
        assert entry["column_id"] == "c1"
        assert entry["datasource_id"] == "ds-9"
        assert entry["phase"] == "phase2"

    def test_log_operation_records_status(self):
        logger = get_logger("test")
        with log_operation(logger, "enum_analysis", queued=3) as ctx:
            ctx["analyzed"] = 3
        assert ctx["status"] == "success"
        assert "duration_ms" in ctx

    def test_log_operation_reraises(self):
        logger = get_logger("test")
        with pytest.raises(RuntimeError):
            with log_operation(logger, "fk_resolution") as ctx:
                raise RuntimeError("boom")
        assert ctx["status"] == "error"
        assert ctx["error_type"] == "RuntimeError"


class TestMetrics:
    """Tests for the metrics collector"""

    def test_singleton(self):
        assert get_metrics_collector() is get_metrics_collector()

    def test_labelled_counters(self):
        InferenceMetrics.record_classification("Text", True)
        InferenceMetrics.record_classification("Text", True)
        InferenceMetrics.record_classification("Text", False)

        collector = get_metrics_collector()
        assert collector.get_counter(
            "column_classification_total", {"path": "Text", "success": "true"}
        ) == 2.0
        assert collector.get_counter(
            "column_classification_total", {"path": "Text", "success": "false"}
        ) == 1.0

    def test_circuit_state_gauge(self):
        InferenceMetrics.record_circuit_state("open")
        assert get_metrics_collector().get_gauge("circuit_breaker_state") == 2.0

    def test_llm_call_tokens(self):
        InferenceMetrics.record_llm_call(0.2, "m", 100, 40)
        collector = get_metrics_collector()
        assert collector.get_counter("llm_input_tokens_total", {"model_id": "m"}) == 100.0
        assert collector.get_counter("llm_output_tokens_total", {"model_id": "m"}) == 40.0

    def test_prometheus_export(self):
        InferenceMetrics.record_phase("phase2", 1.5, processed=10, failed=1)
        text = get_metrics_collector().export_prometheus()
        assert 'extraction_phase_processed_total{phase="phase2"} 10.0' in text
        assert 'extraction_phase_duration_seconds_bucket{le="+Inf",phase="phase2"} 1' in text

    def test_llm_call_duration_histogram(self):
        for duration in (0.03, 0.2, 0.2, 4.0):
            InferenceMetrics.record_llm_call(duration, "m", 1, 1)

        hist = get_metrics_collector().get_histogram("llm_call_duration_seconds", {"model_id": "m"})
        assert hist.count == 4
        assert hist.quantile(0.5) == 0.25
        assert hist.to_dict()["buckets"]["+Inf"] == 4
