"""
Column Feature Extraction Service

Runs the multi-phase pipeline for one datasource:
1. Profiling: deterministic profiles and classification paths
2. Classification: one model call per column
3. Enum analysis: per-value labels for queued enum columns
4. FK resolution: target table/column for queued identifier columns
5. Cross-column analysis: monetary pairing and soft delete validation

Model-calling phases share one worker pool and one circuit breaker. Workers
only produce results; merging into ColumnFeatures happens on the
coordinating thread after the pool drains.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml

from ..concurrency import CircuitBreaker, ResilientLLMCaller, WorkItem, WorkerPool, index_results
from ..config import SystemConfig, get_config
from ..llm_client import BaseLLMClient, get_llm_client
from ..schemas import (
    ClassificationPath,
    ColumnDataProfile,
    ColumnFeatures,
    PhaseStatus,
    SchemaRepository,
)
from ..utils import (
    ConfigurationError,
    InferenceMetrics,
    get_logger,
    log_context,
    log_operation,
)
from .classifiers import ClassifierRegistry
from .cross_column import CrossColumnAnalyzer, build_table_context, is_soft_delete_candidate, merge_cross_column
from .enum_analyzer import EnumAnalyzer, merge_enum_analysis
from .fk_resolution import FKResolver, candidate_targets, merge_fk_resolution
from .profiler import ColumnProfiler
from .progress import ExtractionProgressCallback, ProgressTracker

logger = get_logger(__name__)


@dataclass
class Phase2Result:
    """Classified features plus the follow-up queues"""
    features: Dict[str, ColumnFeatures] = field(default_factory=dict)
    failed_column_ids: List[str] = field(default_factory=list)
    enum_queue: List[str] = field(default_factory=list)
    fk_queue: List[str] = field(default_factory=list)
    monetary_tables: List[str] = field(default_factory=list)


@dataclass
class FeatureExtractionResult:
    """Everything one extraction run produced"""
    datasource_id: str
    profiles: List[ColumnDataProfile] = field(default_factory=list)
    features: Dict[str, ColumnFeatures] = field(default_factory=dict)
    failed_column_ids: List[str] = field(default_factory=list)
    failed_enum_column_ids: List[str] = field(default_factory=list)
    failed_fk_column_ids: List[str] = field(default_factory=list)
    failed_chunks: List[str] = field(default_factory=list)
    enum_queue: List[str] = field(default_factory=list)
    fk_queue: List[str] = field(default_factory=list)
    monetary_tables: List[str] = field(default_factory=list)
    cancelled: bool = False
    progress: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "datasource_id": self.datasource_id,
            "profiles": [p.to_dict() for p in self.profiles],
            "features": {cid: f.to_dict() for cid, f in self.features.items()},
            "failed_column_ids": list(self.failed_column_ids),
            "failed_enum_column_ids": list(self.failed_enum_column_ids),
            "failed_fk_column_ids": list(self.failed_fk_column_ids),
            "failed_chunks": list(self.failed_chunks),
            "enum_queue": list(self.enum_queue),
            "fk_queue": list(self.fk_queue),
            "monetary_tables": list(self.monetary_tables),
            "cancelled": self.cancelled,
            "progress": self.progress,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)


def _with_message(
    callback: Optional[ExtractionProgressCallback],
    message: str,
) -> Optional[Callable[[int, int], None]]:
    """Adapt a pool ``(completed, total)`` callback to ``(completed, total, message)``"""
    if callback is None:
        return None
    return lambda completed, total: callback(completed, total, message)


class ColumnFeatureExtractionService:
    """
    Extracts ColumnFeatures for every column of a datasource

    Usage:
        with ColumnFeatureExtractionService(repository, llm_client) as service:
            result = service.extract_features(datasource_id)
    """

    def __init__(
        self,
        repository: SchemaRepository,
        llm_client: Optional[BaseLLMClient] = None,
        config: Optional[SystemConfig] = None,
        pool: Optional[WorkerPool] = None,
        breaker: Optional[CircuitBreaker] = None,
        registry: Optional[ClassifierRegistry] = None,
    ):
        self.repository = repository
        self.config = config or get_config()
        self.extraction = self.config.extraction
        # A pool built here is shut down by close(); an injected pool belongs to the caller
        self._owns_pool = pool is None
        self.pool = pool or WorkerPool.from_config(self.config.worker_pool)
        self.breaker = breaker or CircuitBreaker.from_config(self.config.circuit_breaker)
        self.caller: Optional[ResilientLLMCaller] = None
        if llm_client is not None:
            self.caller = ResilientLLMCaller(llm_client, self.breaker, self.config.retry)

        self.profiler = ColumnProfiler(self.extraction)
        self.registry = registry or ClassifierRegistry()
        self.enum_analyzer = EnumAnalyzer()
        self.fk_resolver = FKResolver()
        self.cross_column_analyzer = CrossColumnAnalyzer()

    @classmethod
    def from_config(
        cls,
        repository: SchemaRepository,
        config: Optional[SystemConfig] = None,
    ) -> "ColumnFeatureExtractionService":
        """Build a service backed by the configured Bedrock client"""
        config = config or get_config()
        return cls(repository, llm_client=get_llm_client(config.llm), config=config)

    def close(self) -> None:
        if self._owns_pool:
            self.pool.shutdown()

    def __enter__(self) -> "ColumnFeatureExtractionService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _require_caller(self, phase: str) -> ResilientLLMCaller:
        if self.caller is None:
            raise ConfigurationError(
                message=f"{phase} requires LLM support",
                config_key="llm_client",
            )
        return self.caller

    # Phase 1

    def run_profiling(self, datasource_id: str) -> List[ColumnDataProfile]:
        tables = self.repository.list_tables(datasource_id)
        columns = self.repository.list_columns(datasource_id)
        return self.profiler.build_profiles(tables, columns)

    # Phase 2

    def run_phase2(
        self,
        profiles: Sequence[ColumnDataProfile],
        progress_callback: Optional[ExtractionProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Phase2Result:
        """
        Classify every profile along its classification path

        Failed columns are omitted from ``features`` and listed in
        ``failed_column_ids``. Raises ConfigurationError without a model
        client, before any work is scheduled.
        """
        caller = self._require_caller("phase 2")
        start = time.perf_counter()
        temperature = self.extraction.classification_temperature

        items = [
            WorkItem(
                id=profile.column_id,
                execute=lambda p=profile: self.registry.get(p.classification_path).classify(
                    p, caller, temperature, cancel_event
                ),
            )
            for profile in profiles
        ]

        with log_operation(logger, "column_classification", columns=len(items)) as op:
            by_id = index_results(self.pool.process(
                items, _with_message(progress_callback, "Classifying columns"), cancel_event
            ))

            result = Phase2Result()
            for profile in profiles:
                outcome = by_id.get(profile.column_id)
                path = profile.classification_path.value
                if outcome is not None and outcome.ok:
                    result.features[profile.column_id] = outcome.result
                    InferenceMetrics.record_classification(path, True)
                    continue

                result.failed_column_ids.append(profile.column_id)
                InferenceMetrics.record_classification(path, False)
                logger.error(
                    f"Failed to classify {profile.table_name}.{profile.column_name}: "
                    f"{outcome.error if outcome else 'no result'}",
                    extra={"extra_fields": {"column_id": profile.column_id, "path": path}}
                )

            self._build_queues(profiles, result)
            op["classified"] = len(result.features)
            op["failed"] = len(result.failed_column_ids)

        InferenceMetrics.record_phase(
            "phase2", time.perf_counter() - start, len(result.features), len(result.failed_column_ids)
        )
        if progress_callback is not None:
            progress_callback(
                len(items), len(items),
                f"Classified {len(result.features)} columns. "
                f"Found {len(result.enum_queue)} enums, {len(result.fk_queue)} FK candidates",
            )
        return result

    @staticmethod
    def _build_queues(profiles: Sequence[ColumnDataProfile], result: Phase2Result) -> None:
        for profile in profiles:
            features = result.features.get(profile.column_id)
            if features is None:
                continue
            if features.classification_path == ClassificationPath.ENUM and features.needs_enum_analysis:
                result.enum_queue.append(profile.column_id)
            if features.identifier_features is not None and features.identifier_features.needs_fk_resolution:
                result.fk_queue.append(profile.column_id)
            if (
                features.numeric_features is not None
                and features.numeric_features.may_be_monetary
                and profile.table_name not in result.monetary_tables
            ):
                result.monetary_tables.append(profile.table_name)

    # Phases 3 and 4

    def _queued(
        self,
        queue: Sequence[str],
        profiles: Sequence[ColumnDataProfile],
        features: Dict[str, ColumnFeatures],
        phase: str,
    ) -> List[ColumnDataProfile]:
        profile_by_id = {p.column_id: p for p in profiles}
        queued: List[ColumnDataProfile] = []
        for column_id in queue:
            if column_id not in profile_by_id or column_id not in features:
                logger.warning(
                    "Skipping queued column without profile or features",
                    extra={"extra_fields": {"column_id": column_id, "phase": phase}}
                )
                continue
            queued.append(profile_by_id[column_id])
        return queued

    def run_enum_analysis(
        self,
        queue: Sequence[str],
        profiles: Sequence[ColumnDataProfile],
        features: Dict[str, ColumnFeatures],
        progress_callback: Optional[ExtractionProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Analyze queued enum columns and merge the results; returns failed column IDs"""
        queued = self._queued(queue, profiles, features, "phase3")
        if not queued:
            return []

        caller = self._require_caller("enum analysis")
        start = time.perf_counter()
        temperature = self.extraction.classification_temperature
        items = [
            WorkItem(
                id=profile.column_id,
                execute=lambda p=profile: self.enum_analyzer.analyze(p, caller, temperature, cancel_event),
            )
            for profile in queued
        ]

        outcomes = self.pool.process(items, _with_message(progress_callback, "Analyzing enum values"), cancel_event)

        failed: List[str] = []
        analyzed = 0
        for outcome in outcomes:
            if not outcome.ok:
                logger.error(
                    f"Enum analysis failed: {outcome.error}",
                    extra={"extra_fields": {"column_id": outcome.id}}
                )
                failed.append(outcome.id)
                continue
            merge_enum_analysis(features[outcome.id], outcome.result)
            analyzed += 1

        InferenceMetrics.record_phase("phase3", time.perf_counter() - start, analyzed, len(failed))
        if progress_callback is not None:
            progress_callback(len(items), len(items), f"Analyzed {analyzed} enum columns")
        return sorted(failed)

    def run_fk_resolution(
        self,
        queue: Sequence[str],
        profiles: Sequence[ColumnDataProfile],
        features: Dict[str, ColumnFeatures],
        progress_callback: Optional[ExtractionProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Resolve FK targets for queued identifier columns; returns failed column IDs"""
        queued = self._queued(queue, profiles, features, "phase4")
        if not queued:
            return []

        caller = self._require_caller("FK resolution")
        start = time.perf_counter()
        temperature = self.extraction.fk_resolution_temperature
        items = [
            WorkItem(
                id=profile.column_id,
                execute=lambda p=profile: self.fk_resolver.resolve(
                    p, candidate_targets(p, profiles), caller, temperature, cancel_event
                ),
            )
            for profile in queued
        ]

        outcomes = self.pool.process(items, _with_message(progress_callback, "Resolving FK targets"), cancel_event)

        failed: List[str] = []
        resolved = 0
        for outcome in outcomes:
            if not outcome.ok:
                logger.error(
                    f"FK resolution failed: {outcome.error}",
                    extra={"extra_fields": {"column_id": outcome.id}}
                )
                failed.append(outcome.id)
                continue
            merge_fk_resolution(features[outcome.id], outcome.result)
            if outcome.result.resolved:
                resolved += 1

        InferenceMetrics.record_phase("phase4", time.perf_counter() - start, len(items) - len(failed), len(failed))
        if progress_callback is not None:
            progress_callback(len(items), len(items), f"Resolved {resolved} FK targets")
        return sorted(failed)

    # Phase 5

    def cross_column_tables(
        self,
        monetary_tables: Sequence[str],
        profiles: Sequence[ColumnDataProfile],
        features: Dict[str, ColumnFeatures],
    ) -> List[str]:
        """Monetary tables plus any table with a soft delete column awaiting validation"""
        tables = list(monetary_tables)
        for profile in profiles:
            f = features.get(profile.column_id)
            if f is not None and is_soft_delete_candidate(f) and profile.table_name not in tables:
                tables.append(profile.table_name)
        return tables

    def run_cross_column_analysis(
        self,
        tables: Sequence[str],
        profiles: Sequence[ColumnDataProfile],
        features: Dict[str, ColumnFeatures],
        progress_callback: Optional[ExtractionProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Chunked per-table analysis; returns the IDs of failed chunks"""
        profiles_by_table: Dict[str, List[ColumnDataProfile]] = {}
        for profile in profiles:
            profiles_by_table.setdefault(profile.table_name, []).append(profile)

        contexts = []
        for table_name in tables:
            context = build_table_context(
                table_name,
                profiles_by_table.get(table_name, []),
                features,
                self.extraction.currency_match_threshold,
            )
            if context.columns_to_analyze:
                contexts.append(context)
        if not contexts:
            return []

        caller = self._require_caller("cross-column analysis")
        start = time.perf_counter()
        outcome = self.cross_column_analyzer.analyze_tables(
            contexts,
            self.pool,
            caller,
            chunk_size=self.extraction.chunk_size,
            temperature=self.extraction.classification_temperature,
            progress_callback=_with_message(progress_callback, "Analyzing column relationships"),
            cancel_event=cancel_event,
        )

        for result in outcome.results.values():
            merge_cross_column(features, result)

        InferenceMetrics.record_phase(
            "phase5", time.perf_counter() - start, len(contexts), len(outcome.failed_chunks)
        )
        if progress_callback is not None:
            progress_callback(
                len(contexts), len(contexts),
                f"Analyzed {len(contexts)} tables for column relationships",
            )
        return outcome.failed_chunks

    # Full pipeline

    def extract_features(
        self,
        datasource_id: str,
        progress_callback: Optional[ExtractionProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FeatureExtractionResult:
        """
        Run all phases and persist the resulting features

        Items that fail in any phase are listed on the result per phase; the
        rest of the run continues without them. On cancellation the remaining
        phases are skipped and whatever was classified so far is persisted;
        ``cancelled`` is set on the result.
        """
        tracker = ProgressTracker()
        result = FeatureExtractionResult(datasource_id=datasource_id)

        def phase_callback(phase_id: str) -> ExtractionProgressCallback:
            tracked = tracker.callback_for(phase_id)

            def report(completed: int, total: int, message: str) -> None:
                tracked(completed, total, message)
                if progress_callback is not None:
                    progress_callback(completed, total, message)
            return report

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        with log_context(datasource_id=datasource_id, phase="phase1"):
            tracker.start_phase("phase1")
            result.profiles = self.run_profiling(datasource_id)
            tracker.set_counts(total_columns=len(result.profiles))
            phase_callback("phase1")(len(result.profiles), len(result.profiles),
                                     f"Profiled {len(result.profiles)} columns")
            tracker.finish_phase("phase1")

        with log_context(datasource_id=datasource_id, phase="phase2"):
            tracker.start_phase("phase2", len(result.profiles))
            phase2 = self.run_phase2(result.profiles, phase_callback("phase2"), cancel_event)
            tracker.finish_phase("phase2")

        result.features = phase2.features
        result.failed_column_ids = list(phase2.failed_column_ids)
        result.enum_queue = list(phase2.enum_queue)
        result.fk_queue = list(phase2.fk_queue)
        result.monetary_tables = list(phase2.monetary_tables)
        tracker.set_counts(
            enum_candidates=len(result.enum_queue),
            fk_candidates=len(result.fk_queue),
            cross_column_candidates=len(result.monetary_tables),
        )

        failed_ids = {
            "phase3": result.failed_enum_column_ids,
            "phase4": result.failed_fk_column_ids,
            "phase5": result.failed_chunks,
        }
        phases = (
            ("phase3", self.extraction.enable_enum_analysis,
             lambda cb: self.run_enum_analysis(result.enum_queue, result.profiles, result.features, cb, cancel_event)),
            ("phase4", self.extraction.enable_fk_resolution,
             lambda cb: self.run_fk_resolution(result.fk_queue, result.profiles, result.features, cb, cancel_event)),
            ("phase5", self.extraction.enable_cross_column_analysis,
             lambda cb: self.run_cross_column_analysis(
                 self.cross_column_tables(result.monetary_tables, result.profiles, result.features),
                 result.profiles, result.features, cb, cancel_event)),
        )

        for phase_id, enabled, run in phases:
            if not enabled:
                tracker.finish_phase(phase_id, PhaseStatus.SKIPPED)
                continue
            if cancelled():
                result.cancelled = True
                tracker.finish_phase(phase_id, PhaseStatus.SKIPPED)
                continue

            with log_context(datasource_id=datasource_id, phase=phase_id):
                tracker.start_phase(phase_id)
                failed_ids[phase_id].extend(run(phase_callback(phase_id)))
                tracker.finish_phase(phase_id)

        result.cancelled = result.cancelled or cancelled()

        with log_context(datasource_id=datasource_id):
            for column_id, features in result.features.items():
                self.repository.save_column_features(column_id, features)
            logger.info(
                f"Extracted features for {len(result.features)} columns",
                extra={"extra_fields": {
                    "failed": len(result.failed_column_ids),
                    "failed_enum": len(result.failed_enum_column_ids),
                    "failed_fk": len(result.failed_fk_column_ids),
                    "failed_chunks": len(result.failed_chunks),
                    "cancelled": result.cancelled,
                }}
            )

        result.progress = tracker.snapshot()
        return result
