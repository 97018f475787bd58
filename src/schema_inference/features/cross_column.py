"""
Cross-Column Analysis

Validates column meanings that only make sense relative to other columns of
the same table:
1. Monetary pairing: which amount column pairs with which currency column
2. Soft delete validation: is a high-null timestamp really a deletion marker

Columns under analysis are chunked per table so wide tables do not produce
oversized prompts; every chunk is one work item on the shared pool.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..concurrency import (
    Chunk,
    ProgressCallback,
    ResilientLLMCaller,
    WorkItem,
    WorkerPool,
    chunk_id,
    chunk_items,
    index_results,
)
from ..llm_client import parse_json_response
from ..schemas import (
    ColumnDataProfile,
    ColumnFeatures,
    MonetaryFeatures,
    PatternName,
    Role,
    TimestampFeatures,
    TimestampPurpose,
)
from ..utils import get_logger
from .classifiers import (
    DEFAULT_CLASSIFICATION_TEMPERATURE,
    response_bool,
    response_confidence,
    response_str,
)

logger = get_logger(__name__)


@dataclass
class MonetaryPairing:
    amount_column_id: str
    amount_column_name: str
    currency_column_name: str = ""
    currency_unit: str = ""
    amount_description: str = ""
    confidence: float = 0.0


@dataclass
class SoftDeleteValidation:
    column_id: str
    column_name: str
    is_soft_delete: bool = False
    non_null_meaning: str = ""
    description: str = ""
    confidence: float = 0.0


@dataclass
class CrossColumnResult:
    """Analysis output for one table (or one chunk of it)"""
    table_name: str
    monetary_pairings: List[MonetaryPairing] = field(default_factory=list)
    soft_delete_validations: List[SoftDeleteValidation] = field(default_factory=list)
    llm_model_used: str = ""

    def extend(self, other: "CrossColumnResult") -> None:
        self.monetary_pairings.extend(other.monetary_pairings)
        self.soft_delete_validations.extend(other.soft_delete_validations)
        self.llm_model_used = self.llm_model_used or other.llm_model_used


@dataclass
class TableContext:
    """Columns of one table relevant to cross-column analysis"""
    table_name: str
    profiles: List[ColumnDataProfile]
    monetary: List[ColumnDataProfile] = field(default_factory=list)
    soft_delete: List[ColumnDataProfile] = field(default_factory=list)
    currency: List[ColumnDataProfile] = field(default_factory=list)

    @property
    def columns_to_analyze(self) -> List[ColumnDataProfile]:
        return self.monetary + self.soft_delete


@dataclass
class CrossColumnOutcome:
    results: Dict[str, CrossColumnResult] = field(default_factory=dict)
    failed_chunks: List[str] = field(default_factory=list)


def is_monetary_candidate(features: ColumnFeatures) -> bool:
    return features.needs_cross_column_check and features.monetary_features is not None


def is_soft_delete_candidate(features: ColumnFeatures) -> bool:
    return (
        features.needs_cross_column_check
        and features.timestamp_features is not None
        and features.timestamp_features.is_soft_delete
    )


def build_table_context(
    table_name: str,
    profiles: Sequence[ColumnDataProfile],
    features_by_id: Dict[str, ColumnFeatures],
    currency_threshold: float = 0.80,
) -> TableContext:
    context = TableContext(table_name=table_name, profiles=list(profiles))
    for profile in profiles:
        if profile.matches_pattern(PatternName.ISO4217, currency_threshold):
            context.currency.append(profile)

        features = features_by_id.get(profile.column_id)
        if features is None:
            continue
        if is_monetary_candidate(features):
            context.monetary.append(profile)
        elif is_soft_delete_candidate(features):
            context.soft_delete.append(profile)
    return context


class CrossColumnAnalyzer:
    """Phase 5: chunked per-table analysis"""

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to analyze relationships between columns in the same table.

Focus on:
1. Monetary pairing: Which numeric columns represent monetary amounts and which currency column do they pair with?
2. Soft delete validation: For high-null-rate timestamp columns, confirm if they are soft delete markers and what non-NULL values mean.

Base your analysis on DATA patterns (value distributions, null rates), not column names. Column names are provided for context only.
Respond with valid JSON only."""

    def build_prompt(self, context: TableContext, columns: Sequence[ColumnDataProfile]) -> str:
        chunk_ids = {p.column_id for p in columns}
        monetary = [p for p in context.monetary if p.column_id in chunk_ids]
        soft_delete = [p for p in context.soft_delete if p.column_id in chunk_ids]

        parts = [
            "# Cross-Column Analysis",
            "",
            f"**Table:** {context.table_name}",
            "",
            "## All Columns in Table",
            "",
            "| Column | Type | Null Rate | Distinct Count |",
            "|--------|------|-----------|----------------|",
        ]
        for p in context.profiles:
            parts.append(f"| {p.column_name} | {p.data_type} | {p.null_rate * 100:.1f}% | {p.distinct_count} |")

        if context.currency:
            parts.append("\n## Potential Currency Columns\n")
            for p in context.currency:
                line = f"- **{p.column_name}** (type: {p.data_type})"
                if p.sample_values:
                    line += f" - values: {', '.join(p.sample_values[:5])}"
                parts.append(line)

        if monetary:
            parts.append("\n## Monetary Column Analysis\n")
            parts.append("The following numeric columns may represent monetary amounts:\n")
            for p in monetary:
                parts.append(f"### {p.column_name}")
                parts.append(f"- **Data type:** {p.data_type}")
                if p.sample_values:
                    parts.append(f"- **Sample values:** {', '.join(p.sample_values[:5])}")
                parts.append("")

            parts.append("**Task:** For each numeric column, determine:")
            parts.append("1. Is it a monetary amount? (not a percentage, count, or ID)")
            parts.append("2. What currency column (if any) does it pair with?")
            parts.append("3. What unit is the amount in? (cents, dollars, basis_points)")
            parts.append("4. What does this amount represent?\n")

        if soft_delete:
            parts.append("\n## Soft Delete Validation\n")
            parts.append("The following timestamp columns have high null rates and may be soft delete markers:\n")
            for p in soft_delete:
                parts.append(f"### {p.column_name}")
                parts.append(f"- **Data type:** {p.data_type}")
                parts.append(f"- **Null rate:** {p.null_rate * 100:.1f}%")
                if p.sample_values:
                    parts.append(f"- **Sample non-NULL values:** {', '.join(p.sample_values[:3])}")
                parts.append("")

            parts.append("**Task:** For each timestamp column, determine:")
            parts.append("1. Is this truly a soft delete marker? (or could it be an optional event time?)")
            parts.append("2. What does a non-NULL value indicate?\n")

        parts.append("""## Response Format

```json
{
  "monetary_pairings": [
    {
      "amount_column": "total_amount",
      "currency_column": "currency_code",
      "currency_unit": "cents",
      "amount_description": "Total transaction amount including taxes",
      "confidence": 0.9
    }
  ],
  "soft_delete_validations": [
    {
      "column_name": "deleted_at",
      "is_soft_delete": true,
      "non_null_meaning": "Record was soft-deleted at this timestamp",
      "description": "Soft delete marker for logical deletion without removing the row",
      "confidence": 0.95
    }
  ]
}
```""")
        return "\n".join(parts)

    def parse_response(
        self,
        context: TableContext,
        columns: Sequence[ColumnDataProfile],
        content: str,
        model_id: str,
    ) -> CrossColumnResult:
        response = parse_json_response(content)
        id_by_name = {p.column_name: p.column_id for p in columns}
        result = CrossColumnResult(table_name=context.table_name, llm_model_used=model_id)

        for item in response.get("monetary_pairings") or []:
            if not isinstance(item, dict):
                continue
            name = response_str(item, "amount_column")
            if name not in id_by_name:
                logger.warning(
                    "Monetary pairing references unknown column",
                    extra={"extra_fields": {"table_name": context.table_name, "column": name}}
                )
                continue
            result.monetary_pairings.append(MonetaryPairing(
                amount_column_id=id_by_name[name],
                amount_column_name=name,
                currency_column_name=response_str(item, "currency_column"),
                currency_unit=response_str(item, "currency_unit"),
                amount_description=response_str(item, "amount_description"),
                confidence=response_confidence(item),
            ))

        for item in response.get("soft_delete_validations") or []:
            if not isinstance(item, dict):
                continue
            name = response_str(item, "column_name")
            if name not in id_by_name:
                logger.warning(
                    "Soft delete validation references unknown column",
                    extra={"extra_fields": {"table_name": context.table_name, "column": name}}
                )
                continue
            result.soft_delete_validations.append(SoftDeleteValidation(
                column_id=id_by_name[name],
                column_name=name,
                is_soft_delete=response_bool(item, "is_soft_delete"),
                non_null_meaning=response_str(item, "non_null_meaning"),
                description=response_str(item, "description"),
                confidence=response_confidence(item),
            ))

        return result

    def analyze_chunk(
        self,
        context: TableContext,
        chunk: Chunk[ColumnDataProfile],
        caller: ResilientLLMCaller,
        temperature: float = DEFAULT_CLASSIFICATION_TEMPERATURE,
        cancel_event: Optional[threading.Event] = None,
    ) -> CrossColumnResult:
        result = caller.generate(
            prompt=self.build_prompt(context, chunk.items),
            system_message=self.SYSTEM_PROMPT,
            temperature=temperature,
            cancel_event=cancel_event,
            operation="cross_column_analysis",
        )
        return self.parse_response(context, chunk.items, result.content, result.model_id or caller.model_id)

    def analyze_tables(
        self,
        contexts: Sequence[TableContext],
        pool: WorkerPool,
        caller: ResilientLLMCaller,
        chunk_size: int,
        temperature: float = DEFAULT_CLASSIFICATION_TEMPERATURE,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CrossColumnOutcome:
        """
        Analyze every table, one work item per ``<table>-chunk-<i>``

        Chunks of all tables share the pool; results are reassembled per
        table in chunk order.
        """
        work_items: List[WorkItem[CrossColumnResult]] = []
        chunk_keys: Dict[str, Tuple[str, int]] = {}

        for context in contexts:
            for chunk in chunk_items(context.columns_to_analyze, chunk_size):
                wid = chunk_id(context.table_name, chunk.index)
                chunk_keys[wid] = (context.table_name, chunk.index)
                work_items.append(WorkItem(
                    id=wid,
                    execute=lambda ctx=context, c=chunk: self.analyze_chunk(
                        ctx, c, caller, temperature, cancel_event
                    ),
                ))

        outcome = CrossColumnOutcome()
        by_id = index_results(pool.process(work_items, progress_callback, cancel_event))

        for context in contexts:
            table_result = CrossColumnResult(table_name=context.table_name)
            chunk_results = sorted(
                ((chunk_keys[wid][1], r) for wid, r in by_id.items()
                 if chunk_keys[wid][0] == context.table_name),
                key=lambda pair: pair[0],
            )
            for _, r in chunk_results:
                if r.ok:
                    table_result.extend(r.result)
                else:
                    logger.error(
                        f"Cross-column chunk failed: {r.error}",
                        extra={"extra_fields": {"work_item_id": r.id, "table_name": context.table_name}}
                    )
                    outcome.failed_chunks.append(r.id)
            outcome.results[context.table_name] = table_result

        return outcome


def merge_cross_column(features_by_id: Dict[str, ColumnFeatures], result: CrossColumnResult) -> None:
    """Apply monetary pairings and soft delete verdicts to the table's features"""
    for pairing in result.monetary_pairings:
        features = features_by_id.get(pairing.amount_column_id)
        if features is None:
            logger.warning(f"No features for monetary column {pairing.amount_column_name}")
            continue

        if features.monetary_features is None:
            features.monetary_features = MonetaryFeatures()
        monetary = features.monetary_features
        monetary.is_monetary = True
        monetary.currency_unit = pairing.currency_unit
        monetary.paired_currency_column = pairing.currency_column_name
        monetary.amount_description = pairing.amount_description

        features.semantic_type = "monetary"
        features.role = Role.MEASURE.value
        if pairing.amount_description and not features.description:
            features.description = pairing.amount_description
        features.raise_confidence(pairing.confidence)
        features.needs_cross_column_check = False

    for validation in result.soft_delete_validations:
        features = features_by_id.get(validation.column_id)
        if features is None:
            logger.warning(f"No features for soft delete column {validation.column_name}")
            continue

        if features.timestamp_features is None:
            features.timestamp_features = TimestampFeatures()
        timestamp = features.timestamp_features
        timestamp.is_soft_delete = validation.is_soft_delete

        soft_delete = TimestampPurpose.SOFT_DELETE.value
        if validation.is_soft_delete:
            features.semantic_type = soft_delete
            timestamp.timestamp_purpose = soft_delete
        else:
            # Rejected: fall back to a generic event timestamp
            if features.semantic_type == soft_delete:
                features.semantic_type = TimestampPurpose.EVENT_TIME.value
            if timestamp.timestamp_purpose == soft_delete:
                timestamp.timestamp_purpose = TimestampPurpose.EVENT_TIME.value

        if validation.description:
            features.description = validation.description
        features.raise_confidence(validation.confidence)
        features.needs_cross_column_check = False
