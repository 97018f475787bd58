"""
FK Resolution

For identifier columns flagged as foreign keys, picks the referenced table
and column among the primary keys of other tables with a compatible type.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..concurrency import ResilientLLMCaller
from ..llm_client import parse_json_response
from ..relationships.type_matcher import are_types_compatible
from ..schemas import ColumnDataProfile, ColumnFeatures, IdentifierFeatures, IdentifierType, Role
from ..utils import get_logger
from .classifiers import response_confidence, response_str, sample_lines

logger = get_logger(__name__)

DEFAULT_FK_RESOLUTION_TEMPERATURE = 0.1


@dataclass
class FKTargetOption:
    """A primary key column offered to the model as a possible FK target"""
    table_name: str
    column_name: str
    column_id: str
    data_type: str


@dataclass
class FKResolutionResult:
    column_id: str
    fk_target_table: str = ""
    fk_target_column: str = ""
    fk_confidence: float = 0.0
    reasoning: str = ""
    llm_model_used: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.fk_target_table and self.fk_target_column)


def candidate_targets(
    profile: ColumnDataProfile,
    profiles: Sequence[ColumnDataProfile],
) -> List[FKTargetOption]:
    """Primary keys of other tables whose type is compatible with ``profile``"""
    options: List[FKTargetOption] = []
    for other in profiles:
        if not other.is_primary_key or other.table_name == profile.table_name:
            continue
        if not are_types_compatible(profile.data_type, other.data_type):
            continue
        options.append(FKTargetOption(
            table_name=other.table_name,
            column_name=other.column_name,
            column_id=other.column_id,
            data_type=other.data_type,
        ))
    return options


class FKResolver:
    """Phase 4: one model call per queued FK column"""

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to identify the most likely foreign key target for a column.

Focus on:
1. Column naming conventions (user_id typically references users.id)
2. Data type compatibility and sample values
3. Business logic (what makes sense semantically)

If you cannot determine the target with reasonable confidence, respond with empty strings.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile, options: Sequence[FKTargetOption]) -> str:
        parts = [
            "# FK Target Resolution",
            "",
            f"**Source Table:** {profile.table_name}",
            f"**Source Column:** {profile.column_name}",
            f"**Data Type:** {profile.data_type}",
            f"**Distinct Values:** {profile.distinct_count}",
        ]
        if profile.sample_values:
            parts.append("\n**Sample Values:**")
            parts.extend(sample_lines(profile.sample_values, 5))

        parts.append("\n## Candidate FK Targets\n")
        for i, option in enumerate(options, 1):
            parts.append(f"{i}. `{option.table_name}.{option.column_name}` ({option.data_type})")

        parts.append("""
## Task

Determine which candidate is the most likely FK target.

## Response Format

```json
{
  "target_table": "users",
  "target_column": "id",
  "confidence": 0.9,
  "reasoning": "Column naming (user_id -> users.id) and matching UUID type suggest this FK relationship."
}
```""")
        return "\n".join(parts)

    def parse_response(
        self,
        profile: ColumnDataProfile,
        content: str,
        model_id: str,
        options: Sequence[FKTargetOption],
    ) -> FKResolutionResult:
        response = parse_json_response(content)
        table = response_str(response, "target_table")
        column = response_str(response, "target_column")
        result = FKResolutionResult(
            column_id=profile.column_id,
            reasoning=response_str(response, "reasoning"),
            llm_model_used=model_id,
        )
        if not table or not column:
            return result

        for option in options:
            if option.table_name.lower() == table.lower() and option.column_name.lower() == column.lower():
                result.fk_target_table = option.table_name
                result.fk_target_column = option.column_name
                result.fk_confidence = response_confidence(response)
                return result

        logger.warning(
            "Model chose an FK target outside the candidate list",
            extra={"extra_fields": {
                "column_id": profile.column_id,
                "choice": f"{table}.{column}",
            }}
        )
        return result

    def resolve(
        self,
        profile: ColumnDataProfile,
        options: Sequence[FKTargetOption],
        caller: ResilientLLMCaller,
        temperature: float = DEFAULT_FK_RESOLUTION_TEMPERATURE,
        cancel_event: Optional[threading.Event] = None,
    ) -> FKResolutionResult:
        if not options:
            logger.debug(f"No FK target candidates for {profile.table_name}.{profile.column_name}")
            return FKResolutionResult(column_id=profile.column_id)

        result = caller.generate(
            prompt=self.build_prompt(profile, options),
            system_message=self.SYSTEM_PROMPT,
            temperature=temperature,
            cancel_event=cancel_event,
            operation="fk_resolution",
        )
        return self.parse_response(profile, result.content, result.model_id or caller.model_id, options)


def merge_fk_resolution(features: ColumnFeatures, result: FKResolutionResult) -> None:
    if features.identifier_features is None:
        features.identifier_features = IdentifierFeatures()

    identifier = features.identifier_features
    if result.resolved:
        identifier.fk_target_table = result.fk_target_table
        identifier.fk_target_column = result.fk_target_column
        identifier.fk_confidence = result.fk_confidence
        identifier.identifier_type = IdentifierType.FOREIGN_KEY.value
        features.role = Role.FOREIGN_KEY.value

    identifier.needs_fk_resolution = False
    features.needs_fk_resolution = False

    logger.debug(
        "Merged FK resolution",
        extra={"extra_fields": {
            "column_id": result.column_id,
            "target": f"{result.fk_target_table}.{result.fk_target_column}",
            "confidence": result.fk_confidence,
        }}
    )
