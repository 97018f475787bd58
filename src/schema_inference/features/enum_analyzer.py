"""
Enum Analyzer

Asks the model what each enum value means and, for state machines, where
each value sits in the workflow. Analysis runs on the worker pool; merging
into ColumnFeatures happens afterwards on the coordinating thread.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..concurrency import ResilientLLMCaller
from ..llm_client import parse_json_response
from ..schemas import ColumnDataProfile, ColumnFeatures, EnumCategory, EnumFeatures, EnumValue
from ..utils import get_logger
from .classifiers import (
    DEFAULT_CLASSIFICATION_TEMPERATURE,
    profile_header,
    response_bool,
    response_confidence,
    response_str,
    sample_lines,
)

logger = get_logger(__name__)

VALID_CATEGORIES = frozenset(c.value for c in EnumCategory)


@dataclass
class EnumAnalysisResult:
    """Detailed enum analysis for one column"""
    column_id: str
    is_state_machine: bool = False
    state_description: str = ""
    values: List[EnumValue] = field(default_factory=list)
    description: str = ""
    confidence: float = 0.0
    llm_model_used: str = ""


class EnumAnalyzer:
    """Phase 3: one model call per queued enum column"""

    SYSTEM_PROMPT = """You are a database schema analyst. Your task is to analyze enum/categorical column values and provide human-readable labels for each value.

Focus on the DATA patterns (value distribution, frequency) to understand what each value represents.
If the values appear to form a state machine (workflow progression), identify initial, in-progress, and terminal states.
Respond with valid JSON only."""

    def build_prompt(self, profile: ColumnDataProfile) -> str:
        parts = profile_header(profile, "Enum Value Analysis")
        parts.append(f"**Distinct values:** {profile.distinct_count}")
        if profile.sample_values:
            parts.append("\n**Values found in data:**")
            parts.extend(sample_lines(sorted(set(profile.sample_values)), 50))

        parts.append("""
## Task

Analyze these enum values to determine:
1. What does each value mean in business terms?
2. Are these values part of a state machine (ordered workflow progression)?
3. If it's a state machine, which values are initial, in-progress, and terminal states?

**Value category definitions (state machines only):**
- `initial`: Starting state for new records
- `in_progress`: Intermediate state, work is ongoing
- `terminal`: Final state, no further transitions
- `terminal_success`: Final state indicating success
- `terminal_error`: Final state indicating failure or cancellation

## Response Format

```json
{
  "is_state_machine": true,
  "state_description": "Order processing workflow from creation to fulfillment",
  "values": [
    {"value": "0", "label": "pending", "category": "initial"},
    {"value": "1", "label": "processing", "category": "in_progress"},
    {"value": "2", "label": "completed", "category": "terminal_success"},
    {"value": "3", "label": "failed", "category": "terminal_error"}
  ],
  "confidence": 0.85,
  "description": "Tracks order status from creation through fulfillment or failure."
}
```""")
        return "\n".join(parts)

    def parse_response(self, profile: ColumnDataProfile, content: str, model_id: str) -> EnumAnalysisResult:
        response = parse_json_response(content)
        is_state_machine = response_bool(response, "is_state_machine")

        values: List[EnumValue] = []
        for item in response.get("values") or []:
            if not isinstance(item, dict) or item.get("value") is None:
                continue
            values.append(EnumValue(
                value=str(item["value"]),
                label=response_str(item, "label"),
                category=self._category(item, is_state_machine),
            ))

        return EnumAnalysisResult(
            column_id=profile.column_id,
            is_state_machine=is_state_machine,
            state_description=response_str(response, "state_description"),
            values=values,
            description=response_str(response, "description"),
            confidence=response_confidence(response),
            llm_model_used=model_id,
        )

    @staticmethod
    def _category(item: Dict[str, Any], is_state_machine: bool) -> str:
        if not is_state_machine:
            return ""
        category = response_str(item, "category").lower()
        return category if category in VALID_CATEGORIES else ""

    def analyze(
        self,
        profile: ColumnDataProfile,
        caller: ResilientLLMCaller,
        temperature: float = DEFAULT_CLASSIFICATION_TEMPERATURE,
        cancel_event: Optional[threading.Event] = None,
    ) -> EnumAnalysisResult:
        result = caller.generate(
            prompt=self.build_prompt(profile),
            system_message=self.SYSTEM_PROMPT,
            temperature=temperature,
            cancel_event=cancel_event,
            operation="enum_analysis",
        )
        return self.parse_response(profile, result.content, result.model_id or caller.model_id)


def merge_enum_analysis(features: ColumnFeatures, result: EnumAnalysisResult) -> None:
    """Fold an analysis result into the column's features; confidence never drops"""
    if features.enum_features is None:
        features.enum_features = EnumFeatures()
    features.enum_features.is_state_machine = result.is_state_machine
    features.enum_features.state_description = result.state_description
    features.enum_features.values = list(result.values)

    if result.description:
        features.description = result.description
    features.raise_confidence(result.confidence)
    features.needs_enum_analysis = False

    logger.debug(
        "Merged enum analysis",
        extra={"extra_fields": {
            "column_id": result.column_id,
            "is_state_machine": result.is_state_machine,
            "value_count": len(result.values),
        }}
    )
