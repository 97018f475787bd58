"""
Model response parsing helpers
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict

from ..utils import ResponseParseError

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def extract_json_text(content: str) -> str:
    """Pull the JSON object text out of a model answer

    Handles a fenced ```json block as well as an object surrounded by prose.
    """
    text = (content or "").strip()

    fence = _FENCE_PATTERN.search(text)
    if fence:
        text = fence.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ResponseParseError("No JSON object found in model response", content=content)
    return text[start:end + 1]


def parse_json_response(content: str) -> Dict[str, Any]:
    """Parse a model answer that is expected to contain one JSON object"""
    text = extract_json_text(content)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(
            f"Invalid JSON in model response: {e.msg}",
            content=content,
            original_error=e,
        )

    if not isinstance(parsed, dict):
        raise ResponseParseError("Model response JSON is not an object", content=content)
    return parsed
