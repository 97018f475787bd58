"""
Pattern Detector

Runs a fixed set of regular expressions against column sample values. Patterns
are matched against the DATA, never against column names.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Pattern, Sequence

from ..schemas import DetectedPattern, PatternName, UNIX_TIMESTAMP_PATTERNS
from ..utils import get_logger

logger = get_logger(__name__)

MAX_MATCHED_VALUES = 5

SAMPLE_PATTERNS: Dict[str, Pattern] = {
    PatternName.UUID.value: re.compile(
        r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
    ),
    PatternName.STRIPE_ID.value: re.compile(
        r"^(pi_|pm_|ch_|cus_|sub_|inv_|price_|prod_|txn_|re_|pout_|seti_|cs_)[a-zA-Z0-9]+$"
    ),
    PatternName.AWS_SES.value: re.compile(r"^[0-9a-f-]+@email\.amazonses\.com$"),
    PatternName.TWILIO_SID.value: re.compile(r"^(AC|SM|MM|PN|SK)[a-f0-9]{32}$"),
    PatternName.ISO4217.value: re.compile(r"^[A-Z]{3}$"),
    PatternName.UNIX_SECONDS.value: re.compile(r"^[0-9]{10}$"),
    PatternName.UNIX_MILLIS.value: re.compile(r"^[0-9]{13}$"),
    PatternName.UNIX_MICROS.value: re.compile(r"^[0-9]{16}$"),
    PatternName.UNIX_NANOS.value: re.compile(r"^[0-9]{19}$"),
    PatternName.EMAIL.value: re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
    PatternName.URL.value: re.compile(r"^https?://"),
}

# Units per second for each integer timestamp encoding
UNIX_DIVISORS: Dict[str, int] = {
    PatternName.UNIX_SECONDS.value: 1,
    PatternName.UNIX_MILLIS.value: 1_000,
    PatternName.UNIX_MICROS.value: 1_000_000,
    PatternName.UNIX_NANOS.value: 1_000_000_000,
    "seconds": 1,
    "milliseconds": 1_000,
    "microseconds": 1_000_000,
    "nanoseconds": 1_000_000_000,
}

TIMESTAMP_SCALES: Dict[str, str] = {
    PatternName.UNIX_SECONDS.value: "seconds",
    PatternName.UNIX_MILLIS.value: "milliseconds",
    PatternName.UNIX_MICROS.value: "microseconds",
    PatternName.UNIX_NANOS.value: "nanoseconds",
}

_EPOCH_MIN = 0
_EPOCH_MAX = int(datetime(2100, 1, 1, tzinfo=timezone.utc).timestamp())

_UNIX_NAMES = {p.value for p in UNIX_TIMESTAMP_PATTERNS}


def validate_unix_timestamp(value: str, precision: str = PatternName.UNIX_SECONDS.value) -> bool:
    """
    True if ``value`` decodes to an instant between 1970-01-01 and 2100-01-01

    ``precision`` is a unix pattern name (``unix_millis``) or a scale word
    (``milliseconds``).
    """
    divisor = UNIX_DIVISORS.get(str(getattr(precision, "value", precision)))
    if divisor is None:
        raise ValueError(f"Unknown timestamp precision: {precision}")

    try:
        raw = int(str(value).strip())
    except (TypeError, ValueError):
        return False

    return _EPOCH_MIN * divisor <= raw <= _EPOCH_MAX * divisor


class PatternDetector:
    """Detects known value patterns in a column's samples"""

    def __init__(self, patterns: Optional[Dict[str, Pattern]] = None):
        self.patterns = patterns if patterns is not None else SAMPLE_PATTERNS

    def detect(self, sample_values: Sequence[str]) -> List[DetectedPattern]:
        """
        One DetectedPattern per pattern with at least one match

        Unix timestamp matches are range-validated; values outside 1970-2100
        do not count towards the match rate.
        """
        if not sample_values:
            return []

        total = len(sample_values)
        detected: List[DetectedPattern] = []

        for name, regex in self.patterns.items():
            matched = [v for v in sample_values if regex.match(v)]
            if name in _UNIX_NAMES:
                matched = [v for v in matched if validate_unix_timestamp(v, name)]
            if not matched:
                continue

            detected.append(DetectedPattern(
                name=name,
                match_rate=len(matched) / total,
                matched_values=tuple(matched[:MAX_MATCHED_VALUES]),
            ))

        return detected


_default_detector = PatternDetector()


def detect_patterns(sample_values: Sequence[str]) -> List[DetectedPattern]:
    """Run the default detector"""
    return _default_detector.detect(sample_values)
