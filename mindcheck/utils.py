"""
MindCheck v1 Utilities - Shared helper functions.

Responsibilities:
- Time formatting (UTC, ISO-8601)
- Deterministic JSON serialization
- Numeric clamping and small statistics helpers

Invariants:
- All timestamps use ISO-8601 format with explicit offset
- Serialized JSON is byte-stable for identical input
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence


def now_iso() -> str:
    """
    Return current time as ISO-8601 with explicit UTC offset.

    Returns:
        ISO-8601 formatted string, e.g., "2025-12-23T17:02:10.123456+00:00"
    """
    return datetime.now(timezone.utc).isoformat()


def serialize_json(data: Mapping[str, Any]) -> str:
    """
    Serialize dictionary to JSON deterministically.

    Args:
        data: Dictionary to serialize.

    Returns:
        JSON string with sorted keys, 2-space indent, trailing newline.
    """
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    m = mean(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / len(values))


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are not NaN or infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))
