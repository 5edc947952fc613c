"""
Utility helper functions for Concord.

Common utility functions used throughout the collaboration core.
"""

import json
import re
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple


_TOKEN_PATTERN = re.compile(r"\w+")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id(prefix: Optional[str] = None) -> str:
    """Generate a uuid4 identifier, optionally with a readable prefix."""
    value = str(uuid.uuid4())
    return f"{prefix}_{value}" if prefix else value


def short_id(identifier: str) -> str:
    """Shortened identifier for log lines."""
    head, _, tail = identifier.rpartition("_")
    return f"{head}_{tail[:8]}" if head else identifier[:8]


def serialize_payload(payload: Any) -> str:
    """Serialize a payload to a stable JSON string."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, sort_keys=True, default=str)


def to_jsonable(value: Any) -> Any:
    """Convert a value into something json.dumps accepts."""
    return json.loads(json.dumps(value, default=str))


def tokenize(payload: Any) -> List[str]:
    """Lowercased word tokens of a payload's serialized form."""
    return _TOKEN_PATTERN.findall(serialize_payload(payload).lower())


def token_set(payload: Any) -> Set[str]:
    """Distinct tokens of a payload."""
    return set(tokenize(payload))


def calculate_text_similarity(text1: Any, text2: Any) -> float:
    """
    Token-overlap similarity between two payloads.

    Shared distinct tokens divided by all distinct tokens across both.
    """
    words1 = token_set(text1)
    words2 = token_set(text2)

    if not words1 and not words2:
        return 1.0

    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / len(words1 | words2)


def is_number(value: Any) -> bool:
    """True for int and float values, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp a number into a closed range."""
    return max(lower, min(upper, value))


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def merge_dicts(*dicts: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge dictionaries left to right; later keys win."""
    result: Dict[str, Any] = {}
    for d in dicts:
        if d:
            result.update(d)
    return result


def top_counts(items: Iterable[Any], limit: int) -> List[Tuple[Any, int]]:
    """Most common items with their counts, ties in first-seen order."""
    return Counter(items).most_common(limit)


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes between two datetimes."""
    return (end - start).total_seconds() / 60.0


def format_timestamp(dt: datetime) -> str:
    """Format timestamp for display."""
    return dt.strftime("%Y-%m-%d %H:%M:%S")
