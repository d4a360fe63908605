"""Value normalization shared by the classifier and the tool executors.

The coercion rule: strings that look like dates
stay strings (they usually end up on the x-axis), every other string whose
leading token parses as a number becomes a number, and anything else is
left alone.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any

# ---------------------------------------------------------------------------
# Date / number recognition
# ---------------------------------------------------------------------------

_DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\d{4}-\d{2}-\d{2}"),        # 2025-01-15
    re.compile(r"^\d{2}/\d{2}/\d{4}"),        # 01/15/2025
    re.compile(r"^\d{2}-\d{2}-\d{4}"),        # 15-01-2025
    re.compile(r"^\d{4}/\d{2}/\d{2}"),        # 2025/01/15
    re.compile(r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)", re.IGNORECASE),
    re.compile(r"^\d{4}-\d{2}$"),             # 2025-01
)

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_NUMBER_NOISE = re.compile(r"[,$%]")

_TIME_KEYWORDS = (
    "date", "time", "day", "week", "month", "year", "hour", "minute",
    "timestamp", "created", "updated", "period", "interval",
)

_CATEGORY_KEYWORDS = (
    "name", "label", "category", "type", "group", "status", "state",
    "event", "action", "source", "channel", "platform", "country", "region",
)


def is_number(value: Any) -> bool:
    """True for real ints/floats. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_date_like(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    return any(p.match(text) for p in _DATE_PATTERNS)


def parse_number(text: str) -> int | float | None:
    """Parse the leading numeric token of *text*, or return ``None``.

    Thousands separators, ``$`` and ``%`` are ignored.  Integral tokens
    come back as ``int`` so ``"5"`` serialises as ``5`` rather than ``5.0``.
    """
    cleaned = _NUMBER_NOISE.sub("", text.strip())
    match = _NUMBER_PREFIX.match(cleaned)
    if match is None:
        return None
    token = match.group(0)
    if "." in token or "e" in token or "E" in token:
        return float(token)
    return int(token)


def is_numeric_string(value: Any) -> bool:
    return (
        isinstance(value, str)
        and not is_date_like(value)
        and parse_number(value) is not None
    )


def is_numeric(value: Any) -> bool:
    return is_number(value) or is_numeric_string(value)


def coerce_value(value: Any) -> str | int | float:
    """Apply the row coercion policy to a single cell."""
    if is_number(value):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        if is_date_like(value):
            return value
        number = parse_number(value)
        return value if number is None else number
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def to_number(value: Any, default: int | float = 0) -> int | float:
    """Best-effort numeric conversion; unparseable input yields *default*."""
    if is_number(value):
        return value
    if isinstance(value, str):
        number = parse_number(value)
        if number is not None:
            return number
    return default


def coerce_row(row: dict[str, Any]) -> dict[str, str | int | float]:
    return {str(k): coerce_value(v) for k, v in row.items()}


# ---------------------------------------------------------------------------
# Key-name heuristics
# ---------------------------------------------------------------------------

def is_time_series_key(key: str) -> bool:
    lower = key.lower()
    return any(word in lower for word in _TIME_KEYWORDS)


def is_category_key(key: str) -> bool:
    lower = key.lower()
    return any(word in lower for word in _CATEGORY_KEYWORDS)


def infer_type(value: Any) -> str:
    """Short type name used in tool summaries."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        if is_date_like(value):
            return "date-string"
        if parse_number(value) is not None:
            return "numeric-string"
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def truncate_to_date(value: Any) -> str:
    """``2025-01-15T10:30:00Z`` → ``2025-01-15``; non-strings become ``unknown``."""
    if not isinstance(value, str) or not value:
        return "unknown"
    return value.split("T", 1)[0]


def unix_to_date(seconds: Any) -> str:
    """UNIX seconds → ISO date (UTC)."""
    if not is_number(seconds):
        return "unknown"
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return "unknown"


# ---------------------------------------------------------------------------
# Labels & palette
# ---------------------------------------------------------------------------

PALETTE: tuple[str, ...] = tuple(f"var(--chart-{i})" for i in range(1, 6))


def color_token(index: int, palette_size: int = len(PALETTE)) -> str:
    size = max(1, min(palette_size, len(PALETTE)))
    return PALETTE[index % size]


def humanize_label(key: str) -> str:
    if not key:
        return key
    return key[0].upper() + key[1:].replace("_", " ")


def slugify(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip().lower())
