"""Tool executors: the pure functions behind every model-callable tool.

Each executor takes already-parsed JSON, never mutates it, and returns a
JSON-serialisable ``dict``.  Recoverable problems (a path that does not
resolve, arrays of different lengths) come back as
``{"success": False, "error": ...}`` so the model can read them and try
again.  The one exception is ``format_chart_data``: it returns a
``ChartSpecification`` and raises ``SpecificationError`` on bad input,
which the dispatcher turns into an in-band error.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from ..classifier import DEFAULT_DENY_LIST, ShapeClassifier
from ..errors import SpecificationError
from ..models import ChartSpecification, ChartType, build_category_style, build_series_style
from ..normalize import (
    coerce_row,
    coerce_value,
    infer_type,
    is_category_key,
    is_date_like,
    is_number,
    is_numeric,
    is_time_series_key,
    to_number,
)
from ..paths import MISSING, get_by_path

SAMPLE_SIZE = 3
STRUCTURE_DEPTH = 3
STRUCTURE_MAX_KEYS = 5
PIE_MAX_SLICES = 6


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_object_array(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and isinstance(data[0], dict)


def _is_array_of_arrays(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and isinstance(data[0], list)


def _is_columns_results(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("columns"), list)
        and isinstance(data.get("results"), list)
    )


def _sketch(data: Any, depth: int = 0) -> str:
    """Depth-limited textual type sketch of *data*."""
    if depth >= STRUCTURE_DEPTH:
        return "..."
    if data is None:
        return "null"
    if isinstance(data, bool):
        return f"boolean({str(data).lower()})"
    if is_number(data):
        return f"number({data})"
    if isinstance(data, str):
        if is_numeric(data):
            return f'numericString("{data}")'
        suffix = "..." if len(data) > 50 else ""
        return f'string("{data[:50]}{suffix}")'
    if isinstance(data, list):
        if not data:
            return "array([])"
        return f"array[{len(data)}]({_sketch(data[0], depth + 1)})"
    if isinstance(data, dict):
        if not data:
            return "object({})"
        keys = list(data)
        entries = ", ".join(
            f"{key}: {_sketch(data[key], depth + 1)}" for key in keys[:STRUCTURE_MAX_KEYS]
        )
        extra = len(keys) - STRUCTURE_MAX_KEYS
        more = f", ...{extra} more" if extra > 0 else ""
        return f"object({{ {entries}{more} }})"
    return type(data).__name__


def _key_analysis(obj: dict[str, Any]) -> dict[str, list[str]]:
    time_keys: list[str] = []
    category_keys: list[str] = []
    numeric_keys: list[str] = []
    string_keys: list[str] = []
    for key, value in obj.items():
        if is_time_series_key(key) or is_date_like(value):
            time_keys.append(key)
        if is_category_key(key):
            category_keys.append(key)
        if is_numeric(value):
            numeric_keys.append(key)
        if isinstance(value, str):
            string_keys.append(key)
    return {
        "timeSeriesKeys": time_keys,
        "categoryKeys": category_keys,
        "numericKeys": numeric_keys,
        "stringKeys": string_keys,
    }


def _label(value: Any) -> str:
    if value is MISSING or value is None:
        return ""
    coerced = coerce_value(value)
    return coerced if isinstance(coerced, str) else str(value)


# ---------------------------------------------------------------------------
# detect_pattern
# ---------------------------------------------------------------------------

def detect_pattern(data: Any, *, deny_list: tuple[str, ...] = DEFAULT_DENY_LIST) -> dict[str, Any]:
    """Classify the overall data shape and suggest a chart type.

    Returns ``pattern``, ``characteristics``, ``suggestedChartType``,
    ``details`` and ``classifierRule`` (the shape rule that would handle
    this payload if the model gave up, under *deny_list*).
    """
    pattern = "unknown"
    characteristics: list[str] = []
    suggested = ChartType.BAR
    details: dict[str, Any] = {}

    if _is_columns_results(data):
        pattern = "columns-results"
        columns, results = data["columns"], data["results"]
        details.update(columns=columns, rowCount=len(results),
                       sampleRow=results[0] if results else None)
        lead = columns[0] if columns else None
        if isinstance(lead, str) and is_time_series_key(lead):
            characteristics.append("time-series")
            suggested = ChartType.LINE
        elif len(columns) > 2:
            characteristics.append("multi-series")
        else:
            characteristics.append("categorical")
        if len(results) == 1:
            characteristics.append("single-metric")
            suggested = ChartType.KPI

    elif _is_object_array(data):
        pattern = "array-of-objects"
        first: dict[str, Any] = data[0]
        analysis = _key_analysis(first)
        details.update(keys=list(first), numericKeys=analysis["numericKeys"],
                       stringKeys=analysis["stringKeys"], rowCount=len(data),
                       sample=data[:SAMPLE_SIZE])
        time_key = next(
            (k for k in analysis["stringKeys"]
             if is_time_series_key(k) or is_date_like(first[k])),
            None,
        )
        if time_key is not None:
            characteristics.append("time-series")
            details["timeKey"] = time_key
            suggested = ChartType.LINE
        if len(analysis["numericKeys"]) > 1:
            characteristics.append("multi-series")
        category_key = next(
            (k for k in analysis["stringKeys"] if is_category_key(k)), None,
        )
        if category_key is not None and time_key is None:
            characteristics.append("categorical")
            details["categoryKey"] = category_key
            if len(data) <= PIE_MAX_SLICES:
                suggested = ChartType.PIE
        if len(data) == 1:
            characteristics.append("single-metric")
            suggested = ChartType.KPI

    elif _is_array_of_arrays(data):
        pattern = "array-of-arrays"
        details.update(rowCount=len(data), columnCount=len(data[0]),
                       sample=data[:SAMPLE_SIZE])
        if data[0] and is_date_like(data[0][0]):
            characteristics.append("time-series")
            suggested = ChartType.LINE
        else:
            characteristics.append("categorical")

    elif isinstance(data, dict):
        numeric_keys = [k for k, v in data.items() if is_numeric(v)]
        if isinstance(data.get("data"), (list, dict)) and data["data"]:
            pattern = "nested-data"
            characteristics.append("hierarchical")
            details.update(dataPath="data", topLevelKeys=list(data))
        elif numeric_keys:
            pattern = "object-with-values"
            details.update(
                keys=list(data), numericKeys=numeric_keys,
                sampleValues=[{"key": k, "value": data[k]} for k in numeric_keys[:5]],
            )
            if len(numeric_keys) == 1:
                characteristics.append("single-metric")
                suggested = ChartType.KPI
            else:
                characteristics.append("categorical")
                suggested = ChartType.PIE if len(numeric_keys) <= PIE_MAX_SLICES else ChartType.BAR

    elif is_numeric(data):
        pattern = "single-value"
        characteristics.append("single-metric")
        suggested = ChartType.KPI
        details["value"] = data

    return {
        "pattern": pattern,
        "characteristics": characteristics,
        "suggestedChartType": suggested.value,
        "details": details,
        "classifierRule": ShapeClassifier(deny_list=tuple(deny_list)).match(data).name,
    }


# ---------------------------------------------------------------------------
# inspect_data / get_keys
# ---------------------------------------------------------------------------

def inspect_data(data: Any) -> dict[str, Any]:
    """Structure sketch, sample rows and key analysis for *data*."""
    top_level_keys = list(data) if isinstance(data, dict) else []

    sample: list[Any] = []
    if isinstance(data, list):
        sample = data[:SAMPLE_SIZE]
    elif isinstance(data, dict) and isinstance(data.get("results"), list):
        sample = data["results"][:SAMPLE_SIZE]

    key_types: dict[str, str] = {}
    analysis = {"timeSeriesKeys": [], "categoryKeys": [], "numericKeys": []}
    if isinstance(data, dict):
        key_types = {k: infer_type(v) for k, v in data.items()}
    elif _is_object_array(data):
        key_types = {k: infer_type(v) for k, v in data[0].items()}
        found = _key_analysis(data[0])
        analysis = {k: found[k] for k in analysis}

    return {
        "structure": _sketch(data),
        "rootType": infer_type(data),
        "topLevelKeys": top_level_keys,
        "keyTypes": key_types,
        "isArray": isinstance(data, list),
        "length": len(data) if isinstance(data, list) else None,
        "sample": sample,
        "keyAnalysis": analysis,
    }


def get_keys(data: Any, path: Optional[str] = None) -> dict[str, Any]:
    """Field names at *path*, grouped by how they could be charted.

    An array of objects is described by its first element.
    """
    target = get_by_path(data, path)
    if _is_object_array(target):
        target = target[0]
    if not isinstance(target, dict):
        return {"success": False, "error": "Target is not an object", "keys": []}

    analysis = _key_analysis(target)
    time_keys = analysis["timeSeriesKeys"]
    category_keys = analysis["categoryKeys"]
    numeric_keys = analysis["numericKeys"]
    if time_keys:
        recommendation = f'Use "{time_keys[0]}" as x-axis for time-series chart'
    elif category_keys:
        recommendation = f'Use "{category_keys[0]}" as x-axis for categorical chart'
    elif numeric_keys:
        recommendation = f"Found {len(numeric_keys)} numeric keys: {', '.join(numeric_keys)}"
    else:
        recommendation = "No clear visualization keys found"

    return {
        "success": True,
        "keys": list(target),
        "keyTypes": {k: infer_type(v) for k, v in target.items()},
        "numericKeys": numeric_keys,
        "stringKeys": analysis["stringKeys"],
        "timeSeriesKeys": time_keys,
        "categoryKeys": category_keys,
        "count": len(target),
        "recommendation": recommendation,
    }


# ---------------------------------------------------------------------------
# extract_values / extract_labels
# ---------------------------------------------------------------------------

def extract_values(data: Any, path: str) -> dict[str, Any]:
    """Numeric values at *path*.  Wildcard misses count as 0 to keep alignment."""
    extracted = get_by_path(data, path)
    if extracted is MISSING:
        return {"success": False, "error": f"No values found at path: {path}", "values": []}

    items = extracted if isinstance(extracted, list) else [extracted]
    values = [to_number(v) for v in items]
    return {
        "success": True,
        "values": values,
        "count": len(values),
        "min": min(values) if values else None,
        "max": max(values) if values else None,
        "sum": sum(values),
    }


def extract_labels(data: Any, path: str) -> dict[str, Any]:
    """String labels at *path*.  Wildcard misses become empty strings."""
    extracted = get_by_path(data, path)
    if extracted is MISSING:
        return {"success": False, "error": f"No labels found at path: {path}", "labels": []}

    items = extracted if isinstance(extracted, list) else [extracted]
    labels = [_label(v) for v in items]
    return {"success": True, "labels": labels, "count": len(labels)}


# ---------------------------------------------------------------------------
# flatten_nested / combine_arrays
# ---------------------------------------------------------------------------

def flatten_nested(
    data: Any,
    x_path: Optional[str] = None,
    y_paths: Optional[list[str]] = None,
    x_key: str = "x",
    y_keys: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Turn nested data into flat rows.

    ``columns``/``results`` tables and arrays of arrays are handled without
    any paths.  For arrays of objects, ``x_path`` and ``y_paths`` pick the
    fields; with no paths the scalar fields of each object are kept.
    """
    y_paths = y_paths or []
    y_keys = y_keys or []
    rows: list[dict[str, Any]] = []

    if _is_columns_results(data):
        columns = [str(c) for c in data["columns"]]
        rows = [
            {col: coerce_value(row[i] if i < len(row) else None) for i, col in enumerate(columns)}
            for row in data["results"]
            if isinstance(row, list)
        ]

    elif _is_array_of_arrays(data):
        for item in data:
            if not isinstance(item, list):
                continue
            row: dict[str, Any] = {x_key: _label(item[0] if item else None)}
            keys = y_keys or [f"value{i}" for i in range(1, len(item))]
            for i, key in enumerate(keys):
                row[key] = to_number(item[i + 1] if i + 1 < len(item) else None)
            rows.append(row)

    elif _is_object_array(data):
        for item in data:
            if not isinstance(item, dict):
                continue
            if not x_path and not y_paths:
                rows.append(coerce_row({
                    k: v for k, v in item.items() if not isinstance(v, (dict, list))
                }))
                continue
            row = {}
            if x_path:
                row[x_key] = _label(get_by_path(item, x_path))
            for i, path in enumerate(y_paths):
                key = y_keys[i] if i < len(y_keys) else f"value{i + 1}"
                row[key] = to_number(get_by_path(item, path))
            rows.append(row)

    return {
        "success": bool(rows),
        "chartData": rows,
        "rowCount": len(rows),
        "keys": list(rows[0]) if rows else [],
    }


def combine_arrays(labels: list[Any], value_sets: list[dict[str, Any]]) -> dict[str, Any]:
    """Zip a label list with one or more ``{key, values}`` series."""
    for value_set in value_sets:
        values = value_set.get("values") or []
        if len(values) != len(labels):
            return {
                "success": False,
                "error": (
                    f"Series '{value_set.get('key')}' has {len(values)} values "
                    f"but there are {len(labels)} labels"
                ),
            }

    rows: list[dict[str, Any]] = []
    for i, label in enumerate(labels):
        row: dict[str, Any] = {"label": _label(label)}
        for value_set in value_sets:
            row[str(value_set["key"])] = to_number(value_set["values"][i])
        rows.append(row)

    return {
        "success": True,
        "chartData": rows,
        "rowCount": len(rows),
        "keys": list(rows[0]) if rows else [],
    }


# ---------------------------------------------------------------------------
# sort_by_date
# ---------------------------------------------------------------------------

_MONTH_FORMATS = (
    "%b %d, %Y", "%B %d, %Y", "%b %d %Y", "%B %d %Y",
    "%b %Y", "%B %Y", "%b-%Y", "%b", "%B",
)

_FORMAT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("ISO", re.compile(r"^\d{4}-\d{2}-\d{2}")),
    ("US", re.compile(r"^\d{2}/\d{2}/\d{4}")),
    ("year-month", re.compile(r"^\d{4}-\d{2}$")),
    ("month-name", re.compile(r"^[A-Za-z]{3}")),
)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def parse_date(value: Any) -> Optional[float]:
    """POSIX timestamp for a date-ish cell, or ``None``."""
    if is_number(value):
        try:
            return float(value)
        except OverflowError:
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))).timestamp()
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%Y/%m/%d", "%d-%m-%Y", "%Y-%m", *_MONTH_FORMATS):
        try:
            return _as_utc(datetime.strptime(text, fmt)).timestamp()
        except ValueError:
            continue
    return None


def _date_format(value: Any) -> str:
    if is_number(value):
        return "unix"
    if isinstance(value, str):
        for name, pattern in _FORMAT_PATTERNS:
            if pattern.match(value.strip()):
                return name
    return "unknown"


def sort_by_date(rows: list[dict[str, Any]], date_key: str) -> dict[str, Any]:
    """Stable chronological sort; unparseable dates keep their order at the end."""
    copies = [dict(row) for row in rows]
    parsed = [parse_date(row.get(date_key)) for row in copies]
    order = sorted(
        range(len(copies)),
        key=lambda i: (0, parsed[i]) if parsed[i] is not None else (1, 0.0),
    )
    ordered = [copies[i] for i in order]
    return {
        "success": True,
        "chartData": ordered,
        "dateFormat": _date_format(copies[0].get(date_key)) if copies else "unknown",
        "rowCount": len(ordered),
    }


# ---------------------------------------------------------------------------
# format_chart_data (terminal)
# ---------------------------------------------------------------------------

def format_chart_data(
    chart_type: ChartType | str,
    rows: list[dict[str, Any]],
    category_key: str,
    series_keys: list[str],
    reasoning: str = "",
    *,
    palette_size: int = 5,
    **hints: Any,
) -> ChartSpecification:
    """Build the final chart specification.

    Cell values go through the same coercion as every other producer.  Pie
    and radial charts keep only their first series key and get one colour
    per category.  Extra keyword arguments (``title``, ``stacked``, ...) are
    passed through as rendering hints.
    """
    try:
        chart = ChartType(chart_type)
    except ValueError:
        raise SpecificationError(
            f"chartType must be one of {[t.value for t in ChartType]}, got {chart_type!r}"
        ) from None

    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise SpecificationError("rows must be a list of objects")

    keys = list(series_keys)
    if chart.single_series:
        keys = keys[:1]
    clean_rows = [coerce_row(r) for r in rows]

    category_style = {}
    if chart.single_series:
        category_style = build_category_style(
            clean_rows, category_key, palette_size=palette_size,
        )

    return ChartSpecification(
        chart_type=chart,
        rows=clean_rows,
        category_key=category_key,
        series_keys=keys,
        series_style=build_series_style(keys, palette_size=palette_size),
        category_style=category_style,
        reasoning=reasoning,
        **{k: v for k, v in hints.items() if v is not None},
    )
