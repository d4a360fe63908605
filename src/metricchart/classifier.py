"""Deterministic shape classifier — the fallback chart producer.

The classifier walks an explicit, ordered table of ``ShapeRule`` entries
and builds a ``ChartSpecification`` from the first rule whose predicate
matches the payload.  There is no scoring: priority is the position in
``default_rules()``.  The last rule always matches, so ``classify`` never
fails.

Rule order
----------
1. columnar_table            ``{columns: [...], results: [[...], ...]}``
2. column_vector             ``{columnData: [...]}``
3. flat_numeric_object       ``{"TypeScript": 5000, "CSS": "120"}``
4. dual_array_participation  ``{all: [...], owner: [...]}``
5. wrapped_run_list          ``{workflow_runs: [{conclusion: ...}, ...]}``
6a. dated_state_items        ``[{created_at, state, ...}, ...]``
6b. commit_list              ``[{sha, commit: {author: {date}}}, ...]``
6c. contributor_totals       ``[{author, total}, ...]``
6d. weekly_activity          ``[{week, total, days}, ...]``
6e. code_frequency           ``[[timestamp, additions, deletions], ...]``
6f. punch_card               ``[[day, hour, count], ...]``
7. kpi_fallback              anything else
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Optional

from .errors import SpecificationError
from .models import ChartSpecification, ChartType, Row, build_category_style, build_series_style
from .normalize import (
    coerce_value,
    is_number,
    is_numeric,
    to_number,
    truncate_to_date,
    unix_to_date,
)
from .paths import get_by_path

logger = logging.getLogger("metricchart.classifier")

DEFAULT_DENY_LIST: tuple[str, ...] = ("all", "owner", "workflow_runs")
PIE_MAX_SLICES = 6
TOP_CONTRIBUTORS = 10
WEEKDAYS: tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


# ---------------------------------------------------------------------------
# Rule table types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClassificationContext:
    """Metric metadata available to every rule builder."""
    metric_name: str = "Value"
    current_value: Optional[float] = None
    palette_size: int = 5


Predicate = Callable[[Any], bool]
Builder = Callable[[Any, ClassificationContext], ChartSpecification]


@dataclass(frozen=True)
class ShapeRule:
    """One entry of the priority-ordered dispatch table."""
    name: str
    description: str
    predicate: Predicate
    builder: Builder
    suggested_chart: ChartType = ChartType.BAR


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _spec(
    ctx: ClassificationContext,
    chart_type: ChartType,
    rows: list[Row],
    category_key: str,
    series_keys: list[str],
    reasoning: str,
    labels: dict[str, str] | None = None,
) -> ChartSpecification:
    category_style = {}
    if chart_type.single_series:
        category_style = build_category_style(
            rows, category_key, palette_size=ctx.palette_size,
        )
    return ChartSpecification(
        chart_type=chart_type,
        rows=rows,
        category_key=category_key,
        series_keys=series_keys,
        series_style=build_series_style(
            series_keys, labels, palette_size=ctx.palette_size,
        ),
        category_style=category_style,
        reasoning=reasoning,
    )


def _first(payload: Any) -> Any:
    return payload[0] if isinstance(payload, list) and payload else None


def _is_number_triple(item: Any) -> bool:
    return (
        isinstance(item, list)
        and len(item) == 3
        and all(is_number(v) for v in item)
    )


def _is_day_index(value: Any) -> bool:
    return is_number(value) and 0 <= value <= 6 and float(value).is_integer()


def _count_by(values: list[str]) -> Counter[str]:
    # Counter keeps first-seen insertion order
    return Counter(values)


# ---------------------------------------------------------------------------
# 1. Columnar table
# ---------------------------------------------------------------------------

def _is_columnar_table(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    columns = payload.get("columns")
    results = payload.get("results")
    if not isinstance(columns, list) or not isinstance(results, list):
        return False
    if not columns or not all(isinstance(c, str) for c in columns):
        return False
    return all(isinstance(r, list) and len(r) == len(columns) for r in results)


def _build_columnar_table(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    columns: list[str] = payload["columns"]
    rows: list[Row] = [
        {col: coerce_value(value) for col, value in zip(columns, result)}
        for result in payload["results"]
    ]
    return _spec(
        ctx, ChartType.LINE, rows, columns[0], columns[1:],
        f"Columnar table with columns [{', '.join(columns)}]: "
        f"{len(rows)} rows plotted as a line chart",
    )


# ---------------------------------------------------------------------------
# 2. Column vector
# ---------------------------------------------------------------------------

def _is_column_vector(payload: Any) -> bool:
    return isinstance(payload, dict) and isinstance(payload.get("columnData"), list)


def _build_column_vector(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows: list[Row] = [
        {"index": f"Point {i + 1}", "value": to_number(v)}
        for i, v in enumerate(payload["columnData"])
    ]
    return _spec(
        ctx, ChartType.LINE, rows, "index", ["value"],
        f"Column vector with {len(rows)} values plotted as a line chart",
        labels={"value": ctx.metric_name},
    )


# ---------------------------------------------------------------------------
# 3. Flat numeric object
# ---------------------------------------------------------------------------

def _numeric_entries(payload: Any, deny_list: tuple[str, ...]) -> list[tuple[str, Any]]:
    return [
        (key, value)
        for key, value in payload.items()
        if key not in deny_list and is_numeric(value)
    ]


def _is_flat_numeric_object(payload: Any, deny_list: tuple[str, ...] = DEFAULT_DENY_LIST) -> bool:
    return isinstance(payload, dict) and bool(_numeric_entries(payload, deny_list))


def _build_flat_numeric_object(
    payload: Any,
    ctx: ClassificationContext,
    deny_list: tuple[str, ...] = DEFAULT_DENY_LIST,
) -> ChartSpecification:
    entries = _numeric_entries(payload, deny_list)
    rows: list[Row] = [
        {"category": key, "value": to_number(value)} for key, value in entries
    ]
    chart_type = ChartType.PIE if len(rows) <= PIE_MAX_SLICES else ChartType.BAR
    return _spec(
        ctx, chart_type, rows, "category", ["value"],
        f"Flat object with {len(rows)} numeric fields plotted as a "
        f"{chart_type.value} chart",
        labels={"value": ctx.metric_name},
    )


# ---------------------------------------------------------------------------
# 4. Dual-array participation
# ---------------------------------------------------------------------------

def _is_dual_array(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    everyone, owner = payload.get("all"), payload.get("owner")
    return (
        isinstance(everyone, list)
        and isinstance(owner, list)
        and len(everyone) == len(owner)
    )


def _build_dual_array(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows: list[Row] = [
        {"week": f"Week {i + 1}", "all": to_number(a), "owner": to_number(o)}
        for i, (a, o) in enumerate(zip(payload["all"], payload["owner"]))
    ]
    return _spec(
        ctx, ChartType.AREA, rows, "week", ["all", "owner"],
        f"Participation arrays covering {len(rows)} weeks plotted as an area chart",
        labels={"all": "All Contributors", "owner": "Owner"},
    )


# ---------------------------------------------------------------------------
# 5. Wrapped run list
# ---------------------------------------------------------------------------

def _is_wrapped_run_list(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    runs = payload.get("workflow_runs")
    if not isinstance(runs, list) or not runs:
        return False
    if not all(isinstance(r, dict) for r in runs):
        return False
    return any("conclusion" in r for r in runs)


def _build_wrapped_run_list(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    runs: list[dict[str, Any]] = payload["workflow_runs"]
    counts = _count_by([str(r.get("conclusion") or "pending") for r in runs])
    rows: list[Row] = [{"status": status, "count": n} for status, n in counts.items()]
    return _spec(
        ctx, ChartType.PIE, rows, "status", ["count"],
        f"{len(runs)} workflow runs grouped into {len(rows)} conclusion buckets",
    )


# ---------------------------------------------------------------------------
# 6. Object-array heuristics
# ---------------------------------------------------------------------------

def _first_has(payload: Any, *keys: str) -> bool:
    first = _first(payload)
    return isinstance(first, dict) and all(k in first for k in keys)


def _dated_rows(dates: list[str]) -> list[Row]:
    counts = _count_by(dates)
    return [{"date": d, "count": counts[d]} for d in sorted(counts)]


def _build_dated_state_items(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows = _dated_rows([
        truncate_to_date(item.get("created_at")) if isinstance(item, dict) else "unknown"
        for item in payload
    ])
    return _spec(
        ctx, ChartType.LINE, rows, "date", ["count"],
        f"{len(payload)} dated items grouped into {len(rows)} days",
    )


def _commit_date(item: Any) -> str:
    date = get_by_path(item, "commit.author.date")
    if not isinstance(date, str):
        raise KeyError("commit.author.date")
    return truncate_to_date(date)


def _build_commit_list(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows = _dated_rows([_commit_date(item) for item in payload])
    return _spec(
        ctx, ChartType.LINE, rows, "date", ["count"],
        f"{len(payload)} commits grouped into {len(rows)} days",
        labels={"count": "Commits"},
    )


def _author_id(author: Any) -> str:
    if isinstance(author, dict):
        return str(author.get("login") or author.get("name") or "unknown")
    return str(author) if author is not None else "unknown"


def _build_contributor_totals(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    ranked = sorted(
        (item for item in payload if isinstance(item, dict)),
        key=lambda item: to_number(item.get("total")),
        reverse=True,
    )[:TOP_CONTRIBUTORS]
    rows: list[Row] = [
        {"contributor": _author_id(item.get("author")), "commits": to_number(item.get("total"))}
        for item in ranked
    ]
    return _spec(
        ctx, ChartType.BAR, rows, "contributor", ["commits"],
        f"{len(payload)} contributors, showing top {len(rows)} by commits",
    )


def _build_weekly_activity(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows: list[Row] = [
        {"week": unix_to_date(item.get("week")), "commits": to_number(item.get("total"))}
        for item in payload
        if isinstance(item, dict)
    ]
    return _spec(
        ctx, ChartType.AREA, rows, "week", ["commits"],
        f"{len(rows)} weeks of commit activity plotted as an area chart",
    )


def _is_code_frequency(payload: Any) -> bool:
    first = _first(payload)
    return _is_number_triple(first) and not _is_day_index(first[0])


def _build_code_frequency(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    rows: list[Row] = [
        {"week": unix_to_date(ts), "additions": adds, "deletions": abs(dels)}
        for ts, adds, dels in (item for item in payload if _is_number_triple(item))
    ]
    return _spec(
        ctx, ChartType.BAR, rows, "week", ["additions", "deletions"],
        f"{len(rows)} weeks of code frequency (additions vs deletions)",
    )


def _is_punch_card(payload: Any) -> bool:
    first = _first(payload)
    return _is_number_triple(first) and _is_day_index(first[0])


def _build_punch_card(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    totals = {day: 0 for day in WEEKDAYS}
    for item in payload:
        if not _is_number_triple(item) or not _is_day_index(item[0]):
            continue
        totals[WEEKDAYS[int(item[0])]] += item[2]
    rows: list[Row] = [{"day": day, "commits": n} for day, n in totals.items()]
    return _spec(
        ctx, ChartType.BAR, rows, "day", ["commits"],
        f"{len(payload)} punch-card cells summed into 7 weekdays",
    )


# ---------------------------------------------------------------------------
# 7. Terminal fallback
# ---------------------------------------------------------------------------

def _always(payload: Any) -> bool:
    return True


def _build_kpi(payload: Any, ctx: ClassificationContext) -> ChartSpecification:
    value = ctx.current_value if ctx.current_value is not None else 0
    return _spec(
        ctx, ChartType.KPI, [{"label": ctx.metric_name, "value": value}],
        "label", ["value"],
        "No known data shape matched; showing the current value as a KPI",
        labels={"value": ctx.metric_name},
    )


KPI_FALLBACK = ShapeRule(
    "kpi_fallback", "Single current value", _always, _build_kpi, ChartType.KPI,
)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

def default_rules(deny_list: tuple[str, ...] = DEFAULT_DENY_LIST) -> list[ShapeRule]:
    """The priority-ordered rule table.  First match wins."""
    return [
        ShapeRule("columnar_table", "columns + results rows",
                  _is_columnar_table, _build_columnar_table, ChartType.LINE),
        ShapeRule("column_vector", "columnData value list",
                  _is_column_vector, _build_column_vector, ChartType.LINE),
        ShapeRule("flat_numeric_object", "object of numeric fields",
                  partial(_is_flat_numeric_object, deny_list=deny_list),
                  partial(_build_flat_numeric_object, deny_list=deny_list),
                  ChartType.PIE),
        ShapeRule("dual_array_participation", "all/owner weekly arrays",
                  _is_dual_array, _build_dual_array, ChartType.AREA),
        ShapeRule("wrapped_run_list", "workflow_runs with conclusions",
                  _is_wrapped_run_list, _build_wrapped_run_list, ChartType.PIE),
        ShapeRule("dated_state_items", "items with created_at and state",
                  lambda p: _first_has(p, "created_at", "state"),
                  _build_dated_state_items, ChartType.LINE),
        ShapeRule("commit_list", "commits with sha and commit",
                  lambda p: _first_has(p, "sha", "commit"),
                  _build_commit_list, ChartType.LINE),
        ShapeRule("contributor_totals", "contributors with author and total",
                  lambda p: _first_has(p, "author", "total"),
                  _build_contributor_totals, ChartType.BAR),
        ShapeRule("weekly_activity", "weeks with total and days",
                  lambda p: _first_has(p, "week", "total", "days"),
                  _build_weekly_activity, ChartType.AREA),
        ShapeRule("code_frequency", "[timestamp, additions, deletions] tuples",
                  _is_code_frequency, _build_code_frequency, ChartType.BAR),
        ShapeRule("punch_card", "[day, hour, count] tuples",
                  _is_punch_card, _build_punch_card, ChartType.BAR),
        KPI_FALLBACK,
    ]


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

@dataclass
class ShapeClassifier:
    """Ordered predicate/builder dispatch over raw metric payloads."""

    deny_list: tuple[str, ...] = DEFAULT_DENY_LIST
    palette_size: int = 5
    rules: list[ShapeRule] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.rules:
            self.rules = default_rules(tuple(self.deny_list))
        if self.rules[-1].name != KPI_FALLBACK.name:
            self.rules.append(KPI_FALLBACK)

    @property
    def rule_names(self) -> list[str]:
        return [r.name for r in self.rules]

    def match(self, payload: Any) -> ShapeRule:
        """Return the first rule whose predicate accepts *payload*."""
        for rule in self.rules:
            if self._safe_predicate(rule, payload):
                return rule
        return KPI_FALLBACK

    def classify(
        self,
        payload: Any,
        metric_name: str = "Value",
        current_value: Optional[float] = None,
    ) -> ChartSpecification:
        """Build a chart spec from the first matching rule.  Never raises."""
        ctx = ClassificationContext(
            metric_name=metric_name or "Value",
            current_value=current_value,
            palette_size=self.palette_size,
        )
        for rule in self.rules:
            if not self._safe_predicate(rule, payload):
                continue
            try:
                spec = rule.builder(payload, ctx)
            except (
                SpecificationError, ArithmeticError, KeyError, TypeError, ValueError, AttributeError,
            ) as exc:
                logger.debug("Rule %s matched but could not build: %s", rule.name, exc)
                continue
            logger.debug("Payload classified by rule %s", rule.name)
            return spec
        return _build_kpi(payload, ctx)

    @staticmethod
    def _safe_predicate(rule: ShapeRule, payload: Any) -> bool:
        try:
            return bool(rule.predicate(payload))
        except (ArithmeticError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.debug("Predicate %s rejected payload: %s", rule.name, exc)
            return False


def classify(
    payload: Any,
    metric_name: str = "Value",
    current_value: Optional[float] = None,
    *,
    deny_list: tuple[str, ...] = DEFAULT_DENY_LIST,
) -> ChartSpecification:
    """Module-level convenience wrapper around ``ShapeClassifier.classify``."""
    return ShapeClassifier(deny_list=deny_list).classify(payload, metric_name, current_value)
