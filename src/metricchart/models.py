"""Canonical chart model and the records that surround it.

``ChartSpecification`` is the one output contract shared by the shape
classifier and the tool loop.  It is immutable and validates itself on
construction; an invalid spec raises ``SpecificationError`` instead of
pydantic's ``ValidationError`` so callers only need to know one error type.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import SpecificationError
from .normalize import color_token, humanize_label, is_number, slugify

CellValue = Union[str, int, float]
Row = dict[str, CellValue]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ChartType(str, Enum):
    """The closed set of chart types a renderer must understand."""
    LINE = "line"
    BAR = "bar"
    AREA = "area"
    PIE = "pie"
    RADAR = "radar"
    RADIAL = "radial"
    KPI = "kpi"

    @property
    def single_series(self) -> bool:
        return self in (ChartType.PIE, ChartType.RADIAL)


# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SeriesStyle(_CamelModel):
    """Display label and colour token for one series (or one pie slice)."""
    display_label: str
    color_token: str


class CenterLabel(_CamelModel):
    """Value shown in the middle of a pie/radial chart."""
    value: CellValue
    label: str


def build_series_style(
    keys: list[str],
    labels: dict[str, str] | None = None,
    *,
    palette_size: int = 5,
) -> dict[str, SeriesStyle]:
    """Assign palette colours to *keys* by position."""
    labels = labels or {}
    return {
        key: SeriesStyle(
            display_label=labels.get(key, humanize_label(key)),
            color_token=color_token(i, palette_size),
        )
        for i, key in enumerate(keys)
    }


def build_category_style(
    rows: list[Row],
    category_key: str,
    *,
    palette_size: int = 5,
) -> dict[str, SeriesStyle]:
    """One colour per category value, used by pie and radial charts."""
    style: dict[str, SeriesStyle] = {}
    for row in rows:
        category = str(row.get(category_key, ""))
        slug = slugify(category)
        if slug in style:
            continue
        style[slug] = SeriesStyle(
            display_label=category,
            color_token=color_token(len(style), palette_size),
        )
    return style


# ---------------------------------------------------------------------------
# Chart specification
# ---------------------------------------------------------------------------

class ChartSpecification(_CamelModel):
    """Renderer-agnostic description of a chart.

    ``rows`` keep insertion order, which is the rendering order.  Only the
    first entry of ``series_keys`` is plotted for pie and radial charts.
    """

    chart_type: ChartType
    rows: list[dict[str, Any]]
    category_key: str
    series_keys: list[str]
    series_style: dict[str, SeriesStyle] = Field(default_factory=dict)
    category_style: dict[str, SeriesStyle] = Field(default_factory=dict)

    title: Optional[str] = None
    description: Optional[str] = None
    x_axis_label: Optional[str] = None
    y_axis_label: Optional[str] = None
    show_legend: bool = True
    show_tooltip: bool = True
    stacked: bool = False
    center_label: Optional[CenterLabel] = None
    reasoning: str = ""

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise SpecificationError(describe_validation_error(exc)) from exc

    @model_validator(mode="after")
    def _check_invariants(self) -> "ChartSpecification":
        if not self.series_keys:
            raise ValueError("seriesKeys must not be empty")
        if self.category_key in self.series_keys:
            raise ValueError(
                f"categoryKey '{self.category_key}' must not appear in seriesKeys"
            )
        if self.chart_type == ChartType.KPI and len(self.rows) != 1:
            raise ValueError(
                f"kpi charts need exactly one row, got {len(self.rows)}"
            )
        for i, row in enumerate(self.rows):
            for key, value in row.items():
                if not (isinstance(value, str) or is_number(value)):
                    raise ValueError(
                        f"row {i} field '{key}' must be a string or number, "
                        f"got {type(value).__name__}"
                    )
            missing = [k for k in self.series_keys if k not in row]
            if missing:
                raise ValueError(f"row {i} is missing series keys {missing}")
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChartSpecification":
        """Build from a camelCase (or snake_case) mapping."""
        return cls(**data)

    @property
    def plotted_keys(self) -> list[str]:
        if self.chart_type.single_series:
            return self.series_keys[:1]
        return list(self.series_keys)

    def with_reasoning(self, reasoning: str) -> "ChartSpecification":
        return self.model_copy(update={"reasoning": reasoning})

    def to_dict(self) -> dict[str, Any]:
        """camelCase JSON form handed to the rendering layer."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or str(exc)


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------

class Metric(_CamelModel):
    """A metric as supplied by the persistence layer."""

    name: str
    description: Optional[str] = None
    unit: Optional[str] = None
    metric_type: Optional[str] = None
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    endpoint_config: Any = None


class TransformResult(_CamelModel):
    """What the facade hands back: always a spec, plus how it was produced."""

    success: bool
    data: Optional[ChartSpecification] = None
    error: Optional[str] = None
    tool_calls: int = 0
    source: Literal["agent", "classifier"] = "classifier"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
