"""Tool dispatch: validate a model's tool call and run the executor.

``dispatch`` never raises.  Unknown tool names, arguments that fail
validation and chart specs that break the contract all come back as a
``ToolOutcome`` with ``status=FAILED`` and an error string; the loop
reports that string to the model as the tool result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..classifier import DEFAULT_DENY_LIST
from ..errors import SpecificationError
from ..models import ChartSpecification, ChartType, describe_validation_error
from ..paths import MISSING
from . import executors
from .contracts import TOOL_REGISTRY, ToolName

logger = logging.getLogger("metricchart.tools.dispatcher")


class ToolCallStatus(str, Enum):
    """Outcome of a single tool invocation."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"     # unknown tool name


class ToolOutcome(BaseModel):
    """Result of dispatching one tool call."""

    tool_name: str
    status: ToolCallStatus
    result: Any = None
    error: Optional[str] = None
    spec: Optional[ChartSpecification] = None

    @property
    def ok(self) -> bool:
        return self.status == ToolCallStatus.SUCCESS

    @property
    def finalized(self) -> bool:
        return self.ok and self.spec is not None

    def payload(self) -> Any:
        """What the model gets to read back as the tool result."""
        if not self.ok:
            return {"error": self.error}
        if self.spec is not None:
            return {"success": True, "chart": self.spec.to_dict()}
        return self.result


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------

class _Args(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DataArgs(_Args):
    data: Any = None


class PathArgs(_Args):
    data: Any = None
    path: str


class KeysArgs(_Args):
    data: Any = None
    path: Optional[str] = None


class FlattenOptions(_Args):
    x_path: Optional[str] = None
    y_paths: list[str] = Field(default_factory=list)
    x_key: str = "x"
    y_keys: list[str] = Field(default_factory=list)


class FlattenArgs(_Args):
    data: Any = None
    options: FlattenOptions = Field(default_factory=FlattenOptions)


class ValueSet(_Args):
    key: str
    values: list[Union[int, float]]


class CombineArgs(_Args):
    labels: list[Union[str, int, float]]
    value_sets: list[ValueSet]


class SortArgs(_Args):
    rows: list[dict[str, Any]] = Field(
        validation_alias=AliasChoices("data", "rows", "chartData"),
    )
    date_key: str


class FormatArgs(_Args):
    chart_type: ChartType
    rows: list[dict[str, Any]] = Field(
        validation_alias=AliasChoices("rows", "chartData", "data"),
    )
    category_key: str = Field(
        validation_alias=AliasChoices("categoryKey", "xAxisKey", "category_key"),
    )
    series_keys: list[str] = Field(
        validation_alias=AliasChoices("seriesKeys", "dataKeys", "series_keys"),
    )
    reasoning: str = ""
    title: Optional[str] = None
    stacked: Optional[bool] = None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolContext:
    """Per-request settings the handlers need besides their arguments."""
    palette_size: int = 5
    deny_list: tuple[str, ...] = DEFAULT_DENY_LIST


Handler = Callable[[Any, ToolContext], Any]


def _format(args: FormatArgs, ctx: ToolContext) -> ChartSpecification:
    return executors.format_chart_data(
        args.chart_type, args.rows, args.category_key, args.series_keys,
        args.reasoning, palette_size=ctx.palette_size,
        title=args.title, stacked=args.stacked,
    )


def _flatten(args: FlattenArgs, ctx: ToolContext) -> dict[str, Any]:
    opts = args.options
    return executors.flatten_nested(
        args.data, x_path=opts.x_path, y_paths=opts.y_paths,
        x_key=opts.x_key, y_keys=opts.y_keys,
    )


def _combine(args: CombineArgs, ctx: ToolContext) -> dict[str, Any]:
    return executors.combine_arrays(
        args.labels, [vs.model_dump() for vs in args.value_sets],
    )


_HANDLERS: dict[ToolName, tuple[type[_Args], Handler]] = {
    ToolName.DETECT_PATTERN: (
        DataArgs, lambda a, ctx: executors.detect_pattern(a.data, deny_list=ctx.deny_list),
    ),
    ToolName.INSPECT_DATA: (DataArgs, lambda a, _: executors.inspect_data(a.data)),
    ToolName.GET_KEYS: (KeysArgs, lambda a, _: executors.get_keys(a.data, a.path)),
    ToolName.EXTRACT_VALUES: (PathArgs, lambda a, _: executors.extract_values(a.data, a.path)),
    ToolName.EXTRACT_LABELS: (PathArgs, lambda a, _: executors.extract_labels(a.data, a.path)),
    ToolName.FLATTEN_NESTED: (FlattenArgs, _flatten),
    ToolName.COMBINE_ARRAYS: (CombineArgs, _combine),
    ToolName.SORT_BY_DATE: (SortArgs, lambda a, _: executors.sort_by_date(a.rows, a.date_key)),
    ToolName.FORMAT_CHART_DATA: (FormatArgs, _format),
}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def _data_names(model_cls: type[_Args]) -> set[str]:
    """Every argument name that carries the data for *model_cls*."""
    names = {"data"}
    for field in model_cls.model_fields.values():
        alias = field.validation_alias
        if isinstance(alias, AliasChoices) and "data" in alias.choices:
            names.update(c for c in alias.choices if isinstance(c, str))
    return names


def dispatch(
    name: str,
    arguments: dict[str, Any] | None,
    *,
    bound_data: Any = MISSING,
    palette_size: int = 5,
    deny_list: tuple[str, ...] = DEFAULT_DENY_LIST,
) -> ToolOutcome:
    """Validate *arguments* and run the tool called *name*.

    *bound_data* is substituted for ``data`` when a data-taking tool is
    called without one, so the model does not have to echo the payload.
    Rows passed under another accepted name (``rows``, ``chartData``) count
    as supplied data.
    """
    contract = TOOL_REGISTRY.get(name)
    if contract is None:
        logger.debug("Unknown tool requested: %s", name)
        return ToolOutcome(
            tool_name=name,
            status=ToolCallStatus.SKIPPED,
            error=f"Unknown tool: {name}. Available tools: {', '.join(TOOL_REGISTRY)}",
        )

    params = dict(arguments or {})
    note = params.pop("raw_arguments", None)
    model_cls, handler = _HANDLERS[contract.name]
    if (
        contract.accepts_data
        and bound_data is not MISSING
        and not any(n in params for n in _data_names(model_cls))
    ):
        params["data"] = bound_data

    try:
        args = model_cls.model_validate(params)
    except ValidationError as exc:
        error = f"Invalid arguments for {name}: {describe_validation_error(exc)}"
        if note is not None:
            error += " (arguments were not valid JSON)"
        logger.debug("%s", error)
        return ToolOutcome(tool_name=name, status=ToolCallStatus.FAILED, error=error)

    try:
        result = handler(args, ToolContext(palette_size=palette_size, deny_list=tuple(deny_list)))
    except SpecificationError as exc:
        logger.debug("Tool %s rejected: %s", name, exc)
        return ToolOutcome(tool_name=name, status=ToolCallStatus.FAILED, error=str(exc))

    logger.debug("Tool %s succeeded", name)
    if isinstance(result, ChartSpecification):
        return ToolOutcome(tool_name=name, status=ToolCallStatus.SUCCESS, spec=result)
    return ToolOutcome(tool_name=name, status=ToolCallStatus.SUCCESS, result=result)
