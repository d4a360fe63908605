"""Tool contract definitions and registry.

Each tool the model may call is described by a ``ToolContract`` that
specifies its name, description and parameter schema.  ``TOOL_REGISTRY``
maps tool names → contracts; ``openai_tools()`` renders the whole registry
in the function-tool format chat completion APIs expect.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..models import ChartType


class ToolName(str, Enum):
    """The closed set of tools exposed to the model."""
    DETECT_PATTERN = "detect_pattern"
    INSPECT_DATA = "inspect_data"
    FLATTEN_NESTED = "flatten_nested"
    COMBINE_ARRAYS = "combine_arrays"
    SORT_BY_DATE = "sort_by_date"
    EXTRACT_VALUES = "extract_values"
    EXTRACT_LABELS = "extract_labels"
    GET_KEYS = "get_keys"
    FORMAT_CHART_DATA = "format_chart_data"


FINAL_TOOL = ToolName.FORMAT_CHART_DATA


# ---------------------------------------------------------------------------
# Parameter & contract models
# ---------------------------------------------------------------------------

class ToolParameter(BaseModel):
    """Schema for a single parameter of a tool."""
    name: str
    type: Optional[str] = None      # JSON-schema type; None accepts any JSON value
    description: str = ""
    required: bool = True
    enum: list[str] | None = None   # allowed values (if constrained)
    items: dict[str, Any] | None = None
    properties: dict[str, Any] | None = None

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.type:
            schema["type"] = self.type
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.items is not None:
            schema["items"] = self.items
        if self.properties is not None:
            schema["properties"] = self.properties
        return schema


class ToolContract(BaseModel):
    """JSON-schema-style contract for one model-callable tool."""
    name: ToolName
    description: str = ""
    parameters: list[ToolParameter] = Field(default_factory=list)
    terminal: bool = False          # calling it successfully ends the loop

    @property
    def param_names(self) -> list[str]:
        return [p.name for p in self.parameters]

    @property
    def accepts_data(self) -> bool:
        return "data" in self.param_names

    def to_openai_tool(self) -> dict[str, Any]:
        """Render as an OpenAI ``{"type": "function", ...}`` tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_json_schema() for p in self.parameters},
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


# ---------------------------------------------------------------------------
# Tool registry
# ---------------------------------------------------------------------------

TOOL_REGISTRY: dict[str, ToolContract] = {}


def register_tool(contract: ToolContract) -> ToolContract:
    """Register a tool contract in the global registry."""
    TOOL_REGISTRY[contract.name.value] = contract
    return contract


def openai_tools() -> list[dict[str, Any]]:
    return [c.to_openai_tool() for c in TOOL_REGISTRY.values()]


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

_DATA = ToolParameter(
    name="data",
    description="The data to work on. Omit it to use the metric payload.",
    required=False,
)

_ROW = {"type": "object", "additionalProperties": {"type": ["string", "number"]}}

# -- Discovery --------------------------------------------------------------

DETECT_PATTERN = register_tool(ToolContract(
    name=ToolName.DETECT_PATTERN,
    description=(
        "RECOMMENDED FIRST STEP: detect the data format and suggest a chart type. "
        "Identifies time-series, categorical and multi-series data and common "
        "formats such as columns+results tables."
    ),
    parameters=[_DATA],
))

INSPECT_DATA = register_tool(ToolContract(
    name=ToolName.INSPECT_DATA,
    description=(
        "Describe the structure of the data with samples and key analysis: "
        "a type sketch, sample rows, and which keys look like dates, "
        "categories or numbers."
    ),
    parameters=[_DATA],
))

GET_KEYS = register_tool(ToolContract(
    name=ToolName.GET_KEYS,
    description=(
        "List the field names of the object at a path (an array of objects is "
        "described by its first element), grouped into numeric, string, "
        "time-series and category keys, with an x-axis recommendation."
    ),
    parameters=[
        _DATA,
        ToolParameter(name="path", type="string", required=False,
                      description="Dot path to the object; empty for the root"),
    ],
))

# -- Extraction -------------------------------------------------------------

EXTRACT_VALUES = register_tool(ToolContract(
    name=ToolName.EXTRACT_VALUES,
    description=(
        "Extract numeric values at a dot path. Use * for every array element, "
        'e.g. "results.*.count". Returns values with count, min, max and sum.'
    ),
    parameters=[
        _DATA,
        ToolParameter(name="path", type="string", description="Dot path to the values"),
    ],
))

EXTRACT_LABELS = register_tool(ToolContract(
    name=ToolName.EXTRACT_LABELS,
    description=(
        "Extract string labels at a dot path, e.g. \"*.created_at\" or "
        '"results.*.name". Use for x-axis labels, categories or dates.'
    ),
    parameters=[
        _DATA,
        ToolParameter(name="path", type="string", description="Dot path to the labels"),
    ],
))

# -- Reshaping --------------------------------------------------------------

FLATTEN_NESTED = register_tool(ToolContract(
    name=ToolName.FLATTEN_NESTED,
    description=(
        "Convert nested structures (columns+results tables, arrays of arrays, "
        "arrays of objects) into flat chart rows."
    ),
    parameters=[
        _DATA,
        ToolParameter(
            name="options", type="object", required=False,
            description="Optional paths; common formats are detected automatically",
            properties={
                "xPath": {"type": "string", "description": "Path to the x value in each item"},
                "yPaths": {"type": "array", "items": {"type": "string"}},
                "xKey": {"type": "string", "description": "Output key for x (default 'x')"},
                "yKeys": {"type": "array", "items": {"type": "string"}},
            },
        ),
    ],
))

COMBINE_ARRAYS = register_tool(ToolContract(
    name=ToolName.COMBINE_ARRAYS,
    description=(
        "Zip a label array with one or more value series into chart rows "
        "{label, <key>: value}. Every series must have one value per label."
    ),
    parameters=[
        ToolParameter(name="labels", type="array", items={"type": "string"},
                      description="Labels / categories for the x-axis"),
        ToolParameter(
            name="valueSets", type="array",
            description="One or more {key, values} series",
            items={
                "type": "object",
                "properties": {
                    "key": {"type": "string"},
                    "values": {"type": "array", "items": {"type": "number"}},
                },
                "required": ["key", "values"],
            },
        ),
    ],
))

SORT_BY_DATE = register_tool(ToolContract(
    name=ToolName.SORT_BY_DATE,
    description=(
        "Sort chart rows chronologically by a date column. Rows whose date "
        "cannot be parsed keep their order at the end."
    ),
    parameters=[
        ToolParameter(name="data", type="array", items=_ROW, description="Chart rows to sort"),
        ToolParameter(name="dateKey", type="string", description="Key holding the date"),
    ],
))

# -- Finalization -----------------------------------------------------------

FORMAT_CHART_DATA = register_tool(ToolContract(
    name=ToolName.FORMAT_CHART_DATA,
    description=(
        "FINAL STEP: submit the chart. Call this once the rows are ready; "
        "colours and labels are assigned automatically."
    ),
    terminal=True,
    parameters=[
        ToolParameter(name="chartType", type="string",
                      enum=[t.value for t in ChartType],
                      description="The type of chart to create"),
        ToolParameter(name="rows", type="array", items=_ROW,
                      description='Data points with consistent keys, e.g. [{"month": "Jan", "value": 100}]'),
        ToolParameter(name="categoryKey", type="string",
                      description='Key for the x-axis / categories, e.g. "date"'),
        ToolParameter(name="seriesKeys", type="array", items={"type": "string"},
                      description='Keys holding the plotted numbers, e.g. ["value"]'),
        ToolParameter(name="reasoning", type="string",
                      description="Why this chart type and shape were chosen"),
        ToolParameter(name="title", type="string", required=False),
        ToolParameter(name="stacked", type="boolean", required=False),
    ],
))
