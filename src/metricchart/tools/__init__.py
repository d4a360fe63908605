"""Model-callable tools: pure executors, their contracts and the dispatcher."""

from .contracts import FINAL_TOOL, TOOL_REGISTRY, ToolContract, ToolName, ToolParameter, openai_tools
from .dispatcher import ToolCallStatus, ToolOutcome, dispatch
from .executors import (
    combine_arrays,
    detect_pattern,
    extract_labels,
    extract_values,
    flatten_nested,
    format_chart_data,
    get_keys,
    inspect_data,
    sort_by_date,
)

__all__ = [
    "FINAL_TOOL",
    "TOOL_REGISTRY",
    "ToolCallStatus",
    "ToolContract",
    "ToolName",
    "ToolOutcome",
    "ToolParameter",
    "combine_arrays",
    "detect_pattern",
    "dispatch",
    "extract_labels",
    "extract_values",
    "flatten_nested",
    "format_chart_data",
    "get_keys",
    "inspect_data",
    "openai_tools",
    "sort_by_date",
]
