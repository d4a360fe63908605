"""Error taxonomy for the chart transformation core.

Only the facade decides what to do with these; nothing above
``ChartTransformer.transform`` ever sees them raised.
"""

from __future__ import annotations


class MetricChartError(Exception):
    """Base class for every error raised by metricchart."""


class SpecificationError(MetricChartError, ValueError):
    """A producer tried to build a chart specification that breaks the contract."""


class ProviderError(MetricChartError):
    """The language-model provider failed (network, auth, rate limit, bad response)."""


class ExhaustionError(MetricChartError):
    """The tool loop stopped without ever calling the finalization tool."""

    def __init__(self, message: str, *, tool_calls: int = 0) -> None:
        super().__init__(message)
        self.tool_calls = tool_calls
