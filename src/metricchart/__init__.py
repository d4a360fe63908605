"""metricchart — canonical chart specifications from heterogeneous metric JSON."""

__version__ = "0.1.0"

from .classifier import ShapeClassifier, ShapeRule, classify
from .config import Settings
from .errors import ExhaustionError, MetricChartError, ProviderError, SpecificationError
from .models import (
    CenterLabel,
    ChartSpecification,
    ChartType,
    Metric,
    SeriesStyle,
    TransformResult,
)
from .transformer import ChartTransformer, transform, transform_sync

__all__ = [
    "CenterLabel",
    "ChartSpecification",
    "ChartTransformer",
    "ChartType",
    "ExhaustionError",
    "Metric",
    "MetricChartError",
    "ProviderError",
    "SeriesStyle",
    "Settings",
    "ShapeClassifier",
    "ShapeRule",
    "SpecificationError",
    "TransformResult",
    "classify",
    "transform",
    "transform_sync",
]
