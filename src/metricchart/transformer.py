"""Transformation facade — one call from a metric to a chart spec.

``ChartTransformer.transform`` tries the tool loop first and falls back
to the deterministic shape classifier exactly once.  It never raises for
provider or loop failures: the result always carries a chart, and
``success``/``source``/``error`` say how it was produced.  A plain
mapping is validated into a ``Metric`` first; one that is not a valid
metric raises pydantic's ``ValidationError`` before any work starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Union

from .agent import ChartAgent
from .classifier import ShapeClassifier
from .config import Settings
from .errors import ExhaustionError, ProviderError
from .llm import ModelClient, OpenAIToolClient
from .models import ChartSpecification, Metric, TransformResult

logger = logging.getLogger("metricchart.transformer")

MetricLike = Union[Metric, Mapping[str, Any]]


def _as_metric(metric: MetricLike) -> Metric:
    return metric if isinstance(metric, Metric) else Metric.model_validate(metric)


class ChartTransformer:
    """Produces a ``TransformResult`` for one metric at a time.

    With no *client* an ``OpenAIToolClient`` is built from *settings* when
    an API key or base URL is configured; otherwise only the classifier
    runs.  Instances hold no per-request state.
    """

    def __init__(
        self,
        client: ModelClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.classifier = ShapeClassifier(
            deny_list=self.settings.flat_object_deny_list,
            palette_size=self.settings.palette_size,
        )
        if client is None and self.settings.agent_enabled:
            client = OpenAIToolClient(
                api_key=self.settings.api_key,
                model=self.settings.provider_model,
                base_url=self.settings.base_url,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        self.client = client if self.settings.use_agent else None

    @property
    def agent(self) -> Optional[ChartAgent]:
        if self.client is None:
            return None
        return ChartAgent(
            self.client,
            max_iterations=self.settings.max_iterations,
            palette_size=self.settings.palette_size,
            deny_list=self.settings.flat_object_deny_list,
        )

    def classify(self, metric: MetricLike) -> ChartSpecification:
        """Classifier-only path; never touches the model."""
        m = _as_metric(metric)
        return self.classifier.classify(m.endpoint_config, m.name, m.current_value)

    async def transform(self, metric: MetricLike, user_hint: str | None = None) -> TransformResult:
        """Chart for *metric*.  Only an invalid metric mapping raises."""
        m = _as_metric(metric)
        agent = self.agent
        if agent is None:
            logger.debug("No model client configured; classifying %r directly", m.name)
            return TransformResult(
                success=True, data=self.classify(m), source="classifier",
            )

        try:
            outcome = await agent.run(m, user_hint)
        except Exception as exc:  # custom ModelClient implementations
            logger.warning("Chart loop crashed for %r: %s", m.name, exc)
            return self._fallback(m, f"{type(exc).__name__}: {exc}", 0)

        try:
            spec = outcome.require_spec()
        except (ExhaustionError, ProviderError) as exc:
            return self._fallback(m, str(exc), outcome.tool_calls)

        return TransformResult(
            success=True, data=spec, tool_calls=outcome.tool_calls, source="agent",
        )

    def _fallback(self, metric: Metric, error: str, tool_calls: int) -> TransformResult:
        logger.warning("Falling back to shape classifier for %r: %s", metric.name, error)
        spec = self.classify(metric)
        return TransformResult(
            success=False,
            data=spec.with_reasoning(f"Fallback ({error}): {spec.reasoning}"),
            error=error,
            tool_calls=tool_calls,
            source="classifier",
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

async def transform(
    metric: MetricLike,
    user_hint: str | None = None,
    *,
    client: ModelClient | None = None,
    settings: Settings | None = None,
) -> TransformResult:
    """Transform one metric with a throwaway ``ChartTransformer``."""
    return await ChartTransformer(client=client, settings=settings).transform(metric, user_hint)


def transform_sync(
    metric: MetricLike,
    user_hint: str | None = None,
    *,
    client: ModelClient | None = None,
    settings: Settings | None = None,
) -> TransformResult:
    """Blocking wrapper around ``transform`` for scripts and the CLI."""
    return asyncio.run(transform(metric, user_hint, client=client, settings=settings))
