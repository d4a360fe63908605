"""Tool-orchestration loop: the model-driven chart producer.

The model sees the metric and its payload, calls read-only tools to
understand and reshape the data, and ends the loop by calling
``format_chart_data`` with a valid spec.  Each model turn is one
iteration; the loop stops when:

1. ``format_chart_data`` succeeds → ``FINALIZED``.
2. The model answers without any tool call → ``NO_TOOL_CALLS``.
3. ``max_iterations`` turns pass without finalizing → ``EXHAUSTED``.
4. The provider fails → ``PROVIDER_ERROR``.

Tool failures (unknown names, bad arguments, an invalid chart) are sent
back to the model as tool results and never stop the loop.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..classifier import DEFAULT_DENY_LIST
from ..errors import ExhaustionError, ProviderError
from ..llm.client import ModelClient, ModelToolCall
from ..models import ChartSpecification, Metric
from ..tools import ToolOutcome, dispatch, openai_tools
from .prompts import SYSTEM_PROMPT, build_metric_prompt

logger = logging.getLogger("metricchart.agent.loop")

DEFAULT_MAX_ITERATIONS = 10


class LoopState(str, Enum):
    """Why the loop stopped."""
    RUNNING = "running"
    FINALIZED = "finalized"
    NO_TOOL_CALLS = "no_tool_calls"
    EXHAUSTED = "exhausted"
    PROVIDER_ERROR = "provider_error"


class AgentOutcome(BaseModel):
    """Everything the loop produced, finalized or not."""

    state: LoopState = LoopState.RUNNING
    spec: Optional[ChartSpecification] = None
    tool_calls: int = 0
    iterations: int = 0
    error: Optional[str] = None
    messages: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.state == LoopState.FINALIZED and self.spec is not None

    def require_spec(self) -> ChartSpecification:
        """Return the spec, or raise the error that explains its absence."""
        if self.finalized:
            return self.spec  # type: ignore[return-value]
        if self.state == LoopState.PROVIDER_ERROR:
            raise ProviderError(self.error or "provider error")
        raise ExhaustionError(self.error or "loop did not finalize", tool_calls=self.tool_calls)


class ChartAgent:
    """Drives a ``ModelClient`` through the chart tools.

    Usage::

        agent = ChartAgent(OpenAIToolClient(api_key="sk-..."))
        outcome = await agent.run(metric, "show weekly totals")
        if outcome.finalized:
            spec = outcome.spec
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        palette_size: int = 5,
        deny_list: tuple[str, ...] = DEFAULT_DENY_LIST,
    ) -> None:
        self.client = client
        self.max_iterations = max_iterations
        self.palette_size = palette_size
        self.deny_list = tuple(deny_list)

    async def run(self, metric: Metric, user_hint: str | None = None) -> AgentOutcome:
        """Run the loop for one metric.  Provider errors end up in the outcome."""
        outcome = AgentOutcome(
            messages=[{"role": "user", "content": build_metric_prompt(metric, user_hint)}],
        )
        tools = openai_tools()
        logger.info("Starting chart loop for metric %r", metric.name)

        while outcome.iterations < self.max_iterations:
            outcome.iterations += 1
            try:
                response = await self.client.generate(SYSTEM_PROMPT, outcome.messages, tools)
            except ProviderError as exc:
                logger.warning("Provider failed on iteration %d: %s", outcome.iterations, exc)
                outcome.state = LoopState.PROVIDER_ERROR
                outcome.error = str(exc)
                return outcome

            if not response.tool_calls:
                logger.info("Model stopped calling tools after %d iterations", outcome.iterations)
                outcome.state = LoopState.NO_TOOL_CALLS
                outcome.error = "model returned no tool calls"
                return outcome

            outcome.tool_calls += len(response.tool_calls)
            outcome.messages.append({
                "role": "assistant",
                "content": response.text or None,
                "tool_calls": [call.to_message() for call in response.tool_calls],
            })

            for call in response.tool_calls:
                result = self._execute(call, metric)
                if result.finalized:
                    logger.info(
                        "Chart finalized after %d iterations and %d tool calls",
                        outcome.iterations, outcome.tool_calls,
                    )
                    outcome.state = LoopState.FINALIZED
                    outcome.spec = result.spec
                    return outcome
                outcome.messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(result.payload(), default=str),
                })

        outcome.state = LoopState.EXHAUSTED
        outcome.error = (
            f"did not produce a valid chart format after {self.max_iterations} iterations"
        )
        logger.info("Chart loop exhausted for metric %r", metric.name)
        return outcome

    def _execute(self, call: ModelToolCall, metric: Metric) -> ToolOutcome:
        logger.debug("Dispatching %s(%s)", call.name, ", ".join(call.arguments))
        return dispatch(
            call.name,
            call.arguments,
            bound_data=metric.endpoint_config,
            palette_size=self.palette_size,
            deny_list=self.deny_list,
        )
