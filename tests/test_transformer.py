"""Tests for the transformation facade and its classifier fallback."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from conftest import ScriptedClient, call
from metricchart.config import Settings
from metricchart.models import ChartType, Metric
from metricchart.transformer import ChartTransformer, transform, transform_sync

GOOD_FORMAT = call(
    "format_chart_data",
    chartType="bar",
    rows=[{"day": "Mon", "commits": 3}],
    categoryKey="day",
    seriesKeys=["commits"],
    reasoning="weekday totals",
)


@pytest.fixture
def metric(participation_payload) -> Metric:
    return Metric(name="Participation", current_value=6, endpoint_config=participation_payload)


class CrashingClient:
    async def generate(self, system, messages, tools):
        raise RuntimeError("socket closed")


# ===================================================================
# 1. Agent path
# ===================================================================

class TestAgentPath:

    @pytest.mark.asyncio
    async def test_agent_success(self, metric):
        client = ScriptedClient([[call("inspect_data")], [GOOD_FORMAT]])
        result = await ChartTransformer(client=client).transform(metric, "by weekday")
        assert result.success
        assert result.source == "agent"
        assert result.tool_calls == 2
        assert result.error is None
        assert result.data.chart_type == ChartType.BAR
        assert "## User Request\nby weekday" in client.requests[0][0]["content"]

    @pytest.mark.asyncio
    async def test_max_iterations_from_settings(self, metric):
        client = ScriptedClient([[call("get_keys")]])
        settings = Settings(max_iterations=2)
        result = await ChartTransformer(client=client, settings=settings).transform(metric)
        assert len(client.requests) == 2
        assert result.tool_calls == 2
        assert "after 2 iterations" in result.error

    @pytest.mark.asyncio
    async def test_deny_list_reaches_agent_tools(self):
        client = ScriptedClient([[call("detect_pattern")], [GOOD_FORMAT]])
        settings = Settings(flat_object_deny_list=("Go",))
        metric = Metric(name="Languages", endpoint_config={"Go": 4})
        await ChartTransformer(client=client, settings=settings).transform(metric)
        tool_result = json.loads(client.requests[1][-1]["content"])
        assert tool_result["classifierRule"] == "kpi_fallback"


# ===================================================================
# 2. Fallback
# ===================================================================

class TestFallback:

    @pytest.mark.asyncio
    async def test_exhaustion_falls_back_to_classifier(self, metric):
        client = ScriptedClient([[call("inspect_data")]])
        result = await ChartTransformer(client=client).transform(metric)
        assert result.success is False
        assert result.source == "classifier"
        assert result.tool_calls == 10
        assert result.data.chart_type == ChartType.AREA
        assert result.data.reasoning.startswith("Fallback (did not produce")

    @pytest.mark.asyncio
    async def test_no_tool_calls_falls_back(self, metric):
        result = await ChartTransformer(client=ScriptedClient([[]])).transform(metric)
        assert result.success is False
        assert result.error == "model returned no tool calls"
        assert result.tool_calls == 0

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, metric, provider_down):
        result = await ChartTransformer(client=provider_down).transform(metric)
        assert result.success is False
        assert "RateLimitError" in result.error
        assert result.data.series_keys == ["all", "owner"]

    @pytest.mark.asyncio
    async def test_crashing_client_falls_back(self, metric):
        result = await ChartTransformer(client=CrashingClient()).transform(metric)
        assert result.success is False
        assert result.error == "RuntimeError: socket closed"
        assert result.tool_calls == 0
        assert result.data.reasoning.startswith("Fallback (RuntimeError: socket closed): ")

    @pytest.mark.asyncio
    async def test_fallback_kpi_for_unknown_payload(self):
        metric = Metric(name="Stars", current_value=42, endpoint_config={"weird": {"x": 1}})
        result = await ChartTransformer(client=ScriptedClient([[]])).transform(metric)
        assert result.data.chart_type == ChartType.KPI
        assert result.data.rows == [{"label": "Stars", "value": 42}]


# ===================================================================
# 3. Classifier-only configuration
# ===================================================================

class TestClassifierOnly:

    @pytest.mark.asyncio
    async def test_no_credentials_uses_classifier(self, metric):
        transformer = ChartTransformer(settings=Settings())
        assert transformer.client is None
        assert transformer.agent is None
        result = await transformer.transform(metric)
        assert result.success is True
        assert result.source == "classifier"
        assert result.tool_calls == 0

    @pytest.mark.asyncio
    async def test_use_agent_false_ignores_client(self, metric):
        client = ScriptedClient([[GOOD_FORMAT]])
        transformer = ChartTransformer(client=client, settings=Settings(use_agent=False))
        result = await transformer.transform(metric)
        assert result.source == "classifier"
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_out_of_range_timestamps_still_chart(self):
        metric = Metric(name="Churn", endpoint_config=[[10**20, 1, -2]])
        result = await ChartTransformer(settings=Settings()).transform(metric)
        assert result.success is True
        assert result.data.rows[0]["week"] == "unknown"

    @pytest.mark.asyncio
    async def test_invalid_metric_mapping_is_rejected(self):
        with pytest.raises(ValidationError):
            await ChartTransformer(settings=Settings()).transform({"endpointConfig": {"a": 1}})

    def test_classify_accepts_mapping(self):
        spec = ChartTransformer().classify({
            "name": "Languages",
            "endpointConfig": {"Python": 10, "Go": 4},
        })
        assert spec.chart_type == ChartType.PIE

    def test_deny_list_from_settings(self):
        settings = Settings(flat_object_deny_list=("Go",))
        spec = ChartTransformer(settings=settings).classify(
            Metric(name="Languages", endpoint_config={"Python": 10, "Go": 4})
        )
        assert [r["category"] for r in spec.rows] == ["Python"]


# ===================================================================
# 4. Module helpers
# ===================================================================

class TestModuleHelpers:

    @pytest.mark.asyncio
    async def test_transform_function(self, metric):
        result = await transform(metric, client=ScriptedClient([[GOOD_FORMAT]]))
        assert result.source == "agent"

    def test_transform_sync_with_dict_metric(self, posthog_payload):
        result = transform_sync(
            {"name": "Events", "endpointConfig": posthog_payload},
            settings=Settings(),
        )
        assert result.success
        assert result.data.chart_type == ChartType.LINE
        assert result.to_dict()["source"] == "classifier"
