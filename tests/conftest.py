"""Shared fixtures: a scripted ``ModelClient`` so no test touches the network."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from metricchart.errors import ProviderError
from metricchart.llm.client import ModelResponse, ModelToolCall


def call(name: str, call_id: str | None = None, **arguments: Any) -> ModelToolCall:
    """Shorthand for one scripted tool call."""
    return ModelToolCall(id=call_id or f"call_{name}", name=name, arguments=arguments)


class ScriptedClient:
    """Replays a fixed list of turns.

    Each turn is a list of ``ModelToolCall`` (an empty list means the model
    answered with text only) or an exception instance to raise.  When the
    script runs out the last turn is repeated.
    """

    def __init__(self, turns: list[Any]) -> None:
        self.turns = list(turns)
        self.requests: list[list[dict[str, Any]]] = []
        self.tools_seen: list[dict[str, Any]] = []
        self.systems: list[str] = []

    async def generate(self, system, messages, tools) -> ModelResponse:
        self.systems.append(system)
        self.requests.append(copy.deepcopy(messages))
        self.tools_seen = tools
        index = min(len(self.requests) - 1, len(self.turns) - 1)
        turn = self.turns[index]
        if isinstance(turn, BaseException):
            raise turn
        return ModelResponse(text="", tool_calls=list(turn))


@pytest.fixture
def scripted():
    return ScriptedClient


@pytest.fixture
def provider_down():
    return ScriptedClient([ProviderError("RateLimitError: slow down")])


@pytest.fixture
def participation_payload() -> dict[str, Any]:
    return {"all": [1, 2, 3], "owner": [0, 1, 0]}


@pytest.fixture
def posthog_payload() -> dict[str, Any]:
    return {
        "columns": ["date", "count"],
        "results": [["2025-01-01", 42], ["2025-01-02", "58"]],
    }
