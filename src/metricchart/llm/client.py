"""Model-call capability used by the tool loop.

The loop only depends on the ``ModelClient`` protocol: one async
``generate()`` that takes the system prompt, the running conversation (in
chat-completions message format) and the tool schemas, and returns any
text plus the tool calls the model asked for.

``OpenAIToolClient`` implements it over ``openai.AsyncOpenAI``, so any
OpenAI-compatible endpoint works (OpenRouter, Azure, a local server) by
pointing ``base_url`` at it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from ..errors import ProviderError

logger = logging.getLogger("metricchart.llm.client")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.0
DEFAULT_MAX_TOKENS = 4096


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ModelToolCall(BaseModel):
    """One function call requested by the model."""
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        """The ``tool_calls`` entry echoed back in the assistant turn."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(
                    {k: v for k, v in self.arguments.items() if k != "raw_arguments"}
                ),
            },
        }


class ModelResponse(BaseModel):
    """Text and tool calls from a single model turn."""
    text: str = ""
    tool_calls: list[ModelToolCall] = Field(default_factory=list)


@runtime_checkable
class ModelClient(Protocol):
    async def generate(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> ModelResponse: ...


# ---------------------------------------------------------------------------
# OpenAI implementation
# ---------------------------------------------------------------------------

def parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    """Decode a tool call's JSON arguments.

    Anything that is not a JSON object becomes ``{"raw_arguments": raw}``
    so the dispatcher can report the problem to the model.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Tool arguments are not valid JSON: %.200s", raw)
        return {"raw_arguments": raw}
    if not isinstance(parsed, dict):
        return {"raw_arguments": raw}
    return parsed


class OpenAIToolClient:
    """``ModelClient`` over the chat completions API with function tools.

    The SDK's own retries are disabled; one failed request is one
    ``ProviderError`` and the caller decides what happens next.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is None:
            if not api_key and not base_url:
                raise ProviderError(
                    "No API key found. Pass api_key= or set METRICCHART_API_KEY / OPENAI_API_KEY."
                )
            ctor_kwargs: dict[str, Any] = {
                "api_key": api_key or "not-needed",
                "max_retries": 0,
            }
            if base_url:
                ctor_kwargs["base_url"] = base_url
            client = AsyncOpenAI(**ctor_kwargs)
        self._client = client

    async def generate(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[{"role": "system", "content": system}, *messages],
                tools=tools,
                tool_choice="auto",
            )
        except openai.OpenAIError as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        if not resp.choices:
            raise ProviderError("Provider returned no choices")
        message = resp.choices[0].message
        calls = [
            ModelToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=parse_arguments(tc.function.arguments),
            )
            for tc in (message.tool_calls or [])
            if getattr(tc, "function", None) is not None
        ]
        return ModelResponse(text=message.content or "", tool_calls=calls)
