"""Runtime settings for the transformer.

Settings are plain data and are always injected; nothing in the package
reads the environment at import time.  ``Settings.from_env()`` is the one
place environment variables are looked at.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .classifier import DEFAULT_DENY_LIST

DEFAULT_MODEL = "gpt-4o-mini"

ENV_MODEL = "METRICCHART_MODEL"
ENV_BASE_URL = "METRICCHART_BASE_URL"
ENV_MAX_ITERATIONS = "METRICCHART_MAX_ITERATIONS"
ENV_API_KEY = "METRICCHART_API_KEY"
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"


@dataclass
class Settings:
    """Provider and loop configuration."""

    provider_model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_iterations: int = 10
    temperature: float = 0.0
    max_tokens: int = 4096
    palette_size: int = 5
    flat_object_deny_list: tuple[str, ...] = field(default_factory=lambda: DEFAULT_DENY_LIST)
    use_agent: bool = True

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not 1 <= self.palette_size <= 5:
            raise ValueError(f"palette_size must be between 1 and 5, got {self.palette_size}")
        self.flat_object_deny_list = tuple(self.flat_object_deny_list)

    @property
    def agent_enabled(self) -> bool:
        """The tool loop runs only when it is wanted and a provider is reachable."""
        return self.use_agent and bool(self.api_key or self.base_url)

    def with_overrides(self, **changes: object) -> "Settings":
        """Copy with every non-``None`` value in *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        kwargs: dict[str, object] = {}
        if env.get(ENV_MODEL):
            kwargs["provider_model"] = env[ENV_MODEL]
        if env.get(ENV_BASE_URL):
            kwargs["base_url"] = env[ENV_BASE_URL]
        if env.get(ENV_MAX_ITERATIONS):
            kwargs["max_iterations"] = int(env[ENV_MAX_ITERATIONS])
        api_key = env.get(ENV_API_KEY) or env.get(ENV_OPENAI_API_KEY)
        if api_key:
            kwargs["api_key"] = api_key
        return cls(**kwargs)  # type: ignore[arg-type]
