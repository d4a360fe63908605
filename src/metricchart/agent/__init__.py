"""Model-driven chart production."""

from .loop import AgentOutcome, ChartAgent, LoopState
from .prompts import SYSTEM_PROMPT, build_metric_prompt

__all__ = ["AgentOutcome", "ChartAgent", "LoopState", "SYSTEM_PROMPT", "build_metric_prompt"]
