"""Language-model access for the tool loop."""

from .client import (
    ModelClient,
    ModelResponse,
    ModelToolCall,
    OpenAIToolClient,
    parse_arguments,
)

__all__ = [
    "ModelClient",
    "ModelResponse",
    "ModelToolCall",
    "OpenAIToolClient",
    "parse_arguments",
]
