"""
Completion backends for cvwriter.

The interview talks to the model only through `CompletionClient`. The one
built-in implementation speaks the OpenAI chat completions protocol, which
also covers local servers that imitate it.
"""

from cvwriter.api.base import CompletionClient
from cvwriter.api.factory import create_client
from cvwriter.api.openai_provider import OpenAIProvider
from cvwriter.api.types import (
    CompletionResponse,
    Tool,
    ToolUse,
    Usage,
)

__all__ = [
    # Base class
    "CompletionClient",
    # Factory
    "create_client",
    # Providers
    "OpenAIProvider",
    # Types
    "CompletionResponse",
    "Tool",
    "ToolUse",
    "Usage",
]
