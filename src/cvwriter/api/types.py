"""
Type definitions for chat completion interactions.

These types keep the rest of the system independent of the wire format
spoken by a particular backend.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing


@_dataclasses.dataclass
class Usage:
    """Token usage information."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@_dataclasses.dataclass
class ToolUse:
    """A structured invocation requested by the model.

    ``arguments`` is kept exactly as received; decoding is left to the
    response interpreter so that malformed payloads can be reported per stage.
    """

    id: str
    name: str
    arguments: str


@_dataclasses.dataclass
class Tool:
    """Operation definition offered to the model."""

    name: str
    description: str
    input_schema: dict[str, _typing.Any]

    def to_openai_format(self) -> dict[str, _typing.Any]:
        """Convert to OpenAI format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


@_dataclasses.dataclass
class CompletionResponse:
    """Complete response from a non-streaming API call."""

    id: str
    content: str
    stop_reason: str | None
    usage: Usage
    tool_uses: list[ToolUse] = _dataclasses.field(default_factory=list)

    @property
    def has_tool_use(self) -> bool:
        return len(self.tool_uses) > 0

    @property
    def shape(self) -> str:
        """Short description of what the response carries, for error reports."""
        if self.tool_uses:
            names = ", ".join(t.name or "<unnamed>" for t in self.tool_uses)
            return f"tool_calls[{names}]"
        if self.content:
            return "text"
        return "empty"
