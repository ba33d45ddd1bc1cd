"""
Abstract base class for completion clients.

Every backend the interviewer can talk to implements this interface.
"""

from __future__ import annotations

import abc as _abc
import typing as _typing

import cvwriter.api.types as types
import cvwriter.constants as _constants


class CompletionClient(_abc.ABC):
    """
    Abstract base for chat completion backends.

    The model identifier and credential are bound when the client is built;
    each call supplies the messages, the operations on offer and an output
    size hint.
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'openai')."""
        ...

    @property
    @_abc.abstractmethod
    def model(self) -> str:
        """Current model being used."""
        ...

    @_abc.abstractmethod
    async def complete(
        self,
        messages: list[dict[str, _typing.Any]],
        *,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> types.CompletionResponse:
        """
        Send messages and get a complete response (non-streaming).

        Args:
            messages: Conversation messages in provider-agnostic format
                (roles: system, user, assistant, tool_result).
            tools: Operations the model may invoke.
            max_tokens: Maximum tokens in the response.

        Returns:
            Complete response with content, invocations and usage info.

        Raises:
            TransportError: If no usable response was obtained.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release any held resources."""
        pass
