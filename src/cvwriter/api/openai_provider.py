"""
OpenAI-compatible chat completions client.

Talks to ``/v1/chat/completions`` on OpenAI or any server that speaks the
same protocol. Only non-streaming requests are made.
"""

from __future__ import annotations

import json as _json
import logging as _logging
import typing as _typing

import httpx as _httpx

import cvwriter.api.base as base
import cvwriter.api.types as types
import cvwriter.constants as _constants
import cvwriter.errors as _errors

_logger = _logging.getLogger(__name__)


class OpenAIProvider(base.CompletionClient):
    """
    OpenAI chat completions client.

    Any failure to obtain a usable response (connection problems, timeouts,
    non-2xx status, undecodable body) is raised as TransportError so the
    caller can tell "nothing happened" apart from "the model answered badly".
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = _constants.DEFAULT_MODEL,
        base_url: str = _constants.DEFAULT_BASE_URL,
        timeout: float = 60.0,
        *,
        transport: _httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Bearer credential. May be None for local servers.
            model: Model identifier sent with every request.
            base_url: Server root; ``/v1/chat/completions`` is appended.
            timeout: Request timeout in seconds.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self._model = model
        self._base_url = base_url.rstrip("/")

        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "User-Agent": "cvwriter/1.0",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = _httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    @property
    def base_url(self) -> str:
        """Base URL of the server."""
        return self._base_url

    async def complete(
        self,
        messages: list[dict[str, _typing.Any]],
        *,
        tools: list[types.Tool] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
    ) -> types.CompletionResponse:
        """Send messages and get a complete response."""
        payload = self._build_payload(messages=messages, tools=tools, max_tokens=max_tokens)
        _logger.debug(
            "POST /v1/chat/completions model=%s messages=%d tools=%d",
            self._model,
            len(payload["messages"]),
            len(tools or []),
        )

        try:
            response = await self._client.post("/v1/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except _httpx.HTTPStatusError as e:
            raise _errors.TransportError(
                f"Completion request failed with HTTP {e.response.status_code}: "
                f"{e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except _httpx.HTTPError as e:
            raise _errors.TransportError(f"Completion request failed: {e}") from e
        except ValueError as e:
            raise _errors.TransportError(f"Completion response is not JSON: {e}") from e

        return self._parse_response(data)

    def _build_payload(
        self,
        messages: list[dict[str, _typing.Any]],
        tools: list[types.Tool] | None,
        max_tokens: int,
    ) -> dict[str, _typing.Any]:
        """Build the request payload."""
        payload: dict[str, _typing.Any] = {
            "model": self._model,
            "messages": self._format_messages(messages),
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = [t.to_openai_format() for t in tools]
        return payload

    def _format_messages(
        self,
        messages: list[dict[str, _typing.Any]],
    ) -> list[dict[str, _typing.Any]]:
        """Format messages for the OpenAI API.

        A windowed transcript can start in the middle of an invocation
        exchange. Tool results whose call id was not announced by an earlier
        assistant message are left out because the API rejects them.
        """
        formatted: list[dict[str, _typing.Any]] = []
        announced_calls: set[str] = set()

        for msg in messages:
            role = msg["role"]
            content = msg.get("content", "")

            if role in ("system", "user"):
                formatted.append({"role": role, "content": str(content)})

            elif role == "assistant":
                assistant_msg: dict[str, _typing.Any] = {"role": "assistant"}
                if msg.get("tool_calls"):
                    assistant_msg["tool_calls"] = msg["tool_calls"]
                    announced_calls.update(tc["id"] for tc in msg["tool_calls"])
                    if content:
                        assistant_msg["content"] = str(content)
                else:
                    assistant_msg["content"] = str(content)
                formatted.append(assistant_msg)

            elif role == "tool_result":
                tool_use_id = msg.get("tool_use_id", "")
                if tool_use_id not in announced_calls:
                    _logger.debug("Skipping orphan tool result %s", tool_use_id)
                    continue
                formatted.append(
                    {
                        "role": "tool",
                        "tool_call_id": tool_use_id,
                        "content": str(content),
                    }
                )

        return formatted

    def _parse_response(self, data: dict[str, _typing.Any]) -> types.CompletionResponse:
        """Parse a non-streaming response."""
        try:
            choice = data["choices"][0]
            message = choice["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise _errors.TransportError(f"Completion response has no choices: {e}") from e

        content = message.get("content") or ""

        tool_uses: list[types.ToolUse] = []
        for tc in message.get("tool_calls") or []:
            func = tc.get("function", {})
            arguments = func.get("arguments", "")
            if not isinstance(arguments, str):
                # Some compatible servers send the arguments already decoded
                arguments = _json.dumps(arguments)
            tool_uses.append(
                types.ToolUse(
                    id=tc.get("id", ""),
                    name=func.get("name", ""),
                    arguments=arguments,
                )
            )

        usage_data = data.get("usage") or {}
        usage = types.Usage(
            input_tokens=usage_data.get("prompt_tokens", 0),
            output_tokens=usage_data.get("completion_tokens", 0),
        )

        return types.CompletionResponse(
            id=data.get("id", ""),
            content=content,
            stop_reason=choice.get("finish_reason"),
            usage=usage,
            tool_uses=tool_uses,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
