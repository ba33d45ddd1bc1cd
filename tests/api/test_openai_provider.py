"""Tests for the OpenAI-compatible completion client."""

import json as _json
import typing as _typing

import httpx as _httpx
import pytest as _pytest

import cvwriter.api.openai_provider as openai_provider
import cvwriter.api.types as api_types
import cvwriter.errors as errors


def _provider(
    handler: _typing.Callable[[_httpx.Request], _httpx.Response],
    **kwargs: _typing.Any,
) -> openai_provider.OpenAIProvider:
    return openai_provider.OpenAIProvider(
        api_key=kwargs.pop("api_key", "sk-test"),
        transport=_httpx.MockTransport(handler),
        **kwargs,
    )


def _completion(message: dict[str, _typing.Any], **extra: _typing.Any) -> dict[str, _typing.Any]:
    body: dict[str, _typing.Any] = {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 11, "completion_tokens": 7, "total_tokens": 18},
    }
    body.update(extra)
    return body


SAVE_PROFESSION = api_types.Tool(
    name="save_profession",
    description="Save the profession",
    input_schema={
        "type": "object",
        "properties": {"profession": {"type": "string"}},
        "required": ["profession"],
    },
)


class TestRequest:
    @_pytest.mark.asyncio
    async def test_payload_and_headers(self) -> None:
        seen: list[_httpx.Request] = []

        def handler(request: _httpx.Request) -> _httpx.Response:
            seen.append(request)
            return _httpx.Response(200, json=_completion({"role": "assistant", "content": "hi"}))

        provider = _provider(handler, model="gpt-test")
        await provider.complete(
            [{"role": "user", "content": "hello"}],
            tools=[SAVE_PROFESSION],
            max_tokens=321,
        )
        await provider.close()

        request = seen[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = _json.loads(request.content)
        assert payload["model"] == "gpt-test"
        assert payload["max_tokens"] == 321
        assert payload["messages"] == [{"role": "user", "content": "hello"}]
        assert payload["tools"][0]["function"]["name"] == "save_profession"

    @_pytest.mark.asyncio
    async def test_no_authorization_without_key(self) -> None:
        seen: list[_httpx.Request] = []

        def handler(request: _httpx.Request) -> _httpx.Response:
            seen.append(request)
            return _httpx.Response(200, json=_completion({"role": "assistant", "content": "hi"}))

        provider = _provider(handler, api_key=None)
        await provider.complete([{"role": "user", "content": "hello"}])

        assert "Authorization" not in seen[0].headers
        assert "tools" not in _json.loads(seen[0].content)

    @_pytest.mark.asyncio
    async def test_tool_messages_formatted(self) -> None:
        seen: list[dict[str, _typing.Any]] = []

        def handler(request: _httpx.Request) -> _httpx.Response:
            seen.append(_json.loads(request.content))
            return _httpx.Response(200, json=_completion({"role": "assistant", "content": "ok"}))

        tool_call = {
            "id": "call_1",
            "type": "function",
            "function": {"name": "save_profession", "arguments": '{"profession":"nurse"}'},
        }
        provider = _provider(handler)
        await provider.complete(
            [
                {"role": "system", "content": "prompt"},
                {"role": "tool_result", "tool_use_id": "call_0", "content": "success"},
                {"role": "user", "content": "nurse"},
                {"role": "assistant", "content": "", "tool_calls": [tool_call]},
                {"role": "tool_result", "tool_use_id": "call_1", "content": "success"},
            ]
        )

        messages = seen[0]["messages"]
        # The orphaned result for call_0 is dropped
        assert messages == [
            {"role": "system", "content": "prompt"},
            {"role": "user", "content": "nurse"},
            {"role": "assistant", "tool_calls": [tool_call]},
            {"role": "tool", "tool_call_id": "call_1", "content": "success"},
        ]


class TestResponse:
    @_pytest.mark.asyncio
    async def test_text_response(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            return _httpx.Response(
                200, json=_completion({"role": "assistant", "content": "Which profession?"})
            )

        response = await _provider(handler).complete([{"role": "user", "content": "hi"}])

        assert response.content == "Which profession?"
        assert response.tool_uses == []
        assert response.usage.total_tokens == 18
        assert response.shape == "text"

    @_pytest.mark.asyncio
    async def test_tool_calls_parsed(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            return _httpx.Response(
                200,
                json=_completion(
                    {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [
                            {
                                "id": "call_a",
                                "type": "function",
                                "function": {
                                    "name": "set_answer",
                                    "arguments": '{"index": 0, "answer": "Alex"}',
                                },
                            },
                            {
                                "id": "call_b",
                                "type": "function",
                                "function": {
                                    "name": "set_answer",
                                    "arguments": {"index": 2, "answer": "25"},
                                },
                            },
                        ],
                    }
                ),
            )

        response = await _provider(handler).complete([{"role": "user", "content": "hi"}])

        assert response.content == ""
        assert [t.id for t in response.tool_uses] == ["call_a", "call_b"]
        assert response.tool_uses[0].arguments == '{"index": 0, "answer": "Alex"}'
        # Pre-decoded arguments are re-encoded so decoding stays in one place
        assert _json.loads(response.tool_uses[1].arguments) == {"index": 2, "answer": "25"}
        assert response.shape == "tool_calls[set_answer, set_answer]"

    @_pytest.mark.asyncio
    async def test_missing_usage_counts_zero(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            body = _completion({"role": "assistant", "content": "x"})
            del body["usage"]
            return _httpx.Response(200, json=body)

        response = await _provider(handler).complete([{"role": "user", "content": "hi"}])
        assert response.usage.total_tokens == 0


class TestTransportErrors:
    @_pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            return _httpx.Response(429, json={"error": {"message": "rate limited"}})

        with _pytest.raises(errors.TransportError) as exc_info:
            await _provider(handler).complete([{"role": "user", "content": "hi"}])
        assert exc_info.value.status_code == 429

    @_pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:
            raise _httpx.ConnectError("connection refused", request=request)

        with _pytest.raises(errors.TransportError):
            await _provider(handler).complete([{"role": "user", "content": "hi"}])

    @_pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:
            raise _httpx.ReadTimeout("too slow", request=request)

        with _pytest.raises(errors.TransportError):
            await _provider(handler).complete([{"role": "user", "content": "hi"}])

    @_pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            return _httpx.Response(200, text="<html>bad gateway</html>")

        with _pytest.raises(errors.TransportError, match="not JSON"):
            await _provider(handler).complete([{"role": "user", "content": "hi"}])

    @_pytest.mark.asyncio
    async def test_no_choices(self) -> None:
        def handler(request: _httpx.Request) -> _httpx.Response:  # noqa: ARG001
            return _httpx.Response(200, json={"id": "x", "choices": []})

        with _pytest.raises(errors.TransportError, match="no choices"):
            await _provider(handler).complete([{"role": "user", "content": "hi"}])
