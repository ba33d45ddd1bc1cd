"""
Shared pytest fixtures for cvwriter tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports. Helpers that tests
call directly (response builders, ScriptedClient, FakeRenderer) are
imported with `import tests.conftest as conftest`.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import cvwriter.api.base as api_base
import cvwriter.api.types as api_types
import cvwriter.config as config
import cvwriter.core.conversation as conversation
import cvwriter.errors as errors
import cvwriter.render as render
import cvwriter.storage as storage

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "OPENAI_API_KEY",
    "CVWRITER_API_KEY",
    "CVWRITER_CONFIG_FILE",
    "CVWRITER_ENV_FILE",
]


def _is_cleared(key: str) -> bool:
    return key in ENV_KEYS_TO_CLEAR or key.startswith("CVWRITER_")


@_pytest.fixture
def clean_env(tmp_path: _pathlib.Path) -> dict[str, str]:
    """
    Return environment dict with cvwriter keys removed.

    The user config directory points into tmp_path so a developer's own
    ~/.config/cvwriter/config.yaml never leaks into tests.
    """
    env = {k: v for k, v in _os.environ.items() if not _is_cleared(k)}
    env["CVWRITER_CONFIG_DIR"] = str(tmp_path / "config")
    return env


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env, tmp_path: _pathlib.Path) -> config.Settings:
    """
    Settings isolated from environment and .env file, storing under tmp_path.
    """
    with isolated_env:
        return config.Settings.construct_without_dotenv(
            storage={"data_dir": str(tmp_path / "data")},
        )


@_pytest.fixture
def conversation_store(tmp_path: _pathlib.Path) -> storage.JsonConversationStore:
    """Conversation store in a temporary directory."""
    return storage.JsonConversationStore(tmp_path / "conversations")


@_pytest.fixture
def artifact_store(tmp_path: _pathlib.Path) -> storage.FilesystemArtifactStore:
    """Artifact store in a temporary directory."""
    return storage.FilesystemArtifactStore(tmp_path / "artifacts")


@_pytest.fixture
def fake_renderer() -> "FakeRenderer":
    return FakeRenderer()


# =============================================================================
# Conversation builders
# =============================================================================

SAMPLE_QUESTIONS = [
    "What is your full name?",
    "How many years of experience do you have?",
    "How old are you?",
    "Which programming languages do you know?",
    "Where did you study?",
]


def conversation_in_answers(
    conversation_id: str = "conv1",
    *,
    answered: dict[int, str] | None = None,
) -> conversation.Conversation:
    """A conversation with a profession and SAMPLE_QUESTIONS."""
    conv = conversation.Conversation(id=conversation_id)
    conv.set_profession("backend developer")
    conv.set_questions(SAMPLE_QUESTIONS)
    for index, answer in (answered or {}).items():
        conv.set_answer(index, answer)
    return conv


def conversation_in_resume(conversation_id: str = "conv1") -> conversation.Conversation:
    """A conversation whose questions are all answered."""
    return conversation_in_answers(
        conversation_id,
        answered={i: f"answer {i}" for i in range(len(SAMPLE_QUESTIONS))},
    )


# =============================================================================
# Response builders
# =============================================================================


def text_response(
    text: str,
    *,
    input_tokens: int = 10,
    output_tokens: int = 5,
) -> api_types.CompletionResponse:
    """A response carrying only free text."""
    return api_types.CompletionResponse(
        id="resp-text",
        content=text,
        stop_reason="stop",
        usage=api_types.Usage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def tool_response(
    *calls: tuple[str, _typing.Any],
    content: str = "",
    input_tokens: int = 10,
    output_tokens: int = 5,
) -> api_types.CompletionResponse:
    """
    A response carrying invocations.

    Each call is (operation_name, arguments); dict arguments are JSON encoded,
    strings are passed through untouched so malformed payloads can be tested.
    """
    tool_uses = [
        api_types.ToolUse(
            id=f"call_{i}",
            name=name,
            arguments=args if isinstance(args, str) else _json.dumps(args),
        )
        for i, (name, args) in enumerate(calls)
    ]
    return api_types.CompletionResponse(
        id="resp-tools",
        content=content,
        stop_reason="tool_calls",
        usage=api_types.Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        tool_uses=tool_uses,
    )


def empty_response(*, input_tokens: int = 10, output_tokens: int = 0) -> api_types.CompletionResponse:
    """A response with neither text nor invocations."""
    return text_response("", input_tokens=input_tokens, output_tokens=output_tokens)


# =============================================================================
# Mock collaborators
# =============================================================================


class ScriptedClient(api_base.CompletionClient):
    """
    Completion client that plays back a script.

    Script entries are CompletionResponse objects or exceptions to raise.
    Every call is recorded in `calls` for assertions.
    """

    def __init__(
        self,
        script: list[api_types.CompletionResponse | BaseException] | None = None,
        *,
        model: str = "mock-model",
    ) -> None:
        self._script = list(script or [])
        self._model = model
        self.calls: list[dict[str, _typing.Any]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return self._model

    @property
    def remaining(self) -> int:
        return len(self._script)

    async def complete(
        self,
        messages: list[dict[str, _typing.Any]],
        *,
        tools: list[api_types.Tool] | None = None,
        max_tokens: int = 1000,
    ) -> api_types.CompletionResponse:
        self.calls.append(
            {
                "messages": messages,
                "tools": [t.name for t in tools or []],
                "max_tokens": max_tokens,
            }
        )
        if not self._script:
            raise AssertionError("ScriptedClient script exhausted")
        entry = self._script.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def close(self) -> None:
        self.closed = True


class FakeRenderer(render.Renderer):
    """Renderer that returns predictable bytes, or fails on demand."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.rendered: list[str] = []

    async def render(self, text: str) -> bytes:
        if self.fail:
            raise errors.RenderError("renderer exploded")
        self.rendered.append(text)
        return b"%PDF-FAKE\n" + text.encode("utf-8")
