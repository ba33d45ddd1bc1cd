"""Tests for CLI main module."""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import click.testing as _click_testing
import pytest as _pytest

import cvwriter.cli as cli
import cvwriter.cli.main as cli_main
import cvwriter.config as config
import cvwriter.constants as constants
import cvwriter.core.driver as driver
import cvwriter.storage as storage
import tests.conftest as conftest


@_pytest.fixture
def cli_env(monkeypatch: _pytest.MonkeyPatch, tmp_path: _pathlib.Path) -> _pathlib.Path:
    """Point the CLI at a private data directory with no ambient configuration."""
    for key in list(_os.environ):
        if key.startswith("CVWRITER_") or key == "OPENAI_API_KEY":
            monkeypatch.delenv(key)
    monkeypatch.setenv("CVWRITER_CONFIG_DIR", str(tmp_path / "config"))
    data_dir = tmp_path / "data"
    monkeypatch.setenv("CVWRITER_STORAGE__DATA_DIR", str(data_dir))
    return data_dir


@_pytest.fixture
def scripted_cli(
    cli_env: _pathlib.Path,  # noqa: ARG001
    monkeypatch: _pytest.MonkeyPatch,
) -> _typing.Callable[..., conftest.ScriptedClient]:
    """Make every CLI command use a service wired to one scripted client."""

    def _install(script: list[_typing.Any] | None = None) -> conftest.ScriptedClient:
        client = conftest.ScriptedClient(script)
        renderer = conftest.FakeRenderer()

        def _create_service(settings: config.Settings) -> driver.InterviewService:
            return driver.InterviewService(
                settings,
                store=storage.JsonConversationStore(settings.storage.conversations_dir),
                artifacts=storage.FilesystemArtifactStore(settings.storage.artifacts_dir),
                renderer=renderer,
                client_factory=lambda _settings, _overrides: client,
            )

        monkeypatch.setattr(cli_main, "_create_service", _create_service)
        return client

    return _install


def _invoke(*args: str) -> _click_testing.Result:
    return _click_testing.CliRunner().invoke(cli.cli, list(args))


class TestCLIBasics:
    def test_help_lists_commands(self, cli_env: _pathlib.Path) -> None:  # noqa: ARG002
        result = _invoke("--help")
        assert result.exit_code == 0
        for cmd in ["new", "list", "send", "chat", "show", "export", "config"]:
            assert cmd in result.output, f"Command '{cmd}' missing from help"

    def test_config_yaml(self, cli_env: _pathlib.Path) -> None:
        result = _invoke("config")
        assert result.exit_code == 0
        assert "limits:" in result.output
        assert str(cli_env) in result.output
        assert "prompts:" not in result.output

    def test_config_json_masks_key(
        self, cli_env: _pathlib.Path, monkeypatch: _pytest.MonkeyPatch  # noqa: ARG002
    ) -> None:
        monkeypatch.setenv("CVWRITER_MODEL__API_KEY", "sk-secret")

        result = _invoke("config", "--json", "--show-prompts")

        assert result.exit_code == 0
        data = _json.loads(result.output)
        assert data["model"]["api_key"] == "***"
        assert "profession" in data["prompts"]

    def test_config_warns_on_unknown_keys(self, cli_env: _pathlib.Path, tmp_path: _pathlib.Path) -> None:  # noqa: ARG002
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("limits:\n  spend_cieling: 5\n")

        result = _invoke("config")

        assert result.exit_code == 0
        assert "unknown config key 'limits.spend_cieling'" in result.output

    def test_bad_config_file_exits(
        self,
        cli_env: _pathlib.Path,  # noqa: ARG002
        monkeypatch: _pytest.MonkeyPatch,
        tmp_path: _pathlib.Path,
    ) -> None:
        monkeypatch.setenv("CVWRITER_CONFIG_FILE", str(tmp_path / "missing.yaml"))

        result = _invoke("config")

        assert result.exit_code == 1
        assert "file not found" in result.output


class TestConversationCommands:
    def test_full_interview(self, scripted_cli, tmp_path: _pathlib.Path) -> None:
        questions = [f"Question {i}?" for i in range(5)]
        client = scripted_cli(
            [
                conftest.tool_response(("save_profession", {"profession": "nurse"})),
                conftest.tool_response(("add_questions", {"questions": questions})),
                conftest.text_response("What is your name?"),
                conftest.tool_response(
                    *[("set_answer", {"index": i, "answer": f"a{i}"}) for i in range(5)]
                ),
                conftest.tool_response(("save_resume", {"resume": "# Nurse resume"})),
            ]
        )

        result = _invoke("new", "--json")
        assert result.exit_code == 0
        conversation_id = _json.loads(result.output)["id"]

        result = _invoke("send", conversation_id, "I'm", "a", "nurse")
        assert result.exit_code == 0
        assert "What is your name?" in result.output
        assert client.calls[0]["messages"][-1] == {"role": "user", "content": "I'm a nurse"}

        result = _invoke("send", conversation_id, "all my answers")
        assert result.exit_code == 0
        assert "Nurse resume" in result.output
        assert f"cvwriter export {conversation_id}" in result.output
        assert constants.COMPLETED_REPLY in result.output

        output = tmp_path / "cv.pdf"
        result = _invoke("export", conversation_id, "-o", str(output))
        assert result.exit_code == 0
        assert output.read_bytes().startswith(b"%PDF-FAKE")

        result = _invoke("show", conversation_id, "--json")
        assert result.exit_code == 0
        shown = _json.loads(result.output)
        assert shown["profession"] == "nurse"
        assert shown["resume"] == "# Nurse resume"

        result = _invoke("list", "--json")
        assert result.exit_code == 0
        summaries = _json.loads(result.output)
        assert [s["id"] for s in summaries] == [conversation_id]
        assert summaries[0]["need"] == "terminal"

    def test_send_json(self, scripted_cli) -> None:
        scripted_cli([conftest.text_response("Which profession?")])
        conversation_id = _invoke("new").output.strip()

        result = _invoke("send", conversation_id, "hello", "--json")

        assert result.exit_code == 0
        reply = _json.loads(result.output)
        assert reply["text"] == "Which profession?"
        assert reply["need"] == "profession"

    def test_spend_ceiling_option(self, scripted_cli) -> None:
        client = scripted_cli()
        conversation_id = _invoke("new").output.strip()

        result = _invoke("--spend-ceiling", "0", "send", conversation_id, "hello")

        assert result.exit_code == 0
        assert constants.LIMIT_EXCEEDED_REPLY in result.output
        assert client.calls == []

    def test_show_table(self, scripted_cli, cli_env: _pathlib.Path) -> None:
        scripted_cli()
        store = storage.JsonConversationStore(cli_env / "conversations")
        store.save(conftest.conversation_in_answers("shown", answered={0: "Alex"}))

        result = _invoke("show", "shown")

        assert result.exit_code == 0
        assert "Stage: answers" in result.output
        assert "Alex" in result.output

    def test_list_empty(self, scripted_cli) -> None:
        scripted_cli()
        result = _invoke("list")
        assert result.exit_code == 0
        assert "No conversations found." in result.output

    def test_chat_session(self, scripted_cli) -> None:
        scripted_cli([conftest.text_response("Which profession?")])

        result = _click_testing.CliRunner().invoke(cli.cli, ["chat"], input="hello\nexit\n")

        assert result.exit_code == 0
        assert "Conversation:" in result.output
        assert "Which profession?" in result.output


class TestErrors:
    def test_send_unknown_conversation(self, scripted_cli) -> None:
        scripted_cli()
        result = _invoke("send", "missing", "hello")
        assert result.exit_code == 1
        assert "Conversation not found: missing" in result.output

    def test_send_unknown_conversation_json(self, scripted_cli) -> None:
        scripted_cli()
        result = _invoke("send", "missing", "hello", "--json")
        assert result.exit_code == 1
        assert _json.loads(result.output)["error"] == "Conversation not found: missing"

    def test_export_without_resume(self, scripted_cli, tmp_path: _pathlib.Path) -> None:
        scripted_cli()
        conversation_id = _invoke("new").output.strip()

        result = _invoke("export", conversation_id, "-o", str(tmp_path / "cv.pdf"))

        assert result.exit_code == 1
        assert "no rendered resume" in result.output

    def test_malformed_response(self, scripted_cli) -> None:
        scripted_cli([conftest.empty_response()])
        conversation_id = _invoke("new").output.strip()

        result = _invoke("send", conversation_id, "hello")

        assert result.exit_code == 1
        assert "Error:" in result.output
