"""Configuration type definitions for cvwriter settings.

This module defines the Pydantic models used to represent configuration
sections nested within the main Settings class:

- ModelConfig: endpoint, model name, credential, output sizes
- LimitsConfig: history budget, spend ceiling, turn timeout
- PromptsConfig: system instructions for each interview stage
- StorageConfig: where conversations and artifacts are kept
- RenderConfig: external document renderer
- LoggingConfig: JSONL event log and log level

All types use `extra="allow"` so unknown keys are preserved and can be
reported by `collect_all_extra_fields()` instead of being silently dropped.
"""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import cvwriter.constants as _constants
import cvwriter.core.prompts as _prompts


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are kept in `model_extra` so typos can be audited.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"limits.spend_cieling": 1000}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


class ModelConfig(ConfigBase):
    """
    Completion backend settings.

    YAML section: model.*
    """

    name: str = _constants.DEFAULT_MODEL
    """Model identifier sent with each request."""

    base_url: str = _constants.DEFAULT_BASE_URL
    """Root of the OpenAI-compatible server."""

    api_key: str | None = None
    """Credential. Falls back to OPENAI_API_KEY when unset."""

    credentials_path: str | None = None
    """JSON file with {"api_key": ...}; takes precedence over api_key."""

    timeout: float = _pydantic.Field(default=60.0, gt=0)
    """HTTP timeout per request, in seconds."""

    max_output_size: int = _pydantic.Field(default=_constants.DEFAULT_MAX_TOKENS, ge=1)
    """Maximum tokens per completion."""

    resume_max_output_size: int = _pydantic.Field(
        default=_constants.DEFAULT_RESUME_MAX_TOKENS, ge=1
    )
    """Maximum tokens for the completion that writes the resume."""


class LimitsConfig(ConfigBase):
    """
    Budgets applied to every conversation.

    YAML section: limits.*
    """

    history_budget: int = _pydantic.Field(default=_constants.DEFAULT_HISTORY_BUDGET, ge=1)
    """Bytes of transcript included in each request. Also the maximum input length."""

    spend_ceiling: int = _pydantic.Field(default=_constants.DEFAULT_SPEND_CEILING, ge=0)
    """Tokens a conversation may spend before calls are refused."""

    turn_timeout: float = _pydantic.Field(default=_constants.DEFAULT_TURN_TIMEOUT, gt=0)
    """Wall-clock seconds for one driven turn."""


class PromptsConfig(ConfigBase):
    """
    System instructions sent at each stage.

    YAML section: prompts.*
    """

    profession: str = _prompts.DEFAULT_PROFESSION_PROMPT
    questions: str = _prompts.DEFAULT_QUESTIONS_PROMPT
    answers: str = _prompts.DEFAULT_ANSWERS_PROMPT
    resume: str = _prompts.DEFAULT_RESUME_PROMPT


class StorageConfig(ConfigBase):
    """
    Local storage locations.

    YAML section: storage.*
    """

    data_dir: _pathlib.Path = _pathlib.Path.home() / ".local" / "share" / "cvwriter"
    """Root directory; conversations/ and artifacts/ are created beneath it."""

    @_pydantic.field_validator("data_dir")
    @classmethod
    def _expand_user(cls, value: _pathlib.Path) -> _pathlib.Path:
        return value.expanduser()

    @property
    def conversations_dir(self) -> _pathlib.Path:
        return self.data_dir / "conversations"

    @property
    def artifacts_dir(self) -> _pathlib.Path:
        return self.data_dir / "artifacts"


class RenderConfig(ConfigBase):
    """
    External renderer.

    YAML section: render.*
    """

    program: str = _constants.DEFAULT_RENDER_PROGRAM
    """Executable invoked as `<program> <input> -o <output>`."""

    timeout: float = _pydantic.Field(default=_constants.DEFAULT_RENDER_TIMEOUT, gt=0)


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    enabled: bool = False
    """Write a JSONL event log of every turn."""

    dir: str | None = None
    """Directory for event logs (default: /tmp/cvwriter-logs)."""

    level: _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    """Level for the standard library root logger when run from the CLI."""
