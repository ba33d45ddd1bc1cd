"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with CVWRITER_ prefix
3. .env file (CVWRITER_ENV_FILE, if set and present)
4. YAML config files (see cvwriter.config.sources)
5. Field defaults

Nested config uses double underscore delimiter:
  CVWRITER_LIMITS__SPEND_CEILING=100000
  CVWRITER_MODEL__NAME=gpt-4o-mini
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import cvwriter.config.sources as sources
import cvwriter.config.types as types


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    CVWRITER_ENV_FILE wins if it points at an existing file; otherwise a
    .env in the working directory is used when present.
    """
    if env_file := _os.environ.get("CVWRITER_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
        # Explicitly set but missing: do not fall back silently
        return None

    if _pathlib.Path(".env").exists():
        return ".env"
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    cvwriter configuration settings.

    All settings can be overridden via environment variables with CVWRITER_ prefix.
    For nested config, use double underscore: CVWRITER_MODEL__MAX_OUTPUT_SIZE=2000
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="CVWRITER_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (CVWRITER_* env vars)
        3. dotenv_settings (.env file)
        4. YAML config files
        5. (defaults via Field definitions), lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.YamlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation and for reproducing issues without a
        stray .env file in the working directory.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    model: types.ModelConfig = _pydantic.Field(default_factory=types.ModelConfig)
    """Completion backend settings."""

    limits: types.LimitsConfig = _pydantic.Field(default_factory=types.LimitsConfig)
    """History, spend and time budgets."""

    prompts: types.PromptsConfig = _pydantic.Field(default_factory=types.PromptsConfig)
    """System instructions per stage."""

    storage: types.StorageConfig = _pydantic.Field(default_factory=types.StorageConfig)
    """Where conversations and artifacts live."""

    render: types.RenderConfig = _pydantic.Field(default_factory=types.RenderConfig)
    """External renderer."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    def collect_unknown_keys(self) -> dict[str, _typing.Any]:
        """Unrecognized keys in any nested section, keyed by dotted path."""
        result: dict[str, _typing.Any] = {}
        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name)
            if isinstance(value, types.ConfigBase):
                result.update(value.collect_all_extra_fields(field_name))
        return result
