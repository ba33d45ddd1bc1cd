"""Custom pydantic-settings source for cvwriter YAML configuration.

Configuration layers (in precedence order, highest first):
1. Constructor arguments and environment variables (handled by pydantic-settings)
2. Explicit config file: CVWRITER_CONFIG_FILE
3. User config: ~/.config/cvwriter/config.yaml (or CVWRITER_CONFIG_DIR)
4. Field defaults

Nested mappings from the YAML layers are merged key by key; any other value
in a higher layer replaces the lower one.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

ENV_CONFIG_DIR = "CVWRITER_CONFIG_DIR"
"""Overrides the user config directory."""

ENV_CONFIG_FILE = "CVWRITER_CONFIG_FILE"
"""Points at an additional config file that overrides the user config."""


class ConfigFileError(Exception):
    """Error loading or parsing a configuration file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


def get_user_config_path() -> _pathlib.Path:
    """Path of the user config file, respecting CVWRITER_CONFIG_DIR."""
    config_dir_env = _os.environ.get(ENV_CONFIG_DIR)
    if config_dir_env:
        return _pathlib.Path(config_dir_env) / "config.yaml"
    return _pathlib.Path.home() / ".config" / "cvwriter" / "config.yaml"


def deep_merge(
    base: dict[str, _typing.Any],
    override: dict[str, _typing.Any],
) -> dict[str, _typing.Any]:
    """Merge two mappings, recursing into nested dicts. Inputs are not modified."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml_file(path: _pathlib.Path) -> dict[str, _typing.Any]:
    """
    Load a YAML mapping from disk.

    Returns:
        Parsed contents, or an empty dict if the file is empty.

    Raises:
        ConfigFileError: If the file is unreadable, malformed or not a mapping.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(path, f"cannot read file: {e}") from e

    try:
        data = _yaml.safe_load(content)
    except _yaml.YAMLError as e:
        raise ConfigFileError(path, f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(path, "top level must be a mapping")
    return data


class YamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source that merges the YAML config layers into one dict.

    Pydantic validates the merged result like any other source.
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        *,
        user_config_path: _pathlib.Path | None = None,
        config_file: _pathlib.Path | None = None,
    ) -> None:
        """
        Initialize the settings source.

        Args:
            settings_cls: The Settings class being populated.
            user_config_path: Override path for the user config (for testing).
            config_file: Override for CVWRITER_CONFIG_FILE (for testing).
        """
        super().__init__(settings_cls)
        self._user_config_path = user_config_path or get_user_config_path()
        env_file = _os.environ.get(ENV_CONFIG_FILE)
        self._config_file = config_file or (_pathlib.Path(env_file) if env_file else None)
        self._loaded_layers: list[tuple[str, _pathlib.Path]] = []
        self._data = self._load_layers()

    def _load_layers(self) -> dict[str, _typing.Any]:
        merged: dict[str, _typing.Any] = {}

        # Missing user config is normal
        if self._user_config_path.exists():
            merged = deep_merge(merged, load_yaml_file(self._user_config_path))
            self._loaded_layers.append(("user", self._user_config_path))

        if self._config_file is not None:
            # An explicitly named file must exist
            if not self._config_file.exists():
                raise ConfigFileError(self._config_file, "file not found")
            merged = deep_merge(merged, load_yaml_file(self._config_file))
            self._loaded_layers.append(("file", self._config_file))

        return merged

    def get_loaded_layers(self) -> list[tuple[str, _pathlib.Path]]:
        """Layers actually loaded, lowest precedence first."""
        return list(self._loaded_layers)

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, _typing.Any]:
        return dict(self._data)
