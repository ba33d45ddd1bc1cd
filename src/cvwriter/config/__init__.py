"""
Configuration module for cvwriter.

Uses pydantic-settings for environment variable loading.
"""

from cvwriter.config.settings import Settings
from cvwriter.config.sources import ConfigFileError, deep_merge
from cvwriter.config.types import (
    LimitsConfig,
    LoggingConfig,
    ModelConfig,
    PromptsConfig,
    RenderConfig,
    StorageConfig,
)

__all__ = [
    "ConfigFileError",
    "LimitsConfig",
    "LoggingConfig",
    "ModelConfig",
    "PromptsConfig",
    "RenderConfig",
    "Settings",
    "StorageConfig",
    "deep_merge",
]
