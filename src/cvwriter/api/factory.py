"""
Completion client factory.

Builds the completion client for a turn from settings plus optional per-turn
overrides of the model and credential.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import cvwriter.api.base as base
import cvwriter.api.credentials as credentials
import cvwriter.api.openai_provider as openai_provider

if _typing.TYPE_CHECKING:
    import cvwriter.config as _config

_logger = _logging.getLogger(__name__)


def create_client(
    settings: _config.Settings,
    *,
    model: str | None = None,
    api_key: str | None = None,
) -> base.CompletionClient:
    """
    Create a completion client.

    Credential selection (in order of precedence):
    1. Explicit `api_key` parameter
    2. `model.credentials_path` file
    3. `model.api_key` setting
    4. OPENAI_API_KEY environment variable

    Args:
        settings: Application settings.
        model: Model to use instead of `model.name`.
        api_key: Credential to use instead of the configured one.

    Returns:
        A client bound to the chosen model and credential.

    Raises:
        ValueError: If a configured credentials file cannot be read.
    """
    model_config = settings.model
    resolved_key = api_key or credentials.resolve_api_key(
        model_config.api_key,
        model_config.credentials_path,
    )
    if not resolved_key:
        _logger.warning("No API key configured; requests are sent without credentials")

    return openai_provider.OpenAIProvider(
        api_key=resolved_key,
        model=model or model_config.name,
        base_url=model_config.base_url,
        timeout=model_config.timeout,
    )
