"""
Credential loading for completion backends.

An API key can be supplied directly, through ``OPENAI_API_KEY``, or from a
JSON file of the form ``{"api_key": "..."}``.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing


def load_credentials_from_path(path: str) -> dict[str, _typing.Any]:
    """
    Load credentials from a JSON file.

    Args:
        path: Path to credentials JSON file. Supports ~ and $VAR expansion.

    Returns:
        Dict containing credentials (e.g., {"api_key": "..."}).

    Raises:
        ValueError: If file cannot be read or parsed.
    """
    expanded_path = _os.path.expandvars(_os.path.expanduser(path))
    creds_path = _pathlib.Path(expanded_path)

    if not creds_path.exists():
        raise ValueError(f"Credentials file not found: {expanded_path}")

    try:
        content = creds_path.read_text(encoding="utf-8")
        credentials = _json.loads(content)
        if not isinstance(credentials, dict):
            raise ValueError(
                f"Credentials file must contain a JSON object: {expanded_path}"
            )
        return credentials
    except PermissionError as e:
        raise ValueError(
            f"Permission denied reading credentials file: {expanded_path}"
        ) from e
    except _json.JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in credentials file {expanded_path}: {e}"
        ) from e


def resolve_api_key(
    api_key: str | None = None,
    credentials_path: str | None = None,
) -> str | None:
    """Pick the API key to use.

    Precedence: credentials file, explicit key, ``OPENAI_API_KEY``.
    """
    if credentials_path:
        credentials = load_credentials_from_path(credentials_path)
        from_file = credentials.get("api_key")
        if from_file:
            return str(from_file)
    if api_key:
        return api_key
    return _os.environ.get("OPENAI_API_KEY") or None
