"""
Shared constants for cvwriter.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Model defaults
DEFAULT_MODEL = "gpt-3.5-turbo"
"""Default chat model."""

DEFAULT_BASE_URL = "https://api.openai.com"
"""Default OpenAI-compatible endpoint."""

DEFAULT_MAX_TOKENS = 1000
"""Default maximum tokens for a single completion."""

DEFAULT_RESUME_MAX_TOKENS = 4000
"""Maximum tokens for the completion that writes the resume."""

# Budget defaults
DEFAULT_HISTORY_BUDGET = 5_000
"""Bytes of transcript sent with each request."""

DEFAULT_SPEND_CEILING = 50_000
"""Tokens a conversation may spend before further calls are refused."""

DEFAULT_TURN_TIMEOUT = 60.0
"""Wall-clock seconds allowed for one driven turn."""

# Reserved commands
RESET_COMMAND = "reset"
"""Input that wipes the interview."""

REPLAY_COMMAND = "resume"
"""Input that returns the finished resume."""

# User-facing replies
RESET_REPLY = "Data reset"
LIMIT_EXCEEDED_REPLY = "Limit exceeded"
COMPLETED_REPLY = "The interview is complete. Send \"resume\" to see your resume or \"reset\" to start over."
TOO_LONG_REPLY = "Invalid message (too long)"

TOOL_SUCCESS = "success"
"""Content of the acknowledgement sent back for every accepted invocation."""

ARTIFACT_SUFFIX = ".pdf"
"""Suffix of generated artifact names."""

# Rendering
DEFAULT_RENDER_PROGRAM = "pandoc"
DEFAULT_RENDER_TIMEOUT = 60.0
