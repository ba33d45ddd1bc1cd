"""
cvwriter - AI resume interviewer

Interviews a user through a chat model: asks for a profession, generates
questions, collects answers and writes a resume.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("cvwriter")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "cvwriter Contributors"

from cvwriter.config import Settings  # noqa: E402
from cvwriter.core.conversation import Conversation  # noqa: E402
from cvwriter.core.driver import InterviewService  # noqa: E402

__all__ = ["__version__", "__version_info__", "Settings", "Conversation", "InterviewService"]
