"""
Conversation persistence.

Conversations are stored as one JSON file per id in the conversations
directory. Writes go to a temporary file first and are renamed into place, so
a conversation on disk is always either the old or the new version.
"""

from __future__ import annotations

import abc as _abc
import json as _json
import os as _os
import pathlib as _pathlib
import re as _re
import secrets as _secrets
import string as _string
import tempfile as _tempfile
import typing as _typing

import cvwriter.core.conversation as conversation
import cvwriter.errors as errors

_ID_PATTERN = _re.compile(r"^[a-zA-Z0-9_-]{1,100}$")


def generate_conversation_id() -> str:
    """Generate a unique conversation ID (12 character alphanumeric)."""
    alphabet = _string.ascii_lowercase + _string.digits
    return "".join(_secrets.choice(alphabet) for _ in range(12))


class InvalidConversationIdError(ValueError):
    """Raised when a conversation ID has an invalid format."""

    pass


def validate_conversation_id(conversation_id: str) -> str:
    """Validate conversation ID format to prevent path traversal attacks.

    IDs are 1-100 characters of [a-zA-Z0-9_-], which rules out
    '../../../etc/passwd' and friends.

    Returns:
        The validated ID (unchanged if valid).

    Raises:
        InvalidConversationIdError: If the ID format is invalid.
    """
    if _ID_PATTERN.match(conversation_id):
        return conversation_id
    raise InvalidConversationIdError(
        f"Invalid conversation ID: '{conversation_id}'. "
        "IDs must be alphanumeric with hyphens/underscores (max 100 chars)."
    )


class ConversationStore(_abc.ABC):
    """Durable storage for conversations."""

    @_abc.abstractmethod
    def load(self, conversation_id: str) -> conversation.Conversation | None:
        """Load a conversation, or None if it does not exist."""
        ...

    @_abc.abstractmethod
    def save(self, conv: conversation.Conversation) -> None:
        """Persist a conversation, replacing any previous version.

        Raises:
            PersistenceError: If the conversation could not be written.
        """
        ...

    def create(self) -> conversation.Conversation:
        """Create, persist and return an empty conversation with a new id."""
        conv = conversation.Conversation(id=generate_conversation_id())
        self.save(conv)
        return conv


class JsonConversationStore(ConversationStore):
    """
    Stores each conversation as `<id>.json` in a directory.
    """

    def __init__(self, conversations_dir: _pathlib.Path) -> None:
        """Initialize with conversations directory path."""
        self.conversations_dir = conversations_dir

    def _ensure_dir(self) -> None:
        self.conversations_dir.mkdir(parents=True, exist_ok=True)

    def _conversation_path(self, conversation_id: str) -> _pathlib.Path:
        """Get path to conversation file.

        Raises:
            InvalidConversationIdError: If conversation_id format is invalid.
        """
        validate_conversation_id(conversation_id)
        return self.conversations_dir / f"{conversation_id}.json"

    def exists(self, conversation_id: str) -> bool:
        """Check if a conversation exists."""
        try:
            return self._conversation_path(conversation_id).exists()
        except InvalidConversationIdError:
            return False

    def load(self, conversation_id: str) -> conversation.Conversation | None:
        """Load conversation from disk by ID.

        An ID that fails validation cannot name a stored conversation, so it
        loads as None.

        Raises:
            PersistenceError: If the file exists but cannot be read or decoded.
        """
        try:
            path = self._conversation_path(conversation_id)
        except InvalidConversationIdError:
            return None
        if not path.exists():
            return None

        try:
            data = _json.loads(path.read_text(encoding="utf-8"))
            return conversation.Conversation.from_dict(data)
        except OSError as e:
            raise errors.PersistenceError(
                f"Cannot read conversation {conversation_id}: {e}"
            ) from e
        except (_json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise errors.PersistenceError(
                f"Conversation {conversation_id} is corrupt: {e}"
            ) from e

    def save(self, conv: conversation.Conversation) -> None:
        """Save conversation to disk atomically."""
        path = self._conversation_path(conv.id)
        payload = _json.dumps(conv.to_dict(), indent=2, ensure_ascii=False)
        tmp_name: str | None = None
        try:
            self._ensure_dir()
            fd, tmp_name = _tempfile.mkstemp(
                dir=self.conversations_dir,
                prefix=f".{conv.id}.",
                suffix=".tmp",
            )
            with _os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            _os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise errors.PersistenceError(f"Cannot save conversation {conv.id}: {e}") from e
        finally:
            if tmp_name is not None:
                _pathlib.Path(tmp_name).unlink(missing_ok=True)

    def delete(self, conversation_id: str) -> bool:
        """Delete conversation from disk."""
        path = self._conversation_path(conversation_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_conversations(self) -> list[conversation.Conversation]:
        """List all readable conversations, sorted by id."""
        self._ensure_dir()
        conversations: list[conversation.Conversation] = []

        for path in sorted(self.conversations_dir.glob("*.json")):
            try:
                data = _json.loads(path.read_text(encoding="utf-8"))
                conversations.append(conversation.Conversation.from_dict(data))
            except (_json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue

        return conversations

    def list_summaries(self) -> list[dict[str, _typing.Any]]:
        """List conversation summaries (for CLI display)."""
        return [c.summary() for c in self.list_conversations()]
