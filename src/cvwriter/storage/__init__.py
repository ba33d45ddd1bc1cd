"""
Storage for conversations and rendered resume documents.
"""

from cvwriter.storage.artifacts import ArtifactStore, FilesystemArtifactStore
from cvwriter.storage.conversations import (
    ConversationStore,
    InvalidConversationIdError,
    JsonConversationStore,
    generate_conversation_id,
    validate_conversation_id,
)

__all__ = [
    "ArtifactStore",
    "ConversationStore",
    "FilesystemArtifactStore",
    "InvalidConversationIdError",
    "JsonConversationStore",
    "generate_conversation_id",
    "validate_conversation_id",
]
