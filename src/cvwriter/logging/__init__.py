"""
Conversation logging for cvwriter.

Provides JSONL logging of every driven turn for debugging and analysis.
"""

from cvwriter.logging.conversation_logger import ConversationLogger

__all__ = [
    "ConversationLogger",
]
