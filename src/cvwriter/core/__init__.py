"""
Core interview logic for cvwriter.

This package holds the conversation model and the turn state machine. It
does no I/O of its own: completion calls go through the client it is given,
and storage and rendering are requested through instructions.

The turn driver lives in `cvwriter.core.driver` and is not re-exported here
because it depends on the configuration package.
"""

from cvwriter.core.conversation import (
    AssistantMessage,
    Conversation,
    ConversationStateError,
    Message,
    Need,
    Question,
    SystemMessage,
    ToolInvocation,
    ToolResultMessage,
    UserMessage,
)
from cvwriter.core.history import window
from cvwriter.core.interpreter import StageSpec, get_stage
from cvwriter.core.processor import (
    Continue,
    DeleteArtifact,
    Instruction,
    RenderAndStore,
    TurnOutcome,
    TurnProcessor,
    UserFacing,
)

__all__ = [
    # Conversation model
    "AssistantMessage",
    "Conversation",
    "ConversationStateError",
    "Message",
    "Need",
    "Question",
    "SystemMessage",
    "ToolInvocation",
    "ToolResultMessage",
    "UserMessage",
    # History
    "window",
    # Interpreter
    "StageSpec",
    "get_stage",
    # Processor
    "Continue",
    "DeleteArtifact",
    "Instruction",
    "RenderAndStore",
    "TurnOutcome",
    "TurnProcessor",
    "UserFacing",
]
