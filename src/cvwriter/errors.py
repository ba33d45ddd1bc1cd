"""
Exception hierarchy for cvwriter.

None of these are retried inside the library. They propagate one level up
to the caller, which decides whether to run the whole turn again.
"""

from __future__ import annotations

import typing as _typing

if _typing.TYPE_CHECKING:
    import cvwriter.core.conversation as _conversation


class CvWriterError(Exception):
    """Base class for all cvwriter errors."""

    pass


class TransportError(CvWriterError):
    """The completion backend could not be reached or returned nothing usable.

    Nothing was charged and the conversation is unchanged.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MalformedStructuredResult(CvWriterError):
    """A structured invocation from the model could not be used.

    Carries the stage being processed and the shape actually received so a
    single bad response is reported instead of crashing the process.
    """

    def __init__(
        self,
        stage: "_conversation.Need",
        shape: str,
        detail: str = "",
    ) -> None:
        self.stage = stage
        self.shape = shape
        self.detail = detail
        message = f"Malformed structured result in {stage.value} stage (received {shape})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DecodeError(CvWriterError):
    """Raw invocation arguments failed validation against the stage schema."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Cannot decode arguments of '{operation}': {detail}")


class PersistenceError(CvWriterError):
    """The conversation could not be saved or loaded."""

    pass


class ConversationNotFoundError(CvWriterError):
    """No conversation exists with the requested id."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class RenderError(CvWriterError):
    """The resume text could not be turned into a document."""

    pass


class ArtifactStoreError(CvWriterError):
    """A rendered document could not be stored, loaded or deleted."""

    pass


class TurnTimeoutError(CvWriterError):
    """The driven turn did not finish within its wall-clock budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Turn did not complete within {timeout:g}s")
