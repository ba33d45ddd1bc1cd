"""
Conversation entity for the resume interview.

A Conversation holds everything known about one interview: the collected
fields, the transcript exchanged with the model, and the tokens spent so far.
The stage the interview is in (`Need`) is never stored; it is derived from
which fields are set.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import json as _json
import typing as _typing


class Need(_enum.Enum):
    """The next thing the interview has to obtain."""

    PROFESSION = "profession"
    QUESTIONS = "questions"
    ANSWERS = "answers"
    RESUME = "resume"
    TERMINAL = "terminal"


class ConversationStateError(ValueError):
    """Raised when a mutation would break a conversation invariant."""

    pass


# =============================================================================
# Messages
# =============================================================================


@_dataclasses.dataclass(frozen=True)
class ToolInvocation:
    """An operation call embedded in an assistant message."""

    call_id: str
    operation_name: str
    raw_arguments: str

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "call_id": self.call_id,
            "operation_name": self.operation_name,
            "raw_arguments": self.raw_arguments,
        }

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> ToolInvocation:
        return cls(
            call_id=data["call_id"],
            operation_name=data["operation_name"],
            raw_arguments=data["raw_arguments"],
        )


@_dataclasses.dataclass(frozen=True)
class SystemMessage:
    content: str
    role: _typing.Literal["system"] = _dataclasses.field(default="system", init=False)

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"role": self.role, "content": self.content}

    def to_api_dict(self) -> dict[str, _typing.Any]:
        return {"role": self.role, "content": self.content}


@_dataclasses.dataclass(frozen=True)
class UserMessage:
    content: str
    role: _typing.Literal["user"] = _dataclasses.field(default="user", init=False)

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"role": self.role, "content": self.content}

    def to_api_dict(self) -> dict[str, _typing.Any]:
        return {"role": self.role, "content": self.content}


@_dataclasses.dataclass(frozen=True)
class AssistantMessage:
    """Model output: free text, invocations, or both."""

    content: str = ""
    invocations: tuple[ToolInvocation, ...] = ()
    role: _typing.Literal["assistant"] = _dataclasses.field(default="assistant", init=False)

    @property
    def size(self) -> int:
        """Text plus invocation arguments, in UTF-8 bytes."""
        total = len(self.content.encode("utf-8"))
        for invocation in self.invocations:
            total += len(invocation.raw_arguments.encode("utf-8"))
        return total

    def to_dict(self) -> dict[str, _typing.Any]:
        d: dict[str, _typing.Any] = {"role": self.role, "content": self.content}
        if self.invocations:
            d["invocations"] = [i.to_dict() for i in self.invocations]
        return d

    def to_api_dict(self) -> dict[str, _typing.Any]:
        d: dict[str, _typing.Any] = {"role": self.role, "content": self.content}
        if self.invocations:
            d["tool_calls"] = [
                {
                    "id": i.call_id,
                    "type": "function",
                    "function": {"name": i.operation_name, "arguments": i.raw_arguments},
                }
                for i in self.invocations
            ]
        return d


@_dataclasses.dataclass(frozen=True)
class ToolResultMessage:
    """Acknowledgement of one invocation, linked by its call id."""

    correlation_id: str
    content: str
    role: _typing.Literal["tool_result"] = _dataclasses.field(default="tool_result", init=False)

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "role": self.role,
            "correlation_id": self.correlation_id,
            "content": self.content,
        }

    def to_api_dict(self) -> dict[str, _typing.Any]:
        return {
            "role": self.role,
            "tool_use_id": self.correlation_id,
            "content": self.content,
        }


Message = SystemMessage | UserMessage | AssistantMessage | ToolResultMessage


def message_from_dict(data: dict[str, _typing.Any]) -> Message:
    """Rebuild a message from its serialized form, dispatching on `role`."""
    role = data.get("role")
    if role == "system":
        return SystemMessage(content=data["content"])
    if role == "user":
        return UserMessage(content=data["content"])
    if role == "assistant":
        return AssistantMessage(
            content=data.get("content", ""),
            invocations=tuple(
                ToolInvocation.from_dict(i) for i in data.get("invocations", [])
            ),
        )
    if role == "tool_result":
        return ToolResultMessage(
            correlation_id=data["correlation_id"],
            content=data["content"],
        )
    raise ValueError(f"Unknown message role: {role!r}")


# =============================================================================
# Questionnaire
# =============================================================================


@_dataclasses.dataclass
class Question:
    """One interview question. Only `answer` ever changes, and only once."""

    index: int
    text: str
    answer: str | None = None

    @property
    def answered(self) -> bool:
        return bool(self.answer)

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"index": self.index, "question": self.text, "answer": self.answer}

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Question:
        return cls(index=data["index"], text=data["question"], answer=data.get("answer"))


# =============================================================================
# Conversation
# =============================================================================


@_dataclasses.dataclass
class Conversation:
    """
    Persisted interview state for one identity.

    Attributes:
        id: Conversation identifier (never changes, survives reset)
        profession: Profession the resume is for
        questions: Interview questions, fixed once set
        resume: Final resume text; once set the conversation is frozen
        artifact_name: Name of the rendered resume in the artifact store
        transcript: Messages exchanged with the model
        tokens_spent: Cumulative usage; survives reset
    """

    id: str
    profession: str | None = None
    questions: list[Question] | None = None
    resume: str | None = None
    artifact_name: str | None = None
    transcript: list[Message] = _dataclasses.field(default_factory=list)
    tokens_spent: int = 0

    @property
    def need(self) -> Need:
        """What the interview has to obtain next. Pure function of the fields."""
        if self.resume is not None:
            return Need.TERMINAL
        if self.questions is not None:
            if all(q.answered for q in self.questions):
                return Need.RESUME
            return Need.ANSWERS
        if self.profession is not None:
            return Need.QUESTIONS
        return Need.PROFESSION

    def _ensure_open(self) -> None:
        if self.resume is not None:
            raise ConversationStateError(
                f"Conversation {self.id} is complete; reset it before making changes"
            )

    # === Transcript ===

    def add_message(self, message: Message) -> None:
        """Append a message to the transcript."""
        self._ensure_open()
        self.transcript.append(message)

    def add_tool_success(self, call_id: str, content: str) -> None:
        """Acknowledge an accepted invocation."""
        self.add_message(ToolResultMessage(correlation_id=call_id, content=content))

    def rollback_transcript(self, length: int) -> None:
        """Drop messages appended after the transcript had `length` entries."""
        if length < len(self.transcript):
            del self.transcript[length:]

    # === Fields ===

    def set_profession(self, profession: str) -> None:
        self._ensure_open()
        if self.profession is not None:
            raise ConversationStateError("Profession is already set")
        self.profession = profession

    def set_questions(self, questions: _typing.Sequence[str]) -> None:
        self._ensure_open()
        if self.questions is not None:
            raise ConversationStateError("Questions are already set")
        self.questions = [Question(index=i, text=q) for i, q in enumerate(questions)]

    def can_answer(self, index: int) -> bool:
        """Whether `index` names an existing question that has no answer yet."""
        if self.questions is None:
            return False
        return 0 <= index < len(self.questions) and not self.questions[index].answered

    def set_answer(self, index: int, answer: str) -> None:
        self._ensure_open()
        if self.questions is None:
            raise ConversationStateError("No questions to answer")
        if not 0 <= index < len(self.questions):
            raise ConversationStateError(f"Invalid question index: {index}")
        question = self.questions[index]
        if question.answered:
            raise ConversationStateError(f"Question {index} is already answered")
        if not answer:
            raise ConversationStateError("Answer must not be empty")
        question.answer = answer

    def set_resume(self, resume: str, artifact_name: str) -> None:
        """Record the final resume. Only allowed once every question is answered."""
        if self.need is not Need.RESUME:
            raise ConversationStateError(
                f"Resume cannot be set while the interview needs {self.need.value}"
            )
        self.resume = resume
        self.artifact_name = artifact_name

    def charge(self, units: int) -> None:
        """Add usage to the running total."""
        if units < 0:
            raise ConversationStateError("Usage must not be negative")
        self.tokens_spent += units

    def reset(self) -> None:
        """Wipe the interview, keeping the id and the tokens spent."""
        self.profession = None
        self.questions = None
        self.resume = None
        self.artifact_name = None
        self.transcript = []

    def questionnaire_json(self) -> str | None:
        """Current questions and answers as JSON, or None before questions exist."""
        if self.questions is None:
            return None
        return _json.dumps([q.to_dict() for q in self.questions], ensure_ascii=False)

    # === Serialization ===

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "profession": self.profession,
            "questions": (
                [q.to_dict() for q in self.questions] if self.questions is not None else None
            ),
            "resume": self.resume,
            "artifact_name": self.artifact_name,
            "transcript": [m.to_dict() for m in self.transcript],
            "tokens_spent": self.tokens_spent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Conversation:
        """Create from dictionary.

        Raises:
            ValueError: If `data` is not a mapping.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Conversation data must be an object, got {type(data).__name__}")
        questions_data = data.get("questions")
        return cls(
            id=data["id"],
            profession=data.get("profession"),
            questions=(
                [Question.from_dict(q) for q in questions_data]
                if questions_data is not None
                else None
            ),
            resume=data.get("resume"),
            artifact_name=data.get("artifact_name"),
            transcript=[message_from_dict(m) for m in data.get("transcript", [])],
            tokens_spent=data.get("tokens_spent", 0),
        )

    def summary(self) -> dict[str, _typing.Any]:
        """Get a summary of the conversation (for listing)."""
        answered = sum(1 for q in self.questions or [] if q.answered)
        return {
            "id": self.id,
            "need": self.need.value,
            "profession": self.profession,
            "questions": len(self.questions) if self.questions is not None else 0,
            "answered": answered,
            "has_resume": self.resume is not None,
            "message_count": len(self.transcript),
            "tokens_spent": self.tokens_spent,
        }
