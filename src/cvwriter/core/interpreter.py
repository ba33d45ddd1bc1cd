"""
Response interpreter: operation schemas and argument decoding per stage.

Each stage that talks to the model offers exactly one structured operation.
The pydantic model for an operation is both the JSON schema advertised to the
model and the validator for the raw arguments that come back.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import pydantic as _pydantic

import cvwriter.api.types as api_types
import cvwriter.core.conversation as conversation
import cvwriter.errors as errors

MIN_QUESTIONS = 5
MAX_QUESTIONS = 20


class SaveProfessionArgs(_pydantic.BaseModel):
    """Arguments of `save_profession`."""

    profession: str = _pydantic.Field(
        min_length=1,
        description="Profession the resume is written for",
    )


class AddQuestionsArgs(_pydantic.BaseModel):
    """Arguments of `add_questions`."""

    questions: list[_typing.Annotated[str, _pydantic.Field(min_length=1)]] = _pydantic.Field(
        min_length=MIN_QUESTIONS,
        max_length=MAX_QUESTIONS,
        description="Interview questions needed to write the resume",
    )


class SetAnswerArgs(_pydantic.BaseModel):
    """Arguments of `set_answer`."""

    index: int = _pydantic.Field(
        ge=0,
        strict=True,
        description="Index of the question being answered",
    )
    answer: str = _pydantic.Field(description="The user's answer to that question")


class SaveResumeArgs(_pydantic.BaseModel):
    """Arguments of `save_resume`."""

    resume: str = _pydantic.Field(
        min_length=1,
        description="Full resume text in Markdown",
    )


@_dataclasses.dataclass(frozen=True)
class StageSpec:
    """The operation offered to the model in one stage."""

    stage: conversation.Need
    operation: str
    description: str
    arguments: type[_pydantic.BaseModel]

    @property
    def tool(self) -> api_types.Tool:
        """Operation definition as sent to the completion client."""
        return api_types.Tool(
            name=self.operation,
            description=self.description,
            input_schema=self.arguments.model_json_schema(),
        )

    def decode(self, operation_name: str, raw_arguments: str) -> _typing.Any:
        """
        Decode raw invocation arguments into the stage's typed result.

        Raises:
            DecodeError: If the operation is not the one offered, the arguments
                are not JSON, or a required field is missing or out of bounds.
        """
        if operation_name != self.operation:
            raise errors.DecodeError(
                operation_name or "<unnamed>",
                f"expected '{self.operation}'",
            )
        try:
            return self.arguments.model_validate_json(raw_arguments or "")
        except _pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise errors.DecodeError(operation_name, problems) from e


STAGES: dict[conversation.Need, StageSpec] = {
    conversation.Need.PROFESSION: StageSpec(
        stage=conversation.Need.PROFESSION,
        operation="save_profession",
        description="Save the profession the user wants a resume for.",
        arguments=SaveProfessionArgs,
    ),
    conversation.Need.QUESTIONS: StageSpec(
        stage=conversation.Need.QUESTIONS,
        operation="add_questions",
        description="Save the list of interview questions for the resume.",
        arguments=AddQuestionsArgs,
    ),
    conversation.Need.ANSWERS: StageSpec(
        stage=conversation.Need.ANSWERS,
        operation="set_answer",
        description="Save the user's answer to one interview question.",
        arguments=SetAnswerArgs,
    ),
    conversation.Need.RESUME: StageSpec(
        stage=conversation.Need.RESUME,
        operation="save_resume",
        description="Save the finished resume.",
        arguments=SaveResumeArgs,
    ),
}


def get_stage(need: conversation.Need) -> StageSpec:
    """
    Look up the operation for a stage.

    Raises:
        KeyError: For the terminal stage, which never talks to the model.
    """
    return STAGES[need]
