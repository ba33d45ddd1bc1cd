"""
Turn processor: the interview state machine.

`TurnProcessor.process_turn` performs one step of a turn. It works out what
the conversation still needs, makes at most one completion call, applies the
result to the conversation and tells the caller what to do next:

- `UserFacing(text)`: the step produced a reply for the user; the turn is over.
- `Continue()`: a field was captured without anything to show; call again
  with no input.

Side effects outside the conversation (rendering, storing and deleting the
resume document) are returned as instructions for the caller to execute.
The processor never persists anything.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import typing as _typing
import uuid as _uuid

import cvwriter.api.base as api_base
import cvwriter.api.types as api_types
import cvwriter.constants as _constants
import cvwriter.core.conversation as conversation
import cvwriter.core.history as history
import cvwriter.core.interpreter as interpreter
import cvwriter.core.prompts as stage_prompts
import cvwriter.errors as errors
import cvwriter.logging as cvwriter_logging

_logger = _logging.getLogger(__name__)


# =============================================================================
# Outcomes and instructions
# =============================================================================


@_dataclasses.dataclass(frozen=True)
class UserFacing:
    """The step produced text for the user."""

    text: str


@_dataclasses.dataclass(frozen=True)
class Continue:
    """The step advanced the conversation silently; step again with no input."""


TurnOutcome = UserFacing | Continue


@_dataclasses.dataclass(frozen=True)
class RenderAndStore:
    """Render `text` into a document and store it as `name`."""

    text: str
    name: str


@_dataclasses.dataclass(frozen=True)
class DeleteArtifact:
    """Remove the stored document `name`."""

    name: str


Instruction = RenderAndStore | DeleteArtifact

StepResult = tuple[TurnOutcome, list[Instruction]]


# =============================================================================
# Processor
# =============================================================================


class TurnProcessor:
    """
    Runs single steps of the interview against a completion client.

    The processor holds no per-conversation state; one instance can serve
    any number of conversations as long as each conversation is processed
    by one caller at a time.
    """

    def __init__(
        self,
        client: api_base.CompletionClient,
        *,
        prompts: stage_prompts.StagePrompts | None = None,
        history_budget: int = _constants.DEFAULT_HISTORY_BUDGET,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
        resume_max_tokens: int = _constants.DEFAULT_RESUME_MAX_TOKENS,
        logger: cvwriter_logging.ConversationLogger | None = None,
    ) -> None:
        """
        Initialize the processor.

        Args:
            client: Completion client used for every remote call.
            prompts: System instructions per stage (default: compiled-in).
            history_budget: Bytes of transcript sent with each request.
            max_tokens: Output size hint for ordinary stages.
            resume_max_tokens: Output size hint when writing the resume.
            logger: Event logger (default: disabled).
        """
        self._client = client
        self._prompts = prompts or _default_prompts()
        self._history_budget = history_budget
        self._max_tokens = max_tokens
        self._resume_max_tokens = resume_max_tokens
        self._logger = logger or cvwriter_logging.ConversationLogger(enabled=False)

    async def process_turn(
        self,
        conv: conversation.Conversation,
        input_text: str | None,
        budget_ceiling: int,
    ) -> StepResult:
        """
        Perform one step of a turn.

        Args:
            conv: Conversation to advance. Mutated in place.
            input_text: New user input, or None when continuing a turn.
            budget_ceiling: Tokens the conversation may have spent before
                remote calls are refused.

        Returns:
            The outcome of the step and the instructions it produced.

        Raises:
            TransportError: The completion call failed. Input appended in
                this step is removed again and nothing is charged.
            MalformedStructuredResult: The model's structured output could
                not be used. The charge and the user input are kept.
        """
        need = conv.need
        self._logger.log_turn_start(conv.id, need=need.value)

        if input_text == _constants.RESET_COMMAND:
            return self._reset(conv)

        if need is conversation.Need.TERMINAL:
            assert conv.resume is not None
            if (
                input_text is not None
                and input_text.strip().lower() == _constants.REPLAY_COMMAND
            ):
                return self._finish(conv, UserFacing(conv.resume), [])
            return self._finish(conv, UserFacing(_constants.COMPLETED_REPLY), [])

        mark = len(conv.transcript)
        if input_text is not None:
            conv.add_message(conversation.UserMessage(content=input_text))
            self._logger.log_user_message(conv.id, input_text)

        if conv.tokens_spent >= budget_ceiling:
            _logger.info(
                "Conversation %s reached its spend ceiling (%d >= %d)",
                conv.id,
                conv.tokens_spent,
                budget_ceiling,
            )
            return self._finish(conv, UserFacing(_constants.LIMIT_EXCEEDED_REPLY), [])

        stage = interpreter.get_stage(need)
        messages = self._build_messages(conv, need)
        max_tokens = (
            self._resume_max_tokens if need is conversation.Need.RESUME else self._max_tokens
        )
        self._logger.log_completion_request(
            conv.id,
            need=need.value,
            message_count=len(messages),
            operation=stage.operation,
            max_tokens=max_tokens,
        )

        try:
            response = await self._client.complete(
                messages,
                tools=[stage.tool],
                max_tokens=max_tokens,
            )
        except errors.TransportError as e:
            conv.rollback_transcript(mark)
            self._logger.log_error(str(e), context=f"completion ({need.value})")
            raise

        conv.charge(response.usage.total_tokens)
        self._logger.log_completion_response(
            conv.id,
            shape=response.shape,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

        if response.has_tool_use:
            if need is conversation.Need.ANSWERS:
                return self._apply_answers(conv, stage, response)
            return self._apply_single(conv, stage, response)

        if response.content:
            conv.add_message(conversation.AssistantMessage(content=response.content))
            return self._finish(conv, UserFacing(response.content), [])

        error = errors.MalformedStructuredResult(need, response.shape)
        self._logger.log_error(str(error), context="interpret")
        raise error

    def _reset(self, conv: conversation.Conversation) -> StepResult:
        instructions: list[Instruction] = []
        if conv.resume is not None and conv.artifact_name:
            instructions.append(DeleteArtifact(name=conv.artifact_name))
        conv.reset()
        _logger.info("Conversation %s reset", conv.id)
        return self._finish(conv, UserFacing(_constants.RESET_REPLY), instructions)

    def _build_messages(
        self,
        conv: conversation.Conversation,
        need: conversation.Need,
    ) -> list[dict[str, _typing.Any]]:
        """Stage instructions, questionnaire state where relevant, then the window."""
        outbound: list[conversation.Message] = [
            conversation.SystemMessage(content=self._prompts.for_stage(need.value)),
        ]
        if need in (conversation.Need.ANSWERS, conversation.Need.RESUME):
            questionnaire = conv.questionnaire_json()
            assert questionnaire is not None
            outbound.append(conversation.SystemMessage(content=questionnaire))
        outbound.extend(history.window(conv.transcript, self._history_budget))
        return [m.to_api_dict() for m in outbound]

    def _apply_single(
        self,
        conv: conversation.Conversation,
        stage: interpreter.StageSpec,
        response: api_types.CompletionResponse,
    ) -> StepResult:
        """Apply the first invocation of a single-result stage."""
        tool_use = response.tool_uses[0]
        try:
            args = stage.decode(tool_use.name, tool_use.arguments)
        except errors.DecodeError as e:
            self._log_tool_call(conv, tool_use, applied=False, reason=e.detail)
            error = errors.MalformedStructuredResult(stage.stage, response.shape, str(e))
            self._logger.log_error(str(error), context="interpret")
            raise error from e

        self._log_tool_call(conv, tool_use, applied=True)
        conv.add_message(
            conversation.AssistantMessage(
                content=response.content,
                invocations=(_to_invocation(tool_use),),
            )
        )
        conv.add_tool_success(tool_use.id, _constants.TOOL_SUCCESS)

        instructions: list[Instruction] = []
        if stage.stage is conversation.Need.PROFESSION:
            conv.set_profession(args.profession)
        elif stage.stage is conversation.Need.QUESTIONS:
            conv.set_questions(args.questions)
        elif stage.stage is conversation.Need.RESUME:
            artifact_name = f"{_uuid.uuid4()}{_constants.ARTIFACT_SUFFIX}"
            conv.set_resume(args.resume, artifact_name)
            instructions.append(RenderAndStore(text=args.resume, name=artifact_name))

        self._stage_complete(conv, stage)
        return self._finish(conv, Continue(), instructions)

    def _apply_answers(
        self,
        conv: conversation.Conversation,
        stage: interpreter.StageSpec,
        response: api_types.CompletionResponse,
    ) -> StepResult:
        """Apply every usable `set_answer` invocation, dropping the rest."""
        applied: list[tuple[api_types.ToolUse, interpreter.SetAnswerArgs]] = []
        pending: set[int] = set()

        for tool_use in response.tool_uses:
            reason: str | None = None
            try:
                args = stage.decode(tool_use.name, tool_use.arguments)
            except errors.DecodeError as e:
                reason = e.detail
            else:
                if not args.answer:
                    reason = "empty answer"
                elif args.index in pending or not conv.can_answer(args.index):
                    reason = f"index {args.index} is out of range or already answered"

            if reason is not None:
                _logger.warning(
                    "Dropping %s invocation %s for conversation %s: %s",
                    tool_use.name or "<unnamed>",
                    tool_use.id,
                    conv.id,
                    reason,
                )
                self._log_tool_call(conv, tool_use, applied=False, reason=reason)
                continue

            pending.add(args.index)
            applied.append((tool_use, args))
            self._log_tool_call(conv, tool_use, applied=True)

        if not applied:
            error = errors.MalformedStructuredResult(
                stage.stage,
                response.shape,
                "no usable set_answer invocation",
            )
            self._logger.log_error(str(error), context="interpret")
            raise error

        conv.add_message(
            conversation.AssistantMessage(
                content=response.content,
                invocations=tuple(_to_invocation(t) for t, _ in applied),
            )
        )
        for tool_use, args in applied:
            conv.add_tool_success(tool_use.id, _constants.TOOL_SUCCESS)
            conv.set_answer(args.index, args.answer)

        if conv.need is not conversation.Need.ANSWERS:
            self._stage_complete(conv, stage)
        return self._finish(conv, Continue(), [])

    def _stage_complete(
        self,
        conv: conversation.Conversation,
        stage: interpreter.StageSpec,
    ) -> None:
        _logger.info(
            "Conversation %s completed %s stage, now needs %s",
            conv.id,
            stage.stage.value,
            conv.need.value,
        )
        self._logger.log_stage_complete(
            conv.id,
            completed=stage.stage.value,
            need=conv.need.value,
        )

    def _log_tool_call(
        self,
        conv: conversation.Conversation,
        tool_use: api_types.ToolUse,
        *,
        applied: bool,
        reason: str | None = None,
    ) -> None:
        self._logger.log_tool_call(
            conv.id,
            tool_name=tool_use.name,
            tool_input=tool_use.arguments,
            tool_id=tool_use.id,
            applied=applied,
            reason=reason,
        )

    def _finish(
        self,
        conv: conversation.Conversation,
        outcome: TurnOutcome,
        instructions: list[Instruction],
    ) -> StepResult:
        if isinstance(outcome, UserFacing):
            self._logger.log_turn_outcome(conv.id, outcome="user_facing", text=outcome.text)
        else:
            self._logger.log_turn_outcome(conv.id, outcome="continue")
        return outcome, instructions


def _to_invocation(tool_use: api_types.ToolUse) -> conversation.ToolInvocation:
    return conversation.ToolInvocation(
        call_id=tool_use.id,
        operation_name=tool_use.name,
        raw_arguments=tool_use.arguments,
    )


def _default_prompts() -> stage_prompts.StagePrompts:
    return stage_prompts.StagePrompts()
