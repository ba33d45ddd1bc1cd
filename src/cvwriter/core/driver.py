"""
Turn driver: the service the outside world talks to.

`InterviewService.handle_message` runs one externally visible turn. It loads
the conversation, steps the processor until it has something to say, carries
out the instructions the processor produced, and saves the conversation once.
"""

from __future__ import annotations

import asyncio as _asyncio
import contextlib as _contextlib
import logging as _logging
import typing as _typing

import pydantic as _pydantic

import cvwriter.api as api
import cvwriter.config as config
import cvwriter.constants as _constants
import cvwriter.core.conversation as conversation
import cvwriter.core.processor as processor
import cvwriter.core.prompts as stage_prompts
import cvwriter.errors as errors
import cvwriter.logging as cvwriter_logging
import cvwriter.render as render
import cvwriter.storage as storage

_logger = _logging.getLogger(__name__)


class TurnOverrides(_pydantic.BaseModel):
    """Per-turn replacements for configured values. None keeps the setting."""

    credential: str | None = None
    max_output_size: int | None = _pydantic.Field(default=None, ge=1)
    model: str | None = None
    history_budget: int | None = _pydantic.Field(default=None, ge=1)
    spend_ceiling: int | None = _pydantic.Field(default=None, ge=0)


class TurnInput(_pydantic.BaseModel):
    """One message from the user."""

    conversation_id: str
    text: str
    overrides: TurnOverrides = _pydantic.Field(default_factory=TurnOverrides)


class TurnReply(_pydantic.BaseModel):
    """What the user sees after a turn."""

    conversation_id: str
    text: str
    need: str | None = None
    """Stage after the turn; None when the input was rejected unread."""

    generated: bool = False
    """A resume document was rendered and stored during this turn."""

    artifact_name: str | None = None


ClientFactory = _typing.Callable[[config.Settings, TurnOverrides], api.CompletionClient]


def default_client_factory(
    settings: config.Settings,
    overrides: TurnOverrides,
) -> api.CompletionClient:
    """Build an OpenAI-compatible client, honouring model and credential overrides."""
    return api.create_client(settings, model=overrides.model, api_key=overrides.credential)


async def drive(
    turn_processor: processor.TurnProcessor,
    conv: conversation.Conversation,
    text: str | None,
    budget_ceiling: int,
) -> tuple[str, list[processor.Instruction]]:
    """
    Step the processor until it produces user-facing text.

    The first step gets `text`; every following step gets no input.

    Returns:
        The reply text and the instructions of all steps, in order.
    """
    outcome, instructions = await turn_processor.process_turn(conv, text, budget_ceiling)
    collected = list(instructions)
    while isinstance(outcome, processor.Continue):
        outcome, instructions = await turn_processor.process_turn(conv, None, budget_ceiling)
        collected.extend(instructions)
    return outcome.text, collected


class InterviewService:
    """
    Load, drive, execute and persist turns for many conversations.

    Turns for the same conversation id are serialized; different ids run
    concurrently.
    """

    def __init__(
        self,
        settings: config.Settings,
        *,
        store: storage.ConversationStore,
        artifacts: storage.ArtifactStore,
        renderer: render.Renderer,
        client_factory: ClientFactory = default_client_factory,
        logger: cvwriter_logging.ConversationLogger | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._artifacts = artifacts
        self._renderer = renderer
        self._client_factory = client_factory
        self._logger = logger or cvwriter_logging.ConversationLogger(enabled=False)
        self._locks: dict[str, _asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: config.Settings) -> InterviewService:
        """Create a service backed by local files, as configured."""
        log_config = settings.logging
        logger = cvwriter_logging.ConversationLogger(
            log_dir=log_config.dir,
            provider="openai",
            model=settings.model.name,
            enabled=log_config.enabled,
        )
        return cls(
            settings,
            store=storage.JsonConversationStore(settings.storage.conversations_dir),
            artifacts=storage.FilesystemArtifactStore(settings.storage.artifacts_dir),
            renderer=render.CommandRenderer(
                settings.render.program,
                timeout=settings.render.timeout,
            ),
            logger=logger,
        )

    @property
    def settings(self) -> config.Settings:
        return self._settings

    @_contextlib.asynccontextmanager
    async def _serialized(self, conversation_id: str) -> _typing.AsyncIterator[None]:
        """Hold the lock of `conversation_id`; the lock is dropped once nobody uses it."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = _asyncio.Lock()
            self._locks[conversation_id] = lock
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[conversation_id] - 1
            if remaining:
                self._lock_users[conversation_id] = remaining
            else:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    def _stage_prompts(self) -> stage_prompts.StagePrompts:
        prompts = self._settings.prompts
        return stage_prompts.StagePrompts(
            profession=prompts.profession,
            questions=prompts.questions,
            answers=prompts.answers,
            resume=prompts.resume,
        )

    # === Service surface ===

    def create_conversation(self) -> str:
        """Create an empty conversation and return its id."""
        conv = self._store.create()
        _logger.info("Created conversation %s", conv.id)
        return conv.id

    def get_conversation(self, conversation_id: str) -> conversation.Conversation:
        """
        Load a conversation.

        Raises:
            ConversationNotFoundError: If no conversation has this id.
        """
        conv = self._store.load(conversation_id)
        if conv is None:
            raise errors.ConversationNotFoundError(conversation_id)
        return conv

    def load_artifact(self, conversation_id: str) -> bytes:
        """
        Return the rendered resume of a conversation.

        Raises:
            ConversationNotFoundError: If no conversation has this id.
            ArtifactStoreError: If the conversation has no stored resume.
        """
        conv = self.get_conversation(conversation_id)
        if conv.artifact_name is None:
            raise errors.ArtifactStoreError(
                f"Conversation {conversation_id} has no rendered resume"
            )
        return self._artifacts.load(conv.artifact_name)

    async def handle_message(self, turn: TurnInput) -> TurnReply:
        """
        Run one turn for `turn.conversation_id`.

        Raises:
            ConversationNotFoundError: Unknown conversation id.
            TransportError: The completion backend failed; nothing was saved.
            MalformedStructuredResult: The model's structured output was
                unusable; the conversation was saved with the charge.
            TurnTimeoutError: The turn took too long; nothing was saved.
            RenderError, ArtifactStoreError: An instruction failed; the
                conversation was saved.
            PersistenceError: The conversation could not be saved.
        """
        async with self._serialized(turn.conversation_id):
            return await self._handle_locked(turn)

    async def _handle_locked(self, turn: TurnInput) -> TurnReply:
        overrides = turn.overrides
        limits = self._settings.limits
        history_budget = overrides.history_budget or limits.history_budget
        budget_ceiling = (
            overrides.spend_ceiling if overrides.spend_ceiling is not None else limits.spend_ceiling
        )

        # Surrounding whitespace is not part of the message
        text = turn.text.strip()
        if len(text.encode("utf-8")) > history_budget:
            return TurnReply(
                conversation_id=turn.conversation_id,
                text=_constants.TOO_LONG_REPLY,
            )

        conv = self.get_conversation(turn.conversation_id)

        client = self._client_factory(self._settings, overrides)
        turn_processor = processor.TurnProcessor(
            client,
            prompts=self._stage_prompts(),
            history_budget=history_budget,
            max_tokens=overrides.max_output_size or self._settings.model.max_output_size,
            resume_max_tokens=self._settings.model.resume_max_output_size,
            logger=self._logger,
        )

        try:
            async with _asyncio.timeout(limits.turn_timeout):
                reply_text, instructions = await drive(turn_processor, conv, text, budget_ceiling)
        except TimeoutError as e:
            self._logger.log_error("turn timed out", context=f"conversation {conv.id}")
            raise errors.TurnTimeoutError(limits.turn_timeout) from e
        except errors.MalformedStructuredResult:
            self._store.save(conv)
            raise
        finally:
            await client.close()

        try:
            generated = await self._execute(conv, instructions)
        except (errors.RenderError, errors.ArtifactStoreError) as e:
            self._logger.log_error(str(e), context=f"instruction for {conv.id}")
            self._store.save(conv)
            raise

        self._store.save(conv)
        return TurnReply(
            conversation_id=conv.id,
            text=reply_text,
            need=conv.need.value,
            generated=generated,
            artifact_name=conv.artifact_name if generated else None,
        )

    async def _execute(
        self,
        conv: conversation.Conversation,
        instructions: list[processor.Instruction],
    ) -> bool:
        """Carry out instructions in order. Returns True if a document was stored."""
        generated = False
        for instruction in instructions:
            if isinstance(instruction, processor.DeleteArtifact):
                self._artifacts.delete(instruction.name)
                self._logger.log_instruction(conv.id, kind="delete", name=instruction.name)
            elif isinstance(instruction, processor.RenderAndStore):
                data = await self._renderer.render(instruction.text)
                self._artifacts.store(data, instruction.name)
                generated = True
                self._logger.log_instruction(conv.id, kind="render", name=instruction.name)
                _logger.info("Stored resume %s for conversation %s", instruction.name, conv.id)
        return generated

    def close(self) -> None:
        """Close the event log."""
        self._logger.close()
