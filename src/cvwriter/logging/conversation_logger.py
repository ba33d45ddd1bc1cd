"""
Conversation logger for cvwriter.

Logs every driven turn to a JSONL file for debugging and analysis.
"""

import datetime as _datetime
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

DEFAULT_LOG_DIR = "/tmp/cvwriter-logs"


class ConversationLogger:
    """
    Logs turn events to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - log_start: Process metadata (provider, model)
    - turn_start: A turn begins for a conversation
    - user_message: Input that was appended to the transcript
    - completion_request: Stage, message count and operation offered
    - completion_response: Response shape and usage
    - tool_call: An invocation returned by the model, and whether it applied
    - stage_complete: A field was captured and the stage advanced
    - turn_outcome: Reply returned to the caller
    - instruction: A side effect executed by the driver
    - error: Error events
    - log_end: Logger closed

    A disabled logger accepts every call and writes nothing, so callers never
    need to check.

    Usage:
        logger = ConversationLogger(log_dir="/tmp", provider="openai", model="gpt-3.5-turbo")
        logger.log_turn_start("abc123", need="profession")
        logger.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        provider: str = "unknown",
        model: str = "unknown",
        enabled: bool = True,
    ) -> None:
        """
        Initialize the conversation logger.

        Args:
            log_dir: Directory for log files (default: /tmp/cvwriter-logs).
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            provider: Completion provider name.
            model: Model name.
            enabled: Whether logging is enabled.
        """
        self._enabled = enabled
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._log_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        self._event_count = 0

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else _pathlib.Path(DEFAULT_LOG_DIR)
            base_dir.mkdir(parents=True, exist_ok=True)
            if private_mode:
                _os.chmod(base_dir, 0o700)
            self._file_path = base_dir / f"cvwriter_{self._log_id}_{_os.getpid()}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "a", encoding="utf-8")  # noqa: SIM115

        self._write_event(
            "log_start",
            {
                "log_id": self._log_id,
                "provider": provider,
                "model": model,
            },
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Path of the log file, or None when disabled."""
        return self._file_path

    @property
    def event_count(self) -> int:
        return self._event_count

    def _write_event(
        self,
        event_type: str,
        data: dict[str, _typing.Any],
    ) -> None:
        """Write an event to the log file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }

        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()
        except OSError:
            # Logging must never break a turn
            pass

    def log_turn_start(self, conversation_id: str, *, need: str) -> None:
        """Log the start of a processing step."""
        self._write_event("turn_start", {"conversation_id": conversation_id, "need": need})

    def log_user_message(self, conversation_id: str, content: str) -> None:
        """Log user input appended to the transcript."""
        self._write_event(
            "user_message",
            {"conversation_id": conversation_id, "content": content},
        )

    def log_completion_request(
        self,
        conversation_id: str,
        *,
        need: str,
        message_count: int,
        operation: str,
        max_tokens: int,
    ) -> None:
        """Log an outbound completion request."""
        self._write_event(
            "completion_request",
            {
                "conversation_id": conversation_id,
                "need": need,
                "message_count": message_count,
                "operation": operation,
                "max_tokens": max_tokens,
            },
        )

    def log_completion_response(
        self,
        conversation_id: str,
        *,
        shape: str,
        input_tokens: int,
        output_tokens: int,
        stop_reason: str | None = None,
    ) -> None:
        """Log the shape and usage of a completion response."""
        self._write_event(
            "completion_response",
            {
                "conversation_id": conversation_id,
                "shape": shape,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "stop_reason": stop_reason,
            },
        )

    def log_tool_call(
        self,
        conversation_id: str,
        *,
        tool_name: str,
        tool_input: str,
        tool_id: str | None = None,
        applied: bool = True,
        reason: str | None = None,
    ) -> None:
        """Log an invocation returned by the model."""
        self._write_event(
            "tool_call",
            {
                "conversation_id": conversation_id,
                "tool_name": tool_name,
                "tool_input": tool_input,
                "tool_id": tool_id,
                "applied": applied,
                "reason": reason,
            },
        )

    def log_stage_complete(self, conversation_id: str, *, completed: str, need: str) -> None:
        """Log that a stage captured its field; `need` is the new stage."""
        self._write_event(
            "stage_complete",
            {"conversation_id": conversation_id, "completed": completed, "need": need},
        )

    def log_turn_outcome(
        self,
        conversation_id: str,
        *,
        outcome: str,
        text: str | None = None,
    ) -> None:
        """Log the outcome of a processing step."""
        self._write_event(
            "turn_outcome",
            {"conversation_id": conversation_id, "outcome": outcome, "text": text},
        )

    def log_instruction(self, conversation_id: str, *, kind: str, name: str) -> None:
        """Log a side effect executed for a conversation."""
        self._write_event(
            "instruction",
            {"conversation_id": conversation_id, "kind": kind, "name": name},
        )

    def log_error(self, error: str, context: str | None = None) -> None:
        """Log an error event."""
        self._write_event(
            "error",
            {
                "error": error,
                "context": context,
            },
        )

    def close(self) -> None:
        """Close the log file."""
        if not self._enabled or not self._file:
            return

        self._write_event("log_end", {"total_events": self._event_count})

        try:
            self._file.close()
        except OSError:
            pass
        finally:
            self._file = None

    def __enter__(self) -> "ConversationLogger":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: _typing.Any,
    ) -> None:
        """Context manager exit."""
        if exc_type:
            self.log_error(str(exc_val), context=f"Exception: {exc_type.__name__}")
        self.close()
