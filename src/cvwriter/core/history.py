"""
History windowing for outbound requests.

Only the newest part of a transcript is sent with each request. The window
is measured in UTF-8 bytes of message content, never cuts a message in half,
and never touches the stored transcript.
"""

from __future__ import annotations

import typing as _typing

import cvwriter.core.conversation as conversation


def message_size(message: conversation.Message) -> int:
    """Size of a message in UTF-8 bytes (content plus invocation arguments)."""
    return message.size


def window(
    transcript: _typing.Sequence[conversation.Message],
    byte_budget: int,
) -> list[conversation.Message]:
    """
    Return the longest suffix of `transcript` that fits within `byte_budget`.

    Messages are taken newest first. The first message that would push the
    running total over the budget stops the walk and is itself excluded, so an
    oversized newest message yields an empty window.

    Args:
        transcript: Full transcript, oldest first.
        byte_budget: Maximum total size in bytes.

    Returns:
        A new list, oldest first.
    """
    total = 0
    start = len(transcript)
    for i in range(len(transcript) - 1, -1, -1):
        size = message_size(transcript[i])
        if total + size > byte_budget:
            break
        total += size
        start = i
    return list(transcript[start:])
