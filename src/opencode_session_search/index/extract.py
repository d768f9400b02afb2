"""Flatten recent session messages into searchable text."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..models import Message

# Trailing messages indexed per session
MESSAGES_PER_SESSION = 10


def fetch_limit(window: int = MESSAGES_PER_SESSION) -> int:
    """Messages to request per session so the trailing window is complete."""
    return window * 2


def extract_text(
    messages: Sequence[Message], window: int = MESSAGES_PER_SESSION
) -> str:
    """
    Join the text parts of the last ``window`` messages.

    Args:
        messages: Messages ordered most-recent-last
        window: Number of trailing messages to use

    Returns:
        Text segments in message and part order, separated by one space.
        Tool calls, files and other non-text parts are skipped.
    """
    recent = messages[-window:] if window > 0 else []
    return " ".join(
        part.text
        for message in recent
        for part in message.parts
        if part.is_text and part.text
    )
