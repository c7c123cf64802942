"""Builds the text handed to the embedding step."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import Turn

TURN_SEPARATOR = " | "


def compose_query(
    history: Sequence[Turn],
    message: str,
    context_turns: int = config.QUERY_CONTEXT_TURNS,
) -> str:
    """Fold the most recent turns into the retrieval query.

    With more than one turn of history, the last ``context_turns`` turns are
    rendered as ``"<sender>: <text>"`` and joined, followed by the current
    message. A lone message is used as-is.

    Returns:
        The text to embed for nearest-neighbour search.
    """
    if len(history) <= 1:
        return message
    recent = [f"{turn.sender}: {turn.text}" for turn in history[-context_turns:]]
    return TURN_SEPARATOR.join([*recent, message])
