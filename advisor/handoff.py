"""Escalation-to-human detection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import Turn

HUMAN_REQUEST_PATTERN = re.compile(
    r"human|agent|contact|real person|talk to|speak to|help"
)

# Every clarification reply contains this phrase.
CLARIFICATION_SIGNATURE = "not quite sure"
UNRESOLVED_WINDOW = 3
UNRESOLVED_LIMIT = 3


@dataclass(frozen=True)
class HandoffDecision:
    required: bool
    method: str | None = None


class HandoffPolicy:
    """Decides when a conversation should be passed to a person."""

    def __init__(self, method: str = config.HANDOFF_METHOD) -> None:
        self.method = method

    @staticmethod
    def requests_human(message: str) -> bool:
        return bool(HUMAN_REQUEST_PATTERN.search(message.lower()))

    @staticmethod
    def unresolved_clarifications(history: Sequence[Turn]) -> int:
        """Count clarification replies among the last few history entries."""  # noqa: DOC201
        return sum(
            1
            for turn in history[-UNRESOLVED_WINDOW:]
            if turn.sender == "bot" and CLARIFICATION_SIGNATURE in turn.text.lower()
        )

    def evaluate(self, message: str, history: Sequence[Turn]) -> HandoffDecision:
        """Return whether to escalate and through which channel.

        Escalates on an explicit request for a person, or when the most
        recent entries are all unresolved clarification replies.

        Returns:
            HandoffDecision with the fixed handoff method when required.
        """
        if (
            self.requests_human(message)
            or self.unresolved_clarifications(history) >= UNRESOLVED_LIMIT
        ):
            return HandoffDecision(required=True, method=self.method)
        return HandoffDecision(required=False)
