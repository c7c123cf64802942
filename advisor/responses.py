"""Reply composition: greetings, banners, notifications and sparse fields."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from .config import config
from .models import Intent, TurnReply

if TYPE_CHECKING:
    from .handoff import HandoffDecision
    from .models import ClassificationResult, ConversationSession, RetrievalResult

BIAS_WARNING = (
    "⚠️ Bias Warning: This response may contain biased language or "
    "assumptions."
)

CLARIFICATION_MESSAGE = (
    "I'd love to help you, but I'm not quite sure what you're asking. Could you "
    "please provide more details or rephrase your question? I'm here to assist "
    "with fire recovery information, permits, debris removal, rebuilding "
    "processes, and more."
)

UNGROUNDED_MESSAGE = (
    "I'm sorry, but I couldn't find specific information about that in our "
    "official documents. This could be because the information isn't available "
    "yet, or you might want to try rephrasing your question. I'm here to help "
    "with fire recovery topics like debris removal, rebuilding permits, "
    "inspections, and recovery resources."
)

NOT_READY_MESSAGE = (
    "I apologize, but my knowledge base is still loading. Please try again in a "
    "moment."
)

FAILURE_MESSAGE = (
    "I apologize, but something went wrong on my end. Please try again, and if "
    "the problem persists, you may want to contact support directly."
)

GREETINGS: tuple[str, ...] = (
    "Hello! I'm Aldeia Advisor, your friendly guide through the fire recovery "
    "process. How can I help you today?",
    "Welcome! I'm here to support you with information about fire recovery in LA "
    "County. What would you like to know?",
    "Hi there! I'm Aldeia Advisor, ready to help you navigate the recovery "
    "process. What questions do you have?",
    "Greetings! I'm your personal assistant for fire recovery information. How "
    "may I assist you today?",
)

CLARIFICATION_CONFIDENCE = 0.3
UNGROUNDED_CONFIDENCE = 0.5

# (keyword, also match page context, notification); first match wins.
NOTIFICATION_RULES: tuple[tuple[str, bool, str], ...] = (
    (
        "pasadena",
        True,
        "Pasadena County: New debris removal deadline is April 30, 2025.",
    ),
    (
        "la county",
        True,
        "LA County: Opt-out applications for debris removal close May 15, 2025.",
    ),
    (
        "deadline",
        False,
        "Reminder: Check your local county website for the latest fire recovery "
        "deadlines.",
    ),
)


def proactive_notification(message: str, page_context: str = "") -> str | None:
    """Pick a time-sensitive notice relevant to the message or current page."""  # noqa: DOC201
    text = message.lower()
    context = page_context.lower()
    for keyword, check_context, notification in NOTIFICATION_RULES:
        if keyword in text or (check_context and keyword in context):
            return notification
    return None


def format_answer(answer: str, source: str, *, bias: bool) -> str:
    """Attach the source line and, when needed, the bias banner."""  # noqa: DOC201
    response = f"{answer}\n\nSource: {source}"
    if bias:
        response = f"{BIAS_WARNING}\n\n{response}"
    return response


def is_uncertain(confidence: float) -> bool:
    return confidence < config.UNCERTAINTY_THRESHOLD


class ResponseAssembler:
    """Builds ``TurnReply`` objects for each terminal state of a turn."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311

    def greeting_text(self, session: ConversationSession, context: str = "") -> str:
        """Welcome the visitor, by name when the profile carries one.

        Returns:
            Greeting text.
        """
        if session.profile and session.profile.name:
            return (
                f"Hello, {session.profile.name}! I'm Aldeia Advisor, your friendly "
                "guide through the fire recovery process. How can I help you today?"
            )
        greeting = self._rng.choice(GREETINGS)
        if context:
            return (
                f"{greeting} I can see you're looking at information about "
                f"{context}. I'm here to help clarify any questions you might have."
            )
        return greeting

    def greeting(self, session: ConversationSession, context: str = "") -> TurnReply:
        return TurnReply(
            response=self.greeting_text(session, context),
            confidence=1.0,
            bias=False,
            ambiguous=False,
            uncertainty=False,
            grounded=True,
            hallucination=False,
            intent=Intent.GREETING,
            history=session.history_dicts(),
            context=context or None,
            is_greeting=True,
        )

    @staticmethod
    def clarification(
        classification: ClassificationResult,
        session: ConversationSession,
        options: list[str],
        handoff: HandoffDecision,
    ) -> TurnReply:
        return TurnReply(
            response=CLARIFICATION_MESSAGE,
            confidence=CLARIFICATION_CONFIDENCE,
            bias=classification.bias,
            ambiguous=True,
            uncertainty=True,
            grounded=False,
            hallucination=False,
            intent=classification.intent,
            history=session.history_dicts(),
            context=session.page_context or None,
            clarification_options=options,
            handoff_required=handoff.required,
            handoff_method=handoff.method,
        )

    @staticmethod
    def ungrounded(
        classification: ClassificationResult,
        session: ConversationSession,
        handoff: HandoffDecision,
    ) -> TurnReply:
        return TurnReply(
            response=UNGROUNDED_MESSAGE,
            confidence=UNGROUNDED_CONFIDENCE,
            bias=classification.bias,
            ambiguous=classification.ambiguous,
            uncertainty=True,
            grounded=False,
            hallucination=True,
            intent=classification.intent,
            history=session.history_dicts(),
            context=session.page_context or None,
            handoff_required=handoff.required,
            handoff_method=handoff.method,
        )

    @staticmethod
    def answer(  # noqa: PLR0913, PLR0917
        classification: ClassificationResult,
        retrieval: RetrievalResult,
        response: str,
        session: ConversationSession,
        notification: str | None,
        handoff: HandoffDecision,
    ) -> TurnReply:
        """Compose the reply for a grounded answer.

        Args:
            classification: Classifier output for the user message.
            retrieval: Grounded retrieval result with a selected match.
            response: Formatted answer text (see ``format_answer``).
            session: Session snapshot taken after the answer was recorded.
            notification: Proactive notification, if any applies.
            handoff: Escalation decision for this turn.

        Returns:
            TurnReply carrying the answer and its optional fields.
        """
        selected = retrieval.selected
        return TurnReply(
            response=response,
            confidence=retrieval.confidence,
            bias=classification.bias,
            ambiguous=False,
            uncertainty=is_uncertain(retrieval.confidence),
            grounded=True,
            hallucination=False,
            intent=classification.intent,
            history=session.history_dicts(),
            context=session.page_context or None,
            source=selected.source if selected else None,
            chunk_index=selected.chunk_index if selected else None,
            distance=selected.distance if selected else None,
            matches=list(retrieval.matches),
            alternatives=list(retrieval.alternatives),
            notification=notification,
            handoff_required=handoff.required,
            handoff_method=handoff.method,
        )

    @staticmethod
    def not_ready(
        classification: ClassificationResult, session: ConversationSession
    ) -> TurnReply:
        return TurnReply(
            response=NOT_READY_MESSAGE,
            confidence=0.0,
            bias=classification.bias,
            ambiguous=classification.ambiguous,
            uncertainty=True,
            grounded=False,
            hallucination=False,
            intent=classification.intent,
            history=session.history_dicts(),
            context=session.page_context or None,
            status="not_ready",
        )

    @staticmethod
    def failure() -> TurnReply:
        return TurnReply(
            response=FAILURE_MESSAGE,
            confidence=0.0,
            bias=False,
            ambiguous=False,
            uncertainty=True,
            grounded=False,
            hallucination=False,
            intent=Intent.INFORMATION,
            status="error",
        )
