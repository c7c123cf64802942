"""Data models for the recovery advisor."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Literal

import numpy as np

Sender = Literal["user", "bot"]

_UNSAFE_CHARS = re.compile(r"[<>\"'`\\]")


def sanitize_input(value: object) -> str:
    """Strip markup and quoting characters from free text.

    Returns:
        The cleaned string, or an empty string for non-string input.
    """
    if not isinstance(value, str):
        return ""
    return _UNSAFE_CHARS.sub("", value)


class Intent(str, Enum):
    """Closed set of intents a user message can be classified into."""

    EMERGENCY = "emergency"
    STATUS = "status"
    PROCESS = "process"
    COMPARATIVE = "comparative"
    LOCATION = "location"
    LEGAL = "legal"
    FINANCIAL = "financial"
    EMOTIONAL_SUPPORT = "emotional_support"
    ELIGIBILITY = "eligibility"
    CONTACT = "contact"
    FEEDBACK = "feedback"
    AMBIGUOUS = "ambiguous"
    INFORMATION = "information"
    GREETING = "greeting"


@dataclass
class DocumentChunk:
    """Represents a chunk of text from a document."""

    content: str
    metadata: dict[str, Any]
    embedding: np.ndarray | None = None

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))

    @property
    def chunk_index(self) -> int:
        return int(self.metadata.get("chunk_index", 0))

    @property
    def chunk_key(self) -> str:
        """Index identifier of the chunk, ``<documentName>_<chunkIndex>``."""
        return f"{self.source}_{self.chunk_index}"


@dataclass(frozen=True)
class Turn:
    """A single message in a conversation history."""

    sender: Sender
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"sender": self.sender, "text": self.text}


@dataclass
class UserProfile:
    """Visitor profile; ``email`` is the identity key for persistence."""

    name: str | None = None
    county: str | None = None
    email: str | None = None
    language: str | None = None

    @classmethod
    def from_payload(cls, payload: object) -> UserProfile | None:
        """Build a partial profile from a request payload.

        Returns:
            The profile, or None when the payload carries no known field.
        """
        if not isinstance(payload, dict):
            return None
        values = {
            item.name: payload[item.name]
            for item in fields(cls)
            if isinstance(payload.get(item.name), str)
        }
        if not values:
            return None
        return cls(**values)

    def merge(self, update: UserProfile) -> UserProfile:
        """Overlay the fields set on ``update`` onto this profile.

        Returns:
            A new profile; fields absent from ``update`` are kept.
        """
        changes = {
            item.name: getattr(update, item.name)
            for item in fields(update)
            if getattr(update, item.name) is not None
        }
        return replace(self, **changes)

    def to_dict(self) -> dict[str, str]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(frozen=True)
class Match:
    """A retrieved chunk with its distance from the query (lower is closer)."""

    text: str
    source: str
    chunk_index: int
    distance: float

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, distance: float) -> Match:
        return cls(
            text=chunk.content,
            source=chunk.source,
            chunk_index=chunk.chunk_index,
            distance=float(distance),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "source": self.source,
            "chunk_index": self.chunk_index,
            "score": self.distance,
        }


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of running the classifiers over one message."""

    intent: Intent
    bias: bool
    ambiguous: bool


@dataclass
class RetrievalResult:
    """Ranked interpretation of nearest-neighbour matches."""

    matches: list[Match]
    grounded: bool
    confidence: float = 0.0
    selected: Match | None = None
    answer: str = ""
    alternatives: list[Match] = field(default_factory=list)

    @classmethod
    def ungrounded(cls, matches: list[Match]) -> RetrievalResult:
        return cls(matches=matches, grounded=False)

    @property
    def hallucination(self) -> bool:
        return not self.grounded


@dataclass
class ConversationSession:
    """Per-conversation state kept by the context store."""

    conversation_id: str
    history: list[Turn] = field(default_factory=list)
    profile: UserProfile | None = None
    page_context: str = ""
    last_user_message: str = ""
    updated_at: float = 0.0

    def append(self, turn: Turn, max_turns: int) -> None:
        self.history.append(turn)
        if len(self.history) > max_turns:
            del self.history[: len(self.history) - max_turns]

    def merge_profile(self, update: UserProfile) -> None:
        self.profile = update if self.profile is None else self.profile.merge(update)

    def copy(self) -> ConversationSession:
        return replace(self, history=list(self.history))

    def history_dicts(self) -> list[dict[str, str]]:
        return [turn.to_dict() for turn in self.history]


@dataclass
class TurnRequest:
    """A chat turn as received from the front end."""

    message: str = ""
    context: str = ""
    page_url: str = ""
    is_first_message: bool = False
    conversation_id: str | None = None
    user_profile: UserProfile | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TurnRequest:
        """Build a sanitized request from the wire payload.

        Returns:
            TurnRequest with every free-text field sanitized.
        """
        conversation_id = payload.get("conversationId")
        return cls(
            message=sanitize_input(payload.get("message")),
            context=sanitize_input(payload.get("context")),
            page_url=sanitize_input(payload.get("pageUrl")),
            is_first_message=bool(payload.get("isFirstMessage")),
            conversation_id=conversation_id
            if isinstance(conversation_id, str) and conversation_id
            else None,
            user_profile=UserProfile.from_payload(payload.get("userProfile")),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "context": self.context,
            "pageUrl": self.page_url,
            "isFirstMessage": self.is_first_message,
            "conversationId": self.conversation_id,
            "userProfile": self.user_profile.to_dict() if self.user_profile else None,
        }


@dataclass
class TurnReply:
    """Structured reply to a chat turn.

    Optional fields left as None (or empty) are omitted by ``to_dict`` so the
    wire payload only carries what applies to this turn.
    """

    response: str
    confidence: float
    bias: bool
    ambiguous: bool
    uncertainty: bool
    grounded: bool
    hallucination: bool
    intent: Intent
    history: list[dict[str, str]] = field(default_factory=list)
    context: str | None = None
    source: str | None = None
    chunk_index: int | None = None
    distance: float | None = None
    matches: list[Match] = field(default_factory=list)
    alternatives: list[Match] = field(default_factory=list)
    notification: str | None = None
    handoff_required: bool = False
    handoff_method: str | None = None
    clarification_options: list[str] = field(default_factory=list)
    is_greeting: bool = False
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "response": self.response,
            "confidence": self.confidence,
            "bias": self.bias,
            "ambiguous": self.ambiguous,
            "uncertainty": self.uncertainty,
            "grounded": self.grounded,
            "hallucination": self.hallucination,
            "intent": self.intent.value,
            "history": self.history,
        }
        optional: dict[str, Any] = {
            "context": self.context or None,
            "source": self.source,
            "chunk_index": self.chunk_index,
            "distance": self.distance,
            "matches": [match.to_dict() for match in self.matches] or None,
            "alternatives": [
                {
                    "answer": match.text,
                    "source": match.source,
                    "chunk_index": match.chunk_index,
                }
                for match in self.alternatives
            ]
            or None,
            "notification": self.notification,
            "clarificationOptions": self.clarification_options or None,
            "isGreeting": self.is_greeting or None,
            "status": self.status,
        }
        payload.update({
            key: value for key, value in optional.items() if value is not None
        })
        if self.handoff_required:
            payload["handoffRequired"] = True
            payload["handoffMethod"] = self.handoff_method
        return payload


@dataclass
class SearchReply:
    """Reply to a stateless search request."""

    matches: list[Match]
    grounded: bool
    hallucination: bool
    status: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "matches": [match.to_dict() for match in self.matches],
            "grounded": self.grounded,
            "hallucination": self.hallucination,
        }
        if self.status is not None:
            payload["status"] = self.status
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class IngestionReport:
    """Outcome of a full reindex of the document corpus."""

    documents: int = 0
    chunks: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "chunks": self.chunks,
            "failures": dict(self.failures),
        }


@dataclass(frozen=True)
class AnalyticsEvent:
    """One row of the append-only analytics log."""

    event_type: str
    conversation_id: str | None = None
    user_id: int | None = None
    message: str | None = None
    meta: dict[str, Any] | None = None
