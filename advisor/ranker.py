"""Post-retrieval ranking: grounding guard, rerank, chunk merge, alternatives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .config import config
from .models import Match, RetrievalResult

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = config.get_logger(__name__)

CHUNK_SEPARATOR = "\n\n"


class KnowledgeBase(Protocol):
    """Anything that can turn query text into nearest-neighbour matches."""

    async def query(self, text: str, top_k: int) -> list[Match]: ...


@dataclass(frozen=True)
class RetrievalMode:
    """How many neighbours to request and how far the nearest may be."""

    name: str
    top_k: int
    distance_threshold: float


CHAT_MODE = RetrievalMode(
    name="chat",
    top_k=config.CHAT_TOP_K,
    distance_threshold=config.CHAT_DISTANCE_THRESHOLD,
)
SEARCH_MODE = RetrievalMode(
    name="search",
    top_k=config.SEARCH_TOP_K,
    distance_threshold=config.SEARCH_DISTANCE_THRESHOLD,
)


def confidence_from_distance(distance: float) -> float:
    """Map a squared-L2 distance onto a [0, 1] confidence."""  # noqa: DOC201
    return max(0.0, min(1.0, 1.0 - distance / 2.0))


def is_grounded(matches: Sequence[Match], threshold: float) -> bool:
    return bool(matches) and matches[0].distance <= threshold


def keyword_terms(message: str) -> list[str]:
    return [
        word
        for word in message.lower().split()
        if len(word) >= config.MIN_KEYWORD_LENGTH
    ]


def select_match(matches: Sequence[Match], message: str) -> Match:
    """Prefer the nearest match containing every keyword of the message.

    Returns:
        The first match, in distance order, whose text contains all words of
        three or more characters; the nearest match when none does.
    """
    terms = keyword_terms(message)
    for match in matches:
        text = match.text.lower()
        if all(term in text for term in terms):
            return match
    return matches[0]


def merge_adjacent(
    matches: Sequence[Match],
    selected: Match,
    window: int = config.CHUNK_MERGE_WINDOW,
) -> list[Match]:
    """Collect retrieved chunks from the selected document near the selection.

    Returns:
        Matches sharing the selected source whose chunk index is within
        ``window`` of the selected one, in retrieval order.
    """
    return [
        match
        for match in matches
        if match.source == selected.source
        and abs(match.chunk_index - selected.chunk_index) <= window
    ]


def find_alternatives(matches: Sequence[Match], selected: Match) -> list[Match]:
    """Matches from other documents, de-duplicated by source and chunk index."""  # noqa: DOC201
    seen: set[tuple[str, int]] = set()
    alternatives: list[Match] = []
    for match in matches:
        key = (match.source, match.chunk_index)
        if match.source == selected.source or not match.text or key in seen:
            continue
        seen.add(key)
        alternatives.append(match)
    return alternatives


class RetrievalRanker:
    """Turns nearest-neighbour matches into a single grounded answer."""

    def __init__(self, knowledge_base: KnowledgeBase) -> None:
        self.knowledge_base = knowledge_base

    async def retrieve(
        self,
        query_text: str,
        message: str,
        mode: RetrievalMode = CHAT_MODE,
    ) -> RetrievalResult:
        """Query the knowledge base and rank what comes back.

        Args:
            query_text: Text to embed, usually the composed conversational query.
            message: The raw user message, used for keyword reranking.
            mode: Neighbour count and grounding threshold to apply.

        Returns:
            RetrievalResult, ungrounded when nothing is close enough.
        """
        matches = await self.knowledge_base.query(query_text, mode.top_k)
        for position, match in enumerate(matches, start=1):
            logger.debug(
                "Match %d: %s | Source: %s | Distance: %.4f",
                position,
                match.text[:100],
                match.source,
                match.distance,
            )
        return self.rank(matches, message, mode)

    @staticmethod
    def rank(
        matches: Sequence[Match],
        message: str,
        mode: RetrievalMode = CHAT_MODE,
    ) -> RetrievalResult:
        """Apply the grounding guard, rerank and merge adjacent chunks.

        Returns:
            RetrievalResult describing the selected answer.
        """
        ranked = sorted(matches, key=lambda match: match.distance)
        if not is_grounded(ranked, mode.distance_threshold):
            logger.info(
                "No match within %.2f for %s query", mode.distance_threshold, mode.name
            )
            return RetrievalResult.ungrounded(ranked)

        confidence = confidence_from_distance(ranked[0].distance)
        selected = select_match(ranked, message)
        close_chunks = merge_adjacent(ranked, selected)
        if len(close_chunks) > 1:
            answer = CHUNK_SEPARATOR.join(match.text for match in close_chunks)
        else:
            answer = selected.text

        return RetrievalResult(
            matches=ranked,
            grounded=True,
            confidence=confidence,
            selected=selected,
            answer=answer,
            alternatives=find_alternatives(ranked, selected),
        )
