"""Conversation engine: the per-turn state machine, search and admin reads."""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from .audit import BiasLog, ErrorLog
from .classifier import classify, clarification_options
from .config import config
from .context_store import ContextStore
from .errors import ValidationError
from .handoff import HandoffPolicy
from .models import (
    AnalyticsEvent,
    ConversationSession,
    IngestionReport,
    SearchReply,
    Turn,
    TurnReply,
    sanitize_input,
)
from .query_composer import compose_query
from .ranker import CHAT_MODE, SEARCH_MODE, RetrievalRanker, is_grounded
from .responses import (
    CLARIFICATION_MESSAGE,
    ResponseAssembler,
    format_answer,
    proactive_notification,
)
from .storage import AnalyticsStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .models import ClassificationResult, TurnRequest
    from .pipeline import RAGPipeline

logger = config.get_logger(__name__)


class ConversationEngine:
    """Answers chat turns from the indexed corpus within a conversation.

    A turn moves through: greeting (first message) -> classify -> clarify
    (ambiguous) -> readiness wait -> retrieve -> ungrounded | rank and
    assemble. Any unexpected error is caught here, recorded in the error log
    and turned into a generic failure reply.
    """

    def __init__(  # noqa: PLR0913
        self,
        knowledge_base: RAGPipeline,
        *,
        context_store: ContextStore | None = None,
        analytics: AnalyticsStore | None = None,
        bias_log: BiasLog | None = None,
        error_log: ErrorLog | None = None,
        handoff_policy: HandoffPolicy | None = None,
        assembler: ResponseAssembler | None = None,
        poll_interval: float | None = None,
        max_polls: int | None = None,
    ) -> None:
        """Wire the engine to its collaborators.

        Args:
            knowledge_base: Embedding and vector search backend; anything with
                ``is_ready``, ``query``, ``list_documents`` and ``reindex``.
            context_store: Session store. A fresh one by default.
            analytics: Users and analytics persistence.
            bias_log: Bias/fairness audit log.
            error_log: Durable log of unexpected failures.
            handoff_policy: Escalation detector.
            assembler: Reply builder.
            poll_interval: Seconds between readiness checks.
            max_polls: Readiness checks before answering "not ready".
        """
        self.knowledge_base = knowledge_base
        self.context_store = (
            context_store if context_store is not None else ContextStore()
        )
        self.analytics = analytics if analytics is not None else AnalyticsStore()
        self.bias_log = bias_log if bias_log is not None else BiasLog()
        self.error_log = error_log if error_log is not None else ErrorLog()
        self.handoff_policy = (
            handoff_policy if handoff_policy is not None else HandoffPolicy()
        )
        self.assembler = assembler if assembler is not None else ResponseAssembler()
        self.ranker = RetrievalRanker(knowledge_base)
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.READY_POLL_INTERVAL
        )
        self.max_polls = max_polls if max_polls is not None else config.READY_MAX_POLLS

    @contextmanager
    def _session(
        self, conversation_id: str | None, scratch: ConversationSession
    ) -> Iterator[ConversationSession]:
        # Turns without an id work on a throw-away session that is never stored.
        if conversation_id is None:
            yield scratch
            return
        with self.context_store.transaction(conversation_id) as session:
            yield session

    async def ensure_ready(self) -> bool:
        """Wait a bounded time for the knowledge base to finish loading.

        Returns:
            True once the knowledge base reports ready, False after the last poll.
        """
        for _ in range(self.max_polls):
            if self.knowledge_base.is_ready:
                return True
            await asyncio.sleep(self.poll_interval)
        return self.knowledge_base.is_ready

    async def handle_turn(self, request: TurnRequest) -> TurnReply:
        """Run one chat turn and always return a reply."""  # noqa: DOC201
        try:
            return await self._run_turn(request)
        except Exception as exc:
            logger.exception(
                "Chat turn failed for conversation %s", request.conversation_id
            )
            self.error_log.record("chat", request.to_payload(), exc)
            return self.assembler.failure()

    async def _run_turn(self, request: TurnRequest) -> TurnReply:
        max_turns = self.context_store.max_turns
        scratch = ConversationSession(conversation_id="")
        conversation_id = request.conversation_id

        with self._session(conversation_id, scratch) as session:
            if request.context:
                session.page_context = request.context
            if request.message:
                session.last_user_message = request.message
            if request.user_profile is not None:
                session.merge_profile(request.user_profile)
            if request.message:
                session.append(Turn("user", request.message), max_turns)
            snapshot = session.copy()

        logger.debug(
            "Chat request: conversation=%s first=%s page=%s",
            conversation_id,
            request.is_first_message,
            request.page_url,
        )

        if request.is_first_message:
            return self.assembler.greeting(snapshot, request.context)

        classification = classify(request.message)
        logger.info(
            "Classified message as %s (bias=%s, ambiguous=%s)",
            classification.intent.value,
            classification.bias,
            classification.ambiguous,
        )

        if classification.ambiguous:
            with self._session(conversation_id, scratch) as session:
                session.append(Turn("bot", CLARIFICATION_MESSAGE), max_turns)
                snapshot = session.copy()
            reply = self.assembler.clarification(
                classification,
                snapshot,
                clarification_options(request.message),
                self.handoff_policy.evaluate(request.message, snapshot.history),
            )
            await self._record_turn(request, snapshot, classification, reply)
            return reply

        if not await self.ensure_ready():
            logger.warning("Knowledge base not ready after %d polls", self.max_polls)
            return self.assembler.not_ready(classification, snapshot)

        query_text = compose_query(snapshot.history, request.message)
        retrieval = await self.ranker.retrieve(query_text, request.message, CHAT_MODE)

        if not retrieval.grounded or retrieval.selected is None:
            reply = self.assembler.ungrounded(
                classification,
                snapshot,
                self.handoff_policy.evaluate(request.message, snapshot.history),
            )
            await self._record_turn(request, snapshot, classification, reply)
            return reply

        selected = retrieval.selected
        response = format_answer(
            retrieval.answer, selected.source, bias=classification.bias
        )
        if classification.bias:
            self.bias_log.append(
                request.message,
                response,
                conversation_id,
                match=selected,
                intent=classification.intent,
                context=snapshot.page_context,
            )

        with self._session(conversation_id, scratch) as session:
            session.append(Turn("bot", response), max_turns)
            snapshot = session.copy()

        reply = self.assembler.answer(
            classification,
            retrieval,
            response,
            snapshot,
            proactive_notification(request.message, snapshot.page_context),
            self.handoff_policy.evaluate(request.message, snapshot.history),
        )
        await self._record_turn(request, snapshot, classification, reply)
        return reply

    async def _record_turn(
        self,
        request: TurnRequest,
        session: ConversationSession,
        classification: ClassificationResult,
        reply: TurnReply,
    ) -> None:
        await asyncio.to_thread(
            self._persist_turn, request, session, classification, reply
        )

    def _persist_turn(
        self,
        request: TurnRequest,
        session: ConversationSession,
        classification: ClassificationResult,
        reply: TurnReply,
    ) -> None:
        """Write the turn's analytics events; storage errors never fail a turn."""
        conversation_id = request.conversation_id
        profile = session.profile
        try:
            user_id = (
                self.analytics.upsert_user(profile)
                if profile is not None and profile.email
                else None
            )
            self.analytics.log_event(
                AnalyticsEvent(
                    event_type="user_message",
                    conversation_id=conversation_id,
                    user_id=user_id,
                    message=request.message,
                    meta={"userProfile": profile.to_dict() if profile else None},
                )
            )
            self.analytics.log_event(
                AnalyticsEvent(
                    event_type="bot_response",
                    conversation_id=conversation_id,
                    user_id=user_id,
                    message=reply.response,
                    meta={
                        "intent": classification.intent.value,
                        "bias": classification.bias,
                        "ambiguous": classification.ambiguous,
                        "grounded": reply.grounded,
                        "alternatives": [
                            {"source": match.source, "chunk_index": match.chunk_index}
                            for match in reply.alternatives
                        ],
                        "notification": reply.notification,
                    },
                )
            )
            if reply.handoff_required:
                self.analytics.log_event(
                    AnalyticsEvent(
                        event_type="handoff",
                        conversation_id=conversation_id,
                        user_id=user_id,
                        message=request.message,
                        meta={"handoffMethod": reply.handoff_method},
                    )
                )
        except sqlite3.Error:
            logger.exception(
                "Failed to record analytics for conversation %s", conversation_id
            )

    async def search(self, query: object) -> SearchReply:
        """Stateless nearest-neighbour search with the stricter search threshold.

        Raises:
            ValidationError: If the query is missing or empty after sanitizing.

        Returns:
            SearchReply; ``status`` is set when the search could not run.
        """
        text = sanitize_input(query).strip()
        if not text:
            msg = "Query is required"
            raise ValidationError(msg)

        if not await self.ensure_ready():
            return SearchReply(
                matches=[], grounded=False, hallucination=True, status="not_ready"
            )

        try:
            matches = await self.knowledge_base.query(text, SEARCH_MODE.top_k)
        except Exception as exc:
            logger.exception("Search failed")
            self.error_log.record("search", {"query": text}, exc)
            return SearchReply(
                matches=[],
                grounded=False,
                hallucination=True,
                status="error",
                error="Search failed",
            )

        matches = sorted(matches, key=lambda match: match.distance)
        grounded = is_grounded(matches, SEARCH_MODE.distance_threshold)
        return SearchReply(
            matches=matches, grounded=grounded, hallucination=not grounded
        )

    # Administrative reads

    def analytics_summary(self) -> list[dict[str, Any]]:
        return self.analytics.analytics_summary()

    def list_users(self) -> list[dict[str, Any]]:
        return self.analytics.list_users()

    def bias_log_tail(self, limit: int | None = None) -> list[dict[str, Any]]:
        return self.bias_log.tail(limit)

    def list_documents(self) -> dict[str, list[str]]:
        return self.knowledge_base.list_documents()

    def reindex(self) -> IngestionReport:
        """Rebuild the index from the document corpus."""  # noqa: DOC201
        logger.info("Reindexing document corpus")
        return self.knowledge_base.reindex()
