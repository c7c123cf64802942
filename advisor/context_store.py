"""Per-conversation session state with per-key locking and bounded retention."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import TYPE_CHECKING

from .config import config
from .models import ConversationSession, Turn, UserProfile

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = config.get_logger(__name__)


class _Entry:
    __slots__ = ("lock", "session")

    def __init__(self, session: ConversationSession) -> None:
        self.session = session
        self.lock = threading.Lock()


class ContextStore:
    """Owns every live ``ConversationSession``, keyed by conversation id.

    The map itself is guarded by one store lock that is held only for
    lookups and evictions. Each session carries its own lock, so turns for
    different conversations never wait on each other while every
    read-modify-write on a single conversation is serialized.

    Sessions idle for longer than ``ttl_seconds`` are dropped, and the map is
    capped at ``max_sessions`` entries by evicting the least recently used.
    A session whose lock is held is never evicted; the cap may be exceeded
    until that transaction ends. A conversation evicted between two
    transactions starts over with an empty session.
    """

    def __init__(
        self,
        max_turns: int | None = None,
        ttl_seconds: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty store.

        Args:
            max_turns: History bound per session. Defaults to
                config.MAX_HISTORY_TURNS.
            ttl_seconds: Idle time after which a session expires. Defaults to
                config.SESSION_TTL_SECONDS; zero or less disables expiry.
            max_sessions: Upper bound on live sessions. Defaults to
                config.MAX_SESSIONS.
            clock: Monotonic time source, injectable for tests.
        """
        self.max_turns = max_turns or config.MAX_HISTORY_TURNS
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else config.SESSION_TTL_SECONDS
        )
        self.max_sessions = max(1, max_sessions or config.MAX_SESSIONS)
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, conversation_id: object) -> bool:
        with self._lock:
            return conversation_id in self._entries

    def _evict_locked(self, now: float, keep: str) -> None:
        if self.ttl_seconds > 0:
            expired = [
                key
                for key, entry in self._entries.items()
                if key != keep
                and now - entry.session.updated_at > self.ttl_seconds
                and not entry.lock.locked()
            ]
            for key in expired:
                del self._entries[key]
            if expired:
                logger.debug("Expired %d idle conversations", len(expired))

        overflow = len(self._entries) - self.max_sessions
        if overflow <= 0:
            return
        idle = [
            key
            for key, entry in self._entries.items()
            if key != keep and not entry.lock.locked()
        ]
        for key in idle[:overflow]:
            del self._entries[key]
            logger.debug("Evicted least recently used conversation %s", key)

    def _entry(self, conversation_id: str) -> _Entry:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(conversation_id)
            if entry is None:
                entry = _Entry(
                    ConversationSession(conversation_id=conversation_id, updated_at=now)
                )
                self._entries[conversation_id] = entry
            else:
                entry.session.updated_at = now
            self._entries.move_to_end(conversation_id)
            self._evict_locked(now, keep=conversation_id)
            return entry

    @contextmanager
    def transaction(self, conversation_id: str) -> Iterator[ConversationSession]:
        """Hold the conversation's lock and yield its live session.

        Everything done to the session inside the ``with`` block is one
        atomic read-modify-write with respect to other callers.
        """
        while True:
            entry = self._entry(conversation_id)
            entry.lock.acquire()
            with self._lock:
                current = self._entries.get(conversation_id) is entry
            if current:
                break
            # evicted before its lock was taken
            entry.lock.release()
        try:
            yield entry.session
            entry.session.updated_at = self._clock()
        finally:
            entry.lock.release()

    def get_or_create(self, conversation_id: str) -> ConversationSession:
        """Return a detached copy of the session, creating it if needed."""  # noqa: DOC201
        with self.transaction(conversation_id) as session:
            return session.copy()

    def snapshot(self, conversation_id: str) -> ConversationSession:
        return self.get_or_create(conversation_id)

    def append_turn(self, conversation_id: str, turn: Turn) -> list[Turn]:
        """Append a turn, evicting the oldest beyond the history bound.

        Returns:
            The history after the append.
        """
        with self.transaction(conversation_id) as session:
            session.append(turn, self.max_turns)
            return list(session.history)

    def merge_profile(self, conversation_id: str, update: UserProfile) -> UserProfile:
        """Merge a partial profile field by field into the stored one.

        Returns:
            The merged profile.
        """
        with self.transaction(conversation_id) as session:
            session.merge_profile(update)
            return session.profile or update

    def set_page_context(self, conversation_id: str, text: str) -> None:
        with self.transaction(conversation_id) as session:
            session.page_context = text

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Conversation contexts cleared.")
