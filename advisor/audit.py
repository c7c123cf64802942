"""Durable audit trails: bias/fairness entries and unexpected errors."""

from __future__ import annotations

import json
import threading
import traceback
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .config import config

if TYPE_CHECKING:
    from .models import Intent, Match

logger = config.get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class _JsonLinesLog:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _write(self, entry: dict[str, Any]) -> None:
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock:
            self.path.parent.mkdir(exist_ok=True, parents=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class BiasLog(_JsonLinesLog):
    """Answers flagged for biased language, one JSON object per line."""

    def __init__(self, path: Path | None = None) -> None:
        super().__init__(path or config.BIAS_LOG_PATH)

    def append(
        self,
        message: str,
        response: str,
        conversation_id: str | None = None,
        *,
        match: Match | None = None,
        intent: Intent | None = None,
        context: str | None = None,
    ) -> None:
        """Record a flagged answer with the chunk it was taken from."""
        self._write({
            "timestamp": _timestamp(),
            "conversation_id": conversation_id,
            "message": message,
            "response": response,
            "source": match.source if match is not None else None,
            "chunk_index": match.chunk_index if match is not None else None,
            "distance": match.distance if match is not None else None,
            "intent": intent.value if intent is not None else None,
            "context": context,
        })

    def tail(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return the most recent entries, oldest first.

        Lines that are not valid JSON are skipped.

        Returns:
            At most ``limit`` entries (``config.BIAS_LOG_TAIL`` by default).
        """
        limit = config.BIAS_LOG_TAIL if limit is None else limit
        if not self.path.exists():
            return []
        with self._lock, self.path.open(encoding="utf-8") as handle:
            lines = deque((line for line in handle if line.strip()), maxlen=limit)

        entries: list[dict[str, Any]] = []
        for line in lines:
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed bias log line")
        return entries


class ErrorLog(_JsonLinesLog):
    """Unexpected failures with the request that triggered them."""

    def __init__(self, path: Path | None = None) -> None:
        super().__init__(path or config.ERROR_LOG_PATH)

    def record(self, operation: str, body: dict[str, Any], exc: BaseException) -> None:
        """Append one failure; never raises, so callers can use it while handling."""
        try:
            self._write({
                "timestamp": _timestamp(),
                "operation": operation,
                "body": body,
                "error": f"{type(exc).__name__}: {exc}",
                "stack": "".join(
                    traceback.format_exception(type(exc), exc, exc.__traceback__)
                ),
            })
        except OSError:
            logger.exception("Could not write to error log %s", self.path)
