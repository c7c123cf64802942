"""SQLite persistence for visitor profiles and analytics events."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .config import config
from .errors import ValidationError

if TYPE_CHECKING:
    from .models import AnalyticsEvent, UserProfile

logger = config.get_logger(__name__)


class AnalyticsStore:
    """Users keyed by email and an append-only analytics log."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or config.ANALYTICS_DB_PATH)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _create_tables(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT,
                    county TEXT,
                    language TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS analytics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER,
                    conversation_id TEXT,
                    event_type TEXT NOT NULL,
                    message TEXT,
                    meta TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users (id)
                )
            """)
            conn.commit()

    def upsert_user(self, profile: UserProfile) -> int:
        """Insert or update a visitor by email.

        Fields missing from the profile keep their stored values.

        Raises:
            ValidationError: If the profile has no email.

        Returns:
            The user's row id.
        """
        if not profile.email:
            msg = "Email is required to persist a user profile"
            raise ValidationError(msg)

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (email, name, county, language)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET
                    name = COALESCE(excluded.name, users.name),
                    county = COALESCE(excluded.county, users.county),
                    language = COALESCE(excluded.language, users.language)
                """,
                (profile.email, profile.name, profile.county, profile.language),
            )
            row = conn.execute(
                "SELECT id FROM users WHERE email = ?", (profile.email,)
            ).fetchone()
            conn.commit()
        return int(row["id"])

    def log_event(self, event: AnalyticsEvent) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO analytics
                    (user_id, conversation_id, event_type, message, meta)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.user_id,
                    event.conversation_id,
                    event.event_type,
                    event.message,
                    json.dumps(event.meta or {}),
                ),
            )
            conn.commit()

    def analytics_summary(self) -> list[dict[str, Any]]:
        """Count analytics events per event type.

        Returns:
            One ``{"event_type", "count"}`` mapping per type seen.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT event_type, COUNT(*) AS count
                FROM analytics
                GROUP BY event_type
                ORDER BY event_type
                """
            ).fetchall()
        return [dict(row) for row in rows]

    def list_users(self) -> list[dict[str, Any]]:
        """Return every stored user, newest first."""  # noqa: DOC201
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, email, name, county, language, created_at
                FROM users
                ORDER BY created_at DESC, id DESC
                """
            ).fetchall()
        return [dict(row) for row in rows]
