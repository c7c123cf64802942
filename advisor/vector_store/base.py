"""Shared helpers for SQLite-backed vector stores."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from advisor.config import config
from advisor.models import DocumentChunk

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np

logger = config.get_logger(__name__)

CHUNK_COLUMNS = """
    c.id,
    c.chunk_key,
    c.chunk_index,
    c.content,
    c.vector_file,
    d.source,
    d.jurisdiction
"""


class BaseSQLiteStore:
    """Chunk metadata kept in SQLite; the row id doubles as the vector id.

    Chunks are keyed by ``<documentName>_<chunkIndex>``. Upserting a key that
    already exists replaces the old row, so subclasses must drop the vector
    stored under the previous row id.
    """

    backend = "base"

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _create_tables(self) -> None:
        """Create document and chunk tables if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL UNIQUE,
                    jurisdiction TEXT,
                    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chunk_key TEXT NOT NULL UNIQUE,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    vector_file TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (document_id) REFERENCES documents (id)
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id)"
            )
            conn.commit()

    @staticmethod
    def _upsert_document(
        cursor: sqlite3.Cursor, source: str, jurisdiction: str | None
    ) -> int:
        """Insert document metadata if missing and return its id.

        Raises:
            RuntimeError: If the document id cannot be retrieved.

        Returns:
            Document id from the metadata store.
        """
        cursor.execute(
            "INSERT OR IGNORE INTO documents (source, jurisdiction) VALUES (?, ?)",
            (source, jurisdiction),
        )
        cursor.execute("SELECT id FROM documents WHERE source = ?", (source,))
        row = cursor.fetchone()
        if row is None:
            msg = f"Failed to upsert document for source '{source}'"
            raise RuntimeError(msg)
        return int(row[0])

    def _replace_chunk_row(
        self, cursor: sqlite3.Cursor, chunk: DocumentChunk
    ) -> tuple[int, tuple[int, str | None] | None]:
        """Write a chunk row, replacing any row stored under the same key.

        Raises:
            RuntimeError: If the chunk row cannot be inserted.

        Returns:
            The new row id, and the (row id, vector file) of the replaced row
            when there was one.
        """
        cursor.execute(
            "SELECT id, vector_file FROM chunks WHERE chunk_key = ?",
            (chunk.chunk_key,),
        )
        previous = cursor.fetchone()
        if previous is not None:
            cursor.execute("DELETE FROM chunks WHERE id = ?", (previous[0],))

        document_id = self._upsert_document(
            cursor, chunk.source, chunk.metadata.get("jurisdiction")
        )
        cursor.execute(
            """
            INSERT INTO chunks (chunk_key, document_id, chunk_index, content)
            VALUES (?, ?, ?, ?)
            """,
            (chunk.chunk_key, document_id, chunk.chunk_index, chunk.content),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            msg = f"Failed to insert chunk row for '{chunk.chunk_key}'"
            raise RuntimeError(msg)
        replaced = (int(previous[0]), previous[1]) if previous is not None else None
        return int(row_id), replaced

    def _delete_document_rows(self, source: str) -> list[tuple[int, str | None]]:
        """Delete a document and every chunk stored for it.

        Returns:
            (row id, vector file) of each deleted chunk.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT c.id, c.vector_file
                FROM chunks c
                JOIN documents d ON c.document_id = d.id
                WHERE d.source = ?
                """,
                (source,),
            )
            removed = [(int(row_id), vector_file) for row_id, vector_file in cursor]
            cursor.execute(
                """
                DELETE FROM chunks WHERE document_id IN (
                    SELECT id FROM documents WHERE source = ?
                )
                """,
                (source,),
            )
            cursor.execute("DELETE FROM documents WHERE source = ?", (source,))
            conn.commit()
        return removed

    @staticmethod
    def _build_chunk_from_row(
        row: tuple,
        *,
        embedding: np.ndarray | None = None,
    ) -> DocumentChunk:
        """Create a DocumentChunk from a metadata row.

        Returns:
            DocumentChunk hydrated with metadata and optional embedding.
        """
        row_id, chunk_key, chunk_index, content, vector_file, source, jurisdiction = row
        return DocumentChunk(
            content=content,
            metadata={
                "vector_id": row_id,
                "chunk_key": chunk_key,
                "source": source,
                "chunk_index": chunk_index,
                "jurisdiction": jurisdiction,
                "vector_file": vector_file,
            },
            embedding=embedding,
        )

    def _fetch_chunks(
        self, cursor: sqlite3.Cursor, row_ids: Iterable[int]
    ) -> dict[int, DocumentChunk]:
        """Fetch chunks by row id.

        Returns:
            Mapping of row id to chunk for the ids that exist.
        """
        ids = [int(row_id) for row_id in row_ids]
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        cursor.execute(
            f"""
            SELECT {CHUNK_COLUMNS}
            FROM chunks c
            JOIN documents d ON c.document_id = d.id
            WHERE c.id IN ({placeholders})
            """,  # noqa: S608
            ids,
        )
        return {
            int(row[0]): self._build_chunk_from_row(row) for row in cursor.fetchall()
        }

    def all_chunks(self) -> list[DocumentChunk]:
        """Return every stored chunk in insertion order."""  # noqa: DOC201
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {CHUNK_COLUMNS}
                FROM chunks c
                JOIN documents d ON c.document_id = d.id
                ORDER BY c.id
            """)  # noqa: S608
            return [self._build_chunk_from_row(row) for row in cursor.fetchall()]

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
        return int(row[0])

    def _clear_tables(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM chunks")
            conn.execute("DELETE FROM documents")
            conn.commit()
