"""FAISS-backed vector storage with SQLite metadata."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from advisor.config import config
from advisor.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from advisor.models import DocumentChunk

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Exact L2 search with FAISS; chunk metadata lives in SQLite.

    Distances returned by ``search`` are squared L2 distances, ascending.
    """

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
    ) -> None:
        """Configure FAISS-backed vector store."""
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None

        super().__init__(db_path)

    def _init_index(self, dimension: int) -> None:
        """Initialize FAISS index if missing."""
        self.index = faiss.IndexIDMap(faiss.IndexFlatL2(dimension))
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def upsert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Store chunks, replacing any already indexed under the same key.

        Raises:
            ValueError: If embedding dimension mismatches the index.

        Returns:
            Number of chunks written.
        """
        if not chunks:
            return 0

        embeddings_batch: list[np.ndarray] = []
        vector_ids: list[int] = []
        stale_ids: list[int] = []

        with self._connect() as conn:
            cursor = conn.cursor()

            for chunk in chunks:
                if chunk.embedding is None:
                    logger.warning(
                        "Skipping chunk %s without embedding", chunk.chunk_key
                    )
                    continue

                embedding = np.asarray(chunk.embedding, dtype="float32")
                if self.index is None:
                    self._init_index(embedding.shape[0])
                elif embedding.shape[0] != self.index.d:
                    msg = (
                        f"Embedding dimension {embedding.shape[0]} does not match "
                        f"FAISS index dimension {self.index.d}"
                    )
                    raise ValueError(msg)

                vector_id, replaced = self._replace_chunk_row(cursor, chunk)
                if replaced is not None:
                    stale_ids.append(replaced[0])

                chunk.metadata["vector_id"] = vector_id
                embeddings_batch.append(embedding)
                vector_ids.append(vector_id)

            conn.commit()

        if self.index is None:
            return 0

        if stale_ids:
            removed = self.index.remove_ids(np.asarray(stale_ids, dtype="int64"))
            logger.info("Replaced %d existing vectors", removed)
            # a key repeated within this batch keeps only its last row
            stale = set(stale_ids)
            kept = [
                pair
                for pair in zip(embeddings_batch, vector_ids, strict=True)
                if pair[1] not in stale
            ]
            embeddings_batch = [embedding for embedding, _ in kept]
            vector_ids = [vector_id for _, vector_id in kept]

        if embeddings_batch:
            vectors = np.vstack(embeddings_batch).astype("float32")
            ids_array = np.asarray(vector_ids, dtype="int64")
            self.index.add_with_ids(vectors, ids_array)  # pyright: ignore[reportCallIssue]
            logger.info("Added %d vectors to FAISS index", len(vector_ids))
        return len(vector_ids)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 5,
    ) -> list[tuple[DocumentChunk, float]]:
        """Find the chunks nearest to the query.

        Returns:
            (DocumentChunk, squared L2 distance) pairs, nearest first.
        """
        index = self.index
        if index is None:
            self.load()
            index = self.index
        if index is None or index.ntotal == 0:
            return []

        query = np.asarray(query_embedding, dtype="float32").reshape(1, -1)
        distances, vector_ids = index.search(query, min(top_k, index.ntotal))  # pyright: ignore[reportCallIssue]

        hits = [
            (int(vector_id), float(distance))
            for distance, vector_id in zip(distances[0], vector_ids[0], strict=True)
            if int(vector_id) != -1  # faiss returns -1 for empty results
        ]
        with self._connect() as conn:
            chunks = self._fetch_chunks(
                conn.cursor(), [vector_id for vector_id, _ in hits]
            )

        return [
            (chunks[vector_id], distance)
            for vector_id, distance in hits
            if vector_id in chunks
        ]

    def delete_document(self, source: str) -> int:
        """Remove every chunk of ``source`` from the metadata and the index.

        Returns:
            Number of chunks removed.
        """
        removed = self._delete_document_rows(source)
        if not removed:
            return 0

        if self.index is None:
            self.load()
        if self.index is not None:
            self.index.remove_ids(
                np.asarray([row_id for row_id, _ in removed], dtype="int64")
            )
        logger.info("Removed %d chunks of %s", len(removed), source)
        return len(removed)

    def clear(self) -> None:
        """Drop every vector and metadata row."""
        self._clear_tables()
        self.index = None
        self.index_path.unlink(missing_ok=True)
        logger.info("Cleared FAISS vector store")

    def save(self) -> None:
        """Persist FAISS index to disk."""
        index = self.index
        if index is None:
            logger.warning("No FAISS index to save")
            return

        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk and check it against the metadata.

        Raises:
            sqlite3.Error: If metadata read fails.
        """
        if not self.index_path.exists():
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            self.index = None
            return

        loaded_index = faiss.read_index(str(self.index_path))
        if not isinstance(loaded_index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
            logger.warning(
                "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                type(loaded_index).__name__,
            )
            loaded_index = faiss.IndexIDMap(loaded_index)
        self.index = loaded_index

        try:
            stored = self.count()
        except sqlite3.Error:
            logger.exception("Error loading metadata for FAISS vector store")
            raise

        logger.info(
            "Loaded FAISS index from %s with %d vectors (%d metadata rows)",
            self.index_path,
            loaded_index.ntotal,
            stored,
        )
