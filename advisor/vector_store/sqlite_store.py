"""SQLite-based vector storage with numpy file backend."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import numpy as np

from advisor.config import config
from advisor.models import DocumentChunk  # noqa: TC001
from advisor.vector_store.base import BaseSQLiteStore

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.
        """
        self.vectors_dir = Path(vectors_dir)
        self.vectors_dir.mkdir(exist_ok=True, parents=True)

        self.embeddings: np.ndarray | None = None
        self.row_ids: list[int] = []

        super().__init__(db_path)

    def upsert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Store chunks, replacing any already stored under the same key.

        Returns:
            Number of chunks written.
        """
        if not chunks:
            return 0

        written = 0

        with self._connect() as conn:
            cursor = conn.cursor()

            for chunk in chunks:
                if chunk.embedding is None:
                    logger.warning(
                        "Skipping chunk %s without embedding", chunk.chunk_key
                    )
                    continue

                row_id, replaced = self._replace_chunk_row(cursor, chunk)
                if replaced is not None and replaced[1]:
                    (self.vectors_dir / replaced[1]).unlink(missing_ok=True)

                vector_filename = f"chunk{row_id:08d}.npy"
                np.save(
                    self.vectors_dir / vector_filename,
                    np.asarray(chunk.embedding, dtype="float32"),
                )
                cursor.execute(
                    "UPDATE chunks SET vector_file = ? WHERE id = ?",
                    (vector_filename, row_id),
                )

                chunk.metadata["vector_id"] = row_id
                chunk.metadata["vector_file"] = vector_filename
                written += 1

            conn.commit()

        self._rebuild_embeddings_matrix()

        logger.info("Upserted %d chunks into SQLite vector store", written)
        return written

    def _rebuild_embeddings_matrix(self) -> None:
        """Rebuild the embeddings matrix from individual vector files."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, vector_file FROM chunks
                WHERE vector_file IS NOT NULL
                ORDER BY id
                """
            )
            rows = cursor.fetchall()

        embeddings_list: list[np.ndarray] = []
        row_ids: list[int] = []
        for row_id, vector_file in rows:
            vector_path = self.vectors_dir / vector_file
            if vector_path.exists():
                embeddings_list.append(np.load(vector_path))
                row_ids.append(int(row_id))
            else:
                logger.warning("Vector file not found: %s", vector_path)

        self.row_ids = row_ids
        self.embeddings = np.vstack(embeddings_list) if embeddings_list else None

        logger.info("Rebuilt embeddings matrix with %d vectors", len(embeddings_list))

    @staticmethod
    def squared_l2(query_embedding: np.ndarray, embeddings: np.ndarray) -> np.ndarray:
        """Squared Euclidean distance between the query and each stored embedding.

        Returns:
            np.ndarray: One distance per row of ``embeddings``.
        """
        diff = embeddings - np.asarray(query_embedding, dtype="float32")
        return np.einsum("ij,ij->i", diff, diff)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 5,
    ) -> list[tuple[DocumentChunk, float]]:
        """Search for the chunks nearest to the query embedding.

        Returns:
            (DocumentChunk, squared L2 distance) pairs, nearest first.
        """
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        if self.embeddings is None:
            return []

        distances = self.squared_l2(query_embedding, self.embeddings)
        top_indices = np.argsort(distances, kind="stable")[:top_k]
        wanted = [self.row_ids[idx] for idx in top_indices]

        with self._connect() as conn:
            chunks = self._fetch_chunks(conn.cursor(), wanted)

        return [
            (chunks[self.row_ids[idx]], float(distances[idx]))
            for idx in top_indices
            if self.row_ids[idx] in chunks
        ]

    def delete_document(self, source: str) -> int:
        """Remove every chunk of ``source`` and its vector files.

        Returns:
            Number of chunks removed.
        """
        removed = self._delete_document_rows(source)
        for _, vector_file in removed:
            if vector_file:
                (self.vectors_dir / vector_file).unlink(missing_ok=True)
        if removed:
            self._rebuild_embeddings_matrix()
            logger.info("Removed %d chunks of %s", len(removed), source)
        return len(removed)

    def clear(self) -> None:
        """Drop every vector file and metadata row."""
        for vector_path in self.vectors_dir.glob("*.npy"):
            vector_path.unlink()
        self._clear_tables()
        self.embeddings = None
        self.row_ids = []
        logger.info("Cleared SQLite vector store")

    def save(self) -> None:  # noqa: PLR6301
        """Save operation - data is already persisted in SQLite and files."""
        logger.info("Data already persisted in SQLite database and vector files")

    def load(self) -> None:
        """Load the embeddings matrix from the vector files on disk.

        Raises:
            sqlite3.Error: If an error occurs while reading the metadata.
        """
        try:
            self._rebuild_embeddings_matrix()
        except sqlite3.Error:
            logger.exception("Error loading from SQLite vector store")
            raise
        logger.info("Loaded %d chunks from SQLite vector store", len(self.row_ids))
