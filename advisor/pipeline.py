"""Knowledge base: Load -> Split -> Embed -> Store, and query-time search."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .document_processing import DocumentLoader, ParagraphChunker, find_documents
from .embeddings import EmbeddingService
from .models import IngestionReport, Match
from .vector_store import get_vector_store

if TYPE_CHECKING:
    from .vector_store import FaissVectorStore, SQLiteVectorStore

logger = config.get_logger(__name__)


class RAGPipeline:
    """Owns the embedding service and vector store behind the advisor.

    The pipeline is not ready until ``warm_up`` has loaded the stored index;
    the conversation engine polls ``is_ready`` before retrieving.
    """

    def __init__(  # noqa: PLR0913
        self,
        openai_api_key: str | None = None,
        *,
        vector_backend: str | None = None,
        sqlite_db_path: Path | None = None,
        vectors_dir: Path | None = None,
        faiss_index_path: Path | None = None,
        documents_dir: Path | None = None,
        jurisdictions: tuple[str, ...] | None = None,
        embedding_service: EmbeddingService | None = None,
        vector_store: FaissVectorStore | SQLiteVectorStore | None = None,
    ) -> None:
        """Initialize the pipeline with configurable storage and corpus location.

        Args:
            openai_api_key: OpenAI API key, used when no embedding service is given.
            vector_backend: Which vector store backend to use ("faiss" | "sqlite").
                Defaults to config.VECTOR_BACKEND.
            sqlite_db_path: Path for SQLite metadata. If None, uses
                config.VECTOR_STORE_DB_PATH.
            vectors_dir: Directory for numpy vector files (SQLite backend).
            faiss_index_path: Path to FAISS index file.
            documents_dir: Root holding one directory per jurisdiction.
            jurisdictions: Jurisdiction directory names to ingest.
            embedding_service: Pre-built embedding service (tests inject fakes).
            vector_store: Pre-built vector store.
        """
        self.documents_dir = Path(documents_dir or config.DOCUMENTS_DIR)
        self.jurisdictions = jurisdictions or config.JURISDICTIONS

        self.chunker = ParagraphChunker()
        self.embedding_service = (
            embedding_service
            if embedding_service is not None
            else EmbeddingService(api_key=openai_api_key)
        )
        self.vector_store = (
            vector_store
            if vector_store is not None
            else get_vector_store(
                vector_backend,
                db_path=sqlite_db_path,
                vectors_dir=vectors_dir,
                index_path=faiss_index_path,
            )
        )
        self.vector_backend = self.vector_store.backend
        logger.info("Using %s vector storage", self.vector_backend)

        self._store_lock = threading.RLock()
        self._ready = threading.Event()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def warm_up(self) -> None:
        """Load the persisted index and mark the knowledge base ready."""
        with self._store_lock:
            self.vector_store.load()
            count = self.vector_store.count()
        self._ready.set()
        logger.info("Knowledge base ready with %d chunks", count)

    def start_warm_up(self) -> threading.Thread:
        """Warm up on a background thread so the app can start serving.

        Returns:
            The started daemon thread.
        """

        def _run() -> None:
            try:
                self.warm_up()
            except Exception:
                logger.exception("Knowledge base warm-up failed")

        thread = threading.Thread(target=_run, name="kb-warm-up", daemon=True)
        thread.start()
        return thread

    def process_document(self, file_path: Path, jurisdiction: str | None = None) -> int:
        """Process a document through the complete ingestion pipeline.

        Returns:
            Number of chunks upserted for the document.
        """
        logger.info("Starting ingestion for document: %s", file_path)

        text = DocumentLoader.load_document(file_path)
        chunks = self.chunker.chunk_text(
            text, source=file_path.name, jurisdiction=jurisdiction
        )
        if chunks:
            embeddings = self.embedding_service.get_embeddings_batch(
                [chunk.content for chunk in chunks]
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True):
                chunk.embedding = embedding
        else:
            logger.warning("No text chunks extracted from %s", file_path)

        # A revised document may have fewer paragraphs than the indexed one.
        with self._store_lock:
            self.vector_store.delete_document(file_path.name)
            written = self.vector_store.upsert_chunks(chunks)
            self.vector_store.save()

        logger.info("Upserted %d chunks from %s", written, file_path.name)
        return written

    def list_documents(self) -> dict[str, list[str]]:
        """Return document names found under each jurisdiction directory."""  # noqa: DOC201
        return {
            jurisdiction: [
                path.name for path in find_documents(self.documents_dir / jurisdiction)
            ]
            for jurisdiction in self.jurisdictions
        }

    def reindex(self) -> IngestionReport:
        """Clear the index and ingest every jurisdiction's documents again.

        A document that fails is logged and reported; the rest still load.

        Returns:
            IngestionReport with counts and per-document failures.
        """
        report = IngestionReport()
        self._ready.clear()
        try:
            with self._store_lock:
                self.vector_store.clear()
            for jurisdiction in self.jurisdictions:
                for path in find_documents(self.documents_dir / jurisdiction):
                    try:
                        report.chunks += self.process_document(path, jurisdiction)
                    except Exception as exc:
                        logger.exception("Failed to ingest %s", path)
                        report.failures[str(path)] = str(exc)
                    else:
                        report.documents += 1
        finally:
            self._ready.set()

        logger.info(
            "Reindex finished: %d documents, %d chunks, %d failures",
            report.documents,
            report.chunks,
            len(report.failures),
        )
        return report

    def search(self, text: str, top_k: int = config.SEARCH_TOP_K) -> list[Match]:
        """Embed the text and return its nearest chunks.

        Args:
            text: The query text.
            top_k: Number of nearest chunks to return.

        Returns:
            Matches ordered by ascending distance.
        """
        logger.info("Processing query: %s", text)

        query_embedding = self.embedding_service.get_embedding(text)
        with self._store_lock:
            results = self.vector_store.search(query_embedding, top_k=top_k)
        return [Match.from_chunk(chunk, distance) for chunk, distance in results]

    async def query(self, text: str, top_k: int = config.SEARCH_TOP_K) -> list[Match]:
        return await asyncio.to_thread(self.search, text, top_k)
