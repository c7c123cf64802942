"""Test configuration and fixtures for Recovery Advisor tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService fixtures
- Vector store fixtures
- Knowledge base and engine fixtures
- Sample data factories
"""

import hashlib
from unittest.mock import Mock, patch

import numpy as np
import pytest

from advisor import (
    AnalyticsStore,
    BiasLog,
    ContextStore,
    ConversationEngine,
    DocumentChunk,
    EmbeddingService,
    ErrorLog,
    FaissVectorStore,
    Match,
    RAGPipeline,
    SQLiteVectorStore,
    TurnRequest,
)
from advisor.models import IngestionReport


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    DEFAULT_EMBEDDING_DIMENSION = 384

    # Conversations
    CONVERSATION_ID = "conv-123"
    JURISDICTIONS = ("LA County", "Pasadena County")


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic unit-length embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension

    def get_embedding(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def get_embeddings_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate batch of mock embeddings."""
        return [self.get_embedding(text) for text in texts]


class FakeKnowledgeBase:
    """Stands in for ``RAGPipeline`` with canned nearest-neighbour matches."""

    def __init__(self, matches: list[Match] | None = None, *, ready: bool = True):
        self.matches = list(matches or [])
        self.is_ready = ready
        self.queries: list[tuple[str, int]] = []
        self.error: Exception | None = None
        self.documents: dict[str, list[str]] = {
            name: [] for name in TestConstants.JURISDICTIONS
        }
        self.reindex_calls = 0

    async def query(self, text: str, top_k: int) -> list[Match]:
        self.queries.append((text, top_k))
        if self.error is not None:
            raise self.error
        return self.matches[:top_k]

    def list_documents(self) -> dict[str, list[str]]:
        return self.documents

    def reindex(self) -> IngestionReport:
        self.reindex_calls += 1
        return IngestionReport(documents=2, chunks=10)


def make_match(
    text: str, source: str = "debris.pdf", chunk_index: int = 0, distance: float = 0.2
) -> Match:
    return Match(text=text, source=source, chunk_index=chunk_index, distance=distance)


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch OpenAI embeddings.create and hand back the mock."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Queue one API outcome per call: a list of vectors or an exception."""

    def _queue(*outcomes):  # noqa: ANN202
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = [
            outcome
            if isinstance(outcome, Exception)
            else create_mock_openai_response(outcome)
            for outcome in outcomes
        ]
        return openai_embeddings_api_mock

    return _queue


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(api_key=None, model=None):  # noqa: ANN202
        api_key = api_key or TestConstants.TEST_API_KEY
        if model is not None:
            return EmbeddingService(api_key=api_key, model=model)
        return EmbeddingService(api_key=api_key)

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""
    return mock_embedding_service.get_embedding


@pytest.fixture
def temp_vector_store(tmp_path) -> SQLiteVectorStore:
    """Create temporary SQLite vector store for testing."""
    return SQLiteVectorStore(tmp_path / "test_store.db", tmp_path / "vectors")


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    """Create temporary FAISS vector store for testing."""
    return FaissVectorStore(
        db_path=tmp_path / "faiss_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture(params=["sqlite", "faiss"])
def any_vector_store(request, temp_vector_store, temp_faiss_store):
    """Each vector store backend in turn."""
    return temp_vector_store if request.param == "sqlite" else temp_faiss_store


@pytest.fixture
def sample_text_chunks():
    """Recovery document chunks with metadata only (no embeddings)."""
    texts = [
        "Debris removal opt-out applications are reviewed by Public Works.",
        "Phase 2 debris removal is performed by the Army Corps of Engineers.",
        "Rebuilding permits require a site plan and a soils report.",
        "Temporary housing assistance is available through FEMA.",
        "Property tax relief can be requested from the County Assessor.",
    ]
    return [
        DocumentChunk(
            content=text,
            metadata={
                "source": f"recovery_doc_{i // 3}.pdf",
                "chunk_index": i % 3,
                "jurisdiction": "LA County",
            },
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def sample_embedded_chunks(sample_text_chunks, mock_embeddings):
    """Sample chunks with deterministic embeddings."""
    return [
        DocumentChunk(
            content=chunk.content,
            metadata=dict(chunk.metadata),
            embedding=mock_embeddings(chunk.content),
        )
        for chunk in sample_text_chunks
    ]


@pytest.fixture
def performance_chunks_factory(mock_embedding_service):
    """Factory to create large batches of DocumentChunk for performance testing."""

    def _create_chunks(
        count: int, content_prefix: str = "Performance test chunk"
    ) -> list[DocumentChunk]:
        chunks = []
        for i in range(count):
            content = f"{content_prefix} {i}: " + "recovery content " * 10
            chunks.append(
                DocumentChunk(
                    content=content,
                    metadata={"source": f"perf_doc_{i // 100}.pdf", "chunk_index": i},
                    embedding=mock_embedding_service.get_embedding(content),
                )
            )
        return chunks

    return _create_chunks


@pytest.fixture
def documents_dir(tmp_path):
    """Corpus with one directory per jurisdiction holding TXT documents."""
    root = tmp_path / "documents"
    la = root / "LA County" / "debris"
    la.mkdir(parents=True)
    (la / "debris_removal.txt").write_text(
        "Debris removal is free for enrolled property owners.\n\n"
        "Opt-out applications close May 15.\n\n\n"
        "Contact Public Works for questions.",
        encoding="utf-8",
    )
    pasadena = root / "Pasadena County"
    pasadena.mkdir(parents=True)
    (pasadena / "rebuilding.txt").write_text(
        "Rebuilding permits are issued by the Permit Center.\n\n"
        "Plan check takes about four weeks.",
        encoding="utf-8",
    )
    (pasadena / "notes.md").write_text("ignored", encoding="utf-8")
    return root


@pytest.fixture
def rag_pipeline_factory(tmp_path, mock_embedding_service, documents_dir):
    """Factory for RAGPipeline instances backed by mock embeddings."""

    def _create_pipeline(backend: str = "sqlite") -> RAGPipeline:
        return RAGPipeline(
            vector_backend=backend,
            sqlite_db_path=tmp_path / f"{backend}_store.db",
            vectors_dir=tmp_path / "vectors",
            faiss_index_path=tmp_path / "faiss" / "index.faiss",
            documents_dir=documents_dir,
            jurisdictions=TestConstants.JURISDICTIONS,
            embedding_service=mock_embedding_service,
        )

    return _create_pipeline


@pytest.fixture
def analytics_store(tmp_path):
    return AnalyticsStore(tmp_path / "advisor.db")


@pytest.fixture
def bias_log(tmp_path):
    return BiasLog(tmp_path / "logs" / "bias_fairness.log")


@pytest.fixture
def error_log(tmp_path):
    return ErrorLog(tmp_path / "logs" / "error.log")


@pytest.fixture
def fake_knowledge_base():
    return FakeKnowledgeBase()


@pytest.fixture
def engine_factory(analytics_store, bias_log, error_log):
    """Factory for ConversationEngine wired to temporary stores."""

    def _create_engine(
        knowledge_base=None, *, max_polls: int = 2, **kwargs
    ) -> ConversationEngine:
        return ConversationEngine(
            knowledge_base if knowledge_base is not None else FakeKnowledgeBase(),
            context_store=kwargs.pop("context_store", ContextStore()),
            analytics=analytics_store,
            bias_log=bias_log,
            error_log=error_log,
            poll_interval=0,
            max_polls=max_polls,
            **kwargs,
        )

    return _create_engine


@pytest.fixture
def turn_request_factory():
    """Factory for chat turn requests on the default conversation."""

    def _create_request(
        message: str = "",
        *,
        conversation_id: str | None = TestConstants.CONVERSATION_ID,
        **overrides,
    ) -> TurnRequest:
        payload = {"message": message, "conversationId": conversation_id}
        payload.update(overrides)
        return TurnRequest.from_payload(payload)

    return _create_request


@pytest.fixture
def match_factory():
    """Factory for retrieved matches."""
    return make_match


@pytest.fixture
def knowledge_base_factory():
    """Factory for fake knowledge bases returning canned matches."""
    return FakeKnowledgeBase
