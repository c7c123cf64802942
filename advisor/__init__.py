"""Recovery Advisor - grounded answers about fire recovery procedures."""

from .audit import BiasLog, ErrorLog
from .context_store import ContextStore
from .conversation import ConversationEngine
from .document_processing import DocumentLoader, ParagraphChunker, find_documents
from .embeddings import EmbeddingService
from .errors import ValidationError
from .models import (
    ConversationSession,
    DocumentChunk,
    Intent,
    Match,
    SearchReply,
    Turn,
    TurnReply,
    TurnRequest,
    UserProfile,
)
from .pipeline import RAGPipeline
from .storage import AnalyticsStore
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "AnalyticsStore",
    "BiasLog",
    "ContextStore",
    "ConversationEngine",
    "ConversationSession",
    "DocumentChunk",
    "DocumentLoader",
    "EmbeddingService",
    "ErrorLog",
    "FaissVectorStore",
    "Intent",
    "Match",
    "ParagraphChunker",
    "RAGPipeline",
    "SQLiteVectorStore",
    "SearchReply",
    "Turn",
    "TurnReply",
    "TurnRequest",
    "UserProfile",
    "ValidationError",
    "find_documents",
    "get_vector_store",
]
