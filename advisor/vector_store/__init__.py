"""Vector store adapters and the backend registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from advisor.config import config

from .faiss_store import FaissVectorStore
from .sqlite_store import SQLiteVectorStore

if TYPE_CHECKING:
    from pathlib import Path

VectorBackend = Literal["faiss", "sqlite"]
VectorStore = FaissVectorStore | SQLiteVectorStore

BACKENDS: dict[str, type[VectorStore]] = {
    FaissVectorStore.backend: FaissVectorStore,
    SQLiteVectorStore.backend: SQLiteVectorStore,
}


def get_vector_store(
    store: VectorBackend | str | None = None,
    *,
    db_path: Path | None = None,
    vectors_dir: Path | None = None,
    index_path: Path | None = None,
) -> VectorStore:
    """Build the store for ``store``, or for ``VECTOR_BACKEND`` when omitted.

    Both backends keep chunk metadata in the same SQLite file; only the
    vector location differs.

    Raises:
        ValueError: If the backend is not registered.

    Returns:
        A store over the configured paths, not yet loaded.
    """
    backend = (store or config.VECTOR_BACKEND).lower()
    store_cls = BACKENDS.get(backend)
    if store_cls is None:
        msg = (
            f"Unsupported vector store backend: {store}. "
            f"Choose one of: {', '.join(sorted(BACKENDS))}"
        )
        raise ValueError(msg)

    db_path = db_path if db_path is not None else config.VECTOR_STORE_DB_PATH
    if store_cls is FaissVectorStore:
        return FaissVectorStore(
            db_path=db_path,
            index_path=index_path or config.FAISS_INDEX_PATH,
        )
    return SQLiteVectorStore(
        db_path=db_path,
        vectors_dir=vectors_dir or config.VECTOR_STORE_DIR,
    )


__all__ = [
    "BACKENDS",
    "FaissVectorStore",
    "SQLiteVectorStore",
    "VectorBackend",
    "VectorStore",
    "get_vector_store",
]
