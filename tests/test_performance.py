"""Performance and stress tests for Recovery Advisor components.

The time and speed benchmarks in the tests are rough bounds for a
developer laptop; they catch accidental quadratic behaviour, not regressions
of a few percent.
"""

import os
import threading
import time

import psutil
import pytest

from advisor import ContextStore, ParagraphChunker, Turn
from advisor.classifier import classify

pytestmark = pytest.mark.performance


def test_paragraph_chunking_performance():
    large_text = "\n\n".join(
        f"Paragraph {i}: debris removal and rebuilding guidance." for i in range(20000)
    )

    start_time = time.time()
    chunks = ParagraphChunker.chunk_text(large_text, "performance_test.txt")
    chunk_time = time.time() - start_time

    assert len(chunks) == 20000
    assert chunks[-1].chunk_index == 19999
    assert chunk_time < 1.0, f"Chunking took too long: {chunk_time:.3f}s"


def test_vector_store_performance(
    any_vector_store, performance_chunks_factory, mock_embedding_service
):
    store = any_vector_store
    chunks = performance_chunks_factory(1000, "Performance test content")

    storage_start = time.time()
    store.upsert_chunks(chunks)
    storage_time = time.time() - storage_start

    query_embedding = mock_embedding_service.get_embedding("test query")

    search_start = time.time()
    results = store.search(query_embedding, top_k=10)
    search_time = time.time() - search_start

    assert len(results) == 10, "Should return requested number of results"
    assert storage_time < 10.0, f"Storage too slow: {storage_time:.3f}s"
    assert search_time < 0.5, f"Search too slow: {search_time:.3f}s"


def test_memory_usage_stability(temp_faiss_store, performance_chunks_factory):
    process = psutil.Process(os.getpid())
    initial_memory = process.memory_info().rss / 1024 / 1024
    store = temp_faiss_store

    # The same keys every round: upserts replace instead of growing the index.
    for round_num in range(5):
        chunks = performance_chunks_factory(200, f"Memory test chunk round {round_num}")

        store.upsert_chunks(chunks)

        current_memory = process.memory_info().rss / 1024 / 1024
        memory_growth = current_memory - initial_memory

        assert memory_growth < 50, f"Excessive memory growth: {memory_growth:.1f}MB"

    assert store.index.ntotal == 200
    assert store.count() == 200


def test_classifier_throughput():
    messages = [
        "What documents are needed for debris removal",
        "Where can I find legal aid",
        "talk to a human",
        "How long does plan check take in Pasadena",
    ] * 2500

    start_time = time.time()
    results = [classify(message) for message in messages]
    elapsed = time.time() - start_time

    assert len(results) == len(messages)
    assert elapsed < 2.0, f"Classification too slow: {elapsed:.3f}s"


def test_context_store_under_thread_contention():
    store = ContextStore(max_turns=5, max_sessions=100)
    per_thread = 500

    def _worker(worker_id: int) -> None:
        for i in range(per_thread):
            store.append_turn(f"conv-{(worker_id + i) % 150}", Turn("user", str(i)))

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(8)]
    start_time = time.time()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    elapsed = time.time() - start_time

    # sessions held by a worker during the last eviction may stay over the cap
    assert len(store) <= 100 + len(threads)
    assert elapsed < 5.0, f"Context store too slow: {elapsed:.3f}s"
