"""Tests for EmbeddingService class."""

import os
from unittest.mock import patch

import numpy as np
import pytest
from openai import APIConnectionError

from advisor import EmbeddingService
from advisor.config import config
from advisor.embeddings import normalize


def test_init_with_api_key(embedding_service_factory) -> None:
    service = embedding_service_factory(model="text-embedding-3-large")
    assert service.model == "text-embedding-3-large"
    assert service.client.api_key == "test-key"


def test_init_with_env_api_key() -> None:
    with patch.dict(os.environ, {"OPENAI_API_KEY": "env-key"}):
        service = EmbeddingService()
        assert service.client.api_key == "env-key"


def test_init_default_model(embedding_service) -> None:
    assert embedding_service.model == config.EMBEDDING_MODEL


def test_normalize_scales_to_unit_length() -> None:
    result = normalize(np.array([3.0, 4.0]))

    np.testing.assert_allclose(result, [0.6, 0.8])
    assert result.dtype == np.float32


def test_normalize_leaves_zero_vector() -> None:
    np.testing.assert_array_equal(normalize(np.zeros(3)), np.zeros(3))


def test_get_embedding_returns_unit_vector(
    openai_embeddings_factory, embedding_service
) -> None:
    mock_api = openai_embeddings_factory([[3.0, 0.0, 4.0]])

    result = embedding_service.get_embedding("debris removal")

    mock_api.assert_called_once_with(
        model=config.EMBEDDING_MODEL,
        input="debris removal",
    )
    assert isinstance(result, np.ndarray)
    np.testing.assert_allclose(result, [0.6, 0.0, 0.8], rtol=1e-6)


def test_get_embedding_api_error(openai_embeddings_factory, embedding_service) -> None:
    openai_embeddings_factory(Exception("API Error"))

    with pytest.raises(Exception, match="API Error"):
        embedding_service.get_embedding("debris removal")


def test_get_embeddings_batch_success(
    openai_embeddings_factory, embedding_service
) -> None:
    mock_api = openai_embeddings_factory([[1.0, 0.0], [0.0, 2.0], [3.0, 4.0]])
    texts = ["text1", "text2", "text3"]

    results = embedding_service.get_embeddings_batch(texts)

    mock_api.assert_called_once_with(model=config.EMBEDDING_MODEL, input=texts)
    assert len(results) == 3
    for result in results:
        assert np.linalg.norm(result) == pytest.approx(1.0, rel=1e-6)
    np.testing.assert_allclose(results[2], [0.6, 0.8], rtol=1e-6)


def test_get_embeddings_batch_with_batching(
    openai_embeddings_factory, embedding_service
) -> None:
    mock_api = openai_embeddings_factory(
        [[1.0, 0.0], [0.0, 1.0]],
        [[1.0, 1.0], [2.0, 0.0]],
    )
    texts = ["text1", "text2", "text3", "text4"]

    results = embedding_service.get_embeddings_batch(texts, batch_size=2)

    assert mock_api.call_count == 2
    mock_api.assert_any_call(model=config.EMBEDDING_MODEL, input=["text1", "text2"])
    mock_api.assert_any_call(model=config.EMBEDDING_MODEL, input=["text3", "text4"])
    assert len(results) == 4
    np.testing.assert_allclose(results[3], [1.0, 0.0])


def test_get_embeddings_batch_empty_list(
    openai_embeddings_api_mock, embedding_service
) -> None:
    results = embedding_service.get_embeddings_batch([])
    openai_embeddings_api_mock.assert_not_called()
    assert results == []


def test_get_embeddings_batch_partial_failure(
    openai_embeddings_factory, embedding_service
) -> None:
    mock_api = openai_embeddings_factory(
        [[0.1, 0.2]], Exception("Second batch failed")
    )

    with pytest.raises(Exception, match="Second batch failed"):
        embedding_service.get_embeddings_batch(["text1", "text2", "text3"], 1)

    assert mock_api.call_count == 2


# Integration tests that require a real OpenAI API key
@pytest.mark.skipif(
    not os.getenv("OPENAI_API_KEY"),
    reason="OPENAI_API_KEY environment variable not set",
)
def test_real_api_embeddings_are_normalized() -> None:
    service = EmbeddingService(model="text-embedding-3-small")
    texts = [
        "Debris removal opt-out applications close in May.",
        "Rebuilding permits are issued by the Permit Center.",
    ]

    try:
        embeddings = service.get_embeddings_batch(texts)
    except APIConnectionError as exc:  # pragma: no cover - network dependent
        pytest.skip(f"OpenAI not reachable: {exc!s}")
    else:
        for embedding in embeddings:
            assert embedding.shape[0] == 1536  # text-embedding-3-small dimension
            assert 0.99 <= np.linalg.norm(embedding) <= 1.01

        assert not np.allclose(embeddings[0], embeddings[1])
