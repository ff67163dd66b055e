"""
Embedding provider tests. Remote providers run against a mocked session.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from auto_triage.core.errors import EmbeddingError, TokenCountError
from auto_triage.vector.embeddings import (
    DeterministicHashEmbedding,
    GeminiEmbedding,
    IEmbeddingProvider,
)
from auto_triage.vector.tokens import GeminiTokenCounter, TiktokenCounter


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    return response


def test_embedding_interface():
    """Test that the embedding provider implements the interface correctly."""
    embedder = DeterministicHashEmbedding(dimension=384)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 384
    assert embedder.supports_batch is True
    assert embedder.rate_limited is False


def test_deterministic_embedding():
    """Test that the same input always produces the same output."""
    embedder = DeterministicHashEmbedding(dimension=384)

    vector1 = embedder.embed_text("Hello, world!")
    vector2 = DeterministicHashEmbedding(dimension=384).embed_text("Hello, world!")

    assert vector1 == vector2
    assert len(vector1) == 384
    assert all(-1.0 <= value <= 1.0 for value in vector1)


def test_different_inputs_produce_different_vectors():
    embedder = DeterministicHashEmbedding(dimension=64)
    assert embedder.embed_text("Hello, world!") != embedder.embed_text("Goodbye, world!")


def test_hash_embedding_fills_every_dimension():
    vector = DeterministicHashEmbedding(dimension=50).embed_text("")
    assert len(vector) == 50
    # Dimensions past the first digest are filled too, not zero padded
    assert any(value != 0.0 for value in vector[4:])


def test_embed_batch_preserves_order():
    embedder = DeterministicHashEmbedding(dimension=8)
    documents = [("a", "first"), ("b", "second"), ("c", "third")]

    batch = embedder.embed_batch(documents)

    assert batch == [embedder.embed_document(title, body) for title, body in documents]


def test_gemini_embed_document_request():
    session = MagicMock()
    session.post.return_value = _response(payload={"embedding": {"values": [0.1, 0.2, 0.3]}})
    embedder = GeminiEmbedding(api_key="secret", session=session)

    vector = embedder.embed_document("Alert rule broken", "Steps to reproduce")

    assert vector == [0.1, 0.2, 0.3]
    url = session.post.call_args[0][0]
    kwargs = session.post.call_args[1]
    assert url.endswith("/models/embedding-001:embedContent")
    assert kwargs["headers"] == {"x-goog-api-key": "secret"}
    assert kwargs["json"]["title"] == "Alert rule broken"
    assert kwargs["json"]["taskType"] == "RETRIEVAL_DOCUMENT"
    assert kwargs["json"]["content"]["parts"][0]["text"] == "Steps to reproduce"
    assert embedder.rate_limited is True
    assert embedder.supports_batch is True


def test_gemini_batch_embed():
    session = MagicMock()
    session.post.return_value = _response(payload={"embeddings": [{"values": [1.0]}, {"values": [2.0]}]})
    embedder = GeminiEmbedding(api_key="secret", session=session)

    vectors = embedder.embed_batch([("t1", "c1"), ("t2", "c2")])

    assert vectors == [[1.0], [2.0]]
    url = session.post.call_args[0][0]
    assert url.endswith(":batchEmbedContents")
    requests_sent = session.post.call_args[1]["json"]["requests"]
    assert [r["title"] for r in requests_sent] == ["t1", "t2"]
    assert all(r["model"] == "models/embedding-001" for r in requests_sent)


def test_gemini_batch_is_chunked():
    session = MagicMock()
    session.post.side_effect = lambda url, json, **kwargs: _response(
        payload={"embeddings": [{"values": [0.5]} for _ in json["requests"]]}
    )
    embedder = GeminiEmbedding(api_key="secret", session=session)

    vectors = embedder.embed_batch([("t", str(i)) for i in range(150)])

    assert len(vectors) == 150
    assert session.post.call_count == 2


def test_gemini_batch_count_mismatch():
    session = MagicMock()
    session.post.return_value = _response(payload={"embeddings": [{"values": [1.0]}]})
    embedder = GeminiEmbedding(api_key="secret", session=session)

    with pytest.raises(EmbeddingError, match="1 embeddings for 2 documents"):
        embedder.embed_batch([("a", "a"), ("b", "b")])


def test_gemini_http_error():
    session = MagicMock()
    session.post.return_value = _response(status_code=429, text="quota exceeded")
    embedder = GeminiEmbedding(api_key="secret", session=session)

    with pytest.raises(EmbeddingError, match="HTTP 429"):
        embedder.embed_text("x")


def test_gemini_transport_error_is_chained():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("boom")
    embedder = GeminiEmbedding(api_key="secret", session=session)

    with pytest.raises(EmbeddingError) as exc_info:
        embedder.embed_text("x")
    assert isinstance(exc_info.value.cause, requests.ConnectionError)


def test_gemini_malformed_payload():
    session = MagicMock()
    session.post.return_value = _response(payload={"unexpected": True})
    embedder = GeminiEmbedding(api_key="secret", session=session)

    with pytest.raises(EmbeddingError):
        embedder.embed_text("x")


def test_tiktoken_counter():
    encoding = MagicMock()
    encoding.encode.return_value = [1, 2, 3, 4, 5]
    with patch("auto_triage.vector.tokens.tiktoken.get_encoding", return_value=encoding) as get_encoding:
        counter = TiktokenCounter("cl100k_base")
        assert counter.count_tokens("some text") == 5
        assert counter.count_tokens("again") == 5
        get_encoding.assert_called_once_with("cl100k_base")


def test_gemini_token_counter():
    session = MagicMock()
    session.post.return_value = _response(payload={"totalTokens": 42})
    counter = GeminiTokenCounter(api_key="secret", model="gemini-1.5-pro", session=session)

    assert counter.count_tokens("hello") == 42
    assert session.post.call_args[0][0].endswith("/models/gemini-1.5-pro:countTokens")


def test_gemini_token_counter_error():
    session = MagicMock()
    session.post.return_value = _response(status_code=500)
    counter = GeminiTokenCounter(api_key="secret", session=session)

    with pytest.raises(TokenCountError):
        counter.count_tokens("hello")
