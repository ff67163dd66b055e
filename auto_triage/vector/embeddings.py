"""
Embedding providers. Each maps an issue (title, body) to a fixed-length
float vector; providers that can embed many documents in one call set
``supports_batch``.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List, Optional, Sequence, Tuple

import requests

from ..core.errors import EmbeddingError

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_EMBED_DIM = 768
# Upper bound on requests per batchEmbedContents call
GEMINI_MAX_BATCH = 100

Document = Tuple[str, str]


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    supports_batch = False
    """True when ``embed_batch`` maps to a single remote call"""

    rate_limited = False
    """True when the remote service enforces a request rate"""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_document(self, title: str, body: str) -> list[float]:
        """Embed an issue-like document given its title and body."""
        return self.embed_text(f"{title or ''}\n\n{body or ''}")

    def embed_batch(self, documents: Sequence[Document]) -> List[list[float]]:
        """Embed documents, returning vectors in submission order."""
        return [self.embed_document(title, body) for title, body in documents]


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    without requiring external model dependencies.
    """

    def __init__(self, dimension: int = 384, supports_batch: bool = True):
        self.dimension = dimension
        self.supports_batch = supports_batch

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        vector = []
        counter = 0
        while len(vector) < self.dimension:
            # Chain digests with a counter until every dimension is filled
            hex_dig = hashlib.md5(f"{counter}:{text}".encode()).hexdigest()
            for i in range(0, len(hex_dig), 8):
                if len(vector) >= self.dimension:
                    break
                value = int(hex_dig[i:i+8], 16) % (2**32)

                # Normalize to [0, 1] and then map to [-1, 1] for cosine similarity
                vector.append((value / (2**32)) * 2 - 1)
            counter += 1

        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Uses the all-mpnet-base-v2 model for high-quality semantic embeddings.
    """

    supports_batch = True

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def embed_batch(self, documents: Sequence[Document]) -> List[list[float]]:
        texts = [f"{title or ''}\n\n{body or ''}" for title, body in documents]
        if not texts:
            return []
        embeddings = self.model.encode(texts, convert_to_tensor=False)
        return [embedding.tolist() for embedding in embeddings]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class GeminiEmbedding(IEmbeddingProvider):
    """Google Gemini embeddings over the Generative Language REST API.

    Documents are embedded with ``taskType=RETRIEVAL_DOCUMENT`` and their
    title, which is what the issue index and the historian queries use.
    """

    supports_batch = True
    rate_limited = True

    def __init__(self, api_key: str, model: str = "embedding-001", dimension: int = GEMINI_EMBED_DIM,
                 timeout: float = 30.0, session: Optional[requests.Session] = None,
                 api_base: str = GEMINI_API_BASE):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.session = session or requests.Session()

    @property
    def model_path(self) -> str:
        return self.model if self.model.startswith("models/") else f"models/{self.model}"

    def _request_body(self, title: str, body: str) -> dict:
        request = {
            "model": self.model_path,
            "content": {"parts": [{"text": body or ""}]},
            "taskType": "RETRIEVAL_DOCUMENT",
        }
        if title:
            request["title"] = title
        return request

    def _post(self, method: str, payload: dict) -> dict:
        url = f"{self.api_base}/{self.model_path}:{method}"
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmbeddingError(f"Gemini {method} request failed: {e}", stage=method) from e

        if response.status_code != 200:
            raise EmbeddingError(
                f"Gemini {method} returned HTTP {response.status_code}: {response.text[:200]}",
                stage=method
            )

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingError(f"Gemini {method} returned invalid JSON", stage=method) from e

    @staticmethod
    def _values(embedding: object, method: str) -> list[float]:
        if not isinstance(embedding, dict) or not isinstance(embedding.get("values"), list):
            raise EmbeddingError(f"Gemini {method} response has no embedding values", stage=method)
        return [float(v) for v in embedding["values"]]

    def embed_text(self, text: str) -> list[float]:
        return self.embed_document("", text)

    def embed_document(self, title: str, body: str) -> list[float]:
        data = self._post("embedContent", self._request_body(title, body))
        return self._values(data.get("embedding"), "embedContent")

    def embed_batch(self, documents: Sequence[Document]) -> List[list[float]]:
        """Embed documents with batchEmbedContents, chunked to the API limit.

        The API answers in request order; the response length is checked so
        a short answer can never shift vectors onto the wrong documents.
        """
        vectors = []
        for start in range(0, len(documents), GEMINI_MAX_BATCH):
            chunk = documents[start:start + GEMINI_MAX_BATCH]
            data = self._post(
                "batchEmbedContents",
                {"requests": [self._request_body(title, body) for title, body in chunk]}
            )
            embeddings = data.get("embeddings")
            if not isinstance(embeddings, list) or len(embeddings) != len(chunk):
                got = len(embeddings) if isinstance(embeddings, list) else 0
                raise EmbeddingError(
                    f"Gemini batchEmbedContents returned {got} embeddings for {len(chunk)} documents",
                    stage="batchEmbedContents"
                )
            vectors.extend(self._values(embedding, "batchEmbedContents") for embedding in embeddings)
        return vectors

    def get_dimension(self) -> int:
        return self.dimension
