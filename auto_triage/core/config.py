"""
Runtime configuration for the vectorizer, historian and CLI commands.

Settings are read from the environment (and a local ``.env`` file) exactly
once by ``load_config`` and then passed explicitly into each component.
Core modules never call ``os.getenv`` themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

VECTOR_PROVIDERS = ("memory", "faiss")
EMBED_PROVIDERS = ("hash", "sentence", "gemini")
TOKEN_COUNTERS = ("tiktoken", "gemini")

# Collection name used by the vectorizer and historian
ISSUES_COLLECTION = "issues"

# Output width of embedding models whose dimension is fixed
MODEL_DIMENSIONS = {
    "all-mpnet-base-v2": 768,
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "multi-qa-mpnet-base-dot-v1": 768,
    "embedding-001": 768,
    "text-embedding-004": 768,
}


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TriageConfig:
    """Explicit configuration handed to every component constructor."""

    issues_db_path: str = "github-data.sqlite"
    vector_db_path: str = "vector.db"

    vector_provider: str = "memory"  # memory|faiss
    embed_provider: str = "hash"  # hash|sentence|gemini
    embed_model_name: str = "all-mpnet-base-v2"
    embed_dim: int = 384

    gemini_api_key: Optional[str] = None
    gemini_embed_model: str = "embedding-001"
    gemini_token_model: str = "gemini-1.5-pro"
    token_counter: str = "tiktoken"  # tiktoken|gemini
    tokenizer_encoding: str = "cl100k_base"

    vector_encryption_enabled: bool = True
    vector_db_key: Optional[str] = None

    vectorize_batch_size: int = 100
    vectorize_workers: int = 5
    vectorize_use_batch_api: bool = True
    vectorize_min_batch_seconds: float = 1.0

    historian_batch_size: int = 150
    historian_max_results: int = 1000
    historian_max_tokens: int = 900000

    request_timeout_sec: float = 30.0
    debug: bool = False


def load_config(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> TriageConfig:
    """Build a TriageConfig from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ`` (tests pass a dict)
        dotenv_path: Optional ``.env`` file loaded into ``os.environ`` first

    Raises:
        ConfigError: when a numeric variable cannot be parsed
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    def get(name: str, default: str) -> str:
        return env.get(name, default)

    try:
        return TriageConfig(
            issues_db_path=get("ISSUES_DB_PATH", "github-data.sqlite"),
            vector_db_path=get("VECTOR_DB_PATH", "vector.db"),
            vector_provider=get("VECTOR_PROVIDER", "memory").lower(),
            embed_provider=get("EMBED_PROVIDER", "hash").lower(),
            embed_model_name=get("EMBED_MODEL_NAME", "all-mpnet-base-v2"),
            embed_dim=int(get("EMBED_DIM", "384")),
            gemini_api_key=env.get("GEMINI_API_KEY"),
            gemini_embed_model=get("GEMINI_EMBED_MODEL", "embedding-001"),
            gemini_token_model=get("GEMINI_TOKEN_MODEL", "gemini-1.5-pro"),
            token_counter=get("TOKEN_COUNTER", "tiktoken").lower(),
            tokenizer_encoding=get("TOKENIZER_ENCODING", "cl100k_base"),
            vector_encryption_enabled=_flag(get("VECTOR_ENCRYPTION_ENABLED", "true")),
            vector_db_key=env.get("VECTOR_DB_KEY"),
            vectorize_batch_size=int(get("VECTORIZE_BATCH_SIZE", "100")),
            vectorize_workers=int(get("VECTORIZE_WORKERS", "5")),
            vectorize_use_batch_api=_flag(get("VECTORIZE_USE_BATCH_API", "true")),
            vectorize_min_batch_seconds=float(get("VECTORIZE_MIN_BATCH_SECONDS", "1.0")),
            historian_batch_size=int(get("HISTORIAN_BATCH_SIZE", "150")),
            historian_max_results=int(get("HISTORIAN_MAX_RESULTS", "1000")),
            historian_max_tokens=int(get("HISTORIAN_MAX_TOKENS", "900000")),
            request_timeout_sec=float(get("REQUEST_TIMEOUT_SEC", "30")),
            debug=_flag(get("DEBUG", "false")),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid numeric configuration value: {e}", stage="load") from e


def validate_config(config: TriageConfig) -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if config.vector_provider not in VECTOR_PROVIDERS:
        issues.append(f"Invalid VECTOR_PROVIDER: {config.vector_provider}")

    if config.embed_provider not in EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {config.embed_provider}")

    if config.token_counter not in TOKEN_COUNTERS:
        issues.append(f"Invalid TOKEN_COUNTER: {config.token_counter}")

    needs_gemini = config.embed_provider == "gemini" or config.token_counter == "gemini"
    if needs_gemini and not config.gemini_api_key:
        issues.append("GEMINI_API_KEY is required for the gemini embedding provider or token counter")

    if config.vector_encryption_enabled and not config.vector_db_key:
        issues.append("VECTOR_DB_KEY is required when VECTOR_ENCRYPTION_ENABLED=true")

    if config.embed_dim < 1:
        issues.append("EMBED_DIM must be >= 1")

    # FAISS indexes are fixed-width
    if config.vector_provider == "faiss":
        expected = expected_model_dimension(config)
        if expected is not None and config.embed_dim != expected:
            issues.append(
                f"EMBED_DIM must be {expected} when using FAISS with {config.embed_provider} "
                f"model {embedding_model_name(config)}"
            )

    if config.vectorize_batch_size < 1:
        issues.append("VECTORIZE_BATCH_SIZE must be >= 1")

    if config.vectorize_workers < 1:
        issues.append("VECTORIZE_WORKERS must be >= 1")

    if config.vectorize_min_batch_seconds < 0:
        issues.append("VECTORIZE_MIN_BATCH_SECONDS must be >= 0")

    if config.historian_batch_size < 1:
        issues.append("HISTORIAN_BATCH_SIZE must be >= 1")

    if config.historian_max_results < 1:
        issues.append("HISTORIAN_MAX_RESULTS must be >= 1")

    if config.historian_max_tokens < 1:
        issues.append("HISTORIAN_MAX_TOKENS must be >= 1")

    return issues


def embedding_model_name(config: TriageConfig) -> Optional[str]:
    if config.embed_provider == "gemini":
        return config.gemini_embed_model
    if config.embed_provider == "sentence":
        return config.embed_model_name
    return None


def expected_model_dimension(config: TriageConfig) -> Optional[int]:
    """Vector width of the configured model, or None when it is not known."""
    model = embedding_model_name(config)
    if model is None:
        return None
    return MODEL_DIMENSIONS.get(model.split("/")[-1])


def snapshot_key(config: TriageConfig) -> Optional[str]:
    """Passphrase for the vector snapshot, or None when stored in plain form."""
    if not config.vector_encryption_enabled:
        return None
    return config.vector_db_key


def get_vector_store(config: TriageConfig):
    """Get configured vector store implementation."""
    if config.vector_provider == "faiss":
        from ..vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension=config.embed_dim)

    from ..vector.index import SimpleInMemoryVectorStore
    return SimpleInMemoryVectorStore()


def create_vector_database(config: TriageConfig):
    """Get an empty vector database whose collections use the configured store."""
    from ..vector.database import VectorDatabase
    return VectorDatabase(store_factory=lambda: get_vector_store(config))


def get_embedding_provider(config: TriageConfig):
    """Get configured embedding provider implementation."""
    if config.embed_provider == "gemini":
        if not config.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY is not set", stage="embedding")
        from ..vector.embeddings import GeminiEmbedding
        return GeminiEmbedding(
            api_key=config.gemini_api_key,
            model=config.gemini_embed_model,
            timeout=config.request_timeout_sec,
        )
    elif config.embed_provider == "sentence":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(config.embed_model_name)

    from ..vector.embeddings import DeterministicHashEmbedding
    return DeterministicHashEmbedding(dimension=config.embed_dim)


def get_token_counter(config: TriageConfig):
    """Get configured token counter implementation."""
    if config.token_counter == "gemini":
        if not config.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY is not set", stage="tokens")
        from ..vector.tokens import GeminiTokenCounter
        return GeminiTokenCounter(
            api_key=config.gemini_api_key,
            model=config.gemini_token_model,
            timeout=config.request_timeout_sec,
        )

    from ..vector.tokens import TiktokenCounter
    return TiktokenCounter(encoding_name=config.tokenizer_encoding)


def ensure_parent_directory(path: str):
    """Ensure the directory holding a database or snapshot file exists."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
