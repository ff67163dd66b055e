"""
Configuration loading, validation and component factories.
"""

import pytest

from auto_triage.core.config import (
    TriageConfig,
    create_vector_database,
    get_embedding_provider,
    get_token_counter,
    get_vector_store,
    load_config,
    snapshot_key,
    validate_config,
)
from auto_triage.core.errors import ConfigError
from auto_triage.vector import (
    DeterministicHashEmbedding,
    FaissVectorStore,
    GeminiEmbedding,
    GeminiTokenCounter,
    SimpleInMemoryVectorStore,
    TiktokenCounter,
    VectorDatabase,
)


def test_defaults_from_empty_environment():
    config = load_config(env={})

    assert config.issues_db_path == "github-data.sqlite"
    assert config.vector_db_path == "vector.db"
    assert config.vectorize_batch_size == 100
    assert config.vectorize_workers == 5
    assert config.vectorize_min_batch_seconds == 1.0
    assert config.historian_batch_size == 150
    assert config.historian_max_results == 1000
    assert config.historian_max_tokens == 900000
    assert config.vector_encryption_enabled is True


def test_environment_overrides():
    config = load_config(env={
        "ISSUES_DB_PATH": "/data/issues.sqlite",
        "VECTOR_PROVIDER": "FAISS",
        "EMBED_PROVIDER": "gemini",
        "GEMINI_API_KEY": "k",
        "VECTORIZE_BATCH_SIZE": "25",
        "VECTORIZE_USE_BATCH_API": "false",
        "VECTOR_ENCRYPTION_ENABLED": "no",
        "HISTORIAN_MAX_TOKENS": "300000",
    })

    assert config.issues_db_path == "/data/issues.sqlite"
    assert config.vector_provider == "faiss"
    assert config.embed_provider == "gemini"
    assert config.vectorize_batch_size == 25
    assert config.vectorize_use_batch_api is False
    assert config.vector_encryption_enabled is False
    assert config.historian_max_tokens == 300000


def test_invalid_number_raises_config_error():
    with pytest.raises(ConfigError):
        load_config(env={"VECTORIZE_BATCH_SIZE": "lots"})


def test_validate_reports_problems():
    config = TriageConfig(
        vector_provider="annoy",
        embed_provider="gemini",
        vector_encryption_enabled=True,
        vector_db_key=None,
        vectorize_workers=0,
    )
    issues = validate_config(config)

    assert "Invalid VECTOR_PROVIDER: annoy" in issues
    assert any("GEMINI_API_KEY" in issue for issue in issues)
    assert any("VECTOR_DB_KEY" in issue for issue in issues)
    assert "VECTORIZE_WORKERS must be >= 1" in issues


def test_validate_faiss_gemini_dimension():
    config = TriageConfig(vector_provider="faiss", embed_provider="gemini", gemini_api_key="k",
                          vector_db_key="secret", embed_dim=384)
    assert any("768" in issue for issue in validate_config(config))

    config.embed_dim = 768
    assert validate_config(config) == []


def test_validate_faiss_sentence_dimension():
    config = TriageConfig(vector_provider="faiss", embed_provider="sentence", vector_db_key="secret")
    issues = validate_config(config)
    assert any("EMBED_DIM must be 768" in issue and "all-mpnet-base-v2" in issue for issue in issues)

    config.embed_model_name = "sentence-transformers/all-MiniLM-L6-v2"
    assert validate_config(config) == []

    # Unknown models and the in-memory index are not checked
    config.embed_model_name = "my-org/custom-encoder"
    assert validate_config(config) == []
    assert validate_config(TriageConfig(embed_provider="sentence", vector_db_key="secret")) == []


def test_valid_default_config_with_key():
    assert validate_config(TriageConfig(vector_db_key="secret")) == []


def test_snapshot_key():
    assert snapshot_key(TriageConfig(vector_db_key="secret")) == "secret"
    assert snapshot_key(TriageConfig(vector_encryption_enabled=False, vector_db_key="secret")) is None


def test_factories():
    config = TriageConfig(embed_dim=32)

    embedder = get_embedding_provider(config)
    assert isinstance(embedder, DeterministicHashEmbedding)
    assert embedder.get_dimension() == 32

    assert isinstance(get_vector_store(config), SimpleInMemoryVectorStore)
    config.vector_provider = "faiss"
    store = get_vector_store(config)
    assert isinstance(store, FaissVectorStore)
    assert store.dimension == 32

    assert isinstance(get_token_counter(config), TiktokenCounter)

    database = create_vector_database(config)
    assert isinstance(database, VectorDatabase)
    assert isinstance(database.get_or_create_collection("issues"), FaissVectorStore)


def test_gemini_factories_require_key():
    config = TriageConfig(embed_provider="gemini", token_counter="gemini")
    with pytest.raises(ConfigError):
        get_embedding_provider(config)
    with pytest.raises(ConfigError):
        get_token_counter(config)

    config.gemini_api_key = "k"
    assert isinstance(get_embedding_provider(config), GeminiEmbedding)
    assert isinstance(get_token_counter(config), GeminiTokenCounter)
