"""
Shared fixtures: a temporary issue store and deterministic embedders.
"""

import threading

import pytest

from auto_triage.core.db import init_db
from auto_triage.core.issue_store import IssueStore
from auto_triage.vector.embeddings import DeterministicHashEmbedding

TEST_DIM = 16


class RecordingEmbedding(DeterministicHashEmbedding):
    """Hash embedder that records how it was called."""

    def __init__(self, dimension: int = TEST_DIM, supports_batch: bool = True, rate_limited: bool = False):
        super().__init__(dimension=dimension, supports_batch=supports_batch)
        self.rate_limited = rate_limited
        self.batch_sizes = []
        self.document_calls = 0
        self._lock = threading.Lock()

    def embed_batch(self, documents):
        self.batch_sizes.append(len(documents))
        return super().embed_batch(documents)

    def embed_document(self, title, body):
        with self._lock:
            self.document_calls += 1
        return super().embed_document(title, body)


def seed_issues(store: IssueStore, count: int, start: int = 1):
    """Insert ``count`` unprocessed issues with sequential ids."""
    for number in range(start, start + count):
        store.save_issue(
            number,
            f"Issue {number}",
            f"Description for issue {number}",
            labels=[{"name": "type/bug"}, {"name": f"area/{number % 3}"}],
            raw={"number": number},
        )


@pytest.fixture
def issue_db_path(tmp_path):
    path = str(tmp_path / "github-data.sqlite")
    init_db(path)
    return path


@pytest.fixture
def issue_store(issue_db_path):
    store = IssueStore.open(issue_db_path)
    yield store
    store.close()


@pytest.fixture
def embedder():
    return RecordingEmbedding()


@pytest.fixture
def cli_env(monkeypatch, tmp_path, issue_db_path):
    """Environment for the command-line scripts: hash embeddings, encrypted snapshot."""
    env = {
        "ISSUES_DB_PATH": issue_db_path,
        "VECTOR_DB_PATH": str(tmp_path / "vector.db"),
        "VECTOR_DB_KEY": "test-passphrase",
        "VECTOR_ENCRYPTION_ENABLED": "true",
        "VECTOR_PROVIDER": "memory",
        "EMBED_PROVIDER": "hash",
        "EMBED_DIM": str(TEST_DIM),
        "TOKEN_COUNTER": "tiktoken",
        "VECTORIZE_BATCH_SIZE": "10",
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env
