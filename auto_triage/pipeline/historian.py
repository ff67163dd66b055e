"""
Historian - finds the historical issues most similar to a new one and
returns as many of them as fit in the downstream model's token budget.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..core.config import TriageConfig
from ..core.errors import RetrievalError
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore
from ..vector.tokens import ITokenCounter
from ..util.logging import logger

BATCHING_SIZE = 150
MAX_RESULT_COUNT = 1000
MAX_TOKENS = 900000
DOCUMENT_SEPARATOR = "---##$$##---"


@dataclass
class QueryIssue:
    """The new issue to find history for."""

    title: str
    body: str


def find_relevant_documents(embedder: IEmbeddingProvider, token_counter: ITokenCounter,
                            collection: IVectorStore, issue: QueryIssue,
                            max_result_count: int = MAX_RESULT_COUNT,
                            max_tokens: int = MAX_TOKENS,
                            batch_size: int = BATCHING_SIZE,
                            separator: str = DOCUMENT_SEPARATOR) -> List[str]:
    """Return the content of the nearest documents that fits ``max_tokens``.

    Neighbors are accepted in similarity order, ``batch_size`` at a time.
    After each increment the accumulated text is counted; once it reaches
    ``max_tokens`` the increment is dropped and the previous prefix is
    returned. A token counting failure also ends accumulation with the
    prefix accepted so far. An empty list is a valid answer.

    Raises:
        RetrievalError: embedding the query or searching the index failed
    """
    try:
        embedding = embedder.embed_document(issue.title, issue.body)
    except Exception as e:
        raise RetrievalError(f"Failed to embed query issue: {e}", stage="embed") from e

    try:
        documents = collection.search(embedding, top_k=max_result_count)
    except Exception as e:
        raise RetrievalError(f"Vector index query failed: {e}", stage="query") from e

    content = [doc.content for doc in documents]

    results: List[str] = []
    tokens_count: Optional[int] = None
    current = 0
    while current < len(content):
        next_size = min(current + batch_size, len(content))
        candidate = content[:next_size]

        try:
            count = token_counter.count_tokens(separator.join(candidate))
        except Exception as e:
            logger.warning(f"Token counting failed after {len(results)} documents, keeping them: {e}")
            break

        if count >= max_tokens:
            logger.info(f"Reached {count} tokens. Max tokens set to {max_tokens}. Stopping at {len(results)} documents")
            break

        logger.debug(f"Current tokens count: {count}. Adding more documents...")
        results = candidate
        tokens_count = count
        current = next_size

    logger.log_retrieval(issue.title, candidates=len(content), accepted=len(results), tokens=tokens_count)
    return results


class Historian:
    """Retrieval bound to an index collection, embedder and token counter."""

    def __init__(self, embedder: IEmbeddingProvider, token_counter: ITokenCounter,
                 collection: IVectorStore, config: Optional[TriageConfig] = None):
        config = config or TriageConfig()
        self.embedder = embedder
        self.token_counter = token_counter
        self.collection = collection
        self.max_result_count = config.historian_max_results
        self.max_tokens = config.historian_max_tokens
        self.batch_size = config.historian_batch_size

    def find_relevant_documents(self, title: str, body: str,
                                max_result_count: Optional[int] = None,
                                max_tokens: Optional[int] = None) -> List[str]:
        return find_relevant_documents(
            self.embedder,
            self.token_counter,
            self.collection,
            QueryIssue(title=title or "", body=body or ""),
            max_result_count=max_result_count if max_result_count is not None else self.max_result_count,
            max_tokens=max_tokens if max_tokens is not None else self.max_tokens,
            batch_size=self.batch_size,
        )
