"""
Vector index layer - embedded issue documents persisted next to the
canonical SQLite issue store.
"""

# Package initialization for vector module
from .index import IVectorStore, SimpleInMemoryVectorStore
from .faiss_store import FaissVectorStore
from .types import VectorRecord, QueryResult
from .database import VectorDatabase
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, GeminiEmbedding
from .tokens import ITokenCounter, TiktokenCounter, GeminiTokenCounter

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'FaissVectorStore',
    'VectorRecord',
    'QueryResult',
    'VectorDatabase',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'GeminiEmbedding',
    'ITokenCounter',
    'TiktokenCounter',
    'GeminiTokenCounter'
]
