"""
FAISS-backed vector index. Vectors are L2-normalized so inner product on
``IndexFlatIP`` is cosine similarity; an ``IndexIDMap2`` wrapper lets a
re-added id replace its previous vector.
"""

import threading
from typing import Dict, List, Optional
import numpy as np

from .types import VectorRecord, QueryResult
from .index import IVectorStore, as_vector
from ..util.logging import logger


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 384):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 384 for hash embeddings)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension
        self.index = self._new_index()

        self._records: Dict[str, VectorRecord] = {}
        self.id_to_vector_index: Dict[str, int] = {}  # record ID -> FAISS id
        self.vector_id_map: Dict[int, str] = {}  # FAISS id -> record ID
        self.next_vector_index = 0
        self._lock = threading.Lock()

    def _new_index(self):
        return self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))

    def _check_dimension(self, vector: np.ndarray):
        if vector.size != self.dimension:
            raise ValueError(f"Vector dimension {vector.size} does not match expected dimension {self.dimension}")

    def _remove_locked(self, record_id: str):
        self._records.pop(record_id, None)
        vector_index = self.id_to_vector_index.pop(record_id, None)
        if vector_index is not None:
            self.vector_id_map.pop(vector_index, None)
            self.index.remove_ids(np.array([vector_index], dtype=np.int64))

    def add(self, record: VectorRecord) -> None:
        """Add or overwrite a single vector record."""
        self.batch_add([record])

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add or overwrite multiple vector records in one FAISS call."""
        if not records:
            return

        # A record repeated within one batch keeps only its last vector
        prepared = {}
        for record in records:
            vector = as_vector(record.vector)
            if vector is not None:
                self._check_dimension(vector)
            prepared[record.id] = (record, vector)

        with self._lock:
            vectors_to_add = []
            ids_to_add = []

            for record, vector in prepared.values():
                self._remove_locked(record.id)
                self._records[record.id] = VectorRecord(
                    id=record.id, vector=vector, metadata=dict(record.metadata), content=record.content
                )

                if vector is None:
                    continue
                norm = np.linalg.norm(vector)
                if norm == 0:  # stored, but not searchable
                    logger.log_vector_operation("unindexed", record.id, {"reason": "zero vector"})
                    continue

                vector_index = self.next_vector_index
                self.next_vector_index += 1
                self.id_to_vector_index[record.id] = vector_index
                self.vector_id_map[vector_index] = record.id
                vectors_to_add.append((vector / norm).astype(np.float32))
                ids_to_add.append(vector_index)

            if vectors_to_add:
                batch_vectors = np.vstack(vectors_to_add).astype(np.float32)
                self.index.add_with_ids(batch_vectors, np.array(ids_to_add, dtype=np.int64))

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        query = as_vector(query_vector)
        if query is None or top_k <= 0:
            return []

        with self._lock:
            if not self.index.ntotal:
                return []
            self._check_dimension(query)

            norm = np.linalg.norm(query)
            if norm == 0:
                return []

            query_array = (query / norm).astype(np.float32).reshape(1, -1)
            scores, indices = self.index.search(query_array, min(top_k, self.index.ntotal))

            query_results = []
            for score, vector_index in zip(scores[0], indices[0]):
                record_id = self.vector_id_map.get(int(vector_index))
                if record_id is None:
                    continue
                record = self._records[record_id]
                query_results.append(QueryResult(
                    id=record_id,
                    score=float(score),
                    metadata=dict(record.metadata),
                    content=record.content
                ))

        return query_results

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock:
            return self._records.get(record_id)

    def records(self) -> List[VectorRecord]:
        with self._lock:
            return list(self._records.values())

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        with self._lock:
            known = record_id in self._records
            self._remove_locked(record_id)
        logger.log_vector_operation("deleted" if known else "delete_skipped", record_id, {"backend": "faiss"})

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        with self._lock:
            self.index = self._new_index()
            self._records.clear()
            self.id_to_vector_index.clear()
            self.vector_id_map.clear()
            self.next_vector_index = 0
