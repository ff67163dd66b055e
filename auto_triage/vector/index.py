"""
Vector index interface and the in-memory cosine implementation.
Documents are keyed by id; adding an existing id overwrites it.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import numpy as np

from .types import VectorRecord, QueryResult
from ..util.logging import logger


def as_vector(values) -> Optional[np.ndarray]:
    """Coerce an embedding (list or array) to a 1-D float32 array."""
    if values is None:
        return None
    vector = np.asarray(values, dtype=np.float32).reshape(-1)
    if vector.size == 0:
        return None
    return vector


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, record: VectorRecord) -> None:
        """Add or overwrite a single vector record."""
        pass

    @abstractmethod
    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add or overwrite multiple vector records."""
        pass

    @abstractmethod
    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return results ranked by descending score."""
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[VectorRecord]:
        """Return the stored record for an id, if any."""
        pass

    @abstractmethod
    def records(self) -> List[VectorRecord]:
        """All stored records in insertion order."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    def count(self) -> int:
        return len(self.records())

    def export_data(self) -> Dict[str, Any]:
        """Serializable snapshot of every record."""
        return {
            "records": [
                {
                    "id": record.id,
                    "content": record.content,
                    "metadata": dict(record.metadata),
                    "vector": record.vector.tolist() if record.vector is not None else None,
                }
                for record in self.records()
            ]
        }

    def load_data(self, data: Dict[str, Any]) -> None:
        """Replace the store contents with a snapshot from ``export_data``."""
        self.clear()
        self.batch_add([
            VectorRecord(
                id=str(item["id"]),
                vector=as_vector(item.get("vector")),
                metadata=dict(item.get("metadata") or {}),
                content=item.get("content", ""),
            )
            for item in data.get("records", [])
        ])


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self):
        self._vectors = {}  # record_id -> VectorRecord
        self._index = {}    # record_id -> normalized_vector (for fast lookup)
        self._dimension = None
        self._lock = threading.Lock()

    def add(self, record: VectorRecord) -> None:
        """Add or overwrite a single vector record."""
        vector = as_vector(record.vector)
        if vector is not None and self._dimension is not None and vector.size != self._dimension:
            raise ValueError(f"Vector dimension {vector.size} does not match expected dimension {self._dimension}")

        stored = VectorRecord(id=record.id, vector=vector, metadata=dict(record.metadata), content=record.content)

        with self._lock:
            # Re-insert so that dict order follows the latest write
            self._vectors.pop(record.id, None)
            self._index.pop(record.id, None)
            self._vectors[record.id] = stored

            if vector is None:
                return
            if self._dimension is None:
                self._dimension = vector.size

            # Zero vectors are kept as records but are not searchable
            norm = np.linalg.norm(vector)
            if norm > 0:
                self._index[record.id] = vector / norm

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        for record in records:
            self.add(record)

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        query = as_vector(query_vector)
        if query is None or top_k <= 0:
            return []

        with self._lock:
            if not self._index:
                return []
            if query.size != self._dimension:
                raise ValueError(f"Query dimension {query.size} does not match expected dimension {self._dimension}")

            norm = np.linalg.norm(query)
            if norm == 0:
                return []
            normalized_query = query / norm

            ids = list(self._index.keys())
            matrix = np.vstack([self._index[record_id] for record_id in ids])
            similarities = matrix @ normalized_query

            # Stable sort keeps insertion order between equal scores
            order = np.argsort(-similarities, kind="stable")[:top_k]

            query_results = []
            for position in order:
                original_record = self._vectors[ids[position]]
                query_results.append(QueryResult(
                    id=original_record.id,
                    score=float(similarities[position]),
                    metadata=dict(original_record.metadata),
                    content=original_record.content
                ))

        return query_results

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock:
            return self._vectors.get(record_id)

    def records(self) -> List[VectorRecord]:
        with self._lock:
            return list(self._vectors.values())

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        with self._lock:
            known = self._vectors.pop(record_id, None) is not None
            self._index.pop(record_id, None)
        logger.log_vector_operation("deleted" if known else "delete_skipped", record_id, {"backend": "memory"})

    def clear(self) -> None:
        """Clear all records from the store."""
        with self._lock:
            self._vectors.clear()
            self._index.clear()
            self._dimension = None
