"""
Named vector collections with whole-database export and import.
"""

import os
import threading
from typing import Callable, Dict, List, Optional

from .index import IVectorStore, SimpleInMemoryVectorStore
from .snapshot import read_snapshot, write_snapshot
from ..core.errors import SnapshotError
from ..util.logging import logger


class VectorDatabase:
    """A set of named collections, persisted together as one snapshot file."""

    def __init__(self, store_factory: Optional[Callable[[], IVectorStore]] = None):
        self._store_factory = store_factory or SimpleInMemoryVectorStore
        self._collections: Dict[str, IVectorStore] = {}
        self._lock = threading.Lock()

    def get_or_create_collection(self, name: str) -> IVectorStore:
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                collection = self._store_factory()
                self._collections[name] = collection
            return collection

    def get_collection(self, name: str) -> Optional[IVectorStore]:
        with self._lock:
            return self._collections.get(name)

    def delete_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)

    def list_collections(self) -> List[str]:
        with self._lock:
            return sorted(self._collections)

    def export_data(self) -> Dict[str, object]:
        with self._lock:
            collections = dict(self._collections)
        return {
            "collections": {name: store.export_data() for name, store in collections.items()}
        }

    def export_to_file(self, path: str, key: Optional[str] = None) -> None:
        """Write every collection to ``path``; encrypted when ``key`` is set."""
        data = self.export_data()
        try:
            size = write_snapshot(path, data, key)
        except SnapshotError:
            logger.log_snapshot("export", path, key is not None, status="failed")
            raise

        documents = sum(len(c["records"]) for c in data["collections"].values())
        logger.log_snapshot("export", path, key is not None, details={"bytes": size, "documents": documents})

    def import_from_file(self, path: str, key: Optional[str] = None) -> None:
        """Replace all collections with the contents of a snapshot file."""
        data = read_snapshot(path, key)
        collections = data.get("collections") if isinstance(data, dict) else None
        if not isinstance(collections, dict):
            raise SnapshotError(f"Snapshot {path} has no collections", stage="decode")

        restored = {}
        for name, store_data in collections.items():
            store = self._store_factory()
            try:
                store.load_data(store_data)
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.log_snapshot("import", path, key is not None, status="failed",
                                    details={"collection": name, "error": str(e)})
                raise SnapshotError(f"Snapshot {path} collection '{name}' could not be loaded: {e}",
                                    stage="decode") from e
            restored[name] = store

        with self._lock:
            self._collections = restored

        logger.log_snapshot("import", path, key is not None, details={"collections": sorted(restored)})

    def restore(self, path: str, key: Optional[str] = None) -> bool:
        """Import ``path`` if it exists. Returns False when there is nothing to restore."""
        if not os.path.exists(path):
            logger.info(f"No vector snapshot at {path}; starting with an empty database")
            return False
        self.import_from_file(path, key)
        return True


def snapshot_persister(database: VectorDatabase, path: str, key: Optional[str] = None) -> Callable[[], None]:
    """Zero-argument callback that exports ``database`` to ``path``."""
    def persist():
        database.export_to_file(path, key)
    return persist
