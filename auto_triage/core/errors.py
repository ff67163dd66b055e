"""
Error types shared by the issue store, vector layer and pipelines.

Every error carries a kind (``stage``) and chains the underlying cause so
callers can decide whether to re-run. Nothing in the core retries.
"""

from typing import Optional


class TriageError(Exception):
    """Base class for auto-triage failures."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__


class ConfigError(TriageError):
    """Invalid or incomplete configuration."""
    pass


class StoreError(TriageError):
    """Issue store query or update failed."""
    pass


class EmbeddingError(TriageError):
    """Embedding provider call failed or returned an unusable payload."""
    pass


class TokenCountError(TriageError):
    """Token counter call failed."""
    pass


class SnapshotError(TriageError):
    """Vector index snapshot could not be written or read."""
    pass


class VectorizeError(TriageError):
    """A vectorizer batch failed before its rows were marked processed."""

    def __init__(self, message: str, stage: str, batch: int = 0):
        super().__init__(message, stage=stage)
        self.batch = batch


class VectorizeCancelled(VectorizeError):
    """The vectorizer run was cancelled at a batch or task boundary."""

    def __init__(self, batch: int = 0):
        super().__init__(f"Vectorize run cancelled during batch {batch}", stage="cancelled", batch=batch)


class RetrievalError(TriageError):
    """Query embedding or index search failed during retrieval."""
    pass
