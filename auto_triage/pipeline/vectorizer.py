"""
Incremental issue vectorizer.

Pulls unprocessed issues from the issue store in bounded batches, embeds
them, writes them into the ``issues`` collection, persists the vector
snapshot and only then marks the rows processed. A failure anywhere before
the snapshot is persisted leaves the batch unprocessed, so re-running the
vectorizer resumes from the last committed batch.

Per-batch states: fetched -> embedding -> inserted -> persisted -> marked.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..core.config import TriageConfig
from ..core.errors import EmbeddingError, StoreError, VectorizeCancelled, VectorizeError
from ..core.issue_store import IssueRecord, IssueStore
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore, as_vector
from ..vector.types import VectorRecord
from ..util.logging import logger

BATCH_SIZE = 100
DEFAULT_WORKERS = 5
MIN_BATCH_SECONDS = 1.0


@dataclass
class BatchItem:
    """An issue row prepared for embedding."""

    id: int
    title: str
    content: str
    labels: str

    @classmethod
    def from_issue(cls, issue: IssueRecord) -> "BatchItem":
        return cls(id=issue.id, title=issue.title, content=issue.content(), labels=issue.labels)

    def to_record(self, embedding) -> VectorRecord:
        return VectorRecord(
            id=str(self.id),
            vector=as_vector(embedding),
            metadata={"idKey": str(self.id), "labels": self.labels},
            content=self.content,
        )


@dataclass
class VectorizeReport:
    """Outcome of a vectorizer run."""

    total_pending: int = 0
    batches: int = 0
    embedded: int = 0


class Vectorizer:
    """Drives unprocessed issues to embedded, persisted, processed state.

    Args:
        store: issue store to read from and mark processed
        collection: vector collection receiving the documents
        embedding_provider: provider used for issue embeddings
        persist: zero-argument callback that writes the vector snapshot
        config: batch size, worker count and pacing settings
        cancel_event: optional event checked between batches and tasks
        sleep, clock: injectable for tests
    """

    def __init__(self, store: IssueStore, collection: IVectorStore,
                 embedding_provider: IEmbeddingProvider, persist: Callable[[], None],
                 config: Optional[TriageConfig] = None,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        config = config or TriageConfig()
        self.store = store
        self.collection = collection
        self.embedding_provider = embedding_provider
        self.persist = persist
        self.batch_size = config.vectorize_batch_size
        self.workers = config.vectorize_workers
        self.use_batch_api = config.vectorize_use_batch_api
        self.min_batch_seconds = config.vectorize_min_batch_seconds
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep
        self._clock = clock

    @property
    def batched_mode(self) -> bool:
        return self.use_batch_api and self.embedding_provider.supports_batch

    def _check_cancelled(self, batch: int):
        if self.cancel_event.is_set():
            raise VectorizeCancelled(batch)

    def run(self) -> VectorizeReport:
        """Process every unprocessed issue. Raises VectorizeError on failure."""
        report = VectorizeReport()

        try:
            report.total_pending = self.store.count_unprocessed()
        except StoreError as e:
            raise VectorizeError(f"Failed to count unprocessed issues: {e}", stage="fetch") from e

        if report.total_pending == 0:
            logger.info("No issues to process. Skipping update of vectors")
            return report

        total_batches = (report.total_pending + self.batch_size - 1) // self.batch_size
        logger.log_operation("vectorize.start", "running", {
            "pending": report.total_pending,
            "batch_size": self.batch_size,
            "total_batches": total_batches,
            "mode": "batch" if self.batched_mode else f"workers({self.workers})",
        })

        executor = None if self.batched_mode else ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="vectorize-worker"
        )
        try:
            while True:
                batch = report.batches + 1
                self._check_cancelled(batch)

                try:
                    remaining = self.store.count_unprocessed()
                except StoreError as e:
                    raise VectorizeError(f"Failed to count unprocessed issues: {e}", stage="fetch", batch=batch) from e
                if remaining == 0:
                    break

                embedded = self._process_batch(batch, max(total_batches, batch), executor)
                report.batches += 1
                report.embedded += embedded
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        if report.batches:
            try:
                self.persist()
            except Exception as e:
                raise VectorizeError(f"Final snapshot persist failed: {e}", stage="persist", batch=report.batches) from e

        logger.log_operation("vectorize.complete", "success", {
            "batches": report.batches,
            "embedded": report.embedded,
        })
        return report

    def _process_batch(self, batch: int, total_batches: int, executor: Optional[ThreadPoolExecutor]) -> int:
        started = self._clock()

        try:
            issues = self.store.fetch_unprocessed(self.batch_size)
        except StoreError as e:
            logger.log_batch(batch, total_batches, "fetch", status="failed", details={"error": str(e)})
            raise VectorizeError(f"Failed to fetch batch {batch}: {e}", stage="fetch", batch=batch) from e

        if not issues:
            raise VectorizeError(f"Batch {batch} fetched no rows while unprocessed issues remain",
                                 stage="fetch", batch=batch)

        items = [BatchItem.from_issue(issue) for issue in issues]
        logger.log_batch(batch, total_batches, "fetched", details={"items": len(items)})

        try:
            if executor is None:
                embedded = self._embed_batched(items)
            else:
                embedded = self._embed_with_workers(items, executor, batch)
        except VectorizeCancelled:
            raise
        except VectorizeError as e:
            logger.log_batch(batch, total_batches, "embedding", status="failed", details={"error": str(e)})
            raise
        except Exception as e:
            logger.log_batch(batch, total_batches, "embedding", status="failed", details={"error": str(e)})
            raise VectorizeError(f"Embedding failed for batch {batch}: {e}", stage="embed", batch=batch) from e

        try:
            self.collection.batch_add([item.to_record(embedding) for item, embedding in embedded])
        except Exception as e:
            logger.log_batch(batch, total_batches, "insert", status="failed", details={"error": str(e)})
            raise VectorizeError(f"Index insert failed for batch {batch}: {e}", stage="insert", batch=batch) from e
        logger.log_batch(batch, total_batches, "inserted", details={"documents": len(embedded)})

        try:
            self.persist()
        except Exception as e:
            logger.log_batch(batch, total_batches, "persist", status="failed", details={"error": str(e)})
            raise VectorizeError(f"Snapshot persist failed for batch {batch}: {e}", stage="persist", batch=batch) from e

        try:
            self.store.mark_processed(item.id for item in items)
        except StoreError as e:
            logger.log_batch(batch, total_batches, "mark", status="failed", details={"error": str(e)})
            raise VectorizeError(f"Failed to mark batch {batch} processed: {e}", stage="mark", batch=batch) from e
        logger.log_batch(batch, total_batches, "processed", details={"items": len(items)})

        self._pace(started)
        return len(embedded)

    def _embed_batched(self, items: List[BatchItem]) -> List[Tuple[BatchItem, list]]:
        """One provider call for the whole batch, re-associated by request position."""
        embeddings = self.embedding_provider.embed_batch([(item.title, item.content) for item in items])
        if len(embeddings) != len(items):
            raise EmbeddingError(
                f"Provider returned {len(embeddings)} embeddings for {len(items)} issues",
                stage="embed"
            )
        return list(zip(items, embeddings))

    def _embed_one(self, item: BatchItem, batch: int) -> Tuple[BatchItem, list]:
        self._check_cancelled(batch)
        return item, self.embedding_provider.embed_document(item.title, item.content)

    def _embed_with_workers(self, items: List[BatchItem], executor: ThreadPoolExecutor,
                            batch: int) -> List[Tuple[BatchItem, list]]:
        """Fan the batch out to the worker pool and wait for every task.

        Workers only compute embeddings; the driver thread inserts the
        results, so the collection has a single writer.
        """
        futures = [executor.submit(self._embed_one, item, batch) for item in items]
        wait(futures)

        results = []
        errors = []
        for future in futures:
            error = future.exception()
            if error is not None:
                errors.append(error)
            else:
                results.append(future.result())

        if errors:
            cancelled = [e for e in errors if isinstance(e, VectorizeCancelled)]
            if cancelled:
                raise cancelled[0]
            raise VectorizeError(
                f"{len(errors)} of {len(items)} embedding tasks failed; first error: {errors[0]}",
                stage="embed",
                batch=batch
            ) from errors[0]
        return results

    def _pace(self, started: float):
        """Keep rate-limited providers at no more than one batch per interval."""
        if not self.embedding_provider.rate_limited:
            return
        left = self.min_batch_seconds - (self._clock() - started)
        if left > 0:
            logger.debug(f"Sleeping for {left:.2f}s before next batch")
            self._sleep(left)


def vectorize_issues(store: IssueStore, collection: IVectorStore, embedding_provider: IEmbeddingProvider,
                     persist: Callable[[], None], config: Optional[TriageConfig] = None,
                     cancel_event: Optional[threading.Event] = None) -> VectorizeReport:
    """Embed every unprocessed issue into ``collection``; see ``Vectorizer``."""
    return Vectorizer(store, collection, embedding_provider, persist, config=config,
                      cancel_event=cancel_event).run()
