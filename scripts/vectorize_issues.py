#!/usr/bin/env python3
"""
Incremental vectorizer command.

Restores the vector snapshot, embeds every issue whose processed flag is
still 0, persists the snapshot after each batch and marks the batch
processed. Safe to re-run after a failure; it resumes from the last
committed batch.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from auto_triage import VERSION
from auto_triage.core.config import (
    ISSUES_COLLECTION,
    create_vector_database,
    get_embedding_provider,
    load_config,
    snapshot_key,
    validate_config,
)
from auto_triage.core.errors import TriageError
from auto_triage.core.issue_store import IssueStore
from auto_triage.pipeline.vectorizer import Vectorizer
from auto_triage.util.logging import logger
from auto_triage.vector.database import snapshot_persister


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Embed unprocessed GitHub issues into the vector snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Use settings from the environment
  %(prog)s --issues-db data/issues.sqlite   # Override the issue database
  %(prog)s --workers 8 --no-batch-api       # Embed with a worker pool

Environment variables:
- ISSUES_DB_PATH, VECTOR_DB_PATH
- EMBED_PROVIDER=hash|sentence|gemini, GEMINI_API_KEY
- VECTOR_ENCRYPTION_ENABLED=true, VECTOR_DB_KEY=...
        """
    )

    parser.add_argument("--issues-db", help="Issue database file (default: ISSUES_DB_PATH)")
    parser.add_argument("--vector-db", help="Vector snapshot file (default: VECTOR_DB_PATH)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--batch-size", type=int, help="Issues per batch (default: VECTORIZE_BATCH_SIZE)")
    parser.add_argument("--workers", type=int, help="Worker pool size when batching is unavailable")
    parser.add_argument("--no-batch-api", action="store_true", help="Embed through the worker pool even if the provider batches")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    config = load_config()
    if args.issues_db:
        config.issues_db_path = args.issues_db
    if args.vector_db:
        config.vector_db_path = args.vector_db
    if args.batch_size:
        config.vectorize_batch_size = args.batch_size
    if args.workers:
        config.vectorize_workers = args.workers
    if args.no_batch_api:
        config.vectorize_use_batch_api = False
    logger.set_debug(args.verbose or config.debug)

    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    if not Path(config.issues_db_path).exists():
        print(f"ERROR: Issue database {config.issues_db_path} does not exist")
        sys.exit(1)

    key = snapshot_key(config)
    try:
        database = create_vector_database(config)
        database.restore(config.vector_db_path, key)
        collection = database.get_or_create_collection(ISSUES_COLLECTION)
        embedding_provider = get_embedding_provider(config)

        with IssueStore.open(config.issues_db_path) as store:
            report = Vectorizer(
                store,
                collection,
                embedding_provider,
                snapshot_persister(database, config.vector_db_path, key),
                config=config,
            ).run()
    except TriageError as e:
        print(f"ERROR: Vectorize failed: {e}")
        sys.exit(1)

    print(f"✓ Embedded {report.embedded} issues in {report.batches} batches")
    print(f"✓ Collection '{ISSUES_COLLECTION}' holds {collection.count()} documents")
    return report


if __name__ == "__main__":
    main()
