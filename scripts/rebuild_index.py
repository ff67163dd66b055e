#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds the issues collection from the canonical SQLite issue store after
data corruption, lost vectors or an embedding model change.

This is a maintenance operation: it drops the collection, resets every
issue's processed flag and runs the vectorizer over the whole store.
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
from auto_triage.core.errors import SnapshotError, TriageError
from auto_triage.core.issue_store import IssueStore
from auto_triage.pipeline.vectorizer import Vectorizer
from auto_triage.vector.database import snapshot_persister


def main(argv=None):
    """Rebuild the issues vector collection from the SQLite issue store."""
    parser = argparse.ArgumentParser(description="Rebuild the issue vector index from scratch")
    parser.add_argument("--issues-db", help="Issue database file (default: ISSUES_DB_PATH)")
    parser.add_argument("--vector-db", help="Vector snapshot file (default: VECTOR_DB_PATH)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    args = parser.parse_args(argv)

    config = load_config()
    if args.issues_db:
        config.issues_db_path = args.issues_db
    if args.vector_db:
        config.vector_db_path = args.vector_db

    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    if not Path(config.issues_db_path).exists():
        print(f"ERROR: Issue database {config.issues_db_path} does not exist")
        sys.exit(1)

    print("Starting vector index rebuild...")

    key = snapshot_key(config)
    try:
        database = create_vector_database(config)
        try:
            database.restore(config.vector_db_path, key)
        except SnapshotError as e:
            # Unreadable snapshots are rebuilt; a wrong key is still fatal
            if e.stage not in ("read", "decode"):
                raise
            print(f"WARNING: Ignoring unreadable vector snapshot: {e}")
            database = create_vector_database(config)

        with IssueStore.open(config.issues_db_path) as store:
            total = store.count_issues()
            if total == 0:
                print(f"ERROR: No issues found in {config.issues_db_path}")
                sys.exit(1)
            print(f"Found {total} issues in canonical store")

            database.delete_collection(ISSUES_COLLECTION)
            collection = database.get_or_create_collection(ISSUES_COLLECTION)
            print("✓ Cleared existing vector collection")

            store.reset_processed()
            report = Vectorizer(
                store,
                collection,
                get_embedding_provider(config),
                snapshot_persister(database, config.vector_db_path, key),
                config=config,
            ).run()
    except TriageError as e:
        print(f"ERROR: Rebuild failed: {e}")
        sys.exit(1)

    print(f"✓ Successfully rebuilt index with {collection.count()} vectors in {report.batches} batches")
    print("Index rebuild complete!")
    return report


if __name__ == "__main__":
    main()
