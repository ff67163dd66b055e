#!/usr/bin/env python3
"""
Print the historical issues most similar to a new issue, limited to what
fits in the token budget.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from auto_triage import VERSION
from auto_triage.core.config import (
    ISSUES_COLLECTION,
    create_vector_database,
    get_embedding_provider,
    get_token_counter,
    load_config,
    snapshot_key,
    validate_config,
)
from auto_triage.core.errors import TriageError
from auto_triage.pipeline.historian import DOCUMENT_SEPARATOR, Historian
from auto_triage.util.logging import logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find historical issues related to a new issue")
    parser.add_argument("--title", required=True, help="Issue title")
    parser.add_argument("--body", required=True, help="Issue description")
    parser.add_argument("--vector-db", help="Vector snapshot file (default: VECTOR_DB_PATH)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--max-results", type=int, help="Candidates fetched from the index (default: HISTORIAN_MAX_RESULTS)")
    parser.add_argument("--max-tokens", type=int, help="Token budget (default: HISTORIAN_MAX_TOKENS)")
    parser.add_argument("--json", action="store_true", help="Print the documents as a JSON array")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    config = load_config()
    if args.vector_db:
        config.vector_db_path = args.vector_db
    logger.set_debug(args.verbose or config.debug)

    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    try:
        database = create_vector_database(config)
        database.restore(config.vector_db_path, snapshot_key(config))
        historian = Historian(
            get_embedding_provider(config),
            get_token_counter(config),
            database.get_or_create_collection(ISSUES_COLLECTION),
            config=config,
        )
        documents = historian.find_relevant_documents(
            args.title,
            args.body,
            max_result_count=args.max_results,
            max_tokens=args.max_tokens,
        )
    except TriageError as e:
        print(f"ERROR: Retrieval failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(documents, indent=2))
    elif documents:
        print(f"\n{DOCUMENT_SEPARATOR}\n".join(documents))
    else:
        print("No related issues found")
    return documents


if __name__ == "__main__":
    main()
