"""
Issue store access - reads unprocessed issue rows and advances the
processed flag once their embeddings are durably persisted.
"""

import json
import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from .db import ISSUES_TABLE_DDL
from .errors import StoreError
from .labels import build_issue_content
from ..util.logging import logger


@dataclass
class IssueRecord:
    """A mirrored GitHub issue row."""

    id: int
    title: str
    description: str
    labels: str
    raw: str
    processed: bool = False

    def content(self) -> str:
        """Text that is embedded for this issue."""
        return build_issue_content(self.title, self.description, self.labels)


class IssueStore:
    """Thin wrapper around the sqlite ``issues`` table.

    The store owns one connection. It is used from the vectorizer's driver
    thread only; embedding workers never touch it.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @classmethod
    def open(cls, db_path: str, create: bool = False) -> "IssueStore":
        """Open the issue database, optionally creating the issues table."""
        try:
            conn = sqlite3.connect(db_path)
            if create:
                conn.execute(ISSUES_TABLE_DDL)
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open issue database {db_path}: {e}", stage="open") from e
        return cls(conn)

    def close(self):
        self.conn.close()

    def __enter__(self) -> "IssueStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _scalar(self, query: str, params: Sequence[Any] = ()) -> int:
        try:
            row = self.conn.execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Issue store query failed: {e}", stage="query") from e
        return int(row[0]) if row else 0

    def count_issues(self) -> int:
        return self._scalar("SELECT count(*) FROM issues")

    def count_unprocessed(self) -> int:
        return self._scalar("SELECT count(*) FROM issues WHERE processed = 0")

    def fetch_unprocessed(self, limit: int) -> List[IssueRecord]:
        """Fetch up to ``limit`` unprocessed issues in ascending id order."""
        try:
            cursor = self.conn.execute(
                "SELECT id, title, description, labels, raw FROM issues "
                "WHERE processed = 0 ORDER BY id ASC LIMIT ?",
                (limit,)
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to fetch unprocessed issues: {e}", stage="query") from e

        return [
            IssueRecord(
                id=int(issue_id),
                title=title or "",
                description=description or "",
                labels=labels or "",
                raw=raw or "",
            )
            for issue_id, title, description, labels, raw in rows
        ]

    def get_issue(self, issue_id: int) -> Optional[IssueRecord]:
        try:
            row = self.conn.execute(
                "SELECT id, title, description, labels, raw, processed FROM issues WHERE id = ?",
                (issue_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read issue {issue_id}: {e}", stage="query") from e

        if row is None:
            return None
        issue_id, title, description, labels, raw, processed = row
        return IssueRecord(
            id=int(issue_id),
            title=title or "",
            description=description or "",
            labels=labels or "",
            raw=raw or "",
            processed=bool(processed),
        )

    def mark_processed(self, issue_ids: Iterable[int]) -> int:
        """Set processed = 1 for the given ids in a single update."""
        ids = [int(issue_id) for issue_id in issue_ids]
        if not ids:
            return 0

        # ids are coerced to int above, so the joined list is safe to inline
        id_list = ",".join(str(issue_id) for issue_id in ids)
        try:
            cursor = self.conn.execute(f"UPDATE issues SET processed = 1 WHERE id IN ({id_list})")
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to mark {len(ids)} issues as processed: {e}", stage="update") from e
        return cursor.rowcount

    def reset_processed(self) -> int:
        """Mark every issue unprocessed. Used only by the full index rebuild."""
        try:
            cursor = self.conn.execute("UPDATE issues SET processed = 0")
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to reset processed flags: {e}", stage="update") from e
        logger.log_operation("issues.reset_processed", "success", {"rows": cursor.rowcount})
        return cursor.rowcount

    def save_issue(self, number: int, title: str, description: Optional[str],
                   labels: Optional[list] = None, raw: Any = None) -> None:
        """Insert or replace an issue as unprocessed, the way the scraper stores it."""
        labels_json = json.dumps(labels or [])
        raw_text = raw if isinstance(raw, str) else json.dumps(raw if raw is not None else {})
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO issues (id, title, description, processed, labels, raw) "
                "VALUES (?, ?, ?, 0, ?, ?)",
                (int(number), title or "", description or "", labels_json, raw_text)
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to save issue {number}: {e}", stage="insert") from e
