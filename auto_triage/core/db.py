"""
SQLite connection handling for the mirrored GitHub issue store.
The issues table is owned by the scraper; the core only reads rows and
flips the processed flag.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import ensure_parent_directory

ISSUES_TABLE_DDL = '''
    CREATE TABLE IF NOT EXISTS issues (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        processed BOOLEAN NOT NULL DEFAULT 0,
        description TEXT,
        labels TEXT,
        raw TEXT NOT NULL
    )
'''


@contextmanager
def get_db(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str):
    """Initialize the database with the issues table."""
    ensure_parent_directory(db_path)
    with get_db(db_path) as conn:
        conn.execute(ISSUES_TABLE_DDL)
        conn.commit()


def health_check(db_path: str) -> bool:
    """Check that the issue database is reachable and has the issues table."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            return 'issues' in table_names
    except sqlite3.Error:
        return False
