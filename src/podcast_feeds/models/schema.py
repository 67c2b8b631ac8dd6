"""
SQLite schema for the document store.

Documents are JSON bodies addressed by a string key. Each document
carries an integer revision used for optimistic concurrency: an update
only succeeds when it names the revision currently stored.
"""

import sqlite3
from pathlib import Path
from typing import List


SCHEMA_SQL = """
-- ============================================================
-- DOCUMENTS: channel and item records keyed by store path
--   channels/<channel_id>
--   items/<channel_id>/<item_id>
-- ============================================================
CREATE TABLE IF NOT EXISTS documents (
    key             TEXT    PRIMARY KEY,
    rev             INTEGER NOT NULL DEFAULT 1 CHECK (rev > 0),
    body            TEXT    NOT NULL,  -- JSON object, UTF-8
    created_at      TEXT    DEFAULT (datetime('now')),
    updated_at      TEXT    DEFAULT (datetime('now'))
);
"""


def create_all_tables(db_path: Path) -> None:
    """
    Create all tables if they don't exist.

    Safe to call multiple times (idempotent).

    Args:
        db_path: Path to the SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


def get_table_names(db_path: Path) -> List[str]:
    """
    List the tables present in the database.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Table names, sorted
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()
