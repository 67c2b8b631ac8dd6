"""
Document store on top of SQLite.

Provides a key/value store of JSON documents with CouchDB-style
optimistic concurrency: creating an existing key, or updating with a
stale revision, raises ConflictError. Every call opens its own
connection, so the store can be shared between worker threads.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from podcast_feeds.errors import ConflictError, NotFoundError, StoreError
from podcast_feeds.ingestion.identity import KEY_RANGE_END
from .schema import create_all_tables


class DocumentStore:
    """
    Key-based document storage with revision checks.

    Documents are plain dicts. ``_id`` holds the key and ``_rev`` the
    stored revision; neither is part of the persisted body.

    Example:
        >>> store = DocumentStore(Path("data/db/podcasts.db"))
        >>> store.initialize()
        >>> store.put({"_id": "channels/abc", "title": "Talking Machines"})
        1
        >>> doc = store.get("channels/abc")
        >>> doc["title"] = "Talking Machines (rerun)"
        >>> store.put(doc)
        2
    """

    def __init__(self, db_path: Path, timeout: float = 10.0):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait for a locked database
        """
        self.db_path = db_path
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """
        Initialize database schema.

        Safe to call multiple times (idempotent).
        """
        create_all_tables(self.db_path)

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.

        Commits on success, rolls back on any exception.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.execute("PRAGMA encoding = 'UTF-8'")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> Dict[str, Any]:
        """
        Fetch a document by key.

        Args:
            key: Document key

        Returns:
            Document body with ``_id`` and ``_rev`` added

        Raises:
            NotFoundError: If no document has this key
            StoreError: On any database failure
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    "SELECT rev, body FROM documents WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read '{key}': {exc}") from exc

        if row is None:
            raise NotFoundError(key)

        return _decode(key, row[0], row[1])

    def put(self, doc: Dict[str, Any]) -> int:
        """
        Create or update a document.

        Without ``_rev`` the document is created; with ``_rev`` it replaces
        the stored document only if that revision is still current.

        Args:
            doc: Document including ``_id`` (and ``_rev`` for updates)

        Returns:
            The new revision number

        Raises:
            ConflictError: Key already exists, or revision is stale
            StoreError: On any other database failure
        """
        key = doc.get("_id")
        if not key:
            raise StoreError("Document has no _id")

        rev = doc.get("_rev")
        body = json.dumps(
            {k: v for k, v in doc.items() if not k.startswith("_")},
            ensure_ascii=False,
            sort_keys=True,
        )

        try:
            with self.get_connection() as conn:
                if rev is None:
                    conn.execute(
                        "INSERT INTO documents (key, rev, body) VALUES (?, 1, ?)",
                        (key, body),
                    )
                    return 1

                cursor = conn.execute(
                    """
                    UPDATE documents
                    SET body = ?, rev = rev + 1, updated_at = datetime('now')
                    WHERE key = ? AND rev = ?
                    """,
                    (body, key, rev),
                )
                if cursor.rowcount == 0:
                    raise ConflictError(key)
                return rev + 1
        except sqlite3.IntegrityError as exc:
            raise ConflictError(key) from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write '{key}': {exc}") from exc

    def all_docs(
        self,
        start_key: Optional[str] = None,
        end_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List documents with keys in an inclusive range, in key order.

        Args:
            start_key: Lowest key to include (optional)
            end_key: Highest key to include (optional)

        Returns:
            Documents with ``_id`` and ``_rev`` added
        """
        clauses = []
        params: List[str] = []
        if start_key is not None:
            clauses.append("key >= ?")
            params.append(start_key)
        if end_key is not None:
            clauses.append("key <= ?")
            params.append(end_key)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        try:
            with self.get_connection() as conn:
                rows = conn.execute(
                    f"SELECT key, rev, body FROM documents {where} ORDER BY key",
                    params,
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to scan documents: {exc}") from exc

        return [_decode(key, rev, body) for key, rev, body in rows]

    def prefix_scan(self, prefix: str) -> List[Dict[str, Any]]:
        """List every document whose key starts with ``prefix``."""
        return self.all_docs(start_key=prefix, end_key=prefix + KEY_RANGE_END)


def _decode(key: str, rev: int, body: str) -> Dict[str, Any]:
    doc = json.loads(body)
    doc["_id"] = key
    doc["_rev"] = rev
    return doc
