"""SQLite store for documents, term statistics and the inverted index."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Sequence

from termfinder.models import Document, IndexEntry, TermStatistic

LOGGER = logging.getLogger(__name__)


class TermFinderError(Exception):
    """Base class for TermFinder errors."""


class StoreUnavailableError(TermFinderError):
    """A store operation could not complete."""


# Stays below SQLITE_MAX_VARIABLE_NUMBER on every SQLite build.
_MAX_VARIABLES = 500


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def _batched(values: Iterable[str]) -> Iterator[List[str]]:
    """Split distinct values into chunks small enough for one IN list."""
    distinct = list(dict.fromkeys(values))
    for start in range(0, len(distinct), _MAX_VARIABLES):
        yield distinct[start : start + _MAX_VARIABLES]


class SQLiteIndexStore:
    """Persistence layer for documents and their TF-IDF index.

    Each thread gets its own connection. Writes are serialized through a
    re-entrant lock and run inside :meth:`transaction`, so a failing
    indexing call leaves no partial rows behind.
    """

    def __init__(self, db_path: Path, *, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._write_lock = threading.RLock()
        self._connections: list[tuple[threading.Thread, sqlite3.Connection]] = []
        self._connections_lock = threading.Lock()
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            try:
                conn = sqlite3.connect(
                    self.db_path, timeout=self.timeout, check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.Error as exc:
                raise StoreUnavailableError(
                    f"Unable to open database {self.db_path}: {exc}"
                ) from exc
            self._local.conn = conn
            self._local.depth = 0
            with self._connections_lock:
                self._prune_connections()
                self._connections.append((threading.current_thread(), conn))
        return conn

    def _prune_connections(self) -> None:
        # Connections of exited threads can no longer be reached through _local.
        alive = []
        for thread, conn in self._connections:
            if thread.is_alive():
                alive.append((thread, conn))
            else:
                conn.close()
        self._connections = alive

    def close(self) -> None:
        with self._connections_lock:
            for _, conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(str(exc)) from exc

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically.

        Nested calls on the same thread join the outermost transaction.
        """
        with self._write_lock:
            conn = self.connection
            if self._local.depth:
                self._local.depth += 1
                try:
                    yield conn
                finally:
                    self._local.depth -= 1
                return

            self._local.depth = 1
            try:
                if not conn.in_transaction:
                    self._execute("BEGIN IMMEDIATE")
                yield conn
                try:
                    conn.commit()
                except sqlite3.Error as exc:
                    raise StoreUnavailableError(str(exc)) from exc
            except Exception:
                conn.rollback()
                raise
            finally:
                self._local.depth = 0

    def _ensure_schema(self) -> None:
        with self.transaction():
            self._execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    content TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    sha256 TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            self._execute(
                """
                CREATE TABLE IF NOT EXISTS term_weights (
                    term TEXT PRIMARY KEY,
                    total_documents INTEGER NOT NULL,
                    idf REAL NOT NULL
                )
                """
            )
            self._execute(
                """
                CREATE TABLE IF NOT EXISTS inverted_index (
                    id INTEGER PRIMARY KEY,
                    term TEXT NOT NULL,
                    document_id TEXT NOT NULL,
                    tf REAL NOT NULL,
                    tf_idf REAL NOT NULL
                )
                """
            )
            self._execute(
                "CREATE INDEX IF NOT EXISTS idx_inverted_index_term ON inverted_index(term)"
            )
            self._execute(
                """CREATE INDEX IF NOT EXISTS idx_inverted_index_document_id
                    ON inverted_index(document_id)
                """
            )

    # Documents

    def upsert_document(self, document: Document, *, sha256: str | None = None) -> None:
        with self.transaction():
            self._execute(
                """
                INSERT INTO documents(id, title, content, tags, sha256)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    content = excluded.content,
                    tags = excluded.tags,
                    sha256 = excluded.sha256,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    document.id,
                    document.title,
                    document.content,
                    json.dumps(list(document.tags), ensure_ascii=True),
                    sha256,
                ),
            )

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        tags = json.loads(row["tags"]) if row["tags"] else []
        return Document(
            id=row["id"], title=row["title"], content=row["content"], tags=tuple(tags)
        )

    def get_document(self, document_id: str) -> Document | None:
        row = self._execute(
            "SELECT id, title, content, tags FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return self._row_to_document(row) if row else None

    def get_document_sha256(self, document_id: str) -> str | None:
        row = self._execute(
            "SELECT sha256 FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return row["sha256"] if row else None

    def iter_documents(self) -> Iterator[Document]:
        rows = self._execute(
            "SELECT id, title, content, tags FROM documents ORDER BY id"
        ).fetchall()
        for row in rows:
            yield self._row_to_document(row)

    def count_documents(self) -> int:
        return self._execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def delete_document(self, document_id: str) -> bool:
        with self.transaction():
            cursor = self._execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0

    def list_documents(self) -> List[dict]:
        rows = self._execute(
            """
            SELECT d.id AS id, d.title AS title, d.tags AS tags,
                   LENGTH(d.content) AS size,
                   (SELECT COUNT(*) FROM inverted_index i WHERE i.document_id = d.id)
                       AS term_count,
                   d.updated_at AS updated_at
            FROM documents d
            ORDER BY d.id
            """
        ).fetchall()
        return [
            {
                "id": row["id"],
                "title": row["title"],
                "tags": json.loads(row["tags"]) if row["tags"] else [],
                "size": row["size"],
                "term_count": row["term_count"],
                "updated_at": row["updated_at"],
            }
            for row in rows
        ]

    def get_stats(self) -> dict:
        row = self._execute(
            """
            SELECT
                (SELECT COUNT(*) FROM documents) AS document_count,
                (SELECT COUNT(*) FROM term_weights) AS term_count,
                (SELECT COUNT(*) FROM inverted_index) AS entry_count
            """
        ).fetchone()
        return {
            "document_count": row["document_count"],
            "term_count": row["term_count"],
            "entry_count": row["entry_count"],
        }

    # Term statistics

    def get_term_statistic(self, term: str) -> TermStatistic | None:
        row = self._execute(
            "SELECT term, total_documents, idf FROM term_weights WHERE term = ?", (term,)
        ).fetchone()
        if row is None:
            return None
        return TermStatistic(
            term=row["term"], total_documents=row["total_documents"], idf=row["idf"]
        )

    def get_idf(self, term: str) -> float | None:
        row = self._execute("SELECT idf FROM term_weights WHERE term = ?", (term,)).fetchone()
        return row["idf"] if row else None

    def iter_term_statistics(self) -> Iterator[TermStatistic]:
        rows = self._execute(
            "SELECT term, total_documents, idf FROM term_weights ORDER BY term"
        ).fetchall()
        for row in rows:
            yield TermStatistic(
                term=row["term"], total_documents=row["total_documents"], idf=row["idf"]
            )

    def insert_term_statistic(self, statistic: TermStatistic) -> None:
        with self.transaction():
            self._execute(
                "INSERT INTO term_weights(term, total_documents, idf) VALUES (?, ?, ?)",
                (statistic.term, statistic.total_documents, statistic.idf),
            )

    def update_term_statistic(self, statistic: TermStatistic) -> None:
        with self.transaction():
            self._execute(
                "UPDATE term_weights SET total_documents = ?, idf = ? WHERE term = ?",
                (statistic.total_documents, statistic.idf, statistic.term),
            )

    def delete_term_statistic(self, term: str) -> None:
        with self.transaction():
            self._execute("DELETE FROM term_weights WHERE term = ?", (term,))

    # Inverted index

    def insert_index_entry(self, entry: IndexEntry) -> None:
        with self.transaction():
            self._execute(
                """
                INSERT INTO inverted_index(term, document_id, tf, tf_idf)
                VALUES (?, ?, ?, ?)
                """,
                (entry.term, entry.document_id, entry.tf, entry.tf_idf),
            )

    def distinct_document_ids(self, terms: Sequence[str]) -> List[str]:
        """Ids of documents holding at least one of ``terms``."""
        document_ids: set[str] = set()
        for chunk in _batched(terms):
            rows = self._execute(
                f"""
                SELECT DISTINCT document_id FROM inverted_index
                WHERE term IN ({_placeholders(chunk)})
                """,
                tuple(chunk),
            ).fetchall()
            document_ids.update(row["document_id"] for row in rows)
        return sorted(document_ids)

    def entries_for_document(
        self, document_id: str, terms: Iterable[str] | None = None
    ) -> List[IndexEntry]:
        """Index entries of a document, optionally restricted to ``terms``."""
        sql = "SELECT id, term, document_id, tf, tf_idf FROM inverted_index WHERE document_id = ?"
        if terms is None:
            rows = self._execute(sql, (document_id,)).fetchall()
        else:
            rows = []
            for chunk in _batched(terms):
                rows.extend(
                    self._execute(
                        f"{sql} AND term IN ({_placeholders(chunk)})", (document_id, *chunk)
                    ).fetchall()
                )
        rows.sort(key=lambda row: row["id"])
        return [
            IndexEntry(
                term=row["term"],
                document_id=row["document_id"],
                tf=row["tf"],
                tf_idf=row["tf_idf"],
            )
            for row in rows
        ]

    def has_entries(self, document_id: str) -> bool:
        row = self._execute(
            "SELECT 1 FROM inverted_index WHERE document_id = ? LIMIT 1", (document_id,)
        ).fetchone()
        return row is not None

    def remove_entries(self, document_id: str) -> int:
        with self.transaction():
            cursor = self._execute(
                "DELETE FROM inverted_index WHERE document_id = ?", (document_id,)
            )
        return cursor.rowcount

    def clear_index(self) -> None:
        """Drop every term statistic and index entry, keeping documents."""
        with self.transaction():
            self._execute("DELETE FROM inverted_index")
            self._execute("DELETE FROM term_weights")

    def recompute_tf_idf(self) -> int:
        """Rewrite every entry's tf_idf from its tf and the term's current idf."""
        with self.transaction():
            cursor = self._execute(
                """
                UPDATE inverted_index
                SET tf_idf = tf * COALESCE(
                    (SELECT w.idf FROM term_weights w WHERE w.term = inverted_index.term),
                    0.0
                )
                """
            )
        return cursor.rowcount
