"""SQLite persistence for extracted documents."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from docquery.models import DocumentRecord, FileType


class SQLiteDocumentStore:
    """Durable copy of the corpus, refreshed by ingestion."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        """Open a separate connection that only sees committed rows."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    filename TEXT NOT NULL UNIQUE,
                    filetype TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_documents_filetype
                    ON documents(filetype)
                """
            )

    def insert_document(self, filename: str, filetype: FileType, content: str) -> int:
        """Insert or replace a document by filename and return its id."""
        # Note: callers group inserts inside ``transaction()``
        conn = self._conn
        conn.execute("DELETE FROM documents WHERE filename = ?", (filename,))
        cursor = conn.execute(
            "INSERT INTO documents(filename, filetype, content) VALUES (?, ?, ?)",
            (filename, FileType(filetype).value, content),
        )
        return int(cursor.lastrowid)

    def get_all_documents(self) -> List[DocumentRecord]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT id, filename, filetype, content FROM documents ORDER BY filename"
            ).fetchall()
        return [
            DocumentRecord(
                id=row["id"],
                filename=row["filename"],
                filetype=FileType(row["filetype"]),
                content=row["content"],
            )
            for row in rows
        ]

    def count(self) -> int:
        with self._reader() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0])

    def stats(self) -> Dict[str, Any]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT filetype, COUNT(*) AS count FROM documents GROUP BY filetype"
            ).fetchall()
        by_type = {row["filetype"]: row["count"] for row in rows}
        return {"total": sum(by_type.values()), "by_type": by_type}
