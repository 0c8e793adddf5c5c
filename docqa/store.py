"""
Document Store Module

SQLite persistence for uploaded documents and their embedded chunks.

SCHEMA:
- documents(id, name, content, uploaded_at)
- chunks(id, document_id, content, chunk_index, embedding)
  embedding is the vector serialized as a JSON array; chunks are removed
  with their document (ON DELETE CASCADE).

A document and all of its chunks are written in a single transaction:
either the whole document is searchable or none of it is. The store keeps
no vector index; load_chunks_with_embeddings() returns every vector and
ranking happens in memory (docqa.similarity).
"""

import json
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import structlog

from config.settings import get_settings
from docqa.health import HealthCheck, run_check
from docqa.similarity import ChunkWithEmbedding

logger = structlog.get_logger()

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        content TEXT NOT NULL,
        uploaded_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS chunks (
        id TEXT PRIMARY KEY,
        document_id TEXT NOT NULL,
        content TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        embedding TEXT,
        FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_chunks_document_id ON chunks(document_id);
"""


@dataclass
class DocumentRecord:
    """A stored document as listed in the UI."""
    id: str
    name: str
    uploaded_at: str
    chunk_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "uploaded_at": self.uploaded_at,
            "chunk_count": self.chunk_count,
        }


class DocumentStore:
    """
    SQLite-backed store for documents and chunk embeddings.

    One connection is shared by all callers and guarded by a lock, so the
    same store can be used from Streamlit's script threads. Pass ":memory:"
    for a throwaway database.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Open (and if needed create) the database.

        Args:
            db_path: SQLite file path (defaults to settings.database.path)
        """
        self.db_path = db_path or get_settings().database.path

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        with self._lock:
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

        logger.info("database_initialized", db_path=self.db_path)

    def close(self):
        with self._lock:
            self._conn.close()

    # Writes

    def add_document(
        self,
        name: str,
        content: str,
        chunks: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> DocumentRecord:
        """
        Insert a document with its chunks and embeddings atomically.

        Args:
            name: Display name (sanitized file name)
            content: Full extracted text
            chunks: Chunk texts in chunk_index order
            embeddings: One vector per chunk

        Returns:
            The stored DocumentRecord

        Raises:
            ValueError: if chunks and embeddings differ in count
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Chunks and embeddings must have same length. "
                f"Got {len(chunks)} chunks and {len(embeddings)} embeddings."
            )

        document_id = str(uuid.uuid4())
        uploaded_at = datetime.now(timezone.utc).isoformat()

        rows = [
            (str(uuid.uuid4()), document_id, chunk, i, json.dumps(list(embedding)))
            for i, (chunk, embedding) in enumerate(zip(chunks, embeddings))
        ]

        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        "INSERT INTO documents (id, name, content, uploaded_at) "
                        "VALUES (?, ?, ?, ?)",
                        (document_id, name, content, uploaded_at),
                    )
                    self._conn.executemany(
                        "INSERT INTO chunks (id, document_id, content, chunk_index, embedding) "
                        "VALUES (?, ?, ?, ?, ?)",
                        rows,
                    )
            except sqlite3.Error as e:
                logger.error("document_insert_failed", name=name, error=str(e))
                raise

        logger.info(
            "document_stored",
            document_id=document_id,
            name=name,
            chunk_count=len(rows),
        )
        return DocumentRecord(
            id=document_id,
            name=name,
            uploaded_at=uploaded_at,
            chunk_count=len(rows),
        )

    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and its chunks.

        Returns:
            True if a document was deleted, False if it did not exist
        """
        with self._lock:
            with self._conn:
                # Explicit delete as well, in case foreign keys are disabled
                self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
                cursor = self._conn.execute(
                    "DELETE FROM documents WHERE id = ?", (document_id,)
                )
                deleted = cursor.rowcount > 0

        logger.info("document_deleted", document_id=document_id, deleted=deleted)
        return deleted

    # Reads

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT d.id, d.name, d.uploaded_at, COUNT(c.id) AS chunk_count
                FROM documents d
                LEFT JOIN chunks c ON c.document_id = d.id
                WHERE d.id = ?
                GROUP BY d.id
                """,
                (document_id,),
            ).fetchone()
        return self._to_record(row) if row else None

    def list_documents(self) -> List[DocumentRecord]:
        """All documents with their chunk counts, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT d.id, d.name, d.uploaded_at, COUNT(c.id) AS chunk_count
                FROM documents d
                LEFT JOIN chunks c ON c.document_id = d.id
                GROUP BY d.id
                ORDER BY d.uploaded_at DESC
                """
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def count_documents(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def count_embedded_chunks(self) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE embedding IS NOT NULL"
            ).fetchone()[0]

    def load_chunks_with_embeddings(self) -> List[ChunkWithEmbedding]:
        """
        Every chunk that has an embedding, joined to its document's name.

        Rows come back in (upload time, chunk_index) order so rankings of
        equal scores are reproducible.
        """
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT c.id, c.document_id, c.content, c.chunk_index, c.embedding,
                       d.name AS document_name
                FROM chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE c.embedding IS NOT NULL
                ORDER BY d.uploaded_at, d.id, c.chunk_index
                """
            ).fetchall()

        return [
            ChunkWithEmbedding(
                id=row["id"],
                document_id=row["document_id"],
                document_name=row["document_name"],
                content=row["content"],
                chunk_index=row["chunk_index"],
                embedding=json.loads(row["embedding"]),
            )
            for row in rows
        ]

    def check_health(self) -> HealthCheck:
        """Run a trivial query against the database."""
        def _probe() -> bool:
            with self._lock:
                return self._conn.execute("SELECT 1 AS health").fetchone()["health"] == 1

        return run_check(_probe)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> DocumentRecord:
        return DocumentRecord(
            id=row["id"],
            name=row["name"],
            uploaded_at=row["uploaded_at"],
            chunk_count=row["chunk_count"],
        )
