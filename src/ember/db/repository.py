"""Repository pattern for all document store operations.

Single interface for documents and their chunks. Chunk rows cascade with
their parent document (foreign keys are enabled by Database.connect()).
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from ember.db.models import Document, DocumentChunk

_DOCUMENT_COLUMNS = "id, name, file_type, full_text, content_hash, created_at, chunk_count"
_CHUNK_COLUMNS = "id, document_id, document_name, chunk_index, content"


class Repository:
    """Data access layer for documents and chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see ember.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, document: Document) -> int:
        """Insert a document record and return its new id."""
        cur = self._conn.execute(
            """
            INSERT INTO documents (name, file_type, full_text, content_hash, chunk_count)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                document.name,
                document.file_type,
                document.full_text,
                document.content_hash,
                document.chunk_count,
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def get_document(self, document_id: int) -> Document | None:
        """Return a document by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
            (document_id,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_name(self, name: str) -> Document | None:
        """Return the most recent document called *name*, or None if not found.

        Args:
            name: Display name (normally the file name) of the document.
        """
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE name = ? ORDER BY id DESC",
            (name,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents, newest first."""
        rows = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC, id DESC"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def set_chunk_count(self, document_id: int, chunk_count: int) -> None:
        """Record how many chunks were stored for *document_id*."""
        self._conn.execute(
            "UPDATE documents SET chunk_count = ? WHERE id = ?",
            (chunk_count, document_id),
        )
        self._conn.commit()

    def delete_document(self, document_id: int) -> None:
        """Delete a document. Its chunks are removed by ON DELETE CASCADE."""
        self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        self._conn.commit()

    def delete_all_documents(self) -> int:
        """Delete every document (and, by cascade, every chunk).

        Returns:
            Number of documents deleted.
        """
        cur = self._conn.execute("DELETE FROM documents")
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: Iterable[DocumentChunk]) -> list[DocumentChunk]:
        """Insert chunks in a single transaction.

        Returns:
            The stored chunks with their ``id`` populated, in insertion order.
        """
        stored: list[DocumentChunk] = []
        with self._conn:
            for chunk in chunks:
                cur = self._conn.execute(
                    """
                    INSERT INTO chunks (document_id, document_name, chunk_index, content)
                    VALUES (?, ?, ?, ?)
                    """,
                    (chunk.document_id, chunk.document_name, chunk.chunk_index, chunk.content),
                )
                stored.append(
                    DocumentChunk(
                        id=cur.lastrowid,
                        document_id=chunk.document_id,
                        document_name=chunk.document_name,
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                    )
                )
        return stored

    def list_chunks(self, document_id: int | None = None) -> list[DocumentChunk]:
        """Return chunks ordered by document then ordinal.

        Args:
            document_id: Restrict to one document; None returns every chunk.
        """
        if document_id is None:
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks ORDER BY document_id, chunk_index"
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, document_id: int | None = None) -> int:
        """Return the number of chunks, optionally for a single document."""
        if document_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        name=row["name"],
        file_type=row["file_type"],
        full_text=row["full_text"],
        content_hash=row["content_hash"],
        created_at=row["created_at"],
        chunk_count=row["chunk_count"],
    )


def _row_to_chunk(row: sqlite3.Row) -> DocumentChunk:
    return DocumentChunk(
        id=row["id"],
        document_id=row["document_id"],
        document_name=row["document_name"],
        chunk_index=row["chunk_index"],
        content=row["content"],
    )
