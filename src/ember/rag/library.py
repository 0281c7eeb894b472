"""Document library: keeps the document store and the retrieval index in step.

Every document added is chunked, persisted and indexed; every removal deletes
the store rows (chunks cascade) and evicts the chunks from the index. On open,
the index is rebuilt from all stored chunks.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from ember.config import ChunkingCfg, RetrievalCfg
from ember.db.connection import Database
from ember.db.models import Document
from ember.db.repository import Repository
from ember.db.schema import initialize
from ember.ingest.base import BaseChunker
from ember.ingest.loaders import compute_hash, file_type_for, read_document
from ember.ingest.sentence import SentenceChunker
from ember.log import get_logger
from ember.rag.retriever import IndexStatus, RetrievalIndex, RetrievalResult

logger = get_logger(__name__)

AddStatus = Literal["added", "replaced", "unchanged"]


@dataclass(frozen=True)
class AddedDocument:
    document: Document
    status: AddStatus


class DocumentLibrary:
    """Coordinates the Repository, a chunker and a RetrievalIndex.

    The connection is owned by the library when created through ``open()``
    and closed by ``close()`` (or on leaving the ``with`` block).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        chunker: BaseChunker | None = None,
        index: RetrievalIndex | None = None,
        retrieval: RetrievalCfg | None = None,
    ) -> None:
        self._conn = conn
        self._repo = Repository(conn)
        self._chunker = chunker or SentenceChunker()
        self._retrieval = retrieval or RetrievalCfg()
        self._index = index or RetrievalIndex(tf_scale=self._retrieval.tf_scale)
        self._index.load(self._repo.list_chunks())
        logger.debug("Library opened with %d chunks", len(self._index))

    @classmethod
    def open(
        cls,
        db_path: Path | str,
        *,
        chunking: ChunkingCfg | None = None,
        retrieval: RetrievalCfg | None = None,
    ) -> DocumentLibrary:
        """Open (or create) the library at *db_path* and load its index."""
        chunking = chunking or ChunkingCfg()
        conn = Database(db_path).connect()
        initialize(conn)
        return cls(
            conn,
            chunker=SentenceChunker(
                chunk_size=chunking.chunk_size,
                overlap=chunking.overlap,
                min_length=chunking.min_length,
            ),
            retrieval=retrieval,
        )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> DocumentLibrary:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def has_documents(self) -> bool:
        return len(self._index) > 0

    def documents(self) -> list[Document]:
        """Return every stored document, newest first."""
        return self._repo.list_documents()

    def find(self, name: str) -> Document | None:
        return self._repo.get_document_by_name(name)

    def status(self) -> IndexStatus:
        return self._index.status()

    def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> list[RetrievalResult]:
        """Search the index; unset arguments fall back to the retrieval config."""
        return self._index.search(
            query,
            top_k=top_k if top_k is not None else self._retrieval.top_k,
            min_score=min_score if min_score is not None else self._retrieval.min_score,
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_text(self, name: str, text: str, file_type: str = "txt") -> AddedDocument:
        """Chunk, store and index *text* under *name*.

        A stored document with the same name is replaced, unless its content
        is identical and fully chunked, in which case nothing changes.

        Raises:
            ValueError: If *text* contains no usable content.
        """
        if not text.strip():
            raise ValueError(f"{name}: no text could be extracted")

        content_hash = compute_hash(text)
        status: AddStatus = "added"
        existing = self._repo.get_document_by_name(name)
        if existing is not None and existing.id is not None:
            if existing.content_hash == content_hash and existing.chunk_count > 0:
                logger.info("Unchanged: %s (%d chunks)", name, existing.chunk_count)
                return AddedDocument(existing, "unchanged")
            self.delete(existing.id)
            status = "replaced"

        document = Document(
            name=name,
            file_type=file_type,
            full_text=text,
            content_hash=content_hash,
        )
        document.id = self._repo.add_document(document)

        chunks = self._chunker.chunk(document.id, name, text)
        stored = self._repo.add_chunks(chunks)
        self._repo.set_chunk_count(document.id, len(stored))
        document.chunk_count = len(stored)
        self._index.load(stored)

        logger.info("Indexed %s: %d chunks (%s)", name, len(stored), status)
        return AddedDocument(document, status)

    def add_file(self, path: Path | str) -> AddedDocument:
        """Read a text document from *path* and add it under its file name.

        Raises:
            FileNotFoundError: If *path* does not exist.
            UnsupportedDocumentError: If the format cannot be read as text.
            ValueError: If the file contains no text.
        """
        p = Path(path)
        text = read_document(p)
        return self.add_text(p.name, text, file_type=file_type_for(p))

    def delete(self, document_id: int) -> None:
        """Remove a document from the store and the index."""
        self._repo.delete_document(document_id)
        removed = self._index.remove(document_id)
        logger.info("Removed document %d (%d chunks)", document_id, removed)

    def delete_all(self) -> int:
        """Remove every document; return how many were deleted."""
        count = self._repo.delete_all_documents()
        self._index.clear()
        logger.info("Removed all %d documents", count)
        return count
