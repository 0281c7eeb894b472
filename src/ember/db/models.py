"""Domain models for the document store."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Document:
    name: str
    file_type: str
    full_text: str
    content_hash: str = ""
    chunk_count: int = 0
    created_at: str | None = None
    id: int | None = None  # set after insert; None for unsaved documents


@dataclass(frozen=True)
class DocumentChunk:
    """One retrievable slice of a document's text.

    ``chunk_index`` is the chunk's ordinal within its document and is unique
    per document. ``document_name`` is denormalized so retrieval results can be
    labelled without a join.
    """

    document_id: int
    document_name: str
    chunk_index: int
    content: str
    id: int | None = None
