"""Base chunker interface for document text."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ember.db.models import DocumentChunk


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Sizes are measured in characters. Subclasses implement ``split()`` and may
    use ``_split_fixed_window()`` for the fixed-window fallback path;
    ``chunk()`` turns the split text into ordered DocumentChunks.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 50, min_length: int = 20) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if min_length < 0:
            raise ValueError("min_length must be >= 0")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_length = min_length

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split *text* into ordered chunk strings. Empty input yields ``[]``."""

    def chunk(self, document_id: int, document_name: str, content: str) -> list[DocumentChunk]:
        """Split *content* into DocumentChunks for *document_id*.

        Args:
            document_id: Id of the parent Document row.
            document_name: Label carried on every chunk for citation.
            content: Full text of the document.

        Returns:
            Ordered list of DocumentChunks with sequential ``chunk_index``.
        """
        return self._make_chunks(document_id, document_name, self.split(content))

    def _split_fixed_window(self, text: str) -> list[str]:
        """Split *text* into fixed-window segments with overlap.

        Window size = ``self.chunk_size`` characters.
        Step        = ``self.chunk_size - self.overlap`` characters.
        Segments are stripped; empty segments are omitted.
        """
        if not text.strip():
            return []

        step = self.chunk_size - self.overlap

        segments: list[str] = []
        pos = 0
        length = len(text)

        while pos < length:
            end = min(pos + self.chunk_size, length)
            segment = text[pos:end].strip()
            if segment:
                segments.append(segment)
            if end >= length:
                break
            pos += step

        return segments

    @staticmethod
    def _make_chunks(document_id: int, document_name: str, texts: list[str]) -> list[DocumentChunk]:
        """Convert a list of text strings into sequentially indexed DocumentChunks."""
        return [
            DocumentChunk(
                document_id=document_id,
                document_name=document_name,
                chunk_index=i,
                content=t,
            )
            for i, t in enumerate(texts)
        ]
