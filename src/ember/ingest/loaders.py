"""Text extraction for documents added to the library.

Plain-text formats are read directly. Binary formats (PDF, Word) need an
external extractor and are rejected with UnsupportedDocumentError; their
extracted text can still be added through DocumentLibrary.add_text().
"""

from __future__ import annotations

import hashlib
from pathlib import Path

_MD_EXTS = {".md", ".markdown"}
_TEXT_EXTS = {".txt", ".text", ".rst", ".csv", ".log"}
_BINARY_EXTS = {".pdf", ".docx", ".doc"}

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(_MD_EXTS | _TEXT_EXTS)


class UnsupportedDocumentError(ValueError):
    """Raised when a file's format cannot be read as text."""


def file_type_for(path: Path | str) -> str:
    """Return the lowercase extension of *path* without the dot ("txt", "md", ...)."""
    return Path(path).suffix.lower().lstrip(".")


def read_document(path: Path | str) -> str:
    """Return the text content of the document at *path*.

    Raises:
        FileNotFoundError: If *path* does not exist.
        UnsupportedDocumentError: For binary or unknown formats.
    """
    p = Path(path)
    ext = p.suffix.lower()
    if ext in _BINARY_EXTS:
        raise UnsupportedDocumentError(
            f"{p.name}: {ext} files need text extraction first; "
            "convert to .txt or .md and add that instead"
        )
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedDocumentError(f"{p.name}: unsupported file type {ext or '(none)'!r}")
    if not p.is_file():
        raise FileNotFoundError(f"Document not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def compute_hash(text: str) -> str:
    """SHA-256 fingerprint of *text*, used to skip unchanged re-ingestion."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
