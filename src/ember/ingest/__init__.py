"""Ember ingest pipeline — text loading and chunking."""

from ember.ingest.base import BaseChunker
from ember.ingest.loaders import SUPPORTED_EXTENSIONS, UnsupportedDocumentError, read_document
from ember.ingest.sentence import SentenceChunker

__all__ = [
    "BaseChunker",
    "SentenceChunker",
    "SUPPORTED_EXTENSIONS",
    "UnsupportedDocumentError",
    "read_document",
]
