"""Sentence-aware chunker with character overlap."""

from __future__ import annotations

import re

from ember.ingest.base import BaseChunker

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class SentenceChunker(BaseChunker):
    """Pack whole sentences into chunks of at most ``chunk_size`` characters.

    Consecutive chunks share up to ``overlap`` trailing characters of the
    previous chunk, trimmed forward to a word boundary. Sentences too long to
    fit next to an overlap seed are broken at word boundaries first, so no
    chunk ever exceeds ``chunk_size``. Text without any sentence
    boundary falls back to fixed-width windows.

    Default: 500 characters / 50 overlap / 20 minimum.
    """

    def split(self, text: str) -> list[str]:
        normalized = _WHITESPACE.sub(" ", text).strip()
        if not normalized:
            return []
        if len(normalized) < self.min_length:
            return [normalized]

        sentences = _SENTENCE_END.split(normalized)
        if len(sentences) == 1 and len(normalized) > self.chunk_size:
            return self._keep(self._split_fixed_window(normalized))

        # Leave room for the seed and its joining space.
        max_piece = max(1, self.chunk_size - self.overlap - 1)
        pieces: list[str] = []
        for sentence in sentences:
            if len(sentence) > max_piece:
                pieces.extend(_split_words(sentence, max_piece))
            else:
                pieces.append(sentence)

        chunks: list[str] = []
        buffer = ""
        fresh = 0  # characters in buffer that did not come from an overlap seed

        for piece in pieces:
            candidate = f"{buffer} {piece}" if buffer else piece
            if len(candidate) > self.chunk_size and fresh > 0:
                chunks.append(buffer)
                seed = self._overlap_seed(buffer)
                buffer = f"{seed} {piece}" if seed else piece
                fresh = len(piece)
            else:
                buffer = candidate
                fresh += len(piece)

        if fresh > 0:
            chunks.append(buffer)

        return self._keep(chunks)

    def _overlap_seed(self, chunk: str) -> str:
        """Return the trailing ``overlap`` characters of *chunk*, starting on a word."""
        if self.overlap == 0:
            return ""
        tail = chunk[-self.overlap:]
        if len(chunk) > self.overlap and chunk[-self.overlap - 1] != " ":
            space = tail.find(" ")
            tail = tail[space + 1:] if space >= 0 else ""
        return tail.strip()

    def _keep(self, chunks: list[str]) -> list[str]:
        return [c for c in chunks if len(c) >= self.min_length]


def _split_words(sentence: str, limit: int) -> list[str]:
    """Greedily pack the words of *sentence* into pieces of at most *limit* chars.

    Words longer than *limit* are sliced.
    """
    pieces: list[str] = []
    current = ""
    for word in sentence.split(" "):
        while len(word) > limit:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:limit])
            word = word[limit:]
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) > limit:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces
