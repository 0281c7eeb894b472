"""Offline lexical retriever: TF-IDF over document chunks.

No embedding model is involved; relevance is computed from term statistics
of the loaded chunks only.

  idf(t)   = ln((N + 1) / (df(t) + 1)) + 1
  tf(t, c) = count(t in c) / (len(c) / tf_scale)
  score(c) = Σ_{t ∈ Q ∩ T(c)} tf(t, c) · idf(t) / |Q| · (1 + |Q ∩ T(c)| / |Q|)

The IDF table is derived state: every mutation marks it stale and the next
search rebuilds it.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from ember.db.models import DocumentChunk
from ember.log import get_logger

logger = get_logger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_MIN_TERM_LENGTH = 3

STOP_WORDS: frozenset[str] = frozenset(
    """
    the a an and or but in on at to for of with by from as is was are were
    been be have has had do does did will would could should may might must
    shall can need this that these those it its they them their we our you
    your he she his her him what which who whom whose where when why how all
    each every both few more most other some such no nor not only own same so
    than too very just also now here there then once
    """.split()
)


@dataclass(frozen=True)
class RetrievalResult:
    """A retrieved chunk with its relevance score.

    Attributes:
        chunk: The matching DocumentChunk.
        score: TF-IDF relevance (always > the search's min_score).
        source: Citation label, the chunk's document name.
    """

    chunk: DocumentChunk
    score: float
    source: str


@dataclass(frozen=True)
class IndexStatus:
    chunks_loaded: int
    terms_indexed: int
    is_cached: bool


def tokenize(text: str) -> frozenset[str]:
    """Lowercase, strip punctuation and return the distinct content terms of *text*.

    Terms of two characters or fewer and stop words are dropped.
    """
    words = _PUNCTUATION.sub(" ", text.lower()).split()
    return frozenset(
        w for w in words if len(w) >= _MIN_TERM_LENGTH and w not in STOP_WORDS
    )


class RetrievalIndex:
    """In-memory TF-IDF index over a set of DocumentChunks.

    Not thread-safe; owned by a single DocumentLibrary.
    """

    def __init__(self, tf_scale: float = 100.0) -> None:
        if tf_scale <= 0:
            raise ValueError("tf_scale must be > 0")
        self.tf_scale = tf_scale
        self._chunks: list[DocumentChunk] = []
        self._chunk_terms: list[frozenset[str]] = []
        self._idf: dict[str, float] = {}
        self._stale = True

    def __len__(self) -> int:
        return len(self._chunks)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def load(self, chunks: Iterable[DocumentChunk]) -> None:
        """Add *chunks* to the index."""
        added = list(chunks)
        self._chunks.extend(added)
        self._chunk_terms.extend(tokenize(c.content) for c in added)
        self._stale = True

    def remove(self, document_id: int) -> int:
        """Drop every chunk belonging to *document_id*; return how many were removed."""
        keep = [i for i, c in enumerate(self._chunks) if c.document_id != document_id]
        removed = len(self._chunks) - len(keep)
        if removed:
            self._chunks = [self._chunks[i] for i in keep]
            self._chunk_terms = [self._chunk_terms[i] for i in keep]
            self._stale = True
        return removed

    def clear(self) -> None:
        self._chunks = []
        self._chunk_terms = []
        self._idf = {}
        self._stale = True

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        top_k: int = 3,
        min_score: float = 0.1,
    ) -> list[RetrievalResult]:
        """Return up to *top_k* chunks scoring above *min_score*, best-first.

        Ties keep load order. An empty index or a query with no content terms
        yields ``[]``.
        """
        if not self._chunks or top_k < 1:
            return []
        query_terms = tokenize(query)
        if not query_terms:
            return []

        self._ensure_idf()

        results: list[RetrievalResult] = []
        for chunk, terms in zip(self._chunks, self._chunk_terms):
            score = self._score(query_terms, chunk, terms)
            if score > min_score:
                results.append(
                    RetrievalResult(chunk=chunk, score=score, source=chunk.document_name)
                )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    def status(self) -> IndexStatus:
        return IndexStatus(
            chunks_loaded=len(self._chunks),
            terms_indexed=len(self._idf),
            is_cached=not self._stale,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_idf(self) -> None:
        if not self._stale:
            return
        n = len(self._chunks)
        df: Counter[str] = Counter()
        for terms in self._chunk_terms:
            df.update(terms)
        self._idf = {term: math.log((n + 1) / (count + 1)) + 1 for term, count in df.items()}
        self._stale = False
        logger.debug("Rebuilt IDF table: %d chunks, %d terms", n, len(self._idf))

    def _score(
        self,
        query_terms: frozenset[str],
        chunk: DocumentChunk,
        chunk_terms: frozenset[str],
    ) -> float:
        matching = query_terms & chunk_terms
        if not matching:
            return 0.0
        text = chunk.content.lower()
        length_norm = len(text) / self.tf_scale
        total = 0.0
        for term in matching:
            tf = text.count(term) / length_norm
            total += tf * self._idf.get(term, 0.0)
        coverage = len(matching) / len(query_terms)
        return total / len(query_terms) * (1 + coverage)
