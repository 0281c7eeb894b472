"""Context assembly: turn retrieval results into prompt context and citations."""

from __future__ import annotations

from collections.abc import Sequence

from ember.rag.retriever import RetrievalResult

CONTEXT_HEADER = "Relevant context from uploaded documents:"


def build_context(results: Sequence[RetrievalResult]) -> str:
    """Render *results* as a labelled context block for the prompt.

    Each result appears as ``[<source>]:`` followed by its chunk text, with a
    blank line between results. Returns ``""`` when there are no results.
    """
    if not results:
        return ""

    lines = [CONTEXT_HEADER, ""]
    for i, result in enumerate(results):
        lines.append(f"[{result.source}]:")
        lines.append(result.chunk.content)
        if i < len(results) - 1:
            lines.append("")
    return "\n".join(lines) + "\n"


def source_references(results: Sequence[RetrievalResult]) -> list[str]:
    """Return the distinct source labels of *results* in first-seen order."""
    return list(dict.fromkeys(r.source for r in results))
