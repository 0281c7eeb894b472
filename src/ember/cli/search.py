"""ember search — query the document library without running a model.

Useful to check what context a question would pull in before asking it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from ember.cli.errors import err_no_db
from ember.cli.runtime import DEFAULT_DB, console, load_settings, open_library

_PREVIEW_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search text.")],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the document library."),
    ] = DEFAULT_DB,
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Maximum results (default: retrieval.top_k)."),
    ] = None,
    min_score: Annotated[
        float | None,
        typer.Option("--min-score", min=0.0, help="Score threshold (default: retrieval.min_score)."),
    ] = None,
) -> None:
    """Show the document chunks most relevant to QUERY."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_settings()
    with open_library(db, cfg) as library:
        results = library.retrieve(query, top_k=top_k, min_score=min_score)

    if not results:
        console.print("[yellow]No relevant chunks found.[/]")
        raise typer.Exit(0)

    table = Table(show_header=True, padding=(0, 1))
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Source", style="bold")
    table.add_column("Text")
    for rank, result in enumerate(results, start=1):
        preview = result.chunk.content
        if len(preview) > _PREVIEW_CHARS:
            preview = preview[:_PREVIEW_CHARS].rstrip() + "…"
        table.add_row(
            str(rank),
            f"{result.score:.2f}",
            f"{escape(result.source)} [dim]#{result.chunk.chunk_index}[/]",
            escape(preview),
        )
    console.print(table)
