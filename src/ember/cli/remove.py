"""ember remove — document lifecycle management.

Removes a document and its chunks from the library. Chunks are deleted by
cascade; the retrieval index is rebuilt on next open.

Usage:
  ember remove --document handbook.md
  ember remove --document handbook.md --yes
  ember remove --all --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ember.cli.errors import err_document_not_found, err_no_db
from ember.cli.runtime import DEFAULT_DB, console, load_settings, open_library


def remove_cmd(
    document: Annotated[
        str | None,
        typer.Option("--document", "-d", help="Name of the document to remove."),
    ] = None,
    all_documents: Annotated[
        bool,
        typer.Option("--all", help="Remove every document."),
    ] = False,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the document library."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a document (or all documents) from the library."""
    if not document and not all_documents:
        console.print("[red]Error:[/] Specify --document NAME or --all.")
        raise typer.Exit(1)

    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_settings()
    with open_library(db, cfg) as library:
        if all_documents:
            count = len(library.documents())
            console.print(f"\nRemove [bold]all {count}[/] documents from {db}")
            if not yes and not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
            removed = library.delete_all()
            console.print(f"\n[green]✓[/] Removed {removed} documents")
            return

        existing = library.find(document)
        if existing is None or existing.id is None:
            console.print(err_document_not_found(document))
            raise typer.Exit(0)

        console.print(f"\nRemove document: [bold]{document}[/]")
        console.print(f"  Chunks: {existing.chunk_count}  |  Added: {existing.created_at or '?'}")

        if not yes and not typer.confirm("Confirm removal?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        library.delete(existing.id)
        console.print(f"\n[green]✓[/] Removed: {document}")
        console.print(f"  {existing.chunk_count} chunks deleted")
