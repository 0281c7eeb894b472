"""ember ingest — add text documents to the local library.

Source dispatch by extension:
  .md .markdown .txt .text .rst .csv .log  → read as text, sentence-chunked
  .pdf .docx .doc                         → rejected (extract text first)
  directory                               → expanded to supported files (--recursive for subdirs)

Re-ingesting a file with the same name replaces the stored copy; unchanged
files are skipped.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from ember.cli.errors import err_unsupported_document
from ember.cli.runtime import DEFAULT_DB, console, load_settings, open_library
from ember.ingest.loaders import SUPPORTED_EXTENSIONS, UnsupportedDocumentError
from ember.rag.library import DocumentLibrary


def ingest_cmd(
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="File or directory to add (repeatable)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the document library (created if missing)."),
    ] = DEFAULT_DB,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", help="Recurse into subdirectories (max 10 levels)."),
    ] = False,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob pattern to exclude (repeatable)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Add documents to the library used to ground answers."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH.")
        raise typer.Exit(1)

    cfg = load_settings(verbose)
    files = _expand_sources(sources, recursive=recursive, exclude=exclude or [])
    if not files:
        console.print("[yellow]No documents found to ingest.[/]")
        raise typer.Exit(0)

    failures = 0
    with open_library(db, cfg) as library:
        for path in files:
            if not _process_file(path, library):
                failures += 1

    if failures:
        console.print(f"\n[yellow]{failures} of {len(files)} documents were not added.[/]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Per-file pipeline
# ------------------------------------------------------------------


def _process_file(path: Path, library: DocumentLibrary) -> bool:
    """Add one file; return False when it could not be added."""
    console.print(f"\n[bold]→ {path}[/]")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task("Chunking…", total=None)
        try:
            added = library.add_file(path)
        except UnsupportedDocumentError as exc:
            console.print(err_unsupported_document(str(exc)))
            return False
        except (OSError, ValueError) as exc:
            console.print(f"  [red]✗ Error:[/] {exc}")
            return False

    count = added.document.chunk_count
    if added.status == "unchanged":
        console.print(f"  [dim]↷ Unchanged — {count} chunks already stored[/]")
    elif added.status == "replaced":
        console.print(f"  [yellow]↻[/] Re-ingested (content changed) — {count} chunks")
    else:
        console.print(f"  [green]✓[/] {count} chunks")
    return True


# ------------------------------------------------------------------
# Directory expansion
# ------------------------------------------------------------------


def _expand_sources(sources: list[Path], recursive: bool, exclude: list[str]) -> list[Path]:
    """Expand directories to individual files; leave files as-is."""
    result: list[Path] = []
    for src in sources:
        if src.is_dir():
            files = _scan_dir(src, recursive=recursive, exclude=exclude, depth=0)
            if not files:
                console.print(f"[yellow]No supported files found in directory:[/] {src}")
            result.extend(files)
        else:
            result.append(src)
    return result


def _scan_dir(
    directory: Path,
    recursive: bool,
    exclude: list[str],
    depth: int,
    max_depth: int = 10,
) -> list[Path]:
    """Return supported files in *directory* (optionally recursive)."""
    if depth > max_depth:
        return []
    files: list[Path] = []
    try:
        entries = sorted(directory.iterdir())
    except PermissionError:
        console.print(f"[yellow]Permission denied:[/] {directory}")
        return []
    for entry in entries:
        if any(fnmatch.fnmatch(entry.name, pat) for pat in exclude):
            continue
        if entry.is_file() and entry.suffix.lower() in SUPPORTED_EXTENSIONS:
            files.append(entry)
        elif entry.is_dir() and recursive and depth < max_depth:
            files.extend(
                _scan_dir(entry, recursive=recursive, exclude=exclude, depth=depth + 1)
            )
    return files
