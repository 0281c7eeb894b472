"""ember status command.

Shows the setup overview: configured model and executable, and the
document library with its indexed documents.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ember.cli.runtime import DEFAULT_DB, console, load_settings, open_library
from ember.config import EmberConfig
from ember.db.models import Document
from ember.llm.errors import ExecutableNotFoundError
from ember.llm.invocation import locate_executable
from ember.prompt.formats import chat_template_name, detect_prompt_format, parse_prompt_format
from ember.rag.retriever import IndexStatus

_MIB = 1024 * 1024


def status_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the document library."),
    ] = DEFAULT_DB,
) -> None:
    """Show model configuration and document library status."""
    cfg = load_settings()

    # ---- Panel 1: Model ----
    _show_model_panel(cfg)

    # ---- Panel 2: Library ----
    if db.exists():
        with open_library(db, cfg) as library:
            _show_library_panel(db, library.documents(), library.status())
    else:
        console.print(
            Panel(
                "[yellow]No document library found.[/]\n"
                "  Run:  ember ingest --source <file>",
                title="[bold]Library[/]",
                expand=False,
            )
        )


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_model_panel(cfg: EmberConfig) -> None:
    lines: list[str] = []
    model = cfg.model.path
    if model:
        path = Path(model).expanduser()
        if path.is_file():
            size = path.stat().st_size / _MIB
            lines.append(f"Model:       [bold]{escape(path.name)}[/] ({size:.1f} MB)")
        else:
            lines.append(f"Model:       {escape(model)} [yellow]✗ missing[/]")
        try:
            fmt = (
                parse_prompt_format(cfg.model.prompt_format)
                if cfg.model.prompt_format
                else detect_prompt_format(model)
            )
            template = chat_template_name(fmt) or "(manual)"
            lines.append(f"Format:      {fmt.value}  [dim]template: {template}[/]")
        except ValueError:
            lines.append(f"Format:      [yellow]✗ unknown '{escape(cfg.model.prompt_format)}'[/]")
    else:
        lines.append("Model:       [dim](not configured)[/]")

    try:
        executable = locate_executable(cfg.model.executable)
        lines.append(f"llama-cli:   {escape(str(executable))} [green]✓[/]")
    except ExecutableNotFoundError:
        lines.append("llama-cli:   [yellow]✗ not found[/]")

    g = cfg.generation
    lines.append(
        f"Generation:  [dim]max_tokens={g.max_tokens} ctx={g.context_size} "
        f"temp={g.temperature} top_p={g.top_p} top_k={g.top_k}[/]"
    )
    console.print(Panel("\n".join(lines), title="[bold]Model[/]", expand=False))


def _show_library_panel(db: Path, documents: list[Document], index_status: IndexStatus) -> None:
    size_mb = db.stat().st_size / _MIB
    header = (
        f"Database: {escape(str(db))} ({size_mb:.1f} MB)\n"
        f"Documents: [bold]{len(documents)}[/]  |  "
        f"Chunks: [bold]{index_status.chunks_loaded:,}[/]"
    )
    if not documents:
        console.print(
            Panel(
                f"{header}\n[dim]No documents ingested yet.[/]",
                title="[bold]Library[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Name", style="bold")
    table.add_column("Type", style="dim")
    table.add_column("Chunks", justify="right")
    table.add_column("Added", style="dim")
    for doc in documents:
        table.add_row(escape(doc.name), doc.file_type, str(doc.chunk_count), (doc.created_at or "")[:16])

    console.print(Panel(header, title="[bold]Library[/]", expand=False))
    console.print(table)
