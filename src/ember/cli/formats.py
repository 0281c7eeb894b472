"""ember formats — inspect the supported prompt formats."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from ember.cli.runtime import console
from ember.prompt.formats import PromptFormat, chat_template_name, detect_prompt_format

formats_app = typer.Typer(help="Inspect prompt formats and model-name detection.")


@formats_app.command("list")
def list_cmd() -> None:
    """List every prompt format and its llama.cpp template name."""
    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Format", style="bold")
    table.add_column("llama.cpp template", style="dim")
    for fmt in PromptFormat:
        table.add_row(fmt.value, chat_template_name(fmt) or "(manual)")
    console.print(table)


@formats_app.command("detect")
def detect_cmd(
    model: Annotated[str, typer.Argument(help="Model file name or path.")],
) -> None:
    """Show which prompt format would be used for MODEL."""
    fmt = detect_prompt_format(model)
    console.print(f"{escape(model)} → [bold]{fmt.value}[/]")
