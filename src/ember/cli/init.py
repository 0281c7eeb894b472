"""ember init — set up a project directory.

Creates:
  .ember.db             — empty document library with schema
  ember.yaml            — project config (model + retrieval settings)
  ~/.ember/config.yaml  — global config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.markup import escape

from ember.cli.runtime import console
from ember.config import ensure_global_config
from ember.db.connection import Database
from ember.db.schema import initialize
from ember.prompt.formats import detect_prompt_format

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    model: Annotated[
        Path | None,
        typer.Option("--model", "-m", help="GGUF model to record in ember.yaml."),
    ] = None,
) -> None:
    """Initialize an Ember project: library, ember.yaml and global config."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / ".ember.db"
    with Database(db_path) as conn:
        initialize(conn)
    console.print(f"[green]✓[/] Library: {escape(str(db_path))}")

    project_cfg = project_dir / "ember.yaml"
    if project_cfg.exists():
        console.print(f"[yellow]⚠[/]  {escape(str(project_cfg))} already exists, left unchanged.")
    else:
        project_cfg.write_text(_project_yaml(model), encoding="utf-8")
        console.print(f"[green]✓[/] Config:  {escape(str(project_cfg))}")

    global_cfg = ensure_global_config()
    console.print(f"[green]✓[/] Global:  {escape(str(global_cfg))}")

    console.print("\nNext:  ember ingest --source <file>   then   ember chat")


def _project_yaml(model: Path | None) -> str:
    model_section: dict[str, str] = {}
    if model is not None:
        resolved = model.expanduser().resolve()
        model_section = {
            "path": str(resolved),
            "prompt_format": detect_prompt_format(resolved.name).value,
        }
    data = {
        "model": model_section or None,
        "retrieval": {"top_k": 3, "min_score": 0.1},
        "chunking": {"chunk_size": 500, "overlap": 50},
    }
    header = "# Ember project configuration. Overrides ~/.ember/config.yaml.\n"
    return header + yaml.safe_dump(data, sort_keys=False)
