"""Shared CLI plumbing: config loading, engine start-up, library access."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from ember.cli.errors import (
    err_config,
    err_executable_not_found,
    err_model_load,
    err_no_model,
    err_unknown_format,
)
from ember.config import ConfigError, EmberConfig, load_config
from ember.llm.engine import GenerationEngine
from ember.llm.errors import ExecutableNotFoundError, ModelLoadError
from ember.log import configure_logging
from ember.prompt.formats import PromptFormat, detect_prompt_format, parse_prompt_format
from ember.rag.library import DocumentLibrary

console = Console()

DEFAULT_DB = Path(".ember.db")


def load_settings(verbose: bool = False, project_dir: Path | None = None) -> EmberConfig:
    """Load layered config and configure logging; exit 1 on invalid config."""
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    configure_logging("DEBUG" if verbose else cfg.logging.level)
    return cfg


def resolve_format(name: str | None, model_path: Path | str) -> PromptFormat:
    """Explicit *name* wins; otherwise detect from the model path."""
    if name:
        try:
            return parse_prompt_format(name)
        except ValueError as exc:
            console.print(err_unknown_format(name, [f.value for f in PromptFormat]))
            raise typer.Exit(1) from exc
    return detect_prompt_format(str(model_path))


def start_engine(cfg: EmberConfig, model: Path | None = None) -> GenerationEngine:
    """Build an engine from *cfg* and load *model* (or the configured one)."""
    path = model or cfg.model.path
    if not path:
        console.print(err_no_model())
        raise typer.Exit(1)

    engine = GenerationEngine(
        cfg.model.executable,
        config=cfg.generation,
        min_model_bytes=cfg.model.min_bytes,
        max_model_bytes=cfg.model.max_bytes,
    )
    try:
        engine.load_model(path)
    except ExecutableNotFoundError as exc:
        console.print(err_executable_not_found(str(exc)))
        raise typer.Exit(1) from exc
    except ModelLoadError as exc:
        console.print(err_model_load(str(exc), str(path)))
        raise typer.Exit(1) from exc
    return engine


def open_library(db: Path, cfg: EmberConfig) -> DocumentLibrary:
    """Open (or create) the document library at *db*."""
    return DocumentLibrary.open(db, chunking=cfg.chunking, retrieval=cfg.retrieval)
