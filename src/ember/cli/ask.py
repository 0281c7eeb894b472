"""ember ask — one-shot question to the local model."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from ember.chat.session import ChatSession
from ember.cli.chat import stream_reply
from ember.cli.errors import err_config
from ember.cli.runtime import (
    DEFAULT_DB,
    console,
    load_settings,
    open_library,
    resolve_format,
    start_engine,
)
from ember.config import ConfigError


def ask_cmd(
    prompt: Annotated[str, typer.Argument(help="Question or instruction for the model.")],
    model: Annotated[
        Path | None,
        typer.Option("--model", "-m", help="GGUF model file (default: model.path from config)."),
    ] = None,
    prompt_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Prompt format (default: detected from model name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the document library."),
    ] = DEFAULT_DB,
    no_docs: Annotated[
        bool,
        typer.Option("--no-docs", help="Do not ground the answer in the document library."),
    ] = False,
    max_tokens: Annotated[
        int | None,
        typer.Option("--max-tokens", "-n", help="Maximum tokens to generate."),
    ] = None,
    temperature: Annotated[
        float | None,
        typer.Option("--temperature", "-t", help="Sampling temperature."),
    ] = None,
    hide_reasoning: Annotated[
        bool,
        typer.Option("--hide-reasoning", help="Do not print <think> reasoning blocks."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Ask the local model a single question."""
    cfg = load_settings(verbose)
    try:
        generation = cfg.generation.with_overrides(max_tokens=max_tokens, temperature=temperature)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    engine = start_engine(cfg, model)
    fmt = resolve_format(prompt_format or cfg.model.prompt_format, engine.model_path)
    library = None if no_docs or not db.exists() else open_library(db, cfg)

    session = ChatSession(
        engine,
        fmt,
        library,
        cfg.retrieval,
        config=generation,
        chat_template=cfg.model.chat_template,
    )
    try:
        asyncio.run(stream_reply(session, prompt, show_reasoning=not hide_reasoning))
    finally:
        if library is not None:
            library.close()

    if session.last_exception is not None:
        raise typer.Exit(1)
