"""Ember rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from ember.cli.errors import err_no_model
    console.print(err_no_model())
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_db(db_path: str = ".ember.db") -> str:
    """No document database at *db_path*."""
    return (
        f"[red]Error:[/] No document library found at '{escape(db_path)}'.\n"
        "  Run:  ember ingest --source <file>"
    )


def err_no_model() -> str:
    """No model configured or given on the command line."""
    return (
        "[red]Error:[/] No model configured.\n"
        "  Pass:  --model path/to/model.gguf\n"
        "  or set model.path in ember.yaml / ~/.ember/config.yaml, or export EMBER_MODEL=..."
    )


def err_model_load(reason: str, path: str) -> str:
    """The model file failed validation."""
    return (
        f"[red]Error:[/] Cannot load model '{escape(path)}': {escape(reason)}\n"
        "  Check the path and that the download finished (GGUF files are usually > 100 MB)."
    )


def err_executable_not_found(reason: str) -> str:
    """llama-cli could not be located."""
    return (
        f"[red]Error:[/] {escape(reason)}\n"
        "  Install llama.cpp (https://github.com/ggml-org/llama.cpp) or point Ember at it:\n"
        "    export EMBER_LLAMA_CLI=/path/to/llama-cli   (or model.executable in ember.yaml)"
    )


def err_generation_failed(reason: str) -> str:
    """The inference process failed."""
    return (
        f"[red]Error:[/] Generation failed: {escape(reason)}\n"
        "  Re-run with --verbose to see llama-cli's diagnostics."
    )


def err_context_overflow(context_size: int) -> str:
    """The prompt did not fit in the context window."""
    return (
        "[red]Error:[/] Input too long for model context. Try a shorter message.\n"
        f"  Current context size: {context_size} tokens. "
        "Raise generation.context_size in ember.yaml, use --no-docs, or /clear the chat."
    )


def err_config(reason: str) -> str:
    """A config file holds an invalid value."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(reason)}\n"
        "  Fix the value in ember.yaml or ~/.ember/config.yaml."
    )


def err_unknown_format(name: str, known: list[str]) -> str:
    """Unrecognised --format value."""
    return (
        f"[red]Error:[/] Unknown prompt format '{escape(name)}'.\n"
        f"  Known formats: {', '.join(known)}\n"
        "  Run:  ember formats list"
    )


def err_unsupported_document(reason: str) -> str:
    """Document type cannot be read as text."""
    return f"  [red]✗ Unsupported:[/] {escape(reason)}"


def err_document_not_found(name: str) -> str:
    """Document not found in the library."""
    return (
        f"[yellow]Document not found:[/] '{escape(name)}' is not in the library.\n"
        "  Run:  ember status  to see all documents."
    )


def err_transcript(reason: str, path: str) -> str:
    """A transcript file could not be read."""
    return (
        f"[red]Error:[/] Cannot load transcript '{escape(path)}': {escape(reason)}\n"
        "  Only files written by  /save  (chat export JSON) can be loaded."
    )


def err_transcript_save(reason: str, path: str) -> str:
    """A transcript file could not be written."""
    return (
        f"[red]Error:[/] Cannot save transcript '{escape(path)}': {escape(reason)}\n"
        "  Check the folder exists and is writable, then retry  /save PATH"
    )
