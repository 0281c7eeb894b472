"""ember chat — interactive conversation with the local model.

REPL commands:
  /quit, /exit       leave
  /clear             forget the conversation so far
  /save PATH         export the transcript as JSON
  /load PATH         append an exported transcript
  /format [NAME]     show or switch the prompt format
  /help              list commands

Ctrl-C while the model is answering stops the generation and keeps the
partial answer; Ctrl-C at the prompt leaves.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import Iterator
from pathlib import Path
from typing import Annotated

import typer
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from ember.chat.models import Message
from ember.chat.session import ChatSession
from ember.chat.transcript import TranscriptError, load_transcript, save_transcript
from ember.cli.errors import (
    err_context_overflow,
    err_generation_failed,
    err_transcript,
    err_transcript_save,
)
from ember.cli.runtime import (
    DEFAULT_DB,
    console,
    load_settings,
    open_library,
    resolve_format,
    start_engine,
)
from ember.llm.errors import ContextOverflowError
from ember.prompt.formats import PromptFormat, parse_prompt_format
from ember.prompt.postprocess import clean_response

_HELP = (
    "[dim]/quit  /clear  /save PATH  /load PATH  /format [NAME]  /help  "
    "— Ctrl-C stops a running answer[/]"
)


# ---------------------------------------------------------------------------
# Streaming display (shared with `ember ask`)
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _ctrl_c_stops(session: ChatSession) -> Iterator[None]:
    """Route SIGINT to session.stop() while a reply streams (Unix only)."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.stop)
    except (NotImplementedError, RuntimeError):
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def stream_reply(session: ChatSession, text: str, show_reasoning: bool = True) -> None:
    """Send *text*, render the answer live, then print the finalized message."""
    before = len(session.messages)
    buffer: list[str] = []
    with _ctrl_c_stops(session):
        with Live(Text(""), console=console, refresh_per_second=12, transient=True) as live:
            async for fragment in session.reply(text):
                buffer.append(fragment)
                live.update(Text(clean_response("".join(buffer))))

    new_messages = session.messages[before:]
    for message in new_messages:
        if not message.is_user:
            print_message(message, show_reasoning=show_reasoning)
    if session.last_exception is not None:
        print_failure(session)


def print_message(message: Message, show_reasoning: bool = True) -> None:
    if message.is_error:
        console.print(f"[red]{escape(message.content)}[/]")
        return
    if show_reasoning and message.has_reasoning:
        console.print(
            Panel(Text(message.reasoning, style="dim"), title="[dim]reasoning[/]", expand=False)
        )
    console.print(Markdown(message.content))
    if message.has_sources:
        console.print(f"[dim]Sources: {escape(', '.join(message.source_documents))}[/]")


def print_failure(session: ChatSession) -> None:
    exc = session.last_exception
    if isinstance(exc, ContextOverflowError):
        context_size = (session.config or session.engine.config).context_size
        console.print(err_context_overflow(context_size))
    elif exc is not None:
        console.print(err_generation_failed(str(exc)))


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def chat_cmd(
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
        typer.Option("--no-docs", help="Do not ground answers in the document library."),
    ] = False,
    load: Annotated[
        Path | None,
        typer.Option("--load", help="Start from an exported transcript."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Chat with a local model, grounded in your documents."""
    cfg = load_settings(verbose)
    engine = start_engine(cfg, model)
    fmt = resolve_format(prompt_format or cfg.model.prompt_format, engine.model_path)

    library = None if no_docs or not db.exists() else open_library(db, cfg)
    session = ChatSession(
        engine,
        fmt,
        library,
        cfg.retrieval,
        chat_template=cfg.model.chat_template,
    )

    if load is not None:
        _load_into(session, load)

    info = engine.model_info()
    docs = f"{len(library.documents())} documents" if library is not None else "no documents"
    console.print(
        f"[bold]{escape(info.name if info else str(engine.model_path))}[/] "
        f"[dim]({fmt.value}, {docs})[/]"
    )
    console.print(_HELP)

    try:
        _repl(session)
    finally:
        engine.unload()
        if library is not None:
            library.close()


def _repl(session: ChatSession) -> None:
    while True:
        try:
            line = console.input("\n[bold cyan]you›[/] ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            return

        text = line.strip()
        if not text:
            continue
        if text.startswith("/"):
            if not _handle_command(session, text):
                return
            continue

        asyncio.run(stream_reply(session, line))


def _handle_command(session: ChatSession, text: str) -> bool:
    """Run a slash command; return False to leave the REPL."""
    command, _, arg = text.partition(" ")
    arg = arg.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/clear":
        session.clear()
        console.print("[dim]Conversation cleared.[/]")
    elif command == "/save":
        if not arg:
            console.print("[yellow]Usage:[/] /save PATH")
            return True
        try:
            path = save_transcript(
                arg, session.messages, _model_name(session), session.prompt_format
            )
        except OSError as exc:
            console.print(err_transcript_save(exc.strerror or str(exc), arg))
            return True
        console.print(f"[green]✓[/] Saved {len(session.messages)} messages to {escape(str(path))}")
    elif command == "/load":
        if not arg:
            console.print("[yellow]Usage:[/] /load PATH")
            return True
        _load_into(session, Path(arg))
    elif command == "/format":
        if not arg:
            console.print(f"Prompt format: [bold]{session.prompt_format.value}[/]")
            return True
        try:
            session.prompt_format = parse_prompt_format(arg)
        except ValueError as exc:
            console.print(f"[red]{escape(str(exc))}[/]")
            return True
        console.print(f"[green]✓[/] Prompt format: {session.prompt_format.value}")
    elif command == "/help":
        console.print(_HELP)
    else:
        console.print(f"[yellow]Unknown command:[/] {escape(command)}")
        console.print(_HELP)
    return True


def _load_into(session: ChatSession, path: Path) -> None:
    try:
        messages, fmt = load_transcript(path)
    except (OSError, TranscriptError) as exc:
        console.print(err_transcript(str(exc), str(path)))
        return
    session.restore(messages)
    if isinstance(fmt, PromptFormat):
        session.prompt_format = fmt
    console.print(f"[green]✓[/] Loaded {len(messages)} messages from {escape(str(path))}")


def _model_name(session: ChatSession) -> str | None:
    path = session.engine.model_path
    return path.name if path is not None else None
