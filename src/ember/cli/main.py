"""Ember CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from ember.cli.ask import ask_cmd
from ember.cli.chat import chat_cmd
from ember.cli.formats import formats_app
from ember.cli.init import init_cmd
from ember.cli.ingest import ingest_cmd
from ember.cli.remove import remove_cmd
from ember.cli.search import search_cmd
from ember.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("ember")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ember {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="ember",
    help=(
        "Ember — offline chat with a local llama.cpp model.\n\n"
        "  ember init    Create the library and ember.yaml here.\n"
        "  ember ingest  Add documents to ground answers in.\n"
        "  ember chat    Talk to the model; answers cite your documents."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Ember — offline chat with a local llama.cpp model."""


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("remove")(remove_cmd)
app.command("status")(status_cmd)
app.command("search")(search_cmd)
app.command("ask")(ask_cmd)
app.command("chat")(chat_cmd)
app.add_typer(formats_app, name="formats")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Ember version."""
    typer.echo(f"ember {_installed_version()}")


if __name__ == "__main__":
    app()
