"""Tests for the ember chat REPL."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from ember.chat.models import Message
from ember.chat.transcript import save_transcript
from ember.cli.main import app
from ember.prompt.formats import PromptFormat

runner = CliRunner()


@pytest.fixture
def chat(fake_llama, model_file, monkeypatch):
    """Invoke `ember chat` with the given stdin against a fake model."""

    def run(stdin: str, output: str = "Hello from Ember.", extra: list[str] | None = None):
        monkeypatch.setenv("EMBER_EXECUTABLE", str(fake_llama(output)))
        return runner.invoke(app, ["chat", "--model", str(model_file), *(extra or [])], input=stdin)

    return run


def test_chat_single_turn(chat):
    result = chat("Hi there\n/quit\n")
    assert result.exit_code == 0, result.output
    assert "Hello from Ember." in result.output
    assert "llama3" in result.output


def test_chat_exits_on_eof(chat):
    result = chat("")
    assert result.exit_code == 0


def test_chat_save(chat, in_tmp_dir):
    result = chat("Hi there\n/save chat.json\n/exit\n")
    assert result.exit_code == 0, result.output
    data = json.loads((in_tmp_dir / "chat.json").read_text(encoding="utf-8"))
    assert data["messageCount"] == 2
    assert data["promptFormat"] == "llama3"
    assert data["modelName"] == "Llama-3.2-3B-Instruct-Q4_K_M.gguf"


def test_chat_save_to_unwritable_path_keeps_running(chat, in_tmp_dir):
    (in_tmp_dir / "notes.txt").write_text("not a folder", encoding="utf-8")
    result = chat("/save notes.txt/chat.json\n/format\n/quit\n")
    assert result.exit_code == 0, result.output
    assert "Cannot save transcript" in result.output
    assert "Prompt format: llama3" in result.output


def test_chat_load_option(chat, in_tmp_dir):
    path = in_tmp_dir / "earlier.json"
    save_transcript(
        path,
        [Message(content="Earlier question", is_user=True), Message(content="Earlier reply", is_user=False)],
        None,
        PromptFormat.CHATML,
    )
    result = chat("/format\n/quit\n", extra=["--load", str(path)])
    assert result.exit_code == 0, result.output
    assert "Loaded 2 messages" in result.output
    assert "Prompt format: chatml" in result.output


def test_chat_load_invalid_file(chat, in_tmp_dir):
    (in_tmp_dir / "junk.json").write_text("[]", encoding="utf-8")
    result = chat("/load junk.json\n/quit\n")
    assert result.exit_code == 0
    assert "Cannot load transcript" in result.output


def test_chat_switch_format(chat):
    result = chat("/format mistral\n/format bogus\n/quit\n")
    assert "Prompt format: mistral" in result.output
    assert "Unknown prompt format" in result.output


def test_chat_clear_and_unknown_command(chat):
    result = chat("/clear\n/frobnicate\n/help\n/quit\n")
    assert result.exit_code == 0
    assert "Conversation cleared" in result.output
    assert "Unknown command" in result.output


def test_chat_reports_failure_and_continues(fake_llama, model_file, monkeypatch):
    monkeypatch.setenv("EMBER_EXECUTABLE", str(fake_llama(stderr="error: out of memory\n", exit_code=1)))
    result = runner.invoke(app, ["chat", "--model", str(model_file)], input="Hi\n/quit\n")
    assert result.exit_code == 0
    assert "Generation failed" in result.output
