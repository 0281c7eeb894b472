"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

import ember.config
from ember.db.connection import Database
from ember.db.schema import initialize

_EMBER_ENV = (
    "EMBER_MODEL",
    "EMBER_EXECUTABLE",
    "EMBER_PROMPT_FORMAT",
    "EMBER_LOG_LEVEL",
    "EMBER_LLAMA_CLI",
)

# Stand-in for llama-cli: writes canned stdout chunks (flushing each one),
# canned stderr, optionally records its argv, then exits with a fixed code.
_FAKE_LLAMA = '''\
import json
import sys
import time

if {argv_file!r}:
    with open({argv_file!r}, "w", encoding="utf-8") as fh:
        json.dump(sys.argv[1:], fh)

sys.stderr.write({stderr!r})
sys.stderr.flush()
for chunk in {chunks!r}:
    sys.stdout.buffer.write(chunk)
    sys.stdout.buffer.flush()
    time.sleep({delay!r})
time.sleep({hang!r})
sys.exit({exit_code!r})
'''

FakeLlama = Callable[..., Path]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's ~/.ember/config.yaml and EMBER_* variables out of tests."""
    monkeypatch.setattr(ember.config, "_GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")
    for var in _EMBER_ENV:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".ember.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    """A 1 MiB (sparse) file with a Llama 3 style GGUF name."""
    path = tmp_path / "models" / "Llama-3.2-3B-Instruct-Q4_K_M.gguf"
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as fh:
        fh.truncate(1024 * 1024)
    return path


@pytest.fixture
def fake_llama(tmp_path: Path) -> FakeLlama:
    """Factory writing an executable fake llama-cli; returns its path.

    Keyword args:
        output: stdout text, written as one chunk (ignored if *chunks* given).
        chunks: stdout as a list of bytes chunks, flushed one by one.
        stderr: text written to stderr before any output.
        exit_code: process exit status.
        delay: seconds to sleep after each stdout chunk.
        hang: seconds to sleep before exiting.
        argv_file: where to dump the received argv as JSON.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def make(
        output: str = "",
        *,
        chunks: list[bytes] | None = None,
        stderr: str = "",
        exit_code: int = 0,
        delay: float = 0.0,
        hang: float = 0.0,
        argv_file: Path | None = None,
    ) -> Path:
        script = bin_dir / "fake_llama.py"
        script.write_text(
            _FAKE_LLAMA.format(
                argv_file=str(argv_file) if argv_file else "",
                stderr=stderr,
                chunks=chunks if chunks is not None else [output.encode("utf-8")],
                delay=delay,
                hang=hang,
                exit_code=exit_code,
            ),
            encoding="utf-8",
        )
        wrapper = bin_dir / "llama-cli"
        wrapper.write_text(
            f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8"
        )
        wrapper.chmod(0o755)
        return wrapper

    return make
