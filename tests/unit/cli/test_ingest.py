"""Tests for ember ingest."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from ember.cli.main import app
from ember.rag.library import DocumentLibrary

runner = CliRunner()

_TEXT = "The lighthouse keeper records every passing ship in the harbour ledger."


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "library.db"


def _write(path: Path, text: str = _TEXT) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _names(db_path: Path) -> set[str]:
    with DocumentLibrary.open(db_path) as lib:
        return {d.name for d in lib.documents()}


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------

def test_ingest_exits_without_source(db_path):
    result = runner.invoke(app, ["ingest", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "source" in result.output.lower()


def test_ingest_missing_file(tmp_path, db_path):
    result = runner.invoke(app, ["ingest", "--source", str(tmp_path / "nope.txt"), "--db", str(db_path)])
    assert result.exit_code == 1
    assert "not added" in result.output


def test_ingest_rejects_pdf(tmp_path, db_path):
    pdf = tmp_path / "scan.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    result = runner.invoke(app, ["ingest", "--source", str(pdf), "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Unsupported" in result.output


# ------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------

def test_ingest_creates_db_and_document(tmp_path, db_path):
    src = _write(tmp_path / "ledger.txt")
    assert not db_path.exists()

    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "1 chunks" in result.output
    assert _names(db_path) == {"ledger.txt"}


def test_reingest_unchanged_is_skipped(tmp_path, db_path):
    src = _write(tmp_path / "ledger.txt")
    runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Unchanged" in result.output


def test_reingest_changed_replaces(tmp_path, db_path):
    src = _write(tmp_path / "ledger.txt")
    runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    _write(src, "Completely different content about tomato seedlings and soil.")
    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Re-ingested" in result.output
    assert _names(db_path) == {"ledger.txt"}


def test_ingest_multiple_sources(tmp_path, db_path):
    a = _write(tmp_path / "a.md")
    b = _write(tmp_path / "b.txt", "Tomato seedlings need warm soil and sunlight.")
    result = runner.invoke(
        app, ["ingest", "--source", str(a), "--source", str(b), "--db", str(db_path)]
    )
    assert result.exit_code == 0
    assert _names(db_path) == {"a.md", "b.txt"}


# ------------------------------------------------------------------
# Directories
# ------------------------------------------------------------------

@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    _write(root / "top.md")
    _write(root / "draft.md", "A draft document that should be excluded from ingest.")
    _write(root / "nested" / "deep.txt", "Nested file content about harbour operations.")
    (root / "ignored.pdf").write_bytes(b"%PDF")
    return root


def test_ingest_directory_top_level_only(docs_dir, db_path):
    result = runner.invoke(app, ["ingest", "--source", str(docs_dir), "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert _names(db_path) == {"top.md", "draft.md"}


def test_ingest_directory_recursive_with_exclude(docs_dir, db_path):
    result = runner.invoke(
        app,
        [
            "ingest", "--source", str(docs_dir), "--recursive",
            "--exclude", "draft*", "--db", str(db_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert _names(db_path) == {"top.md", "deep.txt"}


def test_ingest_empty_directory(tmp_path, db_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["ingest", "--source", str(empty), "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No documents found" in result.output
