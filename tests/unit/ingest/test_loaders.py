"""Tests for document loading helpers."""

from __future__ import annotations

import pytest

from ember.ingest.loaders import (
    SUPPORTED_EXTENSIONS,
    UnsupportedDocumentError,
    compute_hash,
    file_type_for,
    read_document,
)


def test_read_plain_text(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("Plain text content.", encoding="utf-8")
    assert read_document(path) == "Plain text content."


def test_read_markdown(tmp_path):
    path = tmp_path / "README.md"
    path.write_text("# Title\n\nBody.", encoding="utf-8")
    assert read_document(path) == "# Title\n\nBody."


def test_invalid_utf8_replaced(tmp_path):
    path = tmp_path / "broken.txt"
    path.write_bytes(b"ok \xff\xfe bytes")
    assert read_document(path) == "ok \ufffd\ufffd bytes"


@pytest.mark.parametrize("name", ["report.pdf", "letter.docx", "old.doc"])
def test_binary_documents_rejected(tmp_path, name):
    path = tmp_path / name
    path.write_bytes(b"%PDF-1.4")
    with pytest.raises(UnsupportedDocumentError, match="extraction"):
        read_document(path)


def test_unknown_extension_rejected(tmp_path):
    path = tmp_path / "program.exe"
    path.write_bytes(b"MZ")
    with pytest.raises(UnsupportedDocumentError):
        read_document(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_document(tmp_path / "absent.txt")


def test_unsupported_error_is_value_error():
    assert issubclass(UnsupportedDocumentError, ValueError)


def test_file_type_for():
    assert file_type_for("Notes.MD") == "md"
    assert file_type_for("dir/log.txt") == "txt"
    assert file_type_for("noext") == ""


def test_supported_extensions():
    assert {".md", ".txt"} <= SUPPORTED_EXTENSIONS
    assert ".pdf" not in SUPPORTED_EXTENSIONS


def test_compute_hash():
    assert compute_hash("abc") == compute_hash("abc")
    assert compute_hash("abc") != compute_hash("abd")
    assert len(compute_hash("")) == 64
