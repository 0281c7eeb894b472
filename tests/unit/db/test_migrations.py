"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from ember.db.connection import Database
from ember.db.migrations import MIGRATIONS, current_version, run_migrations


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_current_version_of_fresh_database_is_zero(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute("CREATE TABLE schema_version (version INTEGER NOT NULL, applied_at DATETIME)")
    assert current_version(conn) == 0
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


def test_versions_strictly_ascending():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(set(versions))


# --- Upgrade path ---

def test_upgrade_from_v1_keeps_documents(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE schema_version (version INTEGER NOT NULL, "
        "applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
    )
    conn.executescript(MIGRATIONS[0][1])
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.execute(
        "INSERT INTO documents (name, file_type, full_text) VALUES ('old.txt', 'txt', 'legacy')"
    )
    conn.commit()

    run_migrations(conn)

    row = conn.execute("SELECT name, content_hash FROM documents").fetchone()
    assert row["name"] == "old.txt"
    assert row["content_hash"] == ""
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


def test_chunk_ordinal_unique_per_document(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    conn.execute(
        "INSERT INTO documents (name, file_type, full_text) VALUES ('a.txt', 'txt', 'x')"
    )
    conn.execute(
        "INSERT INTO chunks (document_id, document_name, chunk_index, content) "
        "VALUES (1, 'a.txt', 0, 'first')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO chunks (document_id, document_name, chunk_index, content) "
            "VALUES (1, 'a.txt', 0, 'duplicate')"
        )
    conn.close()
