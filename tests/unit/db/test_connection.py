"""Tests for the SQLite connection layer."""

from __future__ import annotations

import sqlite3

import pytest

from ragchat.db.connection import Database


def test_connect_loads_sqlite_vec(tmp_path):
    db = Database(tmp_path / "test.db")
    conn = db.connect()
    try:
        version = conn.execute("SELECT vec_version()").fetchone()[0]
        assert version.startswith("v")
    finally:
        conn.close()


def test_connect_enables_foreign_keys(tmp_path):
    with Database(tmp_path / "test.db") as conn:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_connect_uses_row_factory(tmp_path):
    with Database(tmp_path / "test.db") as conn:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1


def test_connection_commits_on_success(tmp_path):
    db = Database(tmp_path / "test.db")
    with db.connection() as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
        conn.execute("INSERT INTO t VALUES (1)")
    with db.connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1


def test_connection_rolls_back_on_error(tmp_path):
    db = Database(tmp_path / "test.db")
    with db.connection() as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")

    with pytest.raises(RuntimeError):
        with db.connection() as conn:
            conn.execute("INSERT INTO t VALUES (1)")
            raise RuntimeError("boom")

    with db.connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0


def test_connection_is_closed_after_use(tmp_path):
    db = Database(tmp_path / "test.db")
    with db.connection() as conn:
        pass
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")


def test_initialize_creates_parent_directory(tmp_path):
    db = Database(tmp_path / "nested" / "dir" / "test.db")
    db.initialize()
    assert db.db_path.exists()


def test_context_manager_closes(tmp_path):
    db = Database(tmp_path / "test.db")
    with db as conn:
        conn.execute("SELECT 1")
    assert db._conn is None
