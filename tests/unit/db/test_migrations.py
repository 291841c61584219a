"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from ragchat.db.connection import Database
from ragchat.db.migrations import MIGRATIONS, current_version, run_migrations
from ragchat.db.schema import CURRENT_VERSION, initialize


@pytest.fixture
def conn(tmp_path):
    db = Database(tmp_path / "m.db")
    connection = db.connect()
    yield connection
    connection.close()


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def test_fresh_database_is_version_zero(conn):
    assert current_version(conn) == 0


def test_initialize_applies_all_migrations(conn):
    initialize(conn)
    assert current_version(conn) == CURRENT_VERSION == MIGRATIONS[-1][0]
    assert {"documents", "conversations", "messages", "schema_version"} <= _tables(conn)


def test_run_migrations_is_idempotent(conn):
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)


def test_migration_versions_ascend():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)


def test_metadata_must_be_valid_json(conn):
    initialize(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO documents (id, content, metadata) VALUES ('d1', 'x', 'not json')"
        )


def test_message_role_is_constrained(conn):
    initialize(conn)
    conn.execute("INSERT INTO conversations (id) VALUES ('c1')")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO messages (id, conversation_id, role, content) "
            "VALUES ('m1', 'c1', 'system', 'hi')"
        )


def test_deleting_conversation_cascades_to_messages(conn):
    initialize(conn)
    conn.execute("INSERT INTO conversations (id) VALUES ('c1')")
    conn.execute(
        "INSERT INTO messages (id, conversation_id, role, content) VALUES ('m1', 'c1', 'user', 'hi')"
    )
    conn.execute("DELETE FROM conversations WHERE id = 'c1'")
    assert conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0] == 0


def test_update_trigger_touches_updated_at(conn):
    initialize(conn)
    old = "2000-01-01T00:00:00.000Z"
    conn.execute(
        "INSERT INTO documents (id, content, created_at, updated_at) VALUES ('d1', 'x', ?, ?)",
        (old, old),
    )
    conn.execute("UPDATE documents SET content = 'y' WHERE id = 'd1'")
    updated = conn.execute("SELECT updated_at FROM documents WHERE id = 'd1'").fetchone()[0]
    assert updated > old


def test_explicit_updated_at_is_kept(conn):
    initialize(conn)
    conn.execute("INSERT INTO conversations (id) VALUES ('c1')")
    pinned = "2001-02-03T04:05:06.000Z"
    conn.execute("UPDATE conversations SET updated_at = ? WHERE id = 'c1'", (pinned,))
    updated = conn.execute("SELECT updated_at FROM conversations WHERE id = 'c1'").fetchone()[0]
    assert updated == pinned
