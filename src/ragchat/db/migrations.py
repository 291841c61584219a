"""Forward-only migration runner for the ragchat schema.

Embeddings live in documents.embedding as bracketed-list TEXT. The vec0 KNN
index over them depends on the configured dimension, so it is created by
DocumentRepository (ragchat.db.vectors.ensure_vec_table), not here.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_V1_SQL = f"""
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    content     TEXT NOT NULL,
    embedding   TEXT,
    metadata    TEXT NOT NULL DEFAULT '{{}}' CHECK (json_valid(metadata)),
    created_at  TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at  TEXT NOT NULL DEFAULT ({_NOW})
);

CREATE INDEX IF NOT EXISTS documents_created_at_idx ON documents(created_at);
"""

_V2_SQL = f"""
CREATE TABLE IF NOT EXISTS conversations (
    id          TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL DEFAULT ({_NOW}),
    updated_at  TEXT NOT NULL DEFAULT ({_NOW})
);

CREATE TABLE IF NOT EXISTS messages (
    id              TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role            TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content         TEXT NOT NULL,
    sources         TEXT NOT NULL DEFAULT '[]' CHECK (json_valid(sources)),
    created_at      TEXT NOT NULL DEFAULT ({_NOW})
);

CREATE INDEX IF NOT EXISTS messages_conversation_id_idx
    ON messages(conversation_id, created_at);

CREATE INDEX IF NOT EXISTS conversations_updated_at_idx ON conversations(updated_at);
"""

# updated_at follows any row change unless the statement set it explicitly.
_V3_SQL = f"""
CREATE TRIGGER IF NOT EXISTS documents_touch_updated_at
AFTER UPDATE ON documents
FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE documents SET updated_at = {_NOW} WHERE id = NEW.id;
END;

CREATE TRIGGER IF NOT EXISTS conversations_touch_updated_at
AFTER UPDATE ON conversations
FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE conversations SET updated_at = {_NOW} WHERE id = NEW.id;
END;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
    (3, _V3_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    exists = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    ).fetchone()
    if exists is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0
