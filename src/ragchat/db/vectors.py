"""Embedding storage: the documents.embedding text format and the KNN index.

Vectors are stored as bracketed-list text, e.g. ``"[0.1,0.2,0.3]"``, which is
also the JSON form sqlite-vec accepts. Similarity search runs against a
per-dimension vec0 table (cosine distance) kept in step with that column.
"""

from __future__ import annotations

import math
import re
import sqlite3
from collections.abc import Sequence

_FLOAT = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_VECTOR_RE: re.Pattern[str] = re.compile(
    rf"\[\s*{_FLOAT}(?:\s*,\s*{_FLOAT})*\s*\]"
)


def serialize_vector(vector: Sequence[float]) -> str:
    """Render *vector* as ``"[v1,v2,...]"``.

    Raises:
        ValueError: If the vector is empty or contains NaN/inf.
    """
    if len(vector) == 0:
        raise ValueError("Cannot serialize an empty vector")
    values = [float(v) for v in vector]
    if not all(math.isfinite(v) for v in values):
        raise ValueError("Vector contains NaN or infinite values")
    return "[" + ",".join(repr(v) for v in values) + "]"


def parse_vector(text: str) -> list[float]:
    """Parse a bracketed-list vector string back into floats.

    Accepts exactly the format produced by serialize_vector() (plus optional
    whitespace around separators). This is not a general numeric parser.

    Raises:
        ValueError: If *text* is not a bracketed list of numbers.
    """
    if not _VECTOR_RE.fullmatch(text.strip()):
        raise ValueError(f"Not a bracketed vector: {text[:40]!r}")
    inner = text.strip()[1:-1]
    return [float(part) for part in inner.split(",")]


def check_dimension(vector: Sequence[float], dimensions: int) -> None:
    """Raise ValueError unless *vector* has exactly *dimensions* entries."""
    if len(vector) != dimensions:
        raise ValueError(
            f"Embedding has {len(vector)} dimensions, expected {dimensions}"
        )


# sqlite-vec rejects KNN queries with k above this.
MAX_KNN = 4096


def vec_table_name(dimensions: int) -> str:
    """Return the KNN index table name for *dimensions*-d embeddings."""
    return f"vec_documents_{dimensions}"


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create the cosine KNN index for *dimensions*-d embeddings if it doesn't exist.

    A newly created index is filled from documents that already hold an
    embedding of that size. documents.embedding stays the source of truth.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_documents_{dimensions}).
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(dimensions)
    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {table} USING vec0("
            f"document_id TEXT PRIMARY KEY, "
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.execute(
            f"""
            INSERT INTO {table} (document_id, embedding)
            SELECT id, vec_f32(embedding) FROM documents
            WHERE embedding IS NOT NULL
              AND vec_length(embedding) = ?
              AND id NOT IN (SELECT document_id FROM {table})
            """,
            (dimensions,),
        )

    return table
