"""Database schema for the MediNova document store.

Collections are rows of one `documents` table keyed by (collection, doc_id);
the document body is stored as JSON text. `unique_keys` backs unique fields
(users.email) so "insert unless it exists" is a single conflict-checked insert.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines.

NOTE: The Postgres schema is generated from the SQLite schema by rewriting the
autoincrement primary key.
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    body_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (collection, doc_id)
);
CREATE INDEX IF NOT EXISTS idx_documents_collection_seq ON documents (collection, seq);

CREATE TABLE IF NOT EXISTS unique_keys (
    collection TEXT NOT NULL,
    field TEXT NOT NULL,
    value TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    PRIMARY KEY (collection, field, value)
);
CREATE INDEX IF NOT EXISTS idx_unique_keys_doc ON unique_keys (collection, doc_id);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    return re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        ddl,
        flags=re.IGNORECASE,
    )


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
