"""Database schema definitions and migration helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..matching.similarity import normalize

_SCHEMA_VERSION = 1

_DDL = """
CREATE TABLE IF NOT EXISTS item_aliases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    canonical_name TEXT NOT NULL,
    alias_name TEXT NOT NULL,
    alias_key TEXT NOT NULL,
    store_name TEXT,
    confirmed INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_item_aliases_owner_alias
    ON item_aliases(owner_id, alias_key);
CREATE INDEX IF NOT EXISTS idx_item_aliases_owner_canonical
    ON item_aliases(owner_id, canonical_name);

CREATE TABLE IF NOT EXISTS list_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    image_url TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_list_items_owner ON list_items(owner_id);

CREATE TABLE IF NOT EXISTS catalog_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    image_url TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE TABLE IF NOT EXISTS purchase_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    list_id TEXT,
    store_name TEXT,
    purchase_date TEXT,
    total_amount REAL,
    source TEXT NOT NULL DEFAULT 'copy_paste',
    receipt_image_url TEXT,
    raw_text TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_purchase_records_owner ON purchase_records(owner_id);

CREATE TABLE IF NOT EXISTS purchase_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    purchase_record_id INTEGER NOT NULL
        REFERENCES purchase_records(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    quantity REAL NOT NULL DEFAULT 1,
    unit_price REAL,
    total_price REAL,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_purchase_items_record ON purchase_items(purchase_record_id);

CREATE TABLE IF NOT EXISTS item_prices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    item_name TEXT NOT NULL,
    item_key TEXT NOT NULL,
    store_name TEXT,
    price REAL NOT NULL,
    quantity REAL NOT NULL DEFAULT 1,
    unit_price REAL,
    purchase_date TEXT,
    purchase_record_id INTEGER
        REFERENCES purchase_records(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_item_prices_owner_item ON item_prices(owner_id, item_key);
CREATE INDEX IF NOT EXISTS idx_item_prices_owner_date ON item_prices(owner_id, purchase_date);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    The connection also gets a ``normalize_name(text)`` SQL function, the
    same normalization used for ``alias_key`` and ``item_key``, so queries
    can look up keys without normalizing in Python first.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    db_path = Path(db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.create_function("normalize_name", 1, _normalize_name, deterministic=True)

    if _stored_version(conn) < _SCHEMA_VERSION:
        with conn:
            conn.executescript(_DDL)
            conn.execute("DELETE FROM schema_version")
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (_SCHEMA_VERSION,),
            )

    return conn


def _stored_version(conn: sqlite3.Connection) -> int:
    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        # Fresh database
        return 0
    return row["version"] if row else 0


def _normalize_name(value: str | None) -> str | None:
    return normalize(value) if value is not None else None
