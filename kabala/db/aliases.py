"""Item alias storage: raw receipt names mapped to canonical names."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from ..matching.similarity import normalize
from ..models import ItemAlias
from .schema import ensure_schema

logger = logging.getLogger(__name__)


class AliasDB:
    """Manages the item_aliases table.

    Aliases are unique per (owner, normalized alias name); ``alias_key``
    holds the normalized form because SQLite's ``lower()`` only folds ASCII.
    """

    def __init__(self, db_path: str | Path = "~/.config/kabala/kabala.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def find_alias_exact(self, owner_id: str, alias_name: str) -> ItemAlias | None:
        """Case- and whitespace-insensitive lookup of one alias."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM item_aliases WHERE owner_id = ? AND alias_key = ?",
            (owner_id, normalize(alias_name)),
        ).fetchone()
        return _to_alias(row) if row else None

    def upsert_alias(
        self,
        owner_id: str,
        alias_name: str,
        canonical_name: str,
        store_name: str | None = None,
        confirmed: bool = True,
    ) -> None:
        """Insert an alias, or update the existing row for the same key.

        Raises:
            ValueError: If the alias name is blank.
        """
        trimmed = alias_name.strip()
        if not trimmed:
            raise ValueError("Alias name cannot be empty")

        conn = self._get_conn()
        key = normalize(trimmed)
        try:
            conn.execute(
                """INSERT INTO item_aliases
                   (owner_id, canonical_name, alias_name, alias_key, store_name, confirmed)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (owner_id, canonical_name, trimmed, key, store_name, int(confirmed)),
            )
        except sqlite3.IntegrityError:
            # Another save already holds this key: update it in place
            conn.execute(
                """UPDATE item_aliases
                   SET canonical_name = ?, store_name = ?, confirmed = ?
                   WHERE owner_id = ? AND alias_key = ?""",
                (canonical_name, store_name, int(confirmed), owner_id, key),
            )
            logger.debug("Updated alias %r -> %r", trimmed, canonical_name)
        conn.commit()

    def list_aliases(self, owner_id: str) -> list[ItemAlias]:
        """Return all aliases of an owner ordered by canonical name."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT * FROM item_aliases
               WHERE owner_id = ?
               ORDER BY canonical_name, alias_name""",
            (owner_id,),
        ).fetchall()
        return [_to_alias(r) for r in rows]

    def delete_alias(self, alias_id: int) -> None:
        """Delete an alias by ID."""
        conn = self._get_conn()
        conn.execute("DELETE FROM item_aliases WHERE id = ?", (alias_id,))
        conn.commit()


def _to_alias(row: sqlite3.Row) -> ItemAlias:
    return ItemAlias(
        id=row["id"],
        owner_id=row["owner_id"],
        canonical_name=row["canonical_name"],
        alias_name=row["alias_name"],
        store_name=row["store_name"],
        confirmed=bool(row["confirmed"]),
        created_at=row["created_at"],
    )
