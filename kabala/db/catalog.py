"""Personal and global item catalogs used as fuzzy-match candidates."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..matching.similarity import normalize
from ..models import CatalogItem
from .schema import ensure_schema


class CatalogDB:
    """Reads the list_items (personal) and catalog_items (global) tables."""

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

    def add_list_item(
        self, owner_id: str, name: str, image_url: str | None = None
    ) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO list_items (owner_id, name, image_url) VALUES (?, ?, ?)",
            (owner_id, name, image_url),
        )
        conn.commit()
        return cur.lastrowid

    def add_catalog_item(self, name: str, image_url: str | None = None) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO catalog_items (name, image_url) VALUES (?, ?)",
            (name, image_url),
        )
        conn.commit()
        return cur.lastrowid

    def personal_items(self, owner_id: str) -> list[CatalogItem]:
        """The owner's distinct item names, preferring variants with an image."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT name, image_url FROM list_items WHERE owner_id = ? ORDER BY id",
            (owner_id,),
        ).fetchall()

        by_key: dict[str, CatalogItem] = {}
        for row in rows:
            key = normalize(row["name"])
            existing = by_key.get(key)
            if existing is None or (row["image_url"] and not existing.image_url):
                by_key[key] = CatalogItem(
                    name=row["name"], image_url=row["image_url"] or None
                )
        return list(by_key.values())

    def global_catalog_sample(self, limit: int) -> list[CatalogItem]:
        """Up to ``limit`` rows of the shared catalog."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT name, image_url FROM catalog_items ORDER BY id LIMIT ?",
            (limit,),
        ).fetchall()
        return [CatalogItem(name=r["name"], image_url=r["image_url"] or None) for r in rows]
