"""Purchase records, their items, and per-item price history."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable

from ..matching.similarity import normalize
from ..models import ParsedItem
from .schema import ensure_schema


class PurchaseDB:
    """Manages purchase_records, purchase_items and item_prices."""

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

    def create_purchase_record(
        self,
        owner_id: str,
        items: Iterable[ParsedItem],
        *,
        store_name: str | None = None,
        purchase_date: str | None = None,
        total_amount: float | None = None,
        source: str = "copy_paste",
        list_id: str | None = None,
        receipt_image_url: str | None = None,
        raw_text: str | None = None,
    ) -> int:
        """Insert a record and its items in one transaction.

        Returns:
            The new record ID.
        """
        conn = self._get_conn()
        with conn:
            cur = conn.execute(
                """INSERT INTO purchase_records
                   (owner_id, list_id, store_name, purchase_date, total_amount,
                    source, receipt_image_url, raw_text)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    owner_id,
                    list_id,
                    store_name or None,
                    purchase_date or None,
                    total_amount,
                    source,
                    receipt_image_url,
                    raw_text or None,
                ),
            )
            record_id = cur.lastrowid
            conn.executemany(
                """INSERT INTO purchase_items
                   (purchase_record_id, name, quantity, unit_price, total_price)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (record_id, i.name, i.quantity, i.unit_price, i.total_price)
                    for i in items
                ],
            )
        return record_id

    def list_purchase_records(
        self, owner_id: str, list_id: str | None = None
    ) -> list[dict]:
        """Return records (newest first), each with an ``items`` list."""
        conn = self._get_conn()
        query = "SELECT * FROM purchase_records WHERE owner_id = ?"
        params: list = [owner_id]
        if list_id is not None:
            query += " AND list_id = ?"
            params.append(list_id)
        records = [
            dict(r)
            for r in conn.execute(query + " ORDER BY id DESC", params).fetchall()
        ]
        for record in records:
            rows = conn.execute(
                "SELECT * FROM purchase_items WHERE purchase_record_id = ? ORDER BY id",
                (record["id"],),
            ).fetchall()
            record["items"] = [dict(r) for r in rows]
        return records

    def delete_purchase_record(self, record_id: int, owner_id: str) -> None:
        conn = self._get_conn()
        conn.execute(
            "DELETE FROM purchase_records WHERE id = ? AND owner_id = ?",
            (record_id, owner_id),
        )
        conn.commit()

    def purchase_item_names(self, owner_id: str) -> list[str]:
        """All item names the owner has ever saved from receipts."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT pi.name FROM purchase_items pi
               JOIN purchase_records pr ON pr.id = pi.purchase_record_id
               WHERE pr.owner_id = ?
               ORDER BY pi.id""",
            (owner_id,),
        ).fetchall()
        return [r["name"] for r in rows]

    def record_prices(
        self,
        owner_id: str,
        items: Iterable[ParsedItem],
        *,
        store_name: str | None = None,
        purchase_date: str | None = None,
        purchase_record_id: int | None = None,
    ) -> int:
        """Append price points for items with a positive total price.

        Returns:
            Number of rows written.
        """
        rows = []
        for item in items:
            if item.total_price is None or item.total_price <= 0:
                continue
            unit_price = item.unit_price
            if unit_price is None:
                unit_price = (
                    round(item.total_price / item.quantity, 2)
                    if item.quantity and item.quantity > 0
                    else item.total_price
                )
            rows.append(
                (
                    owner_id,
                    item.name,
                    normalize(item.name),
                    store_name or None,
                    item.total_price,
                    item.quantity or 1,
                    unit_price,
                    purchase_date or None,
                    purchase_record_id,
                )
            )
        if not rows:
            return 0

        conn = self._get_conn()
        conn.executemany(
            """INSERT INTO item_prices
               (owner_id, item_name, item_key, store_name, price, quantity,
                unit_price, purchase_date, purchase_record_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            rows,
        )
        conn.commit()
        return len(rows)

    def price_history(
        self, owner_id: str, item_name: str, limit: int = 50
    ) -> list[dict]:
        """Price points for one item, oldest purchase first."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT purchase_date, price, unit_price, quantity, store_name
               FROM item_prices
               WHERE owner_id = ? AND item_key = normalize_name(?)
               ORDER BY purchase_date IS NULL, purchase_date, id
               LIMIT ?""",
            (owner_id, item_name, limit),
        ).fetchall()
        return [dict(r) for r in rows]
