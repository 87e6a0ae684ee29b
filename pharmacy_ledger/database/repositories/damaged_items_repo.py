from __future__ import annotations
from dataclasses import dataclass
import sqlite3


@dataclass
class DamagedItem:
    product_id: int
    quantity: float
    reason: str
    product_name: str | None = None
    batch_number: str | None = None
    expiry_date: str | None = None
    notes: str | None = None
    reported_by: int | None = None
    damaged_item_id: int | None = None


class DamagedItemsRepo:
    """Write-off records. Stock is decremented by the service, not here."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(self, d: DamagedItem) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO damaged_items (
                product_id, product_name, quantity, reason, batch_number,
                expiry_date, notes, reported_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(d.product_id), d.product_name, float(d.quantity), d.reason,
                d.batch_number, d.expiry_date, d.notes, d.reported_by,
            ),
        )
        d.damaged_item_id = int(cur.lastrowid)
        return d.damaged_item_id

    def list_for_product(self, product_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT damaged_item_id, product_id, product_name,
                   CAST(quantity AS REAL) AS quantity, reason, batch_number,
                   expiry_date, notes, reported_by, created_at
            FROM damaged_items
            WHERE product_id = ?
            ORDER BY damaged_item_id DESC
            """,
            (int(product_id),),
        ).fetchall()
        return [dict(r) for r in rows]
