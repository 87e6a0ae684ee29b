"""
Repository for stock-on-hand (one `inventory` row per product).

Conventions:
- Quantities are always stored in BASE units (tablet, ml, piece).
- Package -> base conversion happens only on the purchase path (create and
  delete); sales, returns and write-offs already speak base units.
- Stock never goes negative: every delta is clamped at zero, silently.
- No commit here; the calling service owns the transaction boundary.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional, List, Dict

_log = logging.getLogger(__name__)


@dataclass
class StockChange:
    product_id: int
    old_quantity: float
    new_quantity: float
    created: bool
    # True when the delta would have taken stock below zero
    clamped: bool = False


def to_base_units(quantity: float, units_per_package: int | float | None) -> float:
    """
    Convert a purchase quantity expressed in packages into base units.
    A factor of 1 (or missing) means the product is bought loose.
    """
    factor = float(units_per_package or 1)
    if factor > 1:
        return float(quantity) * factor
    return float(quantity)


class InventoryRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, product_id: int) -> Dict | None:
        row = self.conn.execute(
            "SELECT * FROM inventory WHERE product_id=?", (int(product_id),)
        ).fetchone()
        return dict(row) if row else None

    def quantity(self, product_id: int) -> float:
        row = self.conn.execute(
            "SELECT CAST(quantity AS REAL) FROM inventory WHERE product_id=?", (int(product_id),)
        ).fetchone()
        return float(row[0]) if row else 0.0

    def stock_on_hand(self, product_id: int) -> Dict | None:
        """
        Snapshot for a single product: name, units, on-hand qty and cost value.
        Returns None if the product isn't found.
        """
        row = self.conn.execute(
            """
            SELECT
                p.product_id                          AS product_id,
                p.name                                AS product_name,
                p.unit                                AS unit,
                p.package_unit                        AS package_unit,
                p.units_per_package                   AS units_per_package,
                CAST(COALESCE(i.quantity, 0) AS REAL) AS on_hand_qty,
                CAST(p.cost_price AS REAL)            AS unit_value,
                i.batch_number                        AS batch_number,
                i.expiry_date                         AS expiry_date
            FROM products p
            LEFT JOIN inventory i ON i.product_id = p.product_id
            WHERE p.product_id = ?
            """,
            (int(product_id),),
        ).fetchone()
        if not row:
            return None
        d = dict(row)
        # cost_price is per package when the product is bought in packages
        per_base = d["unit_value"] / max(1, int(d["units_per_package"] or 1))
        d["total_value"] = d["on_hand_qty"] * per_base
        return d

    def low_stock(self) -> List[Dict]:
        """Active products at or below their reorder level (missing stock rows count as 0)."""
        rows = self.conn.execute(
            """
            SELECT
                p.product_id,
                p.name                                AS product_name,
                CAST(COALESCE(i.quantity, 0) AS REAL) AS quantity,
                p.reorder_level
            FROM products p
            LEFT JOIN inventory i ON i.product_id = p.product_id
            WHERE p.is_active = 1
              AND COALESCE(i.quantity, 0) <= p.reorder_level
            ORDER BY p.name
            """
        ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def apply_delta(
        self,
        product_id: int,
        delta: float,
        *,
        batch_number: Optional[str] = None,
        expiry_date: Optional[str] = None,
        manufacture_date: Optional[str] = None,
    ) -> StockChange:
        """
        Apply a signed base-unit delta to a product's stock row.

        - No row yet: create it with max(0, delta).
        - Otherwise: quantity = max(0, quantity + delta).
        Batch/expiry/manufacture values overwrite the stored ones when given
        (latest purchase wins; batches are not versioned).
        """
        pid = int(product_id)
        delta = float(delta)
        existing = self.conn.execute(
            "SELECT inventory_id, CAST(quantity AS REAL) AS quantity FROM inventory WHERE product_id=?",
            (pid,),
        ).fetchone()

        if existing is None:
            new_qty = max(0.0, delta)
            self.conn.execute(
                """
                INSERT INTO inventory (product_id, quantity, batch_number, expiry_date, manufacture_date)
                VALUES (?, ?, ?, ?, ?)
                """,
                (pid, new_qty, batch_number, expiry_date, manufacture_date),
            )
            change = StockChange(pid, 0.0, new_qty, True, delta < 0)
        else:
            old_qty = float(existing["quantity"])
            raw = old_qty + delta
            new_qty = max(0.0, raw)
            self.conn.execute(
                """
                UPDATE inventory
                   SET quantity = ?,
                       batch_number = COALESCE(?, batch_number),
                       expiry_date = COALESCE(?, expiry_date),
                       manufacture_date = COALESCE(?, manufacture_date),
                       updated_at = CURRENT_TIMESTAMP
                 WHERE inventory_id = ?
                """,
                (new_qty, batch_number, expiry_date, manufacture_date, int(existing["inventory_id"])),
            )
            change = StockChange(pid, old_qty, new_qty, False, raw < 0)

        if change.clamped:
            _log.info("Stock for product %s clamped at 0 (delta=%.4f)", pid, delta)
        return change
