from __future__ import annotations
import sqlite3
from typing import Optional


class SupplierPaymentsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def record_payment(
        self,
        supplier_id: int,
        *,
        account_id: int,
        amount: float,
        reference_number: str,
        payment_method: str,
        payment_date: str,
        notes: Optional[str],
        user_id: Optional[int],
    ) -> int:
        """
        Insert one row into supplier_payments (amount > 0, enforced by CHECK).
        Ledger/account effects are applied by the service in the same transaction.
        """
        cur = self.conn.execute(
            """
            INSERT INTO supplier_payments (
                supplier_id, account_id, user_id, reference_number, amount,
                payment_method, payment_date, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(supplier_id), int(account_id), user_id, reference_number, float(amount),
                payment_method or "cash", payment_date, notes,
            ),
        )
        return int(cur.lastrowid)

    def get(self, payment_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM supplier_payments WHERE payment_id=?", (int(payment_id),)
        ).fetchone()
        return dict(row) if row else None

    def list_payments(self, supplier_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT payment_id, supplier_id, account_id, reference_number,
                   CAST(amount AS REAL) AS amount, payment_method, payment_date, notes
            FROM supplier_payments
            WHERE supplier_id = ?
            ORDER BY DATE(payment_date) DESC, payment_id DESC
            """,
            (int(supplier_id),),
        ).fetchall()
        return [dict(r) for r in rows]
