from __future__ import annotations
from dataclasses import dataclass
import sqlite3
from typing import Iterable, Optional

from ...constants import EPS
from ...utils.helpers import line_subtotal, document_total, money


@dataclass
class PurchaseHeader:
    supplier_id: int
    account_id: int | None
    user_id: int | None
    paid_amount: float
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    invoice_number: str | None = None
    notes: str | None = None
    date: str | None = None
    # filled in by create_purchase
    purchase_id: int | None = None
    subtotal: float = 0.0
    total_amount: float = 0.0
    due_amount: float = 0.0
    payment_status: str = "pending"


@dataclass
class PurchaseItem:
    product_id: int
    quantity: float  # in packages when the product has units_per_package > 1
    unit_price: float
    units_per_package: int = 1  # factor at the time of purchase
    discount_percent: float = 0.0
    tax_rate: float = 0.0
    product_name: str | None = None
    batch_number: str | None = None
    expiry_date: str | None = None
    manufacture_date: str | None = None
    item_id: int | None = None
    purchase_id: int | None = None
    subtotal: float = 0.0


@dataclass
class PurchaseReturnHeader:
    purchase_id: int
    account_id: int | None
    user_id: int | None
    refund_amount: float = 0.0
    tax_amount: float = 0.0
    reason: str | None = None
    notes: str | None = None
    return_number: str | None = None
    date: str | None = None
    supplier_id: int | None = None
    return_id: int | None = None
    subtotal: float = 0.0
    total_amount: float = 0.0


@dataclass
class PurchaseReturnItem:
    product_id: int
    quantity: float  # base units
    unit_price: float = 0.0
    product_name: str | None = None
    item_id: int | None = None
    return_id: int | None = None
    subtotal: float = 0.0


def payment_status(total_amount: float, paid_amount: float) -> str:
    paid = float(paid_amount or 0.0)
    if paid <= EPS:
        return "pending"
    if paid + EPS >= float(total_amount):
        return "paid"
    return "partial"


class PurchasesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Query ----------
    def list_purchases(self, supplier_id: int | None = None) -> list[dict]:
        sql = """
        SELECT p.purchase_id, p.invoice_number, p.created_at, p.supplier_id,
               s.name AS supplier_name,
               CAST(p.total_amount AS REAL) AS total_amount,
               CAST(p.paid_amount AS REAL)  AS paid_amount,
               CAST(p.due_amount AS REAL)   AS due_amount,
               p.payment_status
        FROM purchases p
        JOIN suppliers s ON s.supplier_id = p.supplier_id
        """
        params: list[object] = []
        if supplier_id is not None:
            sql += " WHERE p.supplier_id = ?"
            params.append(int(supplier_id))
        sql += " ORDER BY p.created_at DESC, p.purchase_id DESC"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def get_header(self, purchase_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM purchases WHERE purchase_id=?", (int(purchase_id),)
        ).fetchone()
        return dict(row) if row else None

    def list_items(self, purchase_id: int) -> list[dict]:
        """Items with the package factor recorded when the purchase was made."""
        sql = """
        SELECT pi.item_id, pi.purchase_id, pi.product_id, pi.product_name,
               CAST(pi.quantity AS REAL)   AS quantity,
               CAST(pi.unit_price AS REAL) AS unit_price,
               CAST(pi.subtotal AS REAL)   AS subtotal,
               pi.batch_number, pi.expiry_date, pi.manufacture_date,
               pi.units_per_package
        FROM purchase_items pi
        WHERE pi.purchase_id=?
        ORDER BY pi.item_id
        """
        return [dict(r) for r in self.conn.execute(sql, (int(purchase_id),)).fetchall()]

    def purchased_product_ids(self, purchase_id: int) -> set[int]:
        rows = self.conn.execute(
            "SELECT DISTINCT product_id FROM purchase_items WHERE purchase_id=?", (int(purchase_id),)
        ).fetchall()
        return {int(r[0]) for r in rows}

    def count_returns(self, purchase_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM purchase_returns WHERE purchase_id=?", (int(purchase_id),)
        ).fetchone()
        return int(row[0])

    # ---------- Create ----------
    def create_purchase(self, header: PurchaseHeader, items: Iterable[PurchaseItem]) -> int:
        """
        - Recalculate totals from items (percentage line discount), minus
          discount_amount, plus tax_amount.
        - Insert header with due_amount and payment_status derived from paid_amount.
        - Insert purchase_items (quantities as entered, i.e. in packages).
        - No commit here; caller controls the transaction boundary.
        """
        items_list = list(items)

        # 1) Totals
        for it in items_list:
            it.subtotal = line_subtotal(it.quantity, it.unit_price, it.discount_percent)
        header.subtotal = money(sum(it.subtotal for it in items_list))
        header.total_amount = document_total(header.subtotal, header.discount_amount, header.tax_amount)
        paid = float(header.paid_amount or 0.0)
        header.due_amount = money(max(0.0, header.total_amount - paid))
        header.payment_status = payment_status(header.total_amount, paid)

        # 2) Header
        cur = self.conn.execute(
            """
            INSERT INTO purchases (
                invoice_number, supplier_id, account_id, user_id, subtotal, tax_amount,
                discount_amount, total_amount, paid_amount, due_amount, payment_status,
                status, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'received', ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            (
                header.invoice_number, int(header.supplier_id), header.account_id, header.user_id,
                header.subtotal, float(header.tax_amount or 0.0), float(header.discount_amount or 0.0),
                header.total_amount, paid, header.due_amount, header.payment_status,
                header.notes, header.date,
            ),
        )
        header.purchase_id = int(cur.lastrowid)

        # 3) Items
        for it in items_list:
            it.purchase_id = header.purchase_id
            cur = self.conn.execute(
                """
                INSERT INTO purchase_items (
                    purchase_id, product_id, product_name, quantity, units_per_package, unit_price,
                    discount_percent, tax_rate, subtotal,
                    batch_number, expiry_date, manufacture_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    it.purchase_id, int(it.product_id), it.product_name, float(it.quantity),
                    int(it.units_per_package or 1),
                    float(it.unit_price), float(it.discount_percent or 0.0),
                    float(it.tax_rate or 0.0), it.subtotal,
                    it.batch_number, it.expiry_date, it.manufacture_date,
                ),
            )
            it.item_id = int(cur.lastrowid)
        return header.purchase_id

    # ---------- Returns ----------
    def create_return(self, header: PurchaseReturnHeader, items: Iterable[PurchaseReturnItem]) -> int:
        """
        Insert a purchase return + items. Totals = sum(qty * unit_price) (+ tax).
        Quantities are base units, stored as given.
        """
        items_list = list(items)
        for it in items_list:
            it.subtotal = line_subtotal(it.quantity, it.unit_price)
        header.subtotal = money(sum(it.subtotal for it in items_list))
        header.total_amount = document_total(header.subtotal, 0.0, header.tax_amount)

        cur = self.conn.execute(
            """
            INSERT INTO purchase_returns (
                return_number, purchase_id, supplier_id, account_id, user_id, subtotal,
                tax_amount, total_amount, refund_amount, reason, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            (
                header.return_number, int(header.purchase_id), int(header.supplier_id),
                header.account_id, header.user_id, header.subtotal,
                float(header.tax_amount or 0.0), header.total_amount,
                float(header.refund_amount or 0.0), header.reason, header.notes, header.date,
            ),
        )
        header.return_id = int(cur.lastrowid)

        for it in items_list:
            it.return_id = header.return_id
            cur = self.conn.execute(
                """
                INSERT INTO purchase_return_items (return_id, product_id, product_name, quantity, unit_price, subtotal)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    it.return_id, int(it.product_id), it.product_name, float(it.quantity),
                    float(it.unit_price or 0.0), it.subtotal,
                ),
            )
            it.item_id = int(cur.lastrowid)
        return header.return_id

    def list_returns(self, purchase_id: int) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM purchase_returns WHERE purchase_id=? ORDER BY return_id", (int(purchase_id),)
        ).fetchall()
        return [dict(r) for r in rows]

    # ---------- Hard delete ----------
    def delete_purchase(self, purchase_id: int) -> int:
        """
        Delete header; purchase_items cascade. Ledger rows are removed by
        SuppliersRepo.reverse_purchase. Returns the number of items deleted.
        No implicit commit; caller controls transaction.
        """
        n = self.conn.execute(
            "SELECT COUNT(*) FROM purchase_items WHERE purchase_id=?", (int(purchase_id),)
        ).fetchone()[0]
        self.conn.execute("DELETE FROM purchases WHERE purchase_id=?", (int(purchase_id),))
        return int(n)

    def get_purchase_totals_for_supplier(
        self,
        supplier_id: int,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> dict:
        sql = [
            """
            SELECT
              COALESCE(SUM(CAST(p.total_amount AS REAL)), 0.0) AS purchases_total,
              COALESCE(SUM(CAST(p.paid_amount AS REAL)), 0.0)  AS paid_total,
              COALESCE(SUM(CAST(p.due_amount AS REAL)), 0.0)   AS due_total
            FROM purchases p
            WHERE p.supplier_id = ?
            """
        ]
        params: list[object] = [int(supplier_id)]
        if date_from:
            sql.append("AND DATE(p.created_at) >= DATE(?)")
            params.append(date_from)
        if date_to:
            sql.append("AND DATE(p.created_at) <= DATE(?)")
            params.append(date_to)
        row = self.conn.execute("\n".join(sql), params).fetchone()
        return {
            "purchases_total": float(row["purchases_total"]),
            "paid_total": float(row["paid_total"]),
            "due_total": float(row["due_total"]),
        }
