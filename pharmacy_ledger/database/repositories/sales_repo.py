from __future__ import annotations
from dataclasses import dataclass
import sqlite3
from typing import Dict, Iterable

from ...constants import SALE_COMPLETED
from ...utils.helpers import line_subtotal, document_total, money


@dataclass
class SaleHeader:
    customer_id: int | None
    account_id: int | None
    user_id: int | None
    paid_amount: float
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    payment_method: str = "cash"
    points_redeemed: int = 0
    invoice_number: str | None = None
    notes: str | None = None
    date: str | None = None
    # filled in by create_sale
    sale_id: int | None = None
    subtotal: float = 0.0
    total_amount: float = 0.0
    change_amount: float = 0.0
    status: str = SALE_COMPLETED


@dataclass
class SaleItem:
    product_id: int
    quantity: float
    unit_price: float
    discount_percent: float = 0.0
    tax_rate: float = 0.0
    product_name: str | None = None
    batch_number: str | None = None
    expiry_date: str | None = None
    item_id: int | None = None
    sale_id: int | None = None
    subtotal: float = 0.0


@dataclass
class SalesReturnHeader:
    sale_id: int
    account_id: int | None
    user_id: int | None
    refund_amount: float = 0.0
    tax_amount: float = 0.0
    reason: str | None = None
    notes: str | None = None
    return_number: str | None = None
    date: str | None = None
    customer_id: int | None = None
    return_id: int | None = None
    subtotal: float = 0.0
    total_amount: float = 0.0


@dataclass
class SalesReturnItem:
    product_id: int
    quantity: float
    unit_price: float = 0.0
    product_name: str | None = None
    item_id: int | None = None
    return_id: int | None = None
    subtotal: float = 0.0


class SalesRepo:
    """
    Sales, their items and the returns posted against them.

    - Totals are recalculated here from the items; caller-provided totals are ignored.
    - `sales.total_amount` is written once and never touched by returns; only
      `status` moves (see set_status).
    - No commit here; the service owns the transaction boundary.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def list_sales(self, start_date: str | None = None, end_date: str | None = None) -> list[dict]:
        where, params = [], []
        if start_date:
            where.append("DATE(s.created_at) >= DATE(?)")
            params.append(start_date)
        if end_date:
            where.append("DATE(s.created_at) <= DATE(?)")
            params.append(end_date)
        sql = """
          SELECT s.sale_id, s.invoice_number, s.created_at, s.customer_id,
                 c.name AS customer_name,
                 CAST(s.total_amount AS REAL) AS total_amount,
                 CAST(s.paid_amount AS REAL)  AS paid_amount,
                 s.status
          FROM sales s
          LEFT JOIN customers c ON c.customer_id = s.customer_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY s.created_at DESC, s.sale_id DESC"
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def get_header(self, sale_id: int) -> dict | None:
        row = self.conn.execute("SELECT * FROM sales WHERE sale_id=?", (int(sale_id),)).fetchone()
        return dict(row) if row else None

    def list_items(self, sale_id: int) -> list[dict]:
        sql = """
        SELECT item_id, sale_id, product_id, product_name,
               CAST(quantity AS REAL) AS quantity,
               CAST(unit_price AS REAL) AS unit_price,
               CAST(discount_percent AS REAL) AS discount_percent,
               CAST(subtotal AS REAL) AS subtotal,
               batch_number, expiry_date
        FROM sale_items
        WHERE sale_id=?
        ORDER BY item_id
        """
        return [dict(r) for r in self.conn.execute(sql, (int(sale_id),)).fetchall()]

    def sold_quantities(self, sale_id: int) -> Dict[int, float]:
        """product_id -> quantity sold on this sale (lines for the same product summed)."""
        rows = self.conn.execute(
            """
            SELECT product_id, SUM(CAST(quantity AS REAL)) AS qty
            FROM sale_items WHERE sale_id=? GROUP BY product_id
            """,
            (int(sale_id),),
        ).fetchall()
        return {int(r["product_id"]): float(r["qty"]) for r in rows}

    def returned_quantities(self, sale_id: int) -> Dict[int, float]:
        """product_id -> quantity returned across ALL returns of the sale."""
        rows = self.conn.execute(
            """
            SELECT ri.product_id, SUM(CAST(ri.quantity AS REAL)) AS qty
            FROM sales_return_items ri
            JOIN sales_returns r ON r.return_id = ri.return_id
            WHERE r.sale_id = ?
            GROUP BY ri.product_id
            """,
            (int(sale_id),),
        ).fetchall()
        return {int(r["product_id"]): float(r["qty"]) for r in rows}

    def returnable_quantities(self, sale_id: int) -> Dict[int, float]:
        """product_id -> quantity still returnable (clamped to >= 0)."""
        sold = self.sold_quantities(sale_id)
        returned = self.returned_quantities(sale_id)
        return {pid: max(0.0, qty - returned.get(pid, 0.0)) for pid, qty in sold.items()}

    def count_returns(self, sale_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM sales_returns WHERE sale_id=?", (int(sale_id),)
        ).fetchone()
        return int(row[0])

    def list_returns(self, sale_id: int) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM sales_returns WHERE sale_id=? ORDER BY return_id", (int(sale_id),)
        ).fetchall()
        return [dict(r) for r in rows]

    # ---------------------------------------------------------------------
    # WRITE: SALES
    # ---------------------------------------------------------------------
    def create_sale(self, header: SaleHeader, items: Iterable[SaleItem]) -> int:
        """
        - Recalculate line subtotals (percentage discount) and the header total
          (subtotal - discount_amount + tax_amount, floored at zero).
        - Insert header + items. `header.invoice_number` must already be set.
        """
        items_list = list(items)
        for it in items_list:
            it.subtotal = line_subtotal(it.quantity, it.unit_price, it.discount_percent)
        header.subtotal = money(sum(it.subtotal for it in items_list))
        header.total_amount = document_total(header.subtotal, header.discount_amount, header.tax_amount)
        header.change_amount = money(max(0.0, float(header.paid_amount) - header.total_amount))

        cur = self.conn.execute(
            """
            INSERT INTO sales (
                invoice_number, customer_id, account_id, user_id, subtotal, tax_amount,
                discount_amount, total_amount, paid_amount, change_amount, payment_method,
                points_redeemed, status, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            (
                header.invoice_number, header.customer_id, header.account_id, header.user_id,
                header.subtotal, float(header.tax_amount or 0.0), float(header.discount_amount or 0.0),
                header.total_amount, float(header.paid_amount), header.change_amount,
                header.payment_method, int(header.points_redeemed or 0), SALE_COMPLETED,
                header.notes, header.date,
            ),
        )
        header.sale_id = int(cur.lastrowid)
        header.status = SALE_COMPLETED

        for it in items_list:
            it.sale_id = header.sale_id
            cur = self.conn.execute(
                """
                INSERT INTO sale_items (
                    sale_id, product_id, product_name, quantity, unit_price,
                    discount_percent, tax_rate, subtotal, batch_number, expiry_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    it.sale_id, int(it.product_id), it.product_name, float(it.quantity),
                    float(it.unit_price), float(it.discount_percent or 0.0),
                    float(it.tax_rate or 0.0), it.subtotal, it.batch_number, it.expiry_date,
                ),
            )
            it.item_id = int(cur.lastrowid)
        return header.sale_id

    def set_status(self, sale_id: int, status: str) -> None:
        self.conn.execute("UPDATE sales SET status=? WHERE sale_id=?", (status, int(sale_id)))

    def delete_sale(self, sale_id: int) -> int:
        """Delete header (items cascade). Returns the number of item rows removed."""
        n = self.conn.execute(
            "SELECT COUNT(*) FROM sale_items WHERE sale_id=?", (int(sale_id),)
        ).fetchone()[0]
        self.conn.execute("DELETE FROM sales WHERE sale_id=?", (int(sale_id),))
        return int(n)

    # ---------------------------------------------------------------------
    # WRITE: RETURNS
    # ---------------------------------------------------------------------
    def create_return(self, header: SalesReturnHeader, items: Iterable[SalesReturnItem]) -> int:
        """
        Insert a return + its items. subtotal/total = sum(qty * unit_price) (+ tax);
        refund_amount is whatever the caller decided to pay back.
        """
        items_list = list(items)
        for it in items_list:
            it.subtotal = line_subtotal(it.quantity, it.unit_price)
        header.subtotal = money(sum(it.subtotal for it in items_list))
        header.total_amount = document_total(header.subtotal, 0.0, header.tax_amount)

        cur = self.conn.execute(
            """
            INSERT INTO sales_returns (
                return_number, sale_id, customer_id, account_id, user_id, subtotal,
                tax_amount, total_amount, refund_amount, reason, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            (
                header.return_number, int(header.sale_id), header.customer_id, header.account_id,
                header.user_id, header.subtotal, float(header.tax_amount or 0.0),
                header.total_amount, float(header.refund_amount or 0.0), header.reason,
                header.notes, header.date,
            ),
        )
        header.return_id = int(cur.lastrowid)

        for it in items_list:
            it.return_id = header.return_id
            cur = self.conn.execute(
                """
                INSERT INTO sales_return_items (return_id, product_id, product_name, quantity, unit_price, subtotal)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    it.return_id, int(it.product_id), it.product_name, float(it.quantity),
                    float(it.unit_price or 0.0), it.subtotal,
                ),
            )
            it.item_id = int(cur.lastrowid)
        return header.return_id
