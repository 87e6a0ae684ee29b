from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from .errors import NotFoundError, ValidationError


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str | None
    email: str | None
    address: str | None
    loyalty_points: int = 0
    total_purchases: float = 0.0


_COLUMNS = (
    "customer_id, name, phone, email, address, loyalty_points, "
    "CAST(total_purchases AS REAL) AS total_purchases"
)


class CustomersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        s = s.strip()
        return s or None

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    # ---- Queries ----------------------------------------------------------

    def list_customers(self, active_only: bool = True) -> list[Customer]:
        sql = f"SELECT {_COLUMNS} FROM customers"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY customer_id DESC"
        return [Customer(**dict(r)) for r in self.conn.execute(sql).fetchall()]

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM customers WHERE customer_id=?",
            (int(customer_id),),
        ).fetchone()
        return Customer(**dict(r)) if r else None

    def require(self, customer_id: int) -> Customer:
        c = self.get(customer_id)
        if c is None:
            raise NotFoundError("Customer", customer_id)
        return c

    # ---- Mutations --------------------------------------------------------

    def create(
        self,
        name: str,
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
        loyalty_points: int = 0,
    ) -> int:
        self._ensure_non_empty(name, "Name")
        if int(loyalty_points) < 0:
            raise ValidationError("Loyalty points cannot be negative.")
        cur = self.conn.execute(
            "INSERT INTO customers(name, phone, email, address, loyalty_points) VALUES (?,?,?,?,?)",
            (
                self._normalize_text(name),
                self._normalize_text(phone),
                self._normalize_text(email),
                self._normalize_text(address),
                int(loyalty_points),
            ),
        )
        return int(cur.lastrowid)

    def set_loyalty(self, customer_id: int, loyalty_points: int, total_purchases: float) -> None:
        """Overwrite both loyalty aggregates; callers compute the new values."""
        self.conn.execute(
            """
            UPDATE customers
               SET loyalty_points = ?, total_purchases = ?, updated_at = CURRENT_TIMESTAMP
             WHERE customer_id = ?
            """,
            (int(loyalty_points), float(total_purchases), int(customer_id)),
        )

    def sales_total(self, customer_id: int) -> float:
        row = self.conn.execute(
            "SELECT COALESCE(SUM(CAST(total_amount AS REAL)), 0.0) FROM sales WHERE customer_id=?",
            (int(customer_id),),
        ).fetchone()
        return float(row[0])
