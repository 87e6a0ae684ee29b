from __future__ import annotations
from dataclasses import dataclass
import sqlite3
from typing import Optional

from ...constants import (
    LEDGER_OPENING,
    LEDGER_PURCHASE,
    LEDGER_PAYMENT,
    LEDGER_ADJUSTMENT,
)
from .errors import NotFoundError


@dataclass
class Supplier:
    supplier_id: int | None
    name: str
    code: str
    contact_person: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    opening_balance: float = 0.0
    current_balance: float = 0.0
    total_purchases: float = 0.0
    total_payments: float = 0.0


_EDITABLE = (
    "name", "code", "contact_person", "phone", "email", "address",
    "tax_number", "credit_limit", "credit_days",
)


class SuppliersRepo:
    """
    Suppliers + their append-only payable ledger.

    Sign convention (payable = what we owe):
      debit  (+) purchases, positive opening balances, upward adjustments
      credit (-) payments, negative opening balances, downward adjustments

    current_balance carries every posting made since creation; opening_balance
    never moves. Each ledger row snapshots opening_balance + current_balance as
    it stands right after that row, computed inside the same transaction.

    No commit here; services own the transaction boundary.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Query ----------
    def get(self, supplier_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM suppliers WHERE supplier_id=?", (int(supplier_id),)
        ).fetchone()
        return dict(row) if row else None

    def require(self, supplier_id: int) -> dict:
        s = self.get(supplier_id)
        if s is None:
            raise NotFoundError("Supplier", supplier_id)
        return s

    def list_suppliers(self, active_only: bool = True) -> list[Supplier]:
        sql = """
            SELECT supplier_id, name, code, contact_person, phone, email, address,
                   CAST(opening_balance AS REAL) AS opening_balance,
                   CAST(current_balance AS REAL) AS current_balance,
                   CAST(total_purchases AS REAL) AS total_purchases,
                   CAST(total_payments AS REAL)  AS total_payments
            FROM suppliers
        """
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY name"
        return [Supplier(**dict(r)) for r in self.conn.execute(sql).fetchall()]

    def payable(self, supplier_id: int) -> float:
        """Total owed to the supplier: opening_balance + current_balance."""
        s = self.require(supplier_id)
        return float(s["opening_balance"] or 0.0) + float(s["current_balance"] or 0.0)

    def list_ledger(
        self,
        supplier_id: int,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[dict]:
        sql = [
            "SELECT * FROM supplier_ledger_entries",
            "WHERE supplier_id = ?",
        ]
        params: list[object] = [int(supplier_id)]
        if start_date:
            sql.append("AND DATE(transaction_date) >= DATE(?)")
            params.append(start_date)
        if end_date:
            sql.append("AND DATE(transaction_date) <= DATE(?)")
            params.append(end_date)
        sql.append("ORDER BY entry_id")
        return [dict(r) for r in self.conn.execute("\n".join(sql), params).fetchall()]

    def reconcile(self, supplier_id: int | None = None, tolerance: float = 1e-6) -> list[dict]:
        """
        Suppliers whose current_balance differs from the sum of their
        non-opening ledger rows (debit - credit). Empty list == consistent.
        """
        sql = """
            SELECT s.supplier_id, s.name,
                   CAST(s.current_balance AS REAL) AS current_balance,
                   COALESCE((
                       SELECT SUM(CAST(e.debit AS REAL) - CAST(e.credit AS REAL))
                       FROM supplier_ledger_entries e
                       WHERE e.supplier_id = s.supplier_id
                         AND e.type <> 'opening_balance'
                   ), 0.0) AS ledger_sum
            FROM suppliers s
        """
        params: list[object] = []
        if supplier_id is not None:
            sql += " WHERE s.supplier_id = ?"
            params.append(int(supplier_id))
        out = []
        for r in self.conn.execute(sql, params).fetchall():
            if abs(float(r["current_balance"]) - float(r["ledger_sum"])) > tolerance:
                out.append(dict(r))
        return out

    # ---------- Create / Update ----------
    def create(
        self,
        supplier: Supplier,
        *,
        date: str,
        created_by: Optional[int],
        **extra,
    ) -> int:
        """
        Insert a supplier with current_balance = 0 (opening_balance is kept apart)
        and, when the opening balance is non-zero, its one-off opening ledger row.
        """
        opening = float(supplier.opening_balance or 0.0)
        cur = self.conn.execute(
            """
            INSERT INTO suppliers (
                name, code, contact_person, phone, email, address, tax_number,
                opening_balance, current_balance, total_purchases, total_payments,
                credit_limit, credit_days, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, 0, 0, ?, ?, 1)
            """,
            (
                supplier.name, supplier.code, supplier.contact_person, supplier.phone,
                supplier.email, supplier.address, extra.get("tax_number"), opening,
                float(extra.get("credit_limit") or 0.0), int(extra.get("credit_days") or 0),
            ),
        )
        supplier_id = int(cur.lastrowid)

        if opening != 0:
            self._insert_entry(
                supplier_id,
                entry_type=LEDGER_OPENING,
                debit=opening if opening > 0 else 0.0,
                credit=abs(opening) if opening < 0 else 0.0,
                balance=opening,
                reference_table=None,
                reference_id=None,
                reference_number="OPENING",
                description="Opening Balance",
                date=date,
                created_by=created_by,
            )
        return supplier_id

    def update_details(self, supplier_id: int, data: dict) -> list[str]:
        """Descriptive fields only; balances and totals belong to the ledger. Returns the columns written."""
        fields = [k for k in _EDITABLE if k in data]
        if not fields:
            return []
        assignments = ", ".join(f"{k}=?" for k in fields)
        self.conn.execute(
            f"UPDATE suppliers SET {assignments}, updated_at=CURRENT_TIMESTAMP WHERE supplier_id=?",
            (*[data[k] for k in fields], int(supplier_id)),
        )
        return fields

    def deactivate(self, supplier_id: int) -> None:
        self.conn.execute(
            "UPDATE suppliers SET is_active=0, updated_at=CURRENT_TIMESTAMP WHERE supplier_id=?",
            (int(supplier_id),),
        )

    # ---------- Ledger postings ----------
    def record_purchase(
        self,
        supplier_id: int,
        purchase_id: int,
        invoice_number: str,
        total_amount: float,
        paid_amount: float,
        *,
        date: str,
        created_by: Optional[int],
        notes: Optional[str] = None,
    ) -> list[int]:
        """
        Debit the purchase total; if something was paid up front, credit it in a
        second row pointing at the same purchase.
        Aggregates: current += total - paid, total_purchases += total, total_payments += paid.
        """
        total = float(total_amount)
        paid = float(paid_amount or 0.0)
        self.conn.execute(
            "UPDATE suppliers SET total_purchases = total_purchases + ?, updated_at=CURRENT_TIMESTAMP WHERE supplier_id=?",
            (total, int(supplier_id)),
        )
        ids = [
            self._post(
                supplier_id,
                entry_type=LEDGER_PURCHASE,
                debit=total,
                credit=0.0,
                reference_table="purchases",
                reference_id=purchase_id,
                reference_number=invoice_number,
                description=f"Purchase: {notes or 'Goods purchased'}",
                date=date,
                created_by=created_by,
            )
        ]
        if paid > 0:
            self.conn.execute(
                "UPDATE suppliers SET total_payments = total_payments + ? WHERE supplier_id=?",
                (paid, int(supplier_id)),
            )
            ids.append(
                self._post(
                    supplier_id,
                    entry_type=LEDGER_PAYMENT,
                    debit=0.0,
                    credit=paid,
                    reference_table="purchases",
                    reference_id=purchase_id,
                    reference_number=invoice_number,
                    description=f"Payment on purchase {invoice_number}",
                    date=date,
                    created_by=created_by,
                )
            )
        return ids

    def record_payment(
        self,
        supplier_id: int,
        payment_id: int,
        amount: float,
        *,
        reference_number: str,
        date: str,
        created_by: Optional[int],
        notes: Optional[str] = None,
    ) -> int:
        """Credit a standalone payment. Funds are checked by the caller beforehand."""
        amt = float(amount)
        self.conn.execute(
            "UPDATE suppliers SET total_payments = total_payments + ?, updated_at=CURRENT_TIMESTAMP WHERE supplier_id=?",
            (amt, int(supplier_id)),
        )
        return self._post(
            supplier_id,
            entry_type=LEDGER_PAYMENT,
            debit=0.0,
            credit=amt,
            reference_table="supplier_payments",
            reference_id=payment_id,
            reference_number=reference_number,
            description=f"Payment: {notes or 'Supplier payment'}",
            date=date,
            created_by=created_by,
        )

    def record_adjustment(
        self,
        supplier_id: int,
        amount: float,
        *,
        reference_number: str,
        description: str,
        date: str,
        created_by: Optional[int],
    ) -> int:
        """Manual correction; positive raises the payable, negative lowers it."""
        amt = float(amount)
        return self._post(
            supplier_id,
            entry_type=LEDGER_ADJUSTMENT,
            debit=amt if amt > 0 else 0.0,
            credit=abs(amt) if amt < 0 else 0.0,
            reference_table=None,
            reference_id=None,
            reference_number=reference_number,
            description=description,
            date=date,
            created_by=created_by,
        )

    def reverse_purchase(self, purchase_id: int) -> int:
        """
        Undo record_purchase for a purchase that is being deleted:
          - delete every ledger row referencing it
          - total_purchases -= total, total_payments -= paid (floored at zero)
          - current_balance -= (total - paid)
        Returns the number of ledger rows removed.
        """
        hdr = self.conn.execute(
            """
            SELECT supplier_id,
                   CAST(total_amount AS REAL) AS total_amount,
                   CAST(paid_amount AS REAL)  AS paid_amount
            FROM purchases WHERE purchase_id=?
            """,
            (int(purchase_id),),
        ).fetchone()
        if not hdr:
            raise NotFoundError("Purchase", purchase_id)

        total = float(hdr["total_amount"])
        paid = float(hdr["paid_amount"] or 0.0)
        cur = self.conn.execute(
            "DELETE FROM supplier_ledger_entries WHERE reference_table='purchases' AND reference_id=?",
            (int(purchase_id),),
        )
        self.conn.execute(
            """
            UPDATE suppliers
               SET total_purchases = MAX(0, total_purchases - ?),
                   total_payments  = MAX(0, total_payments - ?),
                   current_balance = current_balance - ?,
                   updated_at = CURRENT_TIMESTAMP
             WHERE supplier_id = ?
            """,
            (total, paid, total - paid, int(hdr["supplier_id"])),
        )
        return int(cur.rowcount)

    # ---------- Internals ----------
    def _post(
        self,
        supplier_id: int,
        *,
        entry_type: str,
        debit: float,
        credit: float,
        reference_table: Optional[str],
        reference_id: Optional[int],
        reference_number: str,
        description: str,
        date: str,
        created_by: Optional[int],
    ) -> int:
        """Move current_balance by (debit - credit), then append the row with the new payable."""
        self.conn.execute(
            "UPDATE suppliers SET current_balance = current_balance + ? WHERE supplier_id=?",
            (float(debit) - float(credit), int(supplier_id)),
        )
        return self._insert_entry(
            supplier_id,
            entry_type=entry_type,
            debit=debit,
            credit=credit,
            balance=self.payable(supplier_id),
            reference_table=reference_table,
            reference_id=reference_id,
            reference_number=reference_number,
            description=description,
            date=date,
            created_by=created_by,
        )

    def _insert_entry(
        self,
        supplier_id: int,
        *,
        entry_type: str,
        debit: float,
        credit: float,
        balance: float,
        reference_table: Optional[str],
        reference_id: Optional[int],
        reference_number: str,
        description: str,
        date: str,
        created_by: Optional[int],
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO supplier_ledger_entries (
                supplier_id, type, reference_table, reference_id, reference_number,
                description, debit, credit, balance, transaction_date, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(supplier_id), entry_type, reference_table, reference_id, reference_number,
                description, float(debit), float(credit), float(balance), date, created_by,
            ),
        )
        return int(cur.lastrowid)
