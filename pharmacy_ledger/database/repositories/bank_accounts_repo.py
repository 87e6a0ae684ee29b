from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...constants import EPS
from .errors import NotFoundError, InsufficientFundsError


@dataclass
class BankAccount:
    account_id: int | None
    name: str
    account_type: str
    opening_balance: float = 0.0
    current_balance: float = 0.0
    total_deposits: float = 0.0
    total_withdrawals: float = 0.0
    account_number: str | None = None
    bank_name: str | None = None
    is_active: int = 1


_EDITABLE = (
    "name", "account_type", "account_number", "bank_name", "branch_name",
    "account_holder", "description",
)


class BankAccountsRepo:
    """
    Cash/bank balances.

    Every movement keeps  current_balance = opening_balance + total_deposits - total_withdrawals.
    Funds are only checked where a service asks for it (ensure_funds); plain
    credit/debit apply unconditionally and may drive the balance negative.
    No commit here; the caller controls the transaction.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Query ----------
    def get(self, account_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM bank_accounts WHERE account_id=?", (int(account_id),)
        ).fetchone()
        return dict(row) if row else None

    def require(self, account_id: int) -> dict:
        acc = self.get(account_id)
        if acc is None:
            raise NotFoundError("Account", account_id)
        return acc

    def list_accounts(self, active_only: bool = True) -> list[BankAccount]:
        sql = """
            SELECT account_id, name, account_type,
                   CAST(opening_balance AS REAL)   AS opening_balance,
                   CAST(current_balance AS REAL)   AS current_balance,
                   CAST(total_deposits AS REAL)    AS total_deposits,
                   CAST(total_withdrawals AS REAL) AS total_withdrawals,
                   account_number, bank_name, is_active
            FROM bank_accounts
        """
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY name"
        return [BankAccount(**dict(r)) for r in self.conn.execute(sql).fetchall()]

    def find_drift(self, tolerance: float = 1e-6) -> list[dict]:
        """Accounts whose balance no longer equals opening + deposits - withdrawals."""
        rows = self.conn.execute(
            """
            SELECT account_id, name,
                   CAST(current_balance AS REAL) AS current_balance,
                   CAST(opening_balance + total_deposits - total_withdrawals AS REAL) AS expected_balance
            FROM bank_accounts
            WHERE ABS(current_balance - (opening_balance + total_deposits - total_withdrawals)) > ?
            ORDER BY account_id
            """,
            (tolerance,),
        ).fetchall()
        return [dict(r) for r in rows]

    # ---------- Create / Update ----------
    def create(self, acc: BankAccount, **extra) -> int:
        """Opening balance seeds the current balance; counters start at zero."""
        cur = self.conn.execute(
            """
            INSERT INTO bank_accounts (
                name, account_type, account_number, bank_name, branch_name,
                account_holder, description, opening_balance, current_balance,
                total_deposits, total_withdrawals, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, 0, 1)
            """,
            (
                acc.name, acc.account_type, acc.account_number, acc.bank_name,
                extra.get("branch_name"), extra.get("account_holder"), extra.get("description"),
                float(acc.opening_balance), float(acc.opening_balance),
            ),
        )
        return int(cur.lastrowid)

    def update_details(self, account_id: int, data: dict) -> list[str]:
        """Descriptive fields only; balances move exclusively through credit/debit. Returns the columns written."""
        fields = [k for k in _EDITABLE if k in data]
        if not fields:
            return []
        assignments = ", ".join(f"{k}=?" for k in fields)
        self.conn.execute(
            f"UPDATE bank_accounts SET {assignments}, updated_at=CURRENT_TIMESTAMP WHERE account_id=?",
            (*[data[k] for k in fields], int(account_id)),
        )
        return fields

    def deactivate(self, account_id: int) -> None:
        self.conn.execute(
            "UPDATE bank_accounts SET is_active=0, updated_at=CURRENT_TIMESTAMP WHERE account_id=?",
            (int(account_id),),
        )

    # ---------- Balance movements ----------
    def ensure_funds(self, account_id: int, amount: float) -> dict:
        """
        Raise InsufficientFundsError if current_balance < amount.
        Used by payment flows (supplier payments, salaries) before any write.
        """
        acc = self.require(account_id)
        available = float(acc["current_balance"] or 0.0)
        if available + EPS < float(amount):
            raise InsufficientFundsError(acc["name"], available, float(amount))
        return acc

    def credit(self, account_id: int, amount: float) -> float:
        """Money in: current += amount, total_deposits += amount. Returns the new balance."""
        return self._move(account_id, +float(amount), deposits=float(amount), withdrawals=0.0)

    def debit(self, account_id: int, amount: float) -> float:
        """Money out: current -= amount, total_withdrawals += amount. Returns the new balance."""
        return self._move(account_id, -float(amount), deposits=0.0, withdrawals=float(amount))

    def reverse_debit(self, account_id: int, amount: float) -> float:
        """Undo a prior debit: money back in, total_withdrawals floored at zero."""
        acc = self.require(account_id)
        new_balance = float(acc["current_balance"] or 0.0) + float(amount)
        self.conn.execute(
            """
            UPDATE bank_accounts
               SET current_balance = ?,
                   total_withdrawals = MAX(0, total_withdrawals - ?),
                   updated_at = CURRENT_TIMESTAMP
             WHERE account_id = ?
            """,
            (new_balance, float(amount), int(account_id)),
        )
        return new_balance

    def reverse_credit(self, account_id: int, amount: float) -> float:
        """Undo a prior credit: money back out, total_deposits floored at zero."""
        acc = self.require(account_id)
        new_balance = float(acc["current_balance"] or 0.0) - float(amount)
        self.conn.execute(
            """
            UPDATE bank_accounts
               SET current_balance = ?,
                   total_deposits = MAX(0, total_deposits - ?),
                   updated_at = CURRENT_TIMESTAMP
             WHERE account_id = ?
            """,
            (new_balance, float(amount), int(account_id)),
        )
        return new_balance

    def _move(self, account_id: int, signed: float, *, deposits: float, withdrawals: float) -> float:
        acc = self.require(account_id)
        new_balance = float(acc["current_balance"] or 0.0) + signed
        self.conn.execute(
            """
            UPDATE bank_accounts
               SET current_balance = ?,
                   total_deposits = total_deposits + ?,
                   total_withdrawals = total_withdrawals + ?,
                   updated_at = CURRENT_TIMESTAMP
             WHERE account_id = ?
            """,
            (new_balance, deposits, withdrawals, int(account_id)),
        )
        return new_balance

