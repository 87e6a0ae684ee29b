from __future__ import annotations
from dataclasses import dataclass
import sqlite3
from typing import Optional

from .errors import NotFoundError


@dataclass
class Salary:
    user_id: int
    basic_salary: float
    effective_from: str
    allowances: float = 0.0
    deductions: float = 0.0
    payment_frequency: str = "monthly"
    notes: str | None = None
    created_by: int | None = None
    salary_id: int | None = None

    @property
    def net_salary(self) -> float:
        return float(self.basic_salary) + float(self.allowances or 0.0) - float(self.deductions or 0.0)


@dataclass
class SalaryPayment:
    user_id: int
    payment_date: str
    pay_period_start: str
    pay_period_end: str
    basic_amount: float
    account_id: int | None
    allowances: float = 0.0
    deductions: float = 0.0
    bonuses: float = 0.0
    payment_method: str = "cash"
    salary_id: int | None = None
    transaction_reference: str | None = None
    notes: str | None = None
    paid_by: int | None = None
    payment_id: int | None = None

    @property
    def total_amount(self) -> float:
        return (
            float(self.basic_amount)
            + float(self.allowances or 0.0)
            + float(self.bonuses or 0.0)
            - float(self.deductions or 0.0)
        )


class PayrollRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Users ----------
    def get_user(self, user_id: int) -> Optional[dict]:
        row = self.conn.execute(
            "SELECT user_id, username, full_name, is_active FROM users WHERE user_id=?",
            (int(user_id),),
        ).fetchone()
        return dict(row) if row else None

    def require_user(self, user_id: int) -> dict:
        u = self.get_user(user_id)
        if u is None:
            raise NotFoundError("User", user_id)
        return u

    def create_user(self, username: str, full_name: str, role: str = "user", email: str | None = None) -> int:
        cur = self.conn.execute(
            "INSERT INTO users(username, full_name, email, role, is_active) VALUES (?, ?, ?, ?, 1)",
            (username, full_name, email, role),
        )
        return int(cur.lastrowid)

    # ---------- Salaries ----------
    def create_salary(self, s: Salary) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO user_salaries (
                user_id, basic_salary, allowances, deductions, net_salary,
                payment_frequency, notes, effective_from, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(s.user_id), float(s.basic_salary), float(s.allowances or 0.0),
                float(s.deductions or 0.0), s.net_salary, s.payment_frequency,
                s.notes, s.effective_from, s.created_by,
            ),
        )
        s.salary_id = int(cur.lastrowid)
        return s.salary_id

    def current_salary(self, user_id: int) -> Optional[dict]:
        """Latest salary record by effective date."""
        row = self.conn.execute(
            """
            SELECT * FROM user_salaries
            WHERE user_id = ?
            ORDER BY DATE(effective_from) DESC, salary_id DESC
            LIMIT 1
            """,
            (int(user_id),),
        ).fetchone()
        return dict(row) if row else None

    # ---------- Payments ----------
    def record_payment(self, p: SalaryPayment) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO salary_payments (
                user_id, salary_id, payment_date, pay_period_start, pay_period_end,
                basic_amount, allowances, deductions, bonuses, total_amount,
                payment_method, account_id, transaction_reference, notes, status, paid_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'paid', ?)
            """,
            (
                int(p.user_id), p.salary_id, p.payment_date, p.pay_period_start, p.pay_period_end,
                float(p.basic_amount), float(p.allowances or 0.0), float(p.deductions or 0.0),
                float(p.bonuses or 0.0), p.total_amount, p.payment_method, p.account_id,
                p.transaction_reference, p.notes, p.paid_by,
            ),
        )
        p.payment_id = int(cur.lastrowid)
        return p.payment_id

    def list_payments(self, user_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT payment_id, user_id, payment_date, pay_period_start, pay_period_end,
                   CAST(total_amount AS REAL) AS total_amount, payment_method,
                   account_id, transaction_reference, status
            FROM salary_payments
            WHERE user_id = ?
            ORDER BY DATE(payment_date) DESC, payment_id DESC
            """,
            (int(user_id),),
        ).fetchall()
        return [dict(r) for r in rows]
