# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own fresh SQLite file under tmp_path
#   (schema + default seed applied by get_connection)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - Provide handy ids + current_user fixtures
# - `invariants` checks the account/ledger/stock invariants in one call
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3
from typing import Optional

import pytest

from pharmacy_ledger.database import get_connection
from pharmacy_ledger.database.repositories import (
    BankAccount,
    BankAccountsRepo,
    CustomersRepo,
    PayrollRepo,
    Product,
    ProductsRepo,
    Supplier,
    SuppliersRepo,
)


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture()
def conn(db_path):
    con = get_connection(db_path)
    try:
        yield con
    finally:
        con.close()


# ---------- Seeded entities ----------
@pytest.fixture()
def ids(conn: sqlite3.Connection) -> dict:
    """
    Common entities used throughout the tests:
      cash      'Cash Drawer'  opening 500
      bank      'Meezan Bank'  opening 1000
      supplier  'Supplier X'   no opening balance
      para      tablets, bought in boxes of 10 (cost 15/box), reorder at 20
      syrup     bottles, bought loose
      customer  20 loyalty points
    """
    accounts = BankAccountsRepo(conn)
    suppliers = SuppliersRepo(conn)
    products = ProductsRepo(conn)
    return {
        "user_ops": PayrollRepo(conn).create_user("ops", "Ops User", role="admin"),
        "cash": accounts.create(BankAccount(None, "Cash Drawer", "cash", opening_balance=500.0)),
        "bank": accounts.create(
            BankAccount(None, "Meezan Bank", "bank", opening_balance=1000.0, bank_name="Meezan")
        ),
        "supplier": suppliers.create(
            Supplier(None, "Supplier X", "SUP-X"), date="2025-01-01", created_by=None
        ),
        "para": products.create(
            Product(
                None, "Paracetamol 500mg", "PARA-500", unit="tablet", package_unit="box",
                units_per_package=10, reorder_level=20, selling_price=2.0, cost_price=15.0,
            )
        ),
        "syrup": products.create(
            Product(None, "Cough Syrup", "SYR-100", unit="bottle", selling_price=50.0, cost_price=30.0)
        ),
        "customer": CustomersRepo(conn).create("Regular Customer", phone="0300-1111111", loyalty_points=20),
    }


@pytest.fixture()
def current_user(ids: dict) -> Optional[dict]:
    return {"user_id": int(ids["user_ops"]), "username": "ops", "role": "admin"}


# ---------- Helpers ----------
def one(conn: sqlite3.Connection, sql: str, *params):
    r = conn.execute(sql, params).fetchone()
    return None if r is None else r[0]


@pytest.fixture()
def invariants(conn: sqlite3.Connection):
    """Call to assert every consistency invariant of the store at once."""
    def check():
        assert BankAccountsRepo(conn).find_drift() == []
        assert SuppliersRepo(conn).reconcile() == []
        assert one(conn, "SELECT COUNT(*) FROM inventory WHERE quantity < 0") == 0
        # payable = opening + current = sum over every ledger row
        for s in conn.execute("SELECT supplier_id, opening_balance, current_balance FROM suppliers"):
            total = one(
                conn,
                "SELECT COALESCE(SUM(debit - credit), 0) FROM supplier_ledger_entries WHERE supplier_id=?",
                s["supplier_id"],
            )
            assert s["opening_balance"] + s["current_balance"] == pytest.approx(total)
    return check


@pytest.fixture()
def scalar(conn: sqlite3.Connection):
    """scalar(sql, *params) -> first column of the first row (or None)."""
    return lambda sql, *params: one(conn, sql, *params)
