import sqlite3

import pytest

from pharmacy_ledger.database.repositories import (
    BankAccountsRepo,
    ConstraintViolationError,
    InsufficientFundsError,
    NotFoundError,
    SuppliersRepo,
    ValidationError,
)
from pharmacy_ledger.modules.vendor import SupplierService


@pytest.fixture()
def owed(conn, ids, current_user):
    """Supplier with an opening payable of 100."""
    return SupplierService(conn, current_user).create_supplier(
        {"name": "Owed Pharma", "code": "OWED", "opening_balance": 100, "date": "2025-01-01"}
    )


def test_opening_balance_row(conn, owed, invariants):
    repo = SuppliersRepo(conn)
    s = repo.get(owed)
    assert s["opening_balance"] == 100
    assert s["current_balance"] == 0
    assert repo.payable(owed) == 100

    [row] = repo.list_ledger(owed)
    assert row["type"] == "opening_balance"
    assert row["reference_number"] == "OPENING"
    assert row["description"] == "Opening Balance"
    assert (row["debit"], row["credit"], row["balance"]) == (100, 0, 100)
    invariants()


def test_negative_opening_balance_is_a_credit(conn, ids):
    svc = SupplierService(conn)
    sid = svc.create_supplier({"name": "Advance Paid", "code": "ADV", "opening_balance": "-30"})

    [row] = svc.list_ledger(sid)
    assert (row["debit"], row["credit"], row["balance"]) == (0, 30, -30)


def test_zero_opening_balance_writes_no_row(conn, ids):
    assert SuppliersRepo(conn).list_ledger(ids["supplier"]) == []


def test_supplier_payment(conn, ids, owed, current_user, invariants):
    svc = SupplierService(conn, current_user)
    result = svc.record_supplier_payment(
        {"supplier_id": owed, "account_id": ids["cash"], "amount": 40, "payment_date": "2025-02-01"}
    )

    assert result["balance"] == 60
    assert result["reference_number"] == "SP20250201-0001"

    cash = BankAccountsRepo(conn).get(ids["cash"])
    assert cash["current_balance"] == 460
    assert cash["total_withdrawals"] == 40

    s = SuppliersRepo(conn).get(owed)
    assert s["current_balance"] == -40
    assert s["total_payments"] == 40

    last = svc.list_ledger(owed)[-1]
    assert last["type"] == "payment"
    assert last["reference_table"] == "supplier_payments"
    assert last["reference_id"] == result["payment_id"]
    assert (last["credit"], last["balance"]) == (40, 60)

    assert svc.payments.get(result["payment_id"])["account_id"] == ids["cash"]
    invariants()


def test_payment_insufficient_funds_writes_nothing(conn, ids, owed, scalar, invariants):
    svc = SupplierService(conn)
    with pytest.raises(InsufficientFundsError):
        svc.record_supplier_payment({"supplier_id": owed, "account_id": ids["cash"], "amount": 501})

    assert scalar("SELECT COUNT(*) FROM supplier_payments") == 0
    assert scalar("SELECT COUNT(*) FROM supplier_ledger_entries WHERE supplier_id=?", owed) == 1
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 500
    invariants()


def test_payment_validation(conn, ids, owed):
    svc = SupplierService(conn)
    with pytest.raises(ValidationError):
        svc.record_supplier_payment({"supplier_id": owed, "account_id": ids["cash"], "amount": 0})
    with pytest.raises(ValidationError):
        svc.record_supplier_payment({"supplier_id": owed, "amount": 10})
    with pytest.raises(NotFoundError):
        svc.record_supplier_payment({"supplier_id": 9999, "account_id": ids["cash"], "amount": 10})


def test_ledger_rows_are_append_only(conn, owed):
    with pytest.raises(sqlite3.DatabaseError):
        conn.execute("UPDATE supplier_ledger_entries SET debit = 0 WHERE supplier_id=?", (owed,))
    assert SuppliersRepo(conn).list_ledger(owed)[0]["debit"] == 100


def test_ledger_adjustment(conn, owed, current_user, invariants):
    svc = SupplierService(conn, current_user)
    svc.record_ledger_adjustment({"supplier_id": owed, "amount": 25, "description": "Price correction"})
    svc.record_ledger_adjustment({"supplier_id": owed, "amount": -5, "description": "Rounding"})

    rows = svc.list_ledger(owed)
    assert [(r["type"], r["debit"], r["credit"], r["balance"]) for r in rows[1:]] == [
        ("adjustment", 25, 0, 125),
        ("adjustment", 0, 5, 120),
    ]
    invariants()

    with pytest.raises(ValidationError):
        svc.record_ledger_adjustment({"supplier_id": owed, "amount": 0, "description": "Nothing"})
    with pytest.raises(ValidationError):
        svc.record_ledger_adjustment({"supplier_id": owed, "amount": 10})


def test_reconcile_detects_drift(conn, ids, owed):
    svc = SupplierService(conn)
    assert svc.reconcile() == []

    conn.execute("UPDATE suppliers SET current_balance = 999 WHERE supplier_id=?", (owed,))

    [drift] = svc.reconcile()
    assert drift["supplier_id"] == owed
    assert drift["ledger_sum"] == 0


def test_list_ledger_date_filter(conn, owed):
    svc = SupplierService(conn)
    svc.record_ledger_adjustment({"supplier_id": owed, "amount": 10, "description": "Feb", "date": "2025-02-10"})
    svc.record_ledger_adjustment({"supplier_id": owed, "amount": 10, "description": "Mar", "date": "2025-03-10"})

    feb = svc.list_ledger(owed, start_date="2025-02-01", end_date="2025-02-28")
    assert [r["description"] for r in feb] == ["Feb"]
    assert len(svc.list_ledger(owed, start_date="2025-02-01")) == 2
    assert len(svc.list_ledger(owed, end_date="2025-01-31")) == 1


def test_update_supplier_blocks_balances_and_audits(conn, owed, current_user):
    svc = SupplierService(conn, current_user)
    with pytest.raises(ValidationError):
        svc.update_supplier(owed, {"current_balance": 0})

    svc.update_supplier(owed, {"phone": "042-555", "name": "Owed Pharma Ltd", "foo": "ignored"})

    s = SuppliersRepo(conn).get(owed)
    assert s["name"] == "Owed Pharma Ltd"
    assert s["opening_balance"] == 100
    log = svc.audit.list_logs(entity_type="supplier", entity_id=owed)[0]
    assert log["action"] == "update"
    assert log["changes"] == {
        "phone": {"old": None, "new": "042-555"},
        "name": {"old": "Owed Pharma", "new": "Owed Pharma Ltd"},
    }


def test_duplicate_code_is_a_constraint_violation(conn, ids, scalar):
    svc = SupplierService(conn)
    with pytest.raises(ConstraintViolationError) as exc:
        svc.create_supplier({"name": "Copycat", "code": "SUP-X", "opening_balance": 50})
    assert isinstance(exc.value.original, sqlite3.IntegrityError)
    assert scalar("SELECT COUNT(*) FROM suppliers WHERE name='Copycat'") == 0
    assert scalar("SELECT COUNT(*) FROM supplier_ledger_entries") == 0


def test_deactivate_supplier(conn, ids, owed):
    SupplierService(conn).deactivate_supplier(owed)
    assert [s.code for s in SuppliersRepo(conn).list_suppliers()] == ["SUP-X"]


def test_list_payments(conn, ids, owed):
    svc = SupplierService(conn)
    svc.record_supplier_payment(
        {"supplier_id": owed, "account_id": ids["cash"], "amount": 10, "payment_date": "2025-02-01"}
    )
    svc.record_supplier_payment(
        {"supplier_id": owed, "account_id": ids["bank"], "amount": 20, "payment_date": "2025-02-03",
         "reference_number": "CHQ-881", "payment_method": "cheque"}
    )

    rows = svc.payments.list_payments(owed)
    assert [r["reference_number"] for r in rows] == ["CHQ-881", "SP20250201-0001"]
    assert SuppliersRepo(conn).payable(owed) == 70
