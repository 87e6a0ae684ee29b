import pytest

from pharmacy_ledger.database.repositories import (
    BankAccountsRepo,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from pharmacy_ledger.modules.accounts import AccountService


def test_credit_and_debit_keep_counters_in_step(conn, ids, invariants):
    repo = BankAccountsRepo(conn)
    assert repo.credit(ids["cash"], 120) == 620
    assert repo.debit(ids["cash"], 70) == 550

    acc = repo.get(ids["cash"])
    assert acc["total_deposits"] == 120
    assert acc["total_withdrawals"] == 70
    invariants()


def test_plain_debit_may_go_negative(conn, ids, invariants):
    repo = BankAccountsRepo(conn)
    assert repo.debit(ids["cash"], 800) == -300
    invariants()


def test_ensure_funds(conn, ids):
    repo = BankAccountsRepo(conn)
    assert repo.ensure_funds(ids["cash"], 500)["name"] == "Cash Drawer"

    with pytest.raises(InsufficientFundsError) as exc:
        repo.ensure_funds(ids["cash"], 500.01)
    assert exc.value.available == 500
    assert exc.value.requested == pytest.approx(500.01)

    with pytest.raises(NotFoundError):
        repo.ensure_funds(9999, 1)


def test_reverse_floors_counters_at_zero(conn, ids):
    repo = BankAccountsRepo(conn)
    repo.debit(ids["cash"], 30)

    assert repo.reverse_debit(ids["cash"], 50) == 520
    acc = repo.get(ids["cash"])
    assert acc["total_withdrawals"] == 0

    assert repo.reverse_credit(ids["bank"], 100) == 900
    assert repo.get(ids["bank"])["total_deposits"] == 0


def test_create_account_service(conn, current_user):
    svc = AccountService(conn, current_user)
    acc_id = svc.create_account({"name": "JazzCash", "account_type": "mobile", "opening_balance": "250.5"})

    acc = BankAccountsRepo(conn).get(acc_id)
    assert acc["current_balance"] == 250.5
    assert acc["opening_balance"] == 250.5
    assert acc["total_deposits"] == 0
    assert [l["action"] for l in svc.audit.list_logs(entity_type="bank_account")] == ["create"]

    with pytest.raises(ValidationError):
        svc.create_account({"name": "Safe", "account_type": "vault"})
    with pytest.raises(ValidationError):
        svc.create_account({"name": "Safe", "opening_balance": -5})


def test_update_account_blocks_balance_fields(conn, ids, current_user):
    svc = AccountService(conn, current_user)
    with pytest.raises(ValidationError):
        svc.update_account(ids["cash"], {"current_balance": 1_000_000})
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 500

    svc.update_account(ids["bank"], {"branch_name": "Saddar", "foo": "ignored"})
    logs = svc.audit.list_logs(entity_type="bank_account", entity_id=ids["bank"])
    assert logs[0]["changes"] == {"branch_name": {"old": None, "new": "Saddar"}}


def test_adjust_balance(conn, ids, current_user, invariants):
    svc = AccountService(conn, current_user)
    assert svc.adjust_balance(ids["cash"], 100, "deposit", reason="Owner top-up") == 600
    # withdrawals are not funds-checked
    assert svc.adjust_balance(ids["cash"], 650, "withdrawal") == -50

    acc = BankAccountsRepo(conn).get(ids["cash"])
    assert acc["total_deposits"] == 100
    assert acc["total_withdrawals"] == 650

    log = svc.audit.list_logs(entity_type="bank_account_balance")[-1]
    assert log["action"] == "update"
    assert log["changes"]["balance"] == {"old": 500.0, "new": 600.0}
    invariants()


def test_adjust_balance_rejects_bad_input(conn, ids):
    svc = AccountService(conn)
    with pytest.raises(ValidationError):
        svc.adjust_balance(ids["cash"], 10, "transfer")
    with pytest.raises(ValidationError):
        svc.adjust_balance(ids["cash"], 0, "deposit")
    with pytest.raises(NotFoundError):
        svc.adjust_balance(9999, 10, "deposit")


def test_verify_balances_reports_drift(conn, ids):
    svc = AccountService(conn)
    assert svc.verify_balances() == []

    conn.execute("UPDATE bank_accounts SET current_balance = 123 WHERE account_id=?", (ids["bank"],))

    drift = svc.verify_balances()
    assert [d["account_id"] for d in drift] == [ids["bank"]]
    assert drift[0]["expected_balance"] == 1000


def test_deactivate_account(conn, ids):
    svc = AccountService(conn)
    svc.deactivate_account(ids["bank"])
    names = [a.name for a in BankAccountsRepo(conn).list_accounts()]
    assert names == ["Cash Drawer"]
