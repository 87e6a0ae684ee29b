import pytest

from pharmacy_ledger.database.repositories import (
    BankAccountsRepo,
    InventoryRepo,
    NotFoundError,
    PurchasesRepo,
    SuppliersRepo,
    ValidationError,
)
from pharmacy_ledger.modules.inventory import InventoryService
from pharmacy_ledger.modules.purchase import PurchaseService


def _buy(svc, ids, qty=5, price=100, paid=0, account="cash", date="2025-01-10", **extra):
    header = {"supplier_id": ids["supplier"], "paid_amount": paid, "date": date, **extra}
    if account:
        header["account_id"] = ids[account]
    return svc.create_purchase(header, [{"product_id": ids["para"], "quantity": qty, "unit_price": price}])


def test_purchase_converts_packages_to_base_units(conn, ids, current_user, invariants):
    svc = PurchaseService(conn, current_user)
    hdr = _buy(svc, ids, account=None)

    assert InventoryRepo(conn).quantity(ids["para"]) == 50
    assert hdr["total_amount"] == 500
    assert hdr["due_amount"] == 500
    assert hdr["payment_status"] == "pending"
    # items are stored as entered
    assert svc.purchases.list_items(hdr["purchase_id"])[0]["quantity"] == 5

    s = SuppliersRepo(conn).get(ids["supplier"])
    assert s["current_balance"] == 500
    assert s["total_purchases"] == 500
    [row] = SuppliersRepo(conn).list_ledger(ids["supplier"])
    assert (row["type"], row["debit"], row["balance"]) == ("purchase", 500, 500)
    assert row["reference_table"] == "purchases"
    assert row["reference_number"] == hdr["invoice_number"]
    invariants()


def test_partly_paid_purchase(conn, ids, current_user, invariants):
    svc = PurchaseService(conn, current_user)
    hdr = _buy(svc, ids, qty=2, paid=150)

    assert hdr["payment_status"] == "partial"
    assert hdr["due_amount"] == 50
    cash = BankAccountsRepo(conn).get(ids["cash"])
    assert cash["current_balance"] == 350
    assert cash["total_withdrawals"] == 150

    s = SuppliersRepo(conn).get(ids["supplier"])
    assert s["current_balance"] == 50
    assert s["total_payments"] == 150
    rows = SuppliersRepo(conn).list_ledger(ids["supplier"])
    assert [(r["type"], r["debit"], r["credit"], r["balance"]) for r in rows] == [
        ("purchase", 200, 0, 200),
        ("payment", 0, 150, 50),
    ]
    assert {r["reference_id"] for r in rows} == {hdr["purchase_id"]}

    assert [l["action"] for l in svc.audit.list_logs(entity_type="purchase")] == ["create"]
    invariants()


def test_fully_paid_purchase_status(conn, ids):
    hdr = _buy(PurchaseService(conn), ids, qty=1, price=100, paid=100)
    assert hdr["payment_status"] == "paid"
    assert hdr["due_amount"] == 0


def test_totals_apply_line_and_header_discounts(conn, ids):
    svc = PurchaseService(conn)
    hdr = svc.create_purchase(
        {"supplier_id": ids["supplier"], "discount_amount": 20, "tax_amount": 5},
        [
            {"product_id": ids["para"], "quantity": 2, "unit_price": 100, "discount_percent": 10},
            {"product_id": ids["syrup"], "quantity": 3, "unit_price": 30},
        ],
    )
    # 180 + 90 - 20 + 5
    assert hdr["subtotal"] == 270
    assert hdr["total_amount"] == 255
    assert InventoryRepo(conn).quantity(ids["syrup"]) == 3


def test_delete_purchase_restores_everything(conn, ids, current_user, scalar, invariants):
    svc = PurchaseService(conn, current_user)
    hdr = _buy(svc, ids, qty=2, paid=150)

    assert svc.delete_purchase(hdr["purchase_id"]) == 1

    assert InventoryRepo(conn).quantity(ids["para"]) == 0
    cash = BankAccountsRepo(conn).get(ids["cash"])
    assert cash["current_balance"] == 500
    assert cash["total_withdrawals"] == 0
    s = SuppliersRepo(conn).get(ids["supplier"])
    assert (s["current_balance"], s["total_purchases"], s["total_payments"]) == (0, 0, 0)
    assert scalar("SELECT COUNT(*) FROM supplier_ledger_entries") == 0
    assert scalar("SELECT COUNT(*) FROM purchase_items") == 0
    assert svc.purchases.get_header(hdr["purchase_id"]) is None

    log = svc.audit.list_logs(entity_type="purchase", action="delete")[0]
    assert log["changes"] == {"totalAmount": 200.0, "itemsDeleted": 1}
    invariants()


def test_delete_uses_the_package_size_recorded_at_purchase(conn, ids, invariants):
    svc = PurchaseService(conn)
    hdr = _buy(svc, ids, account=None)
    assert InventoryRepo(conn).quantity(ids["para"]) == 50
    assert svc.purchases.list_items(hdr["purchase_id"])[0]["units_per_package"] == 10

    InventoryService(conn).update_product(ids["para"], {"units_per_package": 1})
    svc.delete_purchase(hdr["purchase_id"])

    assert InventoryRepo(conn).quantity(ids["para"]) == 0
    invariants()


def test_non_finite_amounts_are_rejected_before_writing(conn, ids, scalar, invariants):
    svc = PurchaseService(conn)
    with pytest.raises(ValidationError):
        svc.create_purchase(
            {"supplier_id": ids["supplier"]}, [{"product_id": ids["para"], "quantity": 1, "unit_price": "inf"}]
        )
    with pytest.raises(ValidationError):
        svc.create_purchase(
            {"supplier_id": ids["supplier"], "tax_amount": float("nan")},
            [{"product_id": ids["para"], "quantity": 1, "unit_price": 10}],
        )

    assert scalar("SELECT COUNT(*) FROM purchases") == 0
    assert SuppliersRepo(conn).get(ids["supplier"])["current_balance"] == 0
    invariants()


def test_delete_purchase_with_returns_is_rejected(conn, ids, scalar):
    svc = PurchaseService(conn)
    hdr = _buy(svc, ids, account=None)
    svc.create_purchase_return(
        {"purchase_id": hdr["purchase_id"]}, [{"product_id": ids["para"], "quantity": 5, "unit_price": 10}]
    )

    with pytest.raises(ValidationError):
        svc.delete_purchase(hdr["purchase_id"])
    assert svc.purchases.get_header(hdr["purchase_id"]) is not None
    assert InventoryRepo(conn).quantity(ids["para"]) == 45


def test_delete_missing_purchase(conn, ids):
    with pytest.raises(NotFoundError):
        PurchaseService(conn).delete_purchase(4242)


def test_missing_references_write_nothing(conn, ids, scalar, invariants):
    svc = PurchaseService(conn)
    with pytest.raises(NotFoundError):
        svc.create_purchase(
            {"supplier_id": 9999, "account_id": ids["cash"], "paid_amount": 10},
            [{"product_id": ids["para"], "quantity": 1, "unit_price": 10}],
        )
    with pytest.raises(NotFoundError):
        svc.create_purchase(
            {"supplier_id": ids["supplier"]}, [{"product_id": 9999, "quantity": 1, "unit_price": 10}]
        )
    with pytest.raises(ValidationError):
        svc.create_purchase({"supplier_id": ids["supplier"]}, [])

    assert scalar("SELECT COUNT(*) FROM purchases") == 0
    assert InventoryRepo(conn).get(ids["para"]) is None
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 500
    invariants()


def test_invoice_numbers_are_sequential_per_day(conn, ids):
    svc = PurchaseService(conn)
    first = _buy(svc, ids, qty=1, account=None)
    second = _buy(svc, ids, qty=1, account=None)
    other_day = _buy(svc, ids, qty=1, account=None, date="2025-01-11")

    assert first["invoice_number"] == "PO20250110-0001"
    assert second["invoice_number"] == "PO20250110-0002"
    assert other_day["invoice_number"] == "PO20250111-0001"


def test_failure_mid_transaction_rolls_back(conn, ids, current_user, scalar, monkeypatch, invariants):
    svc = PurchaseService(conn, current_user)

    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(svc.accounts, "debit", boom)

    with pytest.raises(RuntimeError):
        _buy(svc, ids, qty=2, paid=150)

    assert scalar("SELECT COUNT(*) FROM purchases") == 0
    assert scalar("SELECT COUNT(*) FROM purchase_items") == 0
    assert InventoryRepo(conn).get(ids["para"]) is None
    assert scalar("SELECT COUNT(*) FROM supplier_ledger_entries") == 0
    assert scalar("SELECT COUNT(*) FROM audit_logs") == 0
    invariants()


def test_supplier_purchase_totals(conn, ids):
    svc = PurchaseService(conn)
    _buy(svc, ids, qty=2, paid=150)
    _buy(svc, ids, qty=1, account=None)

    totals = PurchasesRepo(conn).get_purchase_totals_for_supplier(ids["supplier"])
    assert totals == {"purchases_total": 300.0, "paid_total": 150.0, "due_total": 150.0}


def test_list_purchases(conn, ids):
    svc = PurchaseService(conn)
    _buy(svc, ids, qty=1, account=None)
    _buy(svc, ids, qty=2, account=None, date="2025-01-11")

    rows = svc.purchases.list_purchases(ids["supplier"])
    assert [r["invoice_number"] for r in rows] == ["PO20250111-0001", "PO20250110-0001"]
    assert rows[0]["supplier_name"] == "Supplier X"
    assert svc.purchases.list_purchases(9999) == []
