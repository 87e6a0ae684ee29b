import pytest

from pharmacy_ledger.database.repositories import (
    BankAccountsRepo,
    CustomersRepo,
    InventoryRepo,
    NotFoundError,
    ValidationError,
)
from pharmacy_ledger.modules.sales import SalesService


@pytest.fixture()
def stocked(conn, ids):
    InventoryRepo(conn).apply_delta(ids["syrup"], 10)
    return ids


def _sell(svc, ids, qty=2, **header):
    h = {"customer_id": ids["customer"], "account_id": ids["cash"], "paid_amount": 100,
         "discount_amount": 3, "date": "2025-03-01", **header}
    return svc.create_sale(h, [{"product_id": ids["syrup"], "quantity": qty, "unit_price": 50}])


def test_create_sale_effects(conn, stocked, current_user, invariants):
    ids = stocked
    svc = SalesService(conn, current_user)
    sale = _sell(svc, ids)

    assert sale["invoice_number"] == "INV20250301-0001"
    assert sale["subtotal"] == 100
    assert sale["total_amount"] == 97
    assert sale["change_amount"] == 3
    assert sale["status"] == "completed"
    assert sale["user_id"] == ids["user_ops"]

    assert InventoryRepo(conn).quantity(ids["syrup"]) == 8
    cash = BankAccountsRepo(conn).get(ids["cash"])
    assert cash["current_balance"] == 600
    assert cash["total_deposits"] == 100

    c = CustomersRepo(conn).get(ids["customer"])
    assert c.loyalty_points == 29
    assert c.total_purchases == 97

    [item] = svc.sales.list_items(sale["sale_id"])
    assert item["product_name"] == "Cough Syrup"
    assert item["subtotal"] == 100
    log = svc.audit.list_logs(entity_type="sale")[0]
    assert log["changes"] == {"totalAmount": 97.0, "itemCount": 1}
    invariants()


def test_walk_in_sale_without_customer_or_account(conn, stocked):
    ids = stocked
    sale = SalesService(conn).create_sale(
        {"paid_amount": 0}, [{"product_id": ids["syrup"], "quantity": 1, "unit_price": 50}]
    )
    assert sale["customer_id"] is None
    assert sale["total_amount"] == 50
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 500
    assert CustomersRepo(conn).get(ids["customer"]).loyalty_points == 20


def test_sale_can_oversell_stock(conn, ids):
    SalesService(conn).create_sale({}, [{"product_id": ids["syrup"], "quantity": 3, "unit_price": 50}])
    assert InventoryRepo(conn).quantity(ids["syrup"]) == 0


def test_missing_product_writes_nothing(conn, stocked, scalar, invariants):
    ids = stocked
    svc = SalesService(conn)
    with pytest.raises(NotFoundError):
        svc.create_sale(
            {"customer_id": ids["customer"], "account_id": ids["cash"], "paid_amount": 100},
            [
                {"product_id": ids["syrup"], "quantity": 1, "unit_price": 50},
                {"product_id": 9999, "quantity": 1, "unit_price": 50},
            ],
        )
    assert scalar("SELECT COUNT(*) FROM sales") == 0
    assert InventoryRepo(conn).quantity(ids["syrup"]) == 10
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 500
    invariants()


def test_missing_customer_or_account(conn, stocked):
    ids = stocked
    svc = SalesService(conn)
    with pytest.raises(NotFoundError):
        _sell(svc, ids, customer_id=555)
    with pytest.raises(NotFoundError):
        _sell(svc, ids, account_id=555)
    with pytest.raises(ValidationError):
        svc.create_sale({"paid_amount": 10}, [])
    with pytest.raises(ValidationError):
        svc.create_sale({}, [{"product_id": ids["syrup"], "quantity": 0, "unit_price": 50}])


def test_failure_after_writes_rolls_everything_back(conn, stocked, current_user, scalar, monkeypatch, invariants):
    ids = stocked
    svc = SalesService(conn, current_user)

    def boom(*args, **kwargs):
        raise RuntimeError("account locked")

    monkeypatch.setattr(svc.accounts, "credit", boom)
    with pytest.raises(RuntimeError):
        _sell(svc, ids)

    assert scalar("SELECT COUNT(*) FROM sales") == 0
    assert scalar("SELECT COUNT(*) FROM sale_items") == 0
    assert InventoryRepo(conn).quantity(ids["syrup"]) == 10
    assert CustomersRepo(conn).get(ids["customer"]).loyalty_points == 20
    assert scalar("SELECT COUNT(*) FROM audit_logs") == 0
    invariants()


def test_redeemed_points_are_spent(conn, stocked):
    ids = stocked
    _sell(SalesService(conn), ids, points_redeemed=5)
    # 20 - 5 + floor(97 / 10)
    assert CustomersRepo(conn).get(ids["customer"]).loyalty_points == 24


def test_delete_sale_reverses_everything(conn, stocked, current_user, scalar, invariants):
    ids = stocked
    svc = SalesService(conn, current_user)
    sale = _sell(svc, ids, points_redeemed=5)

    assert svc.delete_sale(sale["sale_id"]) == 1

    assert InventoryRepo(conn).quantity(ids["syrup"]) == 10
    cash = BankAccountsRepo(conn).get(ids["cash"])
    assert cash["current_balance"] == 500
    assert cash["total_deposits"] == 0
    c = CustomersRepo(conn).get(ids["customer"])
    assert c.loyalty_points == 20
    assert c.total_purchases == 0
    assert scalar("SELECT COUNT(*) FROM sale_items") == 0
    assert svc.audit.list_logs(entity_type="sale")[0]["action"] == "delete"
    invariants()


def test_delete_sale_with_returns_is_rejected(conn, stocked):
    ids = stocked
    svc = SalesService(conn)
    sale = _sell(svc, ids)
    svc.create_sales_return({"sale_id": sale["sale_id"]}, [{"product_id": ids["syrup"], "quantity": 1}])

    with pytest.raises(ValidationError):
        svc.delete_sale(sale["sale_id"])
    with pytest.raises(NotFoundError):
        svc.delete_sale(9999)


def test_recalculate_customer(conn, stocked, current_user):
    ids = stocked
    svc = SalesService(conn, current_user)
    _sell(svc, ids)
    _sell(svc, ids, qty=1, discount_amount=0, paid_amount=50)
    conn.execute("UPDATE customers SET loyalty_points = 0, total_purchases = 0 WHERE customer_id=?", (ids["customer"],))

    result = svc.recalculate_customer(ids["customer"])

    # 97 + 50
    assert result == {"loyalty_points": 14, "total_purchases": 147}
    c = CustomersRepo(conn).get(ids["customer"])
    assert (c.loyalty_points, c.total_purchases) == (14, 147)
    log = svc.audit.list_logs(entity_type="customer")[0]
    assert log["changes"]["loyalty_points"] == {"old": 0, "new": 14}


def test_list_sales_by_date(conn, stocked):
    ids = stocked
    svc = SalesService(conn)
    _sell(svc, ids, qty=1)
    _sell(svc, ids, qty=1, date="2025-03-05")

    rows = svc.sales.list_sales(start_date="2025-03-02")
    assert [r["invoice_number"] for r in rows] == ["INV20250305-0001"]
    assert rows[0]["customer_name"] == "Regular Customer"
    assert len(svc.sales.list_sales()) == 2


def test_list_customers(conn, ids):
    repo = CustomersRepo(conn)
    walk_in = repo.create("  Walk-in  ", phone="  ")
    customers = repo.list_customers()
    assert [c.customer_id for c in customers] == [walk_in, ids["customer"]]
    assert customers[0].name == "Walk-in"
    assert customers[0].phone is None
    with pytest.raises(ValidationError):
        repo.create("   ")
