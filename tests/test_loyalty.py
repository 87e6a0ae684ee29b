import pytest

from pharmacy_ledger.database.repositories import BankAccountsRepo, CustomersRepo, InventoryRepo
from pharmacy_ledger.modules.customer import (
    points_after_return,
    points_after_sale,
    points_earned,
    redemption_value,
)
from pharmacy_ledger.modules.sales import SalesService


@pytest.mark.parametrize(
    "amount, expected",
    [(0, 0), (-5, 0), (9.99, 0), (10, 1), (97, 9), (150.5, 15)],
)
def test_points_earned(amount, expected):
    assert points_earned(amount) == expected


def test_points_after_sale_and_return():
    assert points_after_sale(20, 0, 9) == 29
    assert points_after_sale(20, 5, 9) == 24
    # redeeming more than held clamps at zero
    assert points_after_sale(3, 10, 0) == 0

    assert points_after_return(29, 97) == 20
    assert points_after_return(5, 200) == 0


def test_redemption_value():
    assert redemption_value(50) == 5.0
    assert redemption_value(0) == 0.0


def test_loyalty_through_a_sale(conn, ids, invariants):
    InventoryRepo(conn).apply_delta(ids["syrup"], 5)
    SalesService(conn).create_sale(
        {"customer_id": ids["customer"], "account_id": ids["cash"], "paid_amount": 100, "discount_amount": 3},
        [{"product_id": ids["syrup"], "quantity": 2, "unit_price": 50}],
    )

    c = CustomersRepo(conn).get(ids["customer"])
    assert c.loyalty_points == 29
    assert c.total_purchases == 97
    assert BankAccountsRepo(conn).get(ids["cash"])["current_balance"] == 600
    invariants()
