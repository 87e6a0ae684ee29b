from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping

from ...constants import (
    PREFIX_SALE,
    PREFIX_SALES_RETURN,
    SALE_COMPLETED,
    SALE_PARTIALLY_RETURNED,
    SALE_REFUNDED,
    SALE_STATUS_ORDER,
    EPS,
)
from ...database.repositories.bank_accounts_repo import BankAccountsRepo
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.errors import NotFoundError, ValidationError
from ...database.repositories.inventory_repo import InventoryRepo
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.sales_repo import (
    SalesRepo,
    SaleHeader,
    SaleItem,
    SalesReturnHeader,
    SalesReturnItem,
)
from ...utils import validators as v
from ...utils.helpers import new_doc_number, money
from ..base_module import BaseService
from ..customer.loyalty import points_earned, points_after_sale, points_after_return

_log = logging.getLogger(__name__)


def next_sale_status(current: str, sold: Mapping[int, float], returned: Mapping[int, float]) -> str:
    """
    Status implied by cumulative returns, never earlier than `current`:
      every product fully returned     -> refunded
      anything returned, not all of it -> partially_returned
      nothing returned                 -> completed
    """
    if sold and all(returned.get(pid, 0.0) + EPS >= qty for pid, qty in sold.items()):
        implied = SALE_REFUNDED
    elif any(returned.get(pid, 0.0) > EPS for pid in sold):
        implied = SALE_PARTIALLY_RETURNED
    else:
        implied = SALE_COMPLETED

    rank = SALE_STATUS_ORDER.index
    if current in SALE_STATUS_ORDER and rank(current) > rank(implied):
        return current
    return implied


class SalesService(BaseService):
    """Sales, sales returns and their stock/cash/loyalty effects."""

    def __init__(self, conn, current_user=None):
        super().__init__(conn, current_user)
        self.sales = SalesRepo(conn)
        self.products = ProductsRepo(conn)
        self.inventory = InventoryRepo(conn)
        self.accounts = BankAccountsRepo(conn)
        self.customers = CustomersRepo(conn)

    # ------------------------------------------------------------------
    # Payload -> dataclass
    # ------------------------------------------------------------------
    def _sale_header(self, data: Mapping) -> SaleHeader:
        points = data.get("points_redeemed") or 0
        if int(points) < 0:
            raise ValidationError("points_redeemed cannot be negative.")
        return SaleHeader(
            customer_id=v.optional_id(data, "customer_id"),
            account_id=v.optional_id(data, "account_id"),
            user_id=v.optional_id(data, "user_id"),
            paid_amount=v.amount(data, "paid_amount"),
            discount_amount=v.amount(data, "discount_amount"),
            tax_amount=v.amount(data, "tax_amount"),
            payment_method=data.get("payment_method") or "cash",
            points_redeemed=int(points),
            invoice_number=data.get("invoice_number"),
            notes=data.get("notes"),
            date=data.get("date"),
        )

    @staticmethod
    def _sale_item(data: Mapping) -> SaleItem:
        return SaleItem(
            product_id=v.require_id(data, "product_id"),
            quantity=v.positive_amount(data, "quantity"),
            unit_price=v.amount(data, "unit_price"),
            discount_percent=v.amount(data, "discount_percent"),
            tax_rate=v.amount(data, "tax_rate"),
            product_name=data.get("product_name"),
            batch_number=data.get("batch_number"),
            expiry_date=data.get("expiry_date"),
        )

    def _return_header(self, data: Mapping) -> SalesReturnHeader:
        return SalesReturnHeader(
            sale_id=v.require_id(data, "sale_id"),
            account_id=v.optional_id(data, "account_id"),
            user_id=v.optional_id(data, "user_id"),
            refund_amount=v.amount(data, "refund_amount"),
            tax_amount=v.amount(data, "tax_amount"),
            reason=data.get("reason"),
            notes=data.get("notes"),
            return_number=data.get("return_number"),
            date=data.get("date"),
        )

    @staticmethod
    def _return_item(data: Mapping) -> SalesReturnItem:
        # unit_price left as None is filled in from the sale line
        price = data.get("unit_price")
        return SalesReturnItem(
            product_id=v.require_id(data, "product_id"),
            quantity=v.positive_amount(data, "quantity"),
            unit_price=None if price is None else v.amount(data, "unit_price"),
            product_name=data.get("product_name"),
        )

    # ------------------------------------------------------------------
    # Sale
    # ------------------------------------------------------------------
    def create_sale(self, header, items: Iterable) -> dict:
        """
        (1) header + items, (2) stock -qty per item, (3) account += paid,
        (4) customer loyalty and total_purchases; all in one transaction.
        Audit 'create sale' after commit.
        """
        h = header if isinstance(header, SaleHeader) else self._sale_header(header)
        lines = [it if isinstance(it, SaleItem) else self._sale_item(it) for it in items]
        if not lines:
            raise ValidationError("A sale needs at least one item.")
        date = self._date(h.date)

        with self._atomic(f"sale {h.invoice_number or '(new)'}") as after_commit:
            # references first; nothing is written if one is missing
            for it in lines:
                p = self.products.require(it.product_id)
                it.product_name = it.product_name or p.name
            customer = self.customers.require(h.customer_id) if h.customer_id is not None else None
            if h.account_id is not None:
                self.accounts.require(h.account_id)

            h.user_id = h.user_id if h.user_id is not None else self.user_id
            if not h.invoice_number:
                h.invoice_number = new_doc_number(self.conn, "sales", "invoice_number", PREFIX_SALE, date)

            sale_id = self.sales.create_sale(h, lines)

            for it in lines:
                self.inventory.apply_delta(it.product_id, -float(it.quantity))

            if h.account_id is not None and h.paid_amount > 0:
                self.accounts.credit(h.account_id, h.paid_amount)

            if customer is not None:
                earned = points_earned(h.total_amount)
                points = points_after_sale(customer.loyalty_points, h.points_redeemed, earned)
                self.customers.set_loyalty(
                    customer.customer_id, points, money(customer.total_purchases + h.total_amount)
                )

            changes = {"totalAmount": h.total_amount, "itemCount": len(lines)}
            after_commit.append(
                lambda: self.audit.log_create("sale", sale_id, h.invoice_number, changes, **self.actor)
            )

        _log.info("Sale %s saved: total=%.2f paid=%.2f", h.invoice_number, h.total_amount, h.paid_amount)
        return self.sales.get_header(sale_id)

    def delete_sale(self, sale_id: int) -> int:
        """
        Undo a sale that has no returns: stock back, account credit reversed,
        customer loyalty/total_purchases reversed (floored). Returns items deleted.
        """
        with self._atomic(f"delete sale {sale_id}") as after_commit:
            sale = self.sales.get_header(sale_id)
            if sale is None:
                raise NotFoundError("Sale", sale_id)
            if sale["status"] != SALE_COMPLETED or self.sales.count_returns(sale_id):
                raise ValidationError("Cannot delete a sale that has returns posted against it.")

            for it in self.sales.list_items(sale_id):
                self.inventory.apply_delta(it["product_id"], float(it["quantity"]))

            paid = float(sale["paid_amount"] or 0.0)
            if sale["account_id"] is not None and paid > 0:
                self.accounts.require(sale["account_id"])
                self.accounts.reverse_credit(sale["account_id"], paid)

            if sale["customer_id"] is not None:
                c = self.customers.get(sale["customer_id"])
                if c is not None:
                    total = float(sale["total_amount"])
                    points = max(
                        0,
                        c.loyalty_points - points_earned(total) + int(sale["points_redeemed"] or 0),
                    )
                    self.customers.set_loyalty(
                        c.customer_id, points, money(max(0.0, c.total_purchases - total))
                    )

            n_items = self.sales.delete_sale(sale_id)
            changes = {"totalAmount": float(sale["total_amount"]), "itemsDeleted": n_items}
            after_commit.append(
                lambda: self.audit.log_delete("sale", sale_id, sale["invoice_number"], changes, **self.actor)
            )

        _log.info("Sale %s deleted (%d items)", sale["invoice_number"], n_items)
        return n_items

    # ------------------------------------------------------------------
    # Sales return
    # ------------------------------------------------------------------
    def create_sales_return(self, header, items: Iterable) -> dict:
        """
        Return + items, stock +qty, account -= refund, loyalty deduction,
        then move the sale's status forward from ALL returns posted so far.
        Quantities above what is still returnable are rejected.
        """
        h = header if isinstance(header, SalesReturnHeader) else self._return_header(header)
        lines = [it if isinstance(it, SalesReturnItem) else self._return_item(it) for it in items]
        if not lines:
            raise ValidationError("A return needs at least one item.")
        date = self._date(h.date)

        with self._atomic(f"sales return for sale {h.sale_id}") as after_commit:
            sale = self.sales.get_header(h.sale_id)
            if sale is None:
                raise NotFoundError("Sale", h.sale_id)
            if h.account_id is not None:
                self.accounts.require(h.account_id)

            sale_lines = self.sales.list_items(h.sale_id)
            prices = {int(r["product_id"]): float(r["unit_price"]) for r in sale_lines}
            names = {int(r["product_id"]): r["product_name"] for r in sale_lines}
            remaining = self.sales.returnable_quantities(h.sale_id)
            requested: Dict[int, float] = {}
            for it in lines:
                pid = int(it.product_id)
                if pid not in remaining:
                    raise ValidationError(f"Product {pid} is not part of sale {sale['invoice_number']}.")
                requested[pid] = requested.get(pid, 0.0) + float(it.quantity)
                if it.unit_price is None:
                    it.unit_price = prices[pid]
                it.product_name = it.product_name or names[pid]
            for pid, qty in requested.items():
                if qty > remaining[pid] + EPS:
                    raise ValidationError(
                        f"Return qty exceeds remaining for product {pid}: "
                        f"requested {qty:g}, remaining {remaining[pid]:g}"
                    )

            h.customer_id = sale["customer_id"]
            h.user_id = h.user_id if h.user_id is not None else self.user_id
            if not h.return_number:
                h.return_number = new_doc_number(
                    self.conn, "sales_returns", "return_number", PREFIX_SALES_RETURN, date
                )
            return_id = self.sales.create_return(h, lines)

            for it in lines:
                self.inventory.apply_delta(it.product_id, float(it.quantity))

            if h.account_id is not None and h.refund_amount > 0:
                self.accounts.debit(h.account_id, h.refund_amount)

            if h.customer_id is not None:
                c = self.customers.get(h.customer_id)
                if c is not None:
                    self.customers.set_loyalty(
                        c.customer_id,
                        points_after_return(c.loyalty_points, h.total_amount),
                        c.total_purchases,
                    )

            status = next_sale_status(
                sale["status"],
                self.sales.sold_quantities(h.sale_id),
                self.sales.returned_quantities(h.sale_id),
            )
            if status != sale["status"]:
                self.sales.set_status(h.sale_id, status)

            changes = {"refundAmount": h.refund_amount, "itemCount": len(lines), "saleStatus": status}
            after_commit.append(
                lambda: self.audit.log_create("sales_return", return_id, h.return_number, changes, **self.actor)
            )

        _log.info("Sales return %s saved: sale %s now %s", h.return_number, sale["invoice_number"], status)
        return {
            "return_id": return_id,
            "return_number": h.return_number,
            "total_amount": h.total_amount,
            "refund_amount": h.refund_amount,
            "sale_status": status,
        }

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------
    def recalculate_customer(self, customer_id: int) -> dict:
        """Rebuild total_purchases (sum of sale totals) and points (floor(total/10))."""
        with self._atomic(f"recalculate customer {customer_id}") as after_commit:
            c = self.customers.require(customer_id)
            total = money(self.customers.sales_total(customer_id))
            points = points_earned(total)
            self.customers.set_loyalty(customer_id, points, total)
            old = {"loyalty_points": c.loyalty_points, "total_purchases": c.total_purchases}
            new = {"loyalty_points": points, "total_purchases": total}
            after_commit.append(
                lambda: self.audit.log_update("customer", customer_id, c.name, old, new, **self.actor)
            )
        return new
