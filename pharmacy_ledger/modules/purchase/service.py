from __future__ import annotations

import logging
from typing import Iterable, Mapping

from ...constants import PREFIX_PURCHASE, PREFIX_PURCHASE_RETURN
from ...database.repositories.bank_accounts_repo import BankAccountsRepo
from ...database.repositories.errors import NotFoundError, ValidationError
from ...database.repositories.inventory_repo import InventoryRepo, to_base_units
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.purchases_repo import (
    PurchasesRepo,
    PurchaseHeader,
    PurchaseItem,
    PurchaseReturnHeader,
    PurchaseReturnItem,
)
from ...database.repositories.suppliers_repo import SuppliersRepo
from ...utils import validators as v
from ...utils.helpers import new_doc_number
from ..base_module import BaseService

_log = logging.getLogger(__name__)


class PurchaseService(BaseService):
    """
    Purchases (stock in, cash out, supplier payable up), their deletion and
    purchase returns.

    Purchase quantities are entered in packages and converted to base units
    before they reach the stock row; purchase returns are already in base units.
    Purchase returns do not touch the supplier ledger.
    """

    def __init__(self, conn, current_user=None):
        super().__init__(conn, current_user)
        self.purchases = PurchasesRepo(conn)
        self.products = ProductsRepo(conn)
        self.inventory = InventoryRepo(conn)
        self.accounts = BankAccountsRepo(conn)
        self.suppliers = SuppliersRepo(conn)

    # ---------- payload -> dataclass ----------
    @staticmethod
    def _header(data: Mapping) -> PurchaseHeader:
        return PurchaseHeader(
            supplier_id=v.require_id(data, "supplier_id", "Supplier"),
            account_id=v.optional_id(data, "account_id"),
            user_id=v.optional_id(data, "user_id"),
            paid_amount=v.amount(data, "paid_amount"),
            discount_amount=v.amount(data, "discount_amount"),
            tax_amount=v.amount(data, "tax_amount"),
            invoice_number=data.get("invoice_number"),
            notes=data.get("notes"),
            date=data.get("date"),
        )

    @staticmethod
    def _item(data: Mapping) -> PurchaseItem:
        return PurchaseItem(
            product_id=v.require_id(data, "product_id", "Product"),
            quantity=v.positive_amount(data, "quantity"),
            unit_price=v.amount(data, "unit_price"),
            discount_percent=v.amount(data, "discount_percent"),
            tax_rate=v.amount(data, "tax_rate"),
            product_name=data.get("product_name"),
            batch_number=data.get("batch_number"),
            expiry_date=data.get("expiry_date"),
            manufacture_date=data.get("manufacture_date"),
        )

    @staticmethod
    def _return_header(data: Mapping) -> PurchaseReturnHeader:
        return PurchaseReturnHeader(
            purchase_id=v.require_id(data, "purchase_id", "Purchase"),
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
    def _return_item(data: Mapping) -> PurchaseReturnItem:
        return PurchaseReturnItem(
            product_id=v.require_id(data, "product_id", "Product"),
            quantity=v.positive_amount(data, "quantity"),
            unit_price=v.amount(data, "unit_price"),
            product_name=data.get("product_name"),
        )

    # ---------- create ----------
    def create_purchase(self, header, items: Iterable) -> dict:
        h = header if isinstance(header, PurchaseHeader) else self._header(header)
        lines = [it if isinstance(it, PurchaseItem) else self._item(it) for it in items]
        if not lines:
            raise ValidationError("A purchase needs at least one item.")
        date = self._date(h.date)

        with self._atomic(f"purchase {h.invoice_number or '(new)'}") as after_commit:
            supplier = self.suppliers.require(h.supplier_id)
            for it in lines:
                p = self.products.require(it.product_id)
                it.product_name = it.product_name or p.name
                it.units_per_package = p.units_per_package
            if h.account_id is not None:
                self.accounts.require(h.account_id)

            h.user_id = h.user_id if h.user_id is not None else self.user_id
            if not h.invoice_number:
                h.invoice_number = new_doc_number(self.conn, "purchases", "invoice_number", PREFIX_PURCHASE, date)

            purchase_id = self.purchases.create_purchase(h, lines)

            for it in lines:
                self.inventory.apply_delta(
                    it.product_id,
                    to_base_units(it.quantity, it.units_per_package),
                    batch_number=it.batch_number,
                    expiry_date=it.expiry_date,
                    manufacture_date=it.manufacture_date,
                )

            if h.account_id is not None and h.paid_amount > 0:
                self.accounts.debit(h.account_id, h.paid_amount)

            self.suppliers.record_purchase(
                h.supplier_id,
                purchase_id,
                h.invoice_number,
                h.total_amount,
                h.paid_amount,
                date=date,
                created_by=h.user_id,
                notes=h.notes,
            )

            changes = {
                "supplier": supplier["name"],
                "totalAmount": h.total_amount,
                "paidAmount": h.paid_amount,
                "itemCount": len(lines),
            }
            after_commit.append(
                lambda: self.audit.log_create("purchase", purchase_id, h.invoice_number, changes, **self.actor)
            )

        _log.info(
            "Purchase %s saved: total=%.2f paid=%.2f status=%s",
            h.invoice_number, h.total_amount, h.paid_amount, h.payment_status,
        )
        return self.purchases.get_header(purchase_id)

    # ---------- delete ----------
    def delete_purchase(self, purchase_id: int) -> int:
        """
        Reverse everything create_purchase did. Purchases with returns posted
        against them cannot be deleted. Returns the number of items deleted.
        """
        with self._atomic(f"delete purchase {purchase_id}") as after_commit:
            hdr = self.purchases.get_header(purchase_id)
            if hdr is None:
                raise NotFoundError("Purchase", purchase_id)
            if self.purchases.count_returns(purchase_id):
                raise ValidationError(
                    f"Purchase {hdr['invoice_number']} has returns recorded against it and cannot be deleted."
                )

            for it in self.purchases.list_items(purchase_id):
                self.inventory.apply_delta(
                    it["product_id"], -to_base_units(it["quantity"], it["units_per_package"])
                )

            paid = float(hdr["paid_amount"] or 0.0)
            if hdr["account_id"] is not None and paid > 0:
                self.accounts.require(hdr["account_id"])
                self.accounts.reverse_debit(hdr["account_id"], paid)

            self.suppliers.reverse_purchase(purchase_id)
            n_items = self.purchases.delete_purchase(purchase_id)

            changes = {"totalAmount": float(hdr["total_amount"]), "itemsDeleted": n_items}
            after_commit.append(
                lambda: self.audit.log_delete("purchase", purchase_id, hdr["invoice_number"], changes, **self.actor)
            )

        _log.info("Purchase %s deleted (%d items)", hdr["invoice_number"], n_items)
        return n_items

    # ---------- returns ----------
    def create_purchase_return(self, header, items: Iterable) -> dict:
        h = header if isinstance(header, PurchaseReturnHeader) else self._return_header(header)
        lines = [it if isinstance(it, PurchaseReturnItem) else self._return_item(it) for it in items]
        if not lines:
            raise ValidationError("A return needs at least one item.")
        date = self._date(h.date)

        with self._atomic(f"purchase return for purchase {h.purchase_id}") as after_commit:
            hdr = self.purchases.get_header(h.purchase_id)
            if hdr is None:
                raise NotFoundError("Purchase", h.purchase_id)
            on_purchase = self.purchases.purchased_product_ids(h.purchase_id)
            for it in lines:
                if int(it.product_id) not in on_purchase:
                    raise ValidationError(
                        f"Product {it.product_id} is not part of purchase {hdr['invoice_number']}."
                    )
                it.product_name = it.product_name or self.products.require(it.product_id).name
            if h.account_id is not None:
                self.accounts.require(h.account_id)

            h.supplier_id = int(hdr["supplier_id"])
            h.user_id = h.user_id if h.user_id is not None else self.user_id
            if not h.return_number:
                h.return_number = new_doc_number(
                    self.conn, "purchase_returns", "return_number", PREFIX_PURCHASE_RETURN, date
                )
            return_id = self.purchases.create_return(h, lines)

            # base units, no package conversion
            for it in lines:
                self.inventory.apply_delta(it.product_id, -float(it.quantity))

            if h.account_id is not None and h.refund_amount > 0:
                self.accounts.credit(h.account_id, h.refund_amount)

            changes = {"refundAmount": h.refund_amount, "itemCount": len(lines)}
            after_commit.append(
                lambda: self.audit.log_create("purchase_return", return_id, h.return_number, changes, **self.actor)
            )

        _log.info("Purchase return %s saved against %s", h.return_number, hdr["invoice_number"])
        return {
            "return_id": return_id,
            "return_number": h.return_number,
            "total_amount": h.total_amount,
            "refund_amount": h.refund_amount,
        }
