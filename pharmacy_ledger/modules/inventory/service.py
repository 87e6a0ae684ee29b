from __future__ import annotations

import logging
from typing import Mapping

from ...database.repositories.damaged_items_repo import DamagedItemsRepo, DamagedItem
from ...database.repositories.errors import ValidationError
from ...database.repositories.inventory_repo import InventoryRepo, StockChange
from ...database.repositories.products_repo import ProductsRepo, Product
from ...utils import validators as v
from ..base_module import BaseService

_log = logging.getLogger(__name__)


class InventoryService(BaseService):
    """Products, direct stock adjustments and damaged-stock write-offs."""

    def __init__(self, conn, current_user=None):
        super().__init__(conn, current_user)
        self.inventory = InventoryRepo(conn)
        self.products = ProductsRepo(conn)
        self.damaged = DamagedItemsRepo(conn)

    # ---------------------------- Stock ----------------------------

    def update_inventory_quantity(self, product_id: int, delta: float) -> StockChange:
        ok, value = v.try_parse_float(delta)
        if not ok:
            raise ValidationError(f"Quantity change must be a number, got {delta!r}.")
        with self._atomic(f"stock change for product {product_id}"):
            self.products.require(product_id)
            change = self.inventory.apply_delta(product_id, value)
        return change

    def create_damaged_item(self, data: Mapping) -> int:
        """Record a write-off and take the quantity out of stock (clamped at zero)."""
        d = DamagedItem(
            product_id=v.require_id(data, "product_id", "Product"),
            quantity=v.positive_amount(data, "quantity", "Quantity"),
            reason=v.require_text(data, "reason", "Reason"),
            batch_number=data.get("batch_number"),
            expiry_date=data.get("expiry_date"),
            notes=data.get("notes"),
            reported_by=v.optional_id(data, "reported_by"),
        )

        with self._atomic(f"write-off of product {d.product_id}") as after_commit:
            p = self.products.require(d.product_id)
            d.product_name = data.get("product_name") or p.name
            if d.reported_by is None:
                d.reported_by = self.user_id
            damaged_id = self.damaged.create(d)
            change = self.inventory.apply_delta(d.product_id, -float(d.quantity))

            changes = {"quantity": d.quantity, "reason": d.reason, "stockAfter": change.new_quantity}
            after_commit.append(
                lambda: self.audit.log_create("damaged_item", damaged_id, d.product_name, changes, **self.actor)
            )

        _log.info("Wrote off %g of %s (%s); stock %g -> %g",
                  d.quantity, d.product_name, d.reason, change.old_quantity, change.new_quantity)
        return damaged_id

    def low_stock(self) -> list[dict]:
        return self.inventory.low_stock()

    def stock_on_hand(self, product_id: int) -> dict:
        self.products.require(product_id)
        return self.inventory.stock_on_hand(product_id)

    # ---------------------------- Products ----------------------------

    def create_product(self, data: Mapping) -> int:
        units = data.get("units_per_package")
        units = 1 if units in (None, "") else units
        if not v.is_strictly_positive_number(units) or float(units) < 1:
            raise ValidationError("Units per package must be at least 1.")
        p = Product(
            product_id=None,
            name=v.require_text(data, "name", "Name"),
            sku=v.require_text(data, "sku", "SKU"),
            generic_name=data.get("generic_name"),
            barcode=data.get("barcode"),
            unit=data.get("unit") or "piece",
            package_unit=data.get("package_unit"),
            units_per_package=int(float(units)),
            reorder_level=int(v.amount(data, "reorder_level", default=10)),
            selling_price=v.amount(data, "selling_price"),
            cost_price=v.amount(data, "cost_price"),
        )
        with self._atomic(f"create product {p.sku}") as after_commit:
            product_id = self.products.create(p)
            changes = {"sku": p.sku, "unitsPerPackage": p.units_per_package}
            after_commit.append(
                lambda: self.audit.log_create("product", product_id, p.name, changes, **self.actor)
            )
        return product_id

    def update_product(self, product_id: int, data: Mapping) -> None:
        if "name" in data:
            v.require_text(data, "name", "Name")
        if "units_per_package" in data and (
            not v.is_strictly_positive_number(data["units_per_package"]) or float(data["units_per_package"]) < 1
        ):
            raise ValidationError("Units per package must be at least 1.")
        for key in ("selling_price", "cost_price", "reorder_level"):
            if key in data:
                v.amount(data, key)

        with self._atomic(f"update product {product_id}") as after_commit:
            old = self.products.get_row(product_id)
            if old is None:
                self.products.require(product_id)
            written = self.products.update(product_id, data)
            payload = {k: data[k] for k in written}
            after_commit.append(
                lambda: self.audit.log_update(
                    "product", product_id, data.get("name") or old["name"], old, payload, **self.actor
                )
            )

    def deactivate_product(self, product_id: int) -> None:
        with self._atomic(f"deactivate product {product_id}") as after_commit:
            p = self.products.require(product_id)
            self.products.deactivate(product_id)
            after_commit.append(
                lambda: self.audit.log_delete("product", product_id, p.name, {"soft_delete": True}, **self.actor)
            )
