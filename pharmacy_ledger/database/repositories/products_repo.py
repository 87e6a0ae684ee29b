from dataclasses import dataclass
from typing import Optional, Dict, List
import sqlite3

from .errors import NotFoundError


@dataclass
class Product:
    product_id: int | None
    name: str
    sku: str
    generic_name: str | None = None
    barcode: str | None = None
    unit: str = "piece"
    package_unit: str | None = None
    units_per_package: int = 1
    reorder_level: int = 10
    selling_price: float = 0.0
    cost_price: float = 0.0
    is_active: int = 1


_COLUMNS = (
    "product_id, name, sku, generic_name, barcode, unit, package_unit, "
    "units_per_package, reorder_level, "
    "CAST(selling_price AS REAL) AS selling_price, "
    "CAST(cost_price AS REAL) AS cost_price, is_active"
)

_EDITABLE = (
    "name", "sku", "generic_name", "barcode", "unit", "package_unit",
    "units_per_package", "reorder_level", "selling_price", "cost_price",
)


class ProductsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------------------------- Products ----------------------------

    def list_products(self, active_only: bool = True) -> list[Product]:
        sql = f"SELECT {_COLUMNS} FROM products"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY product_id DESC"
        return [Product(**dict(r)) for r in self.conn.execute(sql).fetchall()]

    def get(self, product_id: int) -> Product | None:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM products WHERE product_id=?",
            (int(product_id),),
        ).fetchone()
        return Product(**dict(r)) if r else None

    def require(self, product_id: int) -> Product:
        p = self.get(product_id)
        if p is None:
            raise NotFoundError("Product", product_id)
        return p

    def get_row(self, product_id: int) -> Optional[Dict]:
        """Raw row, used for audit diffs."""
        r = self.conn.execute("SELECT * FROM products WHERE product_id=?", (int(product_id),)).fetchone()
        return dict(r) if r else None

    def create(self, p: Product) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO products(
                name, sku, generic_name, barcode, unit, package_unit,
                units_per_package, reorder_level, selling_price, cost_price, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
            """,
            (
                p.name, p.sku, p.generic_name, p.barcode, p.unit or "piece", p.package_unit,
                int(p.units_per_package or 1), int(p.reorder_level), float(p.selling_price),
                float(p.cost_price),
            ),
        )
        return int(cur.lastrowid)

    def update(self, product_id: int, data: Dict) -> List[str]:
        """Apply the editable fields present in `data`; returns the columns written."""
        fields = [k for k in _EDITABLE if k in data]
        if not fields:
            return []
        assignments = ", ".join(f"{k}=?" for k in fields)
        self.conn.execute(
            f"UPDATE products SET {assignments}, updated_at=CURRENT_TIMESTAMP WHERE product_id=?",
            (*[data[k] for k in fields], int(product_id)),
        )
        return fields

    def deactivate(self, product_id: int) -> None:
        self.conn.execute(
            "UPDATE products SET is_active=0, updated_at=CURRENT_TIMESTAMP WHERE product_id=?",
            (int(product_id),),
        )
