# modules/sales/__init__.py

from .service import SalesService, next_sale_status

__all__ = [
    "SalesService",
    "next_sale_status",
]
