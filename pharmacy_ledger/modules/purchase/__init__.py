# modules/purchase/__init__.py

from .service import PurchaseService

__all__ = [
    "PurchaseService",
]
