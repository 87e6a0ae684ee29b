# modules/inventory/__init__.py

from .service import InventoryService

__all__ = [
    "InventoryService",
]
