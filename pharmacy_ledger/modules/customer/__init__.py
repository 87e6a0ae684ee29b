# modules/customer/__init__.py

from .loyalty import (
    points_earned,
    points_after_sale,
    points_after_return,
    redemption_value,
)

__all__ = [
    "points_earned",
    "points_after_sale",
    "points_after_return",
    "redemption_value",
]
