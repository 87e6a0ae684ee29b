"""
Loyalty points.

One point is earned per POINTS_DIVISOR currency units actually charged (the
sale total, already net of any redemption discount). Redeemed points are worth
POINT_VALUE each; applying that discount to the sale is the caller's job.
"""

import math

from ...constants import POINTS_DIVISOR, POINT_VALUE


def points_earned(amount_paid: float) -> int:
    if amount_paid <= 0:
        return 0
    return int(math.floor(float(amount_paid) / POINTS_DIVISOR))


def points_after_sale(current_points: int, points_redeemed: int, earned: int) -> int:
    return max(0, int(current_points) - int(points_redeemed or 0) + int(earned))


def points_after_return(current_points: int, return_total: float) -> int:
    # points spent on the original sale are not given back
    return max(0, int(current_points) - points_earned(return_total))


def redemption_value(points: int) -> float:
    """Currency value of `points` when redeemed at the till."""
    return round(int(points) * POINT_VALUE, 2)
