"""Lot step and price precision helpers."""

from __future__ import annotations
import math

# Point differences are rounded to this many decimals before profit math so
# exact tick distances yield exact currency amounts.
POINT_PRECISION = 8


def point_size(digits: int) -> float:
    """Smallest quoted increment for a symbol with `digits` decimals."""
    return 10.0 ** -digits


def price_to_points(price_diff: float, point: float) -> float:
    return round(price_diff / point, POINT_PRECISION)


def floor_to_step(qty: float, step: float) -> float:
    """Round down to lot step; 0 for non-positive input."""
    if qty <= 0:
        return 0.0
    # Tolerate float noise just under a step boundary (0.3 / 0.1 == 2.9999999999999996).
    steps = math.floor(qty / step + 1e-9)
    return round(steps * step, 8)


def clamp_lots(lots: float, min_lot: float, max_lot: float) -> float:
    return max(min_lot, min(lots, max_lot))


def round_price(price: float, digits: int) -> float:
    """Round price to quote precision."""
    return round(price, digits)
