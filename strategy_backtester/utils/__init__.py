"""Utils: lot/price rounding, bar conversion."""

from strategy_backtester.utils.bars import bars_from_frame, bars_to_frame, ensure_bars, load_bars_csv
from strategy_backtester.utils.lots import floor_to_step, point_size, price_to_points

__all__ = [
    "bars_from_frame",
    "bars_to_frame",
    "ensure_bars",
    "load_bars_csv",
    "floor_to_step",
    "point_size",
    "price_to_points",
]
