"""
Stop-loss, take-profit and lot size for a new position.
Distances configured in "pips" are points of the symbol (10 ** -digits).
Risk-percent size = balance * risk% / (stop distance in points * point value).
"""

from __future__ import annotations
from typing import Optional

from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.types import Direction
from strategy_backtester.strategies.graph import SizingMethod, StopLossMethod, TakeProfitMethod
from strategy_backtester.strategies.plan import TradeConfig
from strategy_backtester.utils.lots import clamp_lots, floor_to_step

FALLBACK_SL_POINTS = 50
FALLBACK_TP_POINTS = 100


def _offset(direction: Direction, price: float, dist: float, toward_profit: bool) -> float:
    up = (direction is Direction.BUY) == toward_profit
    return price + dist if up else price - dist


def calculate_lot_size(
    trade_config: TradeConfig,
    balance: float,
    sl_distance_points: float,
    config: BacktestConfig,
) -> float:
    sizing = trade_config.sizing
    if sizing is None:
        return config.min_lot
    if sizing.method is SizingMethod.RISK_PERCENT:
        if sl_distance_points <= 0 or config.point_value <= 0:
            return clamp_lots(sizing.fixed_lot, config.min_lot, config.max_lot)
        risk_amount = balance * sizing.risk_percent / 100.0
        lots = floor_to_step(risk_amount / (sl_distance_points * config.point_value), config.lot_step)
        return clamp_lots(lots, sizing.min_lot or config.min_lot, sizing.max_lot or config.max_lot)
    return clamp_lots(round(sizing.fixed_lot, 8), config.min_lot, config.max_lot)


def calculate_stop_loss(
    direction: Direction,
    entry_price: float,
    trade_config: TradeConfig,
    atr_value: Optional[float],
    config: BacktestConfig,
) -> Optional[float]:
    """Stop price, or None when the side has no stop-loss rule."""
    sl = trade_config.stop_loss
    if sl is None:
        return None
    point = config.point
    if sl.method is StopLossMethod.ATR_BASED and atr_value is not None:
        dist = atr_value * sl.atr_multiplier
    elif sl.method is StopLossMethod.ATR_BASED:
        dist = FALLBACK_SL_POINTS * point
    elif sl.method is StopLossMethod.PERCENT:
        dist = entry_price * sl.sl_percent / 100.0
    else:
        dist = sl.fixed_pips * point
    return _offset(direction, entry_price, dist, toward_profit=False)


def calculate_take_profit(
    direction: Direction,
    entry_price: float,
    stop_loss: Optional[float],
    trade_config: TradeConfig,
    atr_value: Optional[float],
    config: BacktestConfig,
) -> Optional[float]:
    """Target price, or None when the side has no take-profit rule."""
    tp = trade_config.take_profit
    if tp is None:
        return None
    point = config.point
    if tp.method is TakeProfitMethod.RISK_REWARD:
        sl_dist = abs(entry_price - stop_loss) if stop_loss is not None else FALLBACK_SL_POINTS * point
        dist = sl_dist * tp.risk_reward_ratio
    elif tp.method is TakeProfitMethod.ATR_BASED and atr_value is not None:
        dist = atr_value * tp.atr_multiplier
    elif tp.method is TakeProfitMethod.ATR_BASED:
        dist = FALLBACK_TP_POINTS * point
    else:
        dist = tp.fixed_pips * point
    return _offset(direction, entry_price, dist, toward_profit=True)
