"""
Trade simulator: position lifecycle for the backtest engine.
Opening at close +/- half spread, stop/target checks against the spread-adjusted
bar range (stop first), trailing / breakeven stop moves that only tighten,
one-time partial close, and overnight swap.

Profit = (price diff in points) * point_value * lots - commission * lots * 2 - swap.
"""

from __future__ import annotations
from typing import Optional, Tuple

from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.types import Bar, CloseReason, Direction, Position
from strategy_backtester.risk.sizing import (
    FALLBACK_SL_POINTS,
    calculate_lot_size,
    calculate_stop_loss,
    calculate_take_profit,
)
from strategy_backtester.strategies.graph import BreakevenTrigger, PartialCloseTrigger, TrailingMethod
from strategy_backtester.strategies.plan import TradeConfig
from strategy_backtester.utils.lots import price_to_points


def half_spread(config: BacktestConfig) -> float:
    return config.spread * config.point / 2.0


def _profit_distance(pos: Position, price: float) -> float:
    return price - pos.open_price if pos.is_long else pos.open_price - price


def _more_favorable(pos: Position, new_sl: float) -> bool:
    if pos.current_sl is None:
        return True
    return new_sl > pos.current_sl if pos.is_long else new_sl < pos.current_sl


def open_position(
    position_id: int,
    direction: Direction,
    bar: Bar,
    bar_index: int,
    trade_config: TradeConfig,
    balance: float,
    atr_value: Optional[float],
    config: BacktestConfig,
) -> Position:
    """Open at the ask (buy) or bid (sell). Stop first, then size from the stop distance, then target."""
    hs = half_spread(config)
    entry = bar.close + hs if direction is Direction.BUY else bar.close - hs
    sl = calculate_stop_loss(direction, entry, trade_config, atr_value, config)
    sl_points = price_to_points(abs(entry - sl), config.point) if sl is not None else FALLBACK_SL_POINTS
    lots = calculate_lot_size(trade_config, balance, sl_points, config)
    tp = calculate_take_profit(direction, entry, sl, trade_config, atr_value, config)
    return Position(
        id=position_id,
        direction=direction,
        open_time=bar.time,
        open_price=entry,
        open_bar_index=bar_index,
        lots=lots,
        original_lots=lots,
        stop_loss=sl,
        current_sl=sl,
        take_profit=tp,
        last_swap_day=bar.time.date(),
    )


def check_sl_tp(pos: Position, bar: Bar, config: BacktestConfig) -> Optional[Tuple[float, CloseReason]]:
    """
    (close price, reason) when the bar touched the stop or target, else None.
    Longs exit on the bid (range - half spread), shorts on the ask. The stop is
    checked first because intra-bar order cannot be recovered from OHLC.
    """
    hs = half_spread(config)
    if pos.is_long:
        if pos.current_sl is not None and bar.low - hs <= pos.current_sl:
            return pos.current_sl, CloseReason.SL
        if pos.take_profit is not None and bar.high - hs >= pos.take_profit:
            return pos.take_profit, CloseReason.TP
    else:
        if pos.current_sl is not None and bar.high + hs >= pos.current_sl:
            return pos.current_sl, CloseReason.SL
        if pos.take_profit is not None and bar.low + hs <= pos.take_profit:
            return pos.take_profit, CloseReason.TP
    return None


def commission_for(lots: float, config: BacktestConfig) -> float:
    """Round-trip commission."""
    return config.commission * lots * 2


def calc_realized_profit(
    pos: Position,
    close_price: float,
    config: BacktestConfig,
    lots: Optional[float] = None,
    swap: Optional[float] = None,
) -> float:
    """Profit of closing `lots` (default: all remaining) at close_price, net of commission and swap."""
    lots = pos.lots if lots is None else lots
    swap = pos.accumulated_swap if swap is None else swap
    points = price_to_points(_profit_distance(pos, close_price), config.point)
    return points * config.point_value * lots - commission_for(lots, config) - swap


def calc_position_profit(pos: Position, bar: Bar, config: BacktestConfig) -> float:
    """Unrealized profit at the bar close (bid for longs, ask for shorts)."""
    hs = half_spread(config)
    price = bar.close - hs if pos.is_long else bar.close + hs
    return calc_realized_profit(pos, price, config)


def apply_trailing_stop(
    pos: Position,
    bar: Bar,
    trade_config: TradeConfig,
    atr_value: Optional[float],
    config: BacktestConfig,
) -> bool:
    """Move the stop behind price once in profit by start_after_pips. Returns True if it moved."""
    ts = trade_config.trailing_stop
    if ts is None:
        return False
    point = config.point
    profit_points = price_to_points(_profit_distance(pos, bar.close), point)
    if profit_points < ts.start_after_pips:
        return False
    if ts.method is TrailingMethod.ATR_BASED:
        if atr_value is None:
            return False
        dist = atr_value * ts.trail_atr_multiplier
    elif ts.method is TrailingMethod.PERCENTAGE:
        dist = bar.close * ts.trail_percent / 100.0
    else:
        dist = ts.trail_pips * point

    if pos.is_long:
        new_sl = bar.close - dist
        beyond_entry = new_sl > pos.open_price
    else:
        new_sl = bar.close + dist
        beyond_entry = new_sl < pos.open_price
    if beyond_entry and _more_favorable(pos, new_sl):
        pos.current_sl = new_sl
        return True
    return False


def apply_breakeven_stop(
    pos: Position,
    bar: Bar,
    trade_config: TradeConfig,
    atr_value: Optional[float],
    config: BacktestConfig,
) -> bool:
    """Move the stop to entry + lock_pips once profit reaches the trigger. Returns True if it moved."""
    be = trade_config.breakeven
    if be is None:
        return False
    point = config.point
    if be.trigger is BreakevenTrigger.ATR:
        if atr_value is None:
            return False
        trigger = atr_value * be.trigger_atr_multiplier
    elif be.trigger is BreakevenTrigger.PERCENTAGE:
        trigger = pos.open_price * be.trigger_percent / 100.0
    else:
        trigger = be.trigger_pips * point

    lock = be.lock_pips * point
    if pos.is_long:
        reached = bar.close >= pos.open_price + trigger
        new_sl = pos.open_price + lock
    else:
        reached = bar.close <= pos.open_price - trigger
        new_sl = pos.open_price - lock
    if reached and _more_favorable(pos, new_sl):
        pos.current_sl = new_sl
        return True
    return False


def check_partial_close(pos: Position, bar: Bar, trade_config: TradeConfig, config: BacktestConfig) -> float:
    """
    Fraction of the remaining lots to close now (0 when not triggered).
    Fires at most once per position; may also move the stop to entry.
    """
    pc = trade_config.partial_close
    if pc is None or pos.partial_close_executed:
        return 0.0
    dist = _profit_distance(pos, bar.close)
    if pc.trigger_method is PartialCloseTrigger.PERCENT:
        triggered = pos.open_price > 0 and dist / pos.open_price * 100.0 >= pc.trigger_percent
    else:
        triggered = price_to_points(dist, config.point) >= pc.trigger_pips
    if not triggered:
        return 0.0
    pos.partial_close_executed = True
    if pc.move_sl_to_breakeven and _more_favorable(pos, pos.open_price):
        pos.current_sl = pos.open_price
    return max(0.0, min(pc.close_percent / 100.0, 1.0))


def apply_swap(pos: Position, bar: Bar, config: BacktestConfig) -> float:
    """Charge one rollover when the bar starts a new calendar day. Returns the amount (positive = cost)."""
    day = bar.time.date()
    if pos.last_swap_day is not None and day <= pos.last_swap_day:
        return 0.0
    pos.last_swap_day = day
    rate = config.swap_long if pos.is_long else config.swap_short
    cost = rate * pos.lots
    pos.accumulated_swap += cost
    return cost
