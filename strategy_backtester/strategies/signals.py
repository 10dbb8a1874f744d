"""
Signal evaluator: per-bar entry and exit decisions from a pre-built plan.
All lookups are array reads; nothing here mutates the plan.
"""

from __future__ import annotations
import math
from datetime import datetime
from typing import List, NamedTuple, Optional, Sequence

from strategy_backtester.core.types import Bar
from strategy_backtester.indicators.buffers import BufferRole, IndicatorBuffers, IndicatorKind
from strategy_backtester.strategies.conditions import (
    double_gt,
    double_lt,
    evaluate_condition,
    evaluate_crossover,
    evaluate_macd_signal,
    evaluate_reversal_signal,
)
from strategy_backtester.strategies.graph import ConditionMode, IndicatorNode, TradingTimesMode, TradingTimesNode
from strategy_backtester.strategies.patterns import evaluate_candlestick_patterns
from strategy_backtester.strategies.plan import EvaluationPlan

MIN_SIGNAL_BAR = 2


class EntrySignal(NamedTuple):
    buy: bool
    sell: bool


class ExitSignal(NamedTuple):
    close_buy: bool
    close_sell: bool


NO_ENTRY = EntrySignal(False, False)


def _nan(*values: float) -> bool:
    return any(math.isnan(v) for v in values)


def evaluate_indicator_signal(
    node: IndicatorNode,
    buffers: IndicatorBuffers,
    curr: int,
    prev: int,
    bars: Sequence[Bar],
) -> Optional[EntrySignal]:
    """
    One indicator's (buy, sell) contribution at bar `curr`, or None when its
    values are not available yet (the contribution is then skipped).
    """
    p = node.params
    kind = node.kind
    at = buffers.at
    price_curr = bars[curr].close

    if kind is IndicatorKind.MOVING_AVERAGE:
        ma_curr, ma_prev = at(BufferRole.VALUE, curr), at(BufferRole.VALUE, prev)
        if _nan(ma_curr, ma_prev):
            return None
        if node.is_trend_filter:
            return EntrySignal(double_gt(price_curr, ma_curr), double_lt(price_curr, ma_curr))
        cross = evaluate_crossover(price_curr, bars[prev].close, ma_curr, ma_prev)
        return EntrySignal(cross.above, cross.below)

    if kind in (IndicatorKind.RSI, IndicatorKind.CCI, IndicatorKind.STOCHASTIC):
        role = BufferRole.MAIN if kind is IndicatorKind.STOCHASTIC else BufferRole.VALUE
        curr_v, prev_v = at(role, curr), at(role, prev)
        if _nan(curr_v, prev_v):
            return None
        return EntrySignal(*evaluate_reversal_signal(curr_v, prev_v, p.overbought_level, p.oversold_level))

    if kind is IndicatorKind.MACD:
        values = (at(BufferRole.MAIN, curr), at(BufferRole.MAIN, prev),
                  at(BufferRole.SIGNAL, curr), at(BufferRole.SIGNAL, prev))
        if _nan(*values):
            return None
        return EntrySignal(*evaluate_macd_signal(*values, signal_type=p.signal_type))

    if kind is IndicatorKind.BOLLINGER_BANDS:
        upper, lower = at(BufferRole.UPPER, curr), at(BufferRole.LOWER, curr)
        if _nan(upper, lower):
            return None
        return EntrySignal(price_curr <= lower, price_curr >= upper)

    if kind is IndicatorKind.ADX:
        adx_curr = at(BufferRole.MAIN, curr)
        plus_curr, minus_curr = at(BufferRole.PLUS_DI, curr), at(BufferRole.MINUS_DI, curr)
        if _nan(adx_curr, plus_curr, minus_curr):
            return None
        if not double_gt(adx_curr, p.trend_level):
            return NO_ENTRY
        plus_prev, minus_prev = at(BufferRole.PLUS_DI, prev), at(BufferRole.MINUS_DI, prev)
        if not _nan(plus_prev, minus_prev):
            cross = evaluate_crossover(plus_curr, plus_prev, minus_curr, minus_prev)
            return EntrySignal(cross.above, cross.below)
        return EntrySignal(double_gt(plus_curr, minus_curr), double_gt(minus_curr, plus_curr))

    if kind is IndicatorKind.ICHIMOKU:
        values = (at(BufferRole.TENKAN, curr), at(BufferRole.TENKAN, prev),
                  at(BufferRole.KIJUN, curr), at(BufferRole.KIJUN, prev))
        if _nan(*values):
            return None
        cross = evaluate_crossover(*values)
        return EntrySignal(cross.above, cross.below)

    if kind is IndicatorKind.OBV:
        values = (at(BufferRole.VALUE, curr), at(BufferRole.VALUE, prev),
                  at(BufferRole.SIGNAL, curr), at(BufferRole.SIGNAL, prev))
        if _nan(*values):
            return None
        cross = evaluate_crossover(*values)
        return EntrySignal(cross.above, cross.below)

    if kind is IndicatorKind.BB_SQUEEZE:
        sq_curr, sq_prev = at(BufferRole.SQUEEZE, curr), at(BufferRole.SQUEEZE, prev)
        middle = at(BufferRole.MIDDLE, curr)
        if _nan(sq_curr, sq_prev, middle):
            return None
        if not (sq_prev == 1.0 and sq_curr == 0.0):
            return NO_ENTRY
        return EntrySignal(double_gt(price_curr, middle), double_lt(price_curr, middle))

    if kind is IndicatorKind.VWAP:
        value = at(BufferRole.VALUE, curr)
        if _nan(value):
            return None
        return EntrySignal(double_gt(price_curr, value), double_lt(price_curr, value))

    # ATR only sizes stops and targets
    return None


def _condition_contributions(bar_index: int, plan: EvaluationPlan) -> List[EntrySignal]:
    out = []
    for binding in plan.conditions:
        buffers = plan.buffers[binding.indicator_id]
        role = BufferRole.VALUE if buffers.get(BufferRole.VALUE) is not None else BufferRole.MAIN
        if buffers.get(role) is None:
            present = list(buffers.roles())
            if not present:
                continue
            role = present[0]
        curr = buffers.at(role, bar_index)
        prev = buffers.at(role, bar_index - 1)
        cond = binding.condition
        op = cond.condition_type
        buy = evaluate_condition(op, curr, cond.threshold, prev)
        sell = evaluate_condition(op.mirrored, curr, cond.threshold, prev)
        out.append(EntrySignal(buy, sell))
    return out


def _combine(values: List[bool], mode: ConditionMode) -> bool:
    if not values:
        return False
    if mode is ConditionMode.AND:
        return all(values)
    return any(values)


def evaluate_entry(bar_index: int, bars: Sequence[Bar], plan: EvaluationPlan) -> EntrySignal:
    """Combined buy/sell entry signal at bar_index. Always (False, False) during warm-up."""
    if bar_index < plan.warmup_bars or bar_index < MIN_SIGNAL_BAR or bar_index >= len(bars):
        return NO_ENTRY

    contributions: List[EntrySignal] = []
    for node in plan.indicators:
        buffers = plan.buffers.get(node.id)
        if buffers is None:
            continue
        curr = bar_index - node.bar_offset
        prev = curr - 1
        if prev < 0:
            continue
        signal = evaluate_indicator_signal(node, buffers, curr, prev, bars)
        if signal is not None:
            contributions.append(signal)

    contributions.extend(_condition_contributions(bar_index, plan))

    for node in plan.candlestick_patterns:
        contributions.append(EntrySignal(*evaluate_candlestick_patterns(
            bars, bar_index, node.patterns, node.min_body_size, plan.point,
        )))

    if not contributions:
        return NO_ENTRY
    return EntrySignal(
        buy=_combine([c.buy for c in contributions], plan.condition_mode),
        sell=_combine([c.sell for c in contributions], plan.condition_mode),
    )


def evaluate_exit(bar_index: int, bars: Sequence[Bar], plan: EvaluationPlan) -> ExitSignal:
    """Opposite-signal exits: a sell entry closes longs, a buy entry closes shorts."""
    entry = evaluate_entry(bar_index, bars, plan)
    return ExitSignal(close_buy=entry.sell, close_sell=entry.buy)


def within_trading_times(time: datetime, node: Optional[TradingTimesNode]) -> bool:
    """True when new entries are allowed at `time`. Sessions ending before they start wrap midnight."""
    if node is None or node.mode is TradingTimesMode.ALWAYS:
        return True
    if node.trade_monday_to_friday and time.weekday() >= 5:
        return False
    if not node.sessions:
        return True
    minute = time.hour * 60 + time.minute
    for s in node.sessions:
        start, end = s.start_minutes, s.end_minutes
        if start <= end:
            if start <= minute <= end:
                return True
        elif minute >= start or minute <= end:
            return True
    return False
