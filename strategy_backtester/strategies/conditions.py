"""
Epsilon-tolerant comparisons and the shared signal primitives (crossover,
reversal from an extreme, MACD modes, threshold conditions).
"""

from __future__ import annotations
import math
from typing import NamedTuple, Optional, Tuple

from strategy_backtester.strategies.graph import ConditionOperator, MACDSignalType

EPSILON = 1e-8


def double_gt(a: float, b: float) -> bool:
    return a - b > EPSILON


def double_lt(a: float, b: float) -> bool:
    return b - a > EPSILON


def double_ge(a: float, b: float) -> bool:
    return a - b > -EPSILON


def double_le(a: float, b: float) -> bool:
    return b - a > -EPSILON


def double_eq(a: float, b: float) -> bool:
    return abs(a - b) < EPSILON


def _missing(*values: Optional[float]) -> bool:
    return any(v is None or math.isnan(v) for v in values)


class Cross(NamedTuple):
    above: bool
    below: bool


NO_CROSS = Cross(False, False)


def evaluate_condition(
    operator: ConditionOperator,
    current: float,
    threshold: float,
    previous: Optional[float] = None,
) -> bool:
    """
    Compare an indicator value with a threshold. Cross operators need the
    previous bar's value and are False without it. NaN input is always False.
    """
    operator = ConditionOperator.parse(operator)
    if _missing(current, threshold):
        return False
    if operator is ConditionOperator.GREATER_THAN:
        return double_gt(current, threshold)
    if operator is ConditionOperator.LESS_THAN:
        return double_lt(current, threshold)
    if operator is ConditionOperator.GREATER_EQUAL:
        return double_ge(current, threshold)
    if operator is ConditionOperator.LESS_EQUAL:
        return double_le(current, threshold)
    if operator is ConditionOperator.EQUAL:
        return double_eq(current, threshold)
    if _missing(previous):
        return False
    if operator is ConditionOperator.CROSSES_ABOVE:
        return double_le(previous, threshold) and double_gt(current, threshold)
    return double_ge(previous, threshold) and double_lt(current, threshold)


def evaluate_crossover(curr_a: float, prev_a: float, curr_b: float, prev_b: float) -> Cross:
    """Line A crossing line B: at-or-below on the prior bar, strictly above now (and the mirror)."""
    if _missing(curr_a, prev_a, curr_b, prev_b):
        return NO_CROSS
    return Cross(
        above=double_le(prev_a, prev_b) and double_gt(curr_a, curr_b),
        below=double_ge(prev_a, prev_b) and double_lt(curr_a, curr_b),
    )


def evaluate_reversal_signal(current: float, previous: float, overbought: float, oversold: float) -> Tuple[bool, bool]:
    """(buy, sell) for oscillators: leaving oversold upward buys, leaving overbought downward sells."""
    if _missing(current, previous):
        return False, False
    buy = double_le(previous, oversold) and double_gt(current, oversold)
    sell = double_ge(previous, overbought) and double_lt(current, overbought)
    return buy, sell


def evaluate_macd_signal(
    main_curr: float,
    main_prev: float,
    signal_curr: float,
    signal_prev: float,
    signal_type: MACDSignalType = MACDSignalType.SIGNAL_CROSS,
) -> Tuple[bool, bool]:
    if _missing(main_curr, main_prev, signal_curr, signal_prev):
        return False, False
    signal_type = MACDSignalType(signal_type)
    if signal_type is MACDSignalType.ZERO_CROSS:
        return (
            double_le(main_prev, 0.0) and double_gt(main_curr, 0.0),
            double_ge(main_prev, 0.0) and double_lt(main_curr, 0.0),
        )
    if signal_type is MACDSignalType.HISTOGRAM_SIGN:
        hist_curr = main_curr - signal_curr
        hist_prev = main_prev - signal_prev
        return (
            double_lt(hist_prev, 0.0) and double_gt(hist_curr, 0.0),
            double_gt(hist_prev, 0.0) and double_lt(hist_curr, 0.0),
        )
    cross = evaluate_crossover(main_curr, main_prev, signal_curr, signal_prev)
    return cross.above, cross.below
