"""Candlestick pattern detection on raw OHLC of the current and two prior bars."""

from __future__ import annotations
from typing import Iterable, Sequence, Tuple

from strategy_backtester.core.types import Bar
from strategy_backtester.strategies.graph import CandlePattern


def _body(bar: Bar) -> float:
    return abs(bar.close - bar.open)


def _bullish(bar: Bar) -> bool:
    return bar.close > bar.open


def _bearish(bar: Bar) -> bool:
    return bar.close < bar.open


def evaluate_candlestick_patterns(
    bars: Sequence[Bar],
    bar_index: int,
    patterns: Iterable[CandlePattern],
    min_body_size: float,
    point: float,
) -> Tuple[bool, bool]:
    """
    (buy, sell) raised by any of `patterns` at bar_index.
    min_body_size is in points; bodies must exceed it where a pattern needs a real body.
    """
    if bar_index < 3 or bar_index >= len(bars):
        return False, False
    min_body = min_body_size * point
    curr, prev, prev2 = bars[bar_index], bars[bar_index - 1], bars[bar_index - 2]
    curr_body, prev_body, prev2_body = _body(curr), _body(prev), _body(prev2)
    buy = sell = False

    for pattern in patterns:
        if pattern is CandlePattern.ENGULFING_BULLISH:
            if (_bearish(prev) and _bullish(curr) and curr_body > min_body
                    and curr.close > prev.open and curr.open < prev.close):
                buy = True
        elif pattern is CandlePattern.ENGULFING_BEARISH:
            if (_bullish(prev) and _bearish(curr) and curr_body > min_body
                    and curr.close < prev.open and curr.open > prev.close):
                sell = True
        elif pattern is CandlePattern.HAMMER:
            if _bullish(curr) and curr_body > min_body:
                lower_wick = curr.open - curr.low
                upper_wick = curr.high - curr.close
                if lower_wick >= curr_body * 2 and upper_wick < curr_body * 0.5:
                    buy = True
        elif pattern is CandlePattern.SHOOTING_STAR:
            if _bearish(curr) and curr_body > min_body:
                upper_wick = curr.high - curr.open
                lower_wick = curr.close - curr.low
                if upper_wick >= curr_body * 2 and lower_wick < curr_body * 0.5:
                    sell = True
        elif pattern is CandlePattern.DOJI:
            rng = curr.high - curr.low
            if rng > 0 and curr_body / rng < 0.1:
                # direction taken from the candle before the doji
                if _bearish(prev):
                    buy = True
                if _bullish(prev):
                    sell = True
        elif pattern is CandlePattern.MORNING_STAR:
            if (_bearish(prev2) and prev2_body > min_body and prev_body < prev2_body * 0.3
                    and _bullish(curr) and curr_body > min_body
                    and curr.close > (prev2.open + prev2.close) / 2):
                buy = True
        elif pattern is CandlePattern.EVENING_STAR:
            if (_bullish(prev2) and prev2_body > min_body and prev_body < prev2_body * 0.3
                    and _bearish(curr) and curr_body > min_body
                    and curr.close < (prev2.open + prev2.close) / 2):
                sell = True
        elif pattern is CandlePattern.THREE_WHITE_SOLDIERS:
            if (_bullish(prev2) and _bullish(prev) and _bullish(curr)
                    and prev.close > prev2.close and curr.close > prev.close
                    and curr_body > min_body and prev_body > min_body):
                buy = True
        elif pattern is CandlePattern.THREE_BLACK_CROWS:
            if (_bearish(prev2) and _bearish(prev) and _bearish(curr)
                    and prev.close < prev2.close and curr.close < prev.close
                    and curr_body > min_body and prev_body > min_body):
                sell = True
        elif pattern is CandlePattern.HARAMI_BULLISH:
            if (_bearish(prev) and _bullish(curr) and prev_body > min_body and curr_body < prev_body
                    and curr.close < prev.open and curr.open > prev.close):
                buy = True
        elif pattern is CandlePattern.HARAMI_BEARISH:
            if (_bullish(prev) and _bearish(curr) and prev_body > min_body and curr_body < prev_body
                    and curr.open < prev.close and curr.close > prev.open):
                sell = True

    return buy, sell
