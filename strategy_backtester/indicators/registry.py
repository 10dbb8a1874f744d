"""
Dispatch from an indicator node to its buffer computation and warm-up requirement.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Callable, Dict

import pandas as pd

from strategy_backtester.indicators.buffers import IndicatorBuffers, IndicatorKind
from strategy_backtester.indicators.moving_average import moving_average, sma
from strategy_backtester.indicators.oscillators import cci, rsi, stochastic
from strategy_backtester.indicators.price import applied_price
from strategy_backtester.indicators.trend import adx, ichimoku, macd
from strategy_backtester.indicators.volatility import atr, bb_squeeze, bollinger_bands
from strategy_backtester.indicators.volume import obv, vwap
from strategy_backtester.utils.bars import BarsLike, bars_to_frame

if TYPE_CHECKING:
    from strategy_backtester.strategies.graph import IndicatorNode

VWAP_WARMUP = 50


def _frame(bars: BarsLike) -> pd.DataFrame:
    if isinstance(bars, pd.DataFrame):
        return bars.reset_index(drop=True)
    return bars_to_frame(bars)


def _moving_average(df: pd.DataFrame, p) -> IndicatorBuffers:
    return IndicatorBuffers(value=moving_average(applied_price(df, p.applied_price), p.period, p.method))


def _rsi(df: pd.DataFrame, p) -> IndicatorBuffers:
    return IndicatorBuffers(value=rsi(applied_price(df, p.applied_price), p.period))


def _macd(df: pd.DataFrame, p) -> IndicatorBuffers:
    main, signal, hist = macd(applied_price(df, p.applied_price), p.fast_period, p.slow_period, p.signal_period)
    return IndicatorBuffers(main=main, signal=signal, histogram=hist)


def _bollinger(df: pd.DataFrame, p) -> IndicatorBuffers:
    upper, middle, lower = bollinger_bands(applied_price(df, p.applied_price), p.period, p.deviation)
    return IndicatorBuffers(upper=upper, middle=middle, lower=lower)


def _atr(df: pd.DataFrame, p) -> IndicatorBuffers:
    return IndicatorBuffers(value=atr(df, p.period))


def _adx(df: pd.DataFrame, p) -> IndicatorBuffers:
    main, plus_di, minus_di = adx(df, p.period)
    return IndicatorBuffers(main=main, plus_di=plus_di, minus_di=minus_di)


def _stochastic(df: pd.DataFrame, p) -> IndicatorBuffers:
    main, signal = stochastic(df, p.k_period, p.d_period, p.slowing, p.ma_method)
    return IndicatorBuffers(main=main, signal=signal)


def _cci(df: pd.DataFrame, p) -> IndicatorBuffers:
    return IndicatorBuffers(value=cci(applied_price(df, p.applied_price), p.period))


def _ichimoku(df: pd.DataFrame, p) -> IndicatorBuffers:
    lines = ichimoku(df, p.tenkan_period, p.kijun_period, p.senkou_b_period)
    return IndicatorBuffers(**lines)


def _obv(df: pd.DataFrame, p) -> IndicatorBuffers:
    line = obv(df)
    return IndicatorBuffers(value=line, signal=sma(line, p.signal_period))


def _bb_squeeze(df: pd.DataFrame, p) -> IndicatorBuffers:
    squeeze, middle = bb_squeeze(df, p.bb_period, p.bb_deviation, p.kc_period, p.kc_multiplier)
    return IndicatorBuffers(squeeze=squeeze, middle=middle)


def _vwap(df: pd.DataFrame, p) -> IndicatorBuffers:
    return IndicatorBuffers(value=vwap(df))


_COMPUTE: Dict[IndicatorKind, Callable[[pd.DataFrame, object], IndicatorBuffers]] = {
    IndicatorKind.MOVING_AVERAGE: _moving_average,
    IndicatorKind.RSI: _rsi,
    IndicatorKind.MACD: _macd,
    IndicatorKind.BOLLINGER_BANDS: _bollinger,
    IndicatorKind.ATR: _atr,
    IndicatorKind.ADX: _adx,
    IndicatorKind.STOCHASTIC: _stochastic,
    IndicatorKind.CCI: _cci,
    IndicatorKind.ICHIMOKU: _ichimoku,
    IndicatorKind.OBV: _obv,
    IndicatorKind.BB_SQUEEZE: _bb_squeeze,
    IndicatorKind.VWAP: _vwap,
}


def compute_indicator(bars: BarsLike, node: "IndicatorNode") -> IndicatorBuffers:
    """Compute every buffer of an indicator node over the whole series. Pure."""
    return _COMPUTE[node.kind](_frame(bars), node.params)


def indicator_warmup(node: "IndicatorNode") -> int:
    """Bars an indicator needs before its buffers are valid."""
    p = node.params
    kind = node.kind
    if kind is IndicatorKind.MOVING_AVERAGE:
        return p.period
    if kind is IndicatorKind.RSI:
        return p.period + 1
    if kind is IndicatorKind.MACD:
        return p.slow_period + p.signal_period
    if kind is IndicatorKind.BOLLINGER_BANDS:
        return p.period
    if kind is IndicatorKind.ATR:
        return p.period + 1
    if kind is IndicatorKind.ADX:
        return 2 * p.period + 1
    if kind is IndicatorKind.STOCHASTIC:
        return p.k_period + p.slowing + p.d_period
    if kind is IndicatorKind.CCI:
        return p.period
    if kind is IndicatorKind.ICHIMOKU:
        return p.senkou_b_period
    if kind is IndicatorKind.OBV:
        return p.signal_period
    if kind is IndicatorKind.BB_SQUEEZE:
        return max(p.bb_period, p.kc_period) + 1
    return VWAP_WARMUP
