"""
Trend indicators: MACD, ADX (+DI / -DI), Ichimoku.
"""

from __future__ import annotations
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from strategy_backtester.indicators.moving_average import ema, sma


def macd(values, fast: int = 12, slow: int = 26, signal: int = 9) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(main, signal, histogram). Signal line is an SMA of main."""
    main = ema(values, fast) - ema(values, slow)
    sig = sma(main, signal)
    return main, sig, main - sig


def adx(df: pd.DataFrame, period: int = 14) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Wilder ADX. Returns (adx, plus_di, minus_di).

    Directional movement and true range are Wilder-smoothed: the first smoothed
    value (at index `period`) is the plain sum of bars 1..period, after which
    s[i] = s[i-1] - s[i-1] / period + raw[i]. ADX starts at index 2 * period - 1
    as the mean of the first `period` DX values, then is Wilder-averaged.
    """
    high = df["high"].to_numpy(dtype=float)
    low = df["low"].to_numpy(dtype=float)
    close = df["close"].to_numpy(dtype=float)
    n = len(close)
    adx_out = np.full(n, np.nan)
    plus_di = np.full(n, np.nan)
    minus_di = np.full(n, np.nan)
    if period <= 0 or n <= period:
        return adx_out, plus_di, minus_di

    plus_dm = np.zeros(n)
    minus_dm = np.zeros(n)
    tr = np.zeros(n)
    for i in range(1, n):
        up = high[i] - high[i - 1]
        down = low[i - 1] - low[i]
        plus_dm[i] = up if up > down and up > 0 else 0.0
        minus_dm[i] = down if down > up and down > 0 else 0.0
        tr[i] = max(high[i] - low[i], abs(high[i] - close[i - 1]), abs(low[i] - close[i - 1]))

    s_tr = tr[1:period + 1].sum()
    s_plus = plus_dm[1:period + 1].sum()
    s_minus = minus_dm[1:period + 1].sum()
    dx = np.full(n, np.nan)
    for i in range(period, n):
        if i > period:
            s_tr = s_tr - s_tr / period + tr[i]
            s_plus = s_plus - s_plus / period + plus_dm[i]
            s_minus = s_minus - s_minus / period + minus_dm[i]
        pdi = 100.0 * s_plus / s_tr if s_tr > 0 else 0.0
        mdi = 100.0 * s_minus / s_tr if s_tr > 0 else 0.0
        plus_di[i] = pdi
        minus_di[i] = mdi
        di_sum = pdi + mdi
        dx[i] = abs(pdi - mdi) / di_sum * 100.0 if di_sum > 0 else 0.0

    first = 2 * period - 1
    if first < n:
        adx_out[first] = dx[period:first + 1].mean()
        for i in range(first + 1, n):
            adx_out[i] = (adx_out[i - 1] * (period - 1) + dx[i]) / period
    return adx_out, plus_di, minus_di


def ichimoku(df: pd.DataFrame, tenkan: int = 9, kijun: int = 26, senkou_b: int = 52) -> Dict[str, np.ndarray]:
    """Tenkan, kijun and both spans, computed at the current bar (no forward shift)."""

    def midpoint(period: int) -> pd.Series:
        return (df["high"].rolling(period).max() + df["low"].rolling(period).min()) / 2.0

    tenkan_line = midpoint(tenkan)
    kijun_line = midpoint(kijun)
    span_a = (tenkan_line + kijun_line) / 2.0
    span_b = midpoint(senkou_b)
    return {
        "tenkan": tenkan_line.to_numpy(dtype=float),
        "kijun": kijun_line.to_numpy(dtype=float),
        "span_a": span_a.to_numpy(dtype=float),
        "span_b": span_b.to_numpy(dtype=float),
    }
