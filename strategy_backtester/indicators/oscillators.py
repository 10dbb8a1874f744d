"""
Oscillators: RSI, Stochastic, CCI.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np
import pandas as pd

from strategy_backtester.indicators.moving_average import MAMethod, moving_average


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi(values, period: int = 14) -> np.ndarray:
    """Wilder RSI. First value at index `period` (needs period + 1 bars)."""
    values = np.asarray(values, dtype=float)
    n = len(values)
    out = np.full(n, np.nan)
    if period <= 0 or n <= period:
        return out
    delta = np.diff(values)
    gains = np.clip(delta, 0.0, None)
    losses = np.clip(-delta, 0.0, None)
    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out


def stochastic(
    df: pd.DataFrame,
    k_period: int = 14,
    d_period: int = 3,
    slowing: int = 3,
    method: MAMethod = MAMethod.SMA,
) -> Tuple[np.ndarray, np.ndarray]:
    """Slow stochastic (main %K with slowing, signal %D). 100 when the range is flat."""
    lowest = df["low"].rolling(k_period).min()
    highest = df["high"].rolling(k_period).max()
    num = (df["close"] - lowest).rolling(slowing).sum()
    den = (highest - lowest).rolling(slowing).sum()
    main = 100.0 * num / den.replace(0.0, np.nan)
    main = main.mask(den == 0.0, 100.0)
    main_arr = main.to_numpy(dtype=float)
    signal = moving_average(main_arr, d_period, method)
    return main_arr, signal


def cci(values, period: int = 14) -> np.ndarray:
    """Commodity Channel Index with the 0.015 Lambert constant; 0 on zero deviation."""
    s = pd.Series(np.asarray(values, dtype=float))
    ma = s.rolling(period).mean()
    mean_dev = s.rolling(period).apply(lambda w: np.abs(w - w.mean()).mean(), raw=True)
    out = (s - ma) / (0.015 * mean_dev.replace(0.0, np.nan))
    out = out.mask(mean_dev == 0.0, 0.0)
    return out.to_numpy(dtype=float)
