"""
Volatility indicators: true range, ATR, Bollinger Bands, BB/Keltner squeeze.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np
import pandas as pd

from strategy_backtester.indicators.moving_average import ema, sma


def true_range(df: pd.DataFrame) -> np.ndarray:
    """TR per bar; bar 0 is NaN because it has no previous close."""
    prev_close = df["close"].shift()
    high_low = df["high"] - df["low"]
    high_close = (df["high"] - prev_close).abs()
    low_close = (df["low"] - prev_close).abs()
    tr = pd.concat([high_low, high_close, low_close], axis=1).max(axis=1)
    tr = tr.mask(prev_close.isna())
    return tr.to_numpy(dtype=float)


def atr(df: pd.DataFrame, period: int = 14) -> np.ndarray:
    return sma(true_range(df), period)


def bollinger_bands(values, period: int = 20, deviation: float = 2.0) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(upper, middle, lower) using population standard deviation."""
    s = pd.Series(np.asarray(values, dtype=float))
    middle = s.rolling(period).mean()
    std = s.rolling(period).std(ddof=0)
    upper = middle + deviation * std
    lower = middle - deviation * std
    return upper.to_numpy(), middle.to_numpy(), lower.to_numpy()


def bb_squeeze(
    df: pd.DataFrame,
    bb_period: int = 20,
    bb_deviation: float = 2.0,
    kc_period: int = 20,
    kc_multiplier: float = 1.5,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Squeeze flag (1 = Bollinger inside Keltner, 0 = not, NaN = not ready) and the Bollinger middle.
    """
    close = df["close"].to_numpy(dtype=float)
    upper, middle, lower = bollinger_bands(close, bb_period, bb_deviation)
    kc_mid = ema(close, kc_period)
    kc_atr = atr(df, kc_period)
    squeeze = np.full(len(close), np.nan)
    ready = ~(np.isnan(upper) | np.isnan(kc_mid) | np.isnan(kc_atr))
    kc_upper = kc_mid + kc_multiplier * kc_atr
    kc_lower = kc_mid - kc_multiplier * kc_atr
    inside = (upper < kc_upper) & (lower > kc_lower)
    squeeze[ready] = np.where(inside[ready], 1.0, 0.0)
    return squeeze, middle
