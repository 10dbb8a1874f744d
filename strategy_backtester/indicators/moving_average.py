"""
Moving averages over numpy arrays. Leading NaNs in the input are skipped;
output is NaN until `period` valid inputs exist.
"""

from __future__ import annotations
from enum import Enum

import numpy as np
import pandas as pd


class MAMethod(str, Enum):
    SMA = "SMA"
    EMA = "EMA"
    SMMA = "SMMA"
    LWMA = "LWMA"


def sma(values, period: int) -> np.ndarray:
    s = pd.Series(np.asarray(values, dtype=float))
    return s.rolling(period).mean().to_numpy()


def _seeded_recursive(values, period: int, alpha: float) -> np.ndarray:
    """x[i] = x[i-1] + alpha * (v[i] - x[i-1]), seeded with the SMA of the first `period` valid values."""
    values = np.asarray(values, dtype=float)
    out = np.full(len(values), np.nan)
    valid = np.flatnonzero(~np.isnan(values))
    if period <= 0 or len(valid) == 0:
        return out
    start = int(valid[0])
    seed_end = start + period - 1
    if seed_end >= len(values):
        return out
    out[seed_end] = values[start:seed_end + 1].mean()
    for i in range(seed_end + 1, len(values)):
        x = values[i]
        if np.isnan(x):
            out[i] = out[i - 1]
        else:
            out[i] = out[i - 1] + alpha * (x - out[i - 1])
    return out


def ema(values, period: int) -> np.ndarray:
    return _seeded_recursive(values, period, 2.0 / (period + 1))


def smma(values, period: int) -> np.ndarray:
    return _seeded_recursive(values, period, 1.0 / period)


def lwma(values, period: int) -> np.ndarray:
    weights = np.arange(1, period + 1, dtype=float)
    total = weights.sum()
    s = pd.Series(np.asarray(values, dtype=float))
    return s.rolling(period).apply(lambda w: np.dot(w, weights) / total, raw=True).to_numpy()


def moving_average(values, period: int, method: MAMethod = MAMethod.SMA) -> np.ndarray:
    method = MAMethod(method)
    if period <= 0:
        return np.full(len(values), np.nan)
    if method is MAMethod.EMA:
        return ema(values, period)
    if method is MAMethod.SMMA:
        return smma(values, period)
    if method is MAMethod.LWMA:
        return lwma(values, period)
    return sma(values, period)
