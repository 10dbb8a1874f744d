"""Volume-based lines: OBV, VWAP."""

from __future__ import annotations

import numpy as np
import pandas as pd


def obv(df: pd.DataFrame) -> np.ndarray:
    """On-balance volume, starting at 0 on the first bar."""
    direction = np.sign(df["close"].diff().fillna(0.0))
    return (direction * df["volume"]).cumsum().to_numpy(dtype=float)


def vwap(df: pd.DataFrame) -> np.ndarray:
    """Cumulative VWAP over the whole series. NaN until volume has traded."""
    typ = (df["high"] + df["low"] + df["close"]) / 3.0
    pv = (typ * df["volume"]).cumsum()
    cumv = df["volume"].cumsum()
    return (pv / cumv.replace(0, np.nan)).to_numpy(dtype=float)
