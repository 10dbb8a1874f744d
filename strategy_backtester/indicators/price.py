"""Applied price series derived from OHLC columns."""

from __future__ import annotations
from enum import Enum

import numpy as np
import pandas as pd


class AppliedPrice(str, Enum):
    CLOSE = "CLOSE"
    OPEN = "OPEN"
    HIGH = "HIGH"
    LOW = "LOW"
    MEDIAN = "MEDIAN"
    TYPICAL = "TYPICAL"
    WEIGHTED = "WEIGHTED"


def applied_price(df: pd.DataFrame, price: AppliedPrice = AppliedPrice.CLOSE) -> np.ndarray:
    price = AppliedPrice(price)
    if price is AppliedPrice.OPEN:
        s = df["open"]
    elif price is AppliedPrice.HIGH:
        s = df["high"]
    elif price is AppliedPrice.LOW:
        s = df["low"]
    elif price is AppliedPrice.MEDIAN:
        s = (df["high"] + df["low"]) / 2.0
    elif price is AppliedPrice.TYPICAL:
        s = (df["high"] + df["low"] + df["close"]) / 3.0
    elif price is AppliedPrice.WEIGHTED:
        s = (df["high"] + df["low"] + 2.0 * df["close"]) / 4.0
    else:
        s = df["close"]
    return s.to_numpy(dtype=float)
