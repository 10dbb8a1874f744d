"""
Indicator kinds and their output buffers.
Each kind fills only the buffer roles it produces; the rest stay None.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Optional

import numpy as np


class IndicatorKind(str, Enum):
    MOVING_AVERAGE = "moving-average"
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER_BANDS = "bollinger-bands"
    ATR = "atr"
    ADX = "adx"
    STOCHASTIC = "stochastic"
    CCI = "cci"
    ICHIMOKU = "ichimoku"
    OBV = "obv"
    BB_SQUEEZE = "bb-squeeze"
    VWAP = "vwap"


class BufferRole(str, Enum):
    VALUE = "value"
    MAIN = "main"
    SIGNAL = "signal"
    HISTOGRAM = "histogram"
    UPPER = "upper"
    MIDDLE = "middle"
    LOWER = "lower"
    PLUS_DI = "plus_di"
    MINUS_DI = "minus_di"
    TENKAN = "tenkan"
    KIJUN = "kijun"
    SPAN_A = "span_a"
    SPAN_B = "span_b"
    SQUEEZE = "squeeze"


@dataclass(frozen=True)
class IndicatorBuffers:
    """Per-bar output arrays, same length as the bar series, NaN during warm-up."""
    value: Optional[np.ndarray] = None
    main: Optional[np.ndarray] = None
    signal: Optional[np.ndarray] = None
    histogram: Optional[np.ndarray] = None
    upper: Optional[np.ndarray] = None
    middle: Optional[np.ndarray] = None
    lower: Optional[np.ndarray] = None
    plus_di: Optional[np.ndarray] = None
    minus_di: Optional[np.ndarray] = None
    tenkan: Optional[np.ndarray] = None
    kijun: Optional[np.ndarray] = None
    span_a: Optional[np.ndarray] = None
    span_b: Optional[np.ndarray] = None
    squeeze: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        for f in fields(self):
            arr = getattr(self, f.name)
            if arr is not None:
                arr = np.array(arr, dtype=float)
                arr.setflags(write=False)
                object.__setattr__(self, f.name, arr)

    def get(self, role: BufferRole) -> Optional[np.ndarray]:
        return getattr(self, role.value)

    def at(self, role: BufferRole, index: int) -> float:
        """Value of a role at a bar index; NaN when the role or index is unavailable."""
        arr = self.get(role)
        if arr is None or index < 0 or index >= len(arr):
            return float("nan")
        return float(arr[index])

    def roles(self) -> Dict[BufferRole, np.ndarray]:
        out = {}
        for role in BufferRole:
            arr = self.get(role)
            if arr is not None:
                out[role] = arr
        return out
