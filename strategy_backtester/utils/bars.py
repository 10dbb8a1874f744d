"""
Conversion between Bar sequences and OHLCV DataFrames (columns: time, open, high, low, close, volume).
"""

from __future__ import annotations
from typing import List, Sequence, Union

import pandas as pd

from strategy_backtester.core.errors import InsufficientBarsError
from strategy_backtester.core.types import Bar

BarsLike = Union[Sequence[Bar], pd.DataFrame]

OHLCV_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


def _require_columns(df: pd.DataFrame) -> None:
    missing = [c for c in OHLCV_COLUMNS[:5] if c not in df.columns]
    if missing:
        raise InsufficientBarsError(f"OHLCV frame missing columns: {missing}")


def bars_from_frame(df: pd.DataFrame) -> List[Bar]:
    """Build Bars from an OHLCV DataFrame. Missing volume is treated as 0."""
    _require_columns(df)
    times = pd.to_datetime(df["time"])
    volume = df["volume"] if "volume" in df.columns else pd.Series(0.0, index=df.index)
    bars = []
    for t, o, h, l, c, v in zip(times, df["open"], df["high"], df["low"], df["close"], volume):
        bars.append(Bar(
            time=t.to_pydatetime() if isinstance(t, pd.Timestamp) else t,
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=float(v) if not pd.isna(v) else 0.0,
        ))
    return bars


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """OHLCV DataFrame with a RangeIndex aligned to bar indices."""
    return pd.DataFrame(
        {
            "time": [b.time for b in bars],
            "open": [b.open for b in bars],
            "high": [b.high for b in bars],
            "low": [b.low for b in bars],
            "close": [b.close for b in bars],
            "volume": [b.volume for b in bars],
        },
        columns=OHLCV_COLUMNS,
    )


def ensure_bars(bars: BarsLike) -> List[Bar]:
    if isinstance(bars, pd.DataFrame):
        return bars_from_frame(bars)
    return list(bars)


def load_bars_csv(path) -> List[Bar]:
    """Read an OHLCV CSV (header row with the standard column names, any case)."""
    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    if "time" not in df.columns:
        for alt in ("date", "datetime", "timestamp"):
            if alt in df.columns:
                df = df.rename(columns={alt: "time"})
                break
    _require_columns(df)
    df["time"] = pd.to_datetime(df["time"])
    df = df.sort_values("time").reset_index(drop=True)
    return bars_from_frame(df)
