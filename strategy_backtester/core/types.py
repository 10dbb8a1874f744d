"""
Core data types: bars, positions, closed trades, equity samples.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Direction":
        return Direction.SELL if self is Direction.BUY else Direction.BUY


class CloseReason(str, Enum):
    SL = "SL"
    TP = "TP"
    SIGNAL = "SIGNAL"
    RISK_MGMT = "RISK_MGMT"
    MANUAL = "MANUAL"


@dataclass(frozen=True)
class Bar:
    """OHLCV candle."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0


@dataclass
class Position:
    """
    Open position state. Owned and mutated by the simulator only.
    current_sl / take_profit are None when no stop / target is configured.
    """
    id: int
    direction: Direction
    open_time: datetime
    open_price: float
    open_bar_index: int
    lots: float
    original_lots: float
    stop_loss: Optional[float]
    current_sl: Optional[float]
    take_profit: Optional[float]
    partial_close_executed: bool = False
    accumulated_swap: float = 0.0
    commission_charged: float = 0.0
    last_swap_day: Optional[date] = None

    @property
    def is_long(self) -> bool:
        return self.direction is Direction.BUY


@dataclass(frozen=True)
class ClosedTrade:
    """Ledger entry written once per (partial) close."""
    id: int
    direction: Direction
    open_time: datetime
    close_time: datetime
    open_price: float
    close_price: float
    lots: float
    profit: float
    swap: float
    commission: float
    close_reason: CloseReason
    open_bar_index: int
    close_bar_index: int

    @property
    def duration_bars(self) -> int:
        return self.close_bar_index - self.open_bar_index


@dataclass(frozen=True)
class EquityCurvePoint:
    bar_index: int
    time: datetime
    balance: float
    equity: float
    drawdown: float  # percent below high-water-mark
