"""
Equity tracker: realized balance, mark-to-market equity, drawdown and the sampled equity curve.
"""

from __future__ import annotations
from typing import List, Sequence

from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.types import Bar, EquityCurvePoint, Position
from strategy_backtester.backtesting.simulator import calc_position_profit

SAMPLE_INTERVAL = 10


class EquityTracker:
    """
    Balance changes only through record_trade; the high-water-mark follows the
    balance and never decreases. Drawdown is measured from the high-water-mark
    to the current equity.
    """

    def __init__(self, config: BacktestConfig):
        self.config = config
        self._balance = config.initial_balance
        self._equity = config.initial_balance
        self._hwm = config.initial_balance
        self._max_dd = 0.0
        self._max_dd_pct = 0.0
        self._curve: List[EquityCurvePoint] = []

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def equity(self) -> float:
        return self._equity

    @property
    def high_water_mark(self) -> float:
        return self._hwm

    @property
    def max_drawdown(self) -> float:
        """Largest drawdown seen, account currency."""
        return self._max_dd

    @property
    def max_drawdown_pct(self) -> float:
        return self._max_dd_pct

    @property
    def equity_curve(self) -> List[EquityCurvePoint]:
        return list(self._curve)

    def record_trade(self, profit: float) -> None:
        self._balance += profit
        if self._balance > self._hwm:
            self._hwm = self._balance

    def update_equity(self, bar_index: int, bar: Bar, open_positions: Sequence[Position]) -> float:
        """Mark open positions to the bar close, update drawdown, sample the curve. Returns equity."""
        unrealized = sum(calc_position_profit(p, bar, self.config) for p in open_positions)
        self._equity = self._balance + unrealized
        dd = max(0.0, self._hwm - self._equity)
        dd_pct = dd / self._hwm * 100.0 if self._hwm > 0 else 0.0
        if dd > self._max_dd:
            self._max_dd = dd
        if dd_pct > self._max_dd_pct:
            self._max_dd_pct = dd_pct
        if bar_index % SAMPLE_INTERVAL == 0 or open_positions:
            self._curve.append(EquityCurvePoint(
                bar_index=bar_index,
                time=bar.time,
                balance=self._balance,
                equity=self._equity,
                drawdown=dd_pct,
            ))
        return self._equity
