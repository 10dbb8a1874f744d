"""
Risk manager: entry gating (open-trade caps, per-day count, spacing, hedging,
per-direction caps), daily loss cap and max drawdown stop.
One instance per backtest run.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from strategy_backtester.core.types import Direction, Position
from strategy_backtester.strategies.graph import StrategySettings

logger = logging.getLogger("strategy_backtester.risk")


@dataclass
class RiskResult:
    """Result of an entry check: allowed or rejected + reason."""
    allowed: bool
    reason: str = ""


class RiskManager:
    """
    Enforces the strategy settings. Caps of 0 are disabled.
    Daily loss is realized P&L of trades closed on the current bar's calendar day.
    """

    def __init__(self, settings: StrategySettings, initial_balance: float):
        self.settings = settings
        self.initial_balance = initial_balance
        self._day: Optional[date] = None
        self._day_pnl: float = 0.0
        self._trades_today: int = 0
        self._last_entry_bar: Optional[int] = None

    @property
    def trades_today(self) -> int:
        return self._trades_today

    @property
    def day_pnl(self) -> float:
        return self._day_pnl

    def start_bar(self, day: date) -> None:
        """Reset per-day counters when the calendar day changes."""
        if self._day != day:
            self._day = day
            self._day_pnl = 0.0
            self._trades_today = 0

    def record_trade_pnl(self, pnl: float, close_day: date) -> None:
        if close_day == self._day:
            self._day_pnl += pnl

    def record_entry(self, bar_index: int) -> None:
        self._trades_today += 1
        self._last_entry_bar = bar_index

    def check_daily_loss(self) -> bool:
        """Return False if today's realized loss is beyond the cap."""
        pct = self.settings.max_daily_loss_percent
        if pct <= 0:
            return True
        limit = self.initial_balance * pct / 100.0
        if self._day_pnl < -limit:
            logger.debug("Daily loss cap reached: %.2f < -%.2f", self._day_pnl, limit)
            return False
        return True

    def check_drawdown(self, max_drawdown_pct: float) -> bool:
        """Return False if the run's max drawdown reached the cap."""
        cap = self.settings.max_total_drawdown_percent
        if cap <= 0:
            return True
        if max_drawdown_pct >= cap:
            logger.debug("Max drawdown reached: %.2f%% >= %.2f%%", max_drawdown_pct, cap)
            return False
        return True

    def can_enter(self, bar_index: int, open_positions: Sequence[Position]) -> RiskResult:
        """Limits that apply to any new entry on this bar."""
        s = self.settings
        if len(open_positions) >= s.max_open_trades:
            return RiskResult(allowed=False, reason="max open trades")
        if s.max_trades_per_day > 0 and self._trades_today >= s.max_trades_per_day:
            return RiskResult(allowed=False, reason="max trades per day")
        if (s.min_bars_between_trades > 0 and self._last_entry_bar is not None
                and bar_index - self._last_entry_bar < s.min_bars_between_trades):
            return RiskResult(allowed=False, reason="min bars between trades")
        return RiskResult(allowed=True)

    def can_open(self, direction: Direction, open_positions: Sequence[Position]) -> RiskResult:
        """Direction-specific limits: hedging and per-direction caps."""
        s = self.settings
        if len(open_positions) >= s.max_open_trades:
            return RiskResult(allowed=False, reason="max open trades")
        if not s.allow_hedging and any(p.direction is direction.opposite for p in open_positions):
            return RiskResult(allowed=False, reason="hedging disabled")
        cap = s.max_buy_positions if direction is Direction.BUY else s.max_sell_positions
        if cap > 0 and sum(1 for p in open_positions if p.direction is direction) >= cap:
            return RiskResult(allowed=False, reason=f"max {direction.value.lower()} positions")
        return RiskResult(allowed=True)
