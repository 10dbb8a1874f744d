"""
Performance metrics over a closed-trade ledger and its equity curve.
Sharpe and Sortino use per-trade profits annualized by sqrt(252); wins are profit > 0.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from strategy_backtester.core.types import ClosedTrade, Direction, EquityCurvePoint

PERIODS_PER_YEAR = 252.0
# bars-per-day factor used to annualize net profit per bar for Calmar
CALMAR_BARS_PER_DAY = 6


@dataclass(frozen=True)
class MonthlyPnL:
    month: str  # YYYY-MM
    pnl: float
    trades: int


@dataclass(frozen=True)
class UnderwaterPoint:
    time: object
    drawdown_pct: float


@dataclass
class PerformanceMetrics:
    """Aggregate performance metrics. Percentages are 0-100."""
    total_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    net_profit: float = 0.0
    total_return_pct: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    ulcer_index: float = 0.0
    recovery_factor: float = 0.0
    expected_payoff: float = 0.0
    average_trade_duration: float = 0.0
    long_trades: int = 0
    short_trades: int = 0
    long_win_rate: float = 0.0
    short_win_rate: float = 0.0
    monthly_pnl: List[MonthlyPnL] = field(default_factory=list)
    underwater_curve: List[UnderwaterPoint] = field(default_factory=list)


def sharpe_ratio(profits: Sequence[float], periods_per_year: float = PERIODS_PER_YEAR) -> float:
    """Annualized Sharpe over per-trade profits (population std)."""
    if len(profits) == 0:
        return 0.0
    arr = np.asarray(profits, dtype=float)
    std = arr.std()
    if std <= 0:
        return 0.0
    return float(arr.mean() / std * np.sqrt(periods_per_year))


def sortino_ratio(profits: Sequence[float], periods_per_year: float = PERIODS_PER_YEAR) -> float:
    """Annualized Sortino; downside deviation of profits below their mean, over all trades."""
    if len(profits) == 0:
        return 0.0
    arr = np.asarray(profits, dtype=float)
    mean = arr.mean()
    downside = np.minimum(arr - mean, 0.0)
    dd = float(np.sqrt((downside ** 2).sum() / len(arr)))
    if dd <= 0:
        return 0.0
    return float(mean / dd * np.sqrt(periods_per_year))


def calmar_ratio(net_profit: float, max_drawdown: float, bars: int) -> float:
    if max_drawdown <= 0 or bars <= 0:
        return 0.0
    annualized = net_profit / bars * PERIODS_PER_YEAR * CALMAR_BARS_PER_DAY
    return annualized / max_drawdown


def profit_factor(profits: Sequence[float]) -> float:
    """Gross profit / gross loss. inf with wins and no losses, 0 with neither."""
    gross_win = sum(p for p in profits if p > 0)
    gross_loss = abs(sum(p for p in profits if p <= 0))
    if gross_loss <= 0:
        return float("inf") if gross_win > 0 else 0.0
    return gross_win / gross_loss


def win_rate(profits: Sequence[float]) -> float:
    """Percent of trades with positive profit."""
    if len(profits) == 0:
        return 0.0
    return sum(1 for p in profits if p > 0) / len(profits) * 100.0


def max_consecutive(profits: Sequence[float]) -> tuple:
    """(longest win streak, longest loss streak)."""
    best_w = best_l = wins = losses = 0
    for p in profits:
        if p > 0:
            wins += 1
            losses = 0
            best_w = max(best_w, wins)
        else:
            losses += 1
            wins = 0
            best_l = max(best_l, losses)
    return best_w, best_l


def underwater_curve(curve: Sequence[EquityCurvePoint]) -> List[UnderwaterPoint]:
    """Drawdown percent from the running equity peak of the sampled curve."""
    out = []
    peak = None
    for pt in curve:
        if peak is None or pt.equity > peak:
            peak = pt.equity
        dd = (peak - pt.equity) / peak * 100.0 if peak > 0 else 0.0
        out.append(UnderwaterPoint(time=pt.time, drawdown_pct=dd))
    return out


def ulcer_index(curve: Sequence[EquityCurvePoint]) -> float:
    points = underwater_curve(curve)
    if not points:
        return 0.0
    arr = np.array([p.drawdown_pct for p in points])
    return float(np.sqrt((arr ** 2).mean()))


def monthly_pnl(trades: Sequence[ClosedTrade]) -> List[MonthlyPnL]:
    buckets: Dict[str, List[float]] = {}
    for t in trades:
        buckets.setdefault(t.close_time.strftime("%Y-%m"), []).append(t.profit)
    return [MonthlyPnL(month=m, pnl=sum(v), trades=len(v)) for m, v in sorted(buckets.items())]


def compute_metrics(
    trades: Sequence[ClosedTrade],
    equity_curve: Sequence[EquityCurvePoint],
    *,
    initial_balance: float,
    max_drawdown: float,
    max_drawdown_pct: float,
    bars_processed: int,
) -> PerformanceMetrics:
    """
    Pure reduction over the ledger and curve. Drawdown values come from the
    equity tracker because the curve is sampled.
    """
    if not trades:
        return PerformanceMetrics(max_drawdown=max_drawdown, max_drawdown_pct=max_drawdown_pct)

    profits = [t.profit for t in trades]
    wins = [p for p in profits if p > 0]
    losses = [p for p in profits if p <= 0]
    total_profit = sum(wins)
    total_loss = abs(sum(losses))
    net = total_profit - total_loss
    n = len(trades)
    streak_w, streak_l = max_consecutive(profits)
    longs = [t for t in trades if t.direction is Direction.BUY]
    shorts = [t for t in trades if t.direction is Direction.SELL]

    return PerformanceMetrics(
        total_trades=n,
        win_rate=win_rate(profits),
        profit_factor=profit_factor(profits),
        net_profit=net,
        total_return_pct=net / initial_balance * 100.0 if initial_balance > 0 else 0.0,
        total_profit=total_profit,
        total_loss=total_loss,
        max_drawdown=max_drawdown,
        max_drawdown_pct=max_drawdown_pct,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=max(abs(p) for p in losses) if losses else 0.0,
        average_win=total_profit / len(wins) if wins else 0.0,
        average_loss=total_loss / len(losses) if losses else 0.0,
        max_consecutive_wins=streak_w,
        max_consecutive_losses=streak_l,
        sharpe_ratio=sharpe_ratio(profits),
        sortino_ratio=sortino_ratio(profits),
        calmar_ratio=calmar_ratio(net, max_drawdown, bars_processed),
        ulcer_index=ulcer_index(equity_curve),
        recovery_factor=net / max_drawdown if max_drawdown > 0 else 0.0,
        expected_payoff=net / n,
        average_trade_duration=sum(t.duration_bars for t in trades) / n,
        long_trades=len(longs),
        short_trades=len(shorts),
        long_win_rate=win_rate([t.profit for t in longs]),
        short_win_rate=win_rate([t.profit for t in shorts]),
        monthly_pnl=monthly_pnl(trades),
        underwater_curve=underwater_curve(equity_curve),
    )
