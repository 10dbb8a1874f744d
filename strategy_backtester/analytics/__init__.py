"""Analytics: performance metrics and Monte Carlo trade-order shuffling."""

from strategy_backtester.analytics.metrics import (
    MonthlyPnL,
    PerformanceMetrics,
    UnderwaterPoint,
    compute_metrics,
    profit_factor,
    sharpe_ratio,
    sortino_ratio,
    win_rate,
)
from strategy_backtester.analytics.monte_carlo import MonteCarloResult, run_monte_carlo

__all__ = [
    "MonthlyPnL",
    "MonteCarloResult",
    "PerformanceMetrics",
    "UnderwaterPoint",
    "compute_metrics",
    "profit_factor",
    "run_monte_carlo",
    "sharpe_ratio",
    "sortino_ratio",
    "win_rate",
]
