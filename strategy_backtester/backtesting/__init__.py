"""Backtesting: trade simulator, equity tracker, engine loop, walk-forward validation."""

from strategy_backtester.backtesting.engine import BacktestEngine, BacktestResult, run_backtest
from strategy_backtester.backtesting.equity import EquityTracker
from strategy_backtester.backtesting.walk_forward import (
    WalkForwardResult,
    WalkForwardWindow,
    run_walk_forward,
    split_windows,
)

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "EquityTracker",
    "WalkForwardResult",
    "WalkForwardWindow",
    "run_backtest",
    "run_walk_forward",
    "split_windows",
]
