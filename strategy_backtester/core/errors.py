"""Typed errors surfaced to callers. Everything else degrades to warnings or sentinels."""


class BacktestError(Exception):
    """Base for all hard failures of the backtester."""


class ConfigError(BacktestError, ValueError):
    """Invalid backtest or walk-forward configuration."""


class InsufficientBarsError(BacktestError, ValueError):
    """Bar series empty or too short for the requested operation."""
