"""Core: config, types, errors, logging."""

from strategy_backtester.core.config import load_config, Config, BacktestConfig
from strategy_backtester.core.errors import BacktestError, ConfigError, InsufficientBarsError
from strategy_backtester.core.types import (
    Bar,
    CloseReason,
    ClosedTrade,
    Direction,
    EquityCurvePoint,
    Position,
)
from strategy_backtester.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "BacktestConfig",
    "BacktestError",
    "ConfigError",
    "InsufficientBarsError",
    "Bar",
    "CloseReason",
    "ClosedTrade",
    "Direction",
    "EquityCurvePoint",
    "Position",
    "setup_logging",
]
