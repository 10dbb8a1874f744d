"""Risk management: stop/target/lot sizing, entry limits, daily loss, drawdown."""

from strategy_backtester.risk.manager import RiskManager, RiskResult
from strategy_backtester.risk.sizing import calculate_lot_size, calculate_stop_loss, calculate_take_profit

__all__ = [
    "RiskManager",
    "RiskResult",
    "calculate_lot_size",
    "calculate_stop_loss",
    "calculate_take_profit",
]
