"""Strategies: graph model, plan builder, signal evaluation."""

from strategy_backtester.strategies.conditions import (
    EPSILON,
    evaluate_condition,
    evaluate_crossover,
    evaluate_macd_signal,
    evaluate_reversal_signal,
)
from strategy_backtester.strategies.graph import StrategyGraph, StrategySettings, parse_graph
from strategy_backtester.strategies.patterns import evaluate_candlestick_patterns
from strategy_backtester.strategies.plan import EvaluationPlan, PlanBuildResult, TradeConfig, build_plan
from strategy_backtester.strategies.signals import EntrySignal, ExitSignal, evaluate_entry, evaluate_exit

__all__ = [
    "EPSILON",
    "EntrySignal",
    "EvaluationPlan",
    "ExitSignal",
    "PlanBuildResult",
    "StrategyGraph",
    "StrategySettings",
    "TradeConfig",
    "build_plan",
    "evaluate_candlestick_patterns",
    "evaluate_condition",
    "evaluate_crossover",
    "evaluate_entry",
    "evaluate_exit",
    "evaluate_macd_signal",
    "evaluate_reversal_signal",
    "parse_graph",
]
