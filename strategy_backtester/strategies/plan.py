"""
Plan builder: turns a strategy graph plus the bar series into an immutable
evaluation plan with every indicator buffer pre-computed.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

import numpy as np

from strategy_backtester.core.types import Direction
from strategy_backtester.indicators.buffers import IndicatorBuffers, IndicatorKind
from strategy_backtester.indicators.registry import compute_indicator, indicator_warmup
from strategy_backtester.strategies.graph import (
    ATRParams,
    BreakevenNode,
    CandlestickNode,
    ConditionMode,
    ConditionNode,
    IndicatorNode,
    PartialCloseNode,
    PlaceOrderNode,
    StopLossNode,
    StrategyGraph,
    StrategySettings,
    TakeProfitNode,
    TimeExitNode,
    TradingTimesNode,
    TrailingStopNode,
    UnsupportedNode,
)
from strategy_backtester.utils.bars import BarsLike
from strategy_backtester.utils.lots import point_size

logger = logging.getLogger("strategy_backtester.plan")

WARMUP_SAFETY_BUFFER = 10
MIN_WARMUP_BARS = 5
DEFAULT_ATR_PERIOD = 14


@dataclass(frozen=True)
class TradeConfig:
    """Sizing and trade-management rules for one side. A None rule is disabled."""
    enabled: bool = True
    sizing: Optional[PlaceOrderNode] = None
    stop_loss: Optional[StopLossNode] = None
    take_profit: Optional[TakeProfitNode] = None
    trailing_stop: Optional[TrailingStopNode] = None
    breakeven: Optional[BreakevenNode] = None
    partial_close: Optional[PartialCloseNode] = None
    time_exit: Optional[TimeExitNode] = None


@dataclass(frozen=True)
class ConditionBinding:
    """A condition node and the indicator whose VALUE/MAIN buffer it reads."""
    condition: ConditionNode
    indicator_id: str


@dataclass(frozen=True)
class EvaluationPlan:
    indicators: Tuple[IndicatorNode, ...]
    buffers: Mapping[str, IndicatorBuffers]
    candlestick_patterns: Tuple[CandlestickNode, ...]
    conditions: Tuple[ConditionBinding, ...]
    buy_config: TradeConfig
    sell_config: TradeConfig
    condition_mode: ConditionMode
    warmup_bars: int
    point: float
    atr_period: int = DEFAULT_ATR_PERIOD
    atr: Optional[np.ndarray] = None
    trading_times: Optional[TradingTimesNode] = None
    settings: StrategySettings = field(default_factory=StrategySettings)

    def trade_config(self, direction: Direction) -> TradeConfig:
        return self.buy_config if direction is Direction.BUY else self.sell_config

    def atr_at(self, index: int) -> Optional[float]:
        """ATR used for stop/target distances; None while not available."""
        if self.atr is None or index < 0 or index >= len(self.atr):
            return None
        value = float(self.atr[index])
        return None if np.isnan(value) else value


@dataclass(frozen=True)
class PlanBuildResult:
    plan: EvaluationPlan
    warnings: Tuple[str, ...] = ()


def compute_warmup(indicators: List[IndicatorNode]) -> int:
    """Sum of warm-ups when several indicators exist (they may chain), else the single one; plus buffer."""
    needs = [indicator_warmup(ind) for ind in indicators]
    base = sum(needs) if len(needs) > 1 else max(needs, default=0)
    return max(base + WARMUP_SAFETY_BUFFER, MIN_WARMUP_BARS)


def _bound_sides(graph: StrategyGraph, node_id: str, buy_ids: set, sell_ids: set) -> Tuple[bool, bool]:
    """(applies_to_buy, applies_to_sell) for a trade-management node."""
    linked = set(graph.neighbours(node_id))
    to_buy = bool(linked & buy_ids)
    to_sell = bool(linked & sell_ids)
    if not to_buy and not to_sell:
        return True, True
    return to_buy, to_sell


def _first_for_side(graph: StrategyGraph, node_type, side: Direction, buy_ids: set, sell_ids: set):
    for node in graph.nodes_of(node_type):
        to_buy, to_sell = _bound_sides(graph, node.id, buy_ids, sell_ids)
        if (side is Direction.BUY and to_buy) or (side is Direction.SELL and to_sell):
            return node
    return None


def _trade_config(graph: StrategyGraph, side: Direction, place_nodes: List[PlaceOrderNode]) -> TradeConfig:
    buy_ids = {n.id for n in place_nodes if n.direction is Direction.BUY}
    sell_ids = {n.id for n in place_nodes if n.direction is Direction.SELL}
    own = [n for n in place_nodes if n.direction is side]
    return TradeConfig(
        enabled=bool(own) or not place_nodes,
        sizing=own[0] if own else None,
        stop_loss=_first_for_side(graph, StopLossNode, side, buy_ids, sell_ids),
        take_profit=_first_for_side(graph, TakeProfitNode, side, buy_ids, sell_ids),
        trailing_stop=_first_for_side(graph, TrailingStopNode, side, buy_ids, sell_ids),
        breakeven=_first_for_side(graph, BreakevenNode, side, buy_ids, sell_ids),
        partial_close=_first_for_side(graph, PartialCloseNode, side, buy_ids, sell_ids),
        time_exit=_first_for_side(graph, TimeExitNode, side, buy_ids, sell_ids),
    )


def build_plan(graph: StrategyGraph, bars: BarsLike, digits: int = 5) -> PlanBuildResult:
    """
    Pre-compute indicator buffers and resolve trade rules. Never raises on node
    content: unsupported nodes and unusable conditions become warnings.
    """
    warnings: List[str] = list(graph.warnings)
    indicators: List[IndicatorNode] = []
    buffers = {}
    for ind in graph.nodes_of(IndicatorNode):
        try:
            buffers[ind.id] = compute_indicator(bars, ind)
        except ValueError as e:
            warnings.append(f'"{ind.label or ind.kind.value}" could not be computed ({e}) and will be ignored')
            continue
        indicators.append(ind)

    for node in graph.nodes_of(UnsupportedNode):
        warnings.append(f'"{node.display_name}" is not supported in backtesting and will be ignored')

    patterns = tuple(n for n in graph.nodes_of(CandlestickNode) if n.patterns)

    conditions = []
    for cond in graph.nodes_of(ConditionNode):
        source = None
        for src_id in graph.sources_of(cond.id):
            if src_id in buffers:
                source = src_id
                break
        if source is None:
            warnings.append(f'"{cond.label or cond.id}" has no connected indicator and will be ignored')
            continue
        conditions.append(ConditionBinding(condition=cond, indicator_id=source))

    if not indicators:
        warnings.append("No indicator nodes found - strategy has no entry conditions")

    atr_period = DEFAULT_ATR_PERIOD
    for ind in indicators:
        if ind.kind is IndicatorKind.ATR:
            if ind.params.period > 0:
                atr_period = ind.params.period
            break
    atr_node = IndicatorNode(id="__atr_sl_tp", kind=IndicatorKind.ATR, params=ATRParams(period=atr_period))
    atr_values = compute_indicator(bars, atr_node).value

    place_nodes = graph.nodes_of(PlaceOrderNode)
    times = graph.nodes_of(TradingTimesNode)

    plan = EvaluationPlan(
        indicators=tuple(indicators),
        buffers=MappingProxyType(buffers),
        candlestick_patterns=patterns,
        conditions=tuple(conditions),
        buy_config=_trade_config(graph, Direction.BUY, place_nodes),
        sell_config=_trade_config(graph, Direction.SELL, place_nodes),
        condition_mode=graph.settings.condition_mode,
        warmup_bars=compute_warmup(indicators),
        point=point_size(digits),
        atr_period=atr_period,
        atr=atr_values,
        trading_times=times[0] if times else None,
        settings=graph.settings,
    )
    for w in warnings:
        logger.warning("Plan: %s", w)
    return PlanBuildResult(plan=plan, warnings=tuple(warnings))
