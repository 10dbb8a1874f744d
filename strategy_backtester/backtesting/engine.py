"""
Backtest engine: deterministic bar-by-bar simulation of a strategy graph.

Per bar, in fixed order: swap rollover, stop/target hits, trade management
(breakeven, trailing, partial close, time exit), account limits, opposite-signal
exits, entries, equity update. Indicators are computed once up front.
"""

from __future__ import annotations
import logging
import random
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Mapping, Optional, Tuple, Union

from strategy_backtester.analytics.metrics import PerformanceMetrics, compute_metrics
from strategy_backtester.backtesting.equity import EquityTracker
from strategy_backtester.backtesting.simulator import (
    apply_breakeven_stop,
    apply_swap,
    apply_trailing_stop,
    calc_realized_profit,
    check_partial_close,
    check_sl_tp,
    commission_for,
    open_position,
)
from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.errors import InsufficientBarsError
from strategy_backtester.core.types import Bar, CloseReason, ClosedTrade, Direction, EquityCurvePoint, Position
from strategy_backtester.risk.manager import RiskManager
from strategy_backtester.strategies.graph import StrategyGraph, parse_graph
from strategy_backtester.strategies.plan import EvaluationPlan, build_plan
from strategy_backtester.strategies.signals import evaluate_entry, evaluate_exit, within_trading_times
from strategy_backtester.utils.bars import BarsLike, ensure_bars
from strategy_backtester.utils.lots import floor_to_step

logger = logging.getLogger("strategy_backtester.backtest")

ProgressCallback = Callable[[int, int, int], None]
GraphLike = Union[StrategyGraph, Mapping]

CORRELATION_FILTER_WARNING = (
    "Correlation filter is enabled but cannot be applied in single-symbol backtest. "
    "Correlation filtering between pairs requires multi-symbol data and is only applied in live trading."
)


@dataclass
class BacktestResult:
    """Backtest output: metrics, trade ledger, sampled equity curve, warnings."""
    metrics: PerformanceMetrics
    trades: List[ClosedTrade] = field(default_factory=list)
    equity_curve: List[EquityCurvePoint] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    bars_processed: int = 0
    duration_ms: float = 0.0
    requote_count: int = 0
    total_swap: float = 0.0
    total_commission: float = 0.0
    initial_deposit: float = 0.0
    final_balance: float = 0.0

    @property
    def net_profit(self) -> float:
        return self.metrics.net_profit


def adjust_point_value(config: BacktestConfig) -> Tuple[BacktestConfig, List[str]]:
    """3-digit quotes with the default point value are JPY-style: one point is worth 100."""
    if config.digits == 3 and config.point_value == 1.0:
        adjusted = replace(config, point_value=100.0)
        return adjusted, [
            f"JPY pair detected (digits={config.digits}): pointValue adjusted to {adjusted.point_value:g}"
        ]
    return config, []


class _Run:
    """Mutable state of one backtest invocation."""

    def __init__(self, config: BacktestConfig, plan: EvaluationPlan, bars: List[Bar]):
        self.config = config
        self.plan = plan
        self.bars = bars
        self.tracker = EquityTracker(config)
        self.risk = RiskManager(plan.settings, config.initial_balance)
        self.rng = random.Random(config.requote_seed)
        self.positions: List[Position] = []
        self.trades: List[ClosedTrade] = []
        self.next_id = 1
        self.requotes = 0
        self.total_swap = 0.0
        self.total_commission = 0.0

    def close(self, pos: Position, price: float, bar_index: int, reason: CloseReason,
              lots: Optional[float] = None) -> ClosedTrade:
        """Realize `lots` of pos (all remaining by default). Swap is settled with the final close."""
        bar = self.bars[bar_index]
        lots = pos.lots if lots is None else lots
        final = lots >= pos.lots
        swap = pos.accumulated_swap if final else 0.0
        profit = calc_realized_profit(pos, price, self.config, lots=lots, swap=swap)
        commission = commission_for(lots, self.config)
        pos.commission_charged += commission
        self.total_commission += commission
        self.tracker.record_trade(profit)
        self.risk.record_trade_pnl(profit, bar.time.date())
        trade = ClosedTrade(
            id=pos.id,
            direction=pos.direction,
            open_time=pos.open_time,
            close_time=bar.time,
            open_price=pos.open_price,
            close_price=price,
            lots=lots,
            profit=profit,
            swap=swap,
            commission=commission,
            close_reason=reason,
            open_bar_index=pos.open_bar_index,
            close_bar_index=bar_index,
        )
        self.trades.append(trade)
        logger.debug("Closed #%d %s %.2f lots @ %.5f (%s) profit=%.2f",
                     pos.id, pos.direction.value, lots, price, reason.value, profit)
        return trade

    def close_all(self, bar_index: int, reason: CloseReason) -> None:
        price = self.bars[bar_index].close
        for pos in self.positions:
            self.close(pos, price, bar_index, reason)
        self.positions = []

    def check_stops(self, i: int, bar: Bar) -> None:
        for pos in list(self.positions):
            hit = check_sl_tp(pos, bar, self.config)
            if hit is not None:
                price, reason = hit
                self.close(pos, price, i, reason)
                self.positions.remove(pos)

    def manage(self, i: int, bar: Bar, atr: Optional[float]) -> None:
        step = self.config.lot_step
        for pos in list(self.positions):
            tc = self.plan.trade_config(pos.direction)
            apply_breakeven_stop(pos, bar, tc, atr, self.config)
            apply_trailing_stop(pos, bar, tc, atr, self.config)

            # The trigger fires once. A split that floors to zero lots closes nothing, but
            # the trigger stays spent (and any stop-to-entry move stays applied).
            fraction = check_partial_close(pos, bar, tc, self.config)
            if fraction > 0:
                close_lots = floor_to_step(pos.lots * fraction, step)
                if close_lots >= pos.lots - step / 2:
                    self.close(pos, bar.close, i, CloseReason.RISK_MGMT)
                    self.positions.remove(pos)
                    continue
                if close_lots > 0:
                    self.close(pos, bar.close, i, CloseReason.RISK_MGMT, lots=close_lots)
                    pos.lots = round(pos.lots - close_lots, 8)
                else:
                    logger.debug("Partial close of #%d skipped: %.2f lots cannot be split by step %g",
                                 pos.id, pos.lots, step)

            if tc.time_exit is not None and i - pos.open_bar_index >= tc.time_exit.exit_after_bars:
                self.close(pos, bar.close, i, CloseReason.RISK_MGMT)
                self.positions.remove(pos)

    def exits(self, i: int, bar: Bar) -> None:
        signal = evaluate_exit(i, self.bars, self.plan)
        if not (signal.close_buy or signal.close_sell):
            return
        for pos in list(self.positions):
            if (pos.is_long and signal.close_buy) or (not pos.is_long and signal.close_sell):
                self.close(pos, bar.close, i, CloseReason.SIGNAL)
                self.positions.remove(pos)

    def entries(self, i: int, bar: Bar, atr: Optional[float]) -> None:
        if not self.risk.can_enter(i, self.positions).allowed:
            return
        if not within_trading_times(bar.time, self.plan.trading_times):
            return
        signal = evaluate_entry(i, self.bars, self.plan)
        for direction, wanted in ((Direction.BUY, signal.buy), (Direction.SELL, signal.sell)):
            tc = self.plan.trade_config(direction)
            if not wanted or not tc.enabled:
                continue
            if not self.risk.can_open(direction, self.positions).allowed:
                continue
            if self.config.requote_rate > 0 and self.rng.random() < self.config.requote_rate:
                self.requotes += 1
                continue
            pos = open_position(self.next_id, direction, bar, i, tc, self.tracker.balance, atr, self.config)
            self.next_id += 1
            self.positions.append(pos)
            self.risk.record_entry(i)
            logger.debug("Opened #%d %s %.2f lots @ %.5f sl=%s tp=%s",
                         pos.id, direction.value, pos.lots, pos.open_price, pos.current_sl, pos.take_profit)

    def execute(self, on_progress: Optional[ProgressCallback] = None) -> None:
        total = len(self.bars)
        last_percent = 0
        for i in range(self.plan.warmup_bars, total):
            bar = self.bars[i]
            self.risk.start_bar(bar.time.date())
            atr = self.plan.atr_at(i)

            for pos in self.positions:
                self.total_swap += apply_swap(pos, bar, self.config)
            self.check_stops(i, bar)
            self.manage(i, bar, atr)

            act = True
            if not self.risk.check_daily_loss():
                act = False
            elif not self.risk.check_drawdown(self.tracker.max_drawdown_pct):
                self.close_all(i, CloseReason.RISK_MGMT)
                act = False
            if act:
                self.exits(i, bar)
                self.entries(i, bar, atr)

            self.tracker.update_equity(i, bar, self.positions)
            if on_progress is not None:
                percent = int(i / total * 100)
                if percent > last_percent:
                    last_percent = percent
                    on_progress(percent, i, total)

        if self.positions and total > 0:
            self.close_all(total - 1, CloseReason.MANUAL)


class BacktestEngine:
    """
    Runs a strategy graph over a bar series. Each run() owns its own state,
    so one engine may be reused for any number of independent runs.
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        self.config = (config or BacktestConfig()).validate()

    def run(self, bars: BarsLike, graph: GraphLike, on_progress: Optional[ProgressCallback] = None) -> BacktestResult:
        started = time.perf_counter()
        bars = ensure_bars(bars)
        if not bars:
            raise InsufficientBarsError("bar series is empty")
        if not isinstance(graph, StrategyGraph):
            graph = parse_graph(graph)

        config, warnings = adjust_point_value(self.config)
        if graph.settings.correlation_filter:
            warnings.append(CORRELATION_FILTER_WARNING)
        built = build_plan(graph, bars, digits=config.digits)
        warnings.extend(built.warnings)
        plan = built.plan
        if len(bars) < plan.warmup_bars:
            raise InsufficientBarsError(
                f"{len(bars)} bars is fewer than the strategy warm-up of {plan.warmup_bars} bars"
            )

        run = _Run(config, plan, bars)
        run.execute(on_progress)

        tracker = run.tracker
        metrics = compute_metrics(
            run.trades,
            tracker.equity_curve,
            initial_balance=config.initial_balance,
            max_drawdown=tracker.max_drawdown,
            max_drawdown_pct=tracker.max_drawdown_pct,
            bars_processed=len(bars),
        )
        result = BacktestResult(
            metrics=metrics,
            trades=list(run.trades),
            equity_curve=tracker.equity_curve,
            warnings=warnings,
            bars_processed=len(bars),
            duration_ms=(time.perf_counter() - started) * 1000.0,
            requote_count=run.requotes,
            total_swap=run.total_swap,
            total_commission=run.total_commission,
            initial_deposit=config.initial_balance,
            final_balance=tracker.balance,
        )
        logger.info(
            "Backtest %s: %d bars, %d trades, net=%.2f, max_dd=%.2f%%",
            config.symbol, len(bars), metrics.total_trades, metrics.net_profit, metrics.max_drawdown_pct,
        )
        return result


def run_backtest(
    bars: BarsLike,
    graph: GraphLike,
    config: Optional[BacktestConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BacktestResult:
    """Run one backtest. Raises ConfigError / InsufficientBarsError on unusable input."""
    return BacktestEngine(config).run(bars, graph, on_progress=on_progress)
