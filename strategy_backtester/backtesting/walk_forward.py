"""
Walk-forward validation: split history into rolling in-sample / out-of-sample windows,
backtest each slice as an independent series and compare the two.
Consecutive windows advance by the out-of-sample length.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from strategy_backtester.backtesting.engine import BacktestEngine, GraphLike
from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.errors import ConfigError, InsufficientBarsError
from strategy_backtester.core.types import Bar
from strategy_backtester.strategies.graph import StrategyGraph, parse_graph
from strategy_backtester.utils.bars import BarsLike, ensure_bars

logger = logging.getLogger("strategy_backtester.backtest.walk_forward")

MIN_WALK_FORWARD_BARS = 100
MIN_IN_SAMPLE_BARS = 30
MIN_OUT_OF_SAMPLE_BARS = 10


@dataclass
class WalkForwardWindow:
    """Single in-sample / out-of-sample window. End indices are exclusive."""
    in_sample_start: int
    in_sample_end: int
    out_of_sample_start: int
    out_of_sample_end: int
    in_sample_profit: float = 0.0
    out_of_sample_profit: float = 0.0
    in_sample_sharpe: float = 0.0
    out_of_sample_sharpe: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def in_sample_bars(self) -> int:
        return self.in_sample_end - self.in_sample_start

    @property
    def out_of_sample_bars(self) -> int:
        return self.out_of_sample_end - self.out_of_sample_start


@dataclass
class WalkForwardResult:
    windows: List[WalkForwardWindow] = field(default_factory=list)
    total_in_sample_profit: float = 0.0
    total_out_of_sample_profit: float = 0.0
    walk_forward_efficiency: float = 0.0
    warnings: List[str] = field(default_factory=list)
    cancelled: bool = False


def _check_params(window_count: int, in_sample_ratio: float) -> None:
    if window_count < 2:
        raise ConfigError(f"window_count must be >= 2, got {window_count}")
    if not 0.0 < in_sample_ratio < 1.0:
        raise ConfigError(f"in_sample_ratio must be within (0, 1), got {in_sample_ratio}")


def split_windows(n_bars: int, window_count: int = 5, in_sample_ratio: float = 0.7) -> List[WalkForwardWindow]:
    """
    At most window_count windows. step = n / (count + ratio / (1 - ratio)),
    window = step / (1 - ratio), both floored. Windows whose in-sample part is
    under 30 bars or out-of-sample part under 10 bars are dropped.
    """
    _check_params(window_count, in_sample_ratio)
    oos_ratio = 1.0 - in_sample_ratio
    step = int(n_bars // (window_count + in_sample_ratio / oos_ratio))
    size = int(step // oos_ratio)
    if step <= 0 or size <= 0:
        return []
    windows = []
    for w in range(window_count):
        start = w * step
        end = min(start + size, n_bars)
        if end <= start:
            break
        split = start + int((end - start) * in_sample_ratio)
        if split - start < MIN_IN_SAMPLE_BARS or end - split < MIN_OUT_OF_SAMPLE_BARS:
            continue
        windows.append(WalkForwardWindow(
            in_sample_start=start,
            in_sample_end=split,
            out_of_sample_start=split,
            out_of_sample_end=end,
        ))
    return windows


def _run_slice(engine: BacktestEngine, bars: List[Bar], graph: StrategyGraph, label: str,
               window: WalkForwardWindow) -> Tuple[float, float]:
    """(net profit, sharpe) for one slice. A slice shorter than the warm-up scores zero."""
    try:
        result = engine.run(bars, graph)
    except InsufficientBarsError as e:
        msg = f"Window {window.in_sample_start}-{window.out_of_sample_end}: {label} slice skipped ({e})"
        logger.warning(msg)
        window.warnings.append(msg)
        return 0.0, 0.0
    return result.metrics.net_profit, result.metrics.sharpe_ratio


def run_walk_forward(
    bars: BarsLike,
    graph: GraphLike,
    config: Optional[BacktestConfig] = None,
    window_count: int = 5,
    in_sample_ratio: float = 0.7,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> WalkForwardResult:
    """
    Backtest every window's in-sample and out-of-sample slice independently
    (warm-up restarts in each slice). should_cancel is polled between windows.
    """
    _check_params(window_count, in_sample_ratio)
    bars = ensure_bars(bars)
    if len(bars) < MIN_WALK_FORWARD_BARS:
        raise InsufficientBarsError(
            f"walk-forward needs at least {MIN_WALK_FORWARD_BARS} bars, got {len(bars)}"
        )
    if not isinstance(graph, StrategyGraph):
        graph = parse_graph(graph)
    engine = BacktestEngine(config)

    result = WalkForwardResult()
    for window in split_windows(len(bars), window_count, in_sample_ratio):
        if should_cancel is not None and should_cancel():
            logger.info("Walk-forward cancelled after %d windows", len(result.windows))
            result.cancelled = True
            break
        is_bars = bars[window.in_sample_start:window.in_sample_end]
        oos_bars = bars[window.out_of_sample_start:window.out_of_sample_end]
        window.in_sample_profit, window.in_sample_sharpe = _run_slice(engine, is_bars, graph, "in-sample", window)
        window.out_of_sample_profit, window.out_of_sample_sharpe = _run_slice(
            engine, oos_bars, graph, "out-of-sample", window
        )
        result.windows.append(window)
        result.warnings.extend(window.warnings)
        result.total_in_sample_profit += window.in_sample_profit
        result.total_out_of_sample_profit += window.out_of_sample_profit

    if result.total_in_sample_profit != 0:
        result.walk_forward_efficiency = result.total_out_of_sample_profit / result.total_in_sample_profit
    logger.info(
        "Walk-forward: %d windows, IS=%.2f OOS=%.2f WFE=%.3f",
        len(result.windows), result.total_in_sample_profit,
        result.total_out_of_sample_profit, result.walk_forward_efficiency,
    )
    return result
