#!/usr/bin/env python3
"""
Strategy Backtester CLI: backtest | walk-forward
Usage:
  python main.py backtest --bars data.csv --strategy strategy.yaml [--config config.yaml] [--monte-carlo 1000]
  python main.py walk-forward --bars data.csv --strategy strategy.json [--windows 5] [--in-sample-ratio 0.7]
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from strategy_backtester.analytics.monte_carlo import run_monte_carlo
from strategy_backtester.backtesting.engine import run_backtest
from strategy_backtester.backtesting.walk_forward import run_walk_forward
from strategy_backtester.core.config import Config, load_config
from strategy_backtester.core.errors import BacktestError, ConfigError
from strategy_backtester.core.logger import setup_logging
from strategy_backtester.strategies.graph import parse_graph
from strategy_backtester.utils.bars import load_bars_csv

logger = logging.getLogger("strategy_backtester.cli")


def load_strategy(path: Path) -> Dict[str, Any]:
    """Strategy graph document from a .json file or YAML (anything else)."""
    if not path.exists():
        raise ConfigError(f"strategy file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot parse strategy file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"strategy file {path} must contain a mapping with nodes/edges")
    return data


def _load_bars(path: Path):
    if not path.exists():
        raise ConfigError(f"bars file not found: {path}")
    return load_bars_csv(path)


def _setup(config_path: Path | None) -> Config:
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file, json_logs=config.json_logs)
    return config


def cmd_backtest(args: argparse.Namespace) -> int:
    config = _setup(args.config)
    bars = _load_bars(args.bars)
    graph = parse_graph(load_strategy(args.strategy))
    result = run_backtest(bars, graph, config.backtest)
    m = result.metrics
    print("\n--- Backtest Results ---")
    print(f"Bars processed: {result.bars_processed} ({result.duration_ms:.0f} ms)")
    print(f"Total trades: {m.total_trades} (long: {m.long_trades}, short: {m.short_trades})")
    print(f"Net profit: {m.net_profit:.2f} ({m.total_return_pct:.2f}%)")
    print(f"Final balance: {result.final_balance:.2f}")
    print(f"Win rate: {m.win_rate:.1f}%")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Sharpe ratio: {m.sharpe_ratio:.2f}")
    print(f"Sortino ratio: {m.sortino_ratio:.2f}")
    print(f"Max drawdown: {m.max_drawdown:.2f} ({m.max_drawdown_pct:.2f}%)")
    print(f"Commission: {result.total_commission:.2f}  Swap: {result.total_swap:.2f}  Requotes: {result.requote_count}")
    for w in result.warnings:
        print(f"Warning: {w}")

    if args.monte_carlo:
        mc = run_monte_carlo([t.profit for t in result.trades], result.initial_deposit, simulations=args.monte_carlo)
        print("\n--- Monte Carlo ---")
        print(f"Simulations: {mc.simulations}")
        print(f"95% max drawdown: {mc.confidence_95.max_drawdown:.2f}  final balance: {mc.confidence_95.final_balance:.2f}")
        print(f"99% max drawdown: {mc.confidence_99.max_drawdown:.2f}  final balance: {mc.confidence_99.final_balance:.2f}")
        print(f"Median final balance: {mc.median_final_balance:.2f}")
        print(f"Probability of ruin: {mc.probability_of_ruin:.1f}%")
    return 0


def cmd_walk_forward(args: argparse.Namespace) -> int:
    config = _setup(args.config)
    bars = _load_bars(args.bars)
    graph = parse_graph(load_strategy(args.strategy))
    windows = args.windows if args.windows is not None else config.walk_forward_windows
    ratio = args.in_sample_ratio if args.in_sample_ratio is not None else config.walk_forward_in_sample_ratio
    result = run_walk_forward(bars, graph, config.backtest, window_count=windows, in_sample_ratio=ratio)
    print("\n--- Walk-Forward Results ---")
    for w in result.windows:
        print(
            f"IS [{w.in_sample_start}, {w.in_sample_end}) profit={w.in_sample_profit:.2f} sharpe={w.in_sample_sharpe:.2f} | "
            f"OOS [{w.out_of_sample_start}, {w.out_of_sample_end}) profit={w.out_of_sample_profit:.2f} "
            f"sharpe={w.out_of_sample_sharpe:.2f}"
        )
    print(f"Total in-sample profit: {result.total_in_sample_profit:.2f}")
    print(f"Total out-of-sample profit: {result.total_out_of_sample_profit:.2f}")
    print(f"Walk-forward efficiency: {result.walk_forward_efficiency:.3f}")
    for msg in result.warnings:
        print(f"Warning: {msg}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Strategy Backtester CLI")
    sub = parser.add_subparsers(dest="mode", required=True)

    bt = sub.add_parser("backtest", help="Run one backtest")
    bt.add_argument("--monte-carlo", type=int, default=0, metavar="N", help="Shuffle trade order N times")
    bt.set_defaults(func=cmd_backtest)

    wf = sub.add_parser("walk-forward", help="Run walk-forward validation")
    wf.add_argument("--windows", type=int, default=None, help="Number of windows (default from config)")
    wf.add_argument("--in-sample-ratio", type=float, default=None, help="In-sample fraction of each window")
    wf.set_defaults(func=cmd_walk_forward)

    for p in (bt, wf):
        p.add_argument("--bars", type=Path, required=True, help="OHLCV CSV file")
        p.add_argument("--strategy", type=Path, required=True, help="Strategy graph (.yaml or .json)")
        p.add_argument("--config", type=Path, default=None, help="Path to config.yaml")

    args = parser.parse_args()
    try:
        return args.func(args)
    except BacktestError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    exit(main())
