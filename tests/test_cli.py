"""CLI tests: strategy file loading and the backtest / walk-forward commands."""

import json
import sys

import pytest
import yaml

import main
from strategy_backtester.core.errors import ConfigError
from strategy_backtester.utils.bars import bars_to_frame
from tests.helpers import linear_closes, make_bars, trend_graph


@pytest.fixture
def workspace(tmp_path):
    bars_path = tmp_path / "bars.csv"
    bars_to_frame(make_bars(linear_closes(300))).to_csv(bars_path, index=False)
    strategy_path = tmp_path / "strategy.yaml"
    strategy_path.write_text(yaml.safe_dump(trend_graph(period=5)), encoding="utf-8")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"logging:\n  level: WARNING\n  log_dir: {tmp_path / 'logs'}\n  log_file: cli.log\n",
        encoding="utf-8",
    )
    return tmp_path


def test_load_strategy_json(tmp_path):
    path = tmp_path / "s.json"
    path.write_text(json.dumps(trend_graph()), encoding="utf-8")
    assert main.load_strategy(path)["nodes"][0]["id"] == "ma"


def test_load_strategy_yaml(workspace):
    assert main.load_strategy(workspace / "strategy.yaml")["nodes"][0]["type"] == "moving-average"


def test_load_strategy_errors(tmp_path):
    with pytest.raises(ConfigError):
        main.load_strategy(tmp_path / "nope.yaml")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        main.load_strategy(bad)
    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        main.load_strategy(scalar)


def test_backtest_command(workspace, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", [
        "main.py", "backtest",
        "--bars", str(workspace / "bars.csv"),
        "--strategy", str(workspace / "strategy.yaml"),
        "--config", str(workspace / "config.yaml"),
        "--monte-carlo", "50",
    ])
    assert main.main() == 0
    out = capsys.readouterr().out
    assert "--- Backtest Results ---" in out
    assert "Total trades: 1" in out
    assert "--- Monte Carlo ---" in out


def test_walk_forward_command(workspace, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", [
        "main.py", "walk-forward",
        "--bars", str(workspace / "bars.csv"),
        "--strategy", str(workspace / "strategy.yaml"),
        "--config", str(workspace / "config.yaml"),
        "--windows", "3",
    ])
    assert main.main() == 0
    out = capsys.readouterr().out
    assert "--- Walk-Forward Results ---" in out
    assert "Walk-forward efficiency:" in out


def test_missing_bars_exit_code(workspace, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", [
        "main.py", "backtest",
        "--bars", str(workspace / "missing.csv"),
        "--strategy", str(workspace / "strategy.yaml"),
        "--config", str(workspace / "config.yaml"),
    ])
    assert main.main() == 1
    assert "bars file not found" in capsys.readouterr().err


def test_bars_without_ohlc_columns_exit_code(workspace, monkeypatch, capsys):
    bad = workspace / "bad.csv"
    bad.write_text("time,price\n2024-01-01 00:00,1.1\n", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", [
        "main.py", "backtest",
        "--bars", str(bad),
        "--strategy", str(workspace / "strategy.yaml"),
        "--config", str(workspace / "config.yaml"),
    ])
    assert main.main() == 1
    assert "missing columns" in capsys.readouterr().err
