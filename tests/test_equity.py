"""Unit tests for backtesting.equity."""

from datetime import datetime

import pytest

from strategy_backtester.backtesting.equity import EquityTracker
from strategy_backtester.core.config import BacktestConfig
from strategy_backtester.core.types import Bar, Direction, Position

T0 = datetime(2024, 1, 1)
CFG = BacktestConfig(initial_balance=10000.0, spread=0.0, commission=0.0)


def _bar(close):
    return Bar(time=T0, open=close, high=close, low=close, close=close)


def _long(open_price=1.1, lots=1.0):
    return Position(
        id=1, direction=Direction.BUY, open_time=T0, open_price=open_price, open_bar_index=0,
        lots=lots, original_lots=lots, stop_loss=None, current_sl=None, take_profit=None,
    )


def test_initial_state():
    tracker = EquityTracker(CFG)
    assert tracker.balance == 10000.0
    assert tracker.equity == 10000.0
    assert tracker.high_water_mark == 10000.0
    assert tracker.max_drawdown == 0.0
    assert tracker.equity_curve == []


def test_high_water_mark_never_decreases():
    tracker = EquityTracker(CFG)
    tracker.record_trade(500.0)
    tracker.record_trade(-200.0)
    assert tracker.balance == pytest.approx(10300.0)
    assert tracker.high_water_mark == pytest.approx(10500.0)


def test_drawdown_from_open_position():
    tracker = EquityTracker(CFG)
    equity = tracker.update_equity(3, _bar(1.099), [_long()])
    assert equity == pytest.approx(9900.0)
    assert tracker.max_drawdown == pytest.approx(100.0)
    assert tracker.max_drawdown_pct == pytest.approx(1.0)
    point = tracker.equity_curve[-1]
    assert point.bar_index == 3
    assert point.balance == 10000.0
    assert point.drawdown == pytest.approx(1.0)


def test_max_drawdown_keeps_worst():
    tracker = EquityTracker(CFG)
    tracker.update_equity(0, _bar(1.098), [_long()])
    tracker.update_equity(1, _bar(1.1005), [_long()])
    assert tracker.max_drawdown == pytest.approx(200.0)
    assert tracker.equity == pytest.approx(10050.0)


def test_drawdown_after_realized_loss():
    tracker = EquityTracker(CFG)
    tracker.record_trade(1000.0)
    tracker.record_trade(-1100.0)
    tracker.update_equity(0, _bar(1.1), [])
    assert tracker.max_drawdown == pytest.approx(1100.0)
    assert tracker.max_drawdown_pct == pytest.approx(10.0)


def test_curve_sampling_when_flat():
    tracker = EquityTracker(CFG)
    for i in range(25):
        tracker.update_equity(i, _bar(1.1), [])
    assert [p.bar_index for p in tracker.equity_curve] == [0, 10, 20]


def test_curve_samples_every_bar_with_open_position():
    tracker = EquityTracker(CFG)
    for i in range(1, 5):
        tracker.update_equity(i, _bar(1.1), [_long()])
    assert [p.bar_index for p in tracker.equity_curve] == [1, 2, 3, 4]


def test_equity_curve_is_a_copy():
    tracker = EquityTracker(CFG)
    tracker.update_equity(0, _bar(1.1), [])
    tracker.equity_curve.clear()
    assert len(tracker.equity_curve) == 1
