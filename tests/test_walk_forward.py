"""Unit tests for walk-forward window splitting and evaluation."""

import pytest

from strategy_backtester.backtesting.walk_forward import run_walk_forward, split_windows
from strategy_backtester.core.errors import ConfigError, InsufficientBarsError
from tests.helpers import linear_closes, make_bars, trend_graph


def test_split_windows_100_bars():
    windows = split_windows(100, 5, 0.7)
    assert [w.in_sample_start for w in windows] == [0, 13, 26, 39, 52]
    assert all(w.in_sample_bars == 30 for w in windows)
    assert all(w.out_of_sample_bars == 13 for w in windows)
    assert all(w.out_of_sample_start == w.in_sample_end for w in windows)


def test_split_windows_300_bars():
    windows = split_windows(300, 5, 0.7)
    assert len(windows) == 5
    assert windows[1].in_sample_start == 40
    assert windows[0].in_sample_bars == 93
    assert windows[0].out_of_sample_bars == 40
    assert windows[-1].out_of_sample_end <= 300


def test_split_windows_drops_short_windows():
    # step 8, window 26: in-sample part of 18 bars is too short
    assert split_windows(60, 5, 0.7) == []


@pytest.mark.parametrize("count,ratio", [(1, 0.7), (5, 0.0), (5, 1.0), (5, 1.5)])
def test_split_windows_rejects_bad_params(count, ratio):
    with pytest.raises(ConfigError):
        split_windows(300, count, ratio)


def test_walk_forward_needs_100_bars():
    with pytest.raises(InsufficientBarsError):
        run_walk_forward(make_bars(linear_closes(99)), trend_graph())


def test_walk_forward_rejects_bad_params(rising_bars):
    with pytest.raises(ConfigError):
        run_walk_forward(rising_bars, trend_graph(), window_count=1)


def test_walk_forward_trending_series():
    bars = make_bars(linear_closes(300))
    result = run_walk_forward(bars, trend_graph(period=5), window_count=5, in_sample_ratio=0.7)
    assert len(result.windows) == 5
    assert not result.cancelled
    for w in result.windows:
        # 3845 and 1195 points at 0.01 lots, less 0.07 commission
        assert w.in_sample_profit == pytest.approx(38.38)
        assert w.out_of_sample_profit == pytest.approx(11.88)
    assert result.total_in_sample_profit == pytest.approx(5 * 38.38)
    assert result.total_out_of_sample_profit == pytest.approx(5 * 11.88)
    assert result.walk_forward_efficiency == pytest.approx(11.88 / 38.38)
    assert result.warnings == []


def test_walk_forward_short_slices_score_zero(flat_bars):
    result = run_walk_forward(flat_bars, trend_graph(period=5))
    assert 1 <= len(result.windows) <= 5
    assert result.walk_forward_efficiency == 0.0
    assert result.total_out_of_sample_profit == 0.0
    assert result.warnings
    assert all("out-of-sample slice skipped" in w for w in result.warnings)
    assert result.warnings[0].startswith("Window 0-43:")


def test_walk_forward_cancel_between_windows():
    bars = make_bars(linear_closes(300))
    calls = []

    def should_cancel():
        calls.append(1)
        return len(calls) > 2

    result = run_walk_forward(bars, trend_graph(period=5), should_cancel=should_cancel)
    assert result.cancelled is True
    assert len(result.windows) == 2
    assert result.total_in_sample_profit == pytest.approx(2 * 38.38)
