"""Unit tests for the indicator library."""

import numpy as np
import pandas as pd
import pytest

from strategy_backtester.indicators import (
    BufferRole,
    IndicatorKind,
    adx,
    atr,
    bb_squeeze,
    bollinger_bands,
    cci,
    compute_indicator,
    ema,
    ichimoku,
    indicator_warmup,
    lwma,
    macd,
    obv,
    rsi,
    sma,
    smma,
    stochastic,
    true_range,
    vwap,
)
from strategy_backtester.strategies.graph import parse_node
from strategy_backtester.utils.bars import bars_to_frame
from tests.helpers import linear_closes, make_bars, wave_closes


def _frame(closes, wick=0.001, volume=10.0):
    return bars_to_frame(make_bars(closes, wick=wick, volume=volume))


def test_sma():
    out = sma([1, 2, 3, 4, 5], 3)
    assert np.isnan(out[:2]).all()
    assert out[2:].tolist() == pytest.approx([2.0, 3.0, 4.0])


def test_ema_seeded_with_sma():
    out = ema([1, 2, 3, 4, 5], 3)
    assert np.isnan(out[:2]).all()
    # seed 2.0, alpha 0.5
    assert out[2:].tolist() == pytest.approx([2.0, 3.0, 4.0])


def test_smma_seeded_with_sma():
    out = smma([1, 2, 3, 4], 3)
    assert out[2] == pytest.approx(2.0)
    assert out[3] == pytest.approx(2.0 + (4 - 2.0) / 3)


def test_lwma():
    out = lwma([1, 2, 3], 3)
    assert out[2] == pytest.approx(14 / 6)


def test_ema_skips_leading_nan():
    out = ema([np.nan, np.nan, 1, 2, 3], 3)
    assert np.isnan(out[:4]).all()
    assert out[4] == pytest.approx(2.0)


def test_rsi_all_gains_is_100():
    out = rsi(np.arange(20, dtype=float), 14)
    assert np.isnan(out[:14]).all()
    assert out[14] == 100.0
    assert out[-1] == 100.0


def test_rsi_flat_is_50():
    out = rsi([1.0] * 20, 14)
    assert out[14] == 50.0


def test_rsi_bounds():
    out = rsi(wave_closes(200), 14)
    valid = out[~np.isnan(out)]
    assert len(valid) == 200 - 14
    assert (valid >= 0).all() and (valid <= 100).all()


def test_true_range_first_bar_nan():
    tr = true_range(_frame([1.1] * 5))
    assert np.isnan(tr[0])
    assert tr[1:].tolist() == pytest.approx([0.002] * 4)


def test_atr_constant_range():
    out = atr(_frame([1.1] * 20), 14)
    assert np.isnan(out[:14]).all()
    assert out[14] == pytest.approx(0.002)


def test_bollinger_flat_series_collapses():
    upper, middle, lower = bollinger_bands([1.5] * 25, 20, 2.0)
    assert upper[19] == pytest.approx(1.5)
    assert middle[19] == pytest.approx(1.5)
    assert lower[19] == pytest.approx(1.5)
    assert np.isnan(middle[18])


def test_bollinger_population_std():
    values = [1.0, 2.0, 3.0, 4.0]
    upper, middle, lower = bollinger_bands(values, 4, 1.0)
    std = np.std(values)  # ddof=0
    assert middle[3] == pytest.approx(2.5)
    assert upper[3] == pytest.approx(2.5 + std)
    assert lower[3] == pytest.approx(2.5 - std)


def test_macd_flat_is_zero():
    main, signal, hist = macd([1.2] * 60, 12, 26, 9)
    assert main[25] == pytest.approx(0.0)
    assert np.isnan(signal[32])
    assert signal[33] == pytest.approx(0.0)
    assert hist[40] == pytest.approx(0.0)


def test_macd_positive_in_uptrend():
    main, _, _ = macd(linear_closes(80), 12, 26, 9)
    assert main[-1] > 0


def test_adx_warmup_and_direction():
    period = 14
    adx_line, plus_di, minus_di = adx(_frame(linear_closes(80)), period)
    assert np.isnan(adx_line[2 * period - 2])
    assert not np.isnan(adx_line[2 * period - 1])
    assert np.isnan(plus_di[period - 1])
    assert plus_di[period] > minus_di[period]
    valid = adx_line[~np.isnan(adx_line)]
    assert (valid >= 0).all() and (valid <= 100).all()


def test_adx_wilder_sums():
    df = _frame(linear_closes(30), wick=0.0)
    # every bar: +DM = 0.0005, -DM = 0, TR = 0.0005 -> +DI 100, -DI 0, DX 100
    adx_line, plus_di, minus_di = adx(df, 5)
    assert plus_di[5] == pytest.approx(100.0)
    assert minus_di[5] == pytest.approx(0.0)
    assert adx_line[9] == pytest.approx(100.0)


def test_stochastic_flat_range_is_100():
    main, signal = stochastic(_frame([1.1] * 30, wick=0.0), 5, 3, 3)
    assert main[10] == 100.0
    assert signal[12] == pytest.approx(100.0)


def test_stochastic_uptrend_high():
    main, _ = stochastic(_frame(linear_closes(40)), 14, 3, 3)
    assert main[-1] > 80


def test_cci_zero_deviation():
    out = cci([2.0] * 20, 14)
    assert np.isnan(out[12])
    assert out[13] == 0.0


def test_obv():
    df = pd.DataFrame({
        "close": [1.0, 1.1, 1.0, 1.0],
        "volume": [10.0, 10.0, 10.0, 10.0],
    })
    assert obv(df).tolist() == [0.0, 10.0, 0.0, 0.0]


def test_vwap_cumulative():
    df = pd.DataFrame({
        "high": [2.0, 4.0],
        "low": [2.0, 4.0],
        "close": [2.0, 4.0],
        "volume": [1.0, 3.0],
    })
    assert vwap(df).tolist() == pytest.approx([2.0, (2.0 + 12.0) / 4.0])


def test_vwap_nan_without_volume():
    df = pd.DataFrame({"high": [1.0], "low": [1.0], "close": [1.0], "volume": [0.0]})
    assert np.isnan(vwap(df)[0])


def test_ichimoku_midpoints():
    df = _frame(linear_closes(60), wick=0.0)
    lines = ichimoku(df, 9, 26, 52)
    i = 59
    expected_tenkan = (df["high"].iloc[i - 8:i + 1].max() + df["low"].iloc[i - 8:i + 1].min()) / 2
    assert lines["tenkan"][i] == pytest.approx(expected_tenkan)
    assert lines["span_a"][i] == pytest.approx((lines["tenkan"][i] + lines["kijun"][i]) / 2)
    assert np.isnan(lines["span_b"][50])
    assert not np.isnan(lines["span_b"][51])


def test_bb_squeeze_flags():
    squeeze, middle = bb_squeeze(_frame(wave_closes(120)), 20, 2.0, 20, 1.5)
    values = squeeze[~np.isnan(squeeze)]
    assert len(values) > 0
    assert set(values.tolist()) <= {0.0, 1.0}
    assert len(middle) == 120


@pytest.mark.parametrize("node_type,roles", [
    ("moving-average", {BufferRole.VALUE}),
    ("rsi", {BufferRole.VALUE}),
    ("macd", {BufferRole.MAIN, BufferRole.SIGNAL, BufferRole.HISTOGRAM}),
    ("bollinger-bands", {BufferRole.UPPER, BufferRole.MIDDLE, BufferRole.LOWER}),
    ("atr", {BufferRole.VALUE}),
    ("adx", {BufferRole.MAIN, BufferRole.PLUS_DI, BufferRole.MINUS_DI}),
    ("stochastic", {BufferRole.MAIN, BufferRole.SIGNAL}),
    ("cci", {BufferRole.VALUE}),
    ("ichimoku", {BufferRole.TENKAN, BufferRole.KIJUN, BufferRole.SPAN_A, BufferRole.SPAN_B}),
    ("obv", {BufferRole.VALUE, BufferRole.SIGNAL}),
    ("bb-squeeze", {BufferRole.SQUEEZE, BufferRole.MIDDLE}),
    ("vwap", {BufferRole.VALUE}),
])
def test_compute_indicator_roles(node_type, roles):
    bars = make_bars(wave_closes(120))
    node = parse_node({"id": "x", "type": node_type, "data": {}})
    buffers = compute_indicator(bars, node)
    assert set(buffers.roles()) == roles
    for arr in buffers.roles().values():
        assert len(arr) == len(bars)


def test_compute_indicator_accepts_frame():
    bars = make_bars(wave_closes(60))
    node = parse_node({"id": "x", "type": "moving-average", "data": {"period": 10}})
    from_list = compute_indicator(bars, node).value
    from_frame = compute_indicator(bars_to_frame(bars), node).value
    np.testing.assert_array_equal(from_list, from_frame)


def test_compute_indicator_is_pure():
    bars = make_bars(wave_closes(80))
    node = parse_node({"id": "x", "type": "adx", "data": {"period": 7}})
    a = compute_indicator(bars, node)
    b = compute_indicator(bars, node)
    np.testing.assert_array_equal(a.main, b.main)


def test_buffers_are_read_only():
    node = parse_node({"id": "x", "type": "rsi", "data": {}})
    buffers = compute_indicator(make_bars(wave_closes(40)), node)
    with pytest.raises(ValueError):
        buffers.value[0] = 1.0
    assert np.isnan(buffers.at(BufferRole.VALUE, -1))
    assert np.isnan(buffers.at(BufferRole.UPPER, 20))


@pytest.mark.parametrize("node_type,data,expected", [
    ("moving-average", {"period": 20}, 20),
    ("rsi", {"period": 14}, 15),
    ("macd", {}, 35),
    ("bollinger-bands", {}, 20),
    ("atr", {"period": 10}, 11),
    ("adx", {"period": 14}, 29),
    ("stochastic", {}, 20),
    ("cci", {"period": 20}, 20),
    ("ichimoku", {}, 52),
    ("obv", {}, 20),
    ("bb-squeeze", {"kcPeriod": 30}, 31),
    ("vwap", {}, 50),
])
def test_indicator_warmup(node_type, data, expected):
    node = parse_node({"id": "x", "type": node_type, "data": data})
    assert indicator_warmup(node) == expected


def test_indicator_kind_values():
    assert IndicatorKind("bb-squeeze") is IndicatorKind.BB_SQUEEZE
