"""Indicators: moving averages, oscillators, trend, volatility and volume lines."""

from strategy_backtester.indicators.buffers import BufferRole, IndicatorBuffers, IndicatorKind
from strategy_backtester.indicators.moving_average import MAMethod, ema, lwma, moving_average, sma, smma
from strategy_backtester.indicators.oscillators import cci, rsi, stochastic
from strategy_backtester.indicators.price import AppliedPrice, applied_price
from strategy_backtester.indicators.registry import compute_indicator, indicator_warmup
from strategy_backtester.indicators.trend import adx, ichimoku, macd
from strategy_backtester.indicators.volatility import atr, bb_squeeze, bollinger_bands, true_range
from strategy_backtester.indicators.volume import obv, vwap

__all__ = [
    "AppliedPrice",
    "BufferRole",
    "IndicatorBuffers",
    "IndicatorKind",
    "MAMethod",
    "adx",
    "applied_price",
    "atr",
    "bb_squeeze",
    "bollinger_bands",
    "cci",
    "compute_indicator",
    "ema",
    "ichimoku",
    "indicator_warmup",
    "lwma",
    "macd",
    "moving_average",
    "obv",
    "rsi",
    "sma",
    "smma",
    "stochastic",
    "true_range",
    "vwap",
]
