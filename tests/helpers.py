"""Bar-series, trade and graph builders shared by the tests."""

from datetime import datetime, timedelta
import math

from strategy_backtester.core.types import Bar, CloseReason, ClosedTrade, Direction

START = datetime(2024, 1, 1)  # Monday


def make_bars(closes, start=START, step=timedelta(hours=1), wick=0.0002, volume=100.0):
    """Bars whose open is the previous close and whose range extends `wick` past the body."""
    bars = []
    prev = closes[0]
    for i, c in enumerate(closes):
        o = prev
        bars.append(Bar(
            time=start + i * step,
            open=o,
            high=max(o, c) + wick,
            low=min(o, c) - wick,
            close=c,
            volume=volume,
        ))
        prev = c
    return bars


def linear_closes(n, start=1.1, step=0.0005):
    return [round(start + i * step, 5) for i in range(n)]


def wave_closes(n, center=1.1, amplitude=0.01, period=40):
    return [round(center + amplitude * math.sin(2 * math.pi * i / period), 5) for i in range(n)]


def make_trade(profit, direction=Direction.BUY, open_bar=0, close_bar=5,
               close_time=START, reason=CloseReason.SIGNAL, lots=0.1):
    return ClosedTrade(
        id=1,
        direction=direction,
        open_time=START,
        close_time=close_time,
        open_price=1.1,
        close_price=1.1,
        lots=lots,
        profit=profit,
        swap=0.0,
        commission=0.0,
        close_reason=reason,
        open_bar_index=open_bar,
        close_bar_index=close_bar,
    )


def trend_graph(period=5, extra_nodes=(), edges=(), settings=None):
    """Single moving-average trend filter plus any extra nodes."""
    nodes = [{"id": "ma", "type": "moving-average",
              "data": {"period": period, "method": "SMA", "filterRole": "htf-trend"}}]
    nodes.extend(extra_nodes)
    return {"nodes": nodes, "edges": list(edges), "settings": settings or {}}
