"""Unit tests for strategy graph parsing and the plan builder."""

import pytest

from strategy_backtester.indicators.buffers import IndicatorKind
from strategy_backtester.indicators.moving_average import MAMethod
from strategy_backtester.strategies.graph import (
    BollingerParams,
    ConditionMode,
    ConditionOperator,
    IndicatorNode,
    MovingAverageParams,
    PlaceOrderNode,
    SignalMode,
    SizingMethod,
    StopLossMethod,
    StopLossNode,
    TradingTimesMode,
    UnsupportedNode,
    graph_from_nodes,
    parse_graph,
    parse_node,
)
from strategy_backtester.strategies.plan import build_plan, compute_warmup
from tests.helpers import make_bars, trend_graph, wave_closes


def _ma(node_id, period):
    return IndicatorNode(id=node_id, kind=IndicatorKind.MOVING_AVERAGE, params=MovingAverageParams(period=period))


def test_parse_indicator_camel_case():
    node = parse_node({
        "id": "ma1",
        "type": "moving-average",
        "data": {"label": "Fast MA", "period": "20", "method": "ema", "signalMode": "candle_close"},
    })
    assert isinstance(node, IndicatorNode)
    assert node.kind is IndicatorKind.MOVING_AVERAGE
    assert node.params.period == 20
    assert node.params.method is MAMethod.EMA
    assert node.signal_mode is SignalMode.CANDLE_CLOSE
    assert node.bar_offset == 1
    assert node.label == "Fast MA"


def test_parse_snake_case_keys():
    node = parse_node({"id": "sl", "type": "stop-loss", "data": {"method": "ATR_BASED", "atr_multiplier": 2}})
    assert isinstance(node, StopLossNode)
    assert node.method is StopLossMethod.ATR_BASED
    assert node.atr_multiplier == 2.0


def test_parse_place_order():
    node = parse_node({"id": "s", "type": "place-sell",
                       "data": {"method": "RISK_PERCENT", "riskPercent": 2, "maxLot": 1.5}})
    assert isinstance(node, PlaceOrderNode)
    assert node.method is SizingMethod.RISK_PERCENT
    assert node.risk_percent == 2.0
    assert node.max_lot == 1.5
    assert node.direction.value == "SELL"


def test_parse_trading_times_sessions():
    node = parse_node({"id": "tt", "type": "trading-times", "data": {
        "mode": "CUSTOM",
        "sessions": [{"startHour": 8, "startMinute": 0, "endHour": 16, "endMinute": 30}],
        "tradeMondayToFriday": "false",
    }})
    assert node.mode is TradingTimesMode.CUSTOM
    assert node.sessions[0].end_minutes == 16 * 60 + 30
    assert node.trade_monday_to_friday is False


def test_unknown_type_is_unsupported():
    node = parse_node({"id": "ob", "type": "order-block", "data": {"label": "OB zone"}})
    assert isinstance(node, UnsupportedNode)
    assert node.display_name == "OB zone"


def test_bad_parameter_keeps_default_and_warns():
    graph = parse_graph({"nodes": [{"id": "r", "type": "rsi", "data": {"period": "abc"}}]})
    assert graph.nodes[0].params.period == 14
    assert len(graph.warnings) == 1
    assert "period" in graph.warnings[0]


@pytest.mark.parametrize("node_type,key,field_name,default", [
    ("bollinger-bands", "period", "period", 20),
    ("stochastic", "kPeriod", "k_period", 14),
    ("stochastic", "slowing", "slowing", 3),
    ("cci", "period", "period", 14),
    ("ichimoku", "tenkanPeriod", "tenkan_period", 9),
    ("obv", "signalPeriod", "signal_period", 20),
    ("moving-average", "period", "period", 50),
])
@pytest.mark.parametrize("bad", [-5, 0])
def test_non_positive_period_keeps_default(node_type, key, field_name, default, bad):
    graph = parse_graph({"nodes": [{"id": "n", "type": node_type, "data": {key: bad}}]})
    assert getattr(graph.nodes[0].params, field_name) == default
    assert len(graph.warnings) == 1
    assert field_name in graph.warnings[0]
    result = build_plan(graph, make_bars(wave_closes(120)))
    assert result.plan.indicators == graph.nodes


def test_malformed_sessions_keep_default():
    graph = parse_graph({"nodes": [
        {"id": "tt", "type": "trading-times", "data": {"mode": "CUSTOM", "sessions": [1]}},
        {"id": "tt2", "type": "trading-times", "data": {"sessions": 5}},
    ]})
    assert graph.nodes[0].mode is TradingTimesMode.CUSTOM
    assert graph.nodes[0].sessions == ()
    assert graph.nodes[1].sessions == ()
    assert len(graph.warnings) == 2
    assert all("sessions" in w for w in graph.warnings)


def test_build_plan_skips_indicator_that_cannot_compute():
    bad = IndicatorNode(id="bb", kind=IndicatorKind.BOLLINGER_BANDS, params=BollingerParams(period=-5))
    graph = graph_from_nodes([_ma("ma", 5), bad])
    result = build_plan(graph, make_bars(wave_closes(60)))
    assert [n.id for n in result.plan.indicators] == ["ma"]
    assert "bb" not in result.plan.buffers
    assert result.plan.warmup_bars == compute_warmup([_ma("ma", 5)])
    assert any("could not be computed" in w for w in result.warnings)


def test_parse_correlation_filter():
    on = parse_graph({"nodes": [], "settings": {"multiPair": {"enabled": True, "correlationFilter": True}}})
    assert on.settings.correlation_filter is True
    off = parse_graph({"nodes": [], "settings": {"multiPair": {"enabled": False, "correlationFilter": True}}})
    assert off.settings.correlation_filter is False
    assert parse_graph({"nodes": []}).settings.correlation_filter is False


def test_parse_settings_and_edges():
    graph = parse_graph({
        "nodes": [],
        "edges": [{"source": "a", "target": "b"}],
        "settings": {"conditionMode": "OR", "maxOpenTrades": 3, "allowHedging": True},
    })
    assert graph.settings.condition_mode is ConditionMode.OR
    assert graph.settings.max_open_trades == 3
    assert graph.settings.allow_hedging is True
    assert graph.neighbours("a") == ["b"]
    assert graph.sources_of("b") == ["a"]


def test_compute_warmup_single_indicator():
    assert compute_warmup([_ma("a", 20)]) == 30


def test_compute_warmup_sums_multiple_indicators():
    assert compute_warmup([_ma("a", 5), _ma("b", 20)]) == 35


def test_compute_warmup_floor():
    assert compute_warmup([]) == 10


def test_build_plan_precomputes_buffers():
    bars = make_bars(wave_closes(80))
    result = build_plan(parse_graph(trend_graph(period=10)), bars)
    plan = result.plan
    assert plan.warmup_bars == 20
    assert len(plan.buffers["ma"].value) == 80
    assert plan.point == pytest.approx(0.00001)
    with pytest.raises(TypeError):
        plan.buffers["other"] = None


def test_build_plan_unsupported_node_warning():
    bars = make_bars(wave_closes(60))
    graph = parse_graph(trend_graph(extra_nodes=[{"id": "n", "type": "news-filter", "data": {}}]))
    result = build_plan(graph, bars)
    assert '"news-filter" is not supported in backtesting and will be ignored' in result.warnings


def test_build_plan_without_indicators_warns():
    result = build_plan(parse_graph({"nodes": []}), make_bars(wave_closes(30)))
    assert "No indicator nodes found - strategy has no entry conditions" in result.warnings
    assert result.plan.warmup_bars == 10


def test_build_plan_binds_conditions():
    graph = parse_graph({
        "nodes": [
            {"id": "rsi", "type": "rsi", "data": {}},
            {"id": "c1", "type": "condition", "data": {"conditionType": ">", "threshold": 50}},
            {"id": "c2", "type": "condition", "data": {"label": "Orphan", "conditionType": "<"}},
        ],
        "edges": [{"source": "rsi", "target": "c1"}],
    })
    result = build_plan(graph, make_bars(wave_closes(60)))
    assert len(result.plan.conditions) == 1
    binding = result.plan.conditions[0]
    assert binding.indicator_id == "rsi"
    assert binding.condition.condition_type is ConditionOperator.GREATER_THAN
    assert binding.condition.threshold == 50.0
    assert any("Orphan" in w for w in result.warnings)


def test_trade_management_binds_to_connected_side():
    graph = parse_graph(trend_graph(
        extra_nodes=[
            {"id": "buy", "type": "place-buy", "data": {"fixedLot": 0.5}},
            {"id": "sell", "type": "place-sell", "data": {}},
            {"id": "sl", "type": "stop-loss", "data": {"fixedPips": 30}},
            {"id": "tp", "type": "take-profit", "data": {}},
        ],
        edges=[{"source": "buy", "target": "sl"}],
    ))
    plan = build_plan(graph, make_bars(wave_closes(40))).plan
    assert plan.buy_config.stop_loss.fixed_pips == 30.0
    assert plan.sell_config.stop_loss is None
    # unconnected rules apply to both sides
    assert plan.buy_config.take_profit is not None
    assert plan.sell_config.take_profit is not None
    assert plan.buy_config.sizing.fixed_lot == 0.5


def test_place_nodes_enable_only_their_direction():
    graph = parse_graph(trend_graph(extra_nodes=[{"id": "buy", "type": "place-buy", "data": {}}]))
    plan = build_plan(graph, make_bars(wave_closes(40))).plan
    assert plan.buy_config.enabled is True
    assert plan.sell_config.enabled is False


def test_no_place_nodes_trades_both_sides():
    plan = build_plan(parse_graph(trend_graph()), make_bars(wave_closes(40))).plan
    assert plan.buy_config.enabled and plan.sell_config.enabled
    assert plan.buy_config.sizing is None


def test_atr_period_from_atr_node():
    graph = parse_graph(trend_graph(extra_nodes=[{"id": "atr", "type": "atr", "data": {"period": 7}}]))
    plan = build_plan(graph, make_bars(wave_closes(40))).plan
    assert plan.atr_period == 7
    assert plan.atr_at(6) is None
    assert plan.atr_at(7) is not None
    assert plan.atr_at(1000) is None


def test_build_plan_does_not_mutate_graph():
    graph = parse_graph(trend_graph())
    before = graph
    build_plan(graph, make_bars(wave_closes(40)))
    assert graph == before
    assert graph.nodes[0].params.period == 5
