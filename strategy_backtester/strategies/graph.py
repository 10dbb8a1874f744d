"""
Strategy graph: a closed set of typed node variants plus edges and settings.

The graph arrives as a JSON/YAML-shaped mapping (nodes: [{id, type, data}],
edges: [{source, target}], settings: {...}). parse_graph turns it into frozen
dataclasses; parameter keys are matched in snake_case or camelCase. Node types
the backtester cannot simulate become UnsupportedNode and are reported by the
plan builder, never raised.
"""

from __future__ import annotations
import logging
from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from strategy_backtester.core.types import Direction
from strategy_backtester.indicators.buffers import IndicatorKind
from strategy_backtester.indicators.moving_average import MAMethod
from strategy_backtester.indicators.price import AppliedPrice

logger = logging.getLogger("strategy_backtester.strategies")

HTF_TREND_ROLE = "htf-trend"


class SignalMode(str, Enum):
    EVERY_TICK = "every_tick"
    CANDLE_CLOSE = "candle_close"


class ConditionMode(str, Enum):
    AND = "AND"
    OR = "OR"


class MACDSignalType(str, Enum):
    SIGNAL_CROSS = "SIGNAL_CROSS"
    ZERO_CROSS = "ZERO_CROSS"
    HISTOGRAM_SIGN = "HISTOGRAM_SIGN"


class ConditionOperator(str, Enum):
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_EQUAL = "GREATER_EQUAL"
    LESS_EQUAL = "LESS_EQUAL"
    EQUAL = "EQUAL"
    CROSSES_ABOVE = "CROSSES_ABOVE"
    CROSSES_BELOW = "CROSSES_BELOW"

    @classmethod
    def parse(cls, value: Any) -> "ConditionOperator":
        """Accept enum names and the symbolic forms (>, <, >=, <=, ==, crosses_above, crosses_below)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text in _OPERATOR_SYMBOLS:
            return _OPERATOR_SYMBOLS[text]
        return cls(text.upper().replace("-", "_"))

    @property
    def mirrored(self) -> "ConditionOperator":
        """Operator used for the sell side of a buy condition."""
        return _OPERATOR_MIRROR.get(self, self)


_OPERATOR_SYMBOLS = {
    ">": ConditionOperator.GREATER_THAN,
    "<": ConditionOperator.LESS_THAN,
    ">=": ConditionOperator.GREATER_EQUAL,
    "<=": ConditionOperator.LESS_EQUAL,
    "==": ConditionOperator.EQUAL,
    "crosses_above": ConditionOperator.CROSSES_ABOVE,
    "crosses_below": ConditionOperator.CROSSES_BELOW,
}

_OPERATOR_MIRROR = {
    ConditionOperator.GREATER_THAN: ConditionOperator.LESS_THAN,
    ConditionOperator.LESS_THAN: ConditionOperator.GREATER_THAN,
    ConditionOperator.CROSSES_ABOVE: ConditionOperator.CROSSES_BELOW,
    ConditionOperator.CROSSES_BELOW: ConditionOperator.CROSSES_ABOVE,
}


class CandlePattern(str, Enum):
    ENGULFING_BULLISH = "ENGULFING_BULLISH"
    ENGULFING_BEARISH = "ENGULFING_BEARISH"
    HAMMER = "HAMMER"
    SHOOTING_STAR = "SHOOTING_STAR"
    DOJI = "DOJI"
    MORNING_STAR = "MORNING_STAR"
    EVENING_STAR = "EVENING_STAR"
    THREE_WHITE_SOLDIERS = "THREE_WHITE_SOLDIERS"
    THREE_BLACK_CROWS = "THREE_BLACK_CROWS"
    HARAMI_BULLISH = "HARAMI_BULLISH"
    HARAMI_BEARISH = "HARAMI_BEARISH"


class SizingMethod(str, Enum):
    FIXED_LOT = "FIXED_LOT"
    RISK_PERCENT = "RISK_PERCENT"


class StopLossMethod(str, Enum):
    FIXED_PIPS = "FIXED_PIPS"
    ATR_BASED = "ATR_BASED"
    PERCENT = "PERCENT"


class TakeProfitMethod(str, Enum):
    FIXED_PIPS = "FIXED_PIPS"
    RISK_REWARD = "RISK_REWARD"
    ATR_BASED = "ATR_BASED"


class TrailingMethod(str, Enum):
    FIXED_PIPS = "FIXED_PIPS"
    ATR_BASED = "ATR_BASED"
    PERCENTAGE = "PERCENTAGE"


class BreakevenTrigger(str, Enum):
    PIPS = "PIPS"
    ATR = "ATR"
    PERCENTAGE = "PERCENTAGE"


class PartialCloseTrigger(str, Enum):
    PIPS = "PIPS"
    PERCENT = "PERCENT"


class TradingTimesMode(str, Enum):
    ALWAYS = "ALWAYS"
    CUSTOM = "CUSTOM"


# --- Indicator parameters ---------------------------------------------------

@dataclass(frozen=True)
class MovingAverageParams:
    period: int = 50
    method: MAMethod = MAMethod.SMA
    applied_price: AppliedPrice = AppliedPrice.CLOSE


@dataclass(frozen=True)
class RSIParams:
    period: int = 14
    applied_price: AppliedPrice = AppliedPrice.CLOSE
    overbought_level: float = 70.0
    oversold_level: float = 30.0


@dataclass(frozen=True)
class MACDParams:
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9
    applied_price: AppliedPrice = AppliedPrice.CLOSE
    signal_type: MACDSignalType = MACDSignalType.SIGNAL_CROSS


@dataclass(frozen=True)
class BollingerParams:
    period: int = 20
    deviation: float = 2.0
    applied_price: AppliedPrice = AppliedPrice.CLOSE


@dataclass(frozen=True)
class ATRParams:
    period: int = 14


@dataclass(frozen=True)
class ADXParams:
    period: int = 14
    trend_level: float = 25.0


@dataclass(frozen=True)
class StochasticParams:
    k_period: int = 14
    d_period: int = 3
    slowing: int = 3
    ma_method: MAMethod = MAMethod.SMA
    overbought_level: float = 80.0
    oversold_level: float = 20.0


@dataclass(frozen=True)
class CCIParams:
    period: int = 14
    applied_price: AppliedPrice = AppliedPrice.TYPICAL
    overbought_level: float = 100.0
    oversold_level: float = -100.0


@dataclass(frozen=True)
class IchimokuParams:
    tenkan_period: int = 9
    kijun_period: int = 26
    senkou_b_period: int = 52


@dataclass(frozen=True)
class OBVParams:
    signal_period: int = 20


@dataclass(frozen=True)
class BBSqueezeParams:
    bb_period: int = 20
    bb_deviation: float = 2.0
    kc_period: int = 20
    kc_multiplier: float = 1.5


@dataclass(frozen=True)
class VWAPParams:
    pass


IndicatorParams = Union[
    MovingAverageParams, RSIParams, MACDParams, BollingerParams, ATRParams, ADXParams,
    StochasticParams, CCIParams, IchimokuParams, OBVParams, BBSqueezeParams, VWAPParams,
]

PARAMS_BY_KIND: Dict[IndicatorKind, Type] = {
    IndicatorKind.MOVING_AVERAGE: MovingAverageParams,
    IndicatorKind.RSI: RSIParams,
    IndicatorKind.MACD: MACDParams,
    IndicatorKind.BOLLINGER_BANDS: BollingerParams,
    IndicatorKind.ATR: ATRParams,
    IndicatorKind.ADX: ADXParams,
    IndicatorKind.STOCHASTIC: StochasticParams,
    IndicatorKind.CCI: CCIParams,
    IndicatorKind.ICHIMOKU: IchimokuParams,
    IndicatorKind.OBV: OBVParams,
    IndicatorKind.BB_SQUEEZE: BBSqueezeParams,
    IndicatorKind.VWAP: VWAPParams,
}


# --- Nodes -----------------------------------------------------------------

@dataclass(frozen=True)
class IndicatorNode:
    id: str
    kind: IndicatorKind
    params: IndicatorParams
    label: str = ""
    signal_mode: SignalMode = SignalMode.EVERY_TICK
    filter_role: Optional[str] = None

    @property
    def is_trend_filter(self) -> bool:
        return self.filter_role == HTF_TREND_ROLE

    @property
    def bar_offset(self) -> int:
        """1 when the node reads the last closed bar instead of the current one."""
        return 1 if self.signal_mode is SignalMode.CANDLE_CLOSE else 0


@dataclass(frozen=True)
class CandlestickNode:
    id: str
    label: str = ""
    patterns: Tuple[CandlePattern, ...] = ()
    min_body_size: float = 5.0  # points


@dataclass(frozen=True)
class ConditionNode:
    id: str
    label: str = ""
    condition_type: ConditionOperator = ConditionOperator.GREATER_THAN
    threshold: float = 0.0


@dataclass(frozen=True)
class PlaceOrderNode:
    """place-buy / place-sell. min_lot / max_lot of 0 fall back to the account limits."""
    id: str
    direction: Direction = Direction.BUY
    label: str = ""
    method: SizingMethod = SizingMethod.FIXED_LOT
    fixed_lot: float = 0.01
    risk_percent: float = 1.0
    min_lot: float = 0.0
    max_lot: float = 0.0


@dataclass(frozen=True)
class StopLossNode:
    id: str
    label: str = ""
    method: StopLossMethod = StopLossMethod.FIXED_PIPS
    fixed_pips: float = 50.0
    atr_multiplier: float = 1.5
    sl_percent: float = 1.0


@dataclass(frozen=True)
class TakeProfitNode:
    id: str
    label: str = ""
    method: TakeProfitMethod = TakeProfitMethod.FIXED_PIPS
    fixed_pips: float = 100.0
    risk_reward_ratio: float = 2.0
    atr_multiplier: float = 3.0


@dataclass(frozen=True)
class TrailingStopNode:
    id: str
    label: str = ""
    method: TrailingMethod = TrailingMethod.FIXED_PIPS
    trail_pips: float = 30.0
    trail_atr_multiplier: float = 1.0
    trail_percent: float = 0.5
    start_after_pips: float = 0.0


@dataclass(frozen=True)
class BreakevenNode:
    id: str
    label: str = ""
    trigger: BreakevenTrigger = BreakevenTrigger.PIPS
    trigger_pips: float = 20.0
    trigger_atr_multiplier: float = 1.0
    trigger_percent: float = 0.5
    lock_pips: float = 0.0


@dataclass(frozen=True)
class PartialCloseNode:
    id: str
    label: str = ""
    trigger_method: PartialCloseTrigger = PartialCloseTrigger.PIPS
    trigger_pips: float = 20.0
    trigger_percent: float = 1.0
    close_percent: float = 50.0
    move_sl_to_breakeven: bool = False


@dataclass(frozen=True)
class TimeExitNode:
    id: str
    label: str = ""
    exit_after_bars: int = 20


@dataclass(frozen=True)
class TradingSession:
    """Session window in bar-time hours; end before start wraps past midnight."""
    start_hour: int = 0
    start_minute: int = 0
    end_hour: int = 23
    end_minute: int = 59

    @property
    def start_minutes(self) -> int:
        return self.start_hour * 60 + self.start_minute

    @property
    def end_minutes(self) -> int:
        return self.end_hour * 60 + self.end_minute


@dataclass(frozen=True)
class TradingTimesNode:
    id: str
    label: str = ""
    mode: TradingTimesMode = TradingTimesMode.ALWAYS
    sessions: Tuple[TradingSession, ...] = ()
    trade_monday_to_friday: bool = True


@dataclass(frozen=True)
class UnsupportedNode:
    id: str
    type: str
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.type


TradeManagementNode = Union[StopLossNode, TakeProfitNode, TrailingStopNode, BreakevenNode, PartialCloseNode, TimeExitNode]

Node = Union[
    IndicatorNode, CandlestickNode, ConditionNode, PlaceOrderNode, StopLossNode, TakeProfitNode,
    TrailingStopNode, BreakevenNode, PartialCloseNode, TimeExitNode, TradingTimesNode, UnsupportedNode,
]


@dataclass(frozen=True)
class Edge:
    source: str
    target: str


@dataclass(frozen=True)
class StrategySettings:
    """Account-level strategy limits. 0 disables a cap."""
    condition_mode: ConditionMode = ConditionMode.AND
    max_open_trades: int = 1
    max_trades_per_day: int = 0
    allow_hedging: bool = False
    min_bars_between_trades: int = 0
    max_buy_positions: int = 0
    max_sell_positions: int = 0
    max_daily_loss_percent: float = 0.0
    max_total_drawdown_percent: float = 0.0
    correlation_filter: bool = False


@dataclass(frozen=True)
class StrategyGraph:
    """Read-only strategy definition. `warnings` holds parameter values that could not be parsed."""
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    settings: StrategySettings = field(default_factory=StrategySettings)
    warnings: Tuple[str, ...] = ()

    def nodes_of(self, *types: Type) -> List[Node]:
        return [n for n in self.nodes if isinstance(n, types)]

    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def neighbours(self, node_id: str) -> List[str]:
        """Ids connected to node_id by an edge in either direction."""
        out = []
        for e in self.edges:
            if e.source == node_id:
                out.append(e.target)
            elif e.target == node_id:
                out.append(e.source)
        return out

    def sources_of(self, node_id: str) -> List[str]:
        return [e.source for e in self.edges if e.target == node_id]


# --- Parsing ---------------------------------------------------------------

_INDICATOR_KINDS = {k.value: k for k in IndicatorKind}


def _norm_key(key: str) -> str:
    return str(key).lstrip("_").replace("_", "").replace("-", "").lower()


def _normalized(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in (data or {}).items():
        out.setdefault(_norm_key(k), v)
    return out


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _to_enum(enum_cls: Type[Enum], value: Any) -> Enum:
    if isinstance(value, enum_cls):
        return value
    return enum_cls(str(value).strip().upper().replace("-", "_"))


def _to_patterns(value: Any) -> Tuple[CandlePattern, ...]:
    if isinstance(value, str):
        value = [value]
    return tuple(_to_enum(CandlePattern, v) for v in value)


def _to_sessions(value: Any) -> Tuple[TradingSession, ...]:
    return tuple(_fill(TradingSession, _normalized(s), [], "session") for s in value)


_FIELD_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "patterns": _to_patterns,
    "sessions": _to_sessions,
    "condition_type": ConditionOperator.parse,
}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name in _FIELD_CONVERTERS:
        return _FIELD_CONVERTERS[name](value)
    if isinstance(default, Enum):
        return _to_enum(type(default), value)
    if isinstance(default, bool):
        return _to_bool(value)
    if isinstance(default, int):
        value = int(float(value))
        if value <= 0 and (name.endswith("period") or name == "slowing"):
            raise ValueError("must be a positive integer")
        return value
    if isinstance(default, float):
        return float(value)
    return value


def _fill(cls: Type, data: Dict[str, Any], warnings: List[str], owner: str, **fixed: Any):
    """Instantiate dataclass `cls` from normalized data, falling back to defaults on bad values."""
    kwargs = dict(fixed)
    for f in fields(cls):
        if f.name in kwargs:
            continue
        key = _norm_key(f.name)
        if key not in data or data[key] is None:
            continue
        default = f.default if f.default is not MISSING else None
        try:
            kwargs[f.name] = _coerce(f.name, data[key], default)
        except (AttributeError, TypeError, ValueError) as e:
            msg = f'"{owner}": invalid {f.name}={data[key]!r} ({e}); using default'
            logger.warning(msg)
            warnings.append(msg)
    return cls(**kwargs)


_NODE_CLASSES: Dict[str, Type] = {
    "candlestick-pattern": CandlestickNode,
    "condition": ConditionNode,
    "stop-loss": StopLossNode,
    "take-profit": TakeProfitNode,
    "trailing-stop": TrailingStopNode,
    "breakeven-stop": BreakevenNode,
    "partial-close": PartialCloseNode,
    "time-exit": TimeExitNode,
    "trading-times": TradingTimesNode,
}


def parse_node(raw: Mapping[str, Any], warnings: Optional[List[str]] = None) -> Node:
    """Build one typed node from {id, type, data}."""
    warnings = warnings if warnings is not None else []
    node_id = str(raw.get("id", ""))
    data = _normalized(raw.get("data"))
    node_type = str(raw.get("type") or data.get("indicatortype") or "")
    label = str(data.get("label") or "")
    owner = label or node_type

    kind = _INDICATOR_KINDS.get(node_type)
    if kind is not None:
        params = _fill(PARAMS_BY_KIND[kind], data, warnings, owner)
        mode = SignalMode.EVERY_TICK
        if "signalmode" in data:
            try:
                mode = SignalMode(str(data["signalmode"]).strip().lower())
            except ValueError:
                warnings.append(f'"{owner}": unknown signalMode {data["signalmode"]!r}; using every_tick')
        role = data.get("filterrole")
        return IndicatorNode(
            id=node_id, kind=kind, params=params, label=label,
            signal_mode=mode, filter_role=str(role) if role else None,
        )
    if node_type in ("place-buy", "place-sell"):
        direction = Direction.BUY if node_type == "place-buy" else Direction.SELL
        return _fill(PlaceOrderNode, data, warnings, owner, id=node_id, direction=direction, label=label)
    if node_type in _NODE_CLASSES:
        return _fill(_NODE_CLASSES[node_type], data, warnings, owner, id=node_id, label=label)
    return UnsupportedNode(id=node_id, type=node_type, label=label)


def parse_graph(source: Mapping[str, Any]) -> StrategyGraph:
    """
    Parse a strategy document into a StrategyGraph.
    Unknown node types are kept as UnsupportedNode; bad parameter values keep their defaults
    and are listed in graph.warnings.
    """
    warnings: List[str] = []
    nodes = tuple(parse_node(n, warnings) for n in (source.get("nodes") or []))
    edges = tuple(
        Edge(source=str(e.get("source", "")), target=str(e.get("target", "")))
        for e in (source.get("edges") or [])
    )
    raw_settings = _normalized(source.get("settings"))
    multi_pair = raw_settings.get("multipair")
    multi_pair = _normalized(multi_pair) if isinstance(multi_pair, Mapping) else {}
    correlation = _to_bool(multi_pair.get("enabled")) and _to_bool(multi_pair.get("correlationfilter"))
    settings = _fill(StrategySettings, raw_settings, warnings, "settings", correlation_filter=correlation)
    return StrategyGraph(nodes=nodes, edges=edges, settings=settings, warnings=tuple(warnings))


def graph_from_nodes(nodes: Iterable[Node], edges: Iterable[Edge] = (), settings: Optional[StrategySettings] = None) -> StrategyGraph:
    return StrategyGraph(nodes=tuple(nodes), edges=tuple(edges), settings=settings or StrategySettings())
