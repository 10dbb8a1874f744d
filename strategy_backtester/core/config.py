"""
Load configuration from config.yaml and .env. Env vars override YAML values.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from strategy_backtester.core.errors import ConfigError


@dataclass(frozen=True)
class BacktestConfig:
    """Account and symbol parameters for one backtest run."""
    initial_balance: float = 10000.0
    symbol: str = "EURUSD"
    spread: float = 10.0  # points; 10 = 1 pip on a 5-digit quote
    commission: float = 3.5  # per lot per side, account currency
    digits: int = 5
    point_value: float = 1.0  # value of 1 point per lot, account currency
    lot_step: float = 0.01
    min_lot: float = 0.01
    max_lot: float = 100.0
    swap_long: float = 0.0  # per lot per rollover; negative = credit
    swap_short: float = 0.0
    requote_rate: float = 0.0  # probability (0-0.3) an entry gets requoted and skipped
    requote_seed: int = 0

    @property
    def point(self) -> float:
        return 10.0 ** -self.digits

    def validate(self) -> "BacktestConfig":
        """Raise ConfigError on values the engine cannot run with. Returns self."""
        if self.lot_step <= 0:
            raise ConfigError(f"lot_step must be > 0, got {self.lot_step}")
        if self.point_value <= 0:
            raise ConfigError(f"point_value must be > 0, got {self.point_value}")
        if self.min_lot <= 0:
            raise ConfigError(f"min_lot must be > 0, got {self.min_lot}")
        if self.max_lot < self.min_lot:
            raise ConfigError(f"max_lot {self.max_lot} < min_lot {self.min_lot}")
        if self.digits < 0:
            raise ConfigError(f"digits must be >= 0, got {self.digits}")
        if self.spread < 0 or self.commission < 0:
            raise ConfigError("spread and commission must be >= 0")
        if self.initial_balance <= 0:
            raise ConfigError(f"initial_balance must be > 0, got {self.initial_balance}")
        if not 0.0 <= self.requote_rate <= 0.3:
            raise ConfigError(f"requote_rate must be within [0, 0.3], got {self.requote_rate}")
        return self


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config with a validated BacktestConfig."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    bt = data.get("backtest", {}) or {}
    wf = data.get("walk_forward", {}) or {}
    logging_cfg = data.get("logging", {}) or {}
    defaults = BacktestConfig()

    backtest = BacktestConfig(
        initial_balance=env_float("INITIAL_BALANCE", bt.get("initial_balance", defaults.initial_balance)),
        symbol=env("SYMBOL", str(bt.get("symbol", defaults.symbol))).upper(),
        spread=env_float("SPREAD", bt.get("spread", defaults.spread)),
        commission=env_float("COMMISSION", bt.get("commission", defaults.commission)),
        digits=env_int("DIGITS", bt.get("digits", defaults.digits)),
        point_value=env_float("POINT_VALUE", bt.get("point_value", defaults.point_value)),
        lot_step=env_float("LOT_STEP", bt.get("lot_step", defaults.lot_step)),
        min_lot=env_float("MIN_LOT", bt.get("min_lot", defaults.min_lot)),
        max_lot=env_float("MAX_LOT", bt.get("max_lot", defaults.max_lot)),
        swap_long=env_float("SWAP_LONG", bt.get("swap_long", defaults.swap_long)),
        swap_short=env_float("SWAP_SHORT", bt.get("swap_short", defaults.swap_short)),
        requote_rate=env_float("REQUOTE_RATE", bt.get("requote_rate", defaults.requote_rate)),
        requote_seed=env_int("REQUOTE_SEED", bt.get("requote_seed", defaults.requote_seed)),
    ).validate()

    return Config(
        backtest=backtest,
        walk_forward_windows=int(wf.get("windows", 5)),
        walk_forward_in_sample_ratio=float(wf.get("in_sample_ratio", 0.7)),
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "backtest.log"),
        json_logs=bool(logging_cfg.get("json", False)),
    )


class Config:
    """Application configuration. Immutable after load."""

    __slots__ = (
        "backtest",
        "walk_forward_windows", "walk_forward_in_sample_ratio",
        "log_level", "log_dir", "log_file", "json_logs",
    )

    def __init__(
        self,
        backtest: Optional[BacktestConfig] = None,
        walk_forward_windows: int = 5,
        walk_forward_in_sample_ratio: float = 0.7,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "backtest.log",
        json_logs: bool = False,
    ):
        self.backtest = backtest or BacktestConfig()
        self.walk_forward_windows = walk_forward_windows
        self.walk_forward_in_sample_ratio = walk_forward_in_sample_ratio
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.json_logs = json_logs
