"""
Logging setup for the backtester. Console + optional file, plain or JSON lines.
"""

from __future__ import annotations
import json
import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "strategy_backtester"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
    json_logs: bool = False,
) -> logging.Logger:
    """
    Configure the package logger: console and optional file.
    Engine modules log under strategy_backtester.<area>.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(log_level)
    root.handlers.clear()

    if json_logs:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    return root
