"""Shared fixtures: bar series with known shapes."""

import logging

import pytest

from strategy_backtester.core.logger import LOGGER_NAME
from tests.helpers import linear_closes, make_bars, wave_closes


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for h in logger.handlers:
        h.close()
    logger.handlers.clear()


@pytest.fixture
def rising_bars():
    return make_bars(linear_closes(200))


@pytest.fixture
def falling_bars():
    return make_bars(linear_closes(200, start=1.2, step=-0.0005))


@pytest.fixture
def wave_bars():
    return make_bars(wave_closes(300))


@pytest.fixture
def flat_bars():
    return make_bars([1.1] * 100)
