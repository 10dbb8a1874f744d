"""
Monte Carlo simulation: shuffle trade order to estimate the distribution of
max drawdown and final balance for one backtest result.
"""

from __future__ import annotations
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

MAX_CURVES_KEPT = 20


@dataclass(frozen=True)
class ConfidenceLevel:
    max_drawdown: float
    final_balance: float
    worst_return: float


@dataclass
class MonteCarloResult:
    simulations: int
    confidence_95: ConfidenceLevel
    confidence_99: ConfidenceLevel
    median_final_balance: float
    probability_of_ruin: float  # percent of runs whose drawdown reached the ruin threshold
    equity_curves: List[List[float]] = field(default_factory=list)


def _percentile(values: Sequence[float], q: float) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), q))


def run_monte_carlo(
    profits: Sequence[float],
    initial_balance: float,
    simulations: int = 1000,
    ruin_threshold: float = 0.5,
    seed: Optional[int] = None,
) -> MonteCarloResult:
    """
    Replay `profits` in `simulations` random orders starting from initial_balance.
    ruin_threshold is a drawdown fraction of the running peak (0.5 = 50%).
    Uses its own random.Random so a seed gives repeatable output.
    """
    if len(profits) == 0 or simulations <= 0:
        flat = ConfidenceLevel(max_drawdown=0.0, final_balance=initial_balance, worst_return=0.0)
        return MonteCarloResult(
            simulations=0,
            confidence_95=flat,
            confidence_99=flat,
            median_final_balance=initial_balance,
            probability_of_ruin=0.0,
        )

    rng = random.Random(seed)
    curve_interval = max(1, simulations // MAX_CURVES_KEPT)
    finals: List[float] = []
    drawdowns: List[float] = []
    curves: List[List[float]] = []
    ruined = 0

    for sim in range(simulations):
        shuffled = list(profits)
        rng.shuffle(shuffled)
        keep = sim % curve_interval == 0 and len(curves) < MAX_CURVES_KEPT
        curve = [initial_balance] if keep else []
        balance = peak = initial_balance
        max_dd = 0.0
        max_dd_frac = 0.0
        for p in shuffled:
            balance += p
            if balance > peak:
                peak = balance
            dd = peak - balance
            if dd > max_dd:
                max_dd = dd
            if peak > 0 and dd / peak > max_dd_frac:
                max_dd_frac = dd / peak
            if keep:
                curve.append(balance)
        finals.append(balance)
        drawdowns.append(max_dd)
        if max_dd_frac >= ruin_threshold:
            ruined += 1
        if keep:
            curves.append(curve)

    returns = [b - initial_balance for b in finals]
    return MonteCarloResult(
        simulations=simulations,
        confidence_95=ConfidenceLevel(
            max_drawdown=_percentile(drawdowns, 95),
            final_balance=_percentile(finals, 5),
            worst_return=_percentile(returns, 5),
        ),
        confidence_99=ConfidenceLevel(
            max_drawdown=_percentile(drawdowns, 99),
            final_balance=_percentile(finals, 1),
            worst_return=_percentile(returns, 1),
        ),
        median_final_balance=_percentile(finals, 50),
        probability_of_ruin=ruined / simulations * 100.0,
        equity_curves=curves,
    )
