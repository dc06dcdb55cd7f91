"""strategylab.backtest.strategies.ema_crossover

EMA crossover:
- long when the fast EMA crosses above the slow EMA
- short when it crosses below

Fires once per cross, not on every bar the fast EMA stays above.
"""

from __future__ import annotations

from strategylab.backtest.strategies.base import (
    Condition,
    IndicatorParams,
    RiskManagement,
    StrategyDefinition,
    mirror_conditions,
)
from strategylab.core.exceptions import StrategyError


def ema_crossover(
    *,
    fast: int = 20,
    slow: int = 50,
    stop_loss_pct: float = 1.0,
    take_profit_pct: float = 2.0,
) -> StrategyDefinition:
    if fast >= slow:
        raise StrategyError("fast must be < slow")

    long_rule = [Condition(left="ema_fast", op="crosses_above", right="ema_slow")]
    return StrategyDefinition(
        name="ema_crossover",
        description="Trend entry on EMA crosses",
        long_conditions=tuple(long_rule),
        short_conditions=tuple(mirror_conditions(long_rule)),
        indicators=IndicatorParams(ema_fast=fast, ema_slow=slow),
        risk=RiskManagement(stop_loss_pct=stop_loss_pct, take_profit_pct=take_profit_pct),
    )
