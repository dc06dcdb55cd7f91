"""strategylab.backtest.strategies.rsi_bollinger

RSI + Bollinger reversion (long and short):
- long when RSI < oversold and the bar's low touches the lower band
- short is the mirror: RSI > 100 - oversold and the high touches the upper band

Tight bracket: 0.5% stop, 1% target.
"""

from __future__ import annotations

from strategylab.backtest.strategies.base import (
    Condition,
    IndicatorParams,
    RiskManagement,
    StrategyDefinition,
    mirror_conditions,
)


def rsi_bollinger(
    *,
    rsi_period: int = 14,
    oversold: float = 30.0,
    bb_period: int = 20,
    bb_std: float = 2.0,
    stop_loss_pct: float = 0.5,
    take_profit_pct: float = 1.0,
) -> StrategyDefinition:
    long_rule = [
        Condition(left="rsi", op="<", right=float(oversold)),
        Condition(left="low", op="<=", right="bb_lower"),
    ]
    return StrategyDefinition(
        name="rsi_bollinger",
        description="RSI extreme confirmed by a Bollinger band touch",
        long_conditions=tuple(long_rule),
        short_conditions=tuple(mirror_conditions(long_rule)),
        indicators=IndicatorParams(rsi_period=rsi_period, bb_period=bb_period, bb_std=bb_std),
        risk=RiskManagement(stop_loss_pct=stop_loss_pct, take_profit_pct=take_profit_pct),
    )
