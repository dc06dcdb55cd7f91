"""strategylab.backtest.strategies.rsi_oversold

RSI oversold (long-only):
- long when RSI < oversold

1% stop, 2% target. The baseline used for end-to-end checks.
"""

from __future__ import annotations

from strategylab.backtest.strategies.base import Condition, IndicatorParams, RiskManagement, StrategyDefinition


def rsi_oversold(
    *,
    period: int = 14,
    oversold: float = 30.0,
    stop_loss_pct: float = 1.0,
    take_profit_pct: float = 2.0,
) -> StrategyDefinition:
    return StrategyDefinition(
        name="rsi_oversold",
        description="Buy RSI dips",
        long_conditions=(Condition(left="rsi", op="<", right=float(oversold)),),
        indicators=IndicatorParams(rsi_period=period),
        risk=RiskManagement(stop_loss_pct=stop_loss_pct, take_profit_pct=take_profit_pct),
    )
