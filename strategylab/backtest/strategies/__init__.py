"""strategylab.backtest.strategies

Strategy model plus a few built-in definitions.

These are baselines: something to replay, compare and sweep. Real strategies
arrive as data from the strategy-authoring side and go through
``load_strategy``.
"""

from collections.abc import Callable

from strategylab.backtest.strategies.base import (
    Condition,
    IndicatorParams,
    RiskManagement,
    StrategyDefinition,
    load_strategy,
    mirror_conditions,
)
from strategylab.backtest.strategies.ema_crossover import ema_crossover
from strategylab.backtest.strategies.rsi_bollinger import rsi_bollinger
from strategylab.backtest.strategies.rsi_oversold import rsi_oversold
from strategylab.core.exceptions import StrategyError

BUILTIN_STRATEGIES: dict[str, Callable[..., StrategyDefinition]] = {
    "rsi_bollinger": rsi_bollinger,
    "rsi_oversold": rsi_oversold,
    "ema_crossover": ema_crossover,
}


def builtin_strategy(name: str, **kwargs) -> StrategyDefinition:
    factory = BUILTIN_STRATEGIES.get(name)
    if factory is None:
        known = ", ".join(sorted(BUILTIN_STRATEGIES))
        raise StrategyError(f"unknown strategy: {name} (known: {known})")
    return factory(**kwargs)


__all__ = [
    "BUILTIN_STRATEGIES",
    "Condition",
    "IndicatorParams",
    "RiskManagement",
    "StrategyDefinition",
    "builtin_strategy",
    "ema_crossover",
    "load_strategy",
    "mirror_conditions",
    "rsi_bollinger",
    "rsi_oversold",
]
