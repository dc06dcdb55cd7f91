"""strategylab.backtest.signals

Signal generator.

A stateless mapper: (strategy, candles) -> chronological entry signals.

It does not know whether a position is open. Consecutive bars may both fire;
deciding which signals become trades is the simulator's job.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from strategylab.backtest.indicators import IndicatorLibrary
from strategylab.backtest.strategies.base import Condition, StrategyDefinition
from strategylab.core.exceptions import StrategyError
from strategylab.core.types import Candle, Direction, Signal

logger = logging.getLogger(__name__)


def _operand(series: dict[str, np.ndarray], value: str | float, t_len: int) -> np.ndarray:
    if isinstance(value, str):
        arr = series.get(value)
        if arr is None:
            raise StrategyError(f"unknown series: {value}")
        return arr
    return np.full(t_len, float(value), dtype=np.float64)


def condition_mask(cond: Condition, series: dict[str, np.ndarray], t_len: int) -> np.ndarray:
    """Boolean array: where ``cond`` holds on each bar."""

    left = _operand(series, cond.left, t_len)
    right = _operand(series, cond.right, t_len)

    if cond.op == "<":
        return left < right
    if cond.op == "<=":
        return left <= right
    if cond.op == ">":
        return left > right
    if cond.op == ">=":
        return left >= right

    mask = np.zeros(t_len, dtype=bool)
    if t_len < 2:
        return mask
    if cond.op == "crosses_above":
        mask[1:] = (left[1:] > right[1:]) & (left[:-1] <= right[:-1])
    else:
        mask[1:] = (left[1:] < right[1:]) & (left[:-1] >= right[:-1])
    return mask


def rule_mask(conditions: Sequence[Condition], series: dict[str, np.ndarray], t_len: int) -> np.ndarray:
    """AND of all conditions. An empty rule never fires."""

    if not conditions:
        return np.zeros(t_len, dtype=bool)
    mask = np.ones(t_len, dtype=bool)
    for c in conditions:
        mask &= condition_mask(c, series, t_len)
    return mask


def _bracket(close: float, direction: Direction, strategy: StrategyDefinition) -> tuple[float, float]:
    sl = float(strategy.risk.stop_loss_pct) / 100.0
    tp = float(strategy.risk.take_profit_pct) / 100.0
    if direction == Direction.BUY:
        return close * (1.0 - sl), close * (1.0 + tp)
    return close * (1.0 + sl), close * (1.0 - tp)


class SignalGenerator:
    def __init__(self, indicators: IndicatorLibrary | None = None) -> None:
        self.indicators = indicators or IndicatorLibrary()

    def generate(self, strategy: StrategyDefinition, candles: Sequence[Candle]) -> list[Signal]:
        t_len = len(candles)
        if t_len == 0:
            return []
        if not strategy.long_conditions and not strategy.short_conditions:
            logger.warning("strategy_has_no_conditions", extra={"strategy": strategy.name})
            return []

        series = self.indicators.compute(candles, strategy.indicators)
        long_mask = rule_mask(strategy.long_conditions, series, t_len)
        short_mask = rule_mask(strategy.short_conditions, series, t_len)

        start = strategy.warmup()
        conds = (*strategy.long_conditions, *strategy.short_conditions)
        if any(c.op.startswith("crosses") for c in conds):
            start = max(start, 1)

        out: list[Signal] = []
        for i in range(start, t_len):
            candle = candles[i]
            for direction, mask in ((Direction.BUY, long_mask), (Direction.SELL, short_mask)):
                if not mask[i]:
                    continue
                stop, target = _bracket(candle.close, direction, strategy)
                out.append(
                    Signal(
                        timestamp=candle.timestamp,
                        direction=direction,
                        price=candle.close,
                        stop_loss=stop,
                        take_profit=target,
                        confidence=float(strategy.confidence),
                    )
                )

        logger.debug(
            "signals_generated",
            extra={"strategy": strategy.name, "signals": len(out), "warmup": start, "bars": t_len},
        )
        return out


def generate_signals(
    strategy: StrategyDefinition,
    candles: Sequence[Candle],
    *,
    indicators: IndicatorLibrary | None = None,
) -> list[Signal]:
    return SignalGenerator(indicators).generate(strategy, candles)
