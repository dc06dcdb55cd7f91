"""strategylab.backtest.strategies.base

Declarative strategy contract.

A strategy is data, not code: a long rule and an optional short rule, each an
AND of conditions over named series, plus risk parameters. The external
strategy parser produces these; the signal generator evaluates them.

Series a condition may reference:
- raw columns: open, high, low, close, volume
- indicators:  rsi, sma, ema_fast, ema_slow, bb_upper, bb_middle, bb_lower, atr

Percentages are in percent: ``stop_loss_pct=1.0`` means 1%.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from strategylab.core.exceptions import StrategyError

Operator = Literal["<", "<=", ">", ">=", "crosses_above", "crosses_below"]

PRICE_SERIES = frozenset({"open", "high", "low", "close", "volume"})

# indicator series -> the IndicatorParams field holding its lookback
INDICATOR_PERIODS: dict[str, str] = {
    "rsi": "rsi_period",
    "sma": "sma_period",
    "ema_fast": "ema_fast",
    "ema_slow": "ema_slow",
    "bb_upper": "bb_period",
    "bb_middle": "bb_period",
    "bb_lower": "bb_period",
    "atr": "atr_period",
}

SERIES_NAMES = PRICE_SERIES | frozenset(INDICATOR_PERIODS)

_MIRROR_SERIES = {
    "high": "low",
    "low": "high",
    "bb_upper": "bb_lower",
    "bb_lower": "bb_upper",
}

_MIRROR_OPS: dict[str, Operator] = {
    "<": ">",
    "<=": ">=",
    ">": "<",
    ">=": "<=",
    "crosses_above": "crosses_below",
    "crosses_below": "crosses_above",
}

# Oscillators bounded on [0, 100]: a long threshold v mirrors to 100 - v.
_BOUNDED_OSCILLATORS = frozenset({"rsi"})


class Condition(BaseModel):
    model_config = ConfigDict(frozen=True)

    left: str
    op: Operator
    right: str | float

    @field_validator("left")
    @classmethod
    def left_must_be_series(cls, v: str) -> str:
        if v not in SERIES_NAMES:
            raise ValueError(f"unknown series: {v}")
        return v

    @field_validator("right")
    @classmethod
    def right_must_be_series_or_number(cls, v: str | float) -> str | float:
        if isinstance(v, str) and v not in SERIES_NAMES:
            raise ValueError(f"unknown series: {v}")
        return v

    def series(self) -> set[str]:
        out = {self.left}
        if isinstance(self.right, str):
            out.add(self.right)
        return out

    def mirrored(self) -> Condition:
        left = _MIRROR_SERIES.get(self.left, self.left)
        right: str | float
        if isinstance(self.right, str):
            right = _MIRROR_SERIES.get(self.right, self.right)
        elif self.left in _BOUNDED_OSCILLATORS:
            right = 100.0 - float(self.right)
        else:
            right = self.right
        return Condition(left=left, op=_MIRROR_OPS[self.op], right=right)

    def describe(self) -> str:
        return f"{self.left} {self.op} {self.right}"


def mirror_conditions(conditions: Sequence[Condition]) -> list[Condition]:
    """Build the short rule that mirrors a long rule.

    ``rsi < 30`` becomes ``rsi > 70``; ``low <= bb_lower`` becomes
    ``high >= bb_upper``; ``ema_fast crosses_above ema_slow`` becomes
    ``ema_fast crosses_below ema_slow``.
    """

    return [c.mirrored() for c in conditions]


class IndicatorParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    rsi_period: int = Field(default=14, ge=1)
    sma_period: int = Field(default=20, ge=1)
    ema_fast: int = Field(default=20, ge=1)
    ema_slow: int = Field(default=50, ge=1)
    bb_period: int = Field(default=20, ge=1)
    bb_std: float = Field(default=2.0, ge=0.0)
    atr_period: int = Field(default=14, ge=1)


class RiskManagement(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop_loss_pct: float = Field(default=1.0, ge=0.0)
    take_profit_pct: float = Field(default=2.0, ge=0.0)
    # Informational: the simulator sizes by risk_per_trade and holds one position.
    position_size_pct: float = 1.0
    max_open_trades: int = 1


class StrategyDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    long_conditions: tuple[Condition, ...] = ()
    short_conditions: tuple[Condition, ...] = ()
    indicators: IndicatorParams = Field(default_factory=IndicatorParams)
    risk: RiskManagement = Field(default_factory=RiskManagement)
    confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    timeframe: str = "1h"
    symbols: tuple[str, ...] = ()

    def referenced_series(self) -> set[str]:
        out: set[str] = set()
        for c in (*self.long_conditions, *self.short_conditions):
            out |= c.series()
        return out

    def warmup(self) -> int:
        """Bars needed before every referenced indicator is past its warm-up."""

        periods = [
            int(getattr(self.indicators, INDICATOR_PERIODS[s]))
            for s in self.referenced_series()
            if s in INDICATOR_PERIODS
        ]
        return max(periods, default=0)

    def with_params(self, params: Mapping[str, Any]) -> StrategyDefinition:
        """Return a copy with dotted-path overrides applied and re-validated.

        Example: ``{"risk.stop_loss_pct": 0.5, "indicators.rsi_period": 10}``.
        """

        data = self.model_dump()
        for path, value in params.items():
            keys = str(path).split(".")
            node = data
            for k in keys[:-1]:
                child = node.get(k) if isinstance(node, dict) else None
                if not isinstance(child, dict):
                    raise StrategyError(f"unknown strategy parameter: {path}")
                node = child
            if keys[-1] not in node:
                raise StrategyError(f"unknown strategy parameter: {path}")
            node[keys[-1]] = value
        return load_strategy(data)


def load_strategy(data: Mapping[str, Any]) -> StrategyDefinition:
    """Validate a mapping (e.g. parsed YAML) into a ``StrategyDefinition``.

    Raises:
        StrategyError: the mapping does not describe a valid strategy.
    """

    try:
        return StrategyDefinition.model_validate(dict(data))
    except ValidationError as e:
        raise StrategyError(f"invalid strategy definition: {e}") from e
