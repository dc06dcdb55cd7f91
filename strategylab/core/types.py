"""strategylab.core.types

Lightweight dataclasses for hot-path objects.

Pydantic models own IO boundaries (strategy definitions, config); dataclasses
keep the replay loop lean. Everything here is frozen: a candle, a signal or a
closed trade never changes after it is produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum


class Direction(StrEnum):
    BUY = "buy"
    SELL = "sell"


class TradeSide(StrEnum):
    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_direction(cls, direction: Direction) -> TradeSide:
        return cls.LONG if direction == Direction.BUY else cls.SHORT


class ExitReason(StrEnum):
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    END_OF_DATA = "end_of_data"


@dataclass(frozen=True, slots=True)
class Candle:
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True, slots=True)
class Signal:
    timestamp: datetime
    direction: Direction
    price: float
    stop_loss: float
    take_profit: float
    confidence: float = 0.75


@dataclass(frozen=True, slots=True)
class ClosedTrade:
    entry_time: datetime
    exit_time: datetime
    symbol: str
    side: TradeSide
    entry_price: float
    exit_price: float
    size: float
    gross_pnl: float
    pnl: float  # net of round-trip commission
    pnl_pct: float  # pnl / (entry_price * size) * 100
    commission: float
    holding_period: timedelta
    mae: float  # <= 0
    mfe: float  # >= 0
    exit_reason: ExitReason

    @property
    def is_win(self) -> bool:
        return self.pnl > 0

    @property
    def is_loss(self) -> bool:
        return self.pnl < 0


@dataclass(frozen=True, slots=True)
class EquityPoint:
    timestamp: datetime
    equity: float
    drawdown_pct: float


@dataclass(frozen=True, slots=True)
class DrawdownPoint:
    timestamp: datetime
    drawdown_pct: float


@dataclass(frozen=True, slots=True)
class MonthlyReturn:
    year: int
    month: int
    label: str
    pnl: float
    return_pct: float


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    total_return: float  # %
    annualized_return: float  # %
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float  # %
    win_rate: float  # 0..1
    profit_factor: float
    average_win: float
    average_loss: float  # absolute value
    expectancy: float
    number_of_trades: int
    average_trades_per_month: float
    total_pnl: float = 0.0


@dataclass(frozen=True, slots=True)
class Statistics:
    calmar_ratio: float
    recovery_factor: float
    payoff_ratio: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    largest_win: float
    largest_loss: float
    average_holding_period: timedelta
    exposure_time: float  # %
    market_correlation: float


@dataclass(frozen=True, slots=True)
class SimulationDiagnostics:
    """Recovered conditions, reported as counts rather than errors."""

    signals_generated: int = 0
    signals_accepted: int = 0
    skipped_signals: int = 0
    degenerate_signals: int = 0
    unterminated_positions: int = 0
