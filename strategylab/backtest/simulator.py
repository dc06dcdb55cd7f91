"""strategylab.backtest.simulator

Single-position trade simulator.

Replays signals against candles, one position at a time:
- a signal that arrives while a position is open is skipped (no queue)
- size = (capital * risk_per_trade) / |entry - stop|
- each bar: update MAE/MFE from the bar's extremes, then check exits
- exit priority per bar: stop-loss first, take-profit second

Intrabar order is unknown from OHLC data. When one bar breaches both the stop
and the target, the stop fills first.

Positions still open when the candles run out are dropped and counted, unless
``close_open_positions`` asks for a mark-to-market close at the final close.

No slippage, no partial fills. ``spread`` is carried for reporting only.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from strategylab.core.exceptions import InputError
from strategylab.core.types import Candle, ClosedTrade, Direction, ExitReason, Signal, TradeSide

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SimulationParams:
    initial_capital: float = 10_000.0
    risk_per_trade: float = 0.02  # fraction of current capital risked per trade
    commission: float = 0.001  # per unit, charged on entry and on exit
    spread: float = 0.0001  # informational
    close_open_positions: bool = False

    def __post_init__(self) -> None:
        if not self.initial_capital > 0:
            raise InputError("initial_capital must be > 0")
        if not 0.0 < self.risk_per_trade <= 1.0:
            raise InputError("risk_per_trade must be in (0, 1]")
        if not self.commission >= 0:
            raise InputError("commission must be >= 0")
        if not self.spread >= 0:
            raise InputError("spread must be >= 0")


@dataclass(frozen=True, slots=True)
class SimulationResult:
    trades: list[ClosedTrade]
    signals_received: int
    signals_accepted: int
    skipped_signals: int
    degenerate_signals: int
    unterminated_positions: int
    final_capital: float


@dataclass(slots=True)
class _OpenPosition:
    entry_time: datetime
    entry_price: float
    direction: Direction
    size: float
    stop_loss: float
    take_profit: float
    mae: float = 0.0
    mfe: float = 0.0

    @property
    def is_long(self) -> bool:
        return self.direction == Direction.BUY

    def mark(self, candle: Candle) -> None:
        if self.is_long:
            adverse = (candle.low - self.entry_price) * self.size
            favorable = (candle.high - self.entry_price) * self.size
        else:
            adverse = (self.entry_price - candle.high) * self.size
            favorable = (self.entry_price - candle.low) * self.size
        self.mae = min(self.mae, adverse)
        self.mfe = max(self.mfe, favorable)

    def exit_hit(self, candle: Candle) -> tuple[ExitReason, float] | None:
        if self.is_long:
            if candle.low <= self.stop_loss:
                return ExitReason.STOP_LOSS, self.stop_loss
            if candle.high >= self.take_profit:
                return ExitReason.TAKE_PROFIT, self.take_profit
        else:
            if candle.high >= self.stop_loss:
                return ExitReason.STOP_LOSS, self.stop_loss
            if candle.low <= self.take_profit:
                return ExitReason.TAKE_PROFIT, self.take_profit
        return None


def realize(
    pos: _OpenPosition,
    *,
    exit_time: datetime,
    exit_price: float,
    reason: ExitReason,
    commission: float,
    symbol: str,
) -> ClosedTrade:
    if pos.is_long:
        gross = (exit_price - pos.entry_price) * pos.size
    else:
        gross = (pos.entry_price - exit_price) * pos.size
    fees = commission * pos.size * 2.0
    pnl = gross - fees
    notional = pos.entry_price * pos.size
    return ClosedTrade(
        entry_time=pos.entry_time,
        exit_time=exit_time,
        symbol=symbol,
        side=TradeSide.from_direction(pos.direction),
        entry_price=pos.entry_price,
        exit_price=exit_price,
        size=pos.size,
        gross_pnl=gross,
        pnl=pnl,
        pnl_pct=(pnl / notional * 100.0) if notional != 0 else 0.0,
        commission=fees,
        holding_period=exit_time - pos.entry_time,
        mae=pos.mae,
        mfe=pos.mfe,
        exit_reason=reason,
    )


class TradeSimulator:
    def simulate(
        self,
        signals: Sequence[Signal],
        candles: Sequence[Candle],
        params: SimulationParams,
        *,
        symbol: str = "",
    ) -> SimulationResult:
        timestamps = [c.timestamp for c in candles]
        t_len = len(candles)

        trades: list[ClosedTrade] = []
        capital = float(params.initial_capital)
        accepted = skipped = degenerate = unterminated = 0

        # Signals stamped before this are inside the previous trade's lifetime.
        busy_until: datetime | None = None
        # Set once a position outlives the data; nothing after it can be taken.
        exhausted = False

        for sig in sorted(signals, key=lambda s: s.timestamp):
            if exhausted or (busy_until is not None and sig.timestamp < busy_until):
                skipped += 1
                continue

            stop_distance = abs(sig.price - sig.stop_loss)
            if stop_distance == 0:
                degenerate += 1
                logger.info("signal_degenerate_stop", extra={"ts": sig.timestamp.isoformat(), "price": sig.price})
                continue

            risk_amount = capital * float(params.risk_per_trade)
            if risk_amount <= 0:
                skipped += 1
                logger.warning("capital_exhausted", extra={"capital": capital})
                continue

            pos = _OpenPosition(
                entry_time=sig.timestamp,
                entry_price=sig.price,
                direction=sig.direction,
                size=risk_amount / stop_distance,
                stop_loss=sig.stop_loss,
                take_profit=sig.take_profit,
            )
            accepted += 1

            trade: ClosedTrade | None = None
            start = bisect_left(timestamps, sig.timestamp)
            for i in range(start, t_len):
                candle = candles[i]
                pos.mark(candle)
                hit = pos.exit_hit(candle)
                if hit is not None:
                    reason, price = hit
                    trade = realize(
                        pos,
                        exit_time=candle.timestamp,
                        exit_price=price,
                        reason=reason,
                        commission=params.commission,
                        symbol=symbol,
                    )
                    break

            if trade is None:
                exhausted = True
                if params.close_open_positions and start < t_len:
                    last = candles[-1]
                    trade = realize(
                        pos,
                        exit_time=last.timestamp,
                        exit_price=last.close,
                        reason=ExitReason.END_OF_DATA,
                        commission=params.commission,
                        symbol=symbol,
                    )
                else:
                    unterminated += 1
                    logger.warning(
                        "position_unterminated",
                        extra={"entry_ts": pos.entry_time.isoformat(), "direction": str(pos.direction)},
                    )
                    continue

            trades.append(trade)
            capital += trade.pnl
            busy_until = trade.exit_time
            logger.debug(
                "trade_closed",
                extra={"reason": str(trade.exit_reason), "pnl": trade.pnl, "capital": capital},
            )

        return SimulationResult(
            trades=trades,
            signals_received=len(signals),
            signals_accepted=accepted,
            skipped_signals=skipped,
            degenerate_signals=degenerate,
            unterminated_positions=unterminated,
            final_capital=capital,
        )


def simulate(
    signals: Sequence[Signal],
    candles: Sequence[Candle],
    params: SimulationParams | None = None,
    *,
    symbol: str = "",
) -> SimulationResult:
    return TradeSimulator().simulate(signals, candles, params or SimulationParams(), symbol=symbol)
