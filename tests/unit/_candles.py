from __future__ import annotations

import csv
import math
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

from strategylab.core.types import Candle, ClosedTrade, ExitReason, TradeSide

START = datetime(2024, 1, 1, tzinfo=UTC)
HOUR = timedelta(hours=1)


def ts(i: int, *, start: datetime = START, step: timedelta = HOUR) -> datetime:
    return start + step * i


def bar(i: int, o: float, h: float, lo: float, c: float, *, volume: float = 0.0) -> Candle:
    return Candle(timestamp=ts(i), open=o, high=h, low=lo, close=c, volume=volume)


def make_candles(
    closes: Sequence[float],
    *,
    start: datetime = START,
    step: timedelta = HOUR,
    wick: float = 0.0,
) -> list[Candle]:
    """Open = previous close; high/low = body extremes +/- ``wick``."""

    out: list[Candle] = []
    prev = float(closes[0]) if closes else 0.0
    for i, c in enumerate(closes):
        o = prev
        out.append(
            Candle(
                timestamp=start + step * i,
                open=o,
                high=max(o, c) + wick,
                low=min(o, c) - wick,
                close=float(c),
                volume=1.0,
            )
        )
        prev = float(c)
    return out


def wave_candles(n: int = 100) -> list[Candle]:
    """Small upward drift with a 30-bar swing: RSI dips below 30 on every leg down."""

    closes = [100.0 + 0.01 * i + 3.0 * math.sin(2.0 * math.pi * i / 30.0) for i in range(n)]
    return make_candles(closes, wick=0.05)


def make_trade(
    pnl: float,
    *,
    entry_bar: int = 0,
    exit_bar: int = 1,
    entry_price: float = 100.0,
    size: float = 1.0,
    start: datetime = START,
    step: timedelta = HOUR,
) -> ClosedTrade:
    entry_time = start + step * entry_bar
    exit_time = start + step * exit_bar
    return ClosedTrade(
        entry_time=entry_time,
        exit_time=exit_time,
        symbol="TEST",
        side=TradeSide.LONG,
        entry_price=entry_price,
        exit_price=entry_price + pnl / size,
        size=size,
        gross_pnl=pnl,
        pnl=pnl,
        pnl_pct=pnl / (entry_price * size) * 100.0,
        commission=0.0,
        holding_period=exit_time - entry_time,
        mae=min(pnl, 0.0),
        mfe=max(pnl, 0.0),
        exit_reason=ExitReason.TAKE_PROFIT if pnl > 0 else ExitReason.STOP_LOSS,
    )


def write_csv(path: Path, candles: Sequence[Candle]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(["timestamp", "open", "high", "low", "close", "volume"])
        for c in candles:
            w.writerow([c.timestamp.isoformat(), c.open, c.high, c.low, c.close, c.volume])
    return path
