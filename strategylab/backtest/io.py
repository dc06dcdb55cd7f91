"""strategylab.backtest.io

Lightweight IO helpers for backtesting.

CSV schema:
- required: timestamp, open, high, low, close
- optional: volume

Timestamps are ISO-8601 (``Z`` or offsets; naive means UTC) or epoch seconds.
Rows must already be in chronological order; the engine rejects anything else.
"""

from __future__ import annotations

import csv
import math
from dataclasses import asdict
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from strategylab.backtest.engine import BacktestResult
from strategylab.core.exceptions import InputError
from strategylab.core.time import parse_dt
from strategylab.core.types import Candle

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close")


def load_candles_csv(path: str | Path) -> list[Candle]:
    p = Path(path)
    if not p.exists():
        raise InputError(f"CSV file not found: {p}")

    rows: list[dict[str, str]] = []
    try:
        with p.open("r", encoding="utf-8", newline="") as f:
            r = csv.DictReader(f)
            header = [h.strip() for h in (r.fieldnames or [])]
            missing = [c for c in REQUIRED_COLUMNS if c not in header]
            if missing:
                raise InputError(f"CSV missing required column(s): {', '.join(missing)}")
            for row in r:
                rows.append({k.strip(): (v.strip() if isinstance(v, str) else "") for k, v in row.items() if k is not None})
    except UnicodeDecodeError as e:
        raise InputError(f"{p}: not valid UTF-8: {e}") from e

    out: list[Candle] = []
    for lineno, row in enumerate(rows, start=2):
        try:
            volume = row.get("volume", "")
            out.append(
                Candle(
                    timestamp=parse_dt(row["timestamp"]),
                    open=float(row["open"]),
                    high=float(row["high"]),
                    low=float(row["low"]),
                    close=float(row["close"]),
                    volume=float(volume) if volume else 0.0,
                )
            )
        except (ValueError, TypeError) as e:
            raise InputError(f"{p}:{lineno}: unparseable row: {e}") from e
    return out


def _jsonable(v: Any) -> Any:
    if isinstance(v, float):
        if math.isnan(v):
            return "nan"
        if math.isinf(v):
            return "inf" if v > 0 else "-inf"
        return v
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, timedelta):
        return v.total_seconds()
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, dict):
        return {k: _jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    return v


def result_to_dict(result: BacktestResult) -> dict[str, Any]:
    """JSON-ready view of a backtest result."""

    return _jsonable(asdict(result))
