"""strategylab — deterministic strategy backtesting and performance analytics.

The whole thing is a pure function:

    (strategy, candles, simulation parameters) -> (trades, metrics)

Run it twice, get the same answer twice.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.0.0"
