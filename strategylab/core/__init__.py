"""strategylab.core

Core primitives.

If a module needs to exist, it should probably depend only on this package.
"""

from .config import Config
from .exceptions import ConfigError, InputError, StrategyError, StrategyLabError
from .time import parse_dt, utc_now
from .types import Candle, ClosedTrade, Direction, Signal

__all__ = [
    "Candle",
    "ClosedTrade",
    "Config",
    "ConfigError",
    "Direction",
    "InputError",
    "Signal",
    "StrategyError",
    "StrategyLabError",
    "parse_dt",
    "utc_now",
]
