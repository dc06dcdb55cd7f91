"""strategylab.core.exceptions

Errors are part of the interface.

Structural problems abort a run with a typed failure. Numerical edge cases never
raise; they resolve to documented sentinels inside the analyzer.
"""

from __future__ import annotations


class StrategyLabError(Exception):
    """Base exception for strategylab."""


class ConfigError(StrategyLabError):
    """Configuration is missing, invalid, or inconsistent."""


class InputError(StrategyLabError):
    """Backtest inputs are unusable: empty or unordered candles, bad parameters."""


class StrategyError(InputError):
    """Strategy definition references something that does not exist."""
