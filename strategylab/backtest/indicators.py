"""strategylab.backtest.indicators

Indicator library.

Contract for every function here:
- input is an ordered price sequence (list or 1D array)
- output is a float64 array of the *same length* as the input
- the warm-up region is padded (first available value, or RSI's neutral 50)
- short inputs never raise; they get a defined fallback

RSI uses simple trailing averages of gains/losses rather than Wilder's
exponential smoothing, so two runs over the same window always agree.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from strategylab.core.types import Candle

RSI_NEUTRAL = 50.0

ArrayLike = Sequence[float] | np.ndarray


def _as_array(values: ArrayLike) -> np.ndarray:
    x = np.asarray(values, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("indicator input must be 1D")
    return x


def _check_period(period: int) -> int:
    n = int(period)
    if n < 1:
        raise ValueError("period must be >= 1")
    return n


def _rolling_sum(x: np.ndarray, n: int) -> np.ndarray:
    """Sums of windows ending at i (inclusive) for i >= n-1. Length len(x) - n + 1."""

    csum = np.cumsum(x, dtype=np.float64)
    out = csum[n - 1 :].copy()
    out[1:] = out[1:] - csum[:-n]
    return out


def _pad_front(valid: np.ndarray, t_len: int) -> np.ndarray:
    """Left-pad ``valid`` to ``t_len`` by repeating its first value."""

    out = np.empty(t_len, dtype=np.float64)
    out[t_len - valid.size :] = valid
    out[: t_len - valid.size] = valid[0]
    return out


def sma(values: ArrayLike, period: int) -> np.ndarray:
    x = _as_array(values)
    n = _check_period(period)
    if x.size < n or x.size == 0:
        return x.copy()
    return _pad_front(_rolling_sum(x, n) / float(n), x.size)


def ema(values: ArrayLike, period: int) -> np.ndarray:
    """Exponential moving average seeded with the SMA of the first window.

    The first ``period`` outputs are the seed itself; the recursion starts at
    index ``period``.
    """

    x = _as_array(values)
    n = _check_period(period)
    if x.size == 0:
        return x.copy()
    if x.size < n:
        return np.full(x.size, float(np.mean(x)), dtype=np.float64)

    k = 2.0 / (n + 1.0)
    out = np.empty(x.size, dtype=np.float64)
    out[:n] = float(np.mean(x[:n]))
    for i in range(n, x.size):
        out[i] = out[i - 1] + (x[i] - out[i - 1]) * k
    return out


def rsi(closes: ArrayLike, period: int = 14) -> np.ndarray:
    """Relative strength index over the trailing ``period`` close-to-close changes.

    - ``i < period`` (and any input of length <= period): 50
    - no losses in the window: 100
    - no gains and no losses (flat window): 50
    """

    x = _as_array(closes)
    n = _check_period(period)
    out = np.full(x.size, RSI_NEUTRAL, dtype=np.float64)
    if x.size <= n:
        return out

    diff = np.diff(x)
    gains = np.maximum(diff, 0.0)
    losses = np.maximum(-diff, 0.0)

    # window over diff[i-n : i] corresponds to close index i
    avg_gain = _rolling_sum(gains, n) / float(n)
    avg_loss = _rolling_sum(losses, n) / float(n)

    for j in range(avg_gain.size):
        g = float(avg_gain[j])
        lo = float(avg_loss[j])
        if lo > 0:
            val = 100.0 - (100.0 / (1.0 + g / lo))
        elif g > 0:
            val = 100.0
        else:
            val = RSI_NEUTRAL
        out[j + n] = val
    return out


def bollinger_bands(
    values: ArrayLike,
    period: int = 20,
    num_std: float = 2.0,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(upper, middle, lower): SMA +/- ``num_std`` population standard deviations."""

    x = _as_array(values)
    n = _check_period(period)
    if x.size < n or x.size == 0:
        return x.copy(), x.copy(), x.copy()

    windows = np.lib.stride_tricks.sliding_window_view(x, n)
    mid = windows.mean(axis=1)
    sd = windows.std(axis=1)

    k = float(num_std)
    upper = _pad_front(mid + k * sd, x.size)
    middle = _pad_front(mid, x.size)
    lower = _pad_front(mid - k * sd, x.size)
    return upper, middle, lower


def true_range(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike) -> np.ndarray:
    h = _as_array(highs)
    lo = _as_array(lows)
    c = _as_array(closes)
    if not (h.size == lo.size == c.size):
        raise ValueError("highs, lows and closes must have the same length")
    if h.size == 0:
        return h.copy()

    tr = h - lo
    prev_close = c[:-1]
    tr[1:] = np.maximum.reduce([tr[1:], np.abs(h[1:] - prev_close), np.abs(lo[1:] - prev_close)])
    return tr


def atr(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> np.ndarray:
    """Average true range: simple mean of the true range over ``period`` bars."""

    n = _check_period(period)
    tr = true_range(highs, lows, closes)
    if tr.size == 0:
        return tr
    if tr.size < n:
        return np.full(tr.size, float(np.mean(tr)), dtype=np.float64)
    return _pad_front(_rolling_sum(tr, n) / float(n), tr.size)


def candle_columns(candles: Sequence[Candle]) -> dict[str, np.ndarray]:
    return {
        "open": np.array([c.open for c in candles], dtype=np.float64),
        "high": np.array([c.high for c in candles], dtype=np.float64),
        "low": np.array([c.low for c in candles], dtype=np.float64),
        "close": np.array([c.close for c in candles], dtype=np.float64),
        "volume": np.array([c.volume for c in candles], dtype=np.float64),
    }


class IndicatorLibrary:
    """Injectable facade over the indicator functions.

    ``compute`` builds every series a strategy may reference by name. Swap it
    for a stub in tests to feed hand-made indicator values to the generator.
    """

    def sma(self, values: ArrayLike, period: int) -> np.ndarray:
        return sma(values, period)

    def ema(self, values: ArrayLike, period: int) -> np.ndarray:
        return ema(values, period)

    def rsi(self, closes: ArrayLike, period: int = 14) -> np.ndarray:
        return rsi(closes, period)

    def bollinger_bands(self, values: ArrayLike, period: int = 20, num_std: float = 2.0) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return bollinger_bands(values, period, num_std)

    def atr(self, highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> np.ndarray:
        return atr(highs, lows, closes, period)

    def compute(self, candles: Sequence[Candle], params) -> dict[str, np.ndarray]:
        """Return the named series for ``candles``.

        ``params`` is an ``IndicatorParams`` (periods and band width).
        """

        cols = candle_columns(candles)
        close = cols["close"]
        upper, middle, lower = self.bollinger_bands(close, params.bb_period, params.bb_std)
        series = dict(cols)
        series.update(
            {
                "rsi": self.rsi(close, params.rsi_period),
                "sma": self.sma(close, params.sma_period),
                "ema_fast": self.ema(close, params.ema_fast),
                "ema_slow": self.ema(close, params.ema_slow),
                "bb_upper": upper,
                "bb_middle": middle,
                "bb_lower": lower,
                "atr": self.atr(cols["high"], cols["low"], close, params.atr_period),
            }
        )
        return series
