"""strategylab.backtest.analyzer

Performance metrics over a finished list of closed trades.

Everything here is a pure function of (trades, initial_capital, candles) and
is recomputed wholesale on every call. Undefined statistics map to fixed
sentinels instead of NaN or an exception:

| metric                                 | condition                        | value  |
|----------------------------------------|----------------------------------|--------|
| annualized_return                      | candle span <= 0                 | 0.0    |
| annualized_return                      | account wiped out                | -100.0 |
| annualized_return                      | power overflows                  | inf    |
| sharpe_ratio                           | no daily returns / std 0         | 0.0    |
| sortino_ratio                          | no negative days / downside sd 0 | 0.0    |
| win_rate                               | no trades                        | 0.0    |
| profit_factor                          | no winners and no losers         | 0.0    |
| profit_factor                          | no losers, >= 1 winner           | inf    |
| average_win, average_loss, expectancy  | empty subset                     | 0.0    |
| calmar_ratio, recovery_factor          | max_drawdown == 0                | 0.0    |
| payoff_ratio                           | no losers                        | 0.0    |
| exposure_time, average_trades_per_month| candle span <= 0                 | 0.0    |
| market_correlation                     | < 2 trades / zero variance       | 0.0    |

Percent fields (total/annualized return, drawdown, exposure) are in percent.
``win_rate`` is a fraction.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np

from strategylab.core.exceptions import InputError
from strategylab.core.time import month_key, month_label, seconds, span_months, span_years, utc_day
from strategylab.core.types import (
    Candle,
    ClosedTrade,
    DrawdownPoint,
    EquityPoint,
    MonthlyReturn,
    PerformanceMetrics,
    Statistics,
)

PERIODS_PER_YEAR = 252


@dataclass(frozen=True, slots=True)
class Analysis:
    metrics: PerformanceMetrics
    equity_curve: list[EquityPoint]
    drawdown_curve: list[DrawdownPoint]
    monthly_returns: list[MonthlyReturn]
    statistics: Statistics


def by_exit(trades: Sequence[ClosedTrade]) -> list[ClosedTrade]:
    return sorted(trades, key=lambda t: t.exit_time)


def build_equity_curve(
    trades: Sequence[ClosedTrade],
    initial_capital: float,
    start: datetime,
) -> list[EquityPoint]:
    """Initial point at ``start``, then one point per trade in exit order.

    Drawdown is measured from the running peak and clamped to [0, 100].
    """

    equity = float(initial_capital)
    peak = equity
    out = [EquityPoint(timestamp=start, equity=equity, drawdown_pct=0.0)]
    for t in trades:
        equity += t.pnl
        peak = max(peak, equity)
        dd = (peak - equity) / peak * 100.0 if peak > 0 else 0.0
        out.append(EquityPoint(timestamp=t.exit_time, equity=equity, drawdown_pct=min(max(dd, 0.0), 100.0)))
    return out


def max_drawdown(curve: Sequence[EquityPoint]) -> float:
    return max((p.drawdown_pct for p in curve), default=0.0)


def daily_returns(trades: Sequence[ClosedTrade], initial_capital: float) -> np.ndarray:
    """Per-UTC-day return: the day's summed pnl over equity at the start of the day."""

    equity = float(initial_capital)
    out: list[float] = []
    day = None
    day_start = equity
    day_pnl = 0.0
    for t in trades:
        d = utc_day(t.exit_time)
        if d != day:
            if day is not None:
                out.append(day_pnl / day_start if day_start > 0 else 0.0)
            day = d
            day_start = equity
            day_pnl = 0.0
        day_pnl += t.pnl
        equity += t.pnl
    if day is not None:
        out.append(day_pnl / day_start if day_start > 0 else 0.0)
    return np.array(out, dtype=np.float64)


def sharpe_ratio(returns: np.ndarray, *, periods_per_year: int = PERIODS_PER_YEAR) -> float:
    r = returns.astype(np.float64)
    if r.size < 1:
        return 0.0
    sd = float(np.std(r))
    if sd == 0.0:
        return 0.0
    mu = float(np.mean(r))
    return (mu * periods_per_year) / (sd * math.sqrt(periods_per_year))


def sortino_ratio(returns: np.ndarray, *, periods_per_year: int = PERIODS_PER_YEAR) -> float:
    r = returns.astype(np.float64)
    downside = r[r < 0]
    if downside.size == 0:
        return 0.0
    dsd = float(np.std(downside))
    if dsd == 0.0:
        return 0.0
    mu = float(np.mean(r))
    return (mu * periods_per_year) / (dsd * math.sqrt(periods_per_year))


def annualized_return(total_return_pct: float, years: float) -> float:
    if years <= 0:
        return 0.0
    growth = 1.0 + total_return_pct / 100.0
    if growth <= 0:
        return -100.0
    try:
        return (growth ** (1.0 / years) - 1.0) * 100.0
    except OverflowError:
        return math.inf


def profit_factor(trades: Sequence[ClosedTrade]) -> float:
    gross_win = sum(t.pnl for t in trades if t.is_win)
    gross_loss = abs(sum(t.pnl for t in trades if t.is_loss))
    if gross_loss > 0:
        return gross_win / gross_loss
    if gross_win > 0:
        return math.inf
    return 0.0


def consecutive_streaks(trades: Sequence[ClosedTrade]) -> tuple[int, int]:
    """(max wins in a row, max losses in a row). Break-even trades reset both."""

    best_w = best_l = cur_w = cur_l = 0
    for t in trades:
        if t.is_win:
            cur_w += 1
            cur_l = 0
        elif t.is_loss:
            cur_l += 1
            cur_w = 0
        else:
            cur_w = cur_l = 0
        best_w = max(best_w, cur_w)
        best_l = max(best_l, cur_l)
    return best_w, best_l


def pearson(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or len(a) < 2:
        return 0.0
    x = np.asarray(a, dtype=np.float64)
    y = np.asarray(b, dtype=np.float64)
    if float(np.std(x)) == 0.0 or float(np.std(y)) == 0.0:
        return 0.0
    r = float(np.corrcoef(x, y)[0, 1])
    return r if math.isfinite(r) else 0.0


def market_correlation(trades: Sequence[ClosedTrade], candles: Sequence[Candle]) -> float:
    """Correlation of trade returns with the market's close-to-close return over each trade.

    The market leg uses the last candle at or before entry and the last candle
    at or before exit.
    """

    if len(trades) < 2 or not candles:
        return 0.0
    timestamps = [c.timestamp for c in candles]
    trade_rets: list[float] = []
    market_rets: list[float] = []
    for t in trades:
        i = max(bisect_right(timestamps, t.entry_time) - 1, 0)
        j = max(bisect_right(timestamps, t.exit_time) - 1, 0)
        base = candles[i].close
        trade_rets.append(t.pnl_pct / 100.0)
        market_rets.append(candles[j].close / base - 1.0 if base != 0 else 0.0)
    return pearson(trade_rets, market_rets)


def monthly_returns(trades: Sequence[ClosedTrade], initial_capital: float) -> list[MonthlyReturn]:
    """P&L per calendar month of exit, chronological.

    ``return_pct`` is relative to equity at the start of that month.
    """

    equity = float(initial_capital)
    out: list[MonthlyReturn] = []
    key: tuple[int, int] | None = None
    start_eq = equity
    pnl = 0.0

    def flush() -> None:
        if key is None:
            return
        year, month = key
        pct = pnl / start_eq * 100.0 if start_eq > 0 else 0.0
        out.append(MonthlyReturn(year=year, month=month, label=month_label(month), pnl=pnl, return_pct=pct))

    for t in trades:
        k = month_key(t.exit_time)
        if k != key:
            flush()
            key = k
            start_eq = equity
            pnl = 0.0
        pnl += t.pnl
        equity += t.pnl
    flush()
    return out


class PerformanceAnalyzer:
    def __init__(self, periods_per_year: int = PERIODS_PER_YEAR) -> None:
        self.periods_per_year = int(periods_per_year)

    def analyze(
        self,
        trades: Sequence[ClosedTrade],
        initial_capital: float,
        candles: Sequence[Candle],
    ) -> Analysis:
        if not candles:
            raise InputError("cannot analyze without candles")
        if initial_capital <= 0:
            raise InputError("initial_capital must be > 0")

        ordered = by_exit(trades)
        first, last = candles[0].timestamp, candles[-1].timestamp
        span = seconds(last - first)

        curve = build_equity_curve(ordered, initial_capital, first)
        drawdowns = [DrawdownPoint(timestamp=p.timestamp, drawdown_pct=p.drawdown_pct) for p in curve]
        mdd = max_drawdown(curve)

        n = len(ordered)
        pnls = [t.pnl for t in ordered]
        wins = [p for p in pnls if p > 0]
        losses = [abs(p) for p in pnls if p < 0]
        total_pnl = float(sum(pnls))
        gross_win = float(sum(wins))

        total_return = total_pnl / initial_capital * 100.0
        ann = annualized_return(total_return, span_years(first, last))
        daily = daily_returns(ordered, initial_capital)
        months = span_months(first, last)

        avg_win = gross_win / len(wins) if wins else 0.0
        avg_loss = sum(losses) / len(losses) if losses else 0.0

        metrics = PerformanceMetrics(
            total_return=total_return,
            annualized_return=ann,
            sharpe_ratio=sharpe_ratio(daily, periods_per_year=self.periods_per_year),
            sortino_ratio=sortino_ratio(daily, periods_per_year=self.periods_per_year),
            max_drawdown=mdd,
            win_rate=len(wins) / n if n else 0.0,
            profit_factor=profit_factor(ordered),
            average_win=avg_win,
            average_loss=avg_loss,
            expectancy=total_pnl / n if n else 0.0,
            number_of_trades=n,
            average_trades_per_month=n / months if months > 0 else 0.0,
            total_pnl=total_pnl,
        )

        best_w, best_l = consecutive_streaks(ordered)
        holding = sum((t.holding_period for t in ordered), timedelta())
        stats = Statistics(
            calmar_ratio=ann / mdd if mdd > 0 else 0.0,
            recovery_factor=gross_win / mdd if mdd > 0 else 0.0,
            payoff_ratio=avg_win / avg_loss if losses and avg_loss > 0 else 0.0,
            max_consecutive_wins=best_w,
            max_consecutive_losses=best_l,
            largest_win=max(wins, default=0.0),
            largest_loss=min((p for p in pnls if p < 0), default=0.0),
            average_holding_period=holding / n if n else timedelta(),
            exposure_time=seconds(holding) / span * 100.0 if span > 0 else 0.0,
            market_correlation=market_correlation(ordered, candles),
        )

        return Analysis(
            metrics=metrics,
            equity_curve=curve,
            drawdown_curve=drawdowns,
            monthly_returns=monthly_returns(ordered, initial_capital),
            statistics=stats,
        )


def analyze(
    trades: Sequence[ClosedTrade],
    initial_capital: float,
    candles: Sequence[Candle],
    *,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> Analysis:
    return PerformanceAnalyzer(periods_per_year).analyze(trades, initial_capital, candles)
