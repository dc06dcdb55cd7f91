"""strategylab.backtest.sweep

Parameter sweep and strategy comparison harness.

Every grid point is an independent backtest, so points fan out over a
``concurrent.futures`` pool. Results come back in submission order whatever
order the workers finish in.

Grid keys are dotted strategy paths (``risk.stop_loss_pct``,
``indicators.rsi_period``, ``confidence``). Bad paths fail before anything is
submitted.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Literal

from strategylab.backtest.analyzer import PERIODS_PER_YEAR, PerformanceAnalyzer
from strategylab.backtest.engine import BacktestEngine, BacktestRequest, BacktestResult
from strategylab.backtest.strategies.base import StrategyDefinition
from strategylab.core.exceptions import InputError
from strategylab.core.types import Candle

logger = logging.getLogger(__name__)

ExecutorKind = Literal["thread", "process"]


def parameter_grid(grid: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Cartesian product of ``grid`` values, in key order.

    ``{"a": [1, 2], "b": [3]}`` -> ``[{"a": 1, "b": 3}, {"a": 2, "b": 3}]``.
    An empty grid yields a single empty point.
    """

    keys = list(grid)
    return [dict(zip(keys, combo)) for combo in itertools.product(*(list(grid[k]) for k in keys))]


def metric_value(result: BacktestResult, key: str) -> float:
    """Look ``key`` up on the result's metrics, then its statistics."""

    for source in (result.metrics, result.statistics):
        if hasattr(source, key):
            v = getattr(source, key)
            if isinstance(v, timedelta):
                return v.total_seconds()
            return float(v)
    raise InputError(f"unknown ranking key: {key}")


@dataclass(frozen=True, slots=True)
class SweepItem:
    params: dict[str, Any]
    result: BacktestResult


@dataclass(frozen=True, slots=True)
class SweepResult:
    items: list[SweepItem]

    def ranked(self, key: str = "sharpe_ratio", *, descending: bool = True) -> list[SweepItem]:
        return sorted(self.items, key=lambda it: metric_value(it.result, key), reverse=descending)

    def best(self, key: str = "sharpe_ratio", *, descending: bool = True) -> SweepItem | None:
        ranked = self.ranked(key, descending=descending)
        return ranked[0] if ranked else None


def _run_one(request: BacktestRequest, periods_per_year: int) -> BacktestResult:
    engine = BacktestEngine(analyzer=PerformanceAnalyzer(periods_per_year))
    return engine.run(request)


def _make_pool(kind: ExecutorKind, max_workers: int | None) -> Executor:
    if kind == "thread":
        return ThreadPoolExecutor(max_workers=max_workers)
    if kind == "process":
        return ProcessPoolExecutor(max_workers=max_workers)
    raise InputError(f"unknown executor: {kind}")


def run_many(
    requests: Iterable[BacktestRequest],
    *,
    max_workers: int | None = None,
    executor: ExecutorKind = "thread",
    timeout: float | None = None,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> list[BacktestResult]:
    """Run independent backtests concurrently; results in submission order.

    ``timeout`` bounds the whole gather, not each result; on expiry
    ``TimeoutError`` propagates and queued runs are cancelled.
    """

    reqs = list(requests)
    if not reqs:
        return []
    pool = _make_pool(executor, max_workers)
    try:
        deadline = None if timeout is None else time.monotonic() + timeout
        futures = [pool.submit(_run_one, r, periods_per_year) for r in reqs]
        out: list[BacktestResult] = []
        for f in futures:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            out.append(f.result(timeout=remaining))
        return out
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def run_sweep(
    base: BacktestRequest,
    grid: Mapping[str, Sequence[Any]],
    *,
    max_workers: int | None = None,
    executor: ExecutorKind = "thread",
    timeout: float | None = None,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> SweepResult:
    points = parameter_grid(grid)
    # with_params validates every path before any work is submitted
    requests = [replace(base, strategy=base.strategy.with_params(p)) for p in points]

    logger.info(
        "sweep_started",
        extra={"strategy": base.strategy.name, "points": len(points), "executor": executor},
    )
    results = run_many(
        requests,
        max_workers=max_workers,
        executor=executor,
        timeout=timeout,
        periods_per_year=periods_per_year,
    )
    logger.info("sweep_completed", extra={"strategy": base.strategy.name, "points": len(results)})

    return SweepResult(items=[SweepItem(params=p, result=r) for p, r in zip(points, results)])


def compare_strategies(
    strategies: Sequence[StrategyDefinition],
    *,
    candles: Sequence[Candle],
    symbol: str = "",
    initial_capital: float = 10_000.0,
    risk_per_trade: float = 0.02,
    commission: float = 0.001,
    spread: float = 0.0001,
    max_workers: int | None = None,
    executor: ExecutorKind = "thread",
    periods_per_year: int = PERIODS_PER_YEAR,
) -> list[BacktestResult]:
    """Backtest several strategies over the same candles and parameters."""

    requests = [
        BacktestRequest(
            strategy=s,
            candles=candles,
            symbol=symbol,
            initial_capital=initial_capital,
            risk_per_trade=risk_per_trade,
            commission=commission,
            spread=spread,
        )
        for s in strategies
    ]
    return run_many(requests, max_workers=max_workers, executor=executor, periods_per_year=periods_per_year)
