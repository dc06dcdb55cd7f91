from __future__ import annotations

import time

import pytest

from strategylab.backtest.engine import BacktestRequest, run_backtest
from strategylab.backtest.strategies import ema_crossover, rsi_bollinger, rsi_oversold
from strategylab.backtest import sweep
from strategylab.backtest.sweep import compare_strategies, metric_value, parameter_grid, run_many, run_sweep
from strategylab.core.exceptions import InputError, StrategyError


def test_parameter_grid_cartesian_in_key_order():
    grid = parameter_grid({"a": [1, 2], "b": ["x", "y"]})
    assert grid == [
        {"a": 1, "b": "x"},
        {"a": 1, "b": "y"},
        {"a": 2, "b": "x"},
        {"a": 2, "b": "y"},
    ]


def test_parameter_grid_empty():
    assert parameter_grid({}) == [{}]


def test_sweep_matches_individual_runs(candles):
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles, symbol="EURUSD")
    grid = {"risk.stop_loss_pct": [0.5, 1.0], "indicators.rsi_period": [10, 14]}
    res = run_sweep(base, grid, max_workers=2, executor="thread")

    assert [it.params for it in res.items] == parameter_grid(grid)
    for it in res.items:
        direct = run_backtest(
            BacktestRequest(strategy=rsi_oversold().with_params(it.params), candles=candles, symbol="EURUSD")
        )
        assert it.result == direct


def test_sweep_bad_path_fails_before_running(candles):
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    with pytest.raises(StrategyError):
        run_sweep(base, {"risk.leverage": [2, 3]}, executor="thread")


def test_ranked_and_best(candles):
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    res = run_sweep(base, {"risk.take_profit_pct": [1.0, 2.0, 3.0]}, executor="thread")

    ranked = res.ranked("total_return")
    values = [it.result.metrics.total_return for it in ranked]
    assert values == sorted(values, reverse=True)
    assert res.best("total_return") == ranked[0]

    asc = res.ranked("max_drawdown", descending=False)
    dds = [it.result.metrics.max_drawdown for it in asc]
    assert dds == sorted(dds)


def test_metric_value_falls_back_to_statistics(candles):
    r = run_backtest(BacktestRequest(strategy=rsi_oversold(), candles=candles))
    assert metric_value(r, "calmar_ratio") == r.statistics.calmar_ratio
    assert metric_value(r, "average_holding_period") == r.statistics.average_holding_period.total_seconds()
    with pytest.raises(InputError):
        metric_value(r, "alpha")


def test_compare_strategies_keeps_input_order(candles):
    strategies = [rsi_bollinger(), rsi_oversold(), ema_crossover(fast=5, slow=20)]
    results = compare_strategies(strategies, candles=candles, symbol="EURUSD")
    assert [r.strategy for r in results] == ["rsi_bollinger", "rsi_oversold", "ema_crossover"]
    assert all(r.symbol == "EURUSD" for r in results)
    assert results[0].equity_curve[0].equity == 10_000.0


def test_unknown_executor(candles):
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    with pytest.raises(InputError):
        run_sweep(base, {"confidence": [0.5]}, executor="cluster")  # type: ignore[arg-type]


def test_process_pool_matches_thread_pool(candles):
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles, symbol="EURUSD")
    grid = {"risk.stop_loss_pct": [0.5, 1.0]}
    threaded = run_sweep(base, grid, max_workers=2, executor="thread")
    forked = run_sweep(base, grid, max_workers=2, executor="process")

    assert [it.params for it in forked.items] == [it.params for it in threaded.items]
    assert [it.result for it in forked.items] == [it.result for it in threaded.items]


def _slow_run_one(delay: float):
    real = sweep._run_one

    def run(request, periods_per_year):
        time.sleep(delay)
        return real(request, periods_per_year)

    return run


def test_sweep_timeout_raises(candles, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(sweep, "_run_one", _slow_run_one(0.5))
    base = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    with pytest.raises(TimeoutError):
        run_sweep(base, {"risk.stop_loss_pct": [0.5, 1.0]}, max_workers=1, executor="thread", timeout=0.05)


def test_timeout_bounds_whole_gather(candles, monkeypatch: pytest.MonkeyPatch):
    # each run fits inside the timeout on its own; three in series do not
    monkeypatch.setattr(sweep, "_run_one", _slow_run_one(0.4))
    req = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    with pytest.raises(TimeoutError):
        run_many([req, req, req], max_workers=1, executor="thread", timeout=0.6)


def test_no_timeout_waits_for_every_result(candles, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(sweep, "_run_one", _slow_run_one(0.05))
    req = BacktestRequest(strategy=rsi_oversold(), candles=candles)
    assert len(run_many([req, req], max_workers=1, executor="thread")) == 2
