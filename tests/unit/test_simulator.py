from __future__ import annotations

from datetime import timedelta

import pytest

from strategylab.backtest.simulator import SimulationParams, TradeSimulator, simulate
from strategylab.core.exceptions import InputError
from strategylab.core.types import Direction, ExitReason, Signal, TradeSide
from tests.unit._candles import bar, ts

PARAMS = SimulationParams(initial_capital=10_000.0, risk_per_trade=0.02, commission=0.001)


def buy(i: int, price: float = 100.0, stop: float = 99.0, target: float = 102.0) -> Signal:
    return Signal(timestamp=ts(i), direction=Direction.BUY, price=price, stop_loss=stop, take_profit=target)


def sell(i: int, price: float = 100.0, stop: float = 101.0, target: float = 98.0) -> Signal:
    return Signal(timestamp=ts(i), direction=Direction.SELL, price=price, stop_loss=stop, take_profit=target)


def test_long_take_profit():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 101.0, 99.5, 100.5),
        bar(2, 100.5, 102.5, 100.5, 102.2),
    ]
    res = simulate([buy(0)], candles, PARAMS, symbol="EURUSD")

    assert len(res.trades) == 1
    t = res.trades[0]
    assert t.side == TradeSide.LONG
    assert t.symbol == "EURUSD"
    assert t.exit_reason == ExitReason.TAKE_PROFIT
    assert t.exit_price == 102.0
    assert t.exit_time == ts(2)
    # size = 10000 * 0.02 / 1.0
    assert t.size == pytest.approx(200.0)
    assert t.gross_pnl == pytest.approx(400.0)
    assert t.commission == pytest.approx(0.4)
    assert t.pnl == pytest.approx(399.6)
    assert t.pnl_pct == pytest.approx(399.6 / 20_000.0 * 100.0)
    assert t.holding_period == timedelta(hours=2)
    assert t.mae == pytest.approx(-100.0)
    assert t.mfe == pytest.approx(500.0)
    assert res.final_capital == pytest.approx(10_399.6)


def test_same_bar_stop_and_target_resolves_to_stop():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 102.5, 98.5, 100.0),
    ]
    res = simulate([buy(0)], candles, PARAMS)
    t = res.trades[0]
    assert t.exit_reason == ExitReason.STOP_LOSS
    assert t.exit_price == 99.0
    assert t.pnl == pytest.approx(-200.4)


def test_short_take_profit_and_excursions():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 100.5, 97.5, 98.0),
    ]
    res = simulate([sell(0)], candles, PARAMS)
    t = res.trades[0]
    assert t.side == TradeSide.SHORT
    assert t.exit_reason == ExitReason.TAKE_PROFIT
    assert t.gross_pnl == pytest.approx(400.0)
    assert t.mae == pytest.approx(-100.0)
    assert t.mfe == pytest.approx(500.0)


def test_short_stop_loss():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 101.5, 99.0, 101.0),
    ]
    t = simulate([sell(0)], candles, PARAMS).trades[0]
    assert t.exit_reason == ExitReason.STOP_LOSS
    assert t.exit_price == 101.0
    assert t.gross_pnl == pytest.approx(-200.0)


def test_signal_while_position_open_is_skipped():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 100.5, 99.5, 100.0),
        bar(2, 100.0, 102.5, 100.0, 102.0),
        bar(3, 102.0, 102.0, 100.0, 101.0),
    ]
    # the signal at bar 2 lands on the exit bar of the first trade: accepted
    signals = [buy(0), buy(1), buy(2, price=102.0, stop=100.5, target=110.0)]
    res = simulate(signals, candles, PARAMS)
    assert res.signals_received == 3
    assert res.signals_accepted == 2
    assert res.skipped_signals == 1
    assert len(res.trades) == 2
    first, second = res.trades
    assert second.entry_time >= first.exit_time
    assert second.exit_reason == ExitReason.STOP_LOSS


def test_degenerate_stop_is_counted_not_raised():
    candles = [bar(0, 100.0, 100.0, 100.0, 100.0), bar(1, 100.0, 105.0, 95.0, 100.0)]
    res = simulate([buy(0, stop=100.0)], candles, PARAMS)
    assert res.trades == []
    assert res.degenerate_signals == 1
    assert res.signals_accepted == 0


def test_unterminated_position_is_dropped_and_blocks_later_signals():
    candles = [bar(i, 100.0, 100.2, 99.8, 100.0) for i in range(5)]
    res = simulate([buy(0), buy(3)], candles, PARAMS)
    assert res.trades == []
    assert res.unterminated_positions == 1
    assert res.signals_accepted == 1
    assert res.skipped_signals == 1
    assert res.final_capital == PARAMS.initial_capital


def test_close_open_positions_marks_to_last_close():
    candles = [bar(i, 100.0, 100.2, 99.8, 100.0 + 0.1 * i) for i in range(5)]
    params = SimulationParams(commission=0.0, close_open_positions=True)
    res = simulate([buy(0)], candles, params)
    assert res.unterminated_positions == 0
    t = res.trades[0]
    assert t.exit_reason == ExitReason.END_OF_DATA
    assert t.exit_time == candles[-1].timestamp
    assert t.exit_price == pytest.approx(100.4)
    assert t.pnl == pytest.approx(0.4 * t.size)


def test_position_size_compounds_on_current_capital():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 102.5, 100.0, 102.0),
        bar(2, 102.0, 102.0, 102.0, 102.0),
        bar(3, 102.0, 104.5, 102.0, 104.0),
    ]
    params = SimulationParams(initial_capital=10_000.0, risk_per_trade=0.01, commission=0.0)
    res = simulate([buy(0), buy(2, price=102.0, stop=101.0, target=104.0)], candles, params)
    first, second = res.trades
    assert first.size == pytest.approx(100.0)
    assert second.size == pytest.approx((10_000.0 + first.pnl) * 0.01)


def test_signals_processed_in_time_order():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 102.5, 100.0, 102.0),
        bar(2, 102.0, 102.0, 102.0, 102.0),
        bar(3, 102.0, 104.5, 102.0, 104.0),
    ]
    signals = [buy(2, price=102.0, stop=101.0, target=104.0), buy(0)]
    res = TradeSimulator().simulate(signals, candles, PARAMS)
    assert [t.entry_time for t in res.trades] == [ts(0), ts(2)]


def test_wiped_out_capital_skips_later_signals():
    candles = [
        bar(0, 100.0, 100.0, 100.0, 100.0),
        bar(1, 100.0, 100.0, 98.5, 99.0),
        bar(2, 99.0, 99.0, 99.0, 99.0),
        bar(3, 99.0, 101.5, 99.0, 101.0),
    ]
    params = SimulationParams(initial_capital=10_000.0, risk_per_trade=1.0, commission=0.001)
    res = simulate([buy(0), buy(2, price=99.0, stop=98.0, target=101.0)], candles, params)

    # full-risk stop plus fees leaves capital below zero
    assert len(res.trades) == 1
    assert res.final_capital == pytest.approx(-20.0)
    assert res.signals_accepted == 1
    assert res.skipped_signals == 1


def test_no_signals_no_trades():
    candles = [bar(0, 100.0, 100.0, 100.0, 100.0)]
    res = simulate([], candles, PARAMS)
    assert res.trades == []
    assert res.final_capital == PARAMS.initial_capital


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_capital": 0.0},
        {"risk_per_trade": 0.0},
        {"risk_per_trade": 1.5},
        {"commission": -0.1},
        {"spread": -0.1},
        {"commission": float("nan")},
        {"spread": float("nan")},
        {"initial_capital": float("nan")},
    ],
)
def test_invalid_params_rejected(kwargs):
    with pytest.raises(InputError):
        SimulationParams(**kwargs)
