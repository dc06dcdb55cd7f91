"""strategylab.backtest.engine

Backtest entry point.

One run, four stages:
- validate the request (bad inputs fail here, before any work)
- the signal generator turns (strategy, candles) into entry signals
- the simulator turns signals + candles into closed trades
- the analyzer turns trades into metrics, curves and statistics

Collaborators are injected so tests can swap any stage. A run holds no state
between calls: the same request always yields an equal result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from strategylab.backtest.analyzer import PerformanceAnalyzer
from strategylab.backtest.signals import SignalGenerator
from strategylab.backtest.simulator import SimulationParams, TradeSimulator
from strategylab.backtest.strategies.base import StrategyDefinition
from strategylab.core.exceptions import InputError
from strategylab.core.time import ensure_utc, utc_now
from strategylab.core.types import (
    Candle,
    ClosedTrade,
    DrawdownPoint,
    EquityPoint,
    MonthlyReturn,
    PerformanceMetrics,
    SimulationDiagnostics,
    Statistics,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

STAGES: tuple[tuple[str, float], ...] = (
    ("validated", 0.1),
    ("signals", 0.4),
    ("simulated", 0.8),
    ("analyzed", 1.0),
)
_STAGE_FRACTION = dict(STAGES)


@dataclass(frozen=True, slots=True)
class BacktestRequest:
    strategy: StrategyDefinition
    candles: Sequence[Candle]
    symbol: str = ""
    initial_capital: float = 10_000.0
    risk_per_trade: float = 0.02
    commission: float = 0.001
    spread: float = 0.0001
    close_open_positions: bool = False

    def params(self) -> SimulationParams:
        return SimulationParams(
            initial_capital=self.initial_capital,
            risk_per_trade=self.risk_per_trade,
            commission=self.commission,
            spread=self.spread,
            close_open_positions=self.close_open_positions,
        )


@dataclass(frozen=True, slots=True)
class BacktestResult:
    strategy: str
    symbol: str
    metrics: PerformanceMetrics
    trades: list[ClosedTrade]
    equity_curve: list[EquityPoint]
    drawdown_curve: list[DrawdownPoint]
    monthly_returns: list[MonthlyReturn]
    statistics: Statistics
    diagnostics: SimulationDiagnostics
    created_at: datetime = field(default_factory=utc_now, compare=False)


def validate_request(req: BacktestRequest) -> None:
    """Raise ``InputError`` for any request that cannot be simulated."""

    if not req.candles:
        raise InputError("candles must not be empty")
    prev = ensure_utc(req.candles[0].timestamp)
    for i in range(1, len(req.candles)):
        ts = ensure_utc(req.candles[i].timestamp)
        if ts <= prev:
            raise InputError(f"candle timestamps must be strictly increasing (index {i}: {ts.isoformat()})")
        prev = ts
    if not req.initial_capital > 0:
        raise InputError("initial_capital must be > 0")
    if not 0.0 < req.risk_per_trade <= 1.0:
        raise InputError("risk_per_trade must be in (0, 1]")
    if not req.commission >= 0:
        raise InputError("commission must be >= 0")
    if not req.spread >= 0:
        raise InputError("spread must be >= 0")


def _utc_candles(candles: Sequence[Candle]) -> list[Candle]:
    # naive timestamps are read as UTC
    return [c if c.timestamp.tzinfo is UTC else replace(c, timestamp=ensure_utc(c.timestamp)) for c in candles]


class BacktestEngine:
    def __init__(
        self,
        *,
        signal_generator: SignalGenerator | None = None,
        simulator: TradeSimulator | None = None,
        analyzer: PerformanceAnalyzer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.signal_generator = signal_generator or SignalGenerator()
        self.simulator = simulator or TradeSimulator()
        self.analyzer = analyzer or PerformanceAnalyzer()
        self.clock = clock

    def run(self, request: BacktestRequest, *, progress: ProgressCallback | None = None) -> BacktestResult:
        def report(stage: str) -> None:
            if progress is not None:
                progress(_STAGE_FRACTION[stage], stage)

        validate_request(request)
        report("validated")

        candles = _utc_candles(request.candles)
        signals = self.signal_generator.generate(request.strategy, candles)
        report("signals")

        sim = self.simulator.simulate(signals, candles, request.params(), symbol=request.symbol)
        report("simulated")

        analysis = self.analyzer.analyze(sim.trades, request.initial_capital, candles)
        report("analyzed")

        diagnostics = SimulationDiagnostics(
            signals_generated=len(signals),
            signals_accepted=sim.signals_accepted,
            skipped_signals=sim.skipped_signals,
            degenerate_signals=sim.degenerate_signals,
            unterminated_positions=sim.unterminated_positions,
        )
        logger.info(
            "backtest_completed",
            extra={
                "strategy": request.strategy.name,
                "symbol": request.symbol,
                "candles": len(candles),
                "signals": len(signals),
                "trades": len(sim.trades),
                "total_return": analysis.metrics.total_return,
            },
        )

        return BacktestResult(
            strategy=request.strategy.name,
            symbol=request.symbol,
            metrics=analysis.metrics,
            trades=sim.trades,
            equity_curve=analysis.equity_curve,
            drawdown_curve=analysis.drawdown_curve,
            monthly_returns=analysis.monthly_returns,
            statistics=analysis.statistics,
            diagnostics=diagnostics,
            created_at=self.clock(),
        )


def run_backtest(
    request: BacktestRequest,
    *,
    progress: ProgressCallback | None = None,
    engine: BacktestEngine | None = None,
) -> BacktestResult:
    engine = engine or BacktestEngine()
    return engine.run(request, progress=progress)
