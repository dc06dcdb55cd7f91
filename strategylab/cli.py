"""strategylab.cli

Command line interface entry point for strategylab.

Design constraints:
- argparse-based.
- Lazy imports: do not import numpy or pydantic at parse time.
- Bad inputs print ``error: ...`` to stderr and exit 2.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from strategylab.backtest.engine import BacktestResult
    from strategylab.backtest.strategies.base import StrategyDefinition
    from strategylab.core.config import Config


@dataclass(frozen=True)
class CliContext:
    repo_root: Path


def _repo_root_from_cwd() -> Path:
    return Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strategylab",
        description="Deterministic strategy backtesting and performance analytics.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("strategies", help="List built-in strategies")

    p_bt = sub.add_parser("backtest", help="Backtest one strategy over a candle CSV")
    p_bt.add_argument("csv", type=Path, help="Candle CSV (timestamp, open, high, low, close[, volume])")
    _add_strategy_args(p_bt)
    _add_simulation_args(p_bt)
    p_bt.add_argument("--json", action="store_true", help="Print the full result as JSON.")

    p_sw = sub.add_parser("sweep", help="Sweep strategy parameters over a candle CSV")
    p_sw.add_argument("csv", type=Path, help="Candle CSV (timestamp, open, high, low, close[, volume])")
    p_sw.add_argument(
        "--grid",
        action="append",
        default=[],
        metavar="KEY=V1,V2",
        help="Dotted strategy parameter and its values; repeat for more axes.",
    )
    _add_strategy_args(p_sw)
    _add_simulation_args(p_sw)
    p_sw.add_argument("--rank-by", default="sharpe_ratio", help="Metric or statistic to rank by.")
    p_sw.add_argument("--top", type=int, default=5, help="Rows to print.")
    p_sw.add_argument("--workers", type=int, default=None)
    p_sw.add_argument("--executor", choices=["thread", "process"], default=None)

    return parser


def _add_strategy_args(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group()
    g.add_argument("--strategy", default=None, help="Built-in strategy name.")
    g.add_argument("--strategy-file", type=Path, default=None, help="YAML strategy definition.")
    p.add_argument("--symbol", default=None)
    p.add_argument("--config", type=Path, default=None, help="Config YAML (default: config/default.yaml).")


def _add_simulation_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--capital", type=float, default=None)
    p.add_argument("--risk", type=float, default=None, help="Fraction of capital risked per trade.")
    p.add_argument("--commission", type=float, default=None)
    p.add_argument("--spread", type=float, default=None)
    p.add_argument("--close-open", action="store_true", help="Close positions still open at the last candle.")


def _print_version() -> None:
    from strategylab import __version__

    print(f"strategylab v{__version__}")


def _load_config(ctx: CliContext, args: argparse.Namespace) -> Config:
    from pydantic import ValidationError

    from strategylab.core.config import Config
    from strategylab.core.exceptions import ConfigError
    from strategylab.core.logging import configure_logging

    path = getattr(args, "config", None)
    default = ctx.repo_root / "config" / "default.yaml"
    if path is not None:
        config = Config.from_yaml(path)
    elif default.exists():
        config = Config.from_yaml(default)
    else:
        try:
            config = Config()
        except ValidationError as e:
            raise ConfigError(f"Invalid config: {e}") from e
    configure_logging(config.logging)
    return config


def _load_strategy(args: argparse.Namespace, config: Config) -> StrategyDefinition:
    import yaml

    from strategylab.backtest.strategies import builtin_strategy, load_strategy
    from strategylab.core.exceptions import StrategyError

    if args.strategy_file is not None:
        p: Path = args.strategy_file
        if not p.exists():
            raise StrategyError(f"strategy file not found: {p}")
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise StrategyError(f"strategy file is not valid YAML: {p}") from e
        if not isinstance(raw, dict):
            raise StrategyError(f"strategy file must contain a mapping: {p}")
        return load_strategy(raw)
    return builtin_strategy(args.strategy or config.strategy)


def _build_request(args: argparse.Namespace, config: Config, strategy: StrategyDefinition):
    from strategylab.backtest.engine import BacktestRequest
    from strategylab.backtest.io import load_candles_csv

    sim = config.simulation

    def pick(cli_value: Any, default: Any) -> Any:
        return default if cli_value is None else cli_value

    return BacktestRequest(
        strategy=strategy,
        candles=load_candles_csv(args.csv),
        symbol=pick(args.symbol, config.symbol),
        initial_capital=pick(args.capital, sim.initial_capital),
        risk_per_trade=pick(args.risk, sim.risk_per_trade),
        commission=pick(args.commission, sim.commission),
        spread=pick(args.spread, sim.spread),
        close_open_positions=bool(args.close_open or sim.close_open_positions),
    )


def _fmt(v: float) -> str:
    return f"{v:.4f}" if v == v and abs(v) != float("inf") else str(v)


def _print_summary(result: BacktestResult) -> None:
    m = result.metrics
    s = result.statistics
    d = result.diagnostics
    print(f"strategy: {result.strategy}  symbol: {result.symbol}")
    print(f"- trades: {m.number_of_trades} (signals {d.signals_generated}, skipped {d.skipped_signals})")
    print(f"- total_return: {_fmt(m.total_return)}%  annualized: {_fmt(m.annualized_return)}%")
    print(f"- sharpe: {_fmt(m.sharpe_ratio)}  sortino: {_fmt(m.sortino_ratio)}")
    print(f"- max_drawdown: {_fmt(m.max_drawdown)}%  calmar: {_fmt(s.calmar_ratio)}")
    print(f"- win_rate: {_fmt(m.win_rate)}  profit_factor: {_fmt(m.profit_factor)}")
    print(f"- expectancy: {_fmt(m.expectancy)}  exposure: {_fmt(s.exposure_time)}%")
    if d.degenerate_signals or d.unterminated_positions:
        print(f"- degenerate_signals: {d.degenerate_signals}  unterminated_positions: {d.unterminated_positions}")


def _cmd_strategies(ctx: CliContext, args: argparse.Namespace) -> int:
    from strategylab.backtest.strategies import BUILTIN_STRATEGIES

    for name in sorted(BUILTIN_STRATEGIES):
        s = BUILTIN_STRATEGIES[name]()
        print(f"{name}: {s.description}")
    return 0


def _cmd_backtest(ctx: CliContext, args: argparse.Namespace) -> int:
    import json

    from strategylab.backtest.analyzer import PerformanceAnalyzer
    from strategylab.backtest.engine import BacktestEngine
    from strategylab.backtest.io import result_to_dict

    config = _load_config(ctx, args)
    strategy = _load_strategy(args, config)
    engine = BacktestEngine(analyzer=PerformanceAnalyzer(config.analytics.periods_per_year))
    result = engine.run(_build_request(args, config, strategy))

    if args.json:
        print(json.dumps(result_to_dict(result), indent=2, sort_keys=True))
    else:
        _print_summary(result)
    return 0


def _parse_grid(items: list[str]) -> dict[str, list[Any]]:
    import yaml

    from strategylab.core.exceptions import InputError

    grid: dict[str, list[Any]] = {}
    for item in items:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip() or not raw.strip():
            raise InputError(f"bad --grid value (want KEY=V1,V2): {item}")
        grid[key.strip()] = [yaml.safe_load(v.strip()) for v in raw.split(",") if v.strip()]
    return grid


def _cmd_sweep(ctx: CliContext, args: argparse.Namespace) -> int:
    from strategylab.backtest.sweep import metric_value, run_sweep
    from strategylab.core.exceptions import InputError

    config = _load_config(ctx, args)
    grid = _parse_grid(args.grid)
    if not grid:
        raise InputError("sweep needs at least one --grid KEY=V1,V2")
    strategy = _load_strategy(args, config)
    base = _build_request(args, config, strategy)

    result = run_sweep(
        base,
        grid,
        max_workers=args.workers if args.workers is not None else config.sweep.max_workers,
        executor=args.executor or config.sweep.executor,
        periods_per_year=config.analytics.periods_per_year,
    )

    print(f"sweep: {strategy.name} ({len(result.items)} points, ranked by {args.rank_by})")
    for item in result.ranked(args.rank_by)[: max(args.top, 0)]:
        params = " ".join(f"{k}={v}" for k, v in item.params.items())
        score = _fmt(metric_value(item.result, args.rank_by))
        print(f"- {args.rank_by}={score} trades={item.result.metrics.number_of_trades} {params}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    ctx = CliContext(repo_root=_repo_root_from_cwd())

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "strategies": _cmd_strategies,
        "backtest": _cmd_backtest,
        "sweep": _cmd_sweep,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    from strategylab.core.exceptions import StrategyLabError

    try:
        return int(fn(ctx, args))
    except StrategyLabError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
