"""strategylab.backtest

Backtest engine.

indicators -> signals -> simulator -> analyzer, wired together by ``engine``.
``sweep`` fans independent runs out over a pool; ``io`` reads candles from CSV
and turns results into JSON-ready dicts.
"""
