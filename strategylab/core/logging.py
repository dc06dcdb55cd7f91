"""strategylab.core.logging

Stdlib logging, configured once.

Modules log snake_case event names and put context in ``extra``:

    logger.info("backtest_completed", extra={"trades": 12})

Plain output appends those extras as ``key=value`` pairs; JSON output
(python-json-logger) lifts them into the emitted object.
"""

from __future__ import annotations

import logging
from typing import Any

from pythonjsonlogger.json import JsonFormatter as _BaseJsonFormatter

from strategylab.core.config import LoggingConfig

_HANDLER_NAME = "strategylab"

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}


class JsonFormatter(_BaseJsonFormatter):
    """One JSON object per line: ts, level, logger, event, plus extras."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            rename_fields={"asctime": "ts", "levelname": "level", "name": "logger", "message": "event"},
        )


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extras(record)
        if not extras:
            return base
        kv = " ".join(f"{k}={extras[k]}" for k in sorted(extras))
        return f"{base} {kv}"


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Install a single stream handler on the ``strategylab`` logger.

    Calling this again replaces the handler instead of stacking a new one.
    """

    cfg = cfg or LoggingConfig()
    root = logging.getLogger("strategylab")
    root.setLevel(cfg.level.upper())

    for h in list(root.handlers):
        if h.get_name() == _HANDLER_NAME:
            root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if cfg.json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(KeyValueFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    return root
