"""strategylab.core.config

Two config surfaces only:
1) `config/default.yaml`
2) Environment variables (`STRATEGYLAB_` prefix, `__` for nesting)

Everything else is derived. Per-run values passed explicitly to the engine
always win over configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from strategylab.core.exceptions import ConfigError

if TYPE_CHECKING:
    from strategylab.backtest.simulator import SimulationParams


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class SimulationConfig(BaseModel):
    initial_capital: float = 10_000.0
    risk_per_trade: float = 0.02
    commission: float = 0.001  # per unit, per side
    spread: float = 0.0001  # informational
    close_open_positions: bool = False

    @field_validator("initial_capital")
    @classmethod
    def capital_must_be_positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("initial_capital must be > 0")
        return v

    @field_validator("risk_per_trade")
    @classmethod
    def risk_must_be_fraction(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("risk_per_trade must be in (0, 1]")
        return v

    @field_validator("commission", "spread")
    @classmethod
    def costs_cannot_be_negative(cls, v: float) -> float:
        if not v >= 0:
            raise ValueError("costs must be >= 0")
        return v

    def to_params(self) -> SimulationParams:
        from strategylab.backtest.simulator import SimulationParams

        return SimulationParams(
            initial_capital=self.initial_capital,
            risk_per_trade=self.risk_per_trade,
            commission=self.commission,
            spread=self.spread,
            close_open_positions=self.close_open_positions,
        )


class AnalyticsConfig(BaseModel):
    periods_per_year: int = 252

    @field_validator("periods_per_year")
    @classmethod
    def periods_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("periods_per_year must be >= 1")
        return v


class SweepConfig(BaseModel):
    max_workers: int | None = None
    executor: Literal["thread", "process"] = "process"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        name = v.strip().upper()
        if name not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return name


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    config_dir: Path = Path("config")

    # Built-in strategy used when none is given explicitly.
    strategy: str = "rsi_bollinger"
    symbol: str = "EURUSD"

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "STRATEGYLAB_", "env_nested_delimiter": "__"}

    @classmethod
    def from_yaml(cls, path: Path, *, overrides: dict[str, Any] | None = None) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file is not valid YAML: {path}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")

        if overrides:
            raw = _deep_merge(raw, overrides)
        raw.setdefault("config_dir", path.parent)
        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid config in {path}: {e}") from e

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")
