from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from strategylab.core.config import Config  # noqa: E402
from strategylab.core.types import Candle  # noqa: E402
from tests.unit._candles import wave_candles  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Config loaded from a private copy of the repo defaults."""

    cfg_src = REPO_ROOT / "config" / "default.yaml"
    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(cfg_src, cfg_dst_dir / "default.yaml")
    return Config.from_yaml(cfg_dst_dir / "default.yaml")


@pytest.fixture()
def candles() -> list[Candle]:
    return wave_candles(100)
