from __future__ import annotations

import pytest

from strategylab.core.exceptions import ConfigError, InputError, StrategyError, StrategyLabError


@pytest.mark.parametrize("exc", [ConfigError, InputError, StrategyError])
def test_all_errors_share_a_root(exc):
    assert issubclass(exc, StrategyLabError)


def test_strategy_error_is_an_input_error():
    assert issubclass(StrategyError, InputError)
    assert not issubclass(ConfigError, InputError)


def test_message_preserved():
    with pytest.raises(StrategyLabError, match="boom"):
        raise InputError("boom")
