"""
Tests for environment configuration loading and validation.
"""

from decimal import Decimal

import pytest

from bandbot.config import Config
from bandbot.exceptions import ConfigurationError

ENV_KEYS = [
    "RPC_URL", "WALLET_PRIVATE_KEY", "POOL_ADDRESS", "SWAP_ROUTER_ADDRESS",
    "BASE_TOKEN_ADDRESS", "QUOTE_TOKEN_ADDRESS", "QUOTE_IS_TOKEN1", "POOL_FEE",
    "TRADE_AMOUNT", "MA_PERIOD", "SMA_OFFSET_PCT", "TAKE_PROFIT_PCT",
    "MAX_TAKE_PROFIT_COUNT", "CYCLE_SECONDS", "STOP_LOSS_REVERSAL",
    "REENTRY_GATING", "STOP_LOSS_FIRST", "DRY_RUN", "GAS_LIMIT", "GAS_PRICE_GWEI",
    "RPC_TIMEOUT", "RPC_MAX_RETRIES", "TX_TIMEOUT", "LOG_LEVEL", "LOG_FILE_PATH",
    "ENABLE_LOG_ROTATION", "MAX_LOG_SIZE_MB", "LOG_BACKUP_COUNT",
]

VALID_ENV = {
    "RPC_URL": "http://localhost:8545",
    "WALLET_PRIVATE_KEY": "ab" * 32,
    "POOL_ADDRESS": "0x" + "1" * 40,
    "SWAP_ROUTER_ADDRESS": "0x" + "2" * 40,
    "BASE_TOKEN_ADDRESS": "0x" + "3" * 40,
    "QUOTE_TOKEN_ADDRESS": "0x" + "4" * 40,
    "TRADE_AMOUNT": "10",
}


@pytest.fixture
def env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    for key, value in VALID_ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


class TestConfig:

    def test_defaults(self, env):
        config = Config()
        strategy = config.strategy

        assert config.DRY_RUN is False
        assert config.QUOTE_IS_TOKEN1 is None
        assert config.GAS_LIMIT == 350000
        assert config.LOG_LEVEL == "INFO"
        assert strategy.trade_amount == Decimal("10")
        assert strategy.ma_period == 20
        assert strategy.offset_pct == Decimal("0.01")
        assert strategy.take_profit_pct == Decimal("0.02")
        assert strategy.pool_fee == 3000
        assert strategy.cycle_seconds == 300.0
        assert strategy.stop_loss_reversal
        assert strategy.reentry_gating
        assert not strategy.stop_loss_first

    def test_percentages_are_converted(self, env):
        env.setenv("SMA_OFFSET_PCT", "2")
        env.setenv("TAKE_PROFIT_PCT", "5")

        strategy = Config().strategy

        assert strategy.offset_pct == Decimal("0.02")
        assert strategy.take_profit_pct == Decimal("0.05")

    def test_flags(self, env):
        env.setenv("STOP_LOSS_REVERSAL", "false")
        env.setenv("REENTRY_GATING", "0")
        env.setenv("STOP_LOSS_FIRST", "yes")
        env.setenv("QUOTE_IS_TOKEN1", "true")

        config = Config()

        assert not config.strategy.stop_loss_reversal
        assert not config.strategy.reentry_gating
        assert config.strategy.stop_loss_first
        assert config.QUOTE_IS_TOKEN1 is True

    @pytest.mark.parametrize("key", ["RPC_URL", "POOL_ADDRESS", "TRADE_AMOUNT", "WALLET_PRIVATE_KEY"])
    def test_missing_required(self, env, key):
        env.delenv(key)
        with pytest.raises(ConfigurationError, match=key):
            Config()

    def test_dry_run_needs_no_wallet(self, env):
        env.setenv("DRY_RUN", "true")
        env.delenv("WALLET_PRIVATE_KEY")
        env.delenv("SWAP_ROUTER_ADDRESS")

        config = Config()

        assert config.DRY_RUN
        assert config.WALLET_PRIVATE_KEY is None

    @pytest.mark.parametrize("key,value", [
        ("POOL_ADDRESS", "0x1234"),
        ("BASE_TOKEN_ADDRESS", "0x" + "g" * 40),
        ("WALLET_PRIVATE_KEY", "abc"),
        ("TRADE_AMOUNT", "ten"),
        ("MA_PERIOD", "2.5"),
        ("STOP_LOSS_FIRST", "maybe"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, env, key, value):
        env.setenv(key, value)
        with pytest.raises(ConfigurationError):
            Config()

    @pytest.mark.parametrize("key,value", [
        ("TRADE_AMOUNT", "0"),
        ("MA_PERIOD", "101"),
        ("SMA_OFFSET_PCT", "100"),
        ("TAKE_PROFIT_PCT", "0"),
        ("MAX_TAKE_PROFIT_COUNT", "-1"),
    ])
    def test_invalid_strategy(self, env, key, value):
        env.setenv(key, value)
        with pytest.raises(ConfigurationError, match="Invalid strategy configuration"):
            Config()

    @pytest.mark.parametrize("key", ["TRADE_AMOUNT", "SMA_OFFSET_PCT", "CYCLE_SECONDS"])
    @pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity"])
    def test_non_finite_numbers(self, env, key, value):
        env.setenv(key, value)
        with pytest.raises(ConfigurationError, match="finite"):
            Config()

    def test_same_token_twice(self, env):
        env.setenv("QUOTE_TOKEN_ADDRESS", VALID_ENV["BASE_TOKEN_ADDRESS"])
        with pytest.raises(ConfigurationError):
            Config()

    def test_configuration_error_is_value_error(self, env):
        env.delenv("RPC_URL")
        with pytest.raises(ValueError):
            Config()
