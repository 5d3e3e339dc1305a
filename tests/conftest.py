"""Shared fixtures and fakes for the bandbot test suite."""

from decimal import Decimal

import pytest

from bandbot.exceptions import TradeExecutionError
from bandbot.models import PriceSample, StrategyConfig, SwapResult

Q96 = 2 ** 96


class FakePool:
    """Pool reader returning a configurable sqrtPriceX96."""

    def __init__(self, sqrt_price_x96, token0="0xToken0", token1="0xToken1"):
        self.sqrt_price_x96 = sqrt_price_x96
        self.token0 = token0
        self.token1 = token1
        self.fail = False
        self.reads = 0

    def read_state(self):
        self.reads += 1
        if self.fail:
            raise ConnectionError("rpc down")
        return {
            "sqrtPriceX96": self.sqrt_price_x96,
            "token0": self.token0,
            "token1": self.token1,
        }


class FakeMetadata:
    def __init__(self, decimals):
        self._decimals = decimals
        self.calls = []
        self.fail = False

    def decimals(self, token):
        self.calls.append(token)
        if self.fail:
            raise ConnectionError("rpc down")
        return self._decimals[token]


class RecordingGateway:
    """Trade gateway that records swaps and can be told to fail."""

    def __init__(self, gas_fee=Decimal("0.001")):
        self.calls = []
        self.gas_fee = gas_fee
        self.error = None

    def execute(self, direction, amount, reference_price):
        self.calls.append((direction, amount, reference_price))
        if self.error is not None:
            raise self.error
        return SwapResult(tx_hash=f"0x{len(self.calls):064x}", gas_fee=self.gas_fee)

    def fail_with(self, message="execution reverted"):
        self.error = TradeExecutionError(message)


class ScriptedOracle:
    """Oracle yielding a fixed sequence of samples (None = unavailable)."""

    def __init__(self, prices):
        self.prices = list(prices)

    def fetch(self):
        value = self.prices.pop(0)
        if value is None:
            return None
        return PriceSample(value=Decimal(value))


class FakeClock:
    def __init__(self):
        self.sleeps = []
        self.interrupts = 0

    def sleep(self, seconds):
        self.sleeps.append(seconds)

    def interrupt(self):
        self.interrupts += 1


@pytest.fixture
def strategy_config():
    return StrategyConfig(
        trade_amount=Decimal("10"),
        ma_period=5,
        offset_pct=Decimal("0.02"),
        take_profit_pct=Decimal("0.05"),
        max_take_profit_count=1,
        pool_fee=3000,
        cycle_seconds=60,
    )


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def clock():
    return FakeClock()
