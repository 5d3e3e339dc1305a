"""
Interfaces of the external collaborators used by the trading core,
plus a paper-trading gateway for dry runs.
"""

import logging
import threading
import uuid
from collections import deque
from decimal import Decimal
from typing import Any, Dict, Protocol

from .models import Direction, SwapResult

logger = logging.getLogger(__name__)


class PoolReader(Protocol):
    """Read-only access to the pool's state."""

    def read_state(self) -> Dict[str, Any]:
        """Return a dict with 'sqrtPriceX96', 'token0' and 'token1'."""
        ...


class TokenMetadata(Protocol):
    def decimals(self, token: str) -> int:
        ...


class TradeGateway(Protocol):
    """Submits swaps and waits for their confirmation."""

    def execute(
        self,
        direction: Direction,
        amount: Decimal,
        reference_price: Decimal,
    ) -> SwapResult:
        """
        Execute a swap for `amount` base tokens.

        BUY spends quote tokens worth `amount` at `reference_price`,
        SELL spends `amount` base tokens. Raises on failure.
        """
        ...


class Clock(Protocol):
    def sleep(self, seconds: float) -> None:
        ...

    def interrupt(self) -> None:
        """Wake up a pending sleep() early."""
        ...


class SystemClock:
    """Clock whose sleep can be cut short from a signal handler."""

    def __init__(self):
        self._wakeup = threading.Event()

    def sleep(self, seconds: float) -> None:
        self._wakeup.wait(seconds)
        self._wakeup.clear()

    def interrupt(self) -> None:
        self._wakeup.set()


class PaperTradeGateway:
    """
    Gateway that only logs swaps.
    Used with DRY_RUN so the strategy can run against live prices
    without signing anything.
    """

    def __init__(self, history: int = 100):
        self.executed = deque(maxlen=history)

    def execute(
        self,
        direction: Direction,
        amount: Decimal,
        reference_price: Decimal,
    ) -> SwapResult:
        tx_hash = "paper-" + uuid.uuid4().hex[:16]
        self.executed.append((direction, amount, reference_price, tx_hash))
        logger.info(
            f"[DRY RUN] {direction.value} {amount} base at {reference_price} "
            f"(quote value {amount * reference_price}), tx={tx_hash}"
        )
        return SwapResult(tx_hash=tx_hash, gas_fee=Decimal(0))
