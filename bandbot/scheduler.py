"""
Scheduler running the price -> moving average -> strategy -> trade cycle
on a fixed interval.
"""

import logging
from typing import Optional

from .gateways import Clock, SystemClock, TradeGateway
from .models import Decision, StrategyConfig, TradeOutcome
from .moving_average import MovingAverageTracker
from .pnl import open_fee, settle
from .price_oracle import PriceOracle
from .strategy import StrategyEngine

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Drives one evaluation cycle per interval.
    Cycles never overlap: the next price read starts only after the previous
    cycle's trade, if any, has resolved.
    """

    def __init__(
        self,
        oracle: PriceOracle,
        gateway: TradeGateway,
        strategy: StrategyConfig,
        engine: Optional[StrategyEngine] = None,
        tracker: Optional[MovingAverageTracker] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize scheduler.

        Args:
            oracle: price source
            gateway: swap executor
            strategy: strategy parameters and cycle interval
            engine: strategy state machine (built from `strategy` if omitted)
            tracker: price history (built from `strategy` if omitted)
            clock: sleep provider, time.sleep by default
        """
        self.oracle = oracle
        self.gateway = gateway
        self.strategy = strategy
        self.engine = engine if engine is not None else StrategyEngine(strategy)
        self.tracker = tracker if tracker is not None else MovingAverageTracker(strategy.history_size)
        self.clock = clock if clock is not None else SystemClock()
        self.cycles = 0
        self.last_outcome: Optional[TradeOutcome] = None
        self._running = False

        logger.info("Scheduler initialized")

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle, cutting short any sleep."""
        self._running = False
        self.clock.interrupt()

    @property
    def running(self) -> bool:
        return self._running

    def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Run cycles until stop() is called or max_cycles have completed.
        A failed cycle is logged and followed by the normal sleep.
        """
        self._running = True
        logger.info(f"Trading loop started, cycle every {self.strategy.cycle_seconds}s")

        try:
            while self._running:
                try:
                    self.run_cycle()
                except Exception as e:
                    logger.exception(f"Cycle failed: {e}")

                self.cycles += 1
                if max_cycles is not None and self.cycles >= max_cycles:
                    break
                if not self._running:
                    break

                logger.debug(f"Sleeping for {self.strategy.cycle_seconds}s")
                self.clock.sleep(self.strategy.cycle_seconds)
        finally:
            self._running = False
            logger.info(f"Trading loop ended after {self.cycles} cycles")

    def run_cycle(self) -> Optional[Decision]:
        """
        Evaluate one cycle and execute its trade.
        Returns the decision, or None when no price or moving average is
        available yet. Trade failures propagate and leave the engine at the
        state reached by the last swap that went through.
        """
        sample = self.oracle.fetch()
        if sample is None:
            logger.warning("Price unavailable, skipping cycle")
            return None

        self.tracker.update(sample)
        price = sample.value
        ma = self.tracker.average(self.strategy.ma_period)
        if ma is None:
            logger.info(
                f"Price: {price} ({len(self.tracker)}/{self.strategy.ma_period} samples "
                f"for moving average)"
            )
            return None

        decision = self.engine.evaluate(price, ma)
        logger.info(
            f"Price: {price}{' (stale)' if sample.stale else ''}, MA: {ma}, "
            f"Offset Range: {decision.band}, Position: {self.engine.position}"
        )

        if not decision.requires_trade:
            logger.info(f"HOLD: {decision.reason}")
            self.engine.apply(decision)
            return decision

        self._execute(decision)
        if decision.follow_up is not None:
            self._execute(decision.follow_up)
        return decision

    def _execute(self, decision: Decision) -> None:
        """Run a decision's swap, settle any closed position, then commit."""
        price = decision.price
        logger.info(
            f"{decision.action.value}: {decision.reason}; "
            f"{decision.direction.value} {decision.size} at {price}"
        )
        result = self.gateway.execute(decision.direction, decision.size, price)
        logger.info(f"{decision.direction.value} executed at {price}. Tx: {result.tx_hash}, GasFee: {result.gas_fee}")

        if decision.action.is_closing:
            closed = decision.closed_position
            outcome = settle(
                entry_price=closed.entry_price,
                exit_price=price,
                side=closed.side,
                notional=self.strategy.trade_amount,
                gas_fee=result.gas_fee,
                fee_rate_ppm=self.strategy.pool_fee,
                exit_size=decision.size,
                tx_hash=result.tx_hash,
            )
            logger.info(f"Closed {outcome}")
            logger.info(
                f"Gross Profit: {outcome.gross_profit:.6f}, "
                f"Swap Fees: {outcome.swap_fee:.6f}, GasFee: {outcome.gas_fee}"
            )
            logger.info(f"Net Profit: {outcome.net_profit:.6f}")
            self.last_outcome = outcome
        else:
            fee = open_fee(price, decision.size, self.strategy.pool_fee)
            logger.info(f"Open swap fee: {fee:.6f}")

        self.engine.apply(decision)
