"""
Module for the moving-average band strategy.

Opens a long when price breaks above the band around the moving average and a
short when it breaks below. Open positions exit on take-profit, or on
stop-loss, which by default reverses the position with a double-size swap and
blocks new entries until price comes back inside the band.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from .models import (
    Action,
    Band,
    Decision,
    Direction,
    Position,
    Side,
    StrategyConfig,
)

logger = logging.getLogger(__name__)


class StrategyEngine:
    """
    State machine over Position and the re-entry cooldown.

    evaluate() is pure: it reports what should happen and the state that
    follows. apply() commits that state and must only be called once the
    decision's trade (if any) has been confirmed.
    """

    def __init__(self, strategy: StrategyConfig):
        self.config = strategy
        self.position = Position.flat()
        self.trading_enabled = True

    def band(self, ma: Decimal) -> Band:
        return Band.around(ma, self.config.offset_pct)

    def evaluate(self, price: Optional[Decimal], ma: Optional[Decimal]) -> Decision:
        """Decide what to do for one cycle without changing any state."""
        if price is None or price <= 0:
            return self._hold(price, ma, None, self.trading_enabled, "price unavailable")
        if ma is None:
            return self._hold(price, ma, None, self.trading_enabled, "no signal yet")

        band = self.band(ma)
        in_band = band.contains(price)
        trading_enabled = self.trading_enabled or in_band

        if not self.position.is_flat:
            decision = self._manage(price, ma, band, trading_enabled)
            # A long closed to flat leaves room for a short entry in the same cycle
            if (self.position.side is Side.LONG and decision.next_position.is_flat
                    and decision.next_trading_enabled and price < band.lower):
                decision = replace(
                    decision, follow_up=self._open_short(price, ma, band, decision.next_trading_enabled)
                )
            return decision

        if in_band:
            reason = "within band, no trade allowed"
            if not self.trading_enabled:
                reason += "; re-entry enabled"
            return self._hold(price, ma, band, trading_enabled, reason)
        if not trading_enabled:
            return self._hold(
                price, ma, band, trading_enabled,
                "waiting for price to re-enter band after stop-loss",
            )

        if price > band.upper:
            return self._open_long(price, ma, band, trading_enabled)
        return self._open_short(price, ma, band, trading_enabled)

    def _open_long(self, price: Decimal, ma: Decimal, band: Band, trading_enabled: bool) -> Decision:
        return Decision(
            action=Action.OPEN_LONG,
            price=price,
            moving_average=ma,
            band=band,
            next_position=Position.long(price),
            next_trading_enabled=trading_enabled,
            direction=Direction.BUY,
            size=self.config.trade_amount,
            reason="price above band",
        )

    def _open_short(self, price: Decimal, ma: Decimal, band: Band, trading_enabled: bool) -> Decision:
        return Decision(
            action=Action.OPEN_SHORT,
            price=price,
            moving_average=ma,
            band=band,
            next_position=Position.short(price),
            next_trading_enabled=trading_enabled,
            direction=Direction.SELL,
            size=self.config.trade_amount,
            reason="price below band",
        )

    def _manage(
        self,
        price: Decimal,
        ma: Decimal,
        band: Band,
        trading_enabled: bool,
    ) -> Decision:
        """Take-profit / stop-loss checks for the open position."""
        position = self.position
        entry = position.entry_price
        is_long = position.side is Side.LONG
        cfg = self.config

        if is_long:
            target = entry * (1 + cfg.take_profit_pct)
            take_profit = price >= target
            stop_loss = price < ma and price < band.lower
        else:
            target = entry * (1 - cfg.take_profit_pct)
            take_profit = price <= target
            stop_loss = price > ma and price > band.upper

        # Capped take-profits fall through to the stop-loss check
        take_profit = take_profit and position.take_profit_count < cfg.max_take_profit_count

        if take_profit and stop_loss:
            if cfg.stop_loss_first:
                take_profit = False
            else:
                stop_loss = False

        exit_direction = Direction.SELL if is_long else Direction.BUY

        if take_profit:
            closed = Position(position.side, entry, position.take_profit_count + 1)
            return Decision(
                action=Action.CLOSE_LONG if is_long else Action.CLOSE_SHORT,
                price=price,
                moving_average=ma,
                band=band,
                next_position=Position.flat(),
                next_trading_enabled=trading_enabled,
                direction=exit_direction,
                size=cfg.trade_amount,
                reason=f"take-profit at target {target}",
                closed_position=closed,
            )

        if stop_loss:
            next_enabled = False if cfg.reentry_gating else trading_enabled
            if cfg.stop_loss_reversal:
                return Decision(
                    action=Action.REVERSE_TO_SHORT if is_long else Action.REVERSE_TO_LONG,
                    price=price,
                    moving_average=ma,
                    band=band,
                    next_position=Position.short(price) if is_long else Position.long(price),
                    next_trading_enabled=next_enabled,
                    direction=exit_direction,
                    size=cfg.trade_amount * 2,
                    reason="stop-loss, reversing position",
                    closed_position=position,
                )
            return Decision(
                action=Action.CLOSE_LONG if is_long else Action.CLOSE_SHORT,
                price=price,
                moving_average=ma,
                band=band,
                next_position=Position.flat(),
                next_trading_enabled=next_enabled,
                direction=exit_direction,
                size=cfg.trade_amount,
                reason="stop-loss",
                closed_position=position,
            )

        return self._hold(price, ma, band, trading_enabled, f"holding {position.side.value.lower()}")

    def _hold(
        self,
        price: Optional[Decimal],
        ma: Optional[Decimal],
        band: Optional[Band],
        trading_enabled: bool,
        reason: str,
    ) -> Decision:
        return Decision(
            action=Action.HOLD,
            price=price,
            moving_average=ma,
            band=band,
            next_position=self.position,
            next_trading_enabled=trading_enabled,
            reason=reason,
        )

    def apply(self, decision: Decision) -> None:
        """Commit the state reached by a decision."""
        if decision.next_position != self.position:
            logger.info(f"Position: {self.position} -> {decision.next_position}")
        if decision.next_trading_enabled != self.trading_enabled:
            if decision.next_trading_enabled:
                logger.info("Price back inside band, trading re-enabled")
            else:
                logger.info("Trading disabled until price re-enters band")
        self.position = decision.next_position
        self.trading_enabled = decision.next_trading_enabled
