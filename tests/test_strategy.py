"""
Unit tests for the StrategyEngine state machine.

Tests band breakouts, take-profit, stop-loss reversal, re-entry gating,
feature flags and the purity of evaluate().
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from bandbot.models import Action, Band, Direction, Position, Side
from bandbot.strategy import StrategyEngine

D = Decimal
MA = D("100")


class TestBand:

    def test_band_around_moving_average(self, strategy_config):
        band = StrategyEngine(strategy_config).band(MA)
        assert band.lower == D("98")
        assert band.upper == D("102")

    def test_band_bounds_inclusive(self):
        band = Band.around(MA, D("0.02"))
        assert band.contains(D("98"))
        assert band.contains(D("102"))
        assert not band.contains(D("102.0001"))

    def test_band_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            Band(lower=D("2"), upper=D("1"))


class TestStrategyEngine:
    """Test suite for StrategyEngine."""

    @pytest.fixture
    def engine(self, strategy_config):
        return StrategyEngine(strategy_config)

    def engine_with(self, strategy_config, **changes):
        return StrategyEngine(replace(strategy_config, **changes))

    def test_initial_state(self, engine):
        assert engine.position == Position.flat()
        assert engine.trading_enabled

    def test_open_long_above_band(self, engine):
        decision = engine.evaluate(D("105"), MA)

        assert decision.action is Action.OPEN_LONG
        assert decision.direction is Direction.BUY
        assert decision.size == D("10")
        assert decision.next_position == Position.long(D("105"))

    def test_open_short_below_band(self, engine):
        decision = engine.evaluate(D("95"), MA)

        assert decision.action is Action.OPEN_SHORT
        assert decision.direction is Direction.SELL
        assert decision.next_position == Position.short(D("95"))

    @pytest.mark.parametrize("price", ["98", "100", "102"])
    def test_no_trade_inside_band(self, engine, price):
        decision = engine.evaluate(D(price), MA)

        assert decision.action is Action.HOLD
        assert not decision.requires_trade
        assert decision.next_position.is_flat

    def test_evaluate_does_not_mutate(self, engine):
        first = engine.evaluate(D("105"), MA)
        second = engine.evaluate(D("105"), MA)

        assert first == second
        assert engine.position.is_flat

    def test_apply_commits_decision(self, engine):
        engine.apply(engine.evaluate(D("105"), MA))
        assert engine.position == Position.long(D("105"))

    def test_long_take_profit(self, engine):
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(D("110.25"), MA)

        assert decision.action is Action.CLOSE_LONG
        assert decision.direction is Direction.SELL
        assert decision.size == D("10")
        assert decision.closed_position.take_profit_count == 1
        assert decision.closed_position.entry_price == D("105")
        assert decision.next_position.is_flat
        assert decision.next_trading_enabled

    def test_long_below_target_holds(self, engine):
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(D("110.24"), MA)

        assert decision.action is Action.HOLD
        assert decision.next_position == engine.position

    def test_long_stop_loss_reverses_to_short(self, engine):
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(D("97"), MA)

        assert decision.action is Action.REVERSE_TO_SHORT
        assert decision.direction is Direction.SELL
        assert decision.size == D("20")
        assert decision.next_position == Position.short(D("97"))
        assert not decision.next_trading_enabled
        assert decision.closed_position == Position.long(D("105"))

    def test_short_take_profit(self, engine):
        engine.position = Position.short(D("95"))

        decision = engine.evaluate(D("90.25"), MA)

        assert decision.action is Action.CLOSE_SHORT
        assert decision.direction is Direction.BUY
        assert decision.size == D("10")
        assert decision.next_position.is_flat

    def test_short_stop_loss_reverses_to_long(self, engine):
        engine.position = Position.short(D("95"))

        decision = engine.evaluate(D("103"), MA)

        assert decision.action is Action.REVERSE_TO_LONG
        assert decision.direction is Direction.BUY
        assert decision.size == D("20")
        assert decision.next_position == Position.long(D("103"))
        assert not decision.next_trading_enabled

    def test_take_profit_managed_inside_band(self, engine):
        engine.position = Position.long(D("100"))

        # band around 104 is [101.92, 106.08], target is 105
        decision = engine.evaluate(D("105"), D("104"))

        assert decision.action is Action.CLOSE_LONG

    def test_reentry_gating_after_stop_loss(self, engine):
        engine.position = Position.long(D("105"))
        engine.apply(engine.evaluate(D("97"), MA))
        assert not engine.trading_enabled

        # The reversed short can still take profit while entries are blocked
        decision = engine.evaluate(D("92"), MA)
        assert decision.action is Action.CLOSE_SHORT
        engine.apply(decision)
        assert engine.position.is_flat
        assert not engine.trading_enabled

        for price in ["90", "85", "110"]:
            decision = engine.evaluate(D(price), MA)
            assert decision.action is Action.HOLD
            engine.apply(decision)
        assert not engine.trading_enabled

        decision = engine.evaluate(D("99"), MA)
        assert decision.action is Action.HOLD
        assert decision.next_trading_enabled
        engine.apply(decision)
        assert engine.trading_enabled

        assert engine.evaluate(D("90"), MA).action is Action.OPEN_SHORT

    def test_band_reentry_while_position_open(self, engine):
        engine.position = Position.short(D("97"))
        engine.trading_enabled = False

        decision = engine.evaluate(D("99"), MA)

        assert decision.action is Action.HOLD
        assert decision.next_trading_enabled
        assert decision.next_position == Position.short(D("97"))

    def test_take_profit_cap(self, strategy_config):
        engine = self.engine_with(strategy_config, max_take_profit_count=0)
        engine.position = Position.long(D("105"))

        assert engine.evaluate(D("110.25"), MA).action is Action.HOLD

    def test_take_profit_first_by_default(self, engine):
        engine.position = Position.long(D("50"))

        decision = engine.evaluate(D("90"), MA)

        assert decision.action is Action.CLOSE_LONG
        assert decision.next_trading_enabled

    def test_long_take_profit_below_band_opens_short(self, engine):
        engine.position = Position.long(D("50"))

        decision = engine.evaluate(D("90"), MA)

        assert decision.next_position.is_flat
        follow_up = decision.follow_up
        assert follow_up.action is Action.OPEN_SHORT
        assert follow_up.direction is Direction.SELL
        assert follow_up.size == D("10")
        assert follow_up.next_position == Position.short(D("90"))

    def test_take_profit_inside_band_has_no_follow_up(self, engine):
        engine.position = Position.long(D("90"))

        assert engine.evaluate(D("99"), MA).follow_up is None

    def test_short_take_profit_above_band_does_not_open_long(self, engine):
        engine.position = Position.short(D("120"))

        decision = engine.evaluate(D("110"), MA)

        assert decision.action is Action.CLOSE_SHORT
        assert decision.follow_up is None

    def test_stop_loss_first_flag(self, strategy_config):
        engine = self.engine_with(strategy_config, stop_loss_first=True)
        engine.position = Position.long(D("50"))

        assert engine.evaluate(D("90"), MA).action is Action.REVERSE_TO_SHORT

    def test_capped_take_profit_falls_through_to_stop_loss(self, strategy_config):
        engine = self.engine_with(strategy_config, max_take_profit_count=1)
        engine.position = Position.long(D("50"), take_profit_count=1)

        assert engine.evaluate(D("90"), MA).action is Action.REVERSE_TO_SHORT

    def test_stop_loss_without_reversal(self, strategy_config):
        engine = self.engine_with(strategy_config, stop_loss_reversal=False)
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(D("97"), MA)

        assert decision.action is Action.CLOSE_LONG
        assert decision.size == D("10")
        assert decision.next_position.is_flat
        assert not decision.next_trading_enabled
        assert decision.follow_up is None

    def test_stop_loss_close_without_gating_opens_short(self, strategy_config):
        engine = self.engine_with(strategy_config, stop_loss_reversal=False, reentry_gating=False)
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(D("97"), MA)

        assert decision.action is Action.CLOSE_LONG
        assert decision.follow_up.action is Action.OPEN_SHORT
        assert decision.follow_up.next_position == Position.short(D("97"))

    def test_stop_loss_without_gating(self, strategy_config):
        engine = self.engine_with(strategy_config, reentry_gating=False)
        engine.position = Position.long(D("105"))

        engine.apply(engine.evaluate(D("97"), MA))

        assert engine.trading_enabled
        assert engine.position.side is Side.SHORT

    @pytest.mark.parametrize("price", [None, D("0"), D("-1")])
    def test_unavailable_price_is_skipped(self, engine, price):
        engine.position = Position.long(D("105"))

        decision = engine.evaluate(price, MA)

        assert decision.action is Action.HOLD
        assert decision.reason == "price unavailable"
        assert decision.next_position == engine.position

    def test_no_moving_average_yet(self, engine):
        decision = engine.evaluate(D("150"), None)

        assert decision.action is Action.HOLD
        assert decision.band is None
