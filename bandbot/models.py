"""
Data models for the band trading bot.
Defines dataclasses for strategy configuration, price samples, positions,
decisions and trade outcomes.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional
from datetime import datetime


class Side(str, Enum):
    """Tag of the current position."""
    FLAT = "FLAT"
    LONG = "LONG"
    SHORT = "SHORT"


class Direction(str, Enum):
    """Swap direction. BUY spends quote to acquire base, SELL spends base."""
    BUY = "BUY"
    SELL = "SELL"


class Action(str, Enum):
    """Decision emitted by the strategy engine for one cycle."""
    HOLD = "HOLD"
    OPEN_LONG = "OPEN_LONG"
    CLOSE_LONG = "CLOSE_LONG"
    OPEN_SHORT = "OPEN_SHORT"
    CLOSE_SHORT = "CLOSE_SHORT"
    REVERSE_TO_SHORT = "REVERSE_TO_SHORT"
    REVERSE_TO_LONG = "REVERSE_TO_LONG"

    @property
    def is_opening(self) -> bool:
        return self in (Action.OPEN_LONG, Action.OPEN_SHORT)

    @property
    def is_closing(self) -> bool:
        return self in (
            Action.CLOSE_LONG,
            Action.CLOSE_SHORT,
            Action.REVERSE_TO_SHORT,
            Action.REVERSE_TO_LONG,
        )


@dataclass
class StrategyConfig:
    """
    Parameters of the moving-average band strategy.
    Percentages are fractions (0.02 = 2%).
    """
    trade_amount: Decimal  # Notional per trade, in base token units
    ma_period: int  # Number of samples in the simple moving average
    offset_pct: Decimal  # Half-width of the no-trade band around the MA
    take_profit_pct: Decimal  # Distance from entry that closes in profit
    max_take_profit_count: int = 1  # Take-profit cap per side
    pool_fee: int = 3000  # Pool swap fee in parts per million
    cycle_seconds: float = 300.0  # Delay between evaluation cycles
    stop_loss_reversal: bool = True  # Stop-loss flips the position with a 2x swap
    reentry_gating: bool = True  # Stop-loss blocks new entries until price re-enters the band
    stop_loss_first: bool = False  # Precedence when both exits trigger in one cycle
    history_size: int = 100

    def __post_init__(self):
        """Validate configuration values."""
        for name in ("trade_amount", "offset_pct", "take_profit_pct"):
            if not Decimal(getattr(self, name)).is_finite():
                raise ValueError(f"{name} must be a finite number")
        if self.trade_amount <= 0:
            raise ValueError("trade_amount must be positive")
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")
        if not (1 <= self.ma_period <= self.history_size):
            raise ValueError(
                f"ma_period must be between 1 and {self.history_size}"
            )
        if not (0 <= self.offset_pct < 1):
            raise ValueError("offset_pct must be in [0, 1)")
        if not (0 < self.take_profit_pct < 1):
            raise ValueError("take_profit_pct must be in (0, 1)")
        if self.max_take_profit_count < 0:
            raise ValueError("max_take_profit_count must be non-negative")
        if not (0 <= self.pool_fee < 1_000_000):
            raise ValueError("pool_fee must be between 0 and 1000000 ppm")
        if self.cycle_seconds <= 0:
            raise ValueError("cycle_seconds must be positive")


@dataclass(frozen=True)
class PriceSample:
    """One exchange-rate observation."""
    value: Decimal
    timestamp: datetime = field(default_factory=datetime.utcnow)
    stale: bool = False  # True when the last known value was reused after a failed read

    def __post_init__(self):
        if self.value <= 0:
            raise ValueError("price sample must be positive")


@dataclass(frozen=True)
class PoolState:
    """Snapshot of the pool needed to derive a price."""
    sqrt_price_x96: int
    token0_decimals: int
    token1_decimals: int
    quote_is_token1: bool


@dataclass(frozen=True)
class Band:
    """No-trade corridor around the moving average."""
    lower: Decimal
    upper: Decimal

    def __post_init__(self):
        if self.lower > self.upper:
            raise ValueError("band lower bound exceeds upper bound")

    @classmethod
    def around(cls, ma: Decimal, offset_pct: Decimal) -> "Band":
        return cls(lower=ma * (1 - offset_pct), upper=ma * (1 + offset_pct))

    def contains(self, price: Decimal) -> bool:
        return self.lower <= price <= self.upper

    def __str__(self) -> str:
        return f"({self.lower} - {self.upper})"


@dataclass(frozen=True)
class Position:
    """
    Current exposure: flat, long or short.
    Exactly one variant holds; entry_price is set iff the position is open.
    """
    side: Side = Side.FLAT
    entry_price: Optional[Decimal] = None
    take_profit_count: int = 0

    def __post_init__(self):
        if self.side is Side.FLAT:
            if self.entry_price is not None:
                raise ValueError("flat position cannot carry an entry price")
        elif self.entry_price is None or self.entry_price <= 0:
            raise ValueError(f"{self.side.value} position needs a positive entry price")
        if self.take_profit_count < 0:
            raise ValueError("take_profit_count must be non-negative")

    @classmethod
    def flat(cls) -> "Position":
        return cls()

    @classmethod
    def long(cls, entry_price: Decimal, take_profit_count: int = 0) -> "Position":
        return cls(Side.LONG, entry_price, take_profit_count)

    @classmethod
    def short(cls, entry_price: Decimal, take_profit_count: int = 0) -> "Position":
        return cls(Side.SHORT, entry_price, take_profit_count)

    @property
    def is_flat(self) -> bool:
        return self.side is Side.FLAT

    def __str__(self) -> str:
        if self.is_flat:
            return "FLAT"
        return f"{self.side.value}(entry={self.entry_price}, tp={self.take_profit_count})"


@dataclass(frozen=True)
class Decision:
    """
    Outcome of evaluating one (price, moving average, state) triple.
    Carries the state the engine moves to once the trade has gone through.
    """
    action: Action
    price: Optional[Decimal]
    moving_average: Optional[Decimal]
    band: Optional[Band]
    next_position: Position
    next_trading_enabled: bool
    direction: Optional[Direction] = None
    size: Decimal = Decimal(0)
    reason: str = ""
    closed_position: Optional[Position] = None  # Position being exited, for P/L
    follow_up: Optional["Decision"] = None  # Entry taken right after this exit succeeds

    @property
    def requires_trade(self) -> bool:
        return self.action is not Action.HOLD


@dataclass(frozen=True)
class SwapResult:
    """Result reported by a trade gateway for one confirmed swap."""
    tx_hash: str
    gas_fee: Decimal = Decimal(0)  # Realized network fee, in native token units


@dataclass(frozen=True)
class TradeOutcome:
    """
    Settlement of a closed position.
    Logged once per closing trade, never persisted.
    """
    side: Side
    entry_price: Decimal
    exit_price: Decimal
    size: Decimal
    exit_size: Decimal
    gross_profit: Decimal
    swap_fee: Decimal
    gas_fee: Decimal
    net_profit: Decimal
    tx_hash: str = ""

    def __str__(self) -> str:
        """Human-readable representation of the outcome."""
        return (
            f"{self.side.value} {self.entry_price} -> {self.exit_price} "
            f"gross={self.gross_profit:.6f} swap_fee={self.swap_fee:.6f} "
            f"gas={self.gas_fee:.6f} net={self.net_profit:.6f} tx={self.tx_hash}"
        )
