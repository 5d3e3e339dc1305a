"""
Profit and loss of closed positions.
"""

from decimal import Decimal
from typing import Optional

from .models import Side, TradeOutcome

PPM = Decimal(1_000_000)


def fee_rate(fee_rate_ppm: int) -> Decimal:
    return Decimal(fee_rate_ppm) / PPM


def open_fee(price: Decimal, size: Decimal, fee_rate_ppm: int) -> Decimal:
    """Swap fee paid on an opening leg, valued at its price."""
    return price * size * fee_rate(fee_rate_ppm)


def settle(
    entry_price: Decimal,
    exit_price: Decimal,
    side: Side,
    notional: Decimal,
    gas_fee: Decimal,
    fee_rate_ppm: int,
    exit_size: Optional[Decimal] = None,
    tx_hash: str = "",
) -> TradeOutcome:
    """
    Settle a closed position.

    Args:
        entry_price: price the position was opened at
        exit_price: price of the closing swap
        side: LONG or SHORT
        notional: position size
        gas_fee: realized network fee of the closing swap
        fee_rate_ppm: pool fee in parts per million
        exit_size: size of the closing swap, 2x notional for a reversal
        tx_hash: hash of the closing swap

    Returns:
        TradeOutcome with gross profit, swap fee on both legs and net profit
    """
    if side is Side.FLAT:
        raise ValueError("cannot settle a flat position")
    if exit_size is None:
        exit_size = notional

    if side is Side.LONG:
        gross_profit = (exit_price - entry_price) * notional
    else:
        gross_profit = (entry_price - exit_price) * notional

    rate = fee_rate(fee_rate_ppm)
    swap_fee = rate * (entry_price * notional + exit_price * exit_size)
    gas_fee = Decimal(gas_fee)
    net_profit = gross_profit - gas_fee - swap_fee

    return TradeOutcome(
        side=side,
        entry_price=entry_price,
        exit_price=exit_price,
        size=notional,
        exit_size=exit_size,
        gross_profit=gross_profit,
        swap_fee=swap_fee,
        gas_fee=gas_fee,
        net_profit=net_profit,
        tx_hash=tx_hash,
    )
