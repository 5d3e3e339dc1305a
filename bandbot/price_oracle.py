"""
Module for deriving a human-scale exchange rate from a Uniswap V3 pool.

The pool publishes sqrtPriceX96 = sqrt(token1_raw / token0_raw) * 2^96.
Squaring it and rescaling by the tokens' decimals gives token1 per token0;
the reciprocal gives token0 per token1.
"""

import logging
from decimal import Decimal, localcontext
from typing import Optional

from .exceptions import PriceUnavailable
from .gateways import PoolReader, TokenMetadata
from .models import PoolState, PriceSample

logger = logging.getLogger(__name__)

Q192 = 2 ** 192

# sqrtPriceX96 can be up to 160 bits, so its square has ~97 digits
PRICE_PRECISION = 60


def sqrt_price_x96_to_price(
    sqrt_price_x96: int,
    decimals0: int,
    decimals1: int,
    quote_is_token1: bool,
) -> Decimal:
    """Convert a pool's sqrtPriceX96 to a decimal-adjusted, oriented price.

    Formula: price = (sqrtPriceX96 / 2^96)^2 * 10^(decimals0 - decimals1),
    inverted when the quote asset is token0.
    """
    if sqrt_price_x96 <= 0:
        raise PriceUnavailable(f"invalid sqrtPriceX96: {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw = Decimal(sqrt_price_x96) * Decimal(sqrt_price_x96) / Decimal(Q192)
        adjusted = raw.scaleb(decimals0 - decimals1)
        if adjusted == 0:
            raise PriceUnavailable("price underflow")
        price = adjusted if quote_is_token1 else 1 / adjusted
        return +price


def pool_state_to_price(state: PoolState) -> Decimal:
    return sqrt_price_x96_to_price(
        state.sqrt_price_x96,
        state.token0_decimals,
        state.token1_decimals,
        state.quote_is_token1,
    )


class PriceOracle:
    """
    Reads pool state and token metadata, produces one price sample per call.

    Token decimals and orientation are immutable pool properties and are read
    once; sqrtPriceX96 is read fresh on every call. Failures are logged and
    answered with the last known price, or None before the first good read.
    """

    def __init__(
        self,
        pool: PoolReader,
        metadata: TokenMetadata,
        quote_token: Optional[str] = None,
        quote_is_token1: Optional[bool] = None,
    ):
        """
        Args:
            pool: source of sqrtPriceX96 and the pool's token addresses
            metadata: source of token decimals
            quote_token: address of the asset prices are expressed in;
                orientation is derived by comparing it with token1
            quote_is_token1: explicit orientation, overrides quote_token
        """
        if quote_token is None and quote_is_token1 is None:
            raise ValueError("either quote_token or quote_is_token1 is required")
        self.pool = pool
        self.metadata = metadata
        self.quote_token = quote_token
        self._quote_is_token1 = quote_is_token1
        self._decimals0: Optional[int] = None
        self._decimals1: Optional[int] = None
        self.last_price: Optional[Decimal] = None

    def _load_metadata(self, token0: str, token1: str) -> None:
        """Read decimals and orientation once per process."""
        if self._decimals0 is not None and self._decimals1 is not None \
                and self._quote_is_token1 is not None:
            return

        decimals0 = int(self.metadata.decimals(token0))
        decimals1 = int(self.metadata.decimals(token1))

        if self._quote_is_token1 is None:
            quote = self.quote_token.lower()
            if token1.lower() == quote:
                self._quote_is_token1 = True
            elif token0.lower() == quote:
                self._quote_is_token1 = False
            else:
                raise PriceUnavailable(
                    f"quote token {self.quote_token} is not part of the pool "
                    f"({token0}, {token1})"
                )

        self._decimals0 = decimals0
        self._decimals1 = decimals1
        logger.info(
            f"Pool metadata: token0 decimals={decimals0}, token1 decimals={decimals1}, "
            f"quote is token1: {self._quote_is_token1}"
        )

    def read_pool_state(self) -> PoolState:
        """Take a fresh snapshot of the pool. Raises on failure."""
        state = self.pool.read_state()
        self._load_metadata(state["token0"], state["token1"])
        return PoolState(
            sqrt_price_x96=int(state["sqrtPriceX96"]),
            token0_decimals=self._decimals0,
            token1_decimals=self._decimals1,
            quote_is_token1=self._quote_is_token1,
        )

    def get_current_price(self) -> Optional[Decimal]:
        """
        Get the current price. Never raises.
        Returns the last known price if the read fails, None if no price
        has ever been read.
        """
        sample = self.fetch()
        return sample.value if sample else None

    def fetch(self) -> Optional[PriceSample]:
        """Produce one sample for this cycle, flagged stale on fallback."""
        try:
            price = pool_state_to_price(self.read_pool_state())
        except Exception as e:
            if self.last_price is None:
                logger.error(f"Price fetch error, no price available yet: {e}")
                return None
            logger.error(f"Price fetch error, reusing last price {self.last_price}: {e}")
            return PriceSample(value=self.last_price, stale=True)

        self.last_price = price
        logger.debug(f"Current price: {price}")
        return PriceSample(value=price)
