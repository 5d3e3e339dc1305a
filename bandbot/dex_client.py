"""
DEX Client for interacting with a Uniswap V3 pool and SwapRouter via web3.py.
Reads pool state and token metadata, and executes swaps.
"""

import logging
import time
from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict, Optional

from web3 import Web3
from web3.exceptions import TimeExhausted
from eth_account import Account

from .exceptions import TradeExecutionError
from .models import Direction, SwapResult

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1
WEI_PER_ETH = Decimal(10**18)
SWAP_DEADLINE_SECONDS = 20 * 60

POOL_ABI = [
    {
        "type": "function",
        "name": "slot0",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": "uint8"},
            {"name": "unlocked", "type": "bool"},
        ],
    },
    {
        "type": "function",
        "name": "token0",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "token1",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

ERC20_ABI = [
    {
        "type": "function",
        "name": "decimals",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

SWAP_ROUTER_ABI = [
    {
        "type": "function",
        "name": "exactInputSingle",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "deadline", "type": "uint256"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    },
]


def to_raw_amount(amount: Decimal, decimals: int) -> int:
    """Convert a human-readable amount to integer token units, rounding down."""
    return int(amount.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


class DexClient:
    """
    Client for a Uniswap V3 pool and its SwapRouter.
    Serves as the pool reader, token metadata source and trade gateway.
    """

    def __init__(self, config, w3: Optional[Web3] = None):
        """
        Initialize web3 connection and contracts.

        Args:
            config: loaded Config
            w3: existing Web3 instance, a new HTTP connection is made if omitted
        """
        self.config = config

        if w3 is None:
            # Connect to EVM node with timeout
            w3 = Web3(
                Web3.HTTPProvider(
                    config.RPC_URL,
                    request_kwargs={'timeout': config.RPC_TIMEOUT}
                )
            )
            self.w3 = w3
            if not self._connect_with_retry():
                raise ConnectionError(f"Failed to connect to RPC endpoint: {config.RPC_URL}")
            logger.info(f"Connected to network, chain ID: {self.w3.eth.chain_id}")
        else:
            self.w3 = w3

        # Wallet is only needed to trade
        self.account = None
        self.wallet_address = None
        if config.WALLET_PRIVATE_KEY:
            self.account = Account.from_key(config.WALLET_PRIVATE_KEY)
            self.wallet_address = self.account.address
            logger.info(f"Loaded wallet: {self.wallet_address}")

        self.pool = self.w3.eth.contract(
            address=Web3.to_checksum_address(config.POOL_ADDRESS),
            abi=POOL_ABI
        )
        self.router = None
        if config.SWAP_ROUTER_ADDRESS:
            self.router = self.w3.eth.contract(
                address=Web3.to_checksum_address(config.SWAP_ROUTER_ADDRESS),
                abi=SWAP_ROUTER_ABI
            )

        self.base_token_address = Web3.to_checksum_address(config.BASE_TOKEN_ADDRESS)
        self.quote_token_address = Web3.to_checksum_address(config.QUOTE_TOKEN_ADDRESS)

        self._pool_tokens: Optional[tuple] = None
        self._decimals: Dict[str, int] = {}

    def _connect_with_retry(self) -> bool:
        """Connect to RPC with retry logic."""
        for attempt in range(self.config.RPC_MAX_RETRIES):
            try:
                if self.w3.is_connected():
                    return True
            except Exception as e:
                logger.warning(f"RPC connection attempt {attempt + 1} failed: {e}")
            if attempt < self.config.RPC_MAX_RETRIES - 1:
                time.sleep(2 ** attempt)  # Exponential backoff
        return False

    def _rpc_call_with_retry(self, func, *args, **kwargs):
        """Execute RPC call with retry logic."""
        last_exception = None
        for attempt in range(self.config.RPC_MAX_RETRIES):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                last_exception = e
                logger.warning(f"RPC call attempt {attempt + 1}/{self.config.RPC_MAX_RETRIES} failed: {e}")
                if attempt < self.config.RPC_MAX_RETRIES - 1:
                    time.sleep(2 ** attempt)  # Exponential backoff
        raise last_exception

    def _erc20(self, token_address: str):
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(token_address),
            abi=ERC20_ABI
        )

    def read_state(self) -> Dict[str, Any]:
        """Read slot0 and the pool's token addresses."""
        slot0 = self._rpc_call_with_retry(
            lambda: self.pool.functions.slot0().call()
        )
        if self._pool_tokens is None:
            token0 = self._rpc_call_with_retry(lambda: self.pool.functions.token0().call())
            token1 = self._rpc_call_with_retry(lambda: self.pool.functions.token1().call())
            self._pool_tokens = (token0, token1)
            logger.info(f"Pool tokens: token0={token0}, token1={token1}")

        return {
            "sqrtPriceX96": slot0[0],
            "token0": self._pool_tokens[0],
            "token1": self._pool_tokens[1],
        }

    def decimals(self, token: str) -> int:
        """Token decimals, read once per token."""
        key = token.lower()
        if key not in self._decimals:
            self._decimals[key] = int(self._rpc_call_with_retry(
                lambda: self._erc20(token).functions.decimals().call()
            ))
            logger.info(f"Token {token} decimals: {self._decimals[key]}")
        return self._decimals[key]

    def ensure_allowance(self, token_address: str, amount: int) -> Optional[str]:
        """
        Check token allowance to router and approve if needed.
        Returns transaction hash if approval was sent, None otherwise.
        """
        router_address = self.router.address
        token = self._erc20(token_address)

        # Check current allowance with retry
        current_allowance = self._rpc_call_with_retry(
            lambda: token.functions.allowance(
                self.wallet_address,
                router_address
            ).call()
        )

        if current_allowance >= amount:
            logger.debug(f"Sufficient allowance already exists: {current_allowance}")
            return None

        logger.info(f"Insufficient allowance: {current_allowance}. Approving {token_address} for router...")

        # Approve max uint256 to avoid repeated approvals
        approve_tx = token.functions.approve(
            router_address,
            MAX_UINT256
        ).build_transaction(self._tx_params())

        tx_hash, _ = self._send_and_wait(approve_tx, "Approval")
        logger.info(f"Approval successful: {tx_hash}")
        return tx_hash

    def execute(
        self,
        direction: Direction,
        amount: Decimal,
        reference_price: Decimal,
    ) -> SwapResult:
        """
        Swap through SwapRouter.exactInputSingle.

        BUY spends quote tokens worth `amount` base at `reference_price`,
        SELL spends `amount` base tokens. No minimum output is enforced.
        """
        if self.account is None or self.router is None:
            raise TradeExecutionError("Trading requires WALLET_PRIVATE_KEY and SWAP_ROUTER_ADDRESS")

        if direction is Direction.BUY:
            token_in, token_out = self.quote_token_address, self.base_token_address
            human_amount_in = amount * reference_price
        else:
            token_in, token_out = self.base_token_address, self.quote_token_address
            human_amount_in = amount

        amount_in = to_raw_amount(human_amount_in, self.decimals(token_in))
        if amount_in <= 0:
            raise TradeExecutionError(f"{direction.value} amount rounds to zero: {human_amount_in}")

        logger.info(f"{direction.value}: swapping {human_amount_in} of {token_in} for {token_out}")

        self.ensure_allowance(token_in, amount_in)

        deadline = self.w3.eth.get_block('latest')['timestamp'] + SWAP_DEADLINE_SECONDS
        params = (
            token_in,
            token_out,
            self.config.POOL_FEE,
            self.wallet_address,
            deadline,
            amount_in,
            0,
            0,
        )
        swap_tx = self.router.functions.exactInputSingle(params).build_transaction(
            self._tx_params()
        )

        tx_hash, receipt = self._send_and_wait(swap_tx, f"{direction.value} swap")

        gas_fee = Decimal(receipt['gasUsed']) * Decimal(receipt['effectiveGasPrice']) / WEI_PER_ETH
        logger.info(f"{direction.value} successful: tx={tx_hash}, gas used={receipt['gasUsed']}, gas fee={gas_fee}")

        return SwapResult(tx_hash=tx_hash, gas_fee=gas_fee)

    def _tx_params(self) -> Dict[str, Any]:
        return {
            'from': self.wallet_address,
            'nonce': self.w3.eth.get_transaction_count(self.wallet_address),
            'gas': self.config.GAS_LIMIT,
            'gasPrice': self._get_gas_price(),
        }

    def _send_and_wait(self, tx: Dict[str, Any], label: str):
        """Sign, send and wait for a transaction. Raises if it reverts."""
        signed_tx = self.account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))
        logger.info(f"{label} transaction sent: {tx_hash}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.config.TX_TIMEOUT)
        except TimeExhausted as e:
            raise TradeExecutionError(f"{label} not confirmed within {self.config.TX_TIMEOUT}s: {e}", tx_hash)

        if receipt['status'] != 1:
            raise TradeExecutionError(f"{label} transaction failed: {tx_hash}", tx_hash)
        return tx_hash, receipt

    def _get_gas_price(self) -> int:
        """Get gas price in wei."""
        if self.config.GAS_PRICE_GWEI:
            return self.w3.to_wei(Decimal(self.config.GAS_PRICE_GWEI), 'gwei')
        else:
            return self.w3.eth.gas_price
