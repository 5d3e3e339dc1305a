"""
Configuration module for the band trading bot.
Loads and validates all environment variables.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import StrategyConfig

# Load environment variables from .env file if present
load_dotenv()

TRUE_VALUES = ("true", "1", "yes")
FALSE_VALUES = ("false", "0", "no")


class Config:
    """Configuration loaded from environment variables."""

    def __init__(self):
        """Initialize and validate all configuration values."""

        self.DRY_RUN = self._get_bool("DRY_RUN", False)

        # Blockchain & DEX configuration
        self.RPC_URL = self._require_env("RPC_URL")
        self.POOL_ADDRESS = self._require_env("POOL_ADDRESS")
        self.BASE_TOKEN_ADDRESS = self._require_env("BASE_TOKEN_ADDRESS")
        self.QUOTE_TOKEN_ADDRESS = self._require_env("QUOTE_TOKEN_ADDRESS")
        if self.DRY_RUN:
            self.WALLET_PRIVATE_KEY = os.getenv("WALLET_PRIVATE_KEY")
            self.SWAP_ROUTER_ADDRESS = os.getenv("SWAP_ROUTER_ADDRESS")
        else:
            self.WALLET_PRIVATE_KEY = self._require_env("WALLET_PRIVATE_KEY")
            self.SWAP_ROUTER_ADDRESS = self._require_env("SWAP_ROUTER_ADDRESS")
        self.QUOTE_IS_TOKEN1 = self._get_optional_bool("QUOTE_IS_TOKEN1")

        # Strategy configuration
        self.POOL_FEE = self._get_int("POOL_FEE", 3000)
        self.TRADE_AMOUNT = self._get_decimal("TRADE_AMOUNT")
        self.MA_PERIOD = self._get_int("MA_PERIOD", 20)
        self.SMA_OFFSET_PCT = self._get_decimal("SMA_OFFSET_PCT", "1")
        self.TAKE_PROFIT_PCT = self._get_decimal("TAKE_PROFIT_PCT", "2")
        self.MAX_TAKE_PROFIT_COUNT = self._get_int("MAX_TAKE_PROFIT_COUNT", 1)
        self.CYCLE_SECONDS = float(self._get_decimal("CYCLE_SECONDS", "300"))
        self.STOP_LOSS_REVERSAL = self._get_bool("STOP_LOSS_REVERSAL", True)
        self.REENTRY_GATING = self._get_bool("REENTRY_GATING", True)
        self.STOP_LOSS_FIRST = self._get_bool("STOP_LOSS_FIRST", False)

        # Gas configuration (optional)
        self.GAS_PRICE_GWEI = os.getenv("GAS_PRICE_GWEI")  # None = use network default
        self.GAS_LIMIT = self._get_int("GAS_LIMIT", 350000)

        # RPC configuration
        self.RPC_TIMEOUT = self._get_int("RPC_TIMEOUT", 30)
        self.RPC_MAX_RETRIES = self._get_int("RPC_MAX_RETRIES", 3)
        self.TX_TIMEOUT = self._get_int("TX_TIMEOUT", 300)

        # Logging configuration
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FILE_PATH = os.getenv("LOG_FILE_PATH", "bandbot.log")
        self.ENABLE_LOG_ROTATION = self._get_bool("ENABLE_LOG_ROTATION", True)
        self.MAX_LOG_SIZE_MB = self._get_int("MAX_LOG_SIZE_MB", 10)
        self.LOG_BACKUP_COUNT = self._get_int("LOG_BACKUP_COUNT", 5)

        # Validate addresses
        self._validate_address(self.POOL_ADDRESS, "POOL_ADDRESS")
        self._validate_address(self.BASE_TOKEN_ADDRESS, "BASE_TOKEN_ADDRESS")
        self._validate_address(self.QUOTE_TOKEN_ADDRESS, "QUOTE_TOKEN_ADDRESS")
        if self.SWAP_ROUTER_ADDRESS:
            self._validate_address(self.SWAP_ROUTER_ADDRESS, "SWAP_ROUTER_ADDRESS")
        if self.BASE_TOKEN_ADDRESS.lower() == self.QUOTE_TOKEN_ADDRESS.lower():
            raise ConfigurationError("BASE_TOKEN_ADDRESS and QUOTE_TOKEN_ADDRESS must differ")

        # Validate private key format
        if self.WALLET_PRIVATE_KEY:
            self._validate_private_key(self.WALLET_PRIVATE_KEY)

        if self.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid LOG_LEVEL: {self.LOG_LEVEL}")

        self.strategy = self._build_strategy()

    def _build_strategy(self) -> StrategyConfig:
        """Turn the strategy variables into a validated StrategyConfig."""
        try:
            return StrategyConfig(
                trade_amount=self.TRADE_AMOUNT,
                ma_period=self.MA_PERIOD,
                offset_pct=self.SMA_OFFSET_PCT / 100,
                take_profit_pct=self.TAKE_PROFIT_PCT / 100,
                max_take_profit_count=self.MAX_TAKE_PROFIT_COUNT,
                pool_fee=self.POOL_FEE,
                cycle_seconds=self.CYCLE_SECONDS,
                stop_loss_reversal=self.STOP_LOSS_REVERSAL,
                reentry_gating=self.REENTRY_GATING,
                stop_loss_first=self.STOP_LOSS_FIRST,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid strategy configuration: {e}")

    @staticmethod
    def _require_env(key: str) -> str:
        """Get required environment variable or raise error."""
        value = os.getenv(key)
        if not value:
            raise ConfigurationError(f"Required environment variable '{key}' is not set")
        return value

    @classmethod
    def _get_decimal(cls, key: str, default: Optional[str] = None) -> Decimal:
        value = os.getenv(key, default) if default is not None else cls._require_env(key)
        try:
            number = Decimal(value)
        except InvalidOperation:
            raise ConfigurationError(f"{key} must be a number, got '{value}'")
        if not number.is_finite():
            raise ConfigurationError(f"{key} must be a finite number, got '{value}'")
        return number

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got '{value}'")

    @classmethod
    def _get_bool(cls, key: str, default: bool) -> bool:
        value = cls._get_optional_bool(key)
        return default if value is None else value

    @staticmethod
    def _get_optional_bool(key: str) -> Optional[bool]:
        value = os.getenv(key)
        if value is None or value == "":
            return None
        value = value.strip().lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} must be true or false, got '{value}'")

    @staticmethod
    def _validate_address(address: str, name: str) -> None:
        """Validate Ethereum address format."""
        if not address.startswith("0x") or len(address) != 42:
            raise ConfigurationError(
                f"{name} must be a valid Ethereum address (0x + 40 hex chars)"
            )
        try:
            int(address[2:], 16)
        except ValueError:
            raise ConfigurationError(f"{name} must contain only hexadecimal characters")

    @staticmethod
    def _validate_private_key(private_key: str) -> None:
        """Validate private key format."""
        # Remove 0x prefix if present
        key = private_key[2:] if private_key.startswith("0x") else private_key
        if len(key) != 64:
            raise ConfigurationError("WALLET_PRIVATE_KEY must be 64 hex characters (with or without 0x prefix)")
        try:
            int(key, 16)
        except ValueError:
            raise ConfigurationError("WALLET_PRIVATE_KEY must contain only hexadecimal characters")
