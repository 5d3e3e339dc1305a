"""
Exception types raised by the bot.
"""


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid."""


class PriceUnavailable(Exception):
    """Raised when the pool price cannot be read or is not usable."""


class TradeExecutionError(Exception):
    """
    Raised when a swap could not be executed or was reverted on-chain.
    Carries the transaction hash when one was already sent.
    """

    def __init__(self, message: str, tx_hash: str = ""):
        super().__init__(message)
        self.tx_hash = tx_hash
