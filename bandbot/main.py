"""
Main entry point of the band trading bot.
Loads configuration, wires the components and runs the trading loop.
"""

import logging
import signal
import sys
from logging.handlers import RotatingFileHandler

from .config import Config
from .dex_client import DexClient
from .gateways import PaperTradeGateway
from .price_oracle import PriceOracle
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config: Config) -> None:
    """Console and (rotating) file logging on the root logger."""
    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # File handler with rotation
    if config.ENABLE_LOG_ROTATION:
        file_handler = RotatingFileHandler(
            config.LOG_FILE_PATH,
            maxBytes=config.MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=config.LOG_BACKUP_COUNT
        )
    else:
        file_handler = logging.FileHandler(config.LOG_FILE_PATH)

    file_handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.LOG_LEVEL))
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


def setup_signal_handlers(scheduler: Scheduler) -> None:
    """Setup graceful shutdown handlers."""
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, stopping after current cycle...")
        scheduler.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def build_scheduler(config: Config) -> Scheduler:
    """Create the DEX client, oracle and gateway for a loaded config."""
    dex_client = DexClient(config)
    logger.info("DEX client initialized")

    oracle = PriceOracle(
        pool=dex_client,
        metadata=dex_client,
        quote_token=config.QUOTE_TOKEN_ADDRESS,
        quote_is_token1=config.QUOTE_IS_TOKEN1,
    )

    if config.DRY_RUN:
        logger.info("DRY_RUN enabled, swaps will only be logged")
        gateway = PaperTradeGateway()
    else:
        gateway = dex_client

    return Scheduler(oracle, gateway, config.strategy)


def main() -> None:
    """Main entry point for the bot."""
    try:
        config = Config()
    except ValueError as e:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(config)
    logger.info("Starting band trading bot...")

    strategy = config.strategy
    logger.info(
        f"Strategy: amount={strategy.trade_amount}, MA period={strategy.ma_period}, "
        f"offset={strategy.offset_pct}, take-profit={strategy.take_profit_pct}, "
        f"max take-profits={strategy.max_take_profit_count}, fee={strategy.pool_fee}ppm, "
        f"cycle={strategy.cycle_seconds}s, reversal={strategy.stop_loss_reversal}, "
        f"re-entry gating={strategy.reentry_gating}"
    )

    try:
        scheduler = build_scheduler(config)
    except Exception as e:
        logger.error(f"Failed to initialize bot: {e}", exc_info=True)
        sys.exit(1)

    setup_signal_handlers(scheduler)

    try:
        scheduler.run()
    finally:
        logger.info("Bot shutdown complete")


if __name__ == '__main__':
    main()
