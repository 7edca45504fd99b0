"""
Logging configuration for cleaner scanner output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure root logging for the scanner CLI.

    - Suppresses per-request logs from web3 and urllib3
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
        )
    )
    root.addHandler(console)

    # Noisy HTTP / RPC loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    # Application loggers follow the chosen level and print through root only
    app_logger = logging.getLogger("pool_arbitrage")
    app_logger.setLevel(level)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("pool_arbitrage"):
            logger = logging.getLogger(name)
            logger.setLevel(level)
            logger.handlers.clear()
    logging.getLogger("__main__").setLevel(level)


def setup_minimal():
    """
    Only warnings and errors.
    Good for production or when you only care about problems.
    """
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging, including RPC requests.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("web3").setLevel(logging.DEBUG)
