"""
Common helpers for the pool arbitrage scanner.

Logger setup, profit-multiplier parsing and formatting of integer token
amounts for log lines.
"""

import logging
from decimal import Decimal
from typing import Union

from .constants import RATE_SCALE


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    minutes = seconds / 60
    return f"{minutes:.1f}m"


def format_units(amount: int, decimals: int) -> str:
    """
    Render a smallest-unit integer amount as a human-readable decimal string.

    Only used for log output; money math never leaves the integer domain.
    """
    return str(Decimal(amount).scaleb(-decimals).normalize())


def short_address(address: str) -> str:
    """Shorten an address for log prefixes (0x1234...abcd)."""
    if not address or len(address) < 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def multiplier_to_scaled(multiplier: Union[str, float, Decimal]) -> int:
    """
    Convert a profit multiplier like 1.0005 to an integer scaled by 10^36.

    Goes through the decimal string so 1.0005 becomes exactly
    1000500000000000000000000000000000000.

    Raises:
        ValueError: If the multiplier is not a positive number
    """
    value = Decimal(str(multiplier))
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Multiplier must be a positive number: {multiplier}")
    return int(value * RATE_SCALE)


def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a module logger with the scanner's line format.

    A stream handler is attached once per logger; logging_config.setup()
    strips it again so CLI output goes through the root handler only.
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger
