"""
Constants and enums for the pool arbitrage scanner.

Centralizes fixed-point scales, basis-point denominators and operational
defaults so that every price/profit computation uses the same integers.
"""

from enum import Enum

# Fixed-point scales: single prices carry 18 decimals, products of two prices 36
PRICE_SCALE = 10**18
RATE_SCALE = 10**36

BPS_DENOMINATOR = 10_000

# Uniswap V3 fees are expressed in hundredths of a basis point
PIPS_DENOMINATOR = 1_000_000
PIPS_PER_BPS = 100

Q96 = 2**96
Q192 = 2**192

MAX_UINT128 = 2**128 - 1


class DexType(Enum):
    """AMM mechanics supported by the scanner."""

    CONSTANT_PRODUCT = "constant_product"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"
    PMM = "pmm"


class OpportunityKind(Enum):
    """Shape of an arbitrage path."""

    SPATIAL = "spatial"
    TRIANGULAR = "triangular"


# Config spellings accepted for each DEX type
DEX_TYPE_ALIASES = {
    "v2": DexType.CONSTANT_PRODUCT,
    "sushiswap": DexType.CONSTANT_PRODUCT,
    "camelot": DexType.CONSTANT_PRODUCT,
    "constant_product": DexType.CONSTANT_PRODUCT,
    "v3": DexType.CONCENTRATED_LIQUIDITY,
    "uniswapv3": DexType.CONCENTRATED_LIQUIDITY,
    "concentrated_liquidity": DexType.CONCENTRATED_LIQUIDITY,
    "dodo": DexType.PMM,
    "pmm": DexType.PMM,
}

# Tick spacing per V3 fee tier (fee in pips)
V3_TICK_SPACING = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}

# Default configuration values
DEFAULT_CONFIG = {
    "POLL_INTERVAL_SEC": 5.0,
    "PROFIT_MULTIPLIER": "1.0005",
    "PROFIT_BUFFER_BPS": 1000,
    "FLASH_LOAN_FEE_BPS": 9,
    "TITHE_BPS": 3000,
    "GAS_ESTIMATE_BUFFER_PCT": 20,
    "FALLBACK_GAS_LIMIT": 3_000_000,
    "MAX_CONCURRENT_FETCHES": 8,
    "TICK_CACHE_TTL_SEC": 15.0,
}

# Revert reasons from a DODO sell query that mean "no liquidity" rather than failure
PMM_EMPTY_REVERT_REASONS = ("BALANCE_NOT_ENOUGH", "TARGET_IS_ZERO")
