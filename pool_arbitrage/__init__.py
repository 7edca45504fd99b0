"""
DEX Pool Arbitrage Scanner.

Detects and evaluates arbitrage opportunities across constant-product,
concentrated-liquidity and PMM pools on a single chain: normalizes pool
prices, searches spatial (2-pool) and triangular (3-pool) discrepancies,
simulates the realistic swap outcome and decides profitability after flash
loan fee, gas and a safety buffer.
"""

PROJECT_NAME = "pool-arbitrage-scanner"
VERSION = "0.4.0"

from pool_arbitrage.constants import DexType, OpportunityKind  # noqa: E402
from pool_arbitrage.exceptions import (  # noqa: E402
    ConfigurationError,
    ConversionFailure,
    DataUnavailable,
    EvaluationError,
    InvalidToken,
    PoolArbitrageError,
    SimulationRejected,
    ZeroOutput,
)
from pool_arbitrage.finders import SpatialFinder, TriangularFinder  # noqa: E402
from pool_arbitrage.pricing import PriceNormalizer, effective_prices  # noqa: E402
from pool_arbitrage.profitability import (  # noqa: E402
    ProfitabilityEvaluator,
    ProfitSettings,
)
from pool_arbitrage.scheduler import CycleScheduler  # noqa: E402
from pool_arbitrage.simulator import SwapSimulator  # noqa: E402
from pool_arbitrage.tokens import TokenRegistry  # noqa: E402
from pool_arbitrage.types import (  # noqa: E402
    Decision,
    Hop,
    Opportunity,
    PoolConfig,
    PoolState,
    Token,
    TradeDescriptor,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "DexType",
    "OpportunityKind",
    "PoolArbitrageError",
    "ConfigurationError",
    "DataUnavailable",
    "SimulationRejected",
    "ZeroOutput",
    "InvalidToken",
    "ConversionFailure",
    "EvaluationError",
    "PriceNormalizer",
    "effective_prices",
    "SwapSimulator",
    "SpatialFinder",
    "TriangularFinder",
    "ProfitabilityEvaluator",
    "ProfitSettings",
    "CycleScheduler",
    "TokenRegistry",
    "Token",
    "PoolConfig",
    "PoolState",
    "Hop",
    "Opportunity",
    "TradeDescriptor",
    "Decision",
]
