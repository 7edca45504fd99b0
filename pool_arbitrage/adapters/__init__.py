"""
web3, HTTP and logging implementations of the collaborator interfaces.
"""

from .gas import Web3GasEstimator
from .oracle import (
    ChainedPriceOracle,
    CoinGeckoPriceOracle,
    PoolPriceOracle,
    StaticPriceOracle,
)
from .submitter import LoggingTradeSubmitter
from .web3_fetcher import Web3PoolStateFetcher

__all__ = [
    "ChainedPriceOracle",
    "CoinGeckoPriceOracle",
    "LoggingTradeSubmitter",
    "PoolPriceOracle",
    "StaticPriceOracle",
    "Web3GasEstimator",
    "Web3PoolStateFetcher",
]
