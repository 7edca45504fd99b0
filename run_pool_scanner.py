#!/usr/bin/env python3
"""
DEX pool arbitrage scanner CLI.

Polls the configured pools, searches spatial and triangular opportunities,
evaluates them and hands profitable trades to the paper submitter.

Usage:
    python3 run_pool_scanner.py
    python3 run_pool_scanner.py --config configs/arbitrum.yaml
    python3 run_pool_scanner.py --config configs/arbitrum.yaml --once
"""

import argparse
import asyncio
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

import logging_config
from pool_arbitrage.adapters import (
    ChainedPriceOracle,
    CoinGeckoPriceOracle,
    LoggingTradeSubmitter,
    PoolPriceOracle,
    StaticPriceOracle,
    Web3GasEstimator,
    Web3PoolStateFetcher,
)
from pool_arbitrage.config import (
    ArbitrageConfig,
    build_pool_configs,
    build_token_registry,
    load_config,
    profit_settings,
    profit_threshold_scaled,
    static_price_table,
    trade_amounts_in_units,
)
from pool_arbitrage.exceptions import ConfigurationError
from pool_arbitrage.finders import SpatialFinder, TriangularFinder
from pool_arbitrage.pricing import PriceNormalizer
from pool_arbitrage.profitability import ProfitabilityEvaluator
from pool_arbitrage.scheduler import CycleScheduler
from pool_arbitrage.simulator import SwapSimulator
from pool_arbitrage.tick_cache import TickDataCache

# Used for gas estimation when no signer is configured
DEFAULT_SIGNER = "0x0000000000000000000000000000000000000001"


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DEX pool arbitrage scanner (paper hand-off)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_pool_scanner.py

  # Single cycle (for testing/CI)
  python3 run_pool_scanner.py --config configs/arbitrum.yaml --once

  # Ten cycles with debug output
  python3 run_pool_scanner.py --max-cycles 10 --debug
        """,
    )
    parser.add_argument(
        "--config",
        default="configs/arbitrum.yaml",
        help="Path to config YAML file (default: configs/arbitrum.yaml)",
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single cycle and exit"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many cycles (default: run until interrupted)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="Verbose logging")
    verbosity.add_argument(
        "--quiet", action="store_true", help="Only warnings and errors"
    )
    return parser.parse_args(argv)


def build_scheduler(
    config: ArbitrageConfig, web3: Web3, signer: str
) -> CycleScheduler:
    """Wire the scanner components from a validated config."""
    registry = build_token_registry(config)
    native = registry.native
    pool_configs = build_pool_configs(config)
    threshold = profit_threshold_scaled(config)
    trade_amounts = trade_amounts_in_units(config, registry)

    fetcher = Web3PoolStateFetcher(web3, registry)
    tick_cache = TickDataCache(
        fetcher.fetch_initialized_ticks, ttl_sec=config.tick_cache_ttl_sec
    )
    normalizer = PriceNormalizer()

    pool_oracle = PoolPriceOracle(native, normalizer)
    oracles = [pool_oracle]
    if config.static_prices:
        oracles.append(StaticPriceOracle(native, static_price_table(config)))
    if config.coingecko_fallback:
        oracles.append(CoinGeckoPriceOracle(native))

    evaluator = ProfitabilityEvaluator(
        simulator=SwapSimulator(fetcher=fetcher, tick_provider=tick_cache),
        oracle=ChainedPriceOracle(oracles),
        gas_estimator=Web3GasEstimator(
            web3,
            buffer_pct=config.gas_estimate_buffer_pct,
            fallback_gas_limit=config.fallback_gas_limit,
        ),
        settings=profit_settings(config),
    )

    return CycleScheduler(
        pool_configs=pool_configs,
        fetcher=fetcher,
        finders=[
            SpatialFinder(normalizer, threshold, trade_amounts),
            TriangularFinder(normalizer, threshold, trade_amounts),
        ],
        evaluator=evaluator,
        submitter=LoggingTradeSubmitter(),
        signer=signer,
        poll_interval_sec=config.poll_interval_sec,
        max_concurrent_fetches=config.max_concurrent_fetches,
        snapshot_listeners=[pool_oracle.update],
    )


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    rpc_url = config.resolved_rpc_url
    if not rpc_url:
        print("❌ Config error: no rpc_url in config and RPC_URL not set", file=sys.stderr)
        return 1

    try:
        web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
        if not web3.is_connected():
            raise ConnectionError(f"Failed to connect to RPC at {rpc_url}")
        signer = os.getenv("SIGNER_ADDRESS") or DEFAULT_SIGNER
        scheduler = build_scheduler(config, web3, signer)
    except (ConfigurationError, ConnectionError) as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 1

    max_cycles = 1 if args.once else args.max_cycles
    try:
        asyncio.run(scheduler.run_forever(max_cycles=max_cycles))
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
