"""
End-to-end scenarios: real normalizer, finders, simulator and evaluator
wired together through the scheduler, with fakes only at the I/O seams.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from pool_arbitrage.adapters import LoggingTradeSubmitter, StaticPriceOracle
from pool_arbitrage.constants import RATE_SCALE, DexType
from pool_arbitrage.exceptions import ZeroOutput
from pool_arbitrage.finders import SpatialFinder, TriangularFinder
from pool_arbitrage.pricing import PriceNormalizer
from pool_arbitrage.profitability import ProfitabilityEvaluator, ProfitSettings
from pool_arbitrage.scheduler import CycleScheduler
from pool_arbitrage.simulator import SwapSimulator
from pool_arbitrage.types import GasEstimate, PoolConfig

from pool_factories import ARB, DAI, USDC, WETH, cp_pool

SIGNER = "0x00000000000000000000000000000000000000aa"


def _evaluator(flash_loan_fee_bps=0):
    gas = Mock()
    gas.estimate = AsyncMock(return_value=GasEstimate(0, 0, True))
    return ProfitabilityEvaluator(
        simulator=SwapSimulator(),
        oracle=StaticPriceOracle(WETH, {}),
        gas_estimator=gas,
        settings=ProfitSettings(flash_loan_fee_bps=flash_loan_fee_bps),
    )


def _scheduler(states, finders, evaluator):
    by_address = {state.address: state for state in states}
    fetcher = Mock()
    fetcher.fetch_pool_state = AsyncMock(
        side_effect=lambda config: by_address[config.address]
    )
    configs = [
        PoolConfig(
            name=state.name,
            address=state.address,
            dex_type=DexType.CONSTANT_PRODUCT,
            token0=state.token0.symbol,
            token1=state.token1.symbol,
            fee_bps=state.fee_bps,
            dex=state.dex,
        )
        for state in states
    ]
    return CycleScheduler(
        pool_configs=configs,
        fetcher=fetcher,
        finders=finders,
        evaluator=evaluator,
        submitter=LoggingTradeSubmitter(),
        signer=SIGNER,
        poll_interval_sec=0,
    )


class TestSpatialScenario:
    """Two WETH/USDC pools on different venues, 1800 vs 1850 USDC per WETH."""

    def setup_method(self):
        self.sushi = cp_pool(
            1, WETH, USDC, 1000 * 10**18, 1_800_000 * 10**6, dex="sushiswap"
        )
        self.camelot = cp_pool(
            2, WETH, USDC, 1000 * 10**18, 1_850_000 * 10**6, dex="camelot"
        )
        self.finder = SpatialFinder(trade_amounts={"WETH": 10**18})

    @pytest.mark.asyncio
    async def test_detected_and_profitable(self):
        (opportunity,) = self.finder.find([self.sushi, self.camelot])
        first, second = opportunity.path
        assert (first.pool, first.token_in, first.token_out) == (self.camelot, WETH, USDC)
        assert (second.pool, second.token_in, second.token_out) == (self.sushi, USDC, WETH)

        decision = await _evaluator().evaluate(opportunity, SIGNER)

        assert decision.profitable
        descriptor = decision.descriptor
        assert descriptor.simulated_amount_out > 10**18
        assert descriptor.gross_profit == descriptor.simulated_amount_out - 10**18
        assert descriptor.net_profit == descriptor.gross_profit
        assert descriptor.intermediate_amounts[0] == SwapSimulator().simulate(
            self.camelot, WETH, 10**18
        )

    @pytest.mark.asyncio
    async def test_full_cycle_hands_off_trade(self):
        scheduler = _scheduler(
            [self.sushi, self.camelot], [self.finder], _evaluator()
        )

        summary = await scheduler.run_cycle()

        assert summary.pools_fetched == 2
        assert summary.opportunities_found == 1
        assert summary.profitable_count == 1
        assert summary.submitted_count == 1
        (descriptor,) = scheduler.submitter.submitted
        assert descriptor.opportunity.describe() == "WETH -> USDC -> WETH"

    @pytest.mark.asyncio
    async def test_repeat_cycles_are_identical(self):
        scheduler = _scheduler(
            [self.sushi, self.camelot], [self.finder], _evaluator()
        )

        await scheduler.run_cycle()
        await scheduler.run_cycle()

        first, second = scheduler.submitter.submitted
        assert first == second


class TestEmptyPoolScenario:
    """A pool with an empty reserve never takes part in a path."""

    def test_excluded_everywhere(self):
        sushi = cp_pool(1, WETH, USDC, 1000 * 10**18, 1_800_000 * 10**6, dex="sushiswap")
        empty = cp_pool(2, WETH, USDC, 1000 * 10**18, 0, dex="camelot")
        uniswap = cp_pool(3, WETH, USDC, 1000 * 10**18, 1_900_000 * 10**6, dex="uniswap")
        pools = [sushi, empty, uniswap]

        assert PriceNormalizer().price(empty) is None
        with pytest.raises(ZeroOutput):
            SwapSimulator().simulate(empty, WETH, 10**18)

        opportunities = SpatialFinder().find(pools) + TriangularFinder().find(pools)
        assert opportunities
        for opportunity in opportunities:
            assert empty.address not in opportunity.pool_addresses


class TestBalancedTriangleScenario:
    """Fee-free triangle whose prices multiply to exactly 1."""

    def test_not_emitted_at_unit_threshold(self):
        pools = [
            cp_pool(1, WETH, ARB, 1000 * 10**18, 2000 * 10**18, fee_bps=0),
            cp_pool(2, ARB, DAI, 1000 * 10**18, 1000 * 10**18, fee_bps=0),
            cp_pool(3, DAI, WETH, 1000 * 10**18, 500 * 10**18, fee_bps=0),
        ]
        finder = TriangularFinder(profit_threshold_scaled=RATE_SCALE)
        assert finder.find(pools) == []

    @pytest.mark.asyncio
    async def test_scheduler_cycle_finds_nothing(self):
        pools = [
            cp_pool(1, WETH, ARB, 1000 * 10**18, 2000 * 10**18, fee_bps=0),
            cp_pool(2, ARB, DAI, 1000 * 10**18, 1000 * 10**18, fee_bps=0),
            cp_pool(3, DAI, WETH, 1000 * 10**18, 500 * 10**18, fee_bps=0),
        ]
        scheduler = _scheduler(
            pools,
            [TriangularFinder(profit_threshold_scaled=RATE_SCALE)],
            _evaluator(),
        )

        summary = await scheduler.run_cycle()

        assert summary.pools_fetched == 3
        assert summary.opportunities_found == 0
        assert scheduler.submitter.submitted == []
