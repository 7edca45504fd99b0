"""Tests for the cross-venue spatial finder."""

from pool_arbitrage.constants import RATE_SCALE, OpportunityKind
from pool_arbitrage.finders import SpatialFinder

from pool_factories import ARB, USDC, WETH, cp_pool, pmm_pool


def _pools(price_a=1_800_000, price_b=1_850_000, venue_a="sushiswap", venue_b="camelot"):
    pool1 = cp_pool(1, WETH, USDC, 1000 * 10**18, price_a * 10**6, dex=venue_a)
    pool2 = cp_pool(2, WETH, USDC, 1000 * 10**18, price_b * 10**6, dex=venue_b)
    return pool1, pool2


class TestSpatialFinder:
    def test_finds_cross_venue_discrepancy(self):
        pool1, pool2 = _pools()
        opportunities = SpatialFinder(trade_amounts={"WETH": 10**18}).find([pool1, pool2])

        assert len(opportunities) == 1
        opportunity = opportunities[0]
        assert opportunity.kind is OpportunityKind.SPATIAL
        assert opportunity.amount_in == 10**18
        assert opportunity.estimated_rate_scaled > RATE_SCALE

        first, second = opportunity.path
        # Sell WETH where it is expensive, buy it back where it is cheap
        assert first.pool is pool2 and first.token_in == WETH
        assert second.pool is pool1 and second.token_in == USDC
        assert second.token_out == WETH

    def test_default_start_token_is_counter_token(self):
        pool1, pool2 = _pools()
        opportunities = SpatialFinder().find([pool1, pool2])

        assert len(opportunities) == 1
        opportunity = opportunities[0]
        assert opportunity.token_in == USDC
        assert opportunity.amount_in == USDC.unit
        assert opportunity.path[0].pool is pool1
        assert opportunity.describe() == "USDC -> WETH -> USDC"

    def test_same_venue_never_compared(self):
        pool1, pool2 = _pools(price_b=2_500_000, venue_b="sushiswap")
        assert SpatialFinder().find([pool1, pool2]) == []

    def test_equal_prices_not_flagged(self):
        pool1, pool2 = _pools(price_b=1_800_000)
        assert SpatialFinder().find([pool1, pool2]) == []

    def test_gap_inside_fees_not_flagged(self):
        # 0.4% apart, two 0.3% fees
        pool1, pool2 = _pools(price_b=1_807_200)
        assert SpatialFinder().find([pool1, pool2]) == []

    def test_different_pairs_not_compared(self):
        pool1 = cp_pool(1, WETH, USDC, 1000 * 10**18, 1_800_000 * 10**6, dex="sushiswap")
        pool2 = cp_pool(2, WETH, ARB, 1000 * 10**18, 3_000_000 * 10**18, dex="camelot")
        assert SpatialFinder().find([pool1, pool2]) == []

    def test_pool_without_price_excluded(self):
        pool1, _ = _pools()
        empty = cp_pool(3, WETH, USDC, 1000 * 10**18, 0, dex="camelot")
        assert SpatialFinder().find([pool1, empty]) == []

    def test_reversed_token_order_is_same_pair(self):
        pool1, _ = _pools()
        flipped = cp_pool(
            4, USDC, WETH, 1_850_000 * 10**6, 1000 * 10**18, dex="camelot"
        )
        opportunities = SpatialFinder(trade_amounts={"WETH": 10**18}).find(
            [pool1, flipped]
        )

        assert len(opportunities) == 1
        first, second = opportunities[0].path
        assert first.pool is flipped and first.token_in == WETH
        assert second.pool is pool1 and second.token_out == WETH

    def test_cheap_pool_in_reversed_token_order(self):
        expensive = cp_pool(
            1, WETH, USDC, 1000 * 10**18, 1_850_000 * 10**6, dex="sushiswap"
        )
        cheap_flipped = cp_pool(
            2, USDC, WETH, 1_800_000 * 10**6, 1000 * 10**18, dex="camelot"
        )
        opportunities = SpatialFinder(trade_amounts={"WETH": 10**18}).find(
            [expensive, cheap_flipped]
        )

        assert len(opportunities) == 1
        first, second = opportunities[0].path
        assert first.pool is expensive and first.token_in == WETH
        assert second.pool is cheap_flipped and second.token_out == WETH

    def test_reversed_pmm_pool_found_in_either_direction(self):
        pool1, _ = _pools()
        cheap_pmm = pmm_pool(
            5, USDC, WETH, base=WETH, query_amount_out_wei=1700 * 10**6, dex="dodo"
        )
        dear_pmm = pmm_pool(
            6, USDC, WETH, base=WETH, query_amount_out_wei=1900 * 10**6, dex="dodo"
        )

        assert len(SpatialFinder().find([pool1, cheap_pmm])) == 1
        assert len(SpatialFinder().find([pool1, dear_pmm])) == 1

    def test_mixed_mechanics(self):
        pool1, _ = _pools()
        pmm = pmm_pool(5, WETH, USDC, base=WETH, query_amount_out_wei=1900 * 10**6, dex="dodo")
        opportunities = SpatialFinder().find([pool1, pmm])
        assert len(opportunities) == 1
        assert {hop.pool.key for hop in opportunities[0].path} == {pool1.key, pmm.key}

    def test_at_most_one_opportunity_per_pool_pair(self):
        pool1, pool2 = _pools()
        third = cp_pool(6, WETH, USDC, 1000 * 10**18, 1_900_000 * 10**6, dex="uniswap")
        opportunities = SpatialFinder().find([pool1, pool2, third])

        keys = [o.dedup_key for o in opportunities]
        assert len(keys) == len(set(keys))
        for opportunity in opportunities:
            venues = {hop.pool.venue for hop in opportunity.path}
            assert len(venues) == 2

    def test_threshold_is_respected(self):
        pool1, pool2 = _pools()
        strict = SpatialFinder(profit_threshold_scaled=2 * RATE_SCALE)
        assert strict.find([pool1, pool2]) == []

    def test_repeat_search_is_identical(self):
        pools = list(_pools())
        finder = SpatialFinder(trade_amounts={"WETH": 10**18})
        assert finder.find(pools) == finder.find(pools)
