"""Tests for the triangular cycle finder."""

import pytest

from pool_arbitrage.constants import RATE_SCALE, OpportunityKind
from pool_arbitrage.finders import TriangularFinder
from pool_arbitrage.finders.triangular import build_token_graph, fee_multiplier_scaled

from pool_factories import ARB, DAI, USDC, WETH, cp_pool


def _triangle(dai_weth_reserve1, fee_bps=30):
    """WETH->ARB at 2, ARB->DAI at 1, DAI->WETH at dai_weth_reserve1 / 1000."""
    return [
        cp_pool(1, WETH, ARB, 1000 * 10**18, 2000 * 10**18, fee_bps=fee_bps),
        cp_pool(2, ARB, DAI, 1000 * 10**18, 1000 * 10**18, fee_bps=fee_bps),
        cp_pool(3, DAI, WETH, 1000 * 10**18, dai_weth_reserve1, fee_bps=fee_bps),
    ]


class TestFeeMultiplier:
    def test_no_fees(self):
        assert fee_multiplier_scaled([0, 0, 0]) == RATE_SCALE

    def test_three_fees(self):
        assert fee_multiplier_scaled([30, 30, 30]) == (
            RATE_SCALE * 9970**3 // 10000**3
        )


class TestTokenGraph:
    def test_edges_keyed_by_pool(self):
        graph = build_token_graph(_triangle(550 * 10**18))
        assert sorted(graph.nodes) == ["ARB", "DAI", "WETH"]
        assert graph.number_of_edges() == 3

    def test_pool_without_price_left_out(self):
        pools = _triangle(550 * 10**18)
        pools.append(cp_pool(4, WETH, USDC, 10**18, 0))
        graph = build_token_graph(pools)
        assert "USDC" not in graph.nodes
        assert graph.number_of_edges() == 3


class TestTriangularFinder:
    def test_finds_profitable_cycle_once(self):
        opportunities = TriangularFinder(trade_amounts={"WETH": 10**18}).find(
            _triangle(550 * 10**18)
        )

        assert len(opportunities) == 1
        opportunity = opportunities[0]
        assert opportunity.kind is OpportunityKind.TRIANGULAR
        assert opportunity.describe() == "WETH -> ARB -> DAI -> WETH"
        assert opportunity.amount_in == 10**18
        assert opportunity.estimated_rate_scaled == (
            11 * RATE_SCALE // 10 * fee_multiplier_scaled([30, 30, 30]) // RATE_SCALE
        )

    def test_cycle_closes_over_distinct_pools(self):
        (opportunity,) = TriangularFinder().find(_triangle(550 * 10**18))
        path = opportunity.path

        assert len({hop.pool.key for hop in path}) == 3
        assert path[-1].token_out == path[0].token_in
        for current, following in zip(path, path[1:]):
            assert current.token_out == following.token_in

    def test_default_amount_is_one_unit(self):
        (opportunity,) = TriangularFinder().find(_triangle(550 * 10**18))
        assert opportunity.amount_in == opportunity.token_in.unit

    def test_balanced_cycle_is_not_emitted(self):
        finder = TriangularFinder(profit_threshold_scaled=RATE_SCALE)
        assert finder.find(_triangle(500 * 10**18, fee_bps=0)) == []

    def test_threshold_is_strict(self):
        finder = TriangularFinder(profit_threshold_scaled=RATE_SCALE - 1)
        assert len(finder.find(_triangle(500 * 10**18, fee_bps=0))) == 1

    def test_fees_can_erase_the_edge(self):
        # 0.5% raw edge, three 0.3% fees
        assert TriangularFinder().find(_triangle(5025 * 10**17)) == []

    def test_parallel_pools_never_reused_in_one_path(self):
        pools = _triangle(550 * 10**18)
        pools.append(
            cp_pool(5, WETH, ARB, 1000 * 10**18, 2100 * 10**18, dex="camelot")
        )
        opportunities = TriangularFinder().find(pools)

        assert len(opportunities) == 2
        keys = {o.dedup_key for o in opportunities}
        assert len(keys) == 2
        for opportunity in opportunities:
            assert len(set(opportunity.dedup_key)) == 3

    def test_missing_leg_means_no_cycle(self):
        pools = _triangle(550 * 10**18)[:2]
        assert TriangularFinder().find(pools) == []

    @pytest.mark.parametrize("start", ["ARB", "DAI", "WETH"])
    def test_rotation_to_preferred_start(self, start):
        finder = TriangularFinder(trade_amounts={start: 5 * 10**18})
        (opportunity,) = finder.find(_triangle(550 * 10**18))
        assert opportunity.token_in.symbol == start
        assert opportunity.amount_in == 5 * 10**18

    def test_repeat_search_is_identical(self):
        pools = _triangle(550 * 10**18)
        finder = TriangularFinder()
        assert finder.find(pools) == finder.find(pools)
