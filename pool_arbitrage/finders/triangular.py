"""
Triangular arbitrage finder.

Builds an undirected multigraph of tokens (nodes) and pools (edges, keyed by
pool address) with NetworkX, then searches every 3-token cycle for a pool
combination whose fee-adjusted price product exceeds the profit threshold.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from ..constants import BPS_DENOMINATOR, PRICE_SCALE, RATE_SCALE, OpportunityKind
from ..pricing import PriceNormalizer
from ..types import Hop, Opportunity, PoolState, Token
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_PROFIT_THRESHOLD_SCALED = 10005 * RATE_SCALE // BPS_DENOMINATOR


def fee_multiplier_scaled(fee_bps_list: Iterable[int]) -> int:
    """Product of (1 - fee) over all hops, scaled by 10^36."""
    numerator = RATE_SCALE
    denominator = 1
    for fee_bps in fee_bps_list:
        numerator *= BPS_DENOMINATOR - fee_bps
        denominator *= BPS_DENOMINATOR
    return numerator // denominator


def build_token_graph(
    pools: Iterable[PoolState], normalizer: Optional[PriceNormalizer] = None
) -> nx.MultiGraph:
    """
    Build the token multigraph for a snapshot.

    Pools without a usable price are left out, so no path can reference them.

    Returns:
        MultiGraph with upper-cased symbols as nodes (attribute "token") and
        one edge per pool keyed by lower-cased address (attribute "pool")
    """
    normalizer = normalizer or PriceNormalizer()
    graph = nx.MultiGraph()
    for pool in pools:
        if normalizer.price(pool) is None:
            logger.debug(f"Pool {pool.address} has no usable price, not in graph")
            continue
        node0 = pool.token0.symbol.upper()
        node1 = pool.token1.symbol.upper()
        graph.add_node(node0, token=pool.token0)
        graph.add_node(node1, token=pool.token1)
        graph.add_edge(node0, node1, key=pool.key, pool=pool)
    return graph


class TriangularFinder:
    """
    Finds 3-hop token cycles A -> B -> C -> A across distinct pools.

    rate = p(A->B) * p(B->C) * p(C->A), each directional price resolved
    through the PriceNormalizer, multiplied by the product of (1 - fee) of the
    three pools. Only rates strictly above the threshold are emitted.
    """

    def __init__(
        self,
        normalizer: Optional[PriceNormalizer] = None,
        profit_threshold_scaled: int = DEFAULT_PROFIT_THRESHOLD_SCALED,
        trade_amounts: Optional[Dict[str, int]] = None,
    ):
        self.normalizer = normalizer or PriceNormalizer()
        self.profit_threshold_scaled = profit_threshold_scaled
        self.trade_amounts = {
            symbol.upper(): amount for symbol, amount in (trade_amounts or {}).items()
        }

    def find(self, pools: Iterable[PoolState]) -> List[Opportunity]:
        """
        Search a snapshot for triangular opportunities.

        Returns:
            Opportunities, at most one per set of three pools
        """
        graph = build_token_graph(pools, self.normalizer)
        nodes = sorted(graph.nodes)
        price_cache: Dict[Tuple[str, str], Optional[int]] = {}
        seen: Set[Tuple[str, ...]] = set()
        opportunities: List[Opportunity] = []

        for a in nodes:
            for b in nodes:
                if b == a or not graph.has_edge(a, b):
                    continue
                for c in nodes:
                    if c in (a, b):
                        continue
                    if not graph.has_edge(b, c) or not graph.has_edge(c, a):
                        continue

                    for pool_ab in self._edge_pools(graph, a, b):
                        for pool_bc in self._edge_pools(graph, b, c):
                            for pool_ca in self._edge_pools(graph, c, a):
                                triple = (pool_ab, pool_bc, pool_ca)
                                dedup_key = tuple(sorted(p.key for p in triple))
                                if len(set(dedup_key)) != 3 or dedup_key in seen:
                                    continue

                                opportunity = self._evaluate_cycle(
                                    graph, (a, b, c), triple, price_cache
                                )
                                if opportunity is not None:
                                    seen.add(dedup_key)
                                    opportunities.append(opportunity)

        logger.debug(
            f"Triangular scan over {graph.number_of_nodes()} tokens / "
            f"{graph.number_of_edges()} pools found {len(opportunities)} opportunities"
        )
        return opportunities

    @staticmethod
    def _edge_pools(graph: nx.MultiGraph, u: str, v: str) -> List[PoolState]:
        edges = graph.get_edge_data(u, v) or {}
        return [edges[key]["pool"] for key in sorted(edges)]

    def _directional(
        self,
        pool: PoolState,
        token_in: Token,
        price_cache: Dict[Tuple[str, str], Optional[int]],
    ) -> Optional[int]:
        cache_key = (pool.key, token_in.key)
        if cache_key not in price_cache:
            price_cache[cache_key] = self.normalizer.directional_price(pool, token_in)
        return price_cache[cache_key]

    def _evaluate_cycle(
        self,
        graph: nx.MultiGraph,
        symbols: Tuple[str, str, str],
        pools: Tuple[PoolState, PoolState, PoolState],
        price_cache: Dict[Tuple[str, str], Optional[int]],
    ) -> Optional[Opportunity]:
        tokens = [graph.nodes[symbol]["token"] for symbol in symbols]

        hops = []
        rate = 1
        for i, pool in enumerate(pools):
            token_in = pool.token_by_symbol(tokens[i].symbol)
            token_out = pool.token_by_symbol(tokens[(i + 1) % 3].symbol)
            if token_in is None or token_out is None:
                return None
            price = self._directional(pool, token_in, price_cache)
            if not price:
                return None
            rate *= price
            hops.append(Hop(pool, token_in, token_out))

        # Three 10^18 prices multiply to 10^54; bring back to 10^36
        rate_scaled = rate // PRICE_SCALE
        adjusted = (
            rate_scaled
            * fee_multiplier_scaled(pool.fee_bps for pool in pools)
            // RATE_SCALE
        )
        if adjusted <= self.profit_threshold_scaled:
            return None

        hops = self._rotate_to_preferred_start(hops)
        start = hops[0].token_in
        opportunity = Opportunity(
            kind=OpportunityKind.TRIANGULAR,
            path=tuple(hops),
            amount_in=self.trade_amounts.get(start.symbol.upper(), start.unit),
            estimated_rate_scaled=adjusted,
        )
        logger.info(
            f"Triangular {opportunity.describe()} via "
            f"{', '.join(pool.venue for pool in pools)} | rate {adjusted / RATE_SCALE:.6f}"
        )
        return opportunity

    def _rotate_to_preferred_start(self, hops: List[Hop]) -> List[Hop]:
        """Start the cycle at the most preferred configured trade token, if any."""
        for symbol in self.trade_amounts:
            for i, hop in enumerate(hops):
                if hop.token_in.symbol.upper() == symbol:
                    return hops[i:] + hops[:i]
        return hops
