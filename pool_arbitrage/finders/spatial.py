"""
Spatial arbitrage finder.

Compares pools that quote the same token pair on different venues and
flags cases where a token can be bought on one pool and sold on the other
for more than it cost, after both pools' fees and a profit margin.
"""

from collections import defaultdict
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..constants import BPS_DENOMINATOR, RATE_SCALE, OpportunityKind
from ..pricing import PriceNormalizer, effective_prices
from ..types import Hop, Opportunity, PoolState, Token
from ..utils import get_logger, short_address

logger = get_logger(__name__)

# 1.0005x: the sell side must beat the buy side by 5 bps
DEFAULT_PROFIT_THRESHOLD_SCALED = 10005 * RATE_SCALE // BPS_DENOMINATOR


class SpatialFinder:
    """
    Finds 2-hop buy-here/sell-there opportunities across venues.

    Pools are grouped by (pair key, venue); only pools from two distinct
    venues are ever compared. The venue is the pool's ``dex`` tag, falling
    back to its DEX type, so two constant-product pools are compared only
    when they carry different ``dex`` tags.

    Each pairing is oriented on one traded token regardless of how either
    pool orders the pair, and both cycles are checked with fee-adjusted
    prices: the effective sell price on one pool must exceed the effective
    buy price on the other times the threshold.
    """

    def __init__(
        self,
        normalizer: Optional[PriceNormalizer] = None,
        profit_threshold_scaled: int = DEFAULT_PROFIT_THRESHOLD_SCALED,
        trade_amounts: Optional[Dict[str, int]] = None,
    ):
        """
        Args:
            normalizer: Price normalizer (a default one is created if omitted)
            profit_threshold_scaled: Required sell/buy ratio, scaled by 10^36
            trade_amounts: Input size per start-token symbol in smallest units.
                Key order is the start-token preference; tokens without an
                entry trade one whole unit.
        """
        self.normalizer = normalizer or PriceNormalizer()
        self.profit_threshold_scaled = profit_threshold_scaled
        self.trade_amounts = {
            symbol.upper(): amount for symbol, amount in (trade_amounts or {}).items()
        }

    def find(self, pools: Iterable[PoolState]) -> List[Opportunity]:
        """
        Search a snapshot for spatial opportunities.

        Args:
            pools: Pool snapshots for this cycle

        Returns:
            Opportunities, at most one per unordered pool pair
        """
        groups: Dict[str, Dict[str, List[PoolState]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for pool in pools:
            groups[pool.pair_key][pool.venue].append(pool)

        opportunities: List[Opportunity] = []
        seen: Set[Tuple[str, ...]] = set()

        for key in sorted(groups):
            by_venue = groups[key]
            if len(by_venue) < 2:
                continue

            venues = sorted(by_venue)
            for venue_a, venue_b in combinations(venues, 2):
                for pool_a in sorted(by_venue[venue_a], key=lambda p: p.key):
                    for pool_b in sorted(by_venue[venue_b], key=lambda p: p.key):
                        pairing = tuple(sorted((pool_a.key, pool_b.key)))
                        if pairing in seen:
                            continue

                        # One orientation per pairing, so the two calls below
                        # are the two opposite cycles
                        traded_symbol = pool_a.token0.symbol
                        found = self._compare(
                            pool_a, pool_b, traded_symbol
                        ) or self._compare(pool_b, pool_a, traded_symbol)
                        if found is not None:
                            seen.add(pairing)
                            opportunities.append(found)

        logger.debug(
            f"Spatial scan over {len(groups)} pairs found {len(opportunities)} opportunities"
        )
        return opportunities

    def _compare(
        self, sell_pool: PoolState, buy_pool: PoolState, traded_symbol: str
    ) -> Optional[Opportunity]:
        """Check "buy traded on buy_pool, sell it on sell_pool"."""
        traded = buy_pool.token_by_symbol(traded_symbol)
        if traded is None:
            return None
        counter = buy_pool.other_token(traded)
        sell_traded = sell_pool.token_by_symbol(traded.symbol)
        sell_counter = sell_pool.token_by_symbol(counter.symbol)
        if sell_traded is None or sell_counter is None:
            return None
        if not sell_traded.same_as(traded) or not sell_counter.same_as(counter):
            logger.warning(
                f"Pools {short_address(sell_pool.address)} and "
                f"{short_address(buy_pool.address)} share pair {buy_pool.pair_key} "
                f"but not token addresses; skipping"
            )
            return None

        # Both prices: units of counter per unit of traded, x10^18
        sell_price = self.normalizer.directional_price(sell_pool, sell_traded)
        buy_price = self.normalizer.directional_price(buy_pool, traded)
        if not sell_price or not buy_price:
            return None

        sell_effective = effective_prices(sell_price, sell_pool.fee_bps).sell_effective
        buy_effective = effective_prices(buy_price, buy_pool.fee_bps).buy_effective
        if buy_effective <= 0:
            return None

        if sell_effective * RATE_SCALE <= buy_effective * self.profit_threshold_scaled:
            return None

        estimated_rate = sell_effective * RATE_SCALE // buy_effective
        start = self._start_token(traded, counter)
        if start.same_as(counter):
            path = (
                Hop(buy_pool, counter, traded),
                Hop(sell_pool, sell_traded, sell_counter),
            )
        else:
            path = (
                Hop(sell_pool, sell_traded, sell_counter),
                Hop(buy_pool, counter, traded),
            )

        opportunity = Opportunity(
            kind=OpportunityKind.SPATIAL,
            path=path,
            amount_in=self.trade_amounts.get(start.symbol.upper(), start.unit),
            estimated_rate_scaled=estimated_rate,
        )
        logger.info(
            f"Spatial [{buy_pool.pair_key}] buy {traded.symbol} on "
            f"{buy_pool.venue} {short_address(buy_pool.address)}, sell on "
            f"{sell_pool.venue} {short_address(sell_pool.address)} | "
            f"rate {estimated_rate / RATE_SCALE:.6f}"
        )
        return opportunity

    def _start_token(self, traded: Token, counter: Token) -> Token:
        """Pick the borrowed token: first configured trade token, else counter."""
        for symbol in self.trade_amounts:
            if symbol == counter.symbol.upper():
                return counter
            if symbol == traded.symbol.upper():
                return traded
        return counter
