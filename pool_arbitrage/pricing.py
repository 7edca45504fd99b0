"""
Fixed-point price normalization across AMM designs.

All prices are token1-per-token0 integers scaled by PRICE_SCALE (10^18),
adjusted for token decimals, so that a constant-product pool, a
concentrated-liquidity pool and a PMM pool quoting the same pair produce
directly comparable numbers. Divisions truncate, like the on-chain math
they mirror.
"""

from dataclasses import dataclass
from typing import Optional

from .constants import BPS_DENOMINATOR, PRICE_SCALE, Q192, RATE_SCALE, DexType
from .types import (
    ConcentratedLiquidityState,
    ConstantProductReserves,
    PmmState,
    PoolState,
    Token,
    pair_key,
)

__all__ = [
    "EffectivePrices",
    "PriceNormalizer",
    "effective_prices",
    "inverse_price",
    "pair_key",
]


@dataclass(frozen=True)
class EffectivePrices:
    """Fee-adjusted prices, both scaled by 10^18."""

    sell_effective: int
    buy_effective: int


def inverse_price(price: Optional[int]) -> Optional[int]:
    """Invert a 10^18-scaled price; None when the price is missing or zero."""
    if not price:
        return None
    return RATE_SCALE // price


def effective_prices(price: int, fee_bps: int) -> EffectivePrices:
    """
    Apply a pool fee to a raw price, fee charged on the input token.

    Selling token0 receives price * (1 - fee); buying token0 with token1
    costs price / (1 - fee). Both legs of any comparison must go through
    this function so the fee convention is the same on each side.

    Both results truncate. For a nonzero fee, sell < price < buy holds for
    any price of at least BPS_DENOMINATOR (10^-14 at 10^18 scale); below
    that the buy side can truncate back to the raw price.

    Raises:
        ValueError: If price is not positive or fee_bps is outside [0, 10000)
    """
    if price <= 0:
        raise ValueError(f"price must be positive: {price}")
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}): {fee_bps}")

    fee_factor = BPS_DENOMINATOR - fee_bps
    return EffectivePrices(
        sell_effective=price * fee_factor // BPS_DENOMINATOR,
        buy_effective=price * BPS_DENOMINATOR // fee_factor,
    )


class PriceNormalizer:
    """
    Turns raw pool state into a scaled token1-per-token0 price.

    Stateless; token decimals come from the Token objects carried by each
    PoolState snapshot.
    """

    def price(self, pool: PoolState) -> Optional[int]:
        """
        Price of token0 in token1, scaled by 10^18.

        Returns:
            Scaled price, or None when the pool has zero or unusable liquidity
        """
        if pool.dex_type is DexType.CONCENTRATED_LIQUIDITY:
            return self._concentrated_price(pool, pool.payload)
        if pool.dex_type is DexType.CONSTANT_PRODUCT:
            return self._constant_product_price(pool, pool.payload)
        if pool.dex_type is DexType.PMM:
            return self._pmm_price(pool, pool.payload)
        raise ValueError(f"Unsupported dex type: {pool.dex_type}")

    def inverse(self, pool: PoolState) -> Optional[int]:
        """Price of token1 in token0, scaled by 10^18."""
        return inverse_price(self.price(pool))

    def directional_price(self, pool: PoolState, token_in: Token) -> Optional[int]:
        """
        Units of the other token received per unit of token_in, scaled by 10^18.

        Raises:
            InvalidToken: If token_in is not one of the pool's tokens
        """
        pool.other_token(token_in)
        if token_in.same_as(pool.token0):
            return self.price(pool)
        return self.inverse(pool)

    @staticmethod
    def _concentrated_price(
        pool: PoolState, state: ConcentratedLiquidityState
    ) -> Optional[int]:
        if state.sqrt_price_x96 <= 0 or state.liquidity <= 0:
            return None
        sqrt_p = state.sqrt_price_x96
        price = (sqrt_p * sqrt_p * 10**pool.token0.decimals * PRICE_SCALE) // (
            Q192 * 10**pool.token1.decimals
        )
        return price or None

    @staticmethod
    def _constant_product_price(
        pool: PoolState, reserves: ConstantProductReserves
    ) -> Optional[int]:
        if reserves.reserve0 <= 0 or reserves.reserve1 <= 0:
            return None
        price = (reserves.reserve1 * 10**pool.token0.decimals * PRICE_SCALE) // (
            reserves.reserve0 * 10**pool.token1.decimals
        )
        return price or None

    @staticmethod
    def _pmm_price(pool: PoolState, state: PmmState) -> Optional[int]:
        quote_received = state.query_amount_out_wei
        if quote_received <= 0:
            return None
        quote_unit = 10**state.quote_token.decimals
        if state.base_token.same_as(pool.token0):
            price = quote_received * PRICE_SCALE // quote_unit
        else:
            price = quote_unit * PRICE_SCALE // quote_received
        return price or None
