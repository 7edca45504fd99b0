"""Shared token and pool builders for the unit tests."""

from pool_arbitrage.constants import DexType
from pool_arbitrage.types import (
    ConcentratedLiquidityState,
    ConstantProductReserves,
    PmmState,
    PoolState,
    Token,
)

WETH = Token("0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "WETH", 18, 42161)
USDC = Token("0xaf88d065e77c8cC2239327C5EDb3A432268e5831", "USDC", 6, 42161)
ARB = Token("0x912CE59144191C1204E64559FE8253a0e49E6548", "ARB", 18, 42161)
DAI = Token("0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1", "DAI", 18, 42161)
USDT = Token("0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", "USDT", 6, 42161)


def address(n: int) -> str:
    """Deterministic fake pool address."""
    return "0x" + f"{n:040x}"


def cp_pool(n, token0, token1, reserve0, reserve1, fee_bps=30, dex=""):
    return PoolState(
        address=address(n),
        dex_type=DexType.CONSTANT_PRODUCT,
        token0=token0,
        token1=token1,
        fee_bps=fee_bps,
        payload=ConstantProductReserves(reserve0=reserve0, reserve1=reserve1),
        name=f"pool{n}",
        dex=dex,
    )


def v3_pool(
    n, token0, token1, sqrt_price_x96, liquidity, tick=0, fee_bps=5, ticks=(), dex=""
):
    return PoolState(
        address=address(n),
        dex_type=DexType.CONCENTRATED_LIQUIDITY,
        token0=token0,
        token1=token1,
        fee_bps=fee_bps,
        payload=ConcentratedLiquidityState(
            sqrt_price_x96=sqrt_price_x96,
            liquidity=liquidity,
            tick=tick,
            tick_spacing=10,
            ticks=tuple(ticks),
        ),
        name=f"pool{n}",
        dex=dex,
    )


def pmm_pool(n, token0, token1, base, query_amount_out_wei, fee_bps=0, dex=""):
    quote = token1 if base.same_as(token0) else token0
    return PoolState(
        address=address(n),
        dex_type=DexType.PMM,
        token0=token0,
        token1=token1,
        fee_bps=fee_bps,
        payload=PmmState(
            query_amount_out_wei=query_amount_out_wei,
            base_token=base,
            quote_token=quote,
        ),
        name=f"pool{n}",
        dex=dex,
    )
