"""
Swap simulation per AMM design.

Given a pool snapshot, an input token and an input amount, returns the
realistic output amount including price impact. Integer math throughout;
the constant-product and concentrated-liquidity paths reproduce the
on-chain formulas exactly.
"""

from typing import List, Optional, Sequence, Tuple

from .constants import (
    BPS_DENOMINATOR,
    PIPS_PER_BPS,
    PMM_EMPTY_REVERT_REASONS,
    DexType,
)
from .exceptions import ConfigurationError, InvalidToken, ZeroOutput
from .interfaces import PoolStateFetcher, TickDataProvider
from .types import (
    ConcentratedLiquidityState,
    ConstantProductReserves,
    Hop,
    PmmState,
    PoolState,
    Token,
)
from .utils import get_logger, short_address
from .v3_math import swap_exact_input

logger = get_logger(__name__)


def constant_product_amount_out(
    amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int
) -> int:
    """
    Output of a V2 swap with the fee taken from the input.

    Formula:
        amountOut = reserveOut * amountIn * (10000 - fee)
                    / (reserveIn * 10000 + amountIn * (10000 - fee))
    """
    amount_in_with_fee = amount_in * (BPS_DENOMINATOR - fee_bps)
    numerator = reserve_out * amount_in_with_fee
    denominator = reserve_in * BPS_DENOMINATOR + amount_in_with_fee
    if denominator == 0:
        return 0
    return numerator // denominator


class SwapSimulator:
    """
    Simulates single swaps and multi-hop paths against pool snapshots.

    The synchronous path only reads the snapshot. The async path may also
    consult injected collaborators: a fetcher for live PMM sell-base quotes
    and a tick-data provider for concentrated-liquidity pools whose snapshot
    carries no initialized ticks.
    """

    def __init__(
        self,
        fetcher: Optional[PoolStateFetcher] = None,
        tick_provider: Optional[TickDataProvider] = None,
    ):
        self.fetcher = fetcher
        self.tick_provider = tick_provider

    def simulate(self, pool: PoolState, token_in: Token, amount_in: int) -> int:
        """
        Simulate an exact-input swap against the pool snapshot.

        Args:
            pool: Pool snapshot
            token_in: Token being sold into the pool
            amount_in: Input amount in smallest units (must be positive)

        Returns:
            Output amount in smallest units of the other token

        Raises:
            ValueError: If amount_in is not positive
            InvalidToken: If token_in does not belong to the pool
            ZeroOutput: If the pool cannot return anything for this input
        """
        self._check_inputs(pool, token_in, amount_in)

        if pool.dex_type is DexType.CONSTANT_PRODUCT:
            amount_out = self._simulate_constant_product(
                pool, pool.payload, token_in, amount_in
            )
        elif pool.dex_type is DexType.CONCENTRATED_LIQUIDITY:
            amount_out = self._simulate_concentrated(
                pool, pool.payload, token_in, amount_in, pool.payload.ticks
            )
        elif pool.dex_type is DexType.PMM:
            amount_out = self._simulate_pmm_snapshot(
                pool, pool.payload, token_in, amount_in
            )
        else:
            raise ConfigurationError(f"Unsupported dex type: {pool.dex_type}")

        return self._check_output(pool, token_in, amount_in, amount_out)

    async def simulate_async(
        self, pool: PoolState, token_in: Token, amount_in: int
    ) -> int:
        """Like simulate(), but allowed to query injected collaborators."""
        self._check_inputs(pool, token_in, amount_in)

        if pool.dex_type is DexType.PMM and self.fetcher is not None:
            state: PmmState = pool.payload
            if token_in.same_as(state.base_token):
                amount_out = await self._query_pmm_sell_base(
                    pool, state, token_in, amount_in
                )
                return self._check_output(pool, token_in, amount_in, amount_out)

        if (
            pool.dex_type is DexType.CONCENTRATED_LIQUIDITY
            and self.tick_provider is not None
            and not pool.payload.ticks
        ):
            ticks = await self.tick_provider.get_ticks(pool)
            amount_out = self._simulate_concentrated(
                pool, pool.payload, token_in, amount_in, ticks
            )
            return self._check_output(pool, token_in, amount_in, amount_out)

        return self.simulate(pool, token_in, amount_in)

    def simulate_path(self, path: Sequence[Hop], amount_in: int) -> List[int]:
        """
        Feed amount_in through each hop in order.

        Returns:
            Output amount of every hop; the last element is the final output
        """
        outputs = []
        amount = amount_in
        for hop in path:
            amount = self.simulate(hop.pool, hop.token_in, amount)
            outputs.append(amount)
        return outputs

    async def simulate_path_async(
        self, path: Sequence[Hop], amount_in: int
    ) -> List[int]:
        outputs = []
        amount = amount_in
        for hop in path:
            amount = await self.simulate_async(hop.pool, hop.token_in, amount)
            outputs.append(amount)
        return outputs

    @staticmethod
    def _check_inputs(pool: PoolState, token_in: Token, amount_in: int) -> None:
        if amount_in <= 0:
            raise ValueError(f"amount_in must be positive: {amount_in}")
        if not pool.has_token(token_in):
            logger.error(
                f"[{pool.dex_type.value} {short_address(pool.address)}] "
                f"token {token_in.symbol} ({token_in.address}) is not in this pool; "
                f"check pool/token configuration"
            )
            raise InvalidToken(
                f"Token {token_in.symbol} is not part of pool {pool.address}",
                pool_address=pool.address,
                token=token_in.symbol,
            )

    @staticmethod
    def _check_output(
        pool: PoolState, token_in: Token, amount_in: int, amount_out: int
    ) -> int:
        if amount_out <= 0:
            logger.debug(
                f"[{pool.dex_type.value} {short_address(pool.address)}] zero output for "
                f"{amount_in} {token_in.symbol}"
            )
            raise ZeroOutput(
                f"Pool {pool.address} returns nothing for {amount_in} {token_in.symbol}",
                pool_address=pool.address,
                details={"amount_in": amount_in, "token_in": token_in.symbol},
            )
        return amount_out

    @staticmethod
    def _simulate_constant_product(
        pool: PoolState,
        reserves: ConstantProductReserves,
        token_in: Token,
        amount_in: int,
    ) -> int:
        if token_in.same_as(pool.token0):
            reserve_in, reserve_out = reserves.reserve0, reserves.reserve1
        else:
            reserve_in, reserve_out = reserves.reserve1, reserves.reserve0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0
        return constant_product_amount_out(
            amount_in, reserve_in, reserve_out, pool.fee_bps
        )

    @staticmethod
    def _simulate_concentrated(
        pool: PoolState,
        state: ConcentratedLiquidityState,
        token_in: Token,
        amount_in: int,
        ticks: Sequence[Tuple[int, int]],
    ) -> int:
        if state.sqrt_price_x96 <= 0 or (state.liquidity <= 0 and not ticks):
            return 0
        return swap_exact_input(
            sqrt_price_x96=state.sqrt_price_x96,
            liquidity=state.liquidity,
            tick=state.tick,
            amount_in=amount_in,
            zero_for_one=token_in.same_as(pool.token0),
            fee_pips=pool.fee_bps * PIPS_PER_BPS,
            ticks=ticks,
        )

    @staticmethod
    def _simulate_pmm_snapshot(
        pool: PoolState, state: PmmState, token_in: Token, amount_in: int
    ) -> int:
        # The probed quote already has the pool's fee taken out
        rate = state.query_amount_out_wei
        if rate <= 0:
            return 0
        base_unit = 10**state.base_token.decimals
        if token_in.same_as(state.base_token):
            return amount_in * rate // base_unit
        return amount_in * base_unit // rate

    async def _query_pmm_sell_base(
        self, pool: PoolState, state: PmmState, token_in: Token, amount_in: int
    ) -> int:
        try:
            result = await self.fetcher.call_view(
                pool.address, "querySellBaseToken", [amount_in]
            )
            # DODO V2 pools return (receiveQuoteAmount, mtFee)
            if isinstance(result, (list, tuple)):
                result = result[0]
            return int(result)
        except Exception as e:
            reason = str(e)
            if any(marker in reason for marker in PMM_EMPTY_REVERT_REASONS):
                logger.debug(
                    f"[pmm {short_address(pool.address)}] querySellBaseToken empty: {reason}"
                )
                return 0
            logger.warning(
                f"[pmm {short_address(pool.address)}] querySellBaseToken failed, "
                f"using snapshot quote: {reason}"
            )
            return self._simulate_pmm_snapshot(pool, state, token_in, amount_in)
