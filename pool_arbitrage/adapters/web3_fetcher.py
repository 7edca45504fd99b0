"""
web3.py implementation of the pool-state fetcher.

Synchronous contract calls run in the default executor so a cycle can fetch
many pools concurrently. Any RPC failure surfaces as DataUnavailable for
that pool only.
"""

import asyncio
from typing import Any, Callable, Dict, List, Sequence, Set, Tuple

from web3 import Web3
from web3.contract import Contract

from ..constants import (
    MAX_UINT128,
    PIPS_PER_BPS,
    PMM_EMPTY_REVERT_REASONS,
    V3_TICK_SPACING,
    DexType,
)
from ..exceptions import ConfigurationError, DataUnavailable
from ..tokens import TokenRegistry
from ..types import (
    ConcentratedLiquidityState,
    ConstantProductReserves,
    PmmState,
    PoolConfig,
    PoolState,
    Token,
)
from ..utils import get_logger, short_address
from .abi import DODO_POOL_ABI, UNISWAP_V2_PAIR_ABI, UNISWAP_V3_POOL_ABI, VIEW_ABI

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "too many requests", "-32005", "limit exceeded")


def _is_rate_limit(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class Web3PoolStateFetcher:
    """
    Fetches pool snapshots over JSON-RPC.

    Contract instances are cached per fetcher (address, ABI) and on-chain
    token ordering is verified once per pool.
    """

    def __init__(
        self,
        web3: Web3,
        registry: TokenRegistry,
        max_retries: int = 3,
        tick_word_radius: int = 2,
    ):
        """
        Args:
            web3: Connected Web3 instance
            registry: Token registry used to resolve configured symbols
            max_retries: Attempts per RPC call when rate limited
            tick_word_radius: Bitmap words read on each side of the current
                tick when loading initialized ticks
        """
        self.web3 = web3
        self.registry = registry
        self.max_retries = max_retries
        self.tick_word_radius = tick_word_radius
        self._contracts: Dict[Tuple[str, str], Contract] = {}
        self._verified: Set[str] = set()

    def _contract(
        self, address: str, abi_name: str, abi: List[Dict[str, Any]]
    ) -> Contract:
        key = (address.lower(), abi_name)
        if key not in self._contracts:
            self._contracts[key] = self.web3.eth.contract(
                address=Web3.to_checksum_address(address), abi=abi
            )
        return self._contracts[key]

    async def _call(self, fn: Callable[[], Any], description: str) -> Any:
        """Run a blocking contract call in the executor, backing off on rate limits."""
        loop = asyncio.get_running_loop()
        for attempt in range(self.max_retries):
            try:
                return await loop.run_in_executor(None, fn)
            except Exception as e:
                if _is_rate_limit(e) and attempt < self.max_retries - 1:
                    wait_time = 2 ** (attempt + 1)
                    logger.debug(f"Rate limited on {description}, retrying in {wait_time}s")
                    await asyncio.sleep(wait_time)
                    continue
                raise

    async def fetch_pool_state(self, pool: PoolConfig) -> PoolState:
        """
        Fetch a fresh snapshot of one configured pool.

        Raises:
            ConfigurationError: If the pool references unknown tokens or its
                on-chain token order contradicts the config
            DataUnavailable: On any RPC failure or implausible state
        """
        token0 = self.registry.require(pool.token0)
        token1 = self.registry.require(pool.token1)

        try:
            if pool.dex_type is DexType.CONSTANT_PRODUCT:
                payload = await self._fetch_constant_product(pool, token0, token1)
            elif pool.dex_type is DexType.CONCENTRATED_LIQUIDITY:
                payload = await self._fetch_concentrated(pool, token0, token1)
            elif pool.dex_type is DexType.PMM:
                payload = await self._fetch_pmm(pool, token0, token1)
            else:
                raise ConfigurationError(f"Unsupported dex type: {pool.dex_type}")
        except (ConfigurationError, DataUnavailable):
            raise
        except Exception as e:
            logger.warning(f"Failed to fetch {pool.name} ({short_address(pool.address)}): {e}")
            raise DataUnavailable(
                f"Failed to fetch pool {pool.address}: {e}",
                pool_address=pool.address,
                details={"dex_type": pool.dex_type.value},
            ) from e

        return PoolState(
            address=pool.address,
            dex_type=pool.dex_type,
            token0=token0,
            token1=token1,
            fee_bps=pool.fee_bps,
            payload=payload,
            name=pool.name,
            dex=pool.dex,
        )

    async def call_view(
        self, address: str, function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        contract = self._contract(address, "view", VIEW_ABI)
        fn = getattr(contract.functions, function_name)(*args)
        return await self._call(fn.call, f"{function_name}@{short_address(address)}")

    async def _verify_token_order(
        self, pool: PoolConfig, contract: Contract, token0: Token, token1: Token
    ) -> None:
        if pool.address.lower() in self._verified:
            return
        onchain0, onchain1 = await asyncio.gather(
            self._call(contract.functions.token0().call, "token0"),
            self._call(contract.functions.token1().call, "token1"),
        )
        if onchain0.lower() != token0.key or onchain1.lower() != token1.key:
            raise ConfigurationError(
                f"Pool {pool.name} ({pool.address}) token order mismatch: config "
                f"{token0.symbol}/{token1.symbol}, on-chain {onchain0}/{onchain1}"
            )
        self._verified.add(pool.address.lower())

    async def _fetch_constant_product(
        self, pool: PoolConfig, token0: Token, token1: Token
    ) -> ConstantProductReserves:
        contract = self._contract(pool.address, "v2", UNISWAP_V2_PAIR_ABI)
        await self._verify_token_order(pool, contract, token0, token1)
        reserves = await self._call(contract.functions.getReserves().call, "getReserves")
        reserve0, reserve1 = int(reserves[0]), int(reserves[1])
        if reserve0 > MAX_UINT128 or reserve1 > MAX_UINT128:
            raise DataUnavailable(
                f"Pool {pool.address} reports implausible reserves",
                pool_address=pool.address,
                details={"reserve0": reserve0, "reserve1": reserve1},
            )
        return ConstantProductReserves(reserve0=reserve0, reserve1=reserve1)

    async def _fetch_concentrated(
        self, pool: PoolConfig, token0: Token, token1: Token
    ) -> ConcentratedLiquidityState:
        contract = self._contract(pool.address, "v3", UNISWAP_V3_POOL_ABI)
        await self._verify_token_order(pool, contract, token0, token1)
        slot0, liquidity = await asyncio.gather(
            self._call(contract.functions.slot0().call, "slot0"),
            self._call(contract.functions.liquidity().call, "liquidity"),
        )
        liquidity = int(liquidity)
        if liquidity > MAX_UINT128:
            raise DataUnavailable(
                f"Pool {pool.address} liquidity exceeds uint128",
                pool_address=pool.address,
                details={"liquidity": liquidity},
            )

        tick_spacing = V3_TICK_SPACING.get(pool.fee_bps * PIPS_PER_BPS)
        if tick_spacing is None:
            tick_spacing = int(
                await self._call(contract.functions.tickSpacing().call, "tickSpacing")
            )

        return ConcentratedLiquidityState(
            sqrt_price_x96=int(slot0[0]),
            liquidity=liquidity,
            tick=int(slot0[1]),
            tick_spacing=tick_spacing,
        )

    async def _fetch_pmm(
        self, pool: PoolConfig, token0: Token, token1: Token
    ) -> PmmState:
        if pool.base_token is None:
            raise ConfigurationError(f"PMM pool {pool.address} has no base_token")
        base = self.registry.require(pool.base_token)
        quote = token1 if base.same_as(token0) else token0

        contract = self._contract(pool.address, "pmm", DODO_POOL_ABI)
        try:
            quote_out = await self._call(
                contract.functions.querySellBaseToken(base.unit).call,
                "querySellBaseToken",
            )
        except Exception as e:
            if not any(marker in str(e) for marker in PMM_EMPTY_REVERT_REASONS):
                raise
            logger.debug(f"[pmm {short_address(pool.address)}] no liquidity: {e}")
            quote_out = 0

        return PmmState(
            query_amount_out_wei=int(quote_out), base_token=base, quote_token=quote
        )

    async def fetch_initialized_ticks(self, pool: PoolState) -> List[Tuple[int, int]]:
        """
        Read initialized ticks around the current tick from the tick bitmap.

        Suitable as the loader of a TickDataCache.

        Returns:
            (tick, liquidity_net) pairs, ascending
        """
        state: ConcentratedLiquidityState = pool.payload
        spacing = state.tick_spacing or 1
        compressed = state.tick // spacing
        center_word = compressed >> 8

        contract = self._contract(pool.address, "v3", UNISWAP_V3_POOL_ABI)
        words = range(
            center_word - self.tick_word_radius,
            center_word + self.tick_word_radius + 1,
        )
        bitmaps = await asyncio.gather(
            *[
                self._call(contract.functions.tickBitmap(word).call, "tickBitmap")
                for word in words
            ]
        )

        initialized = []
        for word, bitmap in zip(words, bitmaps):
            bitmap = int(bitmap)
            for bit in range(256):
                if bitmap >> bit & 1:
                    initialized.append(((word << 8) + bit) * spacing)

        infos = await asyncio.gather(
            *[
                self._call(contract.functions.ticks(tick).call, "ticks")
                for tick in initialized
            ]
        )
        return sorted((tick, int(info[1])) for tick, info in zip(initialized, infos))
