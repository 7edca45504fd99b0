"""
Price oracles valuing token amounts in the chain's native currency.

Every oracle prices a token as "native per whole token, scaled by 10^18"
and converts with the same integer formula:

    native = amount * price * 10**native_decimals
             // (10**18 * 10**token_decimals)
"""

import asyncio
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from ..constants import PRICE_SCALE
from ..exceptions import ConversionFailure
from ..pricing import PriceNormalizer
from ..types import PoolState, Token
from ..utils import get_logger

logger = get_logger(__name__)

COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"

# Token symbol to CoinGecko ID mapping
DEFAULT_COINGECKO_IDS = {
    "WETH": "ethereum",
    "ETH": "ethereum",
    "USDC": "usd-coin",
    "USDC.E": "usd-coin",
    "USDT": "tether",
    "DAI": "dai",
    "WBTC": "wrapped-bitcoin",
    "ARB": "arbitrum",
    "LINK": "chainlink",
    "GMX": "gmx",
    "MAGIC": "magic",
}


def convert_with_price(
    amount: int, token: Token, native: Token, price_scaled: int
) -> int:
    """Convert amount of token to native smallest units given its native price."""
    return (
        amount
        * price_scaled
        * 10**native.decimals
        // (PRICE_SCALE * 10**token.decimals)
    )


class StaticPriceOracle:
    """Oracle backed by a fixed table of native prices (x10^18) per symbol."""

    def __init__(self, native: Token, prices: Dict[str, int]):
        self.native = native
        self.prices = {symbol.upper(): price for symbol, price in prices.items()}

    async def convert(self, amount: int, token: Token) -> int:
        if token.same_as(self.native):
            return amount
        price = self.prices.get(token.symbol.upper())
        if not price:
            raise ConversionFailure(
                f"No static native price for {token.symbol}", token=token.symbol
            )
        return convert_with_price(amount, token, self.native, price)


class PoolPriceOracle:
    """
    Oracle that prices tokens off the current cycle's pool snapshot.

    A token is valued through a pool pairing it directly with the native
    token; the scheduler refreshes the snapshot every cycle via update().
    """

    def __init__(self, native: Token, normalizer: Optional[PriceNormalizer] = None):
        self.native = native
        self.normalizer = normalizer or PriceNormalizer()
        self._pools: Tuple[PoolState, ...] = ()

    def update(self, pools: Iterable[PoolState]) -> None:
        self._pools = tuple(sorted(pools, key=lambda pool: pool.key))

    def native_price(self, token: Token) -> Optional[int]:
        for pool in self._pools:
            if not (pool.has_token(token) and pool.has_token(self.native)):
                continue
            price = self.normalizer.directional_price(pool, token)
            if price:
                return price
        return None

    async def convert(self, amount: int, token: Token) -> int:
        if token.same_as(self.native):
            return amount
        price = self.native_price(token)
        if price is None:
            raise ConversionFailure(
                f"No priced {token.symbol}/{self.native.symbol} pool in snapshot",
                token=token.symbol,
            )
        return convert_with_price(amount, token, self.native, price)


class CoinGeckoPriceOracle:
    """
    Oracle using CoinGecko USD prices, cached for cache_ttl_sec.

    Stale cache entries are served with a warning when a refresh fails.
    """

    def __init__(
        self,
        native: Token,
        coingecko_ids: Optional[Dict[str, str]] = None,
        cache_ttl_sec: float = 60.0,
        timeout_sec: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self.native = native
        self.coingecko_ids = {
            symbol.upper(): coin_id
            for symbol, coin_id in (coingecko_ids or DEFAULT_COINGECKO_IDS).items()
        }
        self.cache_ttl_sec = cache_ttl_sec
        self.timeout_sec = timeout_sec
        self.clock = clock
        self._usd_cache: Dict[str, Tuple[Decimal, float]] = {}

    def _coin_id(self, token: Token) -> str:
        coin_id = self.coingecko_ids.get(token.symbol.upper())
        if coin_id is None:
            raise ConversionFailure(
                f"Token not in CoinGecko mapping: {token.symbol}", token=token.symbol
            )
        return coin_id

    def _fetch_usd_prices(self, coin_ids: Sequence[str]) -> Dict[str, Decimal]:
        response = requests.get(
            COINGECKO_PRICE_URL,
            params={"ids": ",".join(coin_ids), "vs_currencies": "usd"},
            timeout=self.timeout_sec,
        )
        response.raise_for_status()
        data = response.json()
        return {
            coin_id: Decimal(str(data[coin_id]["usd"]))
            for coin_id in coin_ids
            if coin_id in data and "usd" in data[coin_id]
        }

    async def _usd_prices(self, coin_ids: List[str]) -> Dict[str, Decimal]:
        now = self.clock()
        fresh = {
            coin_id: self._usd_cache[coin_id][0]
            for coin_id in coin_ids
            if coin_id in self._usd_cache
            and now - self._usd_cache[coin_id][1] < self.cache_ttl_sec
        }
        missing = [coin_id for coin_id in coin_ids if coin_id not in fresh]
        if not missing:
            return fresh

        loop = asyncio.get_running_loop()
        try:
            fetched = await loop.run_in_executor(None, self._fetch_usd_prices, missing)
        except (requests.RequestException, KeyError, ValueError, InvalidOperation) as e:
            stale = {
                coin_id: self._usd_cache[coin_id][0]
                for coin_id in missing
                if coin_id in self._usd_cache
            }
            if len(stale) < len(missing):
                raise ConversionFailure(f"CoinGecko API request failed: {e}") from e
            logger.warning(f"CoinGecko refresh failed, using stale prices: {e}")
            fresh.update(stale)
            return fresh

        for coin_id, price in fetched.items():
            self._usd_cache[coin_id] = (price, now)
        fresh.update(fetched)
        return fresh

    async def convert(self, amount: int, token: Token) -> int:
        if token.same_as(self.native):
            return amount
        token_id = self._coin_id(token)
        native_id = self._coin_id(self.native)
        prices = await self._usd_prices(sorted({token_id, native_id}))

        token_usd = prices.get(token_id)
        native_usd = prices.get(native_id)
        if not token_usd or not native_usd:
            raise ConversionFailure(
                f"Missing USD price for {token.symbol} or {self.native.symbol}",
                token=token.symbol,
            )
        price_scaled = int(token_usd * PRICE_SCALE / native_usd)
        return convert_with_price(amount, token, self.native, price_scaled)


class ChainedPriceOracle:
    """Tries each oracle in order and returns the first successful conversion."""

    def __init__(self, oracles: Sequence[object]):
        self.oracles = list(oracles)

    async def convert(self, amount: int, token: Token) -> int:
        errors = []
        for oracle in self.oracles:
            try:
                return await oracle.convert(amount, token)
            except ConversionFailure as e:
                errors.append(str(e))
        raise ConversionFailure(
            f"No oracle could price {token.symbol}: {'; '.join(errors)}",
            token=token.symbol,
            details={"errors": errors},
        )
