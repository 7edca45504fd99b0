"""Tests for native-currency price oracles."""

from unittest.mock import Mock, patch

import pytest
import requests

from pool_arbitrage.adapters.oracle import (
    ChainedPriceOracle,
    CoinGeckoPriceOracle,
    PoolPriceOracle,
    StaticPriceOracle,
    convert_with_price,
)
from pool_arbitrage.exceptions import ConversionFailure

from pool_factories import ARB, USDC, WETH, cp_pool


def test_convert_with_price_adjusts_decimals():
    # 0.0004 WETH per USDC
    assert convert_with_price(2000 * 10**6, USDC, WETH, 4 * 10**14) == 8 * 10**17


class TestStaticPriceOracle:
    @pytest.mark.asyncio
    async def test_convert(self):
        oracle = StaticPriceOracle(WETH, {"usdc": 4 * 10**14})
        assert await oracle.convert(2000 * 10**6, USDC) == 8 * 10**17

    @pytest.mark.asyncio
    async def test_native_passes_through(self):
        oracle = StaticPriceOracle(WETH, {})
        assert await oracle.convert(12345, WETH) == 12345

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        with pytest.raises(ConversionFailure):
            await StaticPriceOracle(WETH, {}).convert(10**6, USDC)


class TestPoolPriceOracle:
    @pytest.mark.asyncio
    async def test_prices_through_native_pool(self):
        oracle = PoolPriceOracle(WETH)
        oracle.update([cp_pool(1, WETH, USDC, 1000 * 10**18, 1_800_000 * 10**6)])

        assert oracle.native_price(USDC) == 555555555555555
        assert await oracle.convert(1800 * 10**6, USDC) == 999999999999999000

    @pytest.mark.asyncio
    async def test_no_pool_with_native(self):
        oracle = PoolPriceOracle(WETH)
        oracle.update([cp_pool(1, ARB, USDC, 10**21, 10**9)])
        with pytest.raises(ConversionFailure):
            await oracle.convert(10**6, USDC)

    @pytest.mark.asyncio
    async def test_empty_snapshot(self):
        with pytest.raises(ConversionFailure):
            await PoolPriceOracle(WETH).convert(10**6, USDC)


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


PRICES = {"ethereum": {"usd": 2000}, "usd-coin": {"usd": 1}}


class TestCoinGeckoPriceOracle:
    @pytest.mark.asyncio
    async def test_convert_and_cache(self):
        oracle = CoinGeckoPriceOracle(WETH, clock=lambda: 100.0)
        with patch(
            "pool_arbitrage.adapters.oracle.requests.get",
            return_value=_response(PRICES),
        ) as get:
            assert await oracle.convert(2000 * 10**6, USDC) == 10**18
            assert await oracle.convert(1000 * 10**6, USDC) == 5 * 10**17

        assert get.call_count == 1
        assert get.call_args.kwargs["params"]["ids"] == "ethereum,usd-coin"

    @pytest.mark.asyncio
    async def test_failure_without_cache(self):
        oracle = CoinGeckoPriceOracle(WETH)
        with patch(
            "pool_arbitrage.adapters.oracle.requests.get",
            side_effect=requests.ConnectionError("offline"),
        ):
            with pytest.raises(ConversionFailure):
                await oracle.convert(10**6, USDC)

    @pytest.mark.asyncio
    async def test_stale_cache_served_on_failure(self):
        now = [0.0]
        oracle = CoinGeckoPriceOracle(WETH, cache_ttl_sec=60, clock=lambda: now[0])
        with patch(
            "pool_arbitrage.adapters.oracle.requests.get",
            return_value=_response(PRICES),
        ):
            await oracle.convert(2000 * 10**6, USDC)

        now[0] = 1000.0
        with patch(
            "pool_arbitrage.adapters.oracle.requests.get",
            side_effect=requests.Timeout("slow"),
        ) as get:
            assert await oracle.convert(2000 * 10**6, USDC) == 10**18
            assert await oracle.convert(2000 * 10**6, USDC) == 10**18

        # Stale entries are not refreshed, so every call retries
        assert get.call_count == 2

    @pytest.mark.asyncio
    async def test_unmapped_token(self):
        oracle = CoinGeckoPriceOracle(WETH, coingecko_ids={"WETH": "ethereum"})
        with pytest.raises(ConversionFailure):
            await oracle.convert(10**6, USDC)


class TestChainedPriceOracle:
    @pytest.mark.asyncio
    async def test_falls_through_to_next_oracle(self):
        chained = ChainedPriceOracle(
            [PoolPriceOracle(WETH), StaticPriceOracle(WETH, {"USDC": 4 * 10**14})]
        )
        assert await chained.convert(2000 * 10**6, USDC) == 8 * 10**17

    @pytest.mark.asyncio
    async def test_all_fail(self):
        chained = ChainedPriceOracle([PoolPriceOracle(WETH), StaticPriceOracle(WETH, {})])
        with pytest.raises(ConversionFailure) as excinfo:
            await chained.convert(10**6, USDC)
        assert len(excinfo.value.details["errors"]) == 2
