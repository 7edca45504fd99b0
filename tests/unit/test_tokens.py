"""Unit tests for the token registry and pool snapshot types."""

import unittest

from pool_arbitrage.constants import DexType, OpportunityKind
from pool_arbitrage.exceptions import ConfigurationError, InvalidToken
from pool_arbitrage.tokens import TokenRegistry
from pool_arbitrage.types import (
    ConstantProductReserves,
    CycleSummary,
    Hop,
    Opportunity,
    PoolState,
    Token,
    TradeDescriptor,
)

from pool_factories import ARB, USDC, WETH, cp_pool, pmm_pool


class TestTokenRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = TokenRegistry([WETH, USDC, ARB], native_symbol="weth")

    def test_lookup_by_symbol(self):
        self.assertIs(self.registry.get("usdc"), USDC)
        self.assertIsNone(self.registry.get("PEPE"))
        self.assertIn("Arb", self.registry)
        self.assertEqual(len(self.registry), 3)

    def test_require_unknown(self):
        with self.assertRaises(ConfigurationError):
            self.registry.require("PEPE")

    def test_lookup_by_address(self):
        self.assertIs(self.registry.by_address(WETH.address.lower()), WETH)
        self.assertIs(self.registry.by_address(USDC.address), USDC)
        self.assertIsNone(
            self.registry.by_address("0x0000000000000000000000000000000000000abc")
        )

    def test_native(self):
        self.assertIs(self.registry.native, WETH)
        self.assertIsNone(TokenRegistry([USDC]).native)

    def test_symbols_sorted(self):
        self.assertEqual(self.registry.symbols, ["ARB", "USDC", "WETH"])

    def test_duplicate_symbol(self):
        clone = Token("0x0000000000000000000000000000000000000abc", "weth", 18)
        with self.assertRaises(ConfigurationError):
            TokenRegistry([WETH, clone])

    def test_duplicate_address(self):
        clone = Token(WETH.address.lower(), "WETH2", 18)
        with self.assertRaises(ConfigurationError):
            TokenRegistry([WETH, clone])

    def test_invalid_decimals(self):
        bad = Token("0x0000000000000000000000000000000000000abc", "BAD", 40)
        with self.assertRaises(ConfigurationError):
            TokenRegistry([bad])

    def test_missing_native(self):
        with self.assertRaises(ConfigurationError):
            TokenRegistry([USDC], native_symbol="WETH")


class TestPoolState(unittest.TestCase):
    def test_fee_out_of_range(self):
        with self.assertRaises(ValueError):
            cp_pool(1, WETH, USDC, 1, 1, fee_bps=10000)

    def test_payload_must_match_type(self):
        with self.assertRaises(ValueError):
            PoolState(
                address="0x1",
                dex_type=DexType.PMM,
                token0=WETH,
                token1=USDC,
                fee_bps=0,
                payload=ConstantProductReserves(1, 1),
            )

    def test_identical_tokens(self):
        with self.assertRaises(ValueError):
            cp_pool(1, WETH, WETH, 1, 1)

    def test_pmm_base_must_be_pool_token(self):
        with self.assertRaises(ValueError):
            pmm_pool(1, WETH, USDC, base=ARB, query_amount_out_wei=1)

    def test_other_token(self):
        pool = cp_pool(1, WETH, USDC, 1, 1)
        self.assertEqual(pool.other_token(WETH), USDC)
        self.assertEqual(pool.other_token(USDC), WETH)
        with self.assertRaises(InvalidToken):
            pool.other_token(ARB)

    def test_venue_and_pair(self):
        pool = cp_pool(1, WETH, USDC, 1, 1)
        self.assertEqual(pool.venue, "constant_product")
        self.assertEqual(pool.pair_key, "USDC-WETH")
        self.assertEqual(cp_pool(2, WETH, USDC, 1, 1, dex="camelot").venue, "camelot")

    def test_hop_must_follow_pool(self):
        pool = cp_pool(1, WETH, USDC, 1, 1)
        with self.assertRaises(InvalidToken):
            Hop(pool, WETH, ARB)


class TestOpportunityAndDescriptor(unittest.TestCase):
    def setUp(self):
        pool1 = cp_pool(2, WETH, USDC, 1, 1)
        pool2 = cp_pool(1, WETH, USDC, 1, 1)
        self.opportunity = Opportunity(
            kind=OpportunityKind.SPATIAL,
            path=(Hop(pool1, USDC, WETH), Hop(pool2, WETH, USDC)),
            amount_in=2000 * 10**6,
            estimated_rate_scaled=0,
        )

    def test_opportunity_views(self):
        self.assertEqual(self.opportunity.token_in, USDC)
        self.assertEqual(self.opportunity.describe(), "USDC -> WETH -> USDC")
        self.assertEqual(
            self.opportunity.dedup_key,
            (f"0x{1:040x}", f"0x{2:040x}"),
        )

    def test_descriptor_as_dict(self):
        descriptor = TradeDescriptor(
            opportunity=self.opportunity,
            simulated_amount_out=2010 * 10**6,
            gross_profit=10 * 10**6,
            flash_loan_fee=1_800_000,
            gas_cost=10**13,
            net_profit=10**15,
            tithe=3 * 10**14,
            profit_percentage=0.05,
            threshold_used=0,
        )
        data = descriptor.as_dict()
        self.assertEqual(data["kind"], "spatial")
        self.assertEqual(data["route"], "USDC -> WETH -> USDC")
        self.assertEqual(data["net_profit_after_tithe"], 7 * 10**14)
        self.assertEqual(len(data["pools"]), 2)

    def test_cycle_summary_line(self):
        summary = CycleSummary(cycle_number=3, pools_configured=4, pools_fetched=3)
        self.assertIn("cycle=3", summary.as_line())
        self.assertIn("pools=3/4", summary.as_line())
