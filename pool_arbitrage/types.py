"""
Core data types for pool arbitrage scanning.

Every snapshot type is a frozen dataclass: a cycle builds them once from
fetched state and discards them at the end, and evaluations running in
parallel only ever read them.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from .constants import BPS_DENOMINATOR, DexType, OpportunityKind
from .exceptions import InvalidToken


def pair_key(symbol_a: str, symbol_b: str) -> str:
    """Deterministic grouping key for a token pair, e.g. "USDC-WETH"."""
    return "-".join(sorted((symbol_a.upper(), symbol_b.upper())))


@dataclass(frozen=True)
class Token:
    """
    Canonical token metadata.

    Attributes:
        address: Token contract address
        symbol: Ticker symbol (e.g., "WETH")
        decimals: ERC20 decimals
        chain_id: Chain the token lives on
    """

    address: str
    symbol: str
    decimals: int
    chain_id: int = 0

    @property
    def key(self) -> str:
        """Lower-cased address used for identity comparisons."""
        return self.address.lower()

    def same_as(self, other: "Token") -> bool:
        return self.key == other.key

    @property
    def unit(self) -> int:
        """One whole token in smallest units."""
        return 10**self.decimals


@dataclass(frozen=True)
class ConstantProductReserves:
    """Reserves of a V2-style pool, in smallest units."""

    reserve0: int
    reserve1: int


@dataclass(frozen=True)
class ConcentratedLiquidityState:
    """
    Slot0 and liquidity of a V3-style pool.

    Attributes:
        sqrt_price_x96: Current sqrt(price) as Q64.96
        liquidity: Active in-range liquidity
        tick: Current tick
        tick_spacing: Tick spacing of the fee tier
        ticks: Initialized ticks as (tick, liquidity_net), ascending; empty
            means the active liquidity is assumed constant over the whole range
    """

    sqrt_price_x96: int
    liquidity: int
    tick: int
    tick_spacing: int = 0
    ticks: Tuple[Tuple[int, int], ...] = ()


@dataclass(frozen=True)
class PmmState:
    """
    Probe result of a DODO-style PMM pool.

    Attributes:
        query_amount_out_wei: Quote received for selling one whole base token
        base_token: The pool's designated base token
        quote_token: The pool's designated quote token
    """

    query_amount_out_wei: int
    base_token: Token
    quote_token: Token


PoolPayload = Union[ConstantProductReserves, ConcentratedLiquidityState, PmmState]

_PAYLOAD_FOR_DEX_TYPE = {
    DexType.CONSTANT_PRODUCT: ConstantProductReserves,
    DexType.CONCENTRATED_LIQUIDITY: ConcentratedLiquidityState,
    DexType.PMM: PmmState,
}


@dataclass(frozen=True)
class PoolConfig:
    """
    Static configuration of a pool, as loaded from the config file.

    Attributes:
        name: Human-readable label (e.g., "sushi WETH/USDC")
        address: Pool contract address
        dex_type: AMM mechanics of the pool
        token0: Symbol of the pool's token0
        token1: Symbol of the pool's token1
        fee_bps: Swap fee in basis points
        base_token: Base token symbol (PMM pools only)
        dex: Venue name (e.g., "sushiswap", "camelot"); defaults to the
            DEX type when not configured
    """

    name: str
    address: str
    dex_type: DexType
    token0: str
    token1: str
    fee_bps: int
    base_token: Optional[str] = None
    dex: str = ""

    @property
    def venue(self) -> str:
        return self.dex or self.dex_type.value


@dataclass(frozen=True)
class PoolState:
    """
    Read-only snapshot of one pool for one cycle.

    Raises:
        ValueError: If fee_bps is outside [0, 10000) or the payload does not
            match dex_type
    """

    address: str
    dex_type: DexType
    token0: Token
    token1: Token
    fee_bps: int
    payload: PoolPayload
    name: str = ""
    dex: str = ""

    def __post_init__(self):
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ValueError(
                f"Pool {self.address} fee_bps must be in [0, {BPS_DENOMINATOR}): {self.fee_bps}"
            )
        expected = _PAYLOAD_FOR_DEX_TYPE[self.dex_type]
        if not isinstance(self.payload, expected):
            raise ValueError(
                f"Pool {self.address} is {self.dex_type.value} but payload is "
                f"{type(self.payload).__name__}"
            )
        if self.token0.same_as(self.token1):
            raise ValueError(f"Pool {self.address} has identical tokens")
        if isinstance(self.payload, PmmState):
            base, quote = self.payload.base_token, self.payload.quote_token
            if not (
                (base.same_as(self.token0) and quote.same_as(self.token1))
                or (base.same_as(self.token1) and quote.same_as(self.token0))
            ):
                raise ValueError(
                    f"PMM pool {self.address} base/quote do not match its tokens"
                )

    @property
    def key(self) -> str:
        return self.address.lower()

    @property
    def venue(self) -> str:
        """Venue the pool trades on; pools on one venue are never compared."""
        return self.dex or self.dex_type.value

    @property
    def pair_key(self) -> str:
        return pair_key(self.token0.symbol, self.token1.symbol)

    def has_token(self, token: Token) -> bool:
        return token.same_as(self.token0) or token.same_as(self.token1)

    def other_token(self, token: Token) -> Token:
        """
        Return the counterpart of token in this pool.

        Raises:
            InvalidToken: If token is not one of the pool's tokens
        """
        if token.same_as(self.token0):
            return self.token1
        if token.same_as(self.token1):
            return self.token0
        raise InvalidToken(
            f"Token {token.symbol} is not part of pool {self.address}",
            pool_address=self.address,
            token=token.symbol,
        )

    def token_by_symbol(self, symbol: str) -> Optional[Token]:
        symbol = symbol.upper()
        for token in (self.token0, self.token1):
            if token.symbol.upper() == symbol:
                return token
        return None


@dataclass(frozen=True)
class Hop:
    """One swap in a path; token_in and token_out are the pool's two tokens."""

    pool: PoolState
    token_in: Token
    token_out: Token

    def __post_init__(self):
        if not self.pool.other_token(self.token_in).same_as(self.token_out):
            raise InvalidToken(
                f"Hop {self.token_in.symbol}->{self.token_out.symbol} does not match "
                f"pool {self.pool.address}",
                pool_address=self.pool.address,
                token=self.token_out.symbol,
            )


@dataclass(frozen=True)
class Opportunity:
    """
    A candidate arbitrage path produced by a finder.

    Attributes:
        kind: Spatial (2 hops) or triangular (3 hops)
        path: Ordered hops; the last hop returns the first hop's input token
        amount_in: Input amount of the start token, in smallest units
        estimated_rate_scaled: Fee-adjusted output/input rate scaled by 10^36
    """

    kind: OpportunityKind
    path: Tuple[Hop, ...]
    amount_in: int
    estimated_rate_scaled: int

    @property
    def token_in(self) -> Token:
        return self.path[0].token_in

    @property
    def pool_addresses(self) -> Tuple[str, ...]:
        return tuple(hop.pool.address for hop in self.path)

    @property
    def dedup_key(self) -> Tuple[str, ...]:
        """Order-independent identity of the pools involved."""
        return tuple(sorted(hop.pool.key for hop in self.path))

    def describe(self) -> str:
        """Human-readable route, e.g. "USDC -> WETH -> USDC"."""
        symbols = [self.path[0].token_in.symbol]
        symbols.extend(hop.token_out.symbol for hop in self.path)
        return " -> ".join(symbols)


@dataclass(frozen=True)
class GasEstimate:
    """Gas estimator result; cost_in_native is in native smallest units."""

    gas_limit: int
    cost_in_native: int
    success: bool


@dataclass(frozen=True)
class TradeDescriptor:
    """
    Fully evaluated trade candidate, handed to the submission capability.

    Token-denominated fields (simulated_amount_out, gross_profit,
    flash_loan_fee) are in units of the start token; native-denominated
    fields (gas_cost, net_profit, tithe, threshold_used) are in native
    smallest units.
    """

    opportunity: Opportunity
    simulated_amount_out: int
    gross_profit: int
    flash_loan_fee: int
    gas_cost: int
    net_profit: int
    tithe: int
    profit_percentage: Optional[float]
    threshold_used: int
    intermediate_amounts: Tuple[int, ...] = ()
    net_pre_gas_native: int = 0
    flash_loan_fee_native: int = 0
    gas_limit: int = 0

    @property
    def net_profit_after_tithe(self) -> int:
        return self.net_profit - self.tithe

    def as_dict(self) -> Dict[str, object]:
        """Flat view for logging and hand-off."""
        return {
            "kind": self.opportunity.kind.value,
            "route": self.opportunity.describe(),
            "pools": list(self.opportunity.pool_addresses),
            "amount_in": self.opportunity.amount_in,
            "simulated_amount_out": self.simulated_amount_out,
            "gross_profit": self.gross_profit,
            "flash_loan_fee": self.flash_loan_fee,
            "gas_cost": self.gas_cost,
            "gas_limit": self.gas_limit,
            "net_profit": self.net_profit,
            "tithe": self.tithe,
            "net_profit_after_tithe": self.net_profit_after_tithe,
            "profit_percentage": self.profit_percentage,
            "threshold_used": self.threshold_used,
        }


@dataclass(frozen=True)
class Decision:
    """Outcome of a profitability evaluation."""

    profitable: bool
    descriptor: Optional[TradeDescriptor]
    reason: str


@dataclass
class CycleSummary:
    """Per-cycle counters for observability."""

    cycle_number: int
    pools_configured: int = 0
    pools_fetched: int = 0
    opportunities_found: int = 0
    evaluations_failed: int = 0
    profitable_count: int = 0
    submitted_count: int = 0
    submissions_failed: int = 0
    duration_sec: float = 0.0
    rejection_reasons: Dict[str, int] = field(default_factory=dict)

    def as_line(self) -> str:
        return (
            f"cycle={self.cycle_number} pools={self.pools_fetched}/{self.pools_configured} "
            f"opportunities={self.opportunities_found} profitable={self.profitable_count} "
            f"submitted={self.submitted_count} failed_evals={self.evaluations_failed} "
            f"took={self.duration_sec:.2f}s"
        )
