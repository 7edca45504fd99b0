"""
Dependency injection interfaces for external collaborators.

The scanner core never talks to a chain, a price feed or an execution
layer directly. It is handed objects satisfying these protocols, which
keeps every component testable with in-memory fakes.
"""

from typing import Any, Protocol, Sequence, Tuple, runtime_checkable

from .types import (
    GasEstimate,
    Hop,
    PoolConfig,
    PoolState,
    Token,
    TradeDescriptor,
)


@runtime_checkable
class PoolStateFetcher(Protocol):
    """Reads on-chain pool state."""

    async def fetch_pool_state(self, pool: PoolConfig) -> PoolState:
        """
        Fetch a fresh snapshot of one pool.

        Raises:
            DataUnavailable: If the pool cannot be read or is illiquid
        """
        ...

    async def call_view(
        self, address: str, function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        """Call a read-only contract function and return its decoded result."""
        ...


@runtime_checkable
class PriceOracle(Protocol):
    """Values token amounts in the chain's native currency."""

    async def convert(self, amount: int, token: Token) -> int:
        """
        Convert a smallest-unit token amount to native smallest units.

        Raises:
            ConversionFailure: If the token cannot be priced
        """
        ...


@runtime_checkable
class GasEstimator(Protocol):
    """Estimates the cost of executing a path."""

    async def estimate(self, path: Sequence[Hop], signer: str) -> GasEstimate:
        ...


@runtime_checkable
class TradeSubmitter(Protocol):
    """Receives trade descriptors that passed evaluation."""

    async def submit(self, descriptor: TradeDescriptor) -> None:
        ...


@runtime_checkable
class TickDataProvider(Protocol):
    """Supplies initialized ticks for concentrated-liquidity pools."""

    async def get_ticks(self, pool: PoolState) -> Sequence[Tuple[int, int]]:
        """Return (tick, liquidity_net) pairs, ascending by tick."""
        ...
