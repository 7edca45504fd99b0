"""
Gas estimation for candidate paths.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Sequence

from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from ..constants import DEFAULT_CONFIG
from ..types import GasEstimate, Hop
from ..utils import get_logger

logger = get_logger(__name__)

TransactionBuilder = Callable[[Sequence[Hop], str], Dict[str, Any]]

# Rough gas usage of a flash-loan executor: fixed overhead plus one swap per hop
BASE_GAS = 150_000
PER_HOP_GAS = {
    "constant_product": 90_000,
    "concentrated_liquidity": 130_000,
    "pmm": 110_000,
}


def heuristic_gas_limit(path: Sequence[Hop]) -> int:
    return BASE_GAS + sum(PER_HOP_GAS[hop.pool.dex_type.value] for hop in path)


class Web3GasEstimator:
    """
    Estimates execution gas with eth_estimateGas and the current gas price.

    With a transaction builder, the built transaction is estimated and the
    result padded by buffer_pct; a revert yields the fallback limit and
    success=False. Without one, a per-hop heuristic limit is used.
    """

    def __init__(
        self,
        web3: Web3,
        tx_builder: Optional[TransactionBuilder] = None,
        buffer_pct: int = DEFAULT_CONFIG["GAS_ESTIMATE_BUFFER_PCT"],
        fallback_gas_limit: int = DEFAULT_CONFIG["FALLBACK_GAS_LIMIT"],
    ):
        self.web3 = web3
        self.tx_builder = tx_builder
        self.buffer_pct = buffer_pct
        self.fallback_gas_limit = fallback_gas_limit

    def _buffered(self, gas_limit: int) -> int:
        return gas_limit * (100 + self.buffer_pct) // 100

    async def estimate(self, path: Sequence[Hop], signer: str) -> GasEstimate:
        loop = asyncio.get_running_loop()
        try:
            gas_price = int(
                await loop.run_in_executor(None, lambda: self.web3.eth.gas_price)
            )
        except (Web3Exception, OSError, ValueError) as e:
            logger.warning(f"Failed to read gas price: {e}")
            return GasEstimate(gas_limit=0, cost_in_native=0, success=False)

        if self.tx_builder is None:
            gas_limit = self._buffered(heuristic_gas_limit(path))
            return GasEstimate(
                gas_limit=gas_limit, cost_in_native=gas_limit * gas_price, success=True
            )

        tx = self.tx_builder(path, signer)
        try:
            estimated = await loop.run_in_executor(
                None, lambda: self.web3.eth.estimate_gas(tx)
            )
        except (ContractLogicError, Web3Exception, ValueError) as e:
            logger.debug(
                f"Gas estimation reverted, using fallback {self.fallback_gas_limit}: {e}"
            )
            return GasEstimate(
                gas_limit=self.fallback_gas_limit,
                cost_in_native=self.fallback_gas_limit * gas_price,
                success=False,
            )

        gas_limit = self._buffered(int(estimated))
        return GasEstimate(
            gas_limit=gas_limit, cost_in_native=gas_limit * gas_price, success=True
        )
